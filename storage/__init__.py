"""Storage - SQLite persistence for the card register."""

from storage.db import get_connection, init_card_engine_db
from storage.errors import (
    CardNotFoundError,
    PostedTransactionError,
    SnapshotLoadError,
    StoreError,
    TransactionNotFoundError,
)
from storage.repository import CODING_FIELDS, CardSnapshot, PostingState, TransactionStore

__all__ = [
    "get_connection",
    "init_card_engine_db",
    "CardNotFoundError",
    "PostedTransactionError",
    "SnapshotLoadError",
    "StoreError",
    "TransactionNotFoundError",
    "CODING_FIELDS",
    "CardSnapshot",
    "PostingState",
    "TransactionStore",
]

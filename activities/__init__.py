"""Activity definitions module."""

from activities.posting import (
    post_card_transaction,
    PostTransactionInput,
    PostTransactionOutput,
)

__all__ = [
    # Posting activities
    "post_card_transaction",
    "PostTransactionInput",
    "PostTransactionOutput",
]

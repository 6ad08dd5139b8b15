"""Posting - card transactions to the general ledger.

Usage:
    from posting import build_orchestrator

    orchestrator = build_orchestrator()
    result = await orchestrator.post_batch(selected_ids)
    for message in result.error_messages(limit=5):
        print(message)
"""

from posting.errors import ConcurrentPostError, PostingError, PostingRejectedError
from posting.journal import (
    build_expense_lines,
    build_journal_entry,
    idempotency_key_for,
    resolve_expense_account,
)
from posting.models import BatchPostResult, PostOutcome, PostStatus
from posting.orchestrator import PostingOrchestrator, PostingUnit, build_orchestrator

__all__ = [
    # Errors
    "ConcurrentPostError",
    "PostingError",
    "PostingRejectedError",
    # Journal
    "build_expense_lines",
    "build_journal_entry",
    "idempotency_key_for",
    "resolve_expense_account",
    # Results
    "BatchPostResult",
    "PostOutcome",
    "PostStatus",
    # Orchestrator
    "PostingOrchestrator",
    "PostingUnit",
    "build_orchestrator",
]

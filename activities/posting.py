"""
Posting Activities for Card Transactions

Activities that post card transactions to the general ledger:
- post_card_transaction: Re-validate and post one transaction
"""

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from temporalio import activity

from core.config import get_settings
from core.observability.logging import (
    log_activity_complete,
    log_activity_error,
    log_activity_start,
    with_correlation,
)
from posting import PostOutcome, PostStatus, build_orchestrator


# =============================================================================
# Activity Input/Output Models
# =============================================================================

@dataclass
class PostTransactionInput:
    """Input for post_card_transaction activity"""
    transaction_id: str
    batch_id: Optional[str] = None
    company_id: Optional[str] = None
    db_path: Optional[str] = None  # Overrides CARD_ENGINE_DB_PATH


@dataclass
class PostTransactionOutput:
    """Output from post_card_transaction activity"""
    transaction_id: str
    status: str
    ledger_entry_id: Optional[str] = None
    error: Optional[str] = None
    label: Optional[str] = None

    @classmethod
    def from_outcome(cls, outcome: PostOutcome) -> "PostTransactionOutput":
        return cls(
            transaction_id=outcome.transaction_id,
            status=outcome.status.value,
            ledger_entry_id=outcome.ledger_entry_id,
            error=outcome.error,
            label=outcome.label,
        )

    def to_outcome(self) -> PostOutcome:
        return PostOutcome(
            transaction_id=self.transaction_id,
            status=PostStatus(self.status),
            ledger_entry_id=self.ledger_entry_id,
            error=self.error,
            label=self.label,
        )


# =============================================================================
# post_card_transaction Activity
# =============================================================================

@activity.defn
async def post_card_transaction(input: PostTransactionInput) -> PostTransactionOutput:
    """
    Post one card transaction to the ledger.

    Preconditions are re-checked against stored state, so a transaction
    that was posted or un-coded since the batch was selected comes back
    ineligible instead of being posted twice.
    """
    settings = get_settings()
    if input.db_path:
        settings = settings.model_copy(update={"db_path": Path(input.db_path)})

    with with_correlation(
        batch_id=input.batch_id,
        company_id=input.company_id,
        transaction_id=input.transaction_id,
        activity_name="post_card_transaction",
    ):
        log_activity_start("post_card_transaction")
        start = time.time()

        orchestrator = build_orchestrator(settings)
        outcome = await orchestrator.post_transaction(input.transaction_id, input.company_id)

        duration_ms = (time.time() - start) * 1000
        if outcome.status == PostStatus.FAILED:
            log_activity_error("post_card_transaction", outcome.error or "unknown error")
        else:
            log_activity_complete(
                "post_card_transaction",
                duration_ms=round(duration_ms, 1),
                status=outcome.status.value,
            )

        return PostTransactionOutput.from_outcome(outcome)

"""Posting result models.

Every transaction id handed to a batch comes back exactly once as a
``PostOutcome``:
- POSTED: a journal entry exists and its reference is stored
- FAILED: an attempt was made and did not complete
- INELIGIBLE: preconditions failed, so no attempt was made

``BatchPostResult`` is a fold over those outcomes.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional


class PostStatus(str, Enum):
    """Outcome of posting one transaction."""
    POSTED = "posted"
    FAILED = "failed"
    INELIGIBLE = "ineligible"


@dataclass
class PostOutcome:
    """
    Tagged result for one transaction.

    Attributes:
        transaction_id: The card transaction
        status: Posted, failed or ineligible
        ledger_entry_id: Journal entry reference (posted only)
        error: Reason (failed and ineligible only)
        label: Display name used in user-facing messages
    """
    transaction_id: str
    status: PostStatus
    ledger_entry_id: Optional[str] = None
    error: Optional[str] = None
    label: Optional[str] = None

    @classmethod
    def ok(cls, transaction_id: str, ledger_entry_id: str, label: Optional[str] = None) -> "PostOutcome":
        return cls(transaction_id, PostStatus.POSTED, ledger_entry_id=ledger_entry_id, label=label)

    @classmethod
    def err(cls, transaction_id: str, error: str, label: Optional[str] = None) -> "PostOutcome":
        return cls(transaction_id, PostStatus.FAILED, error=error, label=label)

    @classmethod
    def skip(cls, transaction_id: str, error: str, label: Optional[str] = None) -> "PostOutcome":
        return cls(transaction_id, PostStatus.INELIGIBLE, error=error, label=label)

    @property
    def message(self) -> Optional[str]:
        """User-facing message, e.g. "Home Depot: Not fully coded"."""
        if self.error is None:
            return None
        return f"{self.label or 'Transaction'}: {self.error}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "status": self.status.value,
            "ledger_entry_id": self.ledger_entry_id,
            "error": self.error,
            "label": self.label,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PostOutcome":
        return cls(
            transaction_id=data["transaction_id"],
            status=PostStatus(data["status"]),
            ledger_entry_id=data.get("ledger_entry_id"),
            error=data.get("error"),
            label=data.get("label"),
        )


@dataclass
class BatchPostResult:
    """Aggregated outcomes of one "post to GL" request, in input order."""
    outcomes: List[PostOutcome] = field(default_factory=list)
    batch_id: Optional[str] = None

    @classmethod
    def from_outcomes(
        cls,
        transaction_ids: Iterable[str],
        outcomes: Iterable[PostOutcome],
        batch_id: Optional[str] = None,
    ) -> "BatchPostResult":
        """
        Fold outcomes into a result with one entry per distinct input id.

        Outcomes may arrive in any order; the result follows input order.
        An id with no outcome is reported as failed.

        Raises:
            ValueError: If an outcome names an id that was not requested
        """
        ordered_ids = list(dict.fromkeys(transaction_ids))
        by_id: Dict[str, PostOutcome] = {}
        for outcome in outcomes:
            if outcome.transaction_id not in ordered_ids:
                raise ValueError(f"Outcome for unrequested transaction {outcome.transaction_id}")
            by_id.setdefault(outcome.transaction_id, outcome)
        return cls(
            outcomes=[
                by_id.get(tx_id) or PostOutcome.err(tx_id, "No result recorded")
                for tx_id in ordered_ids
            ],
            batch_id=batch_id,
        )

    def _with_status(self, status: PostStatus) -> List[PostOutcome]:
        return [o for o in self.outcomes if o.status == status]

    @property
    def posted(self) -> List[PostOutcome]:
        return self._with_status(PostStatus.POSTED)

    @property
    def errors(self) -> List[PostOutcome]:
        """Attempts that failed."""
        return self._with_status(PostStatus.FAILED)

    @property
    def ineligible(self) -> List[PostOutcome]:
        """Transactions excluded before any attempt."""
        return self._with_status(PostStatus.INELIGIBLE)

    @property
    def posted_ids(self) -> List[str]:
        return [o.transaction_id for o in self.posted]

    @property
    def attempts(self) -> int:
        return len(self.posted) + len(self.errors)

    def error_messages(self, limit: Optional[int] = None) -> List[str]:
        """
        Messages for failed and ineligible transactions, for display.

        When more than ``limit`` exist, the list is truncated and a final
        "...and N more" line is appended.
        """
        messages = [o.message for o in self.outcomes if o.error is not None]
        if limit is None or len(messages) <= limit:
            return messages
        return messages[:limit] + [f"...and {len(messages) - limit} more"]

    def summary(self) -> str:
        parts = [f"Posted {len(self.posted)} transaction(s)"]
        if self.errors:
            parts.append(f"{len(self.errors)} failed")
        if self.ineligible:
            parts.append(f"{len(self.ineligible)} skipped")
        return ", ".join(parts)

    def to_dict(self, error_limit: Optional[int] = None) -> Dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "summary": self.summary(),
            "attempts": self.attempts,
            "posted": [o.to_dict() for o in self.posted],
            "errors": [o.to_dict() for o in self.errors],
            "ineligible": [o.to_dict() for o in self.ineligible],
            "messages": self.error_messages(error_limit),
        }

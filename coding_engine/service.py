"""
Coding Service

Store-backed coding actions for a single transaction. Every save writes
the coding fields (and, when given, the full set of distribution lines)
and then recomputes and persists the coding status, so the persisted
status always reflects the last save.
"""

from typing import List, Optional, Sequence

from core.observability.logging import get_logger, with_correlation
from models.cards import CardTransaction, CodingStatus, DistributionLine
from reference_resolver import ReferenceResolver, TieBreakPolicy
from storage import TransactionNotFoundError, TransactionStore

from .classifier import assess_coding, derive_coding_status
from .models import CodingAssessment, CodingUpdate

logger = get_logger(__name__)


class CodingService:
    """
    Saves coding for card transactions and keeps the coding status current.

    Usage:
        service = CodingService(store)
        status = service.save_coding(tx_id, CodingUpdate(vendor_id="v-1", job_id="j-1"))
    """

    def __init__(
        self,
        store: TransactionStore,
        policy: TieBreakPolicy = TieBreakPolicy.TYPE_THEN_FIRST,
    ):
        self.store = store
        self.policy = policy

    def _load(self, transaction_id: str) -> CardTransaction:
        tx = self.store.get_transaction(transaction_id)
        if tx is None:
            raise TransactionNotFoundError(transaction_id)
        return tx

    def _resolver(self, company_id: str) -> ReferenceResolver:
        return ReferenceResolver(self.store.load_catalog(company_id), self.policy)

    def assess(self, transaction_id: str) -> CodingAssessment:
        """Structural assessment of a stored transaction."""
        tx = self._load(transaction_id)
        distributions = self.store.get_distributions([tx.id]).get(tx.id, [])
        return assess_coding(tx, distributions, self._resolver(tx.company_id))

    def refresh_status(self, transaction_id: str) -> CodingStatus:
        """Recompute and persist the coding status from stored data."""
        tx = self._load(transaction_id)
        distributions = self.store.get_distributions([tx.id]).get(tx.id, [])
        status = derive_coding_status(tx, distributions, self._resolver(tx.company_id))
        self.store.set_coding_status(tx.id, status)
        return status

    def save_coding(
        self,
        transaction_id: str,
        update: CodingUpdate,
        distributions: Optional[Sequence[DistributionLine]] = None,
    ) -> CodingStatus:
        """
        Apply a coding update and recompute the status.

        Args:
            transaction_id: Transaction to code
            update: Coding fields to write
            distributions: When given, replaces all distribution lines
                (an empty list removes the split)

        Returns:
            The persisted coding status

        Raises:
            TransactionNotFoundError: Unknown transaction
            PostedTransactionError: The transaction is already posted
        """
        with with_correlation(transaction_id=transaction_id, stage="coding"):
            self.store.update_coding(transaction_id, update.as_fields())
            if distributions is not None:
                lines: List[DistributionLine] = [
                    line.model_copy(update={"transaction_id": transaction_id})
                    for line in distributions
                ]
                self.store.replace_distributions(transaction_id, lines)
            status = self.refresh_status(transaction_id)
            logger.info("Coding saved", extra_fields={"coding_status": status.value})
            return status

    def attach_document(self, transaction_id: str, attachment_url: str) -> CodingStatus:
        self.store.update_coding(transaction_id, {"attachment_url": attachment_url})
        return self.refresh_status(transaction_id)

    def remove_document(self, transaction_id: str) -> CodingStatus:
        self.store.update_coding(transaction_id, {"attachment_url": None})
        return self.refresh_status(transaction_id)

    def request_coding(self, transaction_id: str, user_id: Optional[str]) -> None:
        """Route the transaction to a user for coding."""
        self.store.request_coding(transaction_id, user_id)
        logger.info(
            "Coding requested",
            extra_fields={"transaction_id": transaction_id, "user_id": user_id},
        )

    def confirm_match(self, transaction_id: str) -> None:
        """Dismiss the "matches found" indicator for a transaction."""
        self.store.confirm_match(transaction_id)

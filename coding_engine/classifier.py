"""
Coding Classifier

Answers "is this card transaction fully coded?" in two tiers:
1. Fast path: the persisted coding status says "coded"
2. Structural inference over the transaction and its distribution lines

Structural rules:
- Distributed: every line has a job, a cost code and a positive amount;
  the lines sum to the transaction's absolute amount within one cent;
  a vendor is set; if any line's cost code requires an attachment, one
  is present.
- Single: a vendor is set; a job with a cost code, or a chart account,
  is set; the resolved reference's attachment requirement is satisfied.

Malformed data never raises here; it classifies as uncoded.
"""

from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Optional, Sequence

from models.cards import CardTransaction, CodingStatus, DistributionLine
from reference_resolver import ReferenceResolver

from .models import (
    AMOUNT_EPSILON,
    CodingAssessment,
    CodingPath,
    MissingField,
)


def persisted_status_is_coded(tx: CardTransaction) -> bool:
    """Fast path: trust a persisted "coded" status."""
    return tx.coding_status == CodingStatus.CODED


def _assess_distributed(
    tx: CardTransaction,
    distributions: Sequence[DistributionLine],
    resolver: ReferenceResolver,
) -> CodingAssessment:
    missing: List[MissingField] = []

    lines_valid = all(
        line.job_id and line.cost_code_id and line.amount is not None and line.amount > 0
        for line in distributions
    )
    if not lines_valid:
        missing.append(MissingField.DISTRIBUTION_LINE)

    total = sum((line.amount or Decimal("0") for line in distributions), Decimal("0"))
    if abs(total - abs(tx.amount)) >= AMOUNT_EPSILON:
        missing.append(MissingField.DISTRIBUTION_TOTAL)

    if not tx.vendor_id:
        missing.append(MissingField.VENDOR)

    requires = any(
        resolver.requires_attachment_for_cost_code(line.cost_code_id)
        for line in distributions
    )
    if requires and not tx.has_attachment:
        missing.append(MissingField.ATTACHMENT)

    return CodingAssessment(
        is_coded=not missing,
        path=CodingPath.DISTRIBUTED,
        missing=missing,
        requires_attachment=requires,
        distribution_total=total,
    )


def _assess_single(tx: CardTransaction, resolver: ReferenceResolver) -> CodingAssessment:
    missing: List[MissingField] = []

    if not tx.vendor_id:
        missing.append(MissingField.VENDOR)

    requires = True
    if tx.job_id and tx.cost_code_id:
        requires = resolver.requires_attachment_for_cost_code(tx.cost_code_id)
    elif tx.chart_account_id:
        requires = resolver.requires_attachment_for_account(tx.chart_account_id)
    elif tx.job_id:
        missing.append(MissingField.COST_CODE)
    else:
        missing.append(MissingField.JOB_OR_ACCOUNT)

    if requires and not tx.has_attachment:
        missing.append(MissingField.ATTACHMENT)

    return CodingAssessment(
        is_coded=not missing,
        path=CodingPath.SINGLE,
        missing=missing,
        requires_attachment=requires,
    )


def assess_coding(
    tx: CardTransaction,
    distributions: Optional[Sequence[DistributionLine]],
    resolver: ReferenceResolver,
) -> CodingAssessment:
    """
    Structurally assess a transaction's coding.

    Ignores the persisted status entirely.

    Args:
        tx: Card transaction
        distributions: Its distribution lines (empty or None for single coding)
        resolver: Attachment-requirement resolver for the company

    Returns:
        CodingAssessment with the verdict and the missing pieces
    """
    path = CodingPath.DISTRIBUTED if distributions else CodingPath.SINGLE
    try:
        if distributions:
            return _assess_distributed(tx, distributions, resolver)
        return _assess_single(tx, resolver)
    except (InvalidOperation, TypeError, ValueError, AttributeError):
        return CodingAssessment(is_coded=False, path=path, missing=[MissingField.MALFORMED])


def infer_is_coded(
    tx: CardTransaction,
    distributions: Optional[Sequence[DistributionLine]],
    resolver: ReferenceResolver,
) -> bool:
    """Structural inference only."""
    return assess_coding(tx, distributions, resolver).is_coded


def is_coded(
    tx: CardTransaction,
    distributions: Optional[Sequence[DistributionLine]],
    resolver: ReferenceResolver,
) -> bool:
    """Coded if the persisted status says so, else if the structure is complete."""
    if persisted_status_is_coded(tx):
        return True
    return infer_is_coded(tx, distributions, resolver)


def derive_coding_status(
    tx: CardTransaction,
    distributions: Optional[Sequence[DistributionLine]],
    resolver: ReferenceResolver,
) -> CodingStatus:
    """
    Status to persist when coding is saved.

    Payments that are not being coded against a job or account are
    considered coded automatically; everything else follows the
    structural rules.
    """
    if tx.is_payment and not tx.job_id and not tx.chart_account_id and not distributions:
        return CodingStatus.CODED
    if infer_is_coded(tx, distributions, resolver):
        return CodingStatus.CODED
    return CodingStatus.UNCODED


class CodingClassifier:
    """
    Classifies a card register against one company's reference catalog.

    Usage:
        classifier = CodingClassifier(resolver)
        coded = classifier.classify_all(transactions, distributions_by_tx)
    """

    def __init__(self, resolver: ReferenceResolver):
        self.resolver = resolver

    def is_coded(self, tx: CardTransaction, distributions: Optional[Sequence[DistributionLine]] = None) -> bool:
        return is_coded(tx, distributions, self.resolver)

    def assess(self, tx: CardTransaction, distributions: Optional[Sequence[DistributionLine]] = None) -> CodingAssessment:
        return assess_coding(tx, distributions, self.resolver)

    def classify_all(
        self,
        transactions: Iterable[CardTransaction],
        distributions_by_tx: Optional[Dict[str, List[DistributionLine]]] = None,
    ) -> Dict[str, bool]:
        """Coded flag for every transaction, keyed by transaction id."""
        distributions_by_tx = distributions_by_tx or {}
        return {
            tx.id: self.is_coded(tx, distributions_by_tx.get(tx.id, []))
            for tx in transactions
        }

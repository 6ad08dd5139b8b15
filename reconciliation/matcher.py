"""Receipt matcher for credit-card transactions.

Suggests uploaded receipts that plausibly belong to a card transaction.
A receipt is a candidate when all three hold:
- amount within one cent of the transaction amount
- receipt date within three days of the transaction date (inclusive)
- vendor name and merchant name share a leading prefix

Matching is advisory: it surfaces a "matches found" indicator and ranked
suggestions, and never links a receipt to a transaction by itself.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Sequence

from models.cards import CardTransaction, Receipt


# =============================================================================
# Configuration
# =============================================================================

AMOUNT_TOLERANCE = Decimal("0.01")
DATE_WINDOW_DAYS = 3
VENDOR_PREFIX_LENGTH = 5

# Suggestion scoring weights (amount dominates, date proximity last)
SCORE_AMOUNT_EXACT = Decimal("60")
SCORE_AMOUNT_NEAR = Decimal("55")
SCORE_VENDOR_ID = Decimal("25")
SCORE_VENDOR_NAME = Decimal("15")
SCORE_JOB = Decimal("10")
SCORE_MAX = Decimal("105")


# =============================================================================
# Match Predicates
# =============================================================================

def amounts_match(receipt: Receipt, tx: CardTransaction) -> bool:
    """Check if the receipt amount is within one cent of the transaction amount."""
    if receipt.amount is None or tx.amount is None:
        return False
    return abs(receipt.amount - tx.amount) < AMOUNT_TOLERANCE


def days_apart(a: Optional[date], b: Optional[date]) -> Optional[int]:
    if a is None or b is None:
        return None
    return abs((a - b).days)


def dates_match(receipt: Receipt, tx: CardTransaction) -> bool:
    """Check if the receipt date is within the match window of the transaction date."""
    diff = days_apart(receipt.receipt_date, tx.transaction_date)
    return diff is not None and diff <= DATE_WINDOW_DAYS


def vendor_names_match(vendor_name: Optional[str], merchant_name: Optional[str]) -> bool:
    """
    Check if two names share a leading prefix.

    Either lowercased name must contain the first five characters of the
    other (the whole string when it is shorter). Both names must be present.
    """
    if not vendor_name or not merchant_name:
        return False
    vendor = vendor_name.lower()
    merchant = merchant_name.lower()
    return (
        merchant[:VENDOR_PREFIX_LENGTH] in vendor
        or vendor[:VENDOR_PREFIX_LENGTH] in merchant
    )


def is_match(receipt: Receipt, tx: CardTransaction) -> bool:
    return (
        amounts_match(receipt, tx)
        and dates_match(receipt, tx)
        and vendor_names_match(receipt.vendor_name, tx.merchant_name)
    )


def find_matches(tx: CardTransaction, receipts: Iterable[Receipt]) -> List[Receipt]:
    """
    Receipts that plausibly belong to a transaction.

    Args:
        tx: Card transaction
        receipts: Unmatched receipts for the company

    Returns:
        Matching receipts, in their original order
    """
    return [receipt for receipt in receipts if is_match(receipt, tx)]


def find_all_matches(
    transactions: Iterable[CardTransaction],
    receipts: Sequence[Receipt],
    include_confirmed: bool = False,
) -> Dict[str, List[Receipt]]:
    """
    "Matches found" map for a register.

    Transactions with no candidate are omitted. Transactions whose matches
    a human already reviewed (match_confirmed) are omitted unless
    include_confirmed is set.
    """
    result: Dict[str, List[Receipt]] = {}
    for tx in transactions:
        if tx.match_confirmed and not include_confirmed:
            continue
        matches = find_matches(tx, receipts)
        if matches:
            result[tx.id] = matches
    return result


# =============================================================================
# Suggestion Scoring
# =============================================================================

@dataclass
class MatchSuggestion:
    """A candidate receipt with its ranking score (0-100)."""
    receipt: Receipt
    score: int
    raw_score: Decimal

    def to_dict(self) -> Dict:
        return {
            "receipt_id": self.receipt.id,
            "vendor_name": self.receipt.vendor_name,
            "amount": str(self.receipt.amount) if self.receipt.amount is not None else None,
            "receipt_date": self.receipt.receipt_date.isoformat() if self.receipt.receipt_date else None,
            "preview_url": self.receipt.preview_url,
            "score": self.score,
        }


def score_match(tx: CardTransaction, receipt: Receipt) -> Decimal:
    """
    Raw ranking score for a receipt against a transaction.

    Amount (up to 60), vendor (25 by id, 15 by name containment),
    job (10) and date proximity (up to 10).
    """
    score = Decimal("0")

    tx_amount = abs(tx.amount) if tx.amount is not None else Decimal("0")
    receipt_amount = abs(receipt.amount) if receipt.amount is not None else Decimal("0")
    amount_diff = abs(tx_amount - receipt_amount)
    if amount_diff < AMOUNT_TOLERANCE:
        score += SCORE_AMOUNT_EXACT
    elif amount_diff < 1:
        score += SCORE_AMOUNT_NEAR
    elif tx_amount > 0:
        score += max(Decimal("0"), SCORE_AMOUNT_EXACT - (amount_diff / tx_amount) * SCORE_AMOUNT_EXACT)

    if tx.vendor_id and receipt.vendor_id == tx.vendor_id:
        score += SCORE_VENDOR_ID
    elif tx.merchant_name and receipt.vendor_name:
        merchant = tx.merchant_name.lower()
        vendor = receipt.vendor_name.lower()
        if merchant in vendor or vendor in merchant:
            score += SCORE_VENDOR_NAME

    if tx.job_id and receipt.job_id == tx.job_id:
        score += SCORE_JOB

    diff = days_apart(receipt.receipt_date, tx.transaction_date)
    if diff is not None:
        if diff == 0:
            score += 10
        elif diff <= 3:
            score += 8
        elif diff <= 7:
            score += 5
        elif diff <= 14:
            score += 2

    return score


def _as_percentage(raw: Decimal) -> int:
    return min(100, int((raw / SCORE_MAX * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)))


def suggest_matches(tx: CardTransaction, receipts: Iterable[Receipt]) -> List[MatchSuggestion]:
    """Matching receipts ranked by descending score (ties keep receipt order)."""
    suggestions = []
    for receipt in find_matches(tx, receipts):
        raw = score_match(tx, receipt)
        suggestions.append(MatchSuggestion(receipt=receipt, score=_as_percentage(raw), raw_score=raw))
    suggestions.sort(key=lambda s: s.raw_score, reverse=True)
    return suggestions

"""Running balances for a credit-card register.

Balances are always computed chronologically: transactions are sorted by
date (stable, so same-day rows keep their input order) and folded from
zero. Payments and negative amounts reduce the balance by their absolute
value; everything else increases it. The result is keyed by transaction
id so callers can re-sort rows for display without disturbing balances.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from models.cards import CardTransaction, CreditCard, TransactionKind


def balance_delta(tx: CardTransaction) -> Decimal:
    """Signed change a transaction makes to the card balance."""
    amount = tx.amount if tx.amount is not None else Decimal("0")
    if tx.kind == TransactionKind.PAYMENT or amount < 0:
        return -abs(amount)
    return abs(amount)


def compute_running_balances(transactions: Iterable[CardTransaction]) -> Dict[str, Decimal]:
    """
    Balance after each transaction, in date order.

    Args:
        transactions: Register rows in any order

    Returns:
        Dict of transaction id to the running balance after that row
    """
    ordered = sorted(transactions, key=lambda tx: tx.transaction_date)
    balances: Dict[str, Decimal] = {}
    running = Decimal("0")
    for tx in ordered:
        running += balance_delta(tx)
        balances[tx.id] = running
    return balances


@dataclass
class CardBalanceSummary:
    """Card-level totals shown above the register."""
    card_id: str
    balance: Decimal
    transaction_count: int
    credit_limit: Optional[Decimal] = None
    available_credit: Optional[Decimal] = None
    last_transaction_date: Optional[date] = None

    def to_dict(self) -> Dict:
        return {
            "card_id": self.card_id,
            "balance": str(self.balance),
            "transaction_count": self.transaction_count,
            "credit_limit": str(self.credit_limit) if self.credit_limit is not None else None,
            "available_credit": str(self.available_credit) if self.available_credit is not None else None,
            "last_transaction_date": self.last_transaction_date.isoformat() if self.last_transaction_date else None,
        }


def summarize_card(card: CreditCard, transactions: Iterable[CardTransaction]) -> CardBalanceSummary:
    """Current balance and available credit for a card."""
    rows: List[CardTransaction] = list(transactions)
    balance = sum((balance_delta(tx) for tx in rows), Decimal("0"))
    available = None
    if card.credit_limit is not None:
        available = card.credit_limit - balance
    return CardBalanceSummary(
        card_id=card.id,
        balance=balance,
        transaction_count=len(rows),
        credit_limit=card.credit_limit,
        available_credit=available,
        last_transaction_date=max((tx.transaction_date for tx in rows), default=None),
    )

"""
Balance Accumulator Tests

Validates running balances for a card register:
1. Chronological fold independent of input order
2. Payments and negative amounts reduce the balance
3. Card-level summary and available credit
"""

from datetime import date
from decimal import Decimal

from models.cards import CardTransaction, CreditCard, TransactionKind
from reconciliation import balance_delta, compute_running_balances, summarize_card


def make_tx(id, day, amount, kind=TransactionKind.CHARGE) -> CardTransaction:
    return CardTransaction(
        id=id,
        company_id="co-1",
        credit_card_id="card-1",
        transaction_date=date(2025, 1, day),
        amount=Decimal(amount),
        kind=kind,
    )


class TestBalanceDelta:
    """Sign of each transaction's effect."""

    def test_charge_increases(self):
        assert balance_delta(make_tx("a", 1, "100")) == Decimal("100")

    def test_payment_decreases_even_if_positive(self):
        assert balance_delta(make_tx("a", 1, "40", TransactionKind.PAYMENT)) == Decimal("-40")

    def test_negative_amount_decreases(self):
        assert balance_delta(make_tx("a", 1, "-15.50", TransactionKind.REFUND)) == Decimal("-15.50")


class TestRunningBalances:
    """Chronological running balance."""

    def test_charge_payment_charge(self):
        """day1 charge 100, day2 payment 40, day3 charge 10 → 100, 60, 70."""
        txs = [
            make_tx("c1", 1, "100"),
            make_tx("p1", 2, "40", TransactionKind.PAYMENT),
            make_tx("c2", 3, "10"),
        ]
        expected = {"c1": Decimal("100"), "p1": Decimal("60"), "c2": Decimal("70")}

        assert compute_running_balances(txs) == expected
        assert compute_running_balances(list(reversed(txs))) == expected
        assert compute_running_balances([txs[1], txs[2], txs[0]]) == expected

    def test_same_day_keeps_input_order(self):
        txs = [make_tx("first", 5, "10"), make_tx("second", 5, "-3")]
        balances = compute_running_balances(txs)
        assert balances == {"first": Decimal("10"), "second": Decimal("7")}

    def test_empty_register(self):
        assert compute_running_balances([]) == {}


class TestSummarizeCard:
    """Card totals."""

    def test_available_credit(self):
        card = CreditCard(id="card-1", company_id="co-1", card_name="Visa", credit_limit=Decimal("1000"))
        txs = [
            make_tx("c1", 1, "300"),
            make_tx("p1", 4, "-100", TransactionKind.PAYMENT),
        ]
        summary = summarize_card(card, txs)
        assert summary.balance == Decimal("200")
        assert summary.available_credit == Decimal("800")
        assert summary.transaction_count == 2
        assert summary.to_dict()["last_transaction_date"] == "2025-01-04"

    def test_no_credit_limit(self):
        card = CreditCard(id="card-1", company_id="co-1", card_name="Visa")
        summary = summarize_card(card, [])
        assert summary.balance == Decimal("0")
        assert summary.available_credit is None
        assert summary.last_transaction_date is None

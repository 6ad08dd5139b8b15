"""Shared pytest fixtures: temporary card engine databases with a seeded register."""

import os
import tempfile
from datetime import date
from decimal import Decimal

import pytest

from models.cards import (
    AccountAssociation,
    AssociationType,
    CardTransaction,
    ChartAccount,
    CostCodeTemplate,
    CreditCard,
    DistributionLine,
    Receipt,
    TransactionKind,
)
from storage import TransactionStore


COMPANY = "co-1"
CARD = "card-1"

# Transactions that pass every posting precondition in the seeded register
ELIGIBLE_IDS = ["tx-job", "tx-attached", "tx-account"]


@pytest.fixture
def temp_db():
    """Path to a fresh temporary SQLite database."""
    with tempfile.NamedTemporaryFile(suffix='.db', delete=False) as f:
        db_path = f.name

    yield db_path

    # Cleanup - try to delete, ignore errors on Windows
    try:
        os.unlink(db_path)
    except PermissionError:
        pass


def seed_register(store: TransactionStore) -> None:
    """One card with coded, uncoded, posted, payment and split transactions."""
    store.add_card(CreditCard(
        id=CARD, company_id=COMPANY, card_name="Visa 4411",
        liability_account_id="acct-liab", credit_limit=Decimal("5000"),
    ))
    store.add_card(CreditCard(id="card-nolia", company_id=COMPANY, card_name="Amex 9001"))

    store.add_account(ChartAccount(
        id="acct-liab", company_id=COMPANY, account_number="2100",
        account_name="Credit Card Payable", account_type="liability",
    ))
    store.add_account(ChartAccount(
        id="acct-exp", company_id=COMPANY, account_number="6000",
        account_name="Job Expense", account_type="expense", require_attachment=False,
    ))
    store.add_account(ChartAccount(
        id="acct-meals", company_id=COMPANY, account_number="6100",
        account_name="Meals", account_type="expense",
    ))

    store.add_cost_code(CostCodeTemplate(
        id="cc-labor", company_id=COMPANY, code="01100", type_tag="labor",
        require_attachment=False, chart_account_id="acct-exp",
    ))
    store.add_cost_code(CostCodeTemplate(
        id="cc-material", company_id=COMPANY, code="02200", type_tag="material",
        require_attachment=True, chart_account_id="acct-exp",
    ))
    store.add_cost_code(CostCodeTemplate(
        id="cc-job-labor", company_id=COMPANY, code="01-100", type_tag="labor", job_id="job-1",
    ))

    store.add_association(AccountAssociation(
        company_id=COMPANY, account_id="acct-exp",
        association_type=AssociationType.JOB_EXPENSE, job_id="job-1",
    ))

    def tx(id, day, amount, description, **fields):
        return store.add_transaction(CardTransaction(
            id=id,
            company_id=COMPANY,
            credit_card_id=fields.pop("credit_card_id", CARD),
            transaction_date=date(2025, 1, day),
            amount=Decimal(amount),
            description=description,
            merchant_name=fields.pop("merchant_name", description.upper()),
            **fields,
        ))

    # Coded: job + cost code whose company template is not-required
    tx("tx-job", 5, "100.00", "Home Depot", vendor_id="v-1", job_id="job-1", cost_code_id="cc-job-labor")
    # Coded: required cost code with an attachment
    tx("tx-attached", 6, "250.00", "Lowes", vendor_id="v-2", job_id="job-1",
       cost_code_id="cc-material", attachment_url="https://files.example.com/r/lowes.pdf")
    # Coded: chart account that does not require an attachment
    tx("tx-account", 7, "40.00", "Shell", vendor_id="v-3", chart_account_id="acct-exp")
    # Already posted
    tx("tx-posted", 8, "60.00", "Ace Hardware", vendor_id="v-4", chart_account_id="acct-exp",
       ledger_entry_id="je-old")
    # Not coded: no vendor
    tx("tx-uncoded", 9, "75.00", "Unknown Merchant")
    # Payment
    tx("tx-payment", 10, "-500.00", "Payment - Thank You", kind=TransactionKind.PAYMENT)
    # Coded split across two jobs
    tx("tx-split", 11, "300.00", "Ferguson", vendor_id="v-5")
    store.replace_distributions("tx-split", [
        DistributionLine(transaction_id="tx-split", job_id="job-1", cost_code_id="cc-job-labor", amount=Decimal("200.00")),
        DistributionLine(transaction_id="tx-split", job_id="job-2", cost_code_id="cc-labor", amount=Decimal("100.00")),
    ])
    # Coded, but its card has no liability account
    tx("tx-nolia", 12, "20.00", "Staples", vendor_id="v-6", chart_account_id="acct-exp",
       credit_card_id="card-nolia")

    store.add_receipt(Receipt(
        id="r-home-depot", company_id=COMPANY, vendor_name="Home Depot",
        amount=Decimal("100.00"), receipt_date=date(2025, 1, 7), vendor_id="v-1",
    ))
    store.add_receipt(Receipt(
        id="r-far", company_id=COMPANY, vendor_name="Home Depot",
        amount=Decimal("100.00"), receipt_date=date(2025, 1, 9),
    ))


@pytest.fixture
def seeded_store(temp_db):
    """TransactionStore over a temporary database holding the seeded register."""
    store = TransactionStore(temp_db)
    seed_register(store)
    return store

"""Credit-card register models.

Records shared by the coding, reconciliation and posting packages:
cards, card transactions, distribution lines, receipts, and the
company reference data (cost-code templates, chart accounts, account
associations) that coding decisions are made against.

Money is always ``Decimal``; amounts on transactions are signed.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, ConfigDict
from pydantic.functional_validators import BeforeValidator
from typing_extensions import Annotated


# =============================================================================
# Value Parsers
# =============================================================================

def _parse_decimal(value):
    """Parse decimal from strings with $ or commas, floats, ints."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    if isinstance(value, str):
        s = value.strip()
        if s == "":
            return None
        s = s.replace("$", "").replace(",", "")
        if s.startswith("(") and s.endswith(")"):
            s = "-" + s[1:-1]
        try:
            return Decimal(s)
        except InvalidOperation:
            raise ValueError(f"Cannot parse amount: {value}")
    return value


def _parse_date(value):
    """Parse ISO dates and datetimes into ``date``."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        s = value.strip()
        if s == "":
            return None
        for fmt in ("%Y-%m-%d", "%m/%d/%Y"):
            try:
                return datetime.strptime(s[:10] if fmt == "%Y-%m-%d" else s, fmt).date()
            except ValueError:
                continue
        raise ValueError(f"Cannot parse date: {s}")
    return value


def _parse_bool(value):
    """SQLite hands back 0/1 for booleans."""
    if isinstance(value, int) and not isinstance(value, bool):
        return bool(value)
    return value


Money = Annotated[Decimal, BeforeValidator(_parse_decimal)]
OptionalMoney = Annotated[Optional[Decimal], BeforeValidator(_parse_decimal)]
CalendarDate = Annotated[date, BeforeValidator(_parse_date)]
Flag = Annotated[bool, BeforeValidator(_parse_bool)]
OptionalFlag = Annotated[Optional[bool], BeforeValidator(_parse_bool)]


# =============================================================================
# Enums
# =============================================================================

class TransactionKind(str, Enum):
    """What kind of card activity a register row is."""
    CHARGE = "charge"
    PAYMENT = "payment"
    CREDIT = "credit"
    REFUND = "refund"


class CodingStatus(str, Enum):
    """Persisted coding status."""
    UNCODED = "uncoded"
    CODED = "coded"


class AssociationType(str, Enum):
    """How an expense account is attached to a job or cost code."""
    JOB_EXPENSE = "job_expense"
    COST_CODE = "cost_code"


# =============================================================================
# Cards and Transactions
# =============================================================================

class CreditCard(BaseModel):
    """A company credit card and the liability account it posts against."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    company_id: str
    card_name: str
    liability_account_id: Optional[str] = Field(default=None, description="Credit-card liability GL account")
    credit_limit: OptionalMoney = None


class CardTransaction(BaseModel):
    """One row of a credit-card register.

    Attributes:
        amount: Signed amount; payments and credits may be negative
        kind: Charge, payment, credit or refund
        vendor_id / job_id / cost_code_id / chart_account_id: Single-coding fields
        attachment_url: Receipt document, if one is attached
        bypass_attachment: Reviewer flag persisted with the coding
        match_confirmed: A human confirmed the suggested receipt match
        reconciled: Statement reconciliation flag
        ledger_entry_id: Journal entry reference; set means posted
        requested_coder_id: User asked to code this transaction
        coding_status: Persisted status, recomputed whenever coding is saved
    """
    model_config = ConfigDict(from_attributes=True)

    id: str
    company_id: str
    credit_card_id: str
    transaction_date: CalendarDate
    amount: Money
    description: Optional[str] = None
    merchant_name: Optional[str] = None
    kind: TransactionKind = TransactionKind.CHARGE

    vendor_id: Optional[str] = None
    job_id: Optional[str] = None
    cost_code_id: Optional[str] = None
    chart_account_id: Optional[str] = None
    attachment_url: Optional[str] = None
    bypass_attachment: Flag = False

    match_confirmed: Flag = False
    reconciled: Flag = False
    ledger_entry_id: Optional[str] = None
    requested_coder_id: Optional[str] = None
    coding_status: Optional[CodingStatus] = None

    @property
    def is_posted(self) -> bool:
        return self.ledger_entry_id is not None

    @property
    def is_payment(self) -> bool:
        return self.kind == TransactionKind.PAYMENT

    @property
    def has_attachment(self) -> bool:
        return bool(self.attachment_url)

    @property
    def display_name(self) -> str:
        """Name used when reporting errors back to the user."""
        return self.description or self.merchant_name or "Transaction"


class DistributionLine(BaseModel):
    """One split of a transaction across a job and cost code."""
    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    transaction_id: str
    job_id: Optional[str] = None
    cost_code_id: Optional[str] = None
    amount: OptionalMoney = None
    percentage: OptionalMoney = None


class Receipt(BaseModel):
    """An uploaded receipt waiting to be matched to a card transaction."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    company_id: str
    vendor_name: Optional[str] = None
    amount: OptionalMoney = None
    receipt_date: Optional[CalendarDate] = None
    preview_url: Optional[str] = None
    vendor_id: Optional[str] = None
    job_id: Optional[str] = None


# =============================================================================
# Reference Data
# =============================================================================

class CostCodeTemplate(BaseModel):
    """A cost code, either company-level (job_id None) or job-specific.

    require_attachment is tri-state: True, False, or None for unspecified.
    """
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    company_id: str
    code: str
    job_id: Optional[str] = None
    type_tag: Optional[str] = None
    description: Optional[str] = None
    require_attachment: OptionalFlag = None
    chart_account_id: Optional[str] = None


class ChartAccount(BaseModel):
    """A general-ledger account."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    company_id: str
    account_number: str
    account_name: str
    account_type: Optional[str] = None
    require_attachment: OptionalFlag = None


class AccountAssociation(BaseModel):
    """Links a job or cost code to the expense account it posts to."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    company_id: str
    account_id: str
    association_type: AssociationType
    job_id: Optional[str] = None
    cost_code_id: Optional[str] = None

"""
Coding Engine Models

Defines data structures for:
- Coding assessments (is a transaction fully coded, and if not, why)
- Coding updates applied by the coding service
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import List, Optional

# Money comparisons tolerate less than one cent of drift
AMOUNT_EPSILON = Decimal("0.01")


class CodingPath(str, Enum):
    """Which coding shape a transaction was assessed under"""
    DISTRIBUTED = "distributed"  # Split across distribution lines
    SINGLE = "single"            # One job/cost code or one chart account
    PAYMENT = "payment"          # Payment with nothing to code


class MissingField(str, Enum):
    """Reasons a transaction is not fully coded"""
    VENDOR = "vendor"
    JOB_OR_ACCOUNT = "job_or_account"
    COST_CODE = "cost_code"
    ATTACHMENT = "attachment"
    DISTRIBUTION_LINE = "distribution_line"
    DISTRIBUTION_TOTAL = "distribution_total"
    MALFORMED = "malformed"


@dataclass
class CodingAssessment:
    """
    Result of structurally assessing a transaction's coding.

    Attributes:
        is_coded: Whether every required field is present
        path: Distributed, single, or payment
        missing: Why the transaction is not coded (empty when coded)
        requires_attachment: Whether the resolved references demand a receipt
        distribution_total: Sum of distribution line amounts (distributed path)
    """
    is_coded: bool
    path: CodingPath
    missing: List[MissingField] = field(default_factory=list)
    requires_attachment: bool = False
    distribution_total: Optional[Decimal] = None

    def to_dict(self) -> dict:
        return {
            "is_coded": self.is_coded,
            "path": self.path.value,
            "missing": [m.value for m in self.missing],
            "requires_attachment": self.requires_attachment,
            "distribution_total": str(self.distribution_total) if self.distribution_total is not None else None,
        }


@dataclass
class CodingUpdate:
    """
    Coding fields a user saves on a transaction.

    Only fields that are not None are written; use ``clear`` to null a
    field explicitly (e.g. switching from job coding to account coding).
    """
    vendor_id: Optional[str] = None
    job_id: Optional[str] = None
    cost_code_id: Optional[str] = None
    chart_account_id: Optional[str] = None
    bypass_attachment: Optional[bool] = None
    clear: List[str] = field(default_factory=list)

    def as_fields(self) -> dict:
        fields = {
            name: value
            for name, value in (
                ("vendor_id", self.vendor_id),
                ("job_id", self.job_id),
                ("cost_code_id", self.cost_code_id),
                ("chart_account_id", self.chart_account_id),
                ("bypass_attachment", self.bypass_attachment),
            )
            if value is not None
        }
        for name in self.clear:
            fields[name] = None
        return fields

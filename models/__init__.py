"""Models Package.

Data models for the card coding engine:
- Card register records (cards, transactions, distribution lines, receipts)
- Company reference data (cost-code templates, chart accounts, associations)
"""

from models.cards import (
    CreditCard,
    CardTransaction,
    DistributionLine,
    Receipt,
    CostCodeTemplate,
    ChartAccount,
    AccountAssociation,
    TransactionKind,
    CodingStatus,
    AssociationType,
)

__all__ = [
    "CreditCard",
    "CardTransaction",
    "DistributionLine",
    "Receipt",
    "CostCodeTemplate",
    "ChartAccount",
    "AccountAssociation",
    "TransactionKind",
    "CodingStatus",
    "AssociationType",
]

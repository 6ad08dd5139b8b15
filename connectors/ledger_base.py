"""Abstract Ledger Connector Interface.

This module defines the interface every general-ledger connector implements.
It is intentionally ledger-agnostic: posting code builds a normalized
journal entry payload and hands it to whichever connector is configured.

Connectors implement this interface to:
1. Connect to their ledger
2. Post a balanced journal entry, idempotently per key
3. Look up previously posted entries

Key Design Principles:
- Posting code depends ONLY on this interface
- All methods take and return NORMALIZED objects (JournalEntryPayload, PostedEntryRef)
- Ledger-specific implementations live in their own modules
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# =============================================================================
# Errors
# =============================================================================

class LedgerError(Exception):
    """Base exception for ledger connector errors."""
    def __init__(self, message: str, idempotency_key: Optional[str] = None):
        super().__init__(message)
        self.idempotency_key = idempotency_key


class LedgerValidationError(LedgerError):
    """The ledger rejected the entry (unbalanced, empty, unknown account)."""
    pass


class LedgerConnectionError(LedgerError):
    """The ledger could not be reached."""
    pass


# =============================================================================
# Enums
# =============================================================================

class LedgerConnectionStatus(str, Enum):
    """Connection status to the ledger."""
    CONNECTED = "CONNECTED"
    DISCONNECTED = "DISCONNECTED"
    FAILED = "FAILED"


class EntryStatus(str, Enum):
    """Status of a journal entry in the ledger."""
    POSTED = "posted"
    REVERSED = "reversed"


# =============================================================================
# Journal Entry Models (Normalized for ledger posting)
# =============================================================================

class JournalLinePayload(BaseModel):
    """A single debit or credit line."""
    account_id: str = Field(..., description="GL account to post to")
    debit_amount: Decimal = Field(default=Decimal("0"))
    credit_amount: Decimal = Field(default=Decimal("0"))
    description: Optional[str] = None
    job_id: Optional[str] = None
    cost_code_id: Optional[str] = None


class JournalEntryPayload(BaseModel):
    """Normalized journal entry for ledger posting.

    Contains everything needed to create the entry; no ledger-specific IDs.
    """
    company_id: str
    entry_date: date = Field(..., description="Posting date")
    description: str
    reference: Optional[str] = Field(default=None, description="External reference number")
    lines: List[JournalLinePayload] = Field(default_factory=list)

    # Source tracking
    source_system: str = Field(default="card_register")
    source_reference: Optional[str] = Field(default=None, description="Card transaction id")

    @property
    def total_debits(self) -> Decimal:
        return sum((line.debit_amount for line in self.lines), Decimal("0"))

    @property
    def total_credits(self) -> Decimal:
        return sum((line.credit_amount for line in self.lines), Decimal("0"))

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits


class PostedEntryRef(BaseModel):
    """Reference to a journal entry created in the ledger.

    Returned by post_journal_entry().
    """
    id: str = Field(..., description="Ledger internal entry ID")
    company_id: str
    entry_date: date
    total_amount: Decimal
    status: EntryStatus = Field(default=EntryStatus.POSTED)
    posted_at: datetime = Field(default_factory=datetime.utcnow)

    # For idempotency
    idempotency_key: Optional[str] = None
    replayed: bool = Field(default=False, description="True if an earlier entry was returned for the same key")

    metadata: Dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# Configuration
# =============================================================================

@dataclass
class LedgerConfig:
    """Configuration for a ledger connector.

    Generic configuration that can be extended by specific connectors.
    """
    connector_type: str                     # "sqlite", ...
    environment: str = "production"         # "production", "sandbox"
    company_id: Optional[str] = None

    # Connector-specific settings (e.g. db_path for sqlite)
    custom_settings: Dict[str, Any] = field(default_factory=dict)


# =============================================================================
# Abstract Connector Interface
# =============================================================================

class LedgerConnector(ABC):
    """Abstract base class for ledger connectors.

    Implementations:
    - connectors/sqlite_ledger.py
    """

    def __init__(self, config: LedgerConfig):
        """Initialize connector with configuration."""
        self.config = config
        self._connection_status = LedgerConnectionStatus.DISCONNECTED

    # =========================================================================
    # Connection Management
    # =========================================================================

    @abstractmethod
    async def connect(self) -> bool:
        """Establish connection to the ledger.

        Returns:
            True if connection successful
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Disconnect from the ledger."""
        pass

    @abstractmethod
    async def test_connection(self) -> bool:
        """Test if the connection is healthy."""
        pass

    @property
    def connection_status(self) -> LedgerConnectionStatus:
        return self._connection_status

    # =========================================================================
    # Posting
    # =========================================================================

    @abstractmethod
    async def post_journal_entry(
        self,
        payload: JournalEntryPayload,
        idempotency_key: str,
    ) -> PostedEntryRef:
        """Post a journal entry.

        Posting twice with the same idempotency key returns the first entry
        instead of creating a second one.

        Args:
            payload: Balanced journal entry
            idempotency_key: Caller-chosen key (the card transaction id)

        Returns:
            Reference to the posted entry

        Raises:
            LedgerValidationError: The entry was rejected
            LedgerConnectionError: The ledger could not be reached
        """
        pass

    @abstractmethod
    async def get_entry(self, entry_id: str) -> Optional[PostedEntryRef]:
        """Look up a posted entry, or None if not found."""
        pass

    # =========================================================================
    # Utilities
    # =========================================================================

    def get_connector_name(self) -> str:
        return self.config.connector_type

    def get_environment(self) -> str:
        return self.config.environment


# =============================================================================
# Connector Factory
# =============================================================================

_connector_registry: Dict[str, type] = {}


def register_connector(connector_type: str):
    """Decorator to register a connector implementation."""
    def decorator(cls):
        _connector_registry[connector_type] = cls
        return cls
    return decorator


def create_connector(config: LedgerConfig) -> LedgerConnector:
    """Create a connector instance from configuration.

    Args:
        config: LedgerConfig with connector_type specified

    Returns:
        Configured connector instance

    Raises:
        ValueError: If connector_type is not registered
    """
    connector_type = config.connector_type.lower()

    if connector_type not in _connector_registry:
        available = list(_connector_registry.keys())
        raise ValueError(
            f"Unknown connector type: {connector_type}. "
            f"Available: {available}"
        )

    connector_class = _connector_registry[connector_type]
    return connector_class(config)


def list_available_connectors() -> List[str]:
    """List all registered connector types."""
    return list(_connector_registry.keys())

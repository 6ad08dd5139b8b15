"""Ledger Connectors - Pluggable general-ledger integrations.

This package contains the abstract ledger interface and concrete
implementations. Posting code builds normalized journal entries; this
package handles:
- Connection management
- Entry validation and persistence
- Idempotent posting per key

Key Design Principle:
- Posting code depends ONLY on the LedgerConnector interface
- All methods take and return NORMALIZED types (JournalEntryPayload, PostedEntryRef)

To add a new ledger:
1. Create a new module (e.g., erp_ledger.py)
2. Implement LedgerConnector interface
3. Register using @register_connector decorator
"""

from connectors.ledger_base import (
    # Core interface
    LedgerConnector,
    LedgerConfig,
    LedgerConnectionStatus,
    EntryStatus,

    # Journal types
    JournalEntryPayload,
    JournalLinePayload,
    PostedEntryRef,

    # Errors
    LedgerError,
    LedgerValidationError,
    LedgerConnectionError,

    # Factory functions
    create_connector,
    register_connector,
    list_available_connectors,
)

# Register built-in connectors
from connectors.sqlite_ledger import SQLiteLedgerConnector, init_ledger_db

__all__ = [
    # Core interface
    "LedgerConnector",
    "LedgerConfig",
    "LedgerConnectionStatus",
    "EntryStatus",

    # Journal types
    "JournalEntryPayload",
    "JournalLinePayload",
    "PostedEntryRef",

    # Errors
    "LedgerError",
    "LedgerValidationError",
    "LedgerConnectionError",

    # Factory
    "create_connector",
    "register_connector",
    "list_available_connectors",

    # Implementations
    "SQLiteLedgerConnector",
    "init_ledger_db",
]

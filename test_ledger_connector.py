"""
Ledger Connector Tests

Validates the connector registry and the SQLite ledger:
1. Registry lookup by connector type
2. Entry validation
3. Idempotent posting per key
"""

import asyncio
import sqlite3
from datetime import date
from decimal import Decimal

import pytest

from connectors import (
    JournalEntryPayload,
    JournalLinePayload,
    LedgerConfig,
    LedgerConnectionStatus,
    LedgerValidationError,
    SQLiteLedgerConnector,
    create_connector,
    list_available_connectors,
)


def make_entry(amount="125.40", credit=None) -> JournalEntryPayload:
    return JournalEntryPayload(
        company_id="co-1",
        entry_date=date(2025, 5, 1),
        description="Credit Card: Visa 4411 - Home Depot",
        lines=[
            JournalLinePayload(account_id="acct-exp", debit_amount=Decimal(amount), job_id="job-1"),
            JournalLinePayload(account_id="acct-liab", credit_amount=Decimal(credit or amount)),
        ],
        source_reference="tx-1",
    )


class TestRegistry:
    """Connector factory."""

    def test_sqlite_registered(self):
        assert "sqlite" in list_available_connectors()

    def test_create_connector(self, temp_db):
        connector = create_connector(LedgerConfig(connector_type="SQLite", custom_settings={"db_path": temp_db}))
        assert isinstance(connector, SQLiteLedgerConnector)
        assert connector.get_connector_name() == "SQLite"

    def test_unknown_connector(self):
        with pytest.raises(ValueError, match="Unknown connector type"):
            create_connector(LedgerConfig(connector_type="nope"))


class TestSQLiteLedger:
    """Posting journal entries."""

    @pytest.fixture
    def ledger(self, temp_db):
        connector = SQLiteLedgerConnector(LedgerConfig(connector_type="sqlite", custom_settings={"db_path": temp_db}))
        asyncio.run(connector.connect())
        return connector

    def test_connect(self, ledger):
        assert ledger.connection_status == LedgerConnectionStatus.CONNECTED
        assert asyncio.run(ledger.test_connection()) is True

    def test_post_and_get(self, ledger, temp_db):
        ref = asyncio.run(ledger.post_journal_entry(make_entry(), "tx-1:abc"))

        assert ref.total_amount == Decimal("125.40")
        assert ref.replayed is False
        fetched = asyncio.run(ledger.get_entry(ref.id))
        assert fetched.id == ref.id
        assert fetched.entry_date == date(2025, 5, 1)

        conn = sqlite3.connect(temp_db)
        lines = conn.execute(
            "SELECT account_id FROM journal_entry_lines WHERE journal_entry_id = ? ORDER BY id",
            (ref.id,),
        ).fetchall()
        conn.close()
        assert [l[0] for l in lines] == ["acct-exp", "acct-liab"]

    def test_same_key_replays(self, ledger, temp_db):
        first = asyncio.run(ledger.post_journal_entry(make_entry(), "tx-1:abc"))
        second = asyncio.run(ledger.post_journal_entry(make_entry(), "tx-1:abc"))

        assert second.id == first.id
        assert second.replayed is True
        conn = sqlite3.connect(temp_db)
        count = conn.execute("SELECT COUNT(*) FROM journal_entries").fetchone()[0]
        conn.close()
        assert count == 1

    def test_concurrent_same_key_single_entry(self, ledger):
        async def post_twice():
            return await asyncio.gather(
                ledger.post_journal_entry(make_entry(), "tx-1:abc"),
                ledger.post_journal_entry(make_entry(), "tx-1:abc"),
            )

        first, second = asyncio.run(post_twice())
        assert first.id == second.id

    def test_unbalanced_rejected(self, ledger):
        with pytest.raises(LedgerValidationError, match="unbalanced"):
            asyncio.run(ledger.post_journal_entry(make_entry(credit="125.00"), "k"))

    def test_zero_entry_rejected(self, ledger):
        with pytest.raises(LedgerValidationError):
            asyncio.run(ledger.post_journal_entry(make_entry(amount="0"), "k"))

    def test_missing_entry(self, ledger):
        assert asyncio.run(ledger.get_entry("nope")) is None

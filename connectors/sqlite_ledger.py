"""SQLite Ledger Connector.

Posts journal entries into ``journal_entries`` / ``journal_entry_lines``
tables in a local SQLite database (by default the card engine database).

Entries are keyed by idempotency key: a second post with the same key
returns the entry created by the first one.
"""

import asyncio
import sqlite3
import uuid
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Optional

from core.config import DEFAULT_DB_PATH
from core.observability.logging import get_logger
from connectors.ledger_base import (
    EntryStatus,
    JournalEntryPayload,
    LedgerConfig,
    LedgerConnectionError,
    LedgerConnectionStatus,
    LedgerConnector,
    LedgerValidationError,
    PostedEntryRef,
    register_connector,
)

logger = get_logger(__name__)


def init_ledger_db(db_path: Path = DEFAULT_DB_PATH) -> None:
    """Create the journal tables if they do not exist."""
    conn = sqlite3.connect(str(db_path))
    try:
        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS journal_entries (
                id TEXT PRIMARY KEY,
                company_id TEXT NOT NULL,
                entry_date TEXT NOT NULL,
                description TEXT,
                reference TEXT,
                source_system TEXT,
                source_reference TEXT,
                total_amount TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'posted',
                idempotency_key TEXT UNIQUE,
                posted_at TEXT NOT NULL
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS journal_entry_lines (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                journal_entry_id TEXT NOT NULL,
                account_id TEXT NOT NULL,
                debit_amount TEXT NOT NULL,
                credit_amount TEXT NOT NULL,
                description TEXT,
                job_id TEXT,
                cost_code_id TEXT
            )
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_journal_entry_lines_entry
            ON journal_entry_lines(journal_entry_id)
        """)
        conn.commit()
    finally:
        conn.close()


def _row_to_ref(row: sqlite3.Row, replayed: bool = False) -> PostedEntryRef:
    return PostedEntryRef(
        id=row["id"],
        company_id=row["company_id"],
        entry_date=row["entry_date"],
        total_amount=Decimal(row["total_amount"]),
        status=EntryStatus(row["status"]),
        posted_at=datetime.fromisoformat(row["posted_at"]),
        idempotency_key=row["idempotency_key"],
        replayed=replayed,
    )


@register_connector("sqlite")
class SQLiteLedgerConnector(LedgerConnector):
    """Ledger connector writing journal entries to SQLite.

    Settings (LedgerConfig.custom_settings):
        db_path: Database file; defaults to the card engine database
    """

    def __init__(self, config: LedgerConfig):
        super().__init__(config)
        self.db_path = Path(config.custom_settings.get("db_path", DEFAULT_DB_PATH))

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        return conn

    # =========================================================================
    # Connection Management
    # =========================================================================

    async def connect(self) -> bool:
        try:
            await asyncio.to_thread(init_ledger_db, self.db_path)
        except sqlite3.Error as e:
            self._connection_status = LedgerConnectionStatus.FAILED
            raise LedgerConnectionError(f"Cannot open ledger database {self.db_path}: {e}") from e
        self._connection_status = LedgerConnectionStatus.CONNECTED
        return True

    async def disconnect(self) -> None:
        self._connection_status = LedgerConnectionStatus.DISCONNECTED

    async def test_connection(self) -> bool:
        def _probe() -> bool:
            conn = self._connect()
            try:
                conn.execute("SELECT 1 FROM journal_entries LIMIT 1")
                return True
            finally:
                conn.close()

        try:
            return await asyncio.to_thread(_probe)
        except sqlite3.Error:
            return False

    # =========================================================================
    # Posting
    # =========================================================================

    @staticmethod
    def validate(payload: JournalEntryPayload) -> None:
        """Reject entries the ledger would not accept.

        Raises:
            LedgerValidationError: Empty, non-positive or unbalanced entry
        """
        if not payload.lines:
            raise LedgerValidationError("Journal entry has no lines")
        for line in payload.lines:
            if line.debit_amount < 0 or line.credit_amount < 0:
                raise LedgerValidationError(f"Negative amount on account {line.account_id}")
        if payload.total_debits <= 0:
            raise LedgerValidationError("Journal entry total must be positive")
        if not payload.is_balanced:
            raise LedgerValidationError(
                f"Journal entry is unbalanced: debits {payload.total_debits} "
                f"!= credits {payload.total_credits}"
            )

    def _find_by_key(self, conn: sqlite3.Connection, idempotency_key: str) -> Optional[sqlite3.Row]:
        return conn.execute(
            "SELECT * FROM journal_entries WHERE idempotency_key = ?",
            (idempotency_key,),
        ).fetchone()

    def _post_sync(self, payload: JournalEntryPayload, idempotency_key: str) -> PostedEntryRef:
        conn = self._connect()
        try:
            existing = self._find_by_key(conn, idempotency_key)
            if existing is not None:
                return _row_to_ref(existing, replayed=True)

            entry_id = str(uuid.uuid4())
            posted_at = datetime.utcnow().isoformat()
            try:
                conn.execute(
                    """
                    INSERT INTO journal_entries
                    (id, company_id, entry_date, description, reference, source_system,
                     source_reference, total_amount, status, idempotency_key, posted_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        entry_id,
                        payload.company_id,
                        payload.entry_date.isoformat(),
                        payload.description,
                        payload.reference,
                        payload.source_system,
                        payload.source_reference,
                        str(payload.total_debits),
                        EntryStatus.POSTED.value,
                        idempotency_key,
                        posted_at,
                    ),
                )
            except sqlite3.IntegrityError:
                # Another writer posted the same key between our read and insert
                conn.rollback()
                existing = self._find_by_key(conn, idempotency_key)
                if existing is None:
                    raise
                return _row_to_ref(existing, replayed=True)

            conn.executemany(
                """
                INSERT INTO journal_entry_lines
                (journal_entry_id, account_id, debit_amount, credit_amount,
                 description, job_id, cost_code_id)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        entry_id,
                        line.account_id,
                        str(line.debit_amount),
                        str(line.credit_amount),
                        line.description,
                        line.job_id,
                        line.cost_code_id,
                    )
                    for line in payload.lines
                ],
            )
            conn.commit()

            row = conn.execute("SELECT * FROM journal_entries WHERE id = ?", (entry_id,)).fetchone()
            return _row_to_ref(row)
        finally:
            conn.close()

    async def post_journal_entry(
        self,
        payload: JournalEntryPayload,
        idempotency_key: str,
    ) -> PostedEntryRef:
        self.validate(payload)
        try:
            ref = await asyncio.to_thread(self._post_sync, payload, idempotency_key)
        except sqlite3.Error as e:
            raise LedgerConnectionError(f"Ledger write failed: {e}", idempotency_key) from e

        logger.info(
            "Journal entry replayed" if ref.replayed else "Journal entry posted",
            extra_fields={
                "entry_id": ref.id,
                "idempotency_key": idempotency_key,
                "total_amount": str(ref.total_amount),
            },
        )
        return ref

    async def get_entry(self, entry_id: str) -> Optional[PostedEntryRef]:
        def _get() -> Optional[PostedEntryRef]:
            conn = self._connect()
            try:
                row = conn.execute("SELECT * FROM journal_entries WHERE id = ?", (entry_id,)).fetchone()
                return _row_to_ref(row) if row else None
            finally:
                conn.close()

        try:
            return await asyncio.to_thread(_get)
        except sqlite3.Error as e:
            raise LedgerConnectionError(f"Ledger read failed: {e}") from e

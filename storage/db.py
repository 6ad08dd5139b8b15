"""Card Engine Database Schema.

This module creates the SQLite tables behind the card register:
- credit_cards: Cards and their liability accounts
- card_transactions: Register rows with coding, match and posting state
- transaction_distributions: Split coding lines per transaction
- cost_codes / chart_accounts / account_associations: Company reference data
- receipts: Uploaded receipts awaiting a match

Money is stored as TEXT so Decimal values round-trip exactly.
"""

import sqlite3
from pathlib import Path
from typing import Union

from core.config import DEFAULT_DB_PATH
from core.observability.logging import get_logger

logger = get_logger(__name__)

PathLike = Union[str, Path]


def get_connection(db_path: PathLike = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Get database connection with row factory."""
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_card_engine_db(db_path: PathLike = DEFAULT_DB_PATH) -> None:
    """Initialize the card engine tables.

    Safe to call repeatedly; every statement is IF NOT EXISTS.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS credit_cards (
                id TEXT PRIMARY KEY,
                company_id TEXT NOT NULL,
                card_name TEXT NOT NULL,
                liability_account_id TEXT,
                credit_limit TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS card_transactions (
                id TEXT PRIMARY KEY,
                company_id TEXT NOT NULL,
                credit_card_id TEXT NOT NULL,
                transaction_date TEXT NOT NULL,
                amount TEXT NOT NULL,
                description TEXT,
                merchant_name TEXT,
                kind TEXT NOT NULL DEFAULT 'charge',
                vendor_id TEXT,
                job_id TEXT,
                cost_code_id TEXT,
                chart_account_id TEXT,
                attachment_url TEXT,
                bypass_attachment INTEGER NOT NULL DEFAULT 0,
                match_confirmed INTEGER NOT NULL DEFAULT 0,
                reconciled INTEGER NOT NULL DEFAULT 0,
                ledger_entry_id TEXT,
                requested_coder_id TEXT,
                coding_status TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_card_transactions_card
            ON card_transactions(company_id, credit_card_id, transaction_date)
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_card_transactions_coder
            ON card_transactions(requested_coder_id)
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS transaction_distributions (
                id TEXT PRIMARY KEY,
                transaction_id TEXT NOT NULL
                    REFERENCES card_transactions(id) ON DELETE CASCADE,
                job_id TEXT,
                cost_code_id TEXT,
                amount TEXT,
                percentage TEXT,
                position INTEGER NOT NULL DEFAULT 0
            )
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_distributions_transaction
            ON transaction_distributions(transaction_id)
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS cost_codes (
                id TEXT PRIMARY KEY,
                company_id TEXT NOT NULL,
                code TEXT NOT NULL,
                job_id TEXT,
                type_tag TEXT,
                description TEXT,
                require_attachment INTEGER,
                chart_account_id TEXT,
                position INTEGER NOT NULL DEFAULT 0
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS chart_accounts (
                id TEXT PRIMARY KEY,
                company_id TEXT NOT NULL,
                account_number TEXT NOT NULL,
                account_name TEXT NOT NULL,
                account_type TEXT,
                require_attachment INTEGER
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS account_associations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                company_id TEXT NOT NULL,
                account_id TEXT NOT NULL,
                association_type TEXT NOT NULL,
                job_id TEXT,
                cost_code_id TEXT
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS receipts (
                id TEXT PRIMARY KEY,
                company_id TEXT NOT NULL,
                vendor_name TEXT,
                amount TEXT,
                receipt_date TEXT,
                preview_url TEXT,
                vendor_id TEXT,
                job_id TEXT,
                position INTEGER NOT NULL DEFAULT 0
            )
        """)

        conn.commit()
        logger.debug("Card engine tables initialized", extra_fields={"db_path": str(db_path)})
    finally:
        conn.close()

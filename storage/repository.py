"""Card Register Repository.

All reads and writes of the card register go through ``TransactionStore``:
- Snapshot loading for one card (register, distributions, reference data, receipts)
- Coding writes, locked once a transaction is posted
- The conditional "set ledger reference only if still unset" used by posting
- Reconciliation flags and bulk deletion
"""

import sqlite3
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from pydantic import ValidationError

from core.config import DEFAULT_DB_PATH
from core.observability.logging import get_logger
from models.cards import (
    AccountAssociation,
    CardTransaction,
    ChartAccount,
    CodingStatus,
    CostCodeTemplate,
    CreditCard,
    DistributionLine,
    Receipt,
)
from reference_resolver import ReferenceCatalog
from storage.db import PathLike, get_connection, init_card_engine_db
from storage.errors import (
    CardNotFoundError,
    PostedTransactionError,
    SnapshotLoadError,
    TransactionNotFoundError,
)

logger = get_logger(__name__)

# Coding fields a user may change on an unposted transaction
CODING_FIELDS = frozenset({
    "vendor_id",
    "job_id",
    "cost_code_id",
    "chart_account_id",
    "bypass_attachment",
    "attachment_url",
})

# Stay well under SQLite's bound-parameter limit
_IN_CHUNK = 500


def _money(value) -> Optional[str]:
    return None if value is None else str(value)


def _tri_state(value: Optional[bool]) -> Optional[int]:
    return None if value is None else int(value)


def _distribution_line(row: dict) -> DistributionLine:
    """
    Build a distribution line from a stored row.

    Legacy rows can hold money that does not parse. Those keep their ids
    with the unreadable values dropped, so the line reads as incomplete
    and its transaction classifies as uncoded instead of failing the load.
    """
    try:
        return DistributionLine.model_validate(row)
    except ValidationError as e:
        logger.warning(
            f"Unreadable distribution line {row.get('id')}: {e.error_count()} invalid field(s)",
            extra_fields={"transaction_id": row.get("transaction_id")},
        )
        return DistributionLine.model_validate({**row, "amount": None, "percentage": None})


def _chunks(items: Sequence[str]) -> Iterable[Sequence[str]]:
    for start in range(0, len(items), _IN_CHUNK):
        yield items[start:start + _IN_CHUNK]


@dataclass
class CardSnapshot:
    """Everything needed to render and classify one card register."""
    card: CreditCard
    transactions: List[CardTransaction]
    distributions: Dict[str, List[DistributionLine]]
    catalog: ReferenceCatalog
    receipts: List[Receipt] = field(default_factory=list)


@dataclass
class PostingState:
    """Transactions to post, with their cards, distributions and company catalogs."""
    transactions: Dict[str, CardTransaction]
    distributions: Dict[str, List[DistributionLine]]
    cards: Dict[str, Optional[CreditCard]]
    catalogs: Dict[str, ReferenceCatalog]


class TransactionStore:
    """
    SQLite-backed persistence for the card register.

    Usage:
        store = TransactionStore(db_path)
        snapshot = store.load_snapshot(company_id, card_id)
        store.update_coding(tx_id, {"vendor_id": "v-1"})
    """

    def __init__(self, db_path: PathLike = DEFAULT_DB_PATH, initialize: bool = True):
        self.db_path = Path(db_path)
        if initialize:
            init_card_engine_db(self.db_path)

    def _connect(self) -> sqlite3.Connection:
        return get_connection(self.db_path)

    # =========================================================================
    # Reads
    # =========================================================================

    def get_card(self, card_id: str) -> Optional[CreditCard]:
        conn = self._connect()
        try:
            row = conn.execute("SELECT * FROM credit_cards WHERE id = ?", (card_id,)).fetchone()
            return CreditCard.model_validate(dict(row)) if row else None
        finally:
            conn.close()

    def get_transaction(self, transaction_id: str) -> Optional[CardTransaction]:
        return self.get_transactions([transaction_id]).get(transaction_id)

    def get_transactions(self, transaction_ids: Sequence[str]) -> Dict[str, CardTransaction]:
        """Transactions by id; unknown ids are simply absent."""
        ids = list(dict.fromkeys(transaction_ids))
        result: Dict[str, CardTransaction] = {}
        if not ids:
            return result
        conn = self._connect()
        try:
            for chunk in _chunks(ids):
                placeholders = ",".join("?" for _ in chunk)
                rows = conn.execute(
                    f"SELECT * FROM card_transactions WHERE id IN ({placeholders})",
                    tuple(chunk),
                ).fetchall()
                for row in rows:
                    result[row["id"]] = CardTransaction.model_validate(dict(row))
            return result
        finally:
            conn.close()

    def list_transactions(self, company_id: str, card_id: str) -> List[CardTransaction]:
        """Register rows for one card, in insertion order."""
        conn = self._connect()
        try:
            rows = conn.execute(
                """
                SELECT * FROM card_transactions
                WHERE company_id = ? AND credit_card_id = ?
                ORDER BY rowid
                """,
                (company_id, card_id),
            ).fetchall()
            return [CardTransaction.model_validate(dict(r)) for r in rows]
        finally:
            conn.close()

    def get_distributions(self, transaction_ids: Sequence[str]) -> Dict[str, List[DistributionLine]]:
        """Distribution lines grouped by transaction, in saved order."""
        ids = list(dict.fromkeys(transaction_ids))
        result: Dict[str, List[DistributionLine]] = {}
        if not ids:
            return result
        conn = self._connect()
        try:
            for chunk in _chunks(ids):
                placeholders = ",".join("?" for _ in chunk)
                rows = conn.execute(
                    f"""
                    SELECT * FROM transaction_distributions
                    WHERE transaction_id IN ({placeholders})
                    ORDER BY transaction_id, position, rowid
                    """,
                    tuple(chunk),
                ).fetchall()
                for row in rows:
                    line = _distribution_line(dict(row))
                    result.setdefault(line.transaction_id, []).append(line)
            return result
        finally:
            conn.close()

    def load_catalog(self, company_id: str) -> ReferenceCatalog:
        """Cost codes, chart accounts and associations for a company."""
        conn = self._connect()
        try:
            cost_codes = [
                CostCodeTemplate.model_validate(dict(r))
                for r in conn.execute(
                    "SELECT * FROM cost_codes WHERE company_id = ? ORDER BY position, rowid",
                    (company_id,),
                ).fetchall()
            ]
            accounts = [
                ChartAccount.model_validate(dict(r))
                for r in conn.execute(
                    "SELECT * FROM chart_accounts WHERE company_id = ? ORDER BY rowid",
                    (company_id,),
                ).fetchall()
            ]
            associations = [
                AccountAssociation.model_validate(dict(r))
                for r in conn.execute(
                    "SELECT * FROM account_associations WHERE company_id = ? ORDER BY id",
                    (company_id,),
                ).fetchall()
            ]
            return ReferenceCatalog(company_id, cost_codes, accounts, associations)
        finally:
            conn.close()

    def list_receipts(self, company_id: str) -> List[Receipt]:
        conn = self._connect()
        try:
            rows = conn.execute(
                "SELECT * FROM receipts WHERE company_id = ? ORDER BY position, rowid",
                (company_id,),
            ).fetchall()
            return [Receipt.model_validate(dict(r)) for r in rows]
        finally:
            conn.close()

    def list_coding_requests(self, user_id: str, company_id: Optional[str] = None) -> List[CardTransaction]:
        """Unposted transactions a user has been asked to code and that are not yet coded."""
        query = """
            SELECT * FROM card_transactions
            WHERE requested_coder_id = ?
              AND ledger_entry_id IS NULL
              AND (coding_status IS NULL OR coding_status != ?)
        """
        params: list = [user_id, CodingStatus.CODED.value]
        if company_id:
            query += " AND company_id = ?"
            params.append(company_id)
        query += " ORDER BY transaction_date, rowid"
        conn = self._connect()
        try:
            return [CardTransaction.model_validate(dict(r)) for r in conn.execute(query, params).fetchall()]
        finally:
            conn.close()

    def load_snapshot(self, company_id: str, card_id: str) -> CardSnapshot:
        """
        Load one card register with everything needed to classify it.

        Raises:
            CardNotFoundError: If the card does not exist for the company
            SnapshotLoadError: If any read fails
        """
        try:
            card = self.get_card(card_id)
            if card is None or card.company_id != company_id:
                raise CardNotFoundError(card_id)
            transactions = self.list_transactions(company_id, card_id)
            distributions = self.get_distributions([t.id for t in transactions])
            catalog = self.load_catalog(company_id)
            receipts = self.list_receipts(company_id)
        except (sqlite3.Error, ValidationError) as e:
            logger.error(
                f"Snapshot load failed: {e}",
                extra_fields={"company_id": company_id, "card_id": card_id},
            )
            raise SnapshotLoadError(f"Could not load card {card_id}: {e}") from e

        return CardSnapshot(
            card=card,
            transactions=transactions,
            distributions=distributions,
            catalog=catalog,
            receipts=receipts,
        )

    def load_posting_state(self, transaction_ids: Sequence[str]) -> "PostingState":
        """
        Fresh state for re-validating and posting a set of transactions.

        Raises:
            SnapshotLoadError: If any read fails
        """
        try:
            transactions = self.get_transactions(transaction_ids)
            distributions = self.get_distributions(list(transactions))
            cards: Dict[str, Optional[CreditCard]] = {}
            catalogs: Dict[str, ReferenceCatalog] = {}
            for tx in transactions.values():
                if tx.credit_card_id not in cards:
                    cards[tx.credit_card_id] = self.get_card(tx.credit_card_id)
                if tx.company_id not in catalogs:
                    catalogs[tx.company_id] = self.load_catalog(tx.company_id)
        except (sqlite3.Error, ValidationError) as e:
            logger.error(f"Posting state load failed: {e}", extra_fields={"requested": len(transaction_ids)})
            raise SnapshotLoadError(f"Could not load transactions for posting: {e}") from e

        return PostingState(
            transactions=transactions,
            distributions=distributions,
            cards=cards,
            catalogs=catalogs,
        )

    # =========================================================================
    # Coding Writes
    # =========================================================================

    def _require_unposted(self, conn: sqlite3.Connection, transaction_id: str) -> None:
        row = conn.execute(
            "SELECT ledger_entry_id FROM card_transactions WHERE id = ?",
            (transaction_id,),
        ).fetchone()
        if row is None:
            raise TransactionNotFoundError(transaction_id)
        if row["ledger_entry_id"] is not None:
            raise PostedTransactionError(transaction_id)

    def update_coding(self, transaction_id: str, fields: Dict[str, object]) -> None:
        """
        Write coding fields on an unposted transaction.

        Raises:
            ValueError: If a field is not a coding field
            TransactionNotFoundError: If the transaction does not exist
            PostedTransactionError: If the transaction is already posted
        """
        unknown = set(fields) - CODING_FIELDS
        if unknown:
            raise ValueError(f"Not coding fields: {sorted(unknown)}")
        if not fields:
            return

        values = [int(v) if isinstance(v, bool) else v for v in fields.values()]
        assignments = ", ".join(f"{name} = ?" for name in fields)

        conn = self._connect()
        try:
            self._require_unposted(conn, transaction_id)
            cursor = conn.execute(
                f"""
                UPDATE card_transactions
                SET {assignments}, updated_at = CURRENT_TIMESTAMP
                WHERE id = ? AND ledger_entry_id IS NULL
                """,
                (*values, transaction_id),
            )
            if cursor.rowcount != 1:
                raise PostedTransactionError(transaction_id)
            conn.commit()
        finally:
            conn.close()

    def replace_distributions(self, transaction_id: str, lines: Sequence[DistributionLine]) -> List[DistributionLine]:
        """
        Replace a transaction's distribution lines wholesale.

        Lines are never patched individually; the old set is deleted and
        the new set inserted in one database transaction.
        """
        saved: List[DistributionLine] = []
        conn = self._connect()
        try:
            self._require_unposted(conn, transaction_id)
            conn.execute(
                "DELETE FROM transaction_distributions WHERE transaction_id = ?",
                (transaction_id,),
            )
            for position, line in enumerate(lines):
                line_id = line.id or str(uuid.uuid4())
                conn.execute(
                    """
                    INSERT INTO transaction_distributions
                    (id, transaction_id, job_id, cost_code_id, amount, percentage, position)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        line_id,
                        transaction_id,
                        line.job_id,
                        line.cost_code_id,
                        _money(line.amount),
                        _money(line.percentage),
                        position,
                    ),
                )
                saved.append(line.model_copy(update={"id": line_id, "transaction_id": transaction_id}))
            conn.commit()
            return saved
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def set_coding_status(self, transaction_id: str, status: CodingStatus) -> None:
        self._update_flag(transaction_id, "coding_status", status.value, only_unposted=True)

    def request_coding(self, transaction_id: str, user_id: Optional[str]) -> None:
        """Ask a user to code the transaction (None withdraws the request)."""
        self._update_flag(transaction_id, "requested_coder_id", user_id, only_unposted=True)

    def confirm_match(self, transaction_id: str) -> None:
        """Record that a human reviewed the suggested receipt matches."""
        self._update_flag(transaction_id, "match_confirmed", 1)

    def set_reconciled(self, transaction_id: str, reconciled: bool) -> None:
        self._update_flag(transaction_id, "reconciled", int(reconciled))

    def _update_flag(self, transaction_id: str, column: str, value, only_unposted: bool = False) -> None:
        conn = self._connect()
        try:
            if only_unposted:
                self._require_unposted(conn, transaction_id)
            cursor = conn.execute(
                f"UPDATE card_transactions SET {column} = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                (value, transaction_id),
            )
            if cursor.rowcount != 1:
                raise TransactionNotFoundError(transaction_id)
            conn.commit()
        finally:
            conn.close()

    # =========================================================================
    # Ledger Reference
    # =========================================================================

    def mark_posted(self, transaction_id: str, ledger_entry_id: str) -> bool:
        """
        Store the ledger reference only if none is stored yet.

        Returns:
            True if this call set the reference; False if another writer got
            there first (or the transaction no longer exists)
        """
        conn = self._connect()
        try:
            cursor = conn.execute(
                """
                UPDATE card_transactions
                SET ledger_entry_id = ?, updated_at = CURRENT_TIMESTAMP
                WHERE id = ? AND ledger_entry_id IS NULL
                """,
                (ledger_entry_id, transaction_id),
            )
            conn.commit()
            return cursor.rowcount == 1
        finally:
            conn.close()

    def clear_ledger_reference(self, transaction_id: str) -> None:
        """Unpost: forget the ledger reference so coding can change again."""
        self._update_flag(transaction_id, "ledger_entry_id", None)

    # =========================================================================
    # Bulk Operations and Seeding
    # =========================================================================

    def delete_transactions(self, transaction_ids: Sequence[str]) -> int:
        """Delete transactions and their distribution lines. Returns rows deleted."""
        ids = list(dict.fromkeys(transaction_ids))
        if not ids:
            return 0
        deleted = 0
        conn = self._connect()
        try:
            for chunk in _chunks(ids):
                placeholders = ",".join("?" for _ in chunk)
                conn.execute(
                    f"DELETE FROM transaction_distributions WHERE transaction_id IN ({placeholders})",
                    tuple(chunk),
                )
                cursor = conn.execute(
                    f"DELETE FROM card_transactions WHERE id IN ({placeholders})",
                    tuple(chunk),
                )
                deleted += cursor.rowcount
            conn.commit()
            logger.info(f"Deleted {deleted} card transactions", extra_fields={"requested": len(ids)})
            return deleted
        finally:
            conn.close()

    def add_card(self, card: CreditCard) -> CreditCard:
        conn = self._connect()
        try:
            conn.execute(
                """
                INSERT OR REPLACE INTO credit_cards
                (id, company_id, card_name, liability_account_id, credit_limit)
                VALUES (?, ?, ?, ?, ?)
                """,
                (card.id, card.company_id, card.card_name, card.liability_account_id, _money(card.credit_limit)),
            )
            conn.commit()
            return card
        finally:
            conn.close()

    def add_transaction(self, tx: CardTransaction) -> CardTransaction:
        conn = self._connect()
        try:
            conn.execute(
                """
                INSERT OR REPLACE INTO card_transactions
                (id, company_id, credit_card_id, transaction_date, amount, description,
                 merchant_name, kind, vendor_id, job_id, cost_code_id, chart_account_id,
                 attachment_url, bypass_attachment, match_confirmed, reconciled,
                 ledger_entry_id, requested_coder_id, coding_status)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    tx.id,
                    tx.company_id,
                    tx.credit_card_id,
                    tx.transaction_date.isoformat(),
                    _money(tx.amount),
                    tx.description,
                    tx.merchant_name,
                    tx.kind.value,
                    tx.vendor_id,
                    tx.job_id,
                    tx.cost_code_id,
                    tx.chart_account_id,
                    tx.attachment_url,
                    int(tx.bypass_attachment),
                    int(tx.match_confirmed),
                    int(tx.reconciled),
                    tx.ledger_entry_id,
                    tx.requested_coder_id,
                    tx.coding_status.value if tx.coding_status else None,
                ),
            )
            conn.commit()
            return tx
        finally:
            conn.close()

    def add_cost_code(self, template: CostCodeTemplate) -> CostCodeTemplate:
        conn = self._connect()
        try:
            position = conn.execute("SELECT COUNT(*) FROM cost_codes").fetchone()[0]
            conn.execute(
                """
                INSERT OR REPLACE INTO cost_codes
                (id, company_id, code, job_id, type_tag, description,
                 require_attachment, chart_account_id, position)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    template.id,
                    template.company_id,
                    template.code,
                    template.job_id,
                    template.type_tag,
                    template.description,
                    _tri_state(template.require_attachment),
                    template.chart_account_id,
                    position,
                ),
            )
            conn.commit()
            return template
        finally:
            conn.close()

    def add_account(self, account: ChartAccount) -> ChartAccount:
        conn = self._connect()
        try:
            conn.execute(
                """
                INSERT OR REPLACE INTO chart_accounts
                (id, company_id, account_number, account_name, account_type, require_attachment)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    account.id,
                    account.company_id,
                    account.account_number,
                    account.account_name,
                    account.account_type,
                    _tri_state(account.require_attachment),
                ),
            )
            conn.commit()
            return account
        finally:
            conn.close()

    def add_association(self, association: AccountAssociation) -> AccountAssociation:
        conn = self._connect()
        try:
            conn.execute(
                """
                INSERT INTO account_associations
                (company_id, account_id, association_type, job_id, cost_code_id)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    association.company_id,
                    association.account_id,
                    association.association_type.value,
                    association.job_id,
                    association.cost_code_id,
                ),
            )
            conn.commit()
            return association
        finally:
            conn.close()

    def add_receipt(self, receipt: Receipt) -> Receipt:
        conn = self._connect()
        try:
            position = conn.execute("SELECT COUNT(*) FROM receipts").fetchone()[0]
            conn.execute(
                """
                INSERT OR REPLACE INTO receipts
                (id, company_id, vendor_name, amount, receipt_date, preview_url,
                 vendor_id, job_id, position)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    receipt.id,
                    receipt.company_id,
                    receipt.vendor_name,
                    _money(receipt.amount),
                    receipt.receipt_date.isoformat() if receipt.receipt_date else None,
                    receipt.preview_url,
                    receipt.vendor_id,
                    receipt.job_id,
                    position,
                ),
            )
            conn.commit()
            return receipt
        finally:
            conn.close()

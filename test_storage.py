"""
Card Register Storage Tests

Validates TransactionStore against a temporary SQLite database:
1. Snapshot loading and its failure modes
2. Coding writes locked once posted
3. Distribution lines replaced wholesale
4. Conditional ledger reference update
5. Bulk deletion and coding requests
"""

import sqlite3
from decimal import Decimal

import pytest

from coding_engine import CodingClassifier
from conftest import CARD, COMPANY
from models.cards import CodingStatus, DistributionLine, TransactionKind
from reference_resolver import ReferenceResolver
from storage import (
    CardNotFoundError,
    PostedTransactionError,
    SnapshotLoadError,
    TransactionNotFoundError,
    TransactionStore,
)


class TestSnapshot:
    """Loading one card register."""

    def test_load_snapshot(self, seeded_store):
        snapshot = seeded_store.load_snapshot(COMPANY, CARD)

        assert snapshot.card.card_name == "Visa 4411"
        ids = [tx.id for tx in snapshot.transactions]
        assert ids[0] == "tx-job"
        assert "tx-nolia" not in ids  # other card
        assert len(snapshot.distributions["tx-split"]) == 2
        assert snapshot.catalog.cost_code("cc-material").require_attachment is True
        assert [r.id for r in snapshot.receipts] == ["r-home-depot", "r-far"]

    def test_types_round_trip(self, seeded_store):
        tx = seeded_store.get_transaction("tx-payment")
        assert tx.amount == Decimal("-500.00")
        assert tx.kind == TransactionKind.PAYMENT
        assert tx.bypass_attachment is False

    def test_unknown_card(self, seeded_store):
        with pytest.raises(CardNotFoundError):
            seeded_store.load_snapshot(COMPANY, "card-missing")

    def test_card_of_other_company(self, seeded_store):
        with pytest.raises(CardNotFoundError):
            seeded_store.load_snapshot("co-other", CARD)

    def test_read_failure_raises_snapshot_error(self, seeded_store, temp_db):
        conn = sqlite3.connect(temp_db)
        conn.execute("DROP TABLE receipts")
        conn.commit()
        conn.close()

        with pytest.raises(SnapshotLoadError):
            seeded_store.load_snapshot(COMPANY, CARD)

    def test_unparseable_distribution_amount_reads_as_uncoded(self, seeded_store, temp_db):
        """A legacy split line with a non-numeric amount uncodes only its transaction."""
        conn = sqlite3.connect(temp_db)
        conn.execute(
            "UPDATE transaction_distributions SET amount = 'n/a' "
            "WHERE transaction_id = 'tx-split' AND cost_code_id = 'cc-labor'"
        )
        conn.commit()
        conn.close()

        snapshot = seeded_store.load_snapshot(COMPANY, CARD)

        lines = snapshot.distributions["tx-split"]
        assert len(lines) == 2
        assert [l.amount for l in lines] == [Decimal("200.00"), None]

        coded = CodingClassifier(ReferenceResolver(snapshot.catalog)).classify_all(
            snapshot.transactions, snapshot.distributions,
        )
        assert coded["tx-split"] is False
        assert coded["tx-job"] is True

    def test_unparseable_amount_does_not_fail_posting_state(self, seeded_store, temp_db):
        conn = sqlite3.connect(temp_db)
        conn.execute(
            "INSERT INTO transaction_distributions (id, transaction_id, job_id, cost_code_id, amount) "
            "VALUES ('d-bad', 'tx-job', 'job-1', 'cc-job-labor', 'n/a')"
        )
        conn.commit()
        conn.close()

        state = seeded_store.load_posting_state(["tx-job", "tx-account"])

        assert set(state.transactions) == {"tx-job", "tx-account"}
        assert [l.amount for l in state.distributions["tx-job"]] == [None]


class TestCodingWrites:
    """Coding fields and distribution lines."""

    def test_update_coding(self, seeded_store):
        seeded_store.update_coding("tx-uncoded", {"vendor_id": "v-9", "chart_account_id": "acct-exp"})
        tx = seeded_store.get_transaction("tx-uncoded")
        assert tx.vendor_id == "v-9"
        assert tx.chart_account_id == "acct-exp"

    def test_non_coding_field_rejected(self, seeded_store):
        with pytest.raises(ValueError):
            seeded_store.update_coding("tx-uncoded", {"ledger_entry_id": "je-1"})

    def test_posted_transaction_is_locked(self, seeded_store):
        with pytest.raises(PostedTransactionError):
            seeded_store.update_coding("tx-posted", {"vendor_id": "v-9"})
        with pytest.raises(PostedTransactionError):
            seeded_store.replace_distributions("tx-posted", [])

    def test_unknown_transaction(self, seeded_store):
        with pytest.raises(TransactionNotFoundError):
            seeded_store.update_coding("tx-missing", {"vendor_id": "v-9"})

    def test_replace_distributions_wholesale(self, seeded_store):
        saved = seeded_store.replace_distributions("tx-split", [
            DistributionLine(transaction_id="tx-split", job_id="job-3", cost_code_id="cc-labor", amount=Decimal("300")),
        ])
        assert len(saved) == 1 and saved[0].id

        lines = seeded_store.get_distributions(["tx-split"])["tx-split"]
        assert [(l.job_id, l.amount) for l in lines] == [("job-3", Decimal("300"))]

    def test_empty_distributions_remove_split(self, seeded_store):
        seeded_store.replace_distributions("tx-split", [])
        assert seeded_store.get_distributions(["tx-split"]) == {}

    def test_coding_status(self, seeded_store):
        seeded_store.set_coding_status("tx-uncoded", CodingStatus.CODED)
        assert seeded_store.get_transaction("tx-uncoded").coding_status == CodingStatus.CODED


class TestLedgerReference:
    """Posting state."""

    def test_mark_posted_only_once(self, seeded_store):
        assert seeded_store.mark_posted("tx-job", "je-1") is True
        assert seeded_store.mark_posted("tx-job", "je-2") is False
        assert seeded_store.get_transaction("tx-job").ledger_entry_id == "je-1"

    def test_mark_posted_unknown(self, seeded_store):
        assert seeded_store.mark_posted("tx-missing", "je-1") is False

    def test_clear_reference_unlocks_coding(self, seeded_store):
        seeded_store.clear_ledger_reference("tx-posted")
        seeded_store.update_coding("tx-posted", {"vendor_id": "v-9"})
        assert seeded_store.get_transaction("tx-posted").is_posted is False

    def test_reconciled_flag(self, seeded_store):
        seeded_store.set_reconciled("tx-payment", True)
        assert seeded_store.get_transaction("tx-payment").reconciled is True


class TestBulkAndRequests:
    """Bulk deletion and coding requests."""

    def test_delete_transactions(self, seeded_store, temp_db):
        deleted = seeded_store.delete_transactions(["tx-split", "tx-job", "tx-missing"])
        assert deleted == 2
        assert seeded_store.get_transactions(["tx-split", "tx-job"]) == {}

        conn = sqlite3.connect(temp_db)
        remaining = conn.execute(
            "SELECT COUNT(*) FROM transaction_distributions WHERE transaction_id = 'tx-split'"
        ).fetchone()[0]
        conn.close()
        assert remaining == 0

    def test_coding_requests(self, seeded_store):
        seeded_store.request_coding("tx-uncoded", "user-7")
        seeded_store.request_coding("tx-job", "user-7")
        seeded_store.set_coding_status("tx-job", CodingStatus.CODED)

        pending = seeded_store.list_coding_requests("user-7", COMPANY)
        assert [tx.id for tx in pending] == ["tx-uncoded"]

    def test_store_is_idempotent_to_initialize(self, temp_db):
        TransactionStore(temp_db)
        TransactionStore(temp_db)

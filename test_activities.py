"""
Posting Activity and Workflow Tests

Runs the post_card_transaction activity in Temporal's ActivityEnvironment
against a temporary database, and checks the workflow wiring without a
Temporal server.
"""

import asyncio

from temporalio.testing import ActivityEnvironment

from activities import PostTransactionInput, PostTransactionOutput, post_card_transaction
from conftest import COMPANY
from posting import PostOutcome, PostStatus
from storage import TransactionStore
from workflows import TASK_QUEUE, PostBatchInput, PostBatchWorkflow


def run_activity(temp_db, transaction_id, company_id=COMPANY) -> PostTransactionOutput:
    env = ActivityEnvironment()
    return asyncio.run(env.run(
        post_card_transaction,
        PostTransactionInput(transaction_id=transaction_id, batch_id="batch-test",
                             company_id=company_id, db_path=temp_db),
    ))


class TestPostCardTransactionActivity:
    """Single-transaction posting activity."""

    def test_posts_coded_transaction(self, seeded_store, temp_db):
        output = run_activity(temp_db, "tx-account")

        assert output.status == "posted"
        assert output.ledger_entry_id
        assert TransactionStore(temp_db).get_transaction("tx-account").ledger_entry_id == output.ledger_entry_id

    def test_rechecks_preconditions(self, seeded_store, temp_db):
        """A transaction posted since selection comes back ineligible."""
        first = run_activity(temp_db, "tx-account")
        second = run_activity(temp_db, "tx-account")

        assert first.status == "posted"
        assert second.status == "ineligible"
        assert second.error == "Already posted to GL"

    def test_failure_is_returned_not_raised(self, seeded_store, temp_db):
        output = run_activity(temp_db, "tx-nolia")

        assert output.status == "failed"
        assert output.error == "Credit card has no liability account"
        assert output.label == "Staples"

    def test_other_company(self, seeded_store, temp_db):
        output = run_activity(temp_db, "tx-account", company_id="co-other")
        assert output.status == "ineligible"
        assert output.error == "Transaction not found"


class TestActivityOutput:
    """Activity output converts back to a PostOutcome."""

    def test_outcome_conversion(self):
        outcome = PostOutcome.err("tx-1", "Ledger error: down", "Lowes")
        output = PostTransactionOutput.from_outcome(outcome)

        assert output.status == "failed"
        assert output.to_outcome() == outcome
        assert output.to_outcome().status == PostStatus.FAILED


class TestWorkflowDefinition:
    """Workflow code structure (no Temporal server needed)."""

    def test_batch_input_defaults(self):
        params = PostBatchInput(transaction_ids=["tx-1"], company_id=COMPANY)
        assert params.timeout_seconds == 30
        assert params.batch_id is None

    def test_task_queue(self):
        assert TASK_QUEUE == "card-posting"

    def test_worker_registers_posting(self):
        from workers.worker import ACTIVITIES, WORKFLOWS

        assert PostBatchWorkflow in WORKFLOWS
        assert post_card_transaction in ACTIVITIES

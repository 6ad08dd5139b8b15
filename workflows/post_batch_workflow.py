"""Batch posting workflow.

Fans out one post_card_transaction activity per selected transaction and
folds the outcomes into a single batch result.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional

from temporalio import workflow
from temporalio.common import RetryPolicy
from temporalio.exceptions import ActivityError

with workflow.unsafe.imports_passed_through():
    from activities.posting import post_card_transaction, PostTransactionInput, PostTransactionOutput
    from posting.models import BatchPostResult, PostOutcome


TASK_QUEUE = "card-posting"
DEFAULT_POST_TIMEOUT_SECONDS = 30


@dataclass
class PostBatchInput:
    """Input for PostBatchWorkflow."""
    transaction_ids: List[str] = field(default_factory=list)
    company_id: Optional[str] = None
    batch_id: Optional[str] = None
    timeout_seconds: float = DEFAULT_POST_TIMEOUT_SECONDS
    db_path: Optional[str] = None


@workflow.defn
class PostBatchWorkflow:
    """Post a batch of card transactions to the ledger.

    Every transaction gets its own activity, so one failure or timeout
    never blocks the rest. Activities are not retried: a timed-out post
    may have reached the ledger, and a manual repost replays the same
    ledger entry instead of creating a second one.
    """

    @workflow.run
    async def run(self, input: PostBatchInput) -> dict:
        batch_id = input.batch_id or workflow.info().workflow_id
        ids = list(dict.fromkeys(input.transaction_ids))

        workflow.logger.info(f"Posting batch {batch_id}: {len(ids)} transaction(s)")

        outcomes = await asyncio.gather(*(self._post_one(tx_id, batch_id, input) for tx_id in ids))
        result = BatchPostResult.from_outcomes(ids, outcomes, batch_id=batch_id)

        workflow.logger.info(f"Batch {batch_id}: {result.summary()}")
        return result.to_dict()

    async def _post_one(self, transaction_id: str, batch_id: str, input: PostBatchInput) -> PostOutcome:
        try:
            output: PostTransactionOutput = await workflow.execute_activity(
                post_card_transaction,
                PostTransactionInput(
                    transaction_id=transaction_id,
                    batch_id=batch_id,
                    company_id=input.company_id,
                    db_path=input.db_path,
                ),
                start_to_close_timeout=timedelta(seconds=input.timeout_seconds),
                retry_policy=RetryPolicy(maximum_attempts=1),
            )
        except ActivityError as e:
            workflow.logger.warning(f"Posting activity failed for {transaction_id}: {e.cause or e}")
            return PostOutcome.err(transaction_id, f"Posting activity failed: {e.cause or e}")
        return output.to_outcome()

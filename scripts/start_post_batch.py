"""Start a PostBatchWorkflow on Temporal.

This script connects to Temporal, starts a PostBatchWorkflow for the given
transaction ids, waits for it and prints the batch result.

Usage:
    python scripts/start_post_batch.py tx-1 tx-2 tx-3
    python scripts/start_post_batch.py --coded-for-card card-1 --company co-1
"""

import argparse
import asyncio
import sys
import uuid
from pathlib import Path

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.config import get_settings
from core.observability.logging import configure_logging, get_logger
from models.cards import CodingStatus
from storage import TransactionStore
from temporal_client import get_temporal_client
from workflows.post_batch_workflow import PostBatchWorkflow, PostBatchInput


logger = get_logger(__name__)


def select_unposted(card_id: str, company_id: str) -> list:
    """Ids of coded, unposted transactions on a card."""
    store = TransactionStore(get_settings().db_path)
    snapshot = store.load_snapshot(company_id, card_id)
    return [
        tx.id for tx in snapshot.transactions
        if not tx.is_posted and tx.coding_status == CodingStatus.CODED
    ]


async def start_post_batch_workflow(transaction_ids: list, company_id: str = None) -> dict:
    """Start the batch posting workflow and return its result.

    Args:
        transaction_ids: Transactions selected for posting
        company_id: Company the batch belongs to (for correlation only)

    Returns:
        dict: BatchPostResult as a dict
    """
    settings = get_settings()
    batch_id = f"post-batch-{uuid.uuid4().hex[:8]}"

    try:
        client = await get_temporal_client()
        logger.info(f"Connected to Temporal: {client.namespace}")

        logger.info(f"Starting PostBatchWorkflow on task queue '{settings.task_queue}'...")
        handle = await client.start_workflow(
            PostBatchWorkflow.run,
            PostBatchInput(
                transaction_ids=transaction_ids,
                company_id=company_id,
                batch_id=batch_id,
                timeout_seconds=settings.post_timeout_seconds,
            ),
            task_queue=settings.task_queue,
            id=batch_id,
        )

        logger.info(f"Workflow started: {handle.id}")
        return await handle.result()

    except Exception as e:
        logger.error(f"Workflow failed: {e}", exc_info=True)
        raise


def main():
    """Entry point."""
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Post card transactions to the ledger")
    parser.add_argument("transaction_ids", nargs="*", help="Transaction ids to post")
    parser.add_argument("--coded-for-card", dest="card_id", help="Post every coded, unposted transaction on this card")
    parser.add_argument("--company", dest="company_id", help="Company id")
    args = parser.parse_args()

    configure_logging(level=settings.log_level, json_format=settings.log_json, force=True)

    transaction_ids = list(args.transaction_ids)
    if args.card_id:
        if not args.company_id:
            parser.error("--company is required with --coded-for-card")
        transaction_ids.extend(select_unposted(args.card_id, args.company_id))

    if not transaction_ids:
        parser.error("no transactions to post")

    try:
        result = asyncio.run(start_post_batch_workflow(transaction_ids, company_id=args.company_id))
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print("\n=== BATCH RESULT ===")
    print(f"  {result['summary']}")
    for message in result.get("messages", []):
        print(f"  - {message}")
    print("====================\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""Worker for card transaction posting.

Listens on the posting task queue and executes PostBatchWorkflow and the
post_card_transaction activity.

Run with --queue <name> to override the task queue.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from temporalio.worker import Worker

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.config import get_settings
from core.observability.logging import configure_logging, get_logger
from temporal_client import get_temporal_client
from workflows.post_batch_workflow import PostBatchWorkflow
from activities.posting import post_card_transaction


logger = get_logger(__name__)

WORKFLOWS = [PostBatchWorkflow]
ACTIVITIES = [post_card_transaction]


async def run_worker(queue: str = None):
    """Start worker listening on the posting task queue.

    Args:
        queue: Task queue to poll (defaults to TEMPORAL_TASK_QUEUE)

    Raises:
        Exception: If connection to Temporal fails
    """
    task_queue = queue or get_settings().task_queue
    client = await get_temporal_client()
    logger.info(f"Connected to Temporal: {client.namespace}")

    worker = Worker(
        client,
        task_queue=task_queue,
        workflows=WORKFLOWS,
        activities=ACTIVITIES,
    )

    logger.info(f"Worker created for queue '{task_queue}':")
    logger.info(f"  - Workflows: {len(WORKFLOWS)}")
    logger.info(f"  - Activities: {len(ACTIVITIES)}")

    try:
        logger.info("Worker running... (Ctrl+C to stop)")
        await worker.run()
    except KeyboardInterrupt:
        logger.info("Worker interrupted by user")
    except Exception as e:
        logger.error(f"Worker error: {e}", exc_info=True)
        raise


def main():
    """Entry point for worker with CLI args."""
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Card Posting Temporal Worker")
    parser.add_argument(
        "--queue", "-q",
        default=settings.task_queue,
        help=f"Task queue to poll (default: {settings.task_queue})"
    )
    args = parser.parse_args()

    configure_logging(level=settings.log_level, json_format=settings.log_json, force=True)
    asyncio.run(run_worker(queue=args.queue))


if __name__ == "__main__":
    main()

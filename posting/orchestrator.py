"""
Posting Orchestrator

Posts a batch of card transactions to the general ledger:
1. Reload every requested transaction and re-check it is unposted and coded
2. Build a journal entry per eligible transaction
3. Post each one independently, with a per-transaction timeout
4. Store the ledger reference only if none is stored yet
5. Fold every outcome into one BatchPostResult

A failure in one transaction never affects the others, and nothing is
retried automatically.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Union

from coding_engine import is_coded
from connectors import LedgerConfig, LedgerConnectionStatus, LedgerConnector, LedgerError, create_connector
from core.config import EngineSettings, get_settings
from core.observability.logging import get_logger, with_correlation
from core.observability.metrics import get_metrics
from models.cards import CardTransaction, CreditCard, DistributionLine
from reference_resolver import ReferenceCatalog, ReferenceResolver, TieBreakPolicy
from storage import PostingState, StoreError, TransactionStore

from posting.errors import ConcurrentPostError, PostingRejectedError
from posting.journal import build_journal_entry, idempotency_key_for
from posting.models import BatchPostResult, PostOutcome

logger = get_logger(__name__)


@dataclass
class PostingUnit:
    """One eligible transaction with everything needed to post it."""
    transaction: CardTransaction
    card: Optional[CreditCard]
    distributions: List[DistributionLine]
    catalog: ReferenceCatalog


class PostingOrchestrator:
    """
    Posts coded card transactions to the ledger.

    Usage:
        orchestrator = PostingOrchestrator(store, ledger)
        result = await orchestrator.post_batch(["tx-1", "tx-2"])
        print(result.summary())
    """

    def __init__(
        self,
        store: TransactionStore,
        ledger: LedgerConnector,
        timeout_seconds: Optional[float] = None,
        max_concurrency: Optional[int] = None,
        policy: TieBreakPolicy = TieBreakPolicy.TYPE_THEN_FIRST,
        settings: Optional[EngineSettings] = None,
    ):
        """
        Args:
            store: Card register persistence
            ledger: Ledger connector entries are posted to
            timeout_seconds: Per-transaction timeout (defaults to settings)
            max_concurrency: Transactions in flight at once (defaults to settings)
            policy: Tie-break policy for attachment requirements
            settings: Engine settings (defaults to environment)
        """
        settings = settings or get_settings()
        self.store = store
        self.ledger = ledger
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.post_timeout_seconds
        self.max_concurrency = max_concurrency or settings.post_max_concurrency
        self.policy = policy

    # =========================================================================
    # Preconditions
    # =========================================================================

    def check_eligibility(
        self,
        transaction_id: str,
        state: PostingState,
        company_id: Optional[str] = None,
    ) -> Union[PostingUnit, PostOutcome]:
        """A posting unit, or an ineligible outcome saying why not.

        When company_id is given, transactions of other companies are
        reported as not found.
        """
        tx = state.transactions.get(transaction_id)
        if tx is None or (company_id is not None and tx.company_id != company_id):
            return PostOutcome.skip(transaction_id, "Transaction not found")

        label = tx.display_name
        if tx.is_posted:
            return PostOutcome.skip(tx.id, "Already posted to GL", label)

        catalog = state.catalogs.get(tx.company_id) or ReferenceCatalog(tx.company_id)
        distributions = state.distributions.get(tx.id, [])
        resolver = ReferenceResolver(catalog, self.policy)
        if not is_coded(tx, distributions, resolver):
            return PostOutcome.skip(tx.id, "Not fully coded", label)

        return PostingUnit(
            transaction=tx,
            card=state.cards.get(tx.credit_card_id),
            distributions=distributions,
            catalog=catalog,
        )

    async def _prepare(
        self,
        transaction_ids: Sequence[str],
        company_id: Optional[str] = None,
    ) -> Dict[str, Union[PostingUnit, PostOutcome]]:
        state = await asyncio.to_thread(self.store.load_posting_state, list(transaction_ids))
        return {tx_id: self.check_eligibility(tx_id, state, company_id) for tx_id in transaction_ids}

    async def _ensure_connected(self) -> None:
        if self.ledger.connection_status != LedgerConnectionStatus.CONNECTED:
            await self.ledger.connect()

    # =========================================================================
    # Posting
    # =========================================================================

    async def _post_unit(self, unit: PostingUnit) -> PostOutcome:
        tx = unit.transaction
        payload = build_journal_entry(tx, unit.card, unit.distributions, unit.catalog)
        ref = await self.ledger.post_journal_entry(payload, idempotency_key_for(tx.id, payload))

        stored = await asyncio.to_thread(self.store.mark_posted, tx.id, ref.id)
        if not stored:
            current = await asyncio.to_thread(self.store.get_transaction, tx.id)
            if current is None or current.ledger_entry_id != ref.id:
                raise ConcurrentPostError("Already posted by another process")

        return PostOutcome.ok(tx.id, ref.id, tx.display_name)

    async def _run_unit(self, unit: PostingUnit, semaphore: asyncio.Semaphore) -> PostOutcome:
        tx = unit.transaction
        label = tx.display_name
        metrics = get_metrics()

        async with semaphore:
            with with_correlation(transaction_id=tx.id, company_id=tx.company_id, card_id=tx.credit_card_id):
                start = time.time()
                reason = None
                try:
                    outcome = await asyncio.wait_for(self._post_unit(unit), timeout=self.timeout_seconds)
                except asyncio.TimeoutError:
                    reason = "timeout"
                    outcome = PostOutcome.err(tx.id, f"Timed out after {self.timeout_seconds:g}s", label)
                except PostingRejectedError as e:
                    reason = "rejected"
                    outcome = PostOutcome.err(tx.id, str(e), label)
                except ConcurrentPostError as e:
                    reason = "concurrent_post"
                    outcome = PostOutcome.err(tx.id, str(e), label)
                except LedgerError as e:
                    reason = type(e).__name__
                    outcome = PostOutcome.err(tx.id, f"Ledger error: {e}", label)
                except StoreError as e:
                    reason = type(e).__name__
                    outcome = PostOutcome.err(tx.id, f"Storage error: {e}", label)
                except Exception as e:
                    reason = type(e).__name__
                    logger.exception(f"Unexpected error posting transaction: {e}")
                    outcome = PostOutcome.err(tx.id, str(e) or type(e).__name__, label)

                duration_ms = (time.time() - start) * 1000
                if outcome.ledger_entry_id:
                    metrics.record_post_succeeded(duration_ms)
                    logger.info("Transaction posted", extra_fields={
                        "ledger_entry_id": outcome.ledger_entry_id,
                        "duration_ms": round(duration_ms, 1),
                    })
                else:
                    metrics.record_post_failed(reason or "unknown")
                    logger.warning(f"Posting failed: {outcome.error}")
                return outcome

    async def post_transaction(self, transaction_id: str, company_id: Optional[str] = None) -> PostOutcome:
        """Re-validate and post a single transaction."""
        prepared = await self._prepare([transaction_id], company_id)
        unit = prepared[transaction_id]
        if isinstance(unit, PostOutcome):
            get_metrics().record_post_ineligible()
            return unit
        await self._ensure_connected()
        return await self._run_unit(unit, asyncio.Semaphore(1))

    async def post_batch(
        self,
        transaction_ids: Sequence[str],
        batch_id: Optional[str] = None,
        company_id: Optional[str] = None,
    ) -> BatchPostResult:
        """
        Post a batch of transactions.

        Every distinct id comes back exactly once: posted, failed, or
        ineligible (never attempted).

        Args:
            transaction_ids: Transactions selected for posting
            batch_id: Correlation id; generated when omitted
            company_id: Restrict the batch to one company's transactions

        Returns:
            BatchPostResult in input order

        Raises:
            SnapshotLoadError: If the transactions could not be loaded
        """
        ids = list(dict.fromkeys(transaction_ids))
        batch_id = batch_id or f"batch-{uuid.uuid4().hex[:12]}"
        metrics = get_metrics()

        with with_correlation(batch_id=batch_id, company_id=company_id, stage="posting"):
            start = time.time()
            metrics.record_batch_started(len(ids))
            logger.info("Posting batch started", extra_fields={"requested": len(ids)})

            prepared = await self._prepare(ids, company_id)
            units = [u for u in prepared.values() if isinstance(u, PostingUnit)]
            outcomes: List[PostOutcome] = [u for u in prepared.values() if isinstance(u, PostOutcome)]
            for _ in outcomes:
                metrics.record_post_ineligible()

            if units:
                await self._ensure_connected()
                semaphore = asyncio.Semaphore(self.max_concurrency)
                outcomes.extend(await asyncio.gather(*(self._run_unit(u, semaphore) for u in units)))

            result = BatchPostResult.from_outcomes(ids, outcomes, batch_id=batch_id)
            duration_ms = (time.time() - start) * 1000
            metrics.record_batch_completed(duration_ms)
            logger.info("Posting batch finished", extra_fields={
                "posted": len(result.posted),
                "failed": len(result.errors),
                "ineligible": len(result.ineligible),
                "duration_ms": round(duration_ms, 1),
            })
            return result


def build_orchestrator(settings: Optional[EngineSettings] = None) -> PostingOrchestrator:
    """Orchestrator wired to the configured database and ledger connector."""
    settings = settings or get_settings()
    store = TransactionStore(settings.db_path)
    ledger = create_connector(LedgerConfig(
        connector_type=settings.ledger_connector,
        custom_settings={"db_path": settings.db_path},
    ))
    return PostingOrchestrator(store, ledger, settings=settings)

"""Transaction endpoints.

Receipt match suggestions, coding saves and "post to GL" for card
transactions.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from coding_engine import CodingService, CodingUpdate
from core.config import EngineSettings
from core.observability.logging import get_logger, with_correlation
from models.cards import CardTransaction, DistributionLine
from posting import PostingOrchestrator
from reconciliation import suggest_matches
from storage import (
    PostedTransactionError,
    SnapshotLoadError,
    TransactionNotFoundError,
    TransactionStore,
)

from api.dependencies import get_engine_settings, get_orchestrator, get_store


logger = get_logger(__name__)

router = APIRouter()


class MatchSuggestionResponse(BaseModel):
    """A candidate receipt for a transaction."""
    receipt_id: str
    vendor_name: Optional[str] = None
    amount: Optional[str] = None
    receipt_date: Optional[str] = None
    preview_url: Optional[str] = None
    score: int


class MatchListResponse(BaseModel):
    """Ranked receipt suggestions."""
    transaction_id: str
    items: List[MatchSuggestionResponse]


class DistributionLineRequest(BaseModel):
    """One split line in a coding save."""
    job_id: Optional[str] = None
    cost_code_id: Optional[str] = None
    amount: Optional[str] = None
    percentage: Optional[str] = None


class CodingRequest(BaseModel):
    """Coding fields saved on a transaction."""
    vendor_id: Optional[str] = None
    job_id: Optional[str] = None
    cost_code_id: Optional[str] = None
    chart_account_id: Optional[str] = None
    bypass_attachment: Optional[bool] = None
    clear: List[str] = Field(default_factory=list, description="Fields to set to null")
    distributions: Optional[List[DistributionLineRequest]] = Field(
        None,
        description="Replaces every distribution line when given; [] removes the split",
    )


class CodingResponse(BaseModel):
    """Coding status after a save."""
    transaction_id: str
    coding_status: str
    assessment: Dict[str, Any]


class PostRequest(BaseModel):
    """Transactions selected for posting."""
    company_id: str
    transaction_ids: List[str] = Field(..., min_length=1)


def _load_for_company(store: TransactionStore, transaction_id: str, company_id: str) -> CardTransaction:
    tx = store.get_transaction(transaction_id)
    if tx is None or tx.company_id != company_id:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return tx


@router.get("/{transaction_id}/matches", response_model=MatchListResponse)
async def get_transaction_matches(
    transaction_id: str,
    company_id: str = Query(..., description="Company owning the transaction"),
    store: TransactionStore = Depends(get_store),
) -> MatchListResponse:
    """Receipts matching a transaction, best first."""
    tx = _load_for_company(store, transaction_id, company_id)
    suggestions = suggest_matches(tx, store.list_receipts(company_id))
    return MatchListResponse(
        transaction_id=tx.id,
        items=[MatchSuggestionResponse(**s.to_dict()) for s in suggestions],
    )


@router.put("/{transaction_id}/coding", response_model=CodingResponse)
async def save_transaction_coding(
    transaction_id: str,
    request: CodingRequest,
    company_id: str = Query(..., description="Company owning the transaction"),
    store: TransactionStore = Depends(get_store),
) -> CodingResponse:
    """Save coding and return the recomputed coding status."""
    _load_for_company(store, transaction_id, company_id)
    service = CodingService(store)

    update = CodingUpdate(
        vendor_id=request.vendor_id,
        job_id=request.job_id,
        cost_code_id=request.cost_code_id,
        chart_account_id=request.chart_account_id,
        bypass_attachment=request.bypass_attachment,
        clear=request.clear,
    )

    try:
        distributions = None
        if request.distributions is not None:
            distributions = [
                DistributionLine(transaction_id=transaction_id, **line.model_dump())
                for line in request.distributions
            ]
        status = service.save_coding(transaction_id, update, distributions)
    except PostedTransactionError:
        raise HTTPException(status_code=409, detail="Transaction is already posted")
    except TransactionNotFoundError:
        raise HTTPException(status_code=404, detail="Transaction not found")
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return CodingResponse(
        transaction_id=transaction_id,
        coding_status=status.value,
        assessment=service.assess(transaction_id).to_dict(),
    )


@router.post("/post")
async def post_transactions(
    request: PostRequest,
    orchestrator: PostingOrchestrator = Depends(get_orchestrator),
    settings: EngineSettings = Depends(get_engine_settings),
) -> Dict[str, Any]:
    """Post selected transactions to the general ledger.

    Each transaction is posted independently. The response lists posted,
    failed and skipped transactions, plus display messages truncated to
    the configured limit.
    """
    with with_correlation(company_id=request.company_id):
        try:
            result = await orchestrator.post_batch(request.transaction_ids, company_id=request.company_id)
        except SnapshotLoadError as e:
            raise HTTPException(status_code=503, detail=str(e))
        logger.info(result.summary(), extra_fields={"batch_id": result.batch_id})

    return result.to_dict(error_limit=settings.error_display_limit)

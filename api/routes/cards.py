"""Card register endpoints.

Read-side views of one credit card: the transaction register with coding
and match indicators and running balances, and the card balance summary.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from coding_engine import CodingClassifier
from core.observability.logging import get_logger, with_correlation
from reconciliation import compute_running_balances, find_all_matches, summarize_card
from reference_resolver import ReferenceResolver
from storage import CardNotFoundError, CardSnapshot, SnapshotLoadError, TransactionStore

from api.dependencies import get_store


logger = get_logger(__name__)

router = APIRouter()


class RegisterRowResponse(BaseModel):
    """One row of the card register."""
    id: str
    transaction_date: Optional[str] = None
    description: Optional[str] = None
    merchant_name: Optional[str] = None
    amount: Optional[str] = None
    kind: str
    is_coded: bool
    is_posted: bool
    has_attachment: bool
    has_matches: bool
    match_count: int
    running_balance: Optional[str] = None
    ledger_entry_id: Optional[str] = None


class RegisterResponse(BaseModel):
    """Card register with per-row indicators."""
    card_id: str
    card_name: str
    items: List[RegisterRowResponse]
    total: int


class BalanceResponse(BaseModel):
    """Card balance summary."""
    card_id: str
    balance: str
    transaction_count: int
    credit_limit: Optional[str] = None
    available_credit: Optional[str] = None
    last_transaction_date: Optional[str] = None


def _load(store: TransactionStore, company_id: str, card_id: str) -> CardSnapshot:
    try:
        return store.load_snapshot(company_id, card_id)
    except CardNotFoundError:
        raise HTTPException(status_code=404, detail="Card not found")
    except SnapshotLoadError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.get("/{card_id}/transactions", response_model=RegisterResponse)
async def list_card_transactions(
    card_id: str,
    company_id: str = Query(..., description="Company owning the card"),
    store: TransactionStore = Depends(get_store),
) -> RegisterResponse:
    """Card register: coded flag, receipt matches and running balance per row."""
    with with_correlation(company_id=company_id, card_id=card_id):
        snapshot = _load(store, company_id, card_id)

        classifier = CodingClassifier(ReferenceResolver(snapshot.catalog))
        coded = classifier.classify_all(snapshot.transactions, snapshot.distributions)
        matches = find_all_matches(snapshot.transactions, snapshot.receipts)
        balances = compute_running_balances(snapshot.transactions)

        items = []
        for tx in snapshot.transactions:
            tx_matches = matches.get(tx.id, [])
            balance = balances.get(tx.id)
            items.append(RegisterRowResponse(
                id=tx.id,
                transaction_date=tx.transaction_date.isoformat() if tx.transaction_date else None,
                description=tx.description,
                merchant_name=tx.merchant_name,
                amount=str(tx.amount) if tx.amount is not None else None,
                kind=tx.kind.value,
                is_coded=coded[tx.id],
                is_posted=tx.is_posted,
                has_attachment=tx.has_attachment,
                has_matches=bool(tx_matches),
                match_count=len(tx_matches),
                running_balance=str(balance) if balance is not None else None,
                ledger_entry_id=tx.ledger_entry_id,
            ))

        logger.info("Register loaded", extra_fields={"rows": len(items)})
        return RegisterResponse(
            card_id=snapshot.card.id,
            card_name=snapshot.card.card_name,
            items=items,
            total=len(items),
        )


@router.get("/{card_id}/balance", response_model=BalanceResponse)
async def get_card_balance(
    card_id: str,
    company_id: str = Query(..., description="Company owning the card"),
    store: TransactionStore = Depends(get_store),
) -> BalanceResponse:
    """Current balance and available credit for a card."""
    with with_correlation(company_id=company_id, card_id=card_id):
        snapshot = _load(store, company_id, card_id)
        return BalanceResponse(**summarize_card(snapshot.card, snapshot.transactions).to_dict())

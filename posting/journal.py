"""Journal entry building for card transactions.

A coded card transaction becomes one journal entry:
- one debit per distribution line (or a single debit for single coding),
  to the resolved expense account, carrying job and cost code
- one credit for the total to the card's liability account

Expense account resolution, first hit wins:
1. The job's expense account association
2. An association record for the cost code
3. The cost code's own chart account
4. The transaction's chart account
"""

import hashlib
import json
from decimal import Decimal
from typing import List, Optional, Sequence

from connectors.ledger_base import JournalEntryPayload, JournalLinePayload
from models.cards import CardTransaction, CreditCard, DistributionLine
from reference_resolver import ReferenceCatalog

from posting.errors import PostingRejectedError

NO_JOB_ACCOUNT = (
    "Job has no expense GL account assigned. "
    "Please assign a GL account to this job in Account Association settings."
)
NO_COST_CODE_ACCOUNT = (
    'Cost code "{code}" has no GL account assigned. '
    "Please assign a GL account to this cost code in Cost Code settings."
)
NO_LINE_ACCOUNT = "No GL account for distribution line. Please assign a GL account."
NO_SELECTED_ACCOUNT = "No GL account selected. Please select a GL account or assign one to the job."


def resolve_expense_account(
    catalog: ReferenceCatalog,
    job_id: Optional[str],
    cost_code_id: Optional[str],
    fallback_account_id: Optional[str],
) -> Optional[str]:
    """Expense account for a job/cost code pair, or None if nothing resolves."""
    account_id = catalog.job_expense_account(job_id)
    if account_id:
        return account_id

    account_id = catalog.cost_code_association_account(cost_code_id)
    if account_id:
        return account_id

    cost_code = catalog.cost_code(cost_code_id)
    if cost_code is not None and cost_code.chart_account_id:
        return cost_code.chart_account_id

    return fallback_account_id or None


def _missing_account_reason(
    catalog: ReferenceCatalog,
    job_id: Optional[str],
    cost_code_id: Optional[str],
    otherwise: str,
) -> str:
    if job_id:
        return NO_JOB_ACCOUNT
    cost_code = catalog.cost_code(cost_code_id)
    if cost_code_id and (cost_code is None or not cost_code.chart_account_id):
        code = cost_code.code if cost_code is not None else "selected"
        return NO_COST_CODE_ACCOUNT.format(code=code)
    return otherwise


def build_expense_lines(
    tx: CardTransaction,
    distributions: Sequence[DistributionLine],
    catalog: ReferenceCatalog,
) -> List[JournalLinePayload]:
    """Debit lines for a transaction.

    Raises:
        PostingRejectedError: If a line has no resolvable expense account
    """
    label = tx.display_name
    lines: List[JournalLinePayload] = []

    if distributions:
        for dist in distributions:
            amount = abs(dist.amount) if dist.amount is not None else Decimal("0")
            if not amount:
                continue
            account_id = resolve_expense_account(catalog, dist.job_id, dist.cost_code_id, tx.chart_account_id)
            if not account_id:
                raise PostingRejectedError(
                    _missing_account_reason(catalog, dist.job_id, dist.cost_code_id, NO_LINE_ACCOUNT)
                )
            lines.append(JournalLinePayload(
                account_id=account_id,
                debit_amount=amount,
                description=label,
                job_id=dist.job_id,
                cost_code_id=dist.cost_code_id,
            ))
        return lines

    account_id = resolve_expense_account(catalog, tx.job_id, tx.cost_code_id, tx.chart_account_id)
    if not account_id:
        raise PostingRejectedError(
            _missing_account_reason(catalog, tx.job_id, tx.cost_code_id, NO_SELECTED_ACCOUNT)
        )
    lines.append(JournalLinePayload(
        account_id=account_id,
        debit_amount=abs(tx.amount),
        description=label,
        job_id=tx.job_id,
        cost_code_id=tx.cost_code_id,
    ))
    return lines


def build_journal_entry(
    tx: CardTransaction,
    card: Optional[CreditCard],
    distributions: Sequence[DistributionLine],
    catalog: ReferenceCatalog,
) -> JournalEntryPayload:
    """
    Turn a coded card transaction into a balanced journal entry.

    Raises:
        PostingRejectedError: Payments, cards without a liability account,
            unresolvable expense accounts, or nothing to post
    """
    if tx.is_payment:
        raise PostingRejectedError("Payments cannot be posted this way")
    if card is None or not card.liability_account_id:
        raise PostingRejectedError("Credit card has no liability account")

    expense_lines = build_expense_lines(tx, distributions, catalog)
    total = sum((line.debit_amount for line in expense_lines), Decimal("0"))
    if not expense_lines or total <= 0:
        raise PostingRejectedError("No expense lines to post")

    label = tx.display_name
    credit_line = JournalLinePayload(
        account_id=card.liability_account_id,
        credit_amount=total,
        description=f"{card.card_name} - {label}",
    )
    return JournalEntryPayload(
        company_id=tx.company_id,
        entry_date=tx.transaction_date,
        description=f"Credit Card: {card.card_name} - {label}",
        lines=[*expense_lines, credit_line],
        source_reference=tx.id,
    )


def idempotency_key_for(transaction_id: str, payload: JournalEntryPayload) -> str:
    """
    Ledger idempotency key for a transaction's entry.

    Two posts of the same transaction with the same entry content share a
    key, so the ledger returns the first entry instead of duplicating it.
    Re-coding after an unpost changes the content and therefore the key.
    """
    content = json.dumps(payload.model_dump(mode="json"), sort_keys=True)
    digest = hashlib.sha256(content.encode("utf-8")).hexdigest()[:16]
    return f"{transaction_id}:{digest}"

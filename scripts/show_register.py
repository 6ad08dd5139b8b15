"""Show a credit card register from the database.

Prints every transaction on a card with its coded flag, receipt matches,
posting state and running balance, followed by the card balance.

Usage:
    python scripts/show_register.py card-1 --company co-1
"""

import argparse
import sys
from pathlib import Path

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from coding_engine import CodingClassifier
from core.config import get_settings
from reconciliation import compute_running_balances, find_all_matches, summarize_card
from reference_resolver import ReferenceResolver
from storage import CardNotFoundError, SnapshotLoadError, TransactionStore


def show_register(company_id: str, card_id: str) -> int:
    """Print the register for one card."""
    db_path = get_settings().db_path
    if not Path(db_path).exists():
        print(f"Database not found: {db_path}")
        return 1

    store = TransactionStore(db_path)
    try:
        snapshot = store.load_snapshot(company_id, card_id)
    except CardNotFoundError:
        print(f"Card not found: {card_id}")
        return 1
    except SnapshotLoadError as e:
        print(f"Could not load register: {e}")
        return 1

    coded = CodingClassifier(ReferenceResolver(snapshot.catalog)).classify_all(
        snapshot.transactions, snapshot.distributions,
    )
    matches = find_all_matches(snapshot.transactions, snapshot.receipts)
    balances = compute_running_balances(snapshot.transactions)

    print(f"\n=== {snapshot.card.card_name} ===")
    print(f"{'Date':<12} {'Description':<28} {'Amount':>10} {'Coded':<6} {'Match':<6} {'Posted':<7} {'Balance':>10}")
    print("-" * 86)
    for tx in snapshot.transactions:
        print(
            f"{str(tx.transaction_date):<12} {(tx.display_name or '')[:28]:<28} "
            f"{str(tx.amount):>10} {'yes' if coded[tx.id] else 'no':<6} "
            f"{len(matches.get(tx.id, [])) or '':<6} {'yes' if tx.is_posted else '':<7} "
            f"{str(balances[tx.id]):>10}"
        )

    summary = summarize_card(snapshot.card, snapshot.transactions)
    print(f"\nTransactions: {summary.transaction_count}")
    print(f"Balance: {summary.balance}")
    if summary.available_credit is not None:
        print(f"Available credit: {summary.available_credit}")
    uncoded = sum(1 for tx in snapshot.transactions if not coded[tx.id] and not tx.is_posted)
    print(f"Uncoded and unposted: {uncoded}")
    print("=" * 86 + "\n")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Show a credit card register")
    parser.add_argument("card_id", help="Credit card id")
    parser.add_argument("--company", dest="company_id", required=True, help="Company id")
    args = parser.parse_args()
    return show_register(args.company_id, args.card_id)


if __name__ == "__main__":
    sys.exit(main())

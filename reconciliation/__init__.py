"""Reconciliation - receipt matching and running balances for card registers."""

from reconciliation.balance import (
    CardBalanceSummary,
    balance_delta,
    compute_running_balances,
    summarize_card,
)
from reconciliation.matcher import (
    MatchSuggestion,
    amounts_match,
    dates_match,
    find_all_matches,
    find_matches,
    score_match,
    suggest_matches,
    vendor_names_match,
)

__all__ = [
    # Balances
    "CardBalanceSummary",
    "balance_delta",
    "compute_running_balances",
    "summarize_card",
    # Matching
    "MatchSuggestion",
    "amounts_match",
    "dates_match",
    "find_all_matches",
    "find_matches",
    "score_match",
    "suggest_matches",
    "vendor_names_match",
]

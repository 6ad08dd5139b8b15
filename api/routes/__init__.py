"""API Routes Package."""

from api.routes import cards, health, transactions

__all__ = [
    "cards",
    "health",
    "transactions",
]

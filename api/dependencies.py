"""Request dependencies shared by the API routers."""

from core.config import EngineSettings, get_settings
from posting import PostingOrchestrator, build_orchestrator
from storage import TransactionStore


def get_engine_settings() -> EngineSettings:
    return get_settings()


def get_store() -> TransactionStore:
    """Card register store for the configured database."""
    return TransactionStore(get_settings().db_path)


def get_orchestrator() -> PostingOrchestrator:
    """Posting orchestrator wired to the configured ledger connector."""
    return build_orchestrator(get_settings())

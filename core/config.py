"""Engine configuration.

Settings are read from environment variables. A ``.env`` file at the
repository root is loaded first when present, the same way the Temporal
client factory does it.

Environment variables:
    CARD_ENGINE_DB_PATH: SQLite database holding cards, transactions and the ledger
    POST_TIMEOUT_SECONDS: Per-transaction posting timeout (default 30)
    POST_MAX_CONCURRENCY: Transactions posted at once within a batch (default 4)
    ERROR_DISPLAY_LIMIT: Error messages shown before "...and N more" (default 5)
    LEDGER_CONNECTOR: Registered ledger connector name (default "sqlite")
    LOG_LEVEL / LOG_JSON: Logging level and JSON output switch
    TEMPORAL_TASK_QUEUE: Task queue for posting workflows (default "card-posting")
"""

import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

ROOT_DIR = Path(__file__).resolve().parent.parent

env_path = ROOT_DIR / ".env"
if env_path.exists():
    load_dotenv(env_path)

DEFAULT_DB_PATH = ROOT_DIR / "card_engine.db"


class EngineSettings(BaseModel):
    """Runtime settings for the coding and posting engine."""
    db_path: Path = Field(default=DEFAULT_DB_PATH, description="SQLite database path")
    post_timeout_seconds: float = Field(default=30.0, gt=0, description="Per-transaction posting timeout")
    post_max_concurrency: int = Field(default=4, ge=1, description="Concurrent posts per batch")
    error_display_limit: int = Field(default=5, ge=1, description="Errors shown before truncation")
    ledger_connector: str = Field(default="sqlite", description="Ledger connector registry name")
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False)
    task_queue: str = Field(default="card-posting", description="Temporal task queue")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_settings() -> EngineSettings:
    """Build settings from the current environment.

    Raises:
        ValueError: If a numeric variable cannot be parsed
    """
    return EngineSettings(
        db_path=Path(os.getenv("CARD_ENGINE_DB_PATH", str(DEFAULT_DB_PATH))),
        post_timeout_seconds=float(os.getenv("POST_TIMEOUT_SECONDS", "30")),
        post_max_concurrency=int(os.getenv("POST_MAX_CONCURRENCY", "4")),
        error_display_limit=int(os.getenv("ERROR_DISPLAY_LIMIT", "5")),
        ledger_connector=os.getenv("LEDGER_CONNECTOR", "sqlite"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        log_json=_env_bool("LOG_JSON", False),
        task_queue=os.getenv("TEMPORAL_TASK_QUEUE", "card-posting"),
    )


@lru_cache(maxsize=1)
def get_settings() -> EngineSettings:
    """Process-wide settings, loaded once."""
    return load_settings()

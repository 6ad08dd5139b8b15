"""Health check endpoints."""

import sqlite3
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from core import __version__
from core.config import EngineSettings
from core.observability.metrics import get_metrics
from storage import get_connection

from api.dependencies import get_engine_settings


router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: str
    version: str
    services: Dict[str, str]


def _storage_status(settings: EngineSettings) -> str:
    try:
        conn = get_connection(settings.db_path)
        try:
            conn.execute("SELECT 1").fetchone()
        finally:
            conn.close()
    except sqlite3.Error:
        return "down"
    return "up"


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: EngineSettings = Depends(get_engine_settings)) -> HealthResponse:
    """Health check endpoint."""
    storage = _storage_status(settings)
    return HealthResponse(
        status="healthy" if storage == "up" else "degraded",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=__version__,
        services={
            "api": "up",
            "storage": storage,
            "ledger": settings.ledger_connector,
        }
    )


@router.get("/ready")
async def readiness_check(
    response: Response,
    settings: EngineSettings = Depends(get_engine_settings),
) -> Dict[str, str]:
    """Readiness probe for Kubernetes."""
    if _storage_status(settings) != "up":
        response.status_code = 503
        return {"status": "not ready"}
    return {"status": "ready"}


@router.get("/live")
async def liveness_check() -> Dict[str, str]:
    """Liveness probe for Kubernetes."""
    return {"status": "alive"}


@router.get("/metrics")
async def metrics_summary() -> Dict[str, Any]:
    """In-process posting metrics."""
    return get_metrics().get_summary()

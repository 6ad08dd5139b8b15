"""FastAPI server for the card coding engine.

Main entry point for the API server.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core import __version__
from core.config import get_settings
from core.observability.logging import configure_logging, get_logger
from api.routes import cards, health, transactions


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    settings = get_settings()
    configure_logging(level=settings.log_level, json_format=settings.log_json, force=True)
    logger.info("Card engine API starting up", extra_fields={"db_path": str(settings.db_path)})

    yield

    logger.info("Card engine API shutting down")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Card Coding Engine API",
        description="Credit-card transaction coding, receipt matching and posting to the general ledger",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(health.router, tags=["Health"])
    app.include_router(cards.router, prefix="/cards", tags=["Cards"])
    app.include_router(transactions.router, prefix="/transactions", tags=["Transactions"])

    return app


# Default app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.server:app", host="0.0.0.0", port=8000, reload=True)

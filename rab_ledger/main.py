"""RAB Ledger FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from rab_ledger.api.errors import register_error_handlers
from rab_ledger.api.routes import auth, expenses, programs, rab_items, receipts, transactions
from rab_ledger.config import settings
from rab_ledger.models import Base
from rab_ledger.services import engine

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle (startup and shutdown)."""
    Base.metadata.create_all(bind=engine)
    settings.receipts_dir.mkdir(parents=True, exist_ok=True)
    logger.info("Database tables initialized")
    yield
    logger.info("Application shutting down")


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.api_title,
        description="Budget ledger and expense approval service",
        version=settings.api_version,
        lifespan=lifespan,
    )
    register_error_handlers(app)

    for module in (auth, programs, rab_items, transactions, expenses, receipts):
        app.include_router(module.router, prefix=settings.api_prefix)

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    from rab_ledger.services.logging import setup_server_logging

    setup_server_logging()
    uvicorn.run(app, host="0.0.0.0", port=8000)

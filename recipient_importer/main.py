"""
FastAPI application entry point.

This module initializes the FastAPI application and registers the import
routers. Function-style deployments use ``recipient_importer.handler``
instead.
"""
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI

from .api.routers import imports
from .core.config import settings
from .core.logging_config import configure_logging
from .db.session import dispose_engine
from .domain.imports import service

# Ensure logging is configured before the application starts serving requests.
configure_logging(settings.log_level)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle - startup and shutdown events."""
    if os.getenv("SKIP_DB_INIT") == "1":
        logger.info("SKIP_DB_INIT=1 detected; skipping database bootstrap during startup")
    else:
        try:
            service.recipient_store.ensure_table()
            service.status_store.ensure_table()
            logger.info("recipients and import_status tables ready")
        except Exception as e:
            logger.error(f"Failed to initialize database tables: {e}")
            raise  # Re-raise to prevent app from starting with broken database

    yield  # Application runs here

    # Let queued continuations finish before the process exits
    service.shutdown_executor(wait=True)
    dispose_engine()


app = FastAPI(
    title="Recipient Importer API",
    version="1.0.0",
    description="Time-bounded, resumable import of recipient lists from object storage",
    lifespan=lifespan,
)

app.include_router(imports.router)


@app.get("/health")
async def health_check():
    """Health check endpoint for deployment monitoring."""
    return {
        "status": "ok",
        "timestamp": datetime.now().isoformat(),
        "service": "recipient-importer",
    }

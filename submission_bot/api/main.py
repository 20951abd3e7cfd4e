"""FastAPI application entry point."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from submission_bot.api.routes import router
from submission_bot.config import configure_logging, get_settings
from submission_bot.database.session import close_db, init_db


settings = get_settings()
configure_logging(settings)
logger = logging.getLogger(__name__)


def _check_checkouts() -> None:
    """Warn about repository checkouts that submissions would fail on."""
    for label, path in (
        ("Content repository", settings.content_repo_path),
        ("Registry repository", settings.registry_repo_path),
    ):
        if not os.path.isdir(os.path.join(path, ".git")):
            logger.warning(f"{label} checkout not found at {path}; submissions will fail until it exists")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and check checkouts on startup; dispose the engine on shutdown."""
    logger.info(f"Starting {settings.app_name} v{settings.app_version} ({settings.environment})")
    
    await init_db()
    _check_checkouts()
    
    yield
    
    await close_db()
    logger.info("Stopped")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Accepts theme submissions and publishes them to the theme repositories",
    lifespan=lifespan,
)
app.include_router(router, prefix="/api")


if __name__ == "__main__":
    import uvicorn
    
    uvicorn.run(
        "submission_bot.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )

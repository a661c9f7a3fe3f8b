"""
Application Module

Builds the FastAPI application around a storage adapter.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from activity_tracker import config
from activity_tracker.api import router as api_router
from activity_tracker.storage import StorageAdapter

logger = logging.getLogger(__name__)


def create_app(
    storage: Optional[StorageAdapter] = None,
    use_primary: bool = not config.USE_FILE_STORAGE_FALLBACK,
) -> FastAPI:
    """
    Create the application.

    Args:
        storage: Already initialized adapter to serve from. When omitted, one
            is created and initialized on startup and disconnected on shutdown.
        use_primary: Try the primary database before the local fallback
    """
    owns_storage = storage is None
    if owns_storage:
        storage = StorageAdapter(use_primary=use_primary)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            if owns_storage:
                storage.init(config.FALLBACK_DIR)
                logger.info(f"Storage ready, backend: {storage.backend_name}")
            yield
        finally:
            if owns_storage:
                storage.disconnect()
            logger.info("Application shutdown.")

    app = FastAPI(
        title="Coding Activity Tracker",
        description="Stores coding activity events and serves reports over them",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.storage = storage

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router, prefix=config.API_PREFIX)
    return app

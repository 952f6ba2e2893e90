"""Application lifespan: storage startup and shutdown.

Wiring only. The Facade is created and initialized once per process and
exposed on app.state.storage; request handlers get it via get_storage.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request

from filestore.core.config import get_settings
from filestore.infrastructure.external.storage.facade import StorageFacade
from filestore.shared.telemetry.logging import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def create_lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Initialize storage, yield, then close every storage backend."""
    setup_logging()
    settings = get_settings()

    # ---- Startup ----
    storage = StorageFacade.create(settings)
    selection = await storage.initialize()
    app.state.storage = storage
    logger.info(
        "Storage initialized: requested=%s active=%s state=%s",
        selection.requested,
        selection.active.provider.value,
        selection.state.value,
    )

    yield

    # ---- Shutdown ----
    if getattr(app.state, "storage", None) is not None:
        await app.state.storage.close()
        app.state.storage = None
        logger.info("Storage closed")


def get_storage(request: Request) -> StorageFacade:
    """FastAPI dependency returning the process-wide StorageFacade."""
    storage = getattr(request.app.state, "storage", None)
    if storage is None:
        raise RuntimeError("Storage is not initialized; is create_lifespan configured?")
    return storage

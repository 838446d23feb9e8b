"""Health check endpoints for infrastructure monitoring."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends

from livechat.dependencies import get_store
from livechat.errors import StoreUnavailable
from livechat.store.conversation_store import ConversationStore

logger = logging.getLogger(__name__)
router = APIRouter()
liveness_router = APIRouter()


@liveness_router.get("/")
async def root() -> dict[str, str]:
    return {"status": "ok", "message": "Server is running"}


@liveness_router.get("/ping")
async def ping() -> dict[str, str]:
    """Liveness check: the process is up and serving requests."""
    return {
        "status": "ok",
        "message": "Server is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


async def _check_mongodb(store: ConversationStore) -> dict[str, Any]:
    """Ping MongoDB over the store's connection and return status."""
    try:
        await store.ping()
        return {"status": "healthy"}
    except StoreUnavailable as exc:
        logger.warning("MongoDB health check failed: %s", exc)
        return {"status": "unhealthy", "error": exc.reason}


@router.get("")
async def health_check(
    store: ConversationStore = Depends(get_store),
) -> dict[str, Any]:
    """Return aggregate health of the backing services."""
    services = {
        "mongodb": await _check_mongodb(store),
    }

    overall = (
        "healthy"
        if all(s["status"] == "healthy" for s in services.values())
        else "degraded"
    )

    return {
        "status": overall,
        "services": services,
    }

"""FastAPI application entry point with lifespan management."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from livechat.api.chat import websocket_chat
from livechat.api.health import liveness_router
from livechat.api.router import api_router
from livechat.config import settings
from livechat.dependencies import get_coordinator, get_store, get_sweeper
from livechat.errors import RelayError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle."""
    logger.info("Starting %s...", settings.app_name)

    store = get_store()
    await store.initialize()
    logger.info("Conversation store initialized successfully")

    if settings.preload_conversations:
        try:
            await get_coordinator().preload(settings.preload_limit)
        except RelayError as exc:
            logger.error("Error loading active conversations: %s", exc)

    sweeper = get_sweeper()
    await sweeper.initialize()
    logger.info("Eviction sweeper initialized successfully")

    yield

    await sweeper.shutdown()
    await store.close()
    logger.info("%s shut down cleanly", settings.app_name)


app = FastAPI(
    title="Live Chat Relay",
    description="Realtime relay between customers and support agents",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=not settings.cors_allow_all,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.include_router(liveness_router)
app.include_router(api_router, prefix="/api")

app.websocket("/ws/chat")(websocket_chat)

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

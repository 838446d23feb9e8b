"""Dependency injection providers for FastAPI."""

from datetime import timedelta

from livechat.config import settings
from livechat.relay import (
    BroadcastCoordinator,
    ConnectionHub,
    ConversationIndex,
    SessionRegistry,
)
from livechat.scheduler.sweeper import EvictionSweeper
from livechat.store.conversation_store import ConversationStore

# Process-wide instances; the relay state is single-process by design.
_store: ConversationStore | None = None
_hub: ConnectionHub | None = None
_index: ConversationIndex | None = None
_coordinator: BroadcastCoordinator | None = None
_sweeper: EvictionSweeper | None = None


def get_store() -> ConversationStore:
    """Return singleton ConversationStore instance."""
    global _store
    if _store is None:
        _store = ConversationStore(
            settings.mongodb_uri,
            settings.mongodb_database,
            settings.conversations_collection,
        )
    return _store


def get_hub() -> ConnectionHub:
    global _hub
    if _hub is None:
        _hub = ConnectionHub()
    return _hub


def get_index() -> ConversationIndex:
    global _index
    if _index is None:
        _index = ConversationIndex()
    return _index


def get_coordinator() -> BroadcastCoordinator:
    """Return singleton BroadcastCoordinator wired to the shared state."""
    global _coordinator
    if _coordinator is None:
        _coordinator = BroadcastCoordinator(
            store=get_store(),
            registry=SessionRegistry(),
            index=get_index(),
            hub=get_hub(),
        )
    return _coordinator


def get_sweeper() -> EvictionSweeper:
    """Return singleton EvictionSweeper instance."""
    global _sweeper
    if _sweeper is None:
        _sweeper = EvictionSweeper(
            index=get_index(),
            hub=get_hub(),
            inactivity_threshold=timedelta(
                seconds=settings.inactivity_threshold_seconds
            ),
            interval_seconds=settings.sweep_interval_seconds,
        )
    return _sweeper

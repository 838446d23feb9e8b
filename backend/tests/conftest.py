"""Shared test fixtures for the live chat relay."""

import asyncio
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from livechat.errors import StoreUnavailable, StoreWriteFailed
from livechat.main import app
from livechat.models.conversations import (
    ConversationMetadata,
    ConversationSummary,
    Message,
)
from livechat.relay import (
    BroadcastCoordinator,
    ConnectionHub,
    ConversationIndex,
    SessionRegistry,
)


class FrozenClock:
    """Manually advanced UTC clock."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


class FakeConversationStore:
    """In-memory stand-in for ``ConversationStore``.

    ``append_message`` yields to the event loop between its read and its
    write, the way a real store round-trip does.
    """

    def __init__(self) -> None:
        self.documents: dict[str, dict[str, Any]] = {}
        self.create_calls: list[str] = []
        self.fail_reads = False
        self.fail_writes = False

    def log(self, conversation_id: str) -> list[Message]:
        return list(self.documents.get(conversation_id, {}).get("messages", []))

    async def read_log(self, conversation_id: str) -> list[Message]:
        await asyncio.sleep(0)
        if self.fail_reads:
            raise StoreUnavailable("store offline")
        return self.log(conversation_id)

    async def append_message(
        self,
        conversation_id: str,
        message: Message,
        metadata: ConversationMetadata,
    ) -> None:
        messages = await self.read_log(conversation_id)
        await asyncio.sleep(0)
        if self.fail_writes:
            raise StoreWriteFailed("write rejected")
        doc = self.documents.setdefault(conversation_id, {"messages": []})
        doc.update(metadata.model_dump(exclude_none=True))
        doc["messages"] = messages + [message]

    async def create_conversation(
        self,
        conversation_id: str,
        chatbot_id: str | None,
        customer_identifier: str | None,
    ) -> None:
        await asyncio.sleep(0)
        if self.fail_writes:
            raise StoreWriteFailed("write rejected")
        self.create_calls.append(conversation_id)
        doc = self.documents.setdefault(conversation_id, {"messages": []})
        doc.update(chatbot_id=chatbot_id, customer_identifier=customer_identifier)

    async def ping(self) -> None:
        if self.fail_reads:
            raise StoreUnavailable("store offline")

    async def load_recent(self, limit: int = 100) -> list[ConversationSummary]:
        if self.fail_reads:
            raise StoreUnavailable("store offline")
        summaries = []
        for conversation_id, doc in list(self.documents.items())[:limit]:
            messages = doc.get("messages", [])
            summaries.append(
                ConversationSummary(
                    conversation_id=conversation_id,
                    chatbot_id=doc.get("chatbot_id"),
                    customer_identifier=doc.get("customer_identifier"),
                    last_activity_timestamp=datetime.now(timezone.utc),
                    last_message=messages[-1] if messages else None,
                )
            )
        return summaries


class FakeSocket:
    """Records every JSON frame pushed to it.

    ``delays`` maps a message text to seconds to stall before accepting the
    ``message:received`` frame carrying it.
    """

    def __init__(
        self, fail: bool = False, delays: dict[str, float] | None = None
    ) -> None:
        self.sent: list[dict[str, Any]] = []
        self.fail = fail
        self.delays = delays or {}

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        if data["event"] == "message:received":
            delay = self.delays.get(data["data"]["text"])
            if delay:
                await asyncio.sleep(delay)
        self.sent.append(data)

    def events(self, name: str) -> list[Any]:
        return [frame["data"] for frame in self.sent if frame["event"] == name]

    def names(self) -> list[str]:
        return [frame["event"] for frame in self.sent]


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def store() -> FakeConversationStore:
    return FakeConversationStore()


@pytest.fixture
def hub() -> ConnectionHub:
    return ConnectionHub()


@pytest.fixture
def registry() -> SessionRegistry:
    return SessionRegistry()


@pytest.fixture
def index(clock: FrozenClock) -> ConversationIndex:
    return ConversationIndex(clock=clock)


@pytest.fixture
def coordinator(
    store: FakeConversationStore,
    registry: SessionRegistry,
    index: ConversationIndex,
    hub: ConnectionHub,
    clock: FrozenClock,
) -> BroadcastCoordinator:
    return BroadcastCoordinator(store, registry, index, hub, clock=clock)


@pytest.fixture
def connect(hub: ConnectionHub):
    """Register a fake socket with the hub and return it."""

    def _connect(
        connection_id: str,
        fail: bool = False,
        delays: dict[str, float] | None = None,
    ) -> FakeSocket:
        socket = FakeSocket(fail=fail, delays=delays)
        hub.register(connection_id, socket)
        return socket

    return _connect


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing FastAPI endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()

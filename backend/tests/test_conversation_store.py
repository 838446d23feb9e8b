"""Tests for the MongoDB conversation store adapter."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo.errors import OperationFailure, ServerSelectionTimeoutError

from livechat.errors import StoreUnavailable, StoreWriteFailed
from livechat.models.conversations import ConversationMetadata, Message
from livechat.store.conversation_store import ConversationStore

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeCursor:
    """Minimal motor cursor: chainable sort/limit plus async iteration."""

    def __init__(self, docs: list[dict]) -> None:
        self.docs = docs
        self.sort_args = None
        self.limit_value = None

    def sort(self, *args):
        self.sort_args = args
        return self

    def limit(self, value: int):
        self.limit_value = value
        return self

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for doc in self.docs:
            yield doc


def stored_message(text: str, conversation_id: str = "c1") -> dict:
    return {
        "text": text,
        "sender": "customer",
        "timestamp": NOW.isoformat(),
        "conversation_id": conversation_id,
    }


@pytest.fixture
def collection() -> MagicMock:
    collection = MagicMock()
    collection.find_one = AsyncMock(return_value=None)
    collection.update_one = AsyncMock()
    return collection


@pytest.fixture
def conversation_store(collection) -> ConversationStore:
    return ConversationStore(collection=collection)


@pytest.mark.asyncio
async def test_read_log_of_unknown_conversation_is_empty(conversation_store, collection) -> None:
    assert await conversation_store.read_log("c1") == []
    collection.find_one.assert_awaited_once_with(
        {"conversation_id": "c1"}, {"messages": 1, "_id": 0}
    )


@pytest.mark.asyncio
async def test_read_log_returns_messages_in_order(conversation_store, collection) -> None:
    collection.find_one.return_value = {
        "messages": [stored_message("one"), stored_message("two")]
    }

    log = await conversation_store.read_log("c1")

    assert [m.text for m in log] == ["one", "two"]
    assert log[0].timestamp == NOW


@pytest.mark.asyncio
async def test_read_log_connection_error(conversation_store, collection) -> None:
    collection.find_one.side_effect = ServerSelectionTimeoutError("no servers")

    with pytest.raises(StoreUnavailable):
        await conversation_store.read_log("c1")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "doc",
    [
        {"messages": "not a list"},
        {"messages": [{"text": "missing fields"}]},
    ],
)
async def test_read_log_malformed_document(conversation_store, collection, doc) -> None:
    collection.find_one.return_value = doc

    with pytest.raises(StoreUnavailable):
        await conversation_store.read_log("c1")


@pytest.mark.asyncio
async def test_append_message_writes_full_log_with_metadata(
    conversation_store, collection
) -> None:
    collection.find_one.return_value = {"messages": [stored_message("one")]}
    message = Message(text="two", sender="agent", timestamp=NOW, conversation_id="c1")

    await conversation_store.append_message(
        "c1", message, ConversationMetadata(chatbot_id="bot-1", user_id="owner-1")
    )

    collection.update_one.assert_awaited_once()
    query, update = collection.update_one.await_args.args
    assert query == {"conversation_id": "c1"}
    assert collection.update_one.await_args.kwargs == {"upsert": True}
    assert [m["text"] for m in update["$set"]["messages"]] == ["one", "two"]
    assert update["$set"]["messages"][1]["sender"] == "agent"
    assert update["$set"]["chatbot_id"] == "bot-1"
    assert update["$set"]["user_id"] == "owner-1"
    assert "customer_identifier" not in update["$set"]
    assert update["$setOnInsert"]["conversation_id"] == "c1"
    assert "created_at" in update["$setOnInsert"]


@pytest.mark.asyncio
async def test_append_message_write_failure(conversation_store, collection) -> None:
    collection.update_one.side_effect = OperationFailure("write rejected")
    message = Message(text="hi", sender="customer", timestamp=NOW, conversation_id="c1")

    with pytest.raises(StoreWriteFailed):
        await conversation_store.append_message("c1", message, ConversationMetadata())


@pytest.mark.asyncio
async def test_append_message_read_failure_skips_write(conversation_store, collection) -> None:
    collection.find_one.side_effect = ServerSelectionTimeoutError("no servers")
    message = Message(text="hi", sender="customer", timestamp=NOW, conversation_id="c1")

    with pytest.raises(StoreUnavailable):
        await conversation_store.append_message("c1", message, ConversationMetadata())

    collection.update_one.assert_not_awaited()


@pytest.mark.asyncio
async def test_create_conversation_is_insert_only_for_messages(
    conversation_store, collection
) -> None:
    await conversation_store.create_conversation("c1", "bot-1", "jane@example.com")

    query, update = collection.update_one.await_args.args
    assert query == {"conversation_id": "c1"}
    assert update["$set"]["chatbot_id"] == "bot-1"
    assert update["$set"]["customer_identifier"] == "jane@example.com"
    assert update["$setOnInsert"]["messages"] == []
    assert "messages" not in update["$set"]
    assert collection.update_one.await_args.kwargs == {"upsert": True}


@pytest.mark.asyncio
async def test_create_conversation_failure(conversation_store, collection) -> None:
    collection.update_one.side_effect = OperationFailure("duplicate")

    with pytest.raises(StoreWriteFailed):
        await conversation_store.create_conversation("c1", None, None)


@pytest.mark.asyncio
async def test_load_recent_builds_summaries(conversation_store, collection) -> None:
    cursor = FakeCursor(
        [
            {
                "conversation_id": "c2",
                "chatbot_id": "bot-1",
                "customer_identifier": "jane@example.com",
                "created_at": NOW.isoformat(),
                "messages": [stored_message("one", "c2"), stored_message("two", "c2")],
            },
            {"conversation_id": "c1", "created_at": "2026-02-28T09:00:00"},
            {"conversation_id": "bad", "messages": "oops"},
        ]
    )
    collection.find = MagicMock(return_value=cursor)

    summaries = await conversation_store.load_recent(limit=5)

    assert cursor.sort_args == ("created_at", -1)
    assert cursor.limit_value == 5
    assert [s.conversation_id for s in summaries] == ["c2", "c1"]
    assert summaries[0].last_message.text == "two"
    assert summaries[0].last_activity_timestamp == NOW
    assert summaries[1].last_message is None
    assert summaries[1].last_activity_timestamp == datetime(
        2026, 2, 28, 9, 0, tzinfo=timezone.utc
    )


def test_uninitialized_store_refuses_access() -> None:
    store = ConversationStore("mongodb://localhost:27017", "livechat")

    with pytest.raises(RuntimeError):
        store.collection


@pytest.mark.asyncio
async def test_ping_uses_admin_command(conversation_store) -> None:
    client = MagicMock()
    client.admin.command = AsyncMock(return_value={"ok": 1})
    conversation_store._client = client

    await conversation_store.ping()

    client.admin.command.assert_awaited_once_with("ping")


@pytest.mark.asyncio
async def test_ping_failure_is_store_unavailable(conversation_store) -> None:
    client = MagicMock()
    client.admin.command = AsyncMock(side_effect=ServerSelectionTimeoutError("down"))
    conversation_store._client = client

    with pytest.raises(StoreUnavailable):
        await conversation_store.ping()


@pytest.mark.asyncio
async def test_ping_without_connection_is_store_unavailable() -> None:
    store = ConversationStore("mongodb://localhost:27017", "livechat")

    with pytest.raises(StoreUnavailable):
        await store.ping()

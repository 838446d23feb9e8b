"""MongoDB conversation store — single document per conversation.

Document schema::

    {
        "conversation_id": "c1",
        "chatbot_id": "bot-7",
        "customer_identifier": "jane@example.com",
        "user_id": "owner-42",
        "created_at": "2026-02-08T10:30:00+00:00",
        "updated_at": "2026-02-08T11:00:00+00:00",
        "messages": [
            {
                "text": "Hello!",
                "sender": "customer",
                "timestamp": "2026-02-08T10:30:00+00:00",
                "conversation_id": "c1"
            }
        ]
    }

Appends are read-modify-write: the whole ``messages`` array is read, extended
and written back.  The store gives no ordering promise across concurrent
appends for one conversation; callers serialize them.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorCollection,
)
from pydantic import ValidationError
from pymongo.errors import PyMongoError

from livechat.errors import StoreUnavailable, StoreWriteFailed
from livechat.models.conversations import (
    ConversationMetadata,
    ConversationSummary,
    Message,
)

logger = logging.getLogger(__name__)

COLLECTION_NAME = "livechat"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def _parse_log(conversation_id: str, doc: dict[str, Any] | None) -> list[Message]:
    """Turn a stored document into its message log.

    A missing document is an empty log; a document whose ``messages`` field
    is not a list of valid messages is malformed.
    """
    if doc is None:
        return []

    entries = doc.get("messages")
    if entries is None:
        return []
    if not isinstance(entries, list):
        raise StoreUnavailable(
            f"Malformed message log for conversation {conversation_id}: "
            f"expected list, got {type(entries).__name__}"
        )

    try:
        return [Message.model_validate(entry) for entry in entries]
    except ValidationError as exc:
        raise StoreUnavailable(
            f"Malformed message in log for conversation {conversation_id}",
            cause=exc,
        ) from exc


class ConversationStore:
    """Durable conversation log backed by one MongoDB collection.

    Lifecycle:
        store = ConversationStore(uri, database)
        await store.initialize()   # call once at startup
        ...
        await store.close()        # call once at shutdown

    A pre-built collection can be passed instead (tests inject a mock).
    """

    def __init__(
        self,
        mongodb_uri: str | None = None,
        database_name: str | None = None,
        collection_name: str = COLLECTION_NAME,
        collection: AsyncIOMotorCollection | None = None,
    ) -> None:
        self.mongodb_uri = mongodb_uri
        self.database_name = database_name
        self.collection_name = collection_name

        self._client: AsyncIOMotorClient | None = None
        self._collection: AsyncIOMotorCollection | None = collection

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Connect to MongoDB and ensure the conversation id index."""
        if self._collection is not None:
            logger.warning("ConversationStore already initialized - skipping")
            return

        logger.info("Connecting to MongoDB at %s", self.mongodb_uri)
        self._client = AsyncIOMotorClient(
            self.mongodb_uri,
            serverSelectionTimeoutMS=5_000,
        )
        await self._client.admin.command("ping")
        self._collection = self._client[self.database_name][self.collection_name]
        await self._collection.create_index("conversation_id", unique=True)
        logger.info(
            "MongoDB connection established (%s.%s)",
            self.database_name,
            self.collection_name,
        )

    async def close(self) -> None:
        """Release the connection."""
        if self._client is not None:
            self._client.close()
            self._client = None
            self._collection = None
            logger.info("MongoDB connection closed")

    @property
    def collection(self) -> AsyncIOMotorCollection:
        if self._collection is None:
            raise RuntimeError(
                "ConversationStore not initialized - call initialize() first"
            )
        return self._collection

    async def ping(self) -> None:
        """Round-trip to the server; raises ``StoreUnavailable`` when it is down."""
        if self._client is None:
            raise StoreUnavailable("MongoDB client not connected")
        try:
            await self._client.admin.command("ping")
        except PyMongoError as exc:
            raise StoreUnavailable(f"MongoDB ping failed: {exc}", cause=exc) from exc

    # ------------------------------------------------------------------
    # Conversation log
    # ------------------------------------------------------------------

    async def read_log(self, conversation_id: str) -> list[Message]:
        """Return the ordered message log, or ``[]`` if the conversation is unknown."""
        try:
            doc = await self.collection.find_one(
                {"conversation_id": conversation_id},
                {"messages": 1, "_id": 0},
            )
        except PyMongoError as exc:
            raise StoreUnavailable(
                f"Failed to read conversation {conversation_id}: {exc}", cause=exc
            ) from exc
        return _parse_log(conversation_id, doc)

    async def append_message(
        self,
        conversation_id: str,
        message: Message,
        metadata: ConversationMetadata,
    ) -> None:
        """Read the log, append ``message`` and write the full log back (upsert)."""
        messages = await self.read_log(conversation_id)
        messages.append(message)
        now = _now_iso()

        fields: dict[str, Any] = {
            "messages": [m.model_dump(mode="json") for m in messages],
            "updated_at": now,
        }
        fields.update(metadata.model_dump(exclude_none=True))

        try:
            await self.collection.update_one(
                {"conversation_id": conversation_id},
                {
                    "$set": fields,
                    "$setOnInsert": {
                        "conversation_id": conversation_id,
                        "created_at": now,
                    },
                },
                upsert=True,
            )
        except PyMongoError as exc:
            raise StoreWriteFailed(
                f"Failed to append message to conversation {conversation_id}: {exc}",
                cause=exc,
            ) from exc

        logger.debug(
            "Conversation %s now holds %d messages", conversation_id, len(messages)
        )

    async def create_conversation(
        self,
        conversation_id: str,
        chatbot_id: str | None,
        customer_identifier: str | None,
    ) -> None:
        """Upsert conversation metadata with an empty log.

        Idempotent: an existing document keeps its messages and ``created_at``.
        """
        now = _now_iso()
        fields = ConversationMetadata(
            chatbot_id=chatbot_id,
            customer_identifier=customer_identifier,
        ).model_dump(exclude_none=True)
        fields["updated_at"] = now

        try:
            await self.collection.update_one(
                {"conversation_id": conversation_id},
                {
                    "$set": fields,
                    "$setOnInsert": {
                        "conversation_id": conversation_id,
                        "messages": [],
                        "created_at": now,
                    },
                },
                upsert=True,
            )
        except PyMongoError as exc:
            raise StoreWriteFailed(
                f"Failed to create conversation {conversation_id}: {exc}", cause=exc
            ) from exc

        logger.info("Created conversation %s", conversation_id)

    async def load_recent(self, limit: int = 100) -> list[ConversationSummary]:
        """Return summaries of the most recently created conversations, newest first."""
        cursor = (
            self.collection.find(
                {},
                {
                    "conversation_id": 1,
                    "chatbot_id": 1,
                    "customer_identifier": 1,
                    "messages": 1,
                    "created_at": 1,
                    "_id": 0,
                },
            )
            .sort("created_at", -1)
            .limit(limit)
        )

        summaries: list[ConversationSummary] = []
        try:
            async for doc in cursor:
                conversation_id = doc.get("conversation_id")
                if not conversation_id:
                    continue
                try:
                    messages = _parse_log(conversation_id, doc)
                except StoreUnavailable:
                    logger.warning(
                        "Skipping malformed conversation %s", conversation_id
                    )
                    continue
                created_at = _parse_timestamp(doc.get("created_at"))
                summaries.append(
                    ConversationSummary(
                        conversation_id=conversation_id,
                        chatbot_id=doc.get("chatbot_id"),
                        customer_identifier=doc.get("customer_identifier"),
                        last_activity_timestamp=created_at
                        or datetime.now(timezone.utc),
                        last_message=messages[-1] if messages else None,
                    )
                )
        except PyMongoError as exc:
            raise StoreUnavailable(
                f"Failed to load recent conversations: {exc}", cause=exc
            ) from exc

        return summaries

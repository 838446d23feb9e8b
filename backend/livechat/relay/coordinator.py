"""Broadcast coordinator: routes connection events and fans out the results.

Each connection moves Unjoined → Joined(role, conversation) → Closed.  Events:

    customer:join  → read log, create conversation if new, register, subscribe,
                     ``chat:updated`` to all, ``chat:joined`` to the joiner
    agent:join     → read log, register, subscribe
    message:send   → stamp, append to store, ``message:received`` to the
                     conversation topic, touch index, ``chat:updated`` to all
    disconnect     → drop session records

Any ``RelayError`` aborts the event before state changes and is answered with
``error {reason}`` to the originating connection only.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from livechat.errors import InvalidPayload, RelayError
from livechat.models.conversations import (
    ConversationMetadata,
    ConversationSummary,
    Message,
)
from livechat.models.events import (
    AGENT_JOIN,
    CHAT_JOINED,
    CHAT_UPDATED,
    CUSTOMER_JOIN,
    ERROR,
    MESSAGE_RECEIVED,
    MESSAGE_SEND,
    AgentJoin,
    CustomerJoin,
    MessageSend,
    parse_event,
)
from livechat.relay.hub import ConnectionHub, conversation_topic
from livechat.relay.index import ConversationIndex, utc_now
from livechat.relay.locks import KeyedLock
from livechat.relay.registry import SessionRegistry
from livechat.store.conversation_store import ConversationStore

logger = logging.getLogger(__name__)

_FAILURE_REASONS = {
    CUSTOMER_JOIN: "Failed to join chat session",
    AGENT_JOIN: "Failed to join conversation",
    MESSAGE_SEND: "Failed to send message",
}


class BroadcastCoordinator:
    """Owns the session registry and conversation index for one process.

    Store mutations for a conversation id are serialized through a
    ``KeyedLock`` so concurrent sends never lose an append and concurrent
    joins create a new conversation once. A send keeps the lock through its
    fan-out and index update, so subscribers and the index see messages in
    log order.
    """

    def __init__(
        self,
        store: ConversationStore,
        registry: SessionRegistry,
        index: ConversationIndex,
        hub: ConnectionHub,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.registry = registry
        self.index = index
        self.hub = hub
        self._clock = clock
        self._locks = KeyedLock()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def handle_event(self, connection_id: str, name: Any, data: Any) -> None:
        """Validate and dispatch one inbound event; never raises."""
        try:
            event = parse_event(name, data)
            if isinstance(event, CustomerJoin):
                await self.customer_join(connection_id, event)
            elif isinstance(event, AgentJoin):
                await self.agent_join(connection_id, event)
            elif isinstance(event, MessageSend):
                await self.send_message(connection_id, event)
        except InvalidPayload as exc:
            logger.warning(
                "Rejected %s from connection %s: %s", name, connection_id, exc
            )
            await self._send_error(connection_id, exc.reason)
        except RelayError as exc:
            logger.warning(
                "Error in %s for connection %s: %s", name, connection_id, exc
            )
            await self._send_error(
                connection_id, _FAILURE_REASONS.get(name, exc.reason)
            )
        except Exception:
            logger.exception(
                "Unexpected error in %s for connection %s", name, connection_id
            )
            await self._send_error(
                connection_id, _FAILURE_REASONS.get(name, RelayError.reason)
            )

    def disconnect(self, connection_id: str) -> None:
        """Drop the connection's session records. Topic membership is the hub's job."""
        removed = self.registry.remove(connection_id)
        logger.info(
            "Client disconnected: %s (customer=%s, agent=%s)",
            connection_id,
            removed.customer is not None,
            removed.agent is not None,
        )

    async def preload(self, limit: int) -> int:
        """Seed the index with the most recent conversations from the store."""
        summaries = await self.store.load_recent(limit)
        for summary in summaries:
            self.index.upsert(summary)
        logger.info("Loaded %d active conversations", len(summaries))
        return len(summaries)

    async def broadcast_snapshot(self) -> None:
        await self.hub.publish_to_all(CHAT_UPDATED, self.index.to_wire())

    # ------------------------------------------------------------------
    # Event handlers (raise RelayError; handle_event answers the client)
    # ------------------------------------------------------------------

    async def customer_join(self, connection_id: str, event: CustomerJoin) -> None:
        conversation_id = event.conversation_id

        async with self._locks.hold(conversation_id):
            messages = await self.store.read_log(conversation_id)
            if not messages:
                if conversation_id not in self.index:
                    await self.store.create_conversation(
                        conversation_id, event.chatbot_id, event.customer_email
                    )
                    self.index.upsert(
                        ConversationSummary(
                            conversation_id=conversation_id,
                            chatbot_id=event.chatbot_id,
                            customer_identifier=event.customer_email,
                            last_activity_timestamp=self._clock(),
                        )
                    )
            elif conversation_id not in self.index:
                # Existing history that fell out of the index (evicted or restarted).
                self.index.upsert(
                    ConversationSummary(
                        conversation_id=conversation_id,
                        chatbot_id=event.chatbot_id,
                        customer_identifier=event.customer_email,
                        last_activity_timestamp=self._clock(),
                        last_message=messages[-1],
                    )
                )

        if not self.hub.is_connected(connection_id):
            logger.info(
                "Connection %s closed while joining %s", connection_id, conversation_id
            )
            return

        self.registry.register_customer(
            connection_id,
            conversation_id,
            chatbot_id=event.chatbot_id,
            user_id=event.user_id,
            customer_email=event.customer_email,
        )
        self.hub.subscribe(connection_id, conversation_topic(conversation_id))
        logger.info(
            "Customer %s joined conversation %s", connection_id, conversation_id
        )

        await self.broadcast_snapshot()
        await self.hub.send(
            connection_id,
            CHAT_JOINED,
            {
                "conversationId": conversation_id,
                "customerEmail": event.customer_email,
            },
        )

    async def agent_join(self, connection_id: str, event: AgentJoin) -> None:
        conversation_id = event.conversation_id

        await self.store.read_log(conversation_id)

        if not self.hub.is_connected(connection_id):
            logger.info(
                "Connection %s closed while joining %s", connection_id, conversation_id
            )
            return

        self.registry.register_agent(connection_id, conversation_id)
        self.hub.subscribe(connection_id, conversation_topic(conversation_id))
        logger.info("Agent %s joined conversation %s", connection_id, conversation_id)

    async def send_message(self, connection_id: str, event: MessageSend) -> Message:
        conversation_id = event.conversation_id
        metadata = ConversationMetadata(
            chatbot_id=event.chatbot_id,
            user_id=event.user_id,
        )

        async with self._locks.hold(conversation_id):
            message = Message(
                text=event.text,
                sender=event.sender,
                timestamp=self._clock(),
                conversation_id=conversation_id,
            )
            await self.store.append_message(conversation_id, message, metadata)

            # Fan-out and index update stay in append order.
            await self.hub.publish(
                conversation_topic(conversation_id),
                MESSAGE_RECEIVED,
                message.to_wire(),
            )
            self.index.touch(conversation_id, message)
            await self.broadcast_snapshot()

        logger.info(
            "Message saved and broadcast for conversation %s (from %s)",
            conversation_id,
            connection_id,
        )
        return message

    async def _send_error(self, connection_id: str, reason: str) -> None:
        await self.hub.send(connection_id, ERROR, {"reason": reason})

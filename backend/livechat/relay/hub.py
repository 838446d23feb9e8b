"""In-process pub/sub over live WebSocket connections.

Frames sent to clients are JSON objects ``{"event": name, "data": payload}``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class JsonSocket(Protocol):
    """Anything that can push a JSON frame, e.g. ``fastapi.WebSocket``."""

    async def send_json(self, data: Any) -> None: ...


def conversation_topic(conversation_id: str) -> str:
    return f"conv-{conversation_id}"


class ConnectionHub:
    """Tracks connected sockets and their topic memberships.

    Delivery is best-effort: a socket that fails to accept a frame is
    logged and dropped from the hub, and fan-out carries on with the rest.
    """

    def __init__(self) -> None:
        self._sockets: dict[str, JsonSocket] = {}
        self._topics: dict[str, set[str]] = {}

    def register(self, connection_id: str, socket: JsonSocket) -> None:
        self._sockets[connection_id] = socket

    def unregister(self, connection_id: str) -> None:
        """Forget the socket and every topic membership it held."""
        self._sockets.pop(connection_id, None)
        for topic in list(self._topics):
            members = self._topics[topic]
            members.discard(connection_id)
            if not members:
                del self._topics[topic]

    def subscribe(self, connection_id: str, topic: str) -> None:
        if connection_id not in self._sockets:
            logger.warning(
                "Ignoring subscribe of unknown connection %s to %s",
                connection_id,
                topic,
            )
            return
        self._topics.setdefault(topic, set()).add(connection_id)

    def is_connected(self, connection_id: str) -> bool:
        return connection_id in self._sockets

    def subscribers(self, topic: str) -> set[str]:
        return set(self._topics.get(topic, ()))

    @property
    def connection_count(self) -> int:
        return len(self._sockets)

    async def send(self, connection_id: str, event: str, payload: Any) -> None:
        """Send one frame to a single connection."""
        await self._deliver([connection_id], event, payload)

    async def publish(self, topic: str, event: str, payload: Any) -> None:
        """Send one frame to every connection subscribed to ``topic``."""
        await self._deliver(self.subscribers(topic), event, payload)

    async def publish_to_all(self, event: str, payload: Any) -> None:
        """Send one frame to every connected socket (dashboard broadcast)."""
        await self._deliver(list(self._sockets), event, payload)

    async def _deliver(self, connection_ids, event: str, payload: Any) -> None:
        frame = {"event": event, "data": payload}
        targets = [
            (connection_id, self._sockets[connection_id])
            for connection_id in connection_ids
            if connection_id in self._sockets
        ]
        if not targets:
            return

        results = await asyncio.gather(
            *(socket.send_json(frame) for _, socket in targets),
            return_exceptions=True,
        )
        for (connection_id, _), result in zip(targets, results):
            if isinstance(result, Exception):
                logger.warning(
                    "Dropping connection %s after failed %s send: %s",
                    connection_id,
                    event,
                    result,
                )
                self.unregister(connection_id)

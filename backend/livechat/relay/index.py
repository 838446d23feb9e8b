"""In-memory index of recently active conversations for the dashboard."""

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from livechat.models.conversations import ConversationSummary, Message

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ConversationIndex:
    """Cache of ``ConversationSummary`` keyed by conversation id.

    Not a source of truth: entries are dropped by the eviction sweeper and
    on restart, while the durable store keeps the full history.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock
        self._summaries: dict[str, ConversationSummary] = {}

    def __contains__(self, conversation_id: object) -> bool:
        return conversation_id in self._summaries

    def __len__(self) -> int:
        return len(self._summaries)

    def get(self, conversation_id: str) -> ConversationSummary | None:
        return self._summaries.get(conversation_id)

    def upsert(self, summary: ConversationSummary) -> None:
        self._summaries[summary.conversation_id] = summary

    def touch(self, conversation_id: str, message: Message) -> bool:
        """Record ``message`` as the latest activity.

        Returns False (and changes nothing) if the conversation is not indexed.
        """
        summary = self._summaries.get(conversation_id)
        if summary is None:
            return False
        self._summaries[conversation_id] = summary.model_copy(
            update={
                "last_message": message,
                "last_activity_timestamp": self._clock(),
            }
        )
        return True

    def snapshot(self) -> list[ConversationSummary]:
        return list(self._summaries.values())

    def evict_older_than(self, threshold: datetime) -> list[str]:
        """Remove every summary last active strictly before ``threshold``."""
        stale = [
            conversation_id
            for conversation_id, summary in self._summaries.items()
            if summary.last_activity_timestamp < threshold
        ]
        for conversation_id in stale:
            del self._summaries[conversation_id]
        if stale:
            logger.info("Evicted %d inactive conversations", len(stale))
        return stale

    def to_wire(self) -> dict:
        """Payload of the ``chat:updated`` dashboard event."""
        return {"summaries": [summary.to_wire() for summary in self.snapshot()]}

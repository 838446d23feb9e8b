"""Conversation endpoints for dashboards."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from livechat.dependencies import get_index, get_store
from livechat.errors import StoreUnavailable
from livechat.relay import ConversationIndex
from livechat.store.conversation_store import ConversationStore

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("")
async def list_conversations(
    index: ConversationIndex = Depends(get_index),
) -> dict[str, Any]:
    """Return the recently active conversations held in memory.

    Same shape as the ``chat:updated`` WebSocket event::

        { summaries: [{conversationId, chatbotId, customerIdentifier,
                       lastActivityTimestamp, lastMessage}, ...] }
    """
    return index.to_wire()


@router.get("/{conversation_id}/history")
async def get_conversation_history(
    conversation_id: str,
    store: ConversationStore = Depends(get_store),
) -> dict[str, Any]:
    """Return the full message log for a conversation from the durable store."""
    try:
        messages = await store.read_log(conversation_id)
    except StoreUnavailable as exc:
        logger.warning("History lookup failed for %s: %s", conversation_id, exc)
        raise HTTPException(status_code=503, detail=exc.reason) from exc

    if not messages:
        raise HTTPException(status_code=404, detail="Conversation not found")

    return {
        "conversationId": conversation_id,
        "messages": [message.to_wire() for message in messages],
    }

"""Relay core - session registry, conversation index and broadcast coordinator."""

from .coordinator import BroadcastCoordinator
from .hub import ConnectionHub, conversation_topic
from .index import ConversationIndex
from .registry import SessionRegistry

__all__ = [
    "BroadcastCoordinator",
    "ConnectionHub",
    "ConversationIndex",
    "SessionRegistry",
    "conversation_topic",
]

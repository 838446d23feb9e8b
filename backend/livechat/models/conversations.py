"""Conversation, message and session models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class RelayModel(BaseModel):
    """Base model: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class Message(RelayModel):
    """A single chat message. Immutable once created."""

    text: str
    sender: str
    timestamp: datetime
    conversation_id: str


class ConversationSummary(RelayModel):
    """Dashboard view of a recently active conversation."""

    conversation_id: str
    chatbot_id: Optional[str] = None
    customer_identifier: Optional[str] = None
    last_activity_timestamp: datetime
    last_message: Optional[Message] = None


class CustomerSession(RelayModel):
    connection_id: str
    conversation_id: str
    chatbot_id: Optional[str] = None
    user_id: Optional[str] = None
    customer_email: Optional[str] = None


class AgentSession(RelayModel):
    connection_id: str
    conversation_id: str


class SessionLookup(RelayModel):
    """Whichever session records exist for one connection."""

    customer: Optional[CustomerSession] = None
    agent: Optional[AgentSession] = None

    @property
    def is_empty(self) -> bool:
        return self.customer is None and self.agent is None


class ConversationMetadata(RelayModel):
    """Conversation fields written alongside the message log."""

    chatbot_id: Optional[str] = None
    user_id: Optional[str] = None
    customer_identifier: Optional[str] = None

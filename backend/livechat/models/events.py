"""Inbound event payloads and outbound event names for the WebSocket protocol.

Client → Server frames look like ``{"event": "message:send", "data": {...}}``.
``parse_event`` turns the pair into one of the tagged variants below or
raises ``InvalidPayload``; nothing past this module sees a raw dict.
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
)

from livechat.errors import InvalidPayload

CUSTOMER_JOIN = "customer:join"
AGENT_JOIN = "agent:join"
MESSAGE_SEND = "message:send"

# Server → Client
CHAT_JOINED = "chat:joined"
CHAT_UPDATED = "chat:updated"
MESSAGE_RECEIVED = "message:received"
ERROR = "error"

# Older clients send ``convId``.
ConversationId = Annotated[
    str,
    Field(
        min_length=1,
        validation_alias=AliasChoices("conversationId", "conversation_id", "convId"),
    ),
]


class _InboundEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")


class CustomerJoin(_InboundEvent):
    event: Literal["customer:join"] = CUSTOMER_JOIN
    conversation_id: ConversationId
    chatbot_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("chatbotId", "chatbot_id")
    )
    user_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("userId", "user_id")
    )
    customer_email: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("customerEmail", "customer_email")
    )


class AgentJoin(_InboundEvent):
    event: Literal["agent:join"] = AGENT_JOIN
    conversation_id: ConversationId


class MessageSend(_InboundEvent):
    """A chat message from either side.

    Any client-supplied ``timestamp`` is dropped; the server stamps messages.
    """

    event: Literal["message:send"] = MESSAGE_SEND
    conversation_id: ConversationId
    chatbot_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("chatbotId", "chatbot_id")
    )
    user_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("userId", "user_id")
    )
    text: str = Field(min_length=1)
    sender: str = Field(min_length=1)


InboundEvent = Annotated[
    Union[CustomerJoin, AgentJoin, MessageSend],
    Field(discriminator="event"),
]

INBOUND_EVENTS = frozenset({CUSTOMER_JOIN, AGENT_JOIN, MESSAGE_SEND})

_inbound_adapter = TypeAdapter(InboundEvent)


def parse_event(name: Any, data: Any) -> Union[CustomerJoin, AgentJoin, MessageSend]:
    """Validate an inbound frame into its tagged variant.

    Raises:
        InvalidPayload: unknown event name, non-object payload, or missing /
            malformed fields.
    """
    if name not in INBOUND_EVENTS:
        raise InvalidPayload(f"Unknown event: {name!r}", reason="Unknown event")
    if not isinstance(data, dict):
        raise InvalidPayload(
            f"Payload for {name} must be an object, got {type(data).__name__}"
        )

    try:
        return _inbound_adapter.validate_python({**data, "event": name})
    except ValidationError as exc:
        fields = ", ".join(
            ".".join(str(part) for part in err["loc"][1:]) or "payload"
            for err in exc.errors()
        )
        raise InvalidPayload(
            f"Invalid {name} payload: {exc}",
            reason=f"Invalid payload: {fields}",
            cause=exc,
        ) from exc

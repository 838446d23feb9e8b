"""Session registry: which live connection plays which role in which conversation."""

import logging
from typing import Optional

from livechat.models.conversations import AgentSession, CustomerSession, SessionLookup

logger = logging.getLogger(__name__)


class SessionRegistry:
    """In-memory map of connection id to customer and agent sessions.

    A connection may hold both roles at once; each role has at most one
    record per connection and re-registering overwrites it.  Nothing here is
    persisted.
    """

    def __init__(self) -> None:
        self._customers: dict[str, CustomerSession] = {}
        self._agents: dict[str, AgentSession] = {}

    def register_customer(
        self,
        connection_id: str,
        conversation_id: str,
        chatbot_id: Optional[str] = None,
        user_id: Optional[str] = None,
        customer_email: Optional[str] = None,
    ) -> CustomerSession:
        session = CustomerSession(
            connection_id=connection_id,
            conversation_id=conversation_id,
            chatbot_id=chatbot_id,
            user_id=user_id,
            customer_email=customer_email,
        )
        self._customers[connection_id] = session
        return session

    def register_agent(self, connection_id: str, conversation_id: str) -> AgentSession:
        session = AgentSession(
            connection_id=connection_id,
            conversation_id=conversation_id,
        )
        self._agents[connection_id] = session
        return session

    def lookup(self, connection_id: str) -> SessionLookup:
        return SessionLookup(
            customer=self._customers.get(connection_id),
            agent=self._agents.get(connection_id),
        )

    def remove(self, connection_id: str) -> SessionLookup:
        """Drop both records for ``connection_id`` and return what was removed."""
        removed = SessionLookup(
            customer=self._customers.pop(connection_id, None),
            agent=self._agents.pop(connection_id, None),
        )
        if not removed.is_empty:
            logger.debug("Removed sessions for connection %s", connection_id)
        return removed

    @property
    def customer_count(self) -> int:
        return len(self._customers)

    @property
    def agent_count(self) -> int:
        return len(self._agents)

"""Error hierarchy for the relay.

Every failure that can abort an inbound event is a ``RelayError``.  The
coordinator catches them at its boundary, logs them, and answers the
originating connection with a generic ``error`` event carrying ``reason``.
"""


class RelayError(Exception):
    """Base exception for all relay errors.

    ``reason`` is the short, client-safe string sent back to the
    connection; the exception message may carry more detail for logs.
    """

    reason: str = "Request failed"

    def __init__(
        self,
        message: str,
        reason: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        if reason is not None:
            self.reason = reason
        self.cause = cause


class StoreUnavailable(RelayError):
    """Raised when the durable store cannot be reached or returns malformed data."""

    reason = "Conversation store unavailable"


class StoreWriteFailed(RelayError):
    """Raised when a write to the durable store is rejected or fails mid-flight."""

    reason = "Failed to save conversation"


class InvalidPayload(RelayError):
    """Raised when an inbound event is unknown or its payload is malformed."""

    reason = "Invalid payload"

"""Error taxonomy for the chat gateway.

Every failure is scoped to a single connection or a single operation;
none of these ever propagate out of the WebSocket handler.
"""


class ChatError(Exception):
    """Base class for gateway errors."""


class AuthenticationFailure(ChatError):
    """Missing or invalid credential on the handshake.

    Both cases produce the same observable behavior for the client.
    """


class UnauthenticatedAction(ChatError):
    """A protocol frame arrived on a connection that is not registered."""


class ValidationError(ChatError):
    """Malformed or oversized payload. Reported to the sender only."""


class PersistenceFailure(ChatError):
    """The storage collaborator failed; the operation was aborted before fan-out."""


class DeliveryFailure(ChatError):
    """A target connection went away mid fan-out. Never surfaced to callers."""

"""Message router: validate, persist, fan out.

A message is delivered to every live session of the receiver and echoed to
every live session of the sender (the originating connection included), so
all of the sender's devices converge on the same conversation.

Persistence always comes first. If the store fails nothing is delivered,
and a message to a user with no live sessions is still stored and shows
up in history.
"""
import logging

from fastapi.concurrency import run_in_threadpool

from pairchat.messages.service import MessageStore

from .delivery import deliver
from .errors import PersistenceFailure, ValidationError
from .registry import SessionRegistry
from .schemas import Message, receive_message_event

logger = logging.getLogger(__name__)


def encoded_size(value: str, field: str) -> int:
    """UTF-8 size of ``value``.

    Raises:
        ValidationError: If ``value`` holds lone surrogates, which JSON
            allows but UTF-8 cannot carry.
    """
    try:
        return len(value.encode("utf-8"))
    except UnicodeEncodeError:
        raise ValidationError(f"{field} is not valid text")


def require_identity(value, field: str) -> str:
    """Check that a payload identity field is a non-empty, encodable string."""
    if not isinstance(value, str) or not value:
        raise ValidationError(f"{field} is required")
    encoded_size(value, field)
    return value


class MessageRouter:
    """Routes one ``send`` request to the right connections."""

    def __init__(
        self,
        registry: SessionRegistry,
        store: MessageStore,
        max_content_length: int,
    ) -> None:
        self.registry = registry
        self.store = store
        self.max_content_length = max_content_length

    def validate(self, receiver_id, content) -> None:
        """Reject payloads that must never reach storage.

        Raises:
            ValidationError: Missing receiver, empty or unencodable content, or
                content longer than ``max_content_length`` bytes (UTF-8).
        """
        require_identity(receiver_id, "receiverId")
        if not isinstance(content, str) or not content.strip():
            raise ValidationError("content is required")
        size = encoded_size(content, "content")
        if size > self.max_content_length:
            raise ValidationError(
                f"content is {size} bytes; the limit is {self.max_content_length}"
            )

    async def route(self, sender_id: str, receiver_id: str, content: str) -> Message:
        """Persist a message and deliver it to both parties' sessions.

        Args:
            sender_id: Identity of the sending connection (from the registry).
            receiver_id: Addressee identity from the payload.
            content: Message text.

        Returns:
            The persisted message.

        Raises:
            ValidationError: If the payload is rejected before storage.
            PersistenceFailure: If the store fails; nothing was delivered.
        """
        self.validate(receiver_id, content)

        try:
            message = await run_in_threadpool(
                self.store.create_message, sender_id, receiver_id, content
            )
        except Exception as e:
            raise PersistenceFailure(f"could not store message: {e}") from e

        sessions = self.registry.sessions_for(receiver_id, sender_id)
        delivered = await deliver(sessions, receive_message_event(message))
        logger.debug(
            f"[Router] {message.id} {sender_id} -> {receiver_id} "
            f"({content[:50]!r}) delivered to {delivered}/{len(sessions)} sessions"
        )
        return message

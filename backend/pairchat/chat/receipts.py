"""Read-receipt propagation.

When a reader acknowledges a conversation, every unread message from the
other party is flagged read in one bulk update, and the other party's live
sessions get a ``messagesRead`` event (no message bodies are re-sent).
"""
import logging

from fastapi.concurrency import run_in_threadpool

from pairchat.messages.service import MessageStore

from .delivery import deliver
from .errors import PersistenceFailure
from .registry import SessionRegistry
from .routing import require_identity
from .schemas import messages_read_event

logger = logging.getLogger(__name__)


class ReadReceiptPropagator:

    def __init__(self, registry: SessionRegistry, store: MessageStore) -> None:
        self.registry = registry
        self.store = store

    async def mark_read(self, reader_id: str, original_sender_id: str) -> int:
        """Flag ``original_sender_id``'s messages to ``reader_id`` as read and notify.

        Safe to repeat: a second call flips nothing and sends the same
        notification again.

        Returns:
            Number of messages flipped to read.

        Raises:
            ValidationError: If ``original_sender_id`` is missing or not valid text.
            PersistenceFailure: If the bulk update fails; nobody is notified.
        """
        require_identity(original_sender_id, "senderId")

        try:
            flipped = await run_in_threadpool(
                self.store.mark_all_read, original_sender_id, reader_id
            )
        except Exception as e:
            raise PersistenceFailure(f"could not mark messages read: {e}") from e

        sessions = self.registry.sessions_for(original_sender_id)
        await deliver(sessions, messages_read_event(reader_id, original_sender_id))
        logger.info(
            f"[Receipts] {reader_id} read {flipped} message(s) from {original_sender_id}; "
            f"notified {len(sessions)} session(s)"
        )
        return flipped

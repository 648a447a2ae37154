"""Connection lifecycle controller for the chat WebSocket.

The gateway is the only component that mutates the SessionRegistry. Each
connection moves through exactly three states:

    Connecting -> Authenticated -> Closed

Authentication happens once, on the handshake. A missing credential and an
invalid one are handled identically: the socket is closed with 1008 before
it is accepted, nothing is registered and nobody is notified.

Inbound frames are handled one at a time per connection (the WebSocket
endpoint awaits each ``handle()`` before reading the next frame), which
keeps causal order within a connection while different connections run
concurrently against the shared registry.

SECURITY MODEL:
    - The acting identity is always looked up in the registry by
      connection id, never taken from the payload.
    - A frame from an unregistered connection is dropped.
"""
import logging
import uuid
from typing import Any, Optional

import anyio

from pairchat.auth.service import InvalidCredential, TokenService
from pairchat.messages.service import MessageStore
from pairchat.users.service import UserDirectory

from .errors import (
    AuthenticationFailure,
    PersistenceFailure,
    UnauthenticatedAction,
    ValidationError,
)
from .presence import PresencePublisher
from .receipts import ReadReceiptPropagator
from .registry import SessionRegistry, Session
from .routing import MessageRouter
from .schemas import (
    InboundType,
    PresenceStatus,
    connected_event,
    error_event,
)

logger = logging.getLogger(__name__)

# 1008 = Policy Violation
WS_POLICY_VIOLATION = 1008


class ChatGateway:
    """Authenticates connections and dispatches their frames.

    Attributes:
        registry: Live sessions, mutated only here.
        presence: Publishes online/offline transitions.
        router: Persists and fans out ``send`` frames.
        receipts: Handles ``markRead`` frames.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        tokens: TokenService,
        store: MessageStore,
        directory: UserDirectory,
        max_content_length: int = 4096,
    ) -> None:
        self.registry = registry
        self.tokens = tokens
        self.presence = PresencePublisher(registry, directory)
        self.router = MessageRouter(registry, store, max_content_length)
        self.receipts = ReadReceiptPropagator(registry, store)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def authenticate(self, credential: Optional[str]) -> str:
        """Resolve the identity behind a handshake credential.

        Raises:
            AuthenticationFailure: If the credential is absent or invalid.
        """
        if not credential:
            raise AuthenticationFailure("missing credential")
        try:
            return self.tokens.verify(credential)
        except InvalidCredential as e:
            raise AuthenticationFailure("invalid credential") from e

    async def open(self, connection: Any, credential: Optional[str]) -> Optional[Session]:
        """Authenticate, accept and register a new connection.

        Args:
            connection: The transport (a Starlette WebSocket in production).
                Must provide ``accept()``, ``close(code=...)`` and
                ``send_json()``.
            credential: Bearer token from the handshake, if any.

        Returns:
            The registered Session, or None if the connection was refused.
        """
        try:
            user_id = self.authenticate(credential)
        except AuthenticationFailure:
            logger.info("[Gateway] Handshake rejected: missing or invalid credential")
            await connection.close(code=WS_POLICY_VIOLATION)
            return None

        await connection.accept()
        connection_id = str(uuid.uuid4())

        first = self.registry.register(connection_id, user_id, connection)
        try:
            # No await between the registry decision and queueing on the lock.
            async with self.presence.serialized(user_id):
                try:
                    await connection.send_json(connected_event(user_id, connection_id))
                except Exception as e:
                    logger.debug(f"[Gateway] Could not greet {connection_id}: {e}")
                await self.presence.publish(user_id, PresenceStatus.ONLINE, announce=first)
        except BaseException:
            # Cancelled (or failed) after registering: undo it before unwinding.
            with anyio.CancelScope(shield=True):
                await self.close(connection_id)
            raise

        logger.info(
            f"[Gateway] User connected: {user_id} (connection {connection_id}, "
            f"first session: {first}, live connections: {len(self.registry)})"
        )
        return self.registry.get(connection_id)

    async def close(self, connection_id: str) -> None:
        """Deregister a connection; announce offline if it was the last one.

        Safe to call for connections that never authenticated or were
        already closed.
        """
        user_id, was_last = self.registry.deregister(connection_id)
        if user_id is None:
            return

        if was_last:
            async with self.presence.serialized(user_id):
                await self.presence.publish(user_id, PresenceStatus.OFFLINE, announce=True)

        logger.info(
            f"[Gateway] User disconnected: {user_id} (connection {connection_id}, "
            f"last session: {was_last})"
        )

    # =========================================================================
    # Inbound frames
    # =========================================================================

    async def dispatch(self, connection_id: str, frame: Any) -> None:
        """Route one inbound frame to the router or the propagator.

        Raises:
            UnauthenticatedAction: The connection is not registered.
            ValidationError: The frame is malformed or rejected.
            PersistenceFailure: The storage collaborator failed.
        """
        user_id = self.registry.user_for(connection_id)
        if user_id is None:
            raise UnauthenticatedAction(f"connection {connection_id} is not authenticated")

        if not isinstance(frame, dict):
            raise ValidationError("Invalid message format: expected a JSON object")

        try:
            frame_type = InboundType(frame.get("type"))
        except ValueError:
            raise ValidationError(f"Unknown message type: {frame.get('type')!r}")

        if frame_type in (InboundType.SEND, InboundType.SEND_MESSAGE):
            await self.router.route(user_id, frame.get("receiverId"), frame.get("content"))
        else:
            await self.receipts.mark_read(user_id, frame.get("senderId"))

    async def handle(self, connection_id: str, frame: Any) -> None:
        """Dispatch a frame, containing every failure to this connection."""
        try:
            await self.dispatch(connection_id, frame)
        except UnauthenticatedAction as e:
            logger.warning(f"[Gateway] Dropped frame: {e}")
        except ValidationError as e:
            logger.info(f"[Gateway] Rejected frame from {connection_id}: {e}")
            await self._reply_error(connection_id, str(e))
        except PersistenceFailure as e:
            logger.error(f"[Gateway] Operation aborted for {connection_id}: {e}")
            await self._reply_error(connection_id, "The request could not be completed")

    async def _reply_error(self, connection_id: str, error: str) -> None:
        session = self.registry.get(connection_id)
        if session is None:
            return
        try:
            await session.connection.send_json(error_event(error))
        except Exception as e:
            logger.debug(f"[Gateway] Could not report error to {connection_id}: {e}")

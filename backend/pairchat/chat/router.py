"""Chat router providing WebSocket and HTTP endpoints.

This module provides:
    - WebSocket /ws/chat: Real-time one-to-one messaging
    - GET /chat/history/{other_user_id}: Conversation history

Handshake:
    The bearer token travels either as the ``token`` query parameter (the
    name is configurable via ``auth.query_param``) or as an
    ``Authorization: Bearer <token>`` header. Without a valid token the
    socket is closed with 1008 before it is accepted.

Protocol Message Types:
    - send: Send a message to another user
    - markRead: Acknowledge every unread message from another user
"""
import json
import logging
from typing import Any

import anyio
from fastapi import APIRouter, Depends, Request, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool

from pairchat.auth.dependencies import current_user_id
from pairchat.auth.service import parse_bearer

from .gateway import ChatGateway

logger = logging.getLogger(__name__)

router = APIRouter()


def _decode_frame(message: dict) -> Any:
    """Turn a raw ASGI receive event into a JSON value, or None if unparsable."""
    raw = message.get("text")
    if raw is None and message.get("bytes") is not None:
        try:
            raw = message["bytes"].decode("utf-8")
        except UnicodeDecodeError:
            return None
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return None


@router.websocket("/ws/chat")
async def websocket_chat_endpoint(websocket: WebSocket) -> None:
    """WebSocket endpoint for real-time one-to-one chat.

    Protocol Flow:
        1. Client connects with a token
           → Server sends: {type: "connected", userId, connectionId}
           → If this is the user's first session, every connection gets
             {type: "userStatusChanged", userId, status: "online"}
        2. Client sends: {type: "send", receiverId, content}
           → Receiver's and sender's sessions get {type: "receiveMessage", message}
        3. Client sends: {type: "markRead", senderId}
           → senderId's sessions get {type: "messagesRead", readerId, senderId}
        4. On disconnect of the user's last session
           → {type: "userStatusChanged", userId, status: "offline"}

    Args:
        websocket: The WebSocket connection.
    """
    gateway: ChatGateway = websocket.app.state.gateway
    query_param = websocket.app.state.settings.auth.query_param

    credential = websocket.query_params.get(query_param) or parse_bearer(
        websocket.headers.get("authorization")
    )
    session = await gateway.open(websocket, credential)
    if session is None:
        return

    try:
        # Main message loop: one frame at a time for this connection.
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            frame = _decode_frame(message)
            logger.debug(
                "[WS] %s received: type=%s",
                session.connection_id,
                frame.get("type", "?") if isinstance(frame, dict) else "?",
            )
            await gateway.handle(session.connection_id, frame)
    except WebSocketDisconnect:
        pass
    finally:
        # Cleanup must finish even if the handler task is being cancelled.
        with anyio.CancelScope(shield=True):
            await gateway.close(session.connection_id)


@router.get("/chat/history/{other_user_id}")
async def get_chat_history(
    other_user_id: str,
    request: Request,
    user_id: str = Depends(current_user_id),
) -> dict:
    """Get the conversation between the caller and ``other_user_id``.

    Messages are ordered by creation time, oldest first, and include both
    directions of the conversation.

    Returns:
        JSON with a ``messages`` array.

    Example:
        GET /chat/history/2b1e...  (Authorization: Bearer <token>)
    """
    store = request.app.state.message_store
    messages = await run_in_threadpool(store.history, user_id, other_user_id)
    return {"messages": [m.model_dump(mode="json") for m in messages]}

"""Pydantic schemas for the chat wire protocol.

Field names are camelCase because they are serialized as-is onto the
WebSocket and returned by the HTTP API.

Client -> server frames:
    - send:      {type: "send", receiverId, content}
    - markRead:  {type: "markRead", senderId}

Server -> client frames:
    - connected:          {type, userId, connectionId}
    - receiveMessage:     {type, message}
    - messagesRead:       {type, readerId, senderId}
    - userStatusChanged:  {type, userId, status}
    - error:              {type, error}
"""
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class InboundType(str, Enum):
    """Frame types accepted from clients.

    The ``sendMessage`` and ``markAsRead`` spellings are accepted as aliases
    for older clients.
    """
    SEND = "send"
    SEND_MESSAGE = "sendMessage"
    MARK_READ = "markRead"
    MARK_AS_READ = "markAsRead"


class OutboundType(str, Enum):
    """Frame types emitted by the server."""
    CONNECTED = "connected"
    RECEIVE_MESSAGE = "receiveMessage"
    MESSAGES_READ = "messagesRead"
    USER_STATUS_CHANGED = "userStatusChanged"
    ERROR = "error"


class PresenceStatus(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


class Message(BaseModel):
    """A persisted one-to-one message.

    Attributes:
        id: Unique message identifier assigned by the store.
        senderId: Identity of the author.
        receiverId: Identity of the addressee.
        content: Message text.
        isRead: Whether the receiver has acknowledged it.
        createdAt: Server-assigned creation time (UTC).
    """
    id: str = Field(..., description="Unique message ID")
    senderId: str = Field(..., description="User ID of the sender")
    receiverId: str = Field(..., description="User ID of the receiver")
    content: str = Field(..., description="Message content")
    isRead: bool = Field(default=False, description="Read flag")
    createdAt: datetime = Field(..., description="Creation time (UTC)")

    model_config = {"frozen": True}


def connected_event(user_id: str, connection_id: str) -> dict:
    return {
        "type": OutboundType.CONNECTED.value,
        "userId": user_id,
        "connectionId": connection_id,
    }


def receive_message_event(message: Message) -> dict:
    return {
        "type": OutboundType.RECEIVE_MESSAGE.value,
        "message": message.model_dump(mode="json"),
    }


def messages_read_event(reader_id: str, sender_id: str) -> dict:
    return {
        "type": OutboundType.MESSAGES_READ.value,
        "readerId": reader_id,
        "senderId": sender_id,
    }


def status_changed_event(user_id: str, status: PresenceStatus) -> dict:
    return {
        "type": OutboundType.USER_STATUS_CHANGED.value,
        "userId": user_id,
        "status": status.value,
    }


def error_event(error: str) -> dict:
    return {"type": OutboundType.ERROR.value, "error": error}

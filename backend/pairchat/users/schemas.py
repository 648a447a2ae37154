"""Pydantic schemas for the user directory.

These schemas are used by:
    - GET /users: Roster of other users with unread counts
    - GET /users/me: The caller's own record
    - UserDirectory: DuckDB storage layer
"""
from datetime import datetime

from pydantic import BaseModel, Field


class UserRecord(BaseModel):
    """A user known to the directory.

    Attributes:
        userId: Canonical identity (the ``sub`` claim of the user's tokens).
        username: Unique login name.
        displayName: Human-readable name shown in the roster.
        isOnline: Persisted online flag, maintained by the presence publisher.
        createdAt: When the record was created (UTC).
    """
    userId: str = Field(..., description="User identity")
    username: str = Field(..., description="Unique username")
    displayName: str = Field(default="", description="Display name")
    isOnline: bool = Field(default=False, description="Persisted online flag")
    createdAt: datetime = Field(..., description="Creation time (UTC)")


class DirectoryEntry(BaseModel):
    """One row of the roster shown to a user.

    Attributes:
        unreadCount: Unread messages from this user to the caller.
    """
    userId: str
    username: str
    displayName: str = ""
    isOnline: bool = False
    unreadCount: int = Field(default=0, ge=0)


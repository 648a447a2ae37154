"""User directory REST API router.

Endpoints:
    GET /users     - Every other user with online flag and unread count
    GET /users/me  - The caller's own directory record
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool

from pairchat.auth.dependencies import current_user_id

from .schemas import DirectoryEntry, UserRecord

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=List[DirectoryEntry])
async def list_users(
    request: Request,
    user_id: str = Depends(current_user_id),
) -> List[DirectoryEntry]:
    """List all other users for the caller's roster.

    Returns:
        One entry per user, sorted by username, with ``unreadCount`` holding
        the number of unread messages that user sent to the caller.
    """
    directory = request.app.state.directory
    return await run_in_threadpool(directory.list_others, user_id)


@router.get("/me", response_model=UserRecord)
async def get_me(
    request: Request,
    user_id: str = Depends(current_user_id),
) -> UserRecord:
    """Get the caller's directory record."""
    directory = request.app.state.directory
    record = await run_in_threadpool(directory.get_user, user_id)
    if record is None:
        raise HTTPException(status_code=404, detail="User not found")
    return record

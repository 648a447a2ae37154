"""Concurrent fan-out of one frame to many sessions.

Delivery is best effort and at most once: a connection that is gone (or
goes away while the frame is in flight) is skipped and logged at debug
level. Cleaning up dead sessions is the gateway's job, on disconnect.
"""
import asyncio
import logging
from typing import Iterable

from .errors import DeliveryFailure
from .registry import Session

logger = logging.getLogger(__name__)


async def deliver(sessions: Iterable[Session], frame: dict) -> int:
    """Send ``frame`` to every session concurrently.

    Uses asyncio.gather() so one slow or dead connection does not hold up
    the others.

    Returns:
        Number of sessions the frame was handed to successfully.
    """
    targets = list(sessions)
    if not targets:
        return 0

    results = await asyncio.gather(
        *[_safe_send(session, frame) for session in targets],
        return_exceptions=True
    )
    return sum(1 for result in results if result is True)


async def _safe_send(session: Session, frame: dict) -> bool:
    try:
        await session.connection.send_json(frame)
        return True
    except Exception as e:
        failure = DeliveryFailure(f"{session.connection_id}: {e}")
        logger.debug(f"[Delivery] Dropped {frame.get('type')} frame: {failure}")
        return False

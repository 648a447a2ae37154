"""Presence publisher: persists the online flag and announces transitions.

Whether a change is a *transition* is decided by the SessionRegistry (first
session in, last session out). This module only acts on that decision:

    1. Persist the flag through the user directory.
    2. If the change is a transition, send ``userStatusChanged`` to every
       live session.

Both steps for one user run under a per-user ``asyncio.Lock``. The gateway
enters ``serialized()`` right after the registry call, with no ``await`` in
between, so the flag and the announcements land in the order the registry
decided them even when a user flaps between online and offline.

A user's lock is dropped once nobody holds or waits for it and the user has
no live sessions, so the map only holds users that are online or in flight.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict

from fastapi.concurrency import run_in_threadpool

from pairchat.users.service import UserDirectory

from .delivery import deliver
from .registry import SessionRegistry
from .schemas import PresenceStatus, status_changed_event

logger = logging.getLogger(__name__)


@dataclass
class _UserLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    holders: int = 0  # tasks holding or queued on the lock


class PresencePublisher:
    """Announces online/offline transitions to all connected sessions."""

    def __init__(self, registry: SessionRegistry, directory: UserDirectory) -> None:
        self.registry = registry
        self.directory = directory
        self._locks: Dict[str, _UserLock] = {}

    @asynccontextmanager
    async def serialized(self, user_id: str) -> AsyncIterator[None]:
        """Hold ``user_id``'s presence lock for the duration of the block."""
        entry = self._locks.get(user_id)
        if entry is None:
            entry = self._locks[user_id] = _UserLock()
        entry.holders += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.holders -= 1
            if entry.holders == 0 and not self.registry.is_online(user_id):
                if self._locks.get(user_id) is entry:
                    del self._locks[user_id]

    def tracked_users(self) -> int:
        """Number of users that currently have a presence lock."""
        return len(self._locks)

    async def publish(self, user_id: str, status: PresenceStatus, announce: bool) -> int:
        """Persist ``status`` and, if ``announce``, broadcast it.

        Must be called inside ``serialized(user_id)``.

        Returns:
            Number of sessions the event was delivered to.
        """
        online = status == PresenceStatus.ONLINE
        try:
            await run_in_threadpool(self.directory.set_online, user_id, online)
        except Exception as e:
            # The live announcement still goes out; the flag catches up on
            # the user's next transition.
            logger.error(f"[Presence] Failed to persist {status.value} for {user_id}: {e}")

        if not announce:
            return 0

        sessions = self.registry.all_sessions()
        delivered = await deliver(sessions, status_changed_event(user_id, status))
        logger.info(
            f"[Presence] {user_id} is {status.value}; notified {delivered}/{len(sessions)} sessions"
        )
        return delivered

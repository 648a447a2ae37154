"""Session registry: which live connections belong to which user.

The registry keeps two maps that always change together:

    connection_id -> Session                 (exactly one user per connection)
    user_id       -> set of connection_ids   (zero or more per user)

A user with an empty (or missing) set is offline. Every mutation happens in
one critical section guarded by a ``threading.Lock``, and the first/last
session decision for presence is made inside that same critical section, so
concurrent connects and disconnects can neither double-announce "online"
nor miss an "offline".

Thread Safety:
    Safe for concurrent use from the event loop and from worker threads.
    The lock is never held across an ``await``.
"""
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Optional, Protocol, Set, Tuple

logger = logging.getLogger(__name__)


class Connection(Protocol):
    """The part of a transport the gateway needs to deliver frames."""

    async def send_json(self, data: Any) -> None: ...


@dataclass(frozen=True)
class Session:
    """One authenticated live connection for one user."""
    connection_id: str
    user_id: str
    connection: Connection


class SessionRegistry:
    """Bidirectional, lock-protected map of live sessions."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sessions: Dict[str, Session] = {}
        self._by_user: Dict[str, Set[str]] = {}

    # =========================================================================
    # Mutation (called only by the gateway)
    # =========================================================================

    def register(self, connection_id: str, user_id: str, connection: Connection) -> bool:
        """Add a session and report whether it is the user's first live one.

        A connection id that is already registered is replaced rather than
        duplicated: it is first detached from whichever user held it.

        Returns:
            True if ``user_id`` had no live sessions before this call.
        """
        with self._lock:
            previous = self._sessions.get(connection_id)
            if previous is not None:
                logger.warning(
                    f"[Registry] Connection {connection_id} re-registered "
                    f"(was {previous.user_id}, now {user_id})"
                )
                self._detach(previous)

            connections = self._by_user.setdefault(user_id, set())
            first = not connections
            connections.add(connection_id)
            self._sessions[connection_id] = Session(connection_id, user_id, connection)
            return first

    def deregister(self, connection_id: str) -> Tuple[Optional[str], bool]:
        """Remove a session.

        Returns:
            Tuple of (user_id, was_last):
            - user_id: The owner of the connection, or None if unknown.
            - was_last: True if that user now has no live sessions.
        """
        with self._lock:
            session = self._sessions.get(connection_id)
            if session is None:
                return None, False
            was_last = self._detach(session)
            return session.user_id, was_last

    def _detach(self, session: Session) -> bool:
        # Caller holds the lock.
        del self._sessions[session.connection_id]
        connections = self._by_user.get(session.user_id)
        if connections is None:
            return True
        connections.discard(session.connection_id)
        if not connections:
            del self._by_user[session.user_id]
            return True
        return False

    # =========================================================================
    # Snapshots
    # =========================================================================

    def get(self, connection_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(connection_id)

    def user_for(self, connection_id: str) -> Optional[str]:
        session = self.get(connection_id)
        return session.user_id if session else None

    def connections_for(self, user_id: str) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._by_user.get(user_id, ()))

    def sessions_for(self, *user_ids: str) -> List[Session]:
        """Snapshot of the sessions of one or more users, each listed once."""
        with self._lock:
            seen: Set[str] = set()
            sessions: List[Session] = []
            for user_id in user_ids:
                for connection_id in self._by_user.get(user_id, ()):
                    if connection_id not in seen:
                        seen.add(connection_id)
                        sessions.append(self._sessions[connection_id])
            return sessions

    def all_sessions(self) -> List[Session]:
        with self._lock:
            return list(self._sessions.values())

    def is_online(self, user_id: str) -> bool:
        with self._lock:
            return bool(self._by_user.get(user_id))

    def is_first_session(self, user_id: str) -> bool:
        """True if exactly one session is live for the user."""
        with self._lock:
            return len(self._by_user.get(user_id, ())) == 1

    def is_last_session(self, user_id: str) -> bool:
        """True if removing one session would take the user offline."""
        return self.is_first_session(user_id)

    def online_users(self) -> List[str]:
        with self._lock:
            return list(self._by_user)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

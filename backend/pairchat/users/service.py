"""UserDirectory — DuckDB-backed user records and roster view.

The directory is the chat gateway's view of "who exists": it stores the
persisted online flag (for observers that are not connected over a socket)
and builds the roster, joining in unread counts from the message store.
"""
import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import List, Optional

import duckdb

from pairchat.messages.service import MessageStore

from .schemas import DirectoryEntry, UserRecord

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS users (
    id           VARCHAR PRIMARY KEY,
    username     VARCHAR NOT NULL UNIQUE,
    display_name VARCHAR NOT NULL DEFAULT '',
    is_online    BOOLEAN NOT NULL DEFAULT FALSE,
    created_at   TIMESTAMP NOT NULL
)
"""


class DuplicateUsername(ValueError):
    """Raised when creating a user whose username is taken."""


class UserDirectory:
    """User records in DuckDB.

    All writes are synchronous and serialized on the instance lock; the
    gateway calls in from the threadpool.
    """

    _default_db_path: str = "users.duckdb"

    def __init__(self, message_store: MessageStore, db_path: Optional[str] = None) -> None:
        self._db_path = db_path or self._default_db_path
        self._messages = message_store
        self._lock = threading.Lock()
        self._conn = duckdb.connect(self._db_path)
        self._conn.execute(_CREATE_TABLE)
        logger.info("[UserDirectory] Initialized with db=%s", self._db_path)

    # -----------------------------------------------------------------------
    # Records
    # -----------------------------------------------------------------------

    def create_user(self, username: str, display_name: str = "") -> UserRecord:
        user_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        with self._lock:
            taken = self._conn.execute(
                "SELECT 1 FROM users WHERE username = ?", [username]
            ).fetchone()
            if taken:
                raise DuplicateUsername(username)
            self._conn.execute(
                """
                INSERT INTO users (id, username, display_name, is_online, created_at)
                VALUES (?, ?, ?, FALSE, ?)
                """,
                [user_id, username, display_name or username, now],
            )
        logger.info("[UserDirectory] Created user %s (%s)", username, user_id)
        return self.get_user(user_id)

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self._lock:
            row = self._conn.execute(
                "SELECT id, username, display_name, is_online, created_at FROM users WHERE id = ?",
                [user_id],
            ).fetchone()
        return self._row_to_record(row) if row else None

    def set_online(self, user_id: str, online: bool) -> None:
        """Persist the online flag. Unknown identities are ignored."""
        with self._lock:
            self._conn.execute(
                "UPDATE users SET is_online = ? WHERE id = ?", [online, user_id]
            )

    # -----------------------------------------------------------------------
    # Roster
    # -----------------------------------------------------------------------

    def list_others(self, user_id: str) -> List[DirectoryEntry]:
        """Every user except ``user_id``, with their unread count towards it."""
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT id, username, display_name, is_online
                FROM users
                WHERE id <> ?
                ORDER BY username ASC
                """,
                [user_id],
            ).fetchall()
        unread = self._messages.unread_counts(user_id)
        return [
            DirectoryEntry(
                userId=r[0],
                username=r[1],
                displayName=r[2],
                isOnline=bool(r[3]),
                unreadCount=unread.get(r[0], 0),
            )
            for r in rows
        ]

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @staticmethod
    def _row_to_record(row) -> UserRecord:
        return UserRecord(
            userId=row[0],
            username=row[1],
            displayName=row[2],
            isOnline=bool(row[3]),
            createdAt=row[4].replace(tzinfo=timezone.utc),
        )

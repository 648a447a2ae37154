"""DuckDB-backed message storage.

This module is the storage collaborator of the chat gateway: it persists
one-to-one messages, answers ordered history queries and flips read flags
in bulk.

Database Schema:
    messages table:
        - id: UUID primary key
        - seq: Monotonic sequence number (ordering tie-breaker)
        - sender_id: Author identity
        - receiver_id: Addressee identity
        - content: Message text
        - is_read: Whether the receiver acknowledged the message
        - created_at: Server-assigned creation time (UTC)

Thread Safety:
    A DuckDB connection is NOT safe for concurrent use. The gateway calls
    this service from the threadpool, so every statement runs under the
    instance's lock.

Usage:
    store = MessageStore(db_path=":memory:")
    message = store.create_message("alice", "bob", "hi")
    store.history("alice", "bob")
"""
import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

import duckdb

from pairchat.chat.schemas import Message

logger = logging.getLogger(__name__)

_COLUMNS = "id, sender_id, receiver_id, content, is_read, created_at"


class MessageStore:
    """Persists messages in DuckDB.

    Attributes:
        _db_path: Path to the DuckDB database file (":memory:" for tests).
    """

    _db_path: str = "messages.duckdb"

    def __init__(self, db_path: Optional[str] = None) -> None:
        """Open the database and create the schema if needed.

        Args:
            db_path: Path to DuckDB file. Defaults to "messages.duckdb".
        """
        if db_path:
            self._db_path = db_path
        self._lock = threading.Lock()
        self._last_created_at: Optional[datetime] = None
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._initialize_db()
        logger.info("[MessageStore] Initialized with db=%s", self._db_path)

    def _get_connection(self) -> duckdb.DuckDBPyConnection:
        if self._connection is None:
            self._connection = duckdb.connect(self._db_path)
        return self._connection

    def _initialize_db(self) -> None:
        """Create the messages table, sequence and index (idempotent)."""
        conn = self._get_connection()
        conn.execute("""
            CREATE SEQUENCE IF NOT EXISTS messages_seq START 1;
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS messages (
                id VARCHAR PRIMARY KEY,
                seq BIGINT DEFAULT nextval('messages_seq') NOT NULL,
                sender_id VARCHAR NOT NULL,
                receiver_id VARCHAR NOT NULL,
                content VARCHAR NOT NULL,
                is_read BOOLEAN NOT NULL DEFAULT FALSE,
                created_at TIMESTAMP NOT NULL
            )
        """)
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_messages_pair ON messages(sender_id, receiver_id)"
        )

    def _next_timestamp(self) -> datetime:
        # Never hand out a timestamp earlier than the previous one, even if
        # the wall clock steps backwards.
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        if self._last_created_at is not None and now < self._last_created_at:
            now = self._last_created_at
        self._last_created_at = now
        return now

    # -----------------------------------------------------------------------
    # Storage collaborator interface
    # -----------------------------------------------------------------------

    def create_message(self, sender_id: str, receiver_id: str, content: str) -> Message:
        """Persist a new unread message.

        Args:
            sender_id: Author identity.
            receiver_id: Addressee identity.
            content: Message text (already validated by the caller).

        Returns:
            The stored message with its server-assigned id and timestamp.
        """
        message_id = str(uuid.uuid4())
        with self._lock:
            created_at = self._next_timestamp()
            self._get_connection().execute(
                """
                INSERT INTO messages (id, sender_id, receiver_id, content, is_read, created_at)
                VALUES (?, ?, ?, ?, FALSE, ?)
                """,
                [message_id, sender_id, receiver_id, content, created_at]
            )
        return Message(
            id=message_id,
            senderId=sender_id,
            receiverId=receiver_id,
            content=content,
            isRead=False,
            createdAt=created_at.replace(tzinfo=timezone.utc),
        )

    def mark_all_read(self, sender_id: str, receiver_id: str) -> int:
        """Flag every unread message from ``sender_id`` to ``receiver_id`` as read.

        Returns:
            Number of messages that changed state.
        """
        with self._lock:
            rows = self._get_connection().execute(
                """
                UPDATE messages SET is_read = TRUE
                WHERE sender_id = ? AND receiver_id = ? AND NOT is_read
                RETURNING id
                """,
                [sender_id, receiver_id]
            ).fetchall()
        return len(rows)

    def history(self, user_a: str, user_b: str) -> List[Message]:
        """Both directions of a conversation, oldest first."""
        with self._lock:
            result = self._get_connection().execute(
                f"""
                SELECT {_COLUMNS}
                FROM messages
                WHERE (sender_id = ? AND receiver_id = ?)
                   OR (sender_id = ? AND receiver_id = ?)
                ORDER BY created_at ASC, seq ASC
                """,
                [user_a, user_b, user_b, user_a]
            ).fetchall()
        return [self._row_to_message(row) for row in result]

    def unread_counts(self, receiver_id: str) -> Dict[str, int]:
        """Unread message count per sender for one receiver."""
        with self._lock:
            result = self._get_connection().execute(
                """
                SELECT sender_id, COUNT(*)
                FROM messages
                WHERE receiver_id = ? AND NOT is_read
                GROUP BY sender_id
                """,
                [receiver_id]
            ).fetchall()
        return {row[0]: int(row[1]) for row in result}

    def get(self, message_id: str) -> Optional[Message]:
        with self._lock:
            row = self._get_connection().execute(
                f"SELECT {_COLUMNS} FROM messages WHERE id = ?", [message_id]
            ).fetchone()
        return self._row_to_message(row) if row else None

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

    @staticmethod
    def _row_to_message(row) -> Message:
        return Message(
            id=row[0],
            senderId=row[1],
            receiverId=row[2],
            content=row[3],
            isRead=bool(row[4]),
            createdAt=row[5].replace(tzinfo=timezone.utc),
        )

"""SQLite-backed message store.

Reads the counsel database schema::

    messages(id, userId, threadId, message, timestamp, msgIndex)
    threads(id, users, title, date_created)

Connections are opened read-only, one per worker thread, and every query
runs off the event loop through ``anyio.to_thread``.

Batch lookups by id skip rows that do not decode into a valid record, so a
bad row reads as a missing message or thread. Scans and range reads raise
``MessageStoreError`` instead.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
import logging
from pathlib import Path
import sqlite3
import threading
from typing import Any, TypeVar

import anyio
import orjson
from pydantic import ValidationError

from counsel_search.adapters.message_store import AbstractMessageStore
from counsel_search.adapters.sqlite_pragmas import apply_read_pragmas
from counsel_search.domain.model import Message, Thread
from counsel_search.search.errors import MessageStoreError


logger = logging.getLogger(__name__)

T = TypeVar("T")

_MESSAGE_COLUMNS = "id, threadId, userId, message, timestamp, msgIndex"
_THREAD_COLUMNS = "id, title, users, date_created"

# Stay well below SQLITE_MAX_VARIABLE_NUMBER on older builds
_MAX_BOUND_PARAMETERS = 500


def _row_to_message(row: sqlite3.Row | tuple) -> Message:
    message_id, thread_id, user_id, text, timestamp, msg_index = row
    return Message(
        id=str(message_id),
        thread_id=str(thread_id),
        user_id="" if user_id is None else str(user_id),
        text=text or "",
        timestamp=int(timestamp or 0),
        msg_index=int(msg_index),
    )


def _parse_users(raw: Any) -> tuple[str, ...]:
    if not raw:
        return ()
    try:
        users = orjson.loads(raw)
    except (TypeError, orjson.JSONDecodeError):
        logger.debug("Ignoring malformed users column: %r", raw)
        return ()
    if not isinstance(users, list):
        return ()
    return tuple(str(user) for user in users)


def _row_to_thread(row: sqlite3.Row | tuple) -> Thread:
    thread_id, title, users, date_created = row
    return Thread(
        id=str(thread_id),
        title=title or "",
        users=_parse_users(users),
        date_created=int(date_created or 0),
    )


def _decode_each(rows: list, decode: Callable[[Any], T], table: str) -> list[T]:
    """Decode rows one by one, skipping rows that do not form a valid record."""
    decoded: list[T] = []
    for row in rows:
        try:
            decoded.append(decode(row))
        except (TypeError, ValueError, ValidationError) as exc:
            logger.warning("Skipping undecodable %s row %r: %s", table, row[0], exc)
    return decoded


def _chunks(values: Sequence[str], size: int = _MAX_BOUND_PARAMETERS) -> list[Sequence[str]]:
    return [values[i : i + size] for i in range(0, len(values), size)]


class SqliteMessageStore(AbstractMessageStore):
    """Read-only message store over a SQLite database file."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self._local = threading.local()
        self._connections: list[sqlite3.Connection] = []
        self._connections_lock = threading.Lock()

    def _get_connection(self) -> sqlite3.Connection:
        """Get the calling thread's connection, opening it on first use."""
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            return conn
        if not self.db_path.is_file():
            raise MessageStoreError(f"Message database not found at {self.db_path}")
        conn = sqlite3.connect(f"file:{self.db_path}?mode=ro", uri=True, check_same_thread=False)
        apply_read_pragmas(conn)
        self._local.conn = conn
        with self._connections_lock:
            self._connections.append(conn)
        return conn

    async def _run(self, operation: str, func: Callable[[sqlite3.Connection], T]) -> T:
        def _call() -> T:
            try:
                return func(self._get_connection())
            except sqlite3.Error as exc:
                raise MessageStoreError(f"{operation} failed on {self.db_path}: {exc}") from exc
            except (TypeError, ValueError, ValidationError) as exc:
                raise MessageStoreError(f"{operation} returned an undecodable row from {self.db_path}: {exc}") from exc

        return await anyio.to_thread.run_sync(_call)

    async def get_message(self, message_id: str) -> Message | None:
        def _query(conn: sqlite3.Connection) -> Message | None:
            row = conn.execute(f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE id = ?", (message_id,)).fetchone()
            return _row_to_message(row) if row else None

        return await self._run("get_message", _query)

    async def get_messages_in_range(self, thread_id: str, start: int, end: int) -> list[Message]:
        def _query(conn: sqlite3.Connection) -> list[Message]:
            rows = conn.execute(
                f"SELECT {_MESSAGE_COLUMNS} FROM messages "
                "WHERE threadId = ? AND msgIndex BETWEEN ? AND ? ORDER BY msgIndex, id",
                (thread_id, start, end),
            ).fetchall()
            return [_row_to_message(row) for row in rows]

        return await self._run("get_messages_in_range", _query)

    async def get_messages_by_ids(self, message_ids: Sequence[str]) -> dict[str, Message]:
        if not message_ids:
            return {}

        def _query(conn: sqlite3.Connection) -> dict[str, Message]:
            found: dict[str, Message] = {}
            for chunk in _chunks(list(message_ids)):
                placeholders = ",".join("?" * len(chunk))
                rows = conn.execute(
                    f"SELECT {_MESSAGE_COLUMNS} FROM messages WHERE id IN ({placeholders})",
                    tuple(chunk),
                ).fetchall()
                for message in _decode_each(rows, _row_to_message, "messages"):
                    found[message.id] = message
            return found

        return await self._run("get_messages_by_ids", _query)

    async def get_threads_by_ids(self, thread_ids: Sequence[str]) -> dict[str, Thread]:
        if not thread_ids:
            return {}

        def _query(conn: sqlite3.Connection) -> dict[str, Thread]:
            found: dict[str, Thread] = {}
            for chunk in _chunks(list(thread_ids)):
                placeholders = ",".join("?" * len(chunk))
                rows = conn.execute(
                    f"SELECT {_THREAD_COLUMNS} FROM threads WHERE id IN ({placeholders})",
                    tuple(chunk),
                ).fetchall()
                for thread in _decode_each(rows, _row_to_thread, "threads"):
                    found[thread.id] = thread
            return found

        return await self._run("get_threads_by_ids", _query)

    async def scan_messages(self, offset: int, limit: int) -> list[Message]:
        def _query(conn: sqlite3.Connection) -> list[Message]:
            rows = conn.execute(
                f"SELECT {_MESSAGE_COLUMNS} FROM messages ORDER BY msgIndex, id LIMIT ? OFFSET ?",
                (limit, offset),
            ).fetchall()
            return [_row_to_message(row) for row in rows]

        return await self._run("scan_messages", _query)

    async def count_messages(self) -> int | None:
        def _query(conn: sqlite3.Connection) -> int:
            (total,) = conn.execute("SELECT COUNT(*) FROM messages").fetchone()
            return int(total)

        return await self._run("count_messages", _query)

    async def close(self) -> None:
        with self._connections_lock:
            connections, self._connections = self._connections, []
        for conn in connections:
            conn.close()
        self._local = threading.local()

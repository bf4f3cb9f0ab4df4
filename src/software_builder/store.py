"""SQLite storage for sessions, messages and memories."""

import logging
import sqlite3
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from .errors import StorageError, ValidationError

logger = logging.getLogger(__name__)

# kind -> (table, columns). "id" is the unique identity of every entity.
TABLES: dict[str, tuple[str, tuple[str, ...]]] = {
    "session": (
        "sessions",
        ("id", "project_path", "title", "status", "created_at", "ended_at", "meta", "tags"),
    ),
    "message": (
        "messages",
        (
            "id", "session_id", "role", "content", "content_type", "sequence",
            "timestamp", "model", "token_count", "tool_call", "tool_result",
        ),
    ),
    "memory": (
        "memories",
        (
            "id", "type", "content", "summary", "session_id", "parent_id",
            "initial_strength", "current_strength", "decay_rate", "created_at",
            "last_recall", "last_reviewed", "review_count", "level",
            "source_messages", "tags",
        ),
    ),
}

SCHEMA = """
CREATE TABLE IF NOT EXISTS sessions (
    id            TEXT PRIMARY KEY,
    project_path  TEXT NOT NULL,
    title         TEXT NOT NULL,
    status        TEXT NOT NULL DEFAULT 'active',
    created_at    TEXT NOT NULL,
    ended_at      TEXT,
    meta          TEXT,
    tags          TEXT NOT NULL DEFAULT '[]'
);
CREATE INDEX IF NOT EXISTS idx_sessions_status ON sessions(status);

CREATE TABLE IF NOT EXISTS messages (
    id            TEXT PRIMARY KEY,
    session_id    TEXT NOT NULL REFERENCES sessions(id),
    role          TEXT NOT NULL,
    content       TEXT NOT NULL,
    content_type  TEXT NOT NULL DEFAULT 'text',
    sequence      INTEGER NOT NULL CHECK (sequence >= 0),
    timestamp     TEXT NOT NULL,
    model         TEXT,
    token_count   INTEGER,
    tool_call     TEXT,
    tool_result   TEXT,
    UNIQUE(session_id, sequence)
);

CREATE TABLE IF NOT EXISTS memories (
    id                TEXT PRIMARY KEY,
    type              TEXT NOT NULL,
    content           TEXT NOT NULL,
    summary           TEXT,
    session_id        TEXT REFERENCES sessions(id),
    parent_id         TEXT REFERENCES memories(id),
    initial_strength  REAL NOT NULL,
    current_strength  REAL NOT NULL,
    decay_rate        REAL NOT NULL,
    created_at        TEXT NOT NULL,
    last_recall       TEXT,
    last_reviewed     TEXT,
    review_count      INTEGER NOT NULL DEFAULT 0,
    level             INTEGER NOT NULL DEFAULT 0,
    source_messages   TEXT NOT NULL DEFAULT '[]',
    tags              TEXT NOT NULL DEFAULT '[]'
);
CREATE INDEX IF NOT EXISTS idx_memories_strength ON memories(current_strength);
"""


def _table(kind: str) -> tuple[str, tuple[str, ...]]:
    if kind not in TABLES:
        raise ValidationError(f"Unknown entity kind: {kind}")
    return TABLES[kind]


def _check_columns(kind: str, names: Iterator[str] | list[str]) -> None:
    _, columns = _table(kind)
    for name in names:
        if name not in columns:
            raise ValidationError(f"Unknown {kind} attribute: {name}")


class Store:
    """Durable entity store on top of a single SQLite connection.

    Every write runs inside an immediate transaction and is committed
    before the call returns. A failed write is rolled back and surfaces
    as StorageError. The connection is shared by the whole process; all
    use of it is serialized through an internal lock.
    """

    def __init__(self, db_path: Path | str) -> None:
        """Initialize the store with a database path.

        Args:
            db_path: Path to the SQLite database file, or ":memory:".
        """
        self.db_path = db_path if db_path == ":memory:" else Path(db_path)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._depth = 0

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._conn is None:
            try:
                if isinstance(self.db_path, Path):
                    self.db_path.parent.mkdir(parents=True, exist_ok=True)
                conn = sqlite3.connect(
                    self.db_path, isolation_level=None, check_same_thread=False
                )
                conn.row_factory = sqlite3.Row
                conn.execute("PRAGMA foreign_keys = ON")
                if isinstance(self.db_path, Path):
                    conn.execute("PRAGMA journal_mode = WAL")
            except (sqlite3.Error, OSError) as e:
                raise StorageError(f"Cannot open database {self.db_path}: {e}") from e
            self._conn = conn
        return self._conn

    def init_db(self) -> None:
        """Create tables and indexes if they don't exist."""
        conn = self._get_connection()
        with self._lock:
            try:
                conn.executescript(SCHEMA)
            except sqlite3.Error as e:
                raise StorageError(f"Schema creation failed: {e}") from e

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block of writes atomically.

        The outermost transaction takes SQLite's write lock up front
        (BEGIN IMMEDIATE), so reads inside it cannot be invalidated by
        another writer before the commit. Nested calls join the
        enclosing transaction.
        """
        conn = self._get_connection()
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield conn
                finally:
                    self._depth -= 1
                return

            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise StorageError(f"Cannot begin transaction: {e}") from e

            self._depth = 1
            try:
                yield conn
                conn.execute("COMMIT")
            except sqlite3.Error as e:
                self._rollback(conn)
                raise StorageError(f"Transaction failed: {e}") from e
            except BaseException:
                self._rollback(conn)
                raise
            finally:
                self._depth = 0

    def _rollback(self, conn: sqlite3.Connection) -> None:
        if conn.in_transaction:
            try:
                conn.execute("ROLLBACK")
            except sqlite3.Error:
                logger.exception("Rollback failed")

    def put(self, kind: str, record: dict[str, Any]) -> None:
        """Insert or update an entity keyed on its id.

        Args:
            kind: Entity kind ("session", "message" or "memory").
            record: Column values; must include "id".
        """
        if not record.get("id"):
            raise ValidationError(f"{kind} record has no id")
        table, _ = _table(kind)
        names = list(record)
        _check_columns(kind, names)

        placeholders = ", ".join("?" for _ in names)
        updates = ", ".join(f"{name} = excluded.{name}" for name in names if name != "id")
        sql = f"INSERT INTO {table} ({', '.join(names)}) VALUES ({placeholders})"
        sql += f" ON CONFLICT(id) DO UPDATE SET {updates}" if updates else " ON CONFLICT(id) DO NOTHING"

        with self.transaction() as conn:
            conn.execute(sql, [record[name] for name in names])

    def put_many(self, kind: str, records: list[dict[str, Any]]) -> int:
        """Upsert several entities in one transaction. Returns the count."""
        with self.transaction():
            for record in records:
                self.put(kind, record)
        return len(records)

    def get(self, kind: str, entity_id: str) -> dict[str, Any] | None:
        """Look up one entity by id. Returns None when missing."""
        table, _ = _table(kind)
        conn = self._get_connection()
        with self._lock:
            try:
                row = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (entity_id,)).fetchone()
            except sqlite3.Error as e:
                raise StorageError(f"Lookup failed: {e}") from e
        return dict(row) if row is not None else None

    def query(
        self,
        kind: str,
        where: dict[str, Any] | None = None,
        order_by: str | None = None,
        predicate: Callable[[dict[str, Any]], bool] | None = None,
    ) -> list[dict[str, Any]]:
        """Scan entities of a kind from a single consistent snapshot.

        Args:
            kind: Entity kind.
            where: Attribute equality filter applied in SQL.
            order_by: Column name, optionally followed by " DESC".
            predicate: Extra filter applied to each decoded row.

        Returns:
            Matching rows as dicts.
        """
        table, _ = _table(kind)
        where = where or {}
        _check_columns(kind, list(where))

        sql = f"SELECT * FROM {table}"
        if where:
            sql += " WHERE " + " AND ".join(f"{name} = ?" for name in where)
        if order_by:
            column, _, direction = order_by.partition(" ")
            _check_columns(kind, [column])
            if direction.upper() not in ("", "ASC", "DESC"):
                raise ValidationError(f"Invalid sort direction: {direction}")
            sql += f" ORDER BY {column} {direction.upper()}".rstrip()

        conn = self._get_connection()
        with self._lock:
            try:
                rows = conn.execute(sql, list(where.values())).fetchall()
            except sqlite3.Error as e:
                raise StorageError(f"Query failed: {e}") from e

        records = [dict(row) for row in rows]
        if predicate is not None:
            records = [r for r in records if predicate(r)]
        return records

    def max_value(self, kind: str, column: str, where: dict[str, Any] | None = None) -> Any:
        """Return MAX(column) over matching entities, or None if there are none."""
        table, _ = _table(kind)
        where = where or {}
        _check_columns(kind, [column, *where])

        sql = f"SELECT MAX({column}) FROM {table}"
        if where:
            sql += " WHERE " + " AND ".join(f"{name} = ?" for name in where)

        conn = self._get_connection()
        with self._lock:
            try:
                row = conn.execute(sql, list(where.values())).fetchone()
            except sqlite3.Error as e:
                raise StorageError(f"Query failed: {e}") from e
        return row[0]

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

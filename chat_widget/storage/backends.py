"""Key-value storage abstractions with SQLite and in-memory implementations."""

from __future__ import annotations

import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, Optional


class StorageError(Exception):
    """Raised when durable storage cannot be read or written."""


class KeyValueStorage(ABC):
    """Origin-scoped string storage, the widget's equivalent of localStorage."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value or None when the key is absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""

    @abstractmethod
    def remove_many(self, keys: Iterable[str]) -> None:
        """Remove several keys as a single atomic operation."""

    def remove(self, key: str) -> None:
        self.remove_many([key])


class MemoryStorage(KeyValueStorage):
    """Dict-backed storage. ``fail_writes`` simulates a full or disabled store."""

    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self.data: dict[str, str] = dict(initial or {})
        self.fail_reads = False
        self.fail_writes = False

    def get(self, key: str) -> Optional[str]:
        if self.fail_reads:
            raise StorageError("storage is unavailable")
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise StorageError("storage quota exceeded")
        self.data[key] = value

    def remove_many(self, keys: Iterable[str]) -> None:
        if self.fail_writes:
            raise StorageError("storage is unavailable")
        for key in keys:
            self.data.pop(key, None)


class SQLiteStorage(KeyValueStorage):
    """SQLite-backed storage; every call runs in its own transaction."""

    def __init__(self, db_path: Path, origin: str = "default") -> None:
        self.db_path = Path(db_path)
        self.origin = origin
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Cannot create storage directory: {exc}") from exc
        self._ensure_schema()

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as exc:
            raise StorageError(str(exc)) from exc
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            raise StorageError(str(exc)) from exc
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        """Create the key-value table if it does not exist."""

        with self._connection() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    origin TEXT NOT NULL,
                    key TEXT NOT NULL,
                    value TEXT NOT NULL,
                    PRIMARY KEY (origin, key)
                )
                """
            )

    def get(self, key: str) -> Optional[str]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT value FROM kv WHERE origin = ? AND key = ?",
                (self.origin, key),
            ).fetchone()
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        with self._connection() as conn:
            conn.execute(
                """
                INSERT INTO kv (origin, key, value) VALUES (?, ?, ?)
                ON CONFLICT(origin, key) DO UPDATE SET value = excluded.value
                """,
                (self.origin, key, value),
            )

    def remove_many(self, keys: Iterable[str]) -> None:
        with self._connection() as conn:
            conn.executemany(
                "DELETE FROM kv WHERE origin = ? AND key = ?",
                [(self.origin, key) for key in keys],
            )

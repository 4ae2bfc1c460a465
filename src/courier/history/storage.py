"""
Durable key-value storage used by the history store.

Values are JSON-compatible structures. Every backend serializes on write and
deserializes on read, so callers never share references with stored data.
An optional per-value quota mirrors the size limits of host storage areas.
"""

import asyncio
import json
import os
import sqlite3
from contextlib import closing
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

from ..core.config import HistoryConfig, get_history_path
from ..core.exceptions import QuotaExceededError, StorageError
from ..core.logging import get_logger

logger = get_logger(__name__)


class KeyValueStorage(ABC):
    """Async key-value store with an optional per-value size quota."""

    def __init__(self, quota_bytes: Optional[int] = None) -> None:
        self.quota_bytes = quota_bytes

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or None if the key is absent."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store a value, replacing any previous one."""
        pass

    def _serialize(self, key: str, value: Any) -> str:
        try:
            serialized = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Value for '{key}' is not JSON serializable: {e}")

        size = len(serialized.encode("utf-8"))
        if self.quota_bytes is not None and size > self.quota_bytes:
            raise QuotaExceededError(
                f"Value for '{key}' exceeds storage quota", size, self.quota_bytes
            )
        return serialized

    @staticmethod
    def _deserialize(key: str, raw: str) -> Any:
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError(f"Corrupt value stored under '{key}': {e}")


class MemoryStorage(KeyValueStorage):
    """Process-local storage, mainly for tests and ephemeral sessions."""

    def __init__(self, quota_bytes: Optional[int] = None) -> None:
        super().__init__(quota_bytes)
        self._data: Dict[str, str] = {}
        self.writes = 0

    async def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        if raw is None:
            return None
        return self._deserialize(key, raw)

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = self._serialize(key, value)
        self.writes += 1


class JSONFileStorage(KeyValueStorage):
    """
    All keys in a single JSON document on disk.

    Writes go to a temporary file that atomically replaces the document.
    """

    def __init__(self, path: Path, quota_bytes: Optional[int] = None) -> None:
        super().__init__(quota_bytes)
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _read_document(self) -> Dict[str, Any]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as e:
            raise StorageError(f"Invalid JSON in {self.path}: {e}")
        except OSError as e:
            raise StorageError(f"Failed to read {self.path}: {e}")

        if not isinstance(document, dict):
            raise StorageError(f"Unexpected document layout in {self.path}")
        return document

    def _write_value(self, key: str, serialized: str) -> None:
        document = self._read_document()
        document[key] = json.loads(serialized)
        temp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, ensure_ascii=False)
            os.replace(temp_path, self.path)
        except OSError as e:
            raise StorageError(f"Failed to write {self.path}: {e}")

    async def get(self, key: str) -> Optional[Any]:
        document = await asyncio.to_thread(self._read_document)
        return document.get(key)

    async def set(self, key: str, value: Any) -> None:
        serialized = self._serialize(key, value)
        await asyncio.to_thread(self._write_value, key, serialized)


class SQLiteStorage(KeyValueStorage):
    """Key-value table in a SQLite database."""

    def __init__(self, db_path: Path, quota_bytes: Optional[int] = None) -> None:
        super().__init__(quota_bytes)
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize_database()

    def _get_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=30.0)
        conn.execute("PRAGMA journal_mode = WAL")
        return conn

    def _initialize_database(self) -> None:
        try:
            with closing(self._get_connection()) as conn, conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS kv_store (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                """
                )
            logger.info(f"SQLite history storage initialized at {self.db_path}")
        except sqlite3.Error as e:
            raise StorageError(f"Failed to initialize SQLite storage: {e}")

    def _select(self, key: str) -> Optional[str]:
        try:
            with closing(self._get_connection()) as conn, conn:
                row = conn.execute(
                    "SELECT value FROM kv_store WHERE key = ?", (key,)
                ).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read '{key}' from SQLite: {e}")
        return row[0] if row else None

    def _upsert(self, key: str, serialized: str) -> None:
        try:
            with closing(self._get_connection()) as conn, conn:
                conn.execute(
                    """
                    INSERT INTO kv_store (key, value, updated_at)
                    VALUES (?, ?, CURRENT_TIMESTAMP)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                """,
                    (key, serialized),
                )
        except sqlite3.Error as e:
            raise StorageError(f"Failed to write '{key}' to SQLite: {e}")

    async def get(self, key: str) -> Optional[Any]:
        raw = await asyncio.to_thread(self._select, key)
        if raw is None:
            return None
        return self._deserialize(key, raw)

    async def set(self, key: str, value: Any) -> None:
        serialized = self._serialize(key, value)
        await asyncio.to_thread(self._upsert, key, serialized)


def create_storage(config: HistoryConfig) -> KeyValueStorage:
    """
    Build the storage backend named by the history configuration.

    Args:
        config: History configuration

    Returns:
        Configured KeyValueStorage instance
    """
    if config.backend == "memory":
        return MemoryStorage(quota_bytes=config.quota_bytes)

    path = get_history_path(config)
    if config.backend == "json":
        return JSONFileStorage(path, quota_bytes=config.quota_bytes)
    return SQLiteStorage(path, quota_bytes=config.quota_bytes)

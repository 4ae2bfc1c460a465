"""
Courier Request History

Bounded request history with coalesced writes to durable key-value storage.
"""

from .coalescer import WriteCoalescer
from .storage import (
    JSONFileStorage,
    KeyValueStorage,
    MemoryStorage,
    SQLiteStorage,
    create_storage,
)
from .store import HistoryStore

__all__ = [
    "WriteCoalescer",
    "JSONFileStorage",
    "KeyValueStorage",
    "MemoryStorage",
    "SQLiteStorage",
    "create_storage",
    "HistoryStore",
]

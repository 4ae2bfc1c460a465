"""
Request History Store

Keeps a bounded, newest-first log of submitted requests and their outcomes.
Mutations update the in-memory working set immediately and are persisted as
full snapshots through a WriteCoalescer, so a burst of submissions costs a
single storage write.
"""

import json
import time
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from ..core.config import HistoryConfig
from ..core.exceptions import QuotaExceededError, StorageError
from ..core.logging import get_logger
from ..core.models import (
    ExecutionOutcome,
    HistoryRecord,
    HistoryStatus,
    RequestDescriptor,
    deserialize_model,
    serialize_model,
)
from .coalescer import WriteCoalescer
from .storage import KeyValueStorage, MemoryStorage

logger = get_logger(__name__)

SNAPSHOT_VERSION = 1

# Queued write operations: ("upsert", id), ("remove", id) or ("clear", None)
Operation = Tuple[str, Optional[str]]


def newest_first(records: List[HistoryRecord]) -> List[HistoryRecord]:
    """Order records newest first; ties keep the latest insertion first."""
    return sorted(
        reversed(records), key=lambda r: r.request.created_at, reverse=True
    )


def apply_retention(
    records: Dict[str, HistoryRecord], max_records: int
) -> List[str]:
    """Drop the oldest records beyond ``max_records``, returning dropped ids."""
    excess = len(records) - max_records
    if excess <= 0:
        return []
    oldest = sorted(records.values(), key=lambda r: r.request.created_at)
    dropped = [r.request_id for r in oldest[:excess]]
    for request_id in dropped:
        del records[request_id]
    return dropped


def shed_oldest(
    entries: List[Tuple[HistoryRecord, Dict[str, Any]]], overflow: int
) -> Set[str]:
    """
    Pick the oldest records whose serialized size covers ``overflow`` bytes.

    At least one record is always picked.
    """
    shed: Set[str] = set()
    freed = 0
    for record, data in sorted(entries, key=lambda e: e[0].request.created_at):
        # Each record also costs the ", " separating it from its neighbour
        freed += len(json.dumps(data, ensure_ascii=False).encode("utf-8")) + 2
        shed.add(record.request_id)
        if freed >= overflow:
            break
    return shed


class HistoryStore:
    """
    Bounded request history backed by a key-value storage.

    Args:
        storage: Durable storage backend, defaults to MemoryStorage
        storage_key: Key the snapshot is written under
        max_records: Retention limit
        flush_delay_ms: Coalescer delay before a flush
        max_batch_size: Queued operations that force an immediate flush
        read_cache_ttl_seconds: How long ``list()`` serves a cached snapshot
        clock: Monotonic clock used for the read cache
    """

    def __init__(
        self,
        storage: Optional[KeyValueStorage] = None,
        storage_key: str = "courier.history",
        max_records: int = 1000,
        flush_delay_ms: int = 100,
        max_batch_size: int = 50,
        read_cache_ttl_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_records < 1:
            raise ValueError("max_records must be at least 1")
        self.storage = storage or MemoryStorage()
        self.storage_key = storage_key
        self.max_records = max_records
        self.read_cache_ttl = read_cache_ttl_seconds
        self._clock = clock
        self._records: Dict[str, HistoryRecord] = {}
        self._loaded = False
        self._list_cache: Optional[Tuple[float, List[HistoryRecord]]] = None
        self._coalescer: WriteCoalescer[Operation] = WriteCoalescer(
            self._write_snapshot,
            delay_seconds=flush_delay_ms / 1000.0,
            max_batch=max_batch_size,
        )

    @classmethod
    def from_config(
        cls, config: HistoryConfig, storage: Optional[KeyValueStorage] = None
    ) -> "HistoryStore":
        """Build a store from history configuration."""
        if storage is None:
            from .storage import create_storage

            storage = create_storage(config)
        return cls(
            storage=storage,
            storage_key=config.storage_key,
            max_records=config.max_records,
            flush_delay_ms=config.flush_delay_ms,
            max_batch_size=config.max_batch_size,
            read_cache_ttl_seconds=config.read_cache_ttl_seconds,
        )

    @property
    def coalescer(self) -> WriteCoalescer:
        return self._coalescer

    async def _read_persisted(self) -> Dict[str, HistoryRecord]:
        snapshot = await self.storage.get(self.storage_key)
        records: Dict[str, HistoryRecord] = {}
        if snapshot is None:
            return records

        if not isinstance(snapshot, dict) or not isinstance(
            snapshot.get("records"), list
        ):
            logger.warning(f"Ignoring malformed history snapshot '{self.storage_key}'")
            return records

        for data in snapshot["records"]:
            try:
                record = deserialize_model(HistoryRecord, data)
            except ValueError as e:
                logger.warning(f"Skipping invalid history record: {e}")
                continue
            records[record.request_id] = record
        return records

    async def _ensure_loaded(self) -> bool:
        if self._loaded:
            return True
        try:
            persisted = await self._read_persisted()
        except StorageError as e:
            logger.error(f"Failed to load history: {e}")
            return False

        # Records touched before the load finished win over persisted copies
        merged = dict(persisted)
        for request_id, record in self._records.items():
            merged.pop(request_id, None)
            merged[request_id] = record
        self._records = merged
        apply_retention(self._records, self.max_records)
        self._loaded = True
        return True

    async def _write_snapshot(self, operations: List[Operation]) -> None:
        if not await self._ensure_loaded():
            raise StorageError("History could not be loaded before writing")

        entries = [(r, serialize_model(r)) for r in self._records.values()]
        dropped: Set[str] = set()
        while True:
            snapshot = {
                "version": SNAPSHOT_VERSION,
                "records": [data for _, data in entries],
            }
            try:
                await self.storage.set(self.storage_key, snapshot)
                break
            except QuotaExceededError as e:
                if not entries:
                    raise
                shed = shed_oldest(entries, e.size - e.quota)
                dropped.update(shed)
                entries = [(r, d) for r, d in entries if r.request_id not in shed]

        if dropped:
            for request_id in dropped:
                self._records.pop(request_id, None)
            self._list_cache = None
            logger.warning(
                f"History exceeded the storage quota; dropped {len(dropped)} "
                f"oldest records"
            )
        logger.debug(
            f"Persisted {len(entries)} history records "
            f"({len(operations)} operations)"
        )

    def _enqueue(self, operation: Operation) -> None:
        self._list_cache = None
        self._coalescer.add(operation)

    async def record(self, request: RequestDescriptor) -> HistoryRecord:
        """
        Add a pending record for a submitted request.

        Args:
            request: Request being submitted

        Returns:
            Copy of the stored record
        """
        await self._ensure_loaded()

        existing = self._records.get(request.id)
        if existing is not None:
            logger.warning(f"Request {request.id} is already recorded in history")
            return existing.model_copy(deep=True)

        record = HistoryRecord(request=request.model_copy(deep=True))
        self._records[request.id] = record
        self._enqueue(("upsert", request.id))

        for dropped in apply_retention(self._records, self.max_records):
            self._enqueue(("remove", dropped))

        return record.model_copy(deep=True)

    async def complete(self, request_id: str, outcome: ExecutionOutcome) -> bool:
        """
        Attach an outcome to a pending record.

        Returns:
            True if the record moved to a terminal state, False if it is
            unknown or already terminal
        """
        await self._ensure_loaded()

        record = self._records.get(request_id)
        if record is None:
            logger.warning(f"Cannot complete unknown history record {request_id}")
            return False
        if record.is_terminal:
            logger.warning(
                f"History record {request_id} is already {record.status.value}"
            )
            return False

        self._records[request_id] = record.model_copy(
            update={
                "outcome": outcome.model_copy(deep=True),
                "status": (
                    HistoryStatus.COMPLETED if outcome.success else HistoryStatus.FAILED
                ),
            }
        )
        self._enqueue(("upsert", request_id))
        return True

    async def get(self, request_id: str) -> Optional[HistoryRecord]:
        await self._ensure_loaded()
        record = self._records.get(request_id)
        return record.model_copy(deep=True) if record is not None else None

    async def remove(self, request_id: str) -> bool:
        await self._ensure_loaded()
        if self._records.pop(request_id, None) is None:
            return False
        self._enqueue(("remove", request_id))
        return True

    async def clear(self) -> None:
        self._records.clear()
        self._loaded = True
        self._enqueue(("clear", None))

    def _overlay(self, persisted: Dict[str, HistoryRecord]) -> Dict[str, HistoryRecord]:
        records = dict(persisted)
        for action, request_id in self._coalescer.unflushed():
            if action == "clear":
                records.clear()
            elif action == "remove":
                records.pop(request_id, None)
            elif action == "upsert":
                current = self._records.get(request_id)
                if current is not None:
                    records.pop(request_id, None)
                    records[request_id] = current
        return records

    async def list(self) -> List[HistoryRecord]:
        """
        Return every retained record, newest first.

        A snapshot is served from the read cache while it is fresh; otherwise
        durable storage is re-read and unflushed operations are layered on top.
        """
        now = self._clock()
        if self._list_cache is not None:
            cached_at, cached = self._list_cache
            if now - cached_at <= self.read_cache_ttl:
                return [r.model_copy(deep=True) for r in cached]

        await self._ensure_loaded()
        try:
            persisted = await self._read_persisted()
        except StorageError as e:
            logger.error(f"Failed to read history, serving working set: {e}")
            persisted = dict(self._records)

        records = self._overlay(persisted)
        apply_retention(records, self.max_records)
        ordered = newest_first(list(records.values()))
        self._list_cache = (now, ordered)
        return [r.model_copy(deep=True) for r in ordered]

    async def flush(self) -> bool:
        """Persist queued operations now."""
        return await self._coalescer.flush()

    async def close(self) -> bool:
        """Flush pending writes and stop the coalescer timer."""
        return await self._coalescer.close()

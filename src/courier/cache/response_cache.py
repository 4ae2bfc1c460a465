"""
Response Cache

Bounded, time-expiring store of successful outcomes keyed by request
fingerprint. Eviction is FIFO by insertion order; expired entries are removed
lazily when read.
"""

import hashlib
import json
import time
from collections import OrderedDict
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlsplit, urlunsplit

from ..core.logging import get_logger
from ..core.models import CacheEntry, ExecutionOutcome, RequestDescriptor
from ..processors.base import coerce_fields

logger = get_logger(__name__)

DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_url(url: str) -> str:
    """
    Normalize a URL for fingerprinting.

    Lowercases scheme and host, drops the default port and turns an empty
    path into ``/``. Query and fragment are kept as-is.
    """
    try:
        parts = urlsplit(url.strip())
        port = parts.port
    except ValueError:
        return url.strip()

    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    if ":" in host:
        host = f"[{host}]"
    netloc = host
    if parts.username is not None:
        userinfo = parts.username
        if parts.password is not None:
            userinfo = f"{userinfo}:{parts.password}"
        netloc = f"{userinfo}@{netloc}"
    if port is not None and port != DEFAULT_PORTS.get(scheme):
        netloc = f"{netloc}:{port}"

    return urlunsplit((scheme, netloc, parts.path or "/", parts.query, parts.fragment))


def fingerprint(request: RequestDescriptor) -> str:
    """
    Deterministic digest of method, normalized URL, headers and body.

    Header order does not matter: pairs are sorted after lowercasing names.
    """
    headers = sorted((name.lower(), value) for name, value in request.headers.items())
    if request.fields is not None:
        body: Any = {"fields": coerce_fields(request.fields)}
    else:
        body = {"raw": request.raw_body or ""}

    canonical = json.dumps(
        {
            "method": request.method.value,
            "url": normalize_url(request.url),
            "headers": headers,
            "content_type": (request.content_type or "").lower(),
            "body": body,
        },
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


@dataclass
class CacheStats:
    """Counters describing cache behaviour."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0


class ResponseCache:
    """
    Bounded TTL cache of execution outcomes.

    Every operation is synchronous, so check-evict-insert can never be
    interleaved with another task on the event loop. Outcomes are copied on
    the way in and out; callers never hold a reference to stored data.
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        max_entries: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._stats = CacheStats()

    @staticmethod
    def fingerprint(request: RequestDescriptor) -> str:
        return fingerprint(request)

    def get(self, key: str) -> Optional[CacheEntry]:
        """
        Look up a fingerprint.

        Returns:
            A copy of the entry, or None on miss or expiry
        """
        entry = self._entries.get(key)
        if entry is None:
            self._stats.misses += 1
            return None

        if self._clock() - entry.stored_at > self.ttl_seconds:
            del self._entries[key]
            self._stats.expirations += 1
            self._stats.misses += 1
            logger.debug(f"Cache entry expired: {key[:12]}")
            return None

        self._stats.hits += 1
        return entry.model_copy(deep=True)

    def put(self, key: str, outcome: ExecutionOutcome) -> bool:
        """
        Store a successful outcome.

        Failed outcomes are never cached so that a retry is not masked by a
        transient failure.

        Returns:
            True if the outcome was stored
        """
        if not outcome.success:
            return False

        if key in self._entries:
            # Re-inserting moves the entry to the newest position
            del self._entries[key]
        elif len(self._entries) >= self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            self._stats.evictions += 1
            logger.debug(f"Cache full, evicted oldest entry: {evicted[:12]}")

        self._entries[key] = CacheEntry(
            fingerprint=key,
            outcome=outcome.model_copy(deep=True),
            stored_at=self._clock(),
        )
        return True

    def invalidate(self, key: str) -> bool:
        """Remove one entry; returns True if it existed."""
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Remove every entry. Safe to call repeatedly."""
        if self._entries:
            logger.info(f"Clearing {len(self._entries)} cached responses")
        self._entries.clear()

    def stats(self) -> Dict[str, int]:
        return {**asdict(self._stats), "size": len(self._entries)}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

"""
Best-effort result cache for sources.

One storage record per composite key holds one entry per argument
vector::

    {"<json of args>": {"data": ..., "timestamp": <epoch ms>},
     "default":        {"data": ..., "timestamp": <epoch ms>}}

Every storage, serialization or parse failure is logged as a warning and
degrades to "no cache" for that operation. Nothing here raises into the
source, so caching stays an accelerator and never a correctness
dependency.

Concurrent writers to the same composite key (for example two sources in
different processes sharing a backend) race on the read-modify-write of
the record; the last full record written wins.
"""

import logging
import time
from collections.abc import Callable, Sequence
from typing import Any

from .config import resolve_key_prefix, resolve_storage
from .constants import RECORD_DATA_FIELD, RECORD_TIMESTAMP_FIELD
from .keys import compute_key, serialize_args
from .metrics import NoOpMetrics
from .protocols import CacheMetrics, Serializer, StorageBackend
from .storage.base import call_storage

logger = logging.getLogger(__name__)

# Returned by read() on a miss, so cached falsy values still count as hits
MISS = object()


def _now_ms() -> float:
    return time.time() * 1000


class CacheManager:
    """Reads, writes and evicts the cache record of one source.

    Attributes:
        key: Composite key ``{prefix}-{name}`` of the record
        ttl_ms: Entry lifetime in milliseconds
    """

    def __init__(
        self,
        name: str,
        storage: StorageBackend,
        ttl_ms: float,
        prefix: str,
        serializer: Serializer,
        metrics: CacheMetrics | None = None,
        clock: Callable[[], float] = _now_ms,
    ) -> None:
        """Initialize the manager.

        Args:
            name: Logical cache name
            storage: Storage backend holding the record
            ttl_ms: Entry lifetime in milliseconds
            prefix: Composite key prefix
            serializer: Record serializer
            metrics: Metrics collector (no-op if None)
            clock: Returns the current time in epoch milliseconds

        Raises:
            CacheKeyError: If name is empty (raised by ``compute_key``)
        """
        self._key = compute_key(prefix, name)
        self._storage = storage
        self._ttl_ms = ttl_ms
        self._serializer = serializer
        self._metrics = metrics or NoOpMetrics()
        self._clock = clock

    @property
    def key(self) -> str:
        return self._key

    @property
    def ttl_ms(self) -> float:
        return self._ttl_ms

    @property
    def storage(self) -> StorageBackend:
        return self._storage

    def _warn(self, operation: str, error: Exception) -> None:
        logger.warning(
            "Cache %s failed for key '%s': %s (%s)",
            operation,
            self._key,
            error,
            type(error).__name__,
            extra={"operation": operation, "cache_key": self._key},
        )
        self._metrics.record_error(self._key, error)

    async def _load_record(self) -> dict[str, Any]:
        raw = await call_storage(self._storage.get_item(self._key))
        if not raw:
            return {}
        record = self._serializer.deserialize(raw)
        if not isinstance(record, dict):
            raise TypeError(f"Expected a record object, got {type(record).__name__}")
        return record

    def _is_fresh(self, entry: Any) -> bool:
        if not isinstance(entry, dict):
            return False
        timestamp = entry.get(RECORD_TIMESTAMP_FIELD)
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            return False
        return self._clock() - timestamp <= self._ttl_ms

    async def read(self, args: Sequence[Any]) -> Any:
        """Look up the cached value for an argument vector.

        Args:
            args: Argument vector of the call

        Returns:
            The cached value, or ``MISS`` if absent, expired, stored as
            None, or the lookup failed
        """
        start_time = time.perf_counter()

        try:
            sub_key = serialize_args(args)
            record = await self._load_record()
        except Exception as e:
            self._warn("read", e)
            return MISS

        entry = record.get(sub_key)
        latency = time.perf_counter() - start_time

        if not self._is_fresh(entry) or entry.get(RECORD_DATA_FIELD) is None:
            logger.debug(f"Cache miss for key '{self._key}' sub-key {sub_key}")
            self._metrics.record_miss(self._key, latency)
            return MISS

        logger.debug(f"Cache hit for key '{self._key}' sub-key {sub_key}")
        self._metrics.record_hit(self._key, latency)
        return entry[RECORD_DATA_FIELD]

    async def write(self, args: Sequence[Any], value: Any) -> bool:
        """Store a value for an argument vector, keeping sibling entries.

        An unreadable existing record is replaced by a fresh one.

        Args:
            args: Argument vector of the call
            value: Producer result to cache

        Returns:
            True if the record was written, False on any failure
        """
        try:
            sub_key = serialize_args(args)
        except Exception as e:
            self._warn("write", e)
            return False

        try:
            record = await self._load_record()
        except Exception as e:
            self._warn("read", e)
            record = {}

        record[sub_key] = {RECORD_DATA_FIELD: value, RECORD_TIMESTAMP_FIELD: self._clock()}

        try:
            text = self._serializer.serialize(record)
            await call_storage(self._storage.set_item(self._key, text))
        except Exception as e:
            self._warn("write", e)
            return False

        logger.debug(f"Cache write for key '{self._key}' sub-key {sub_key}")
        self._metrics.record_write(self._key, len(text))
        return True

    async def evict(self) -> bool:
        """Remove the whole record of this source.

        Returns:
            True if removed, False on failure
        """
        try:
            await call_storage(self._storage.remove_item(self._key))
        except Exception as e:
            self._warn("remove", e)
            return False

        logger.debug(f"Cache evicted key '{self._key}'")
        return True


async def invalidate(name: str, storage: StorageBackend | None = None, prefix: str | None = None) -> bool:
    """Remove the whole cache record of a logical cache name.

    Every argument vector cached under ``name`` is dropped at once.

    Args:
        name: Logical cache name; an empty name is a no-op
        storage: Storage backend (process default if None)
        prefix: Composite key prefix (process default if None)

    Returns:
        True if removed, False if name is empty or the removal failed
    """
    if not name:
        return False

    key = compute_key(resolve_key_prefix(prefix), name)
    try:
        await call_storage(resolve_storage(storage).remove_item(key))
    except Exception as e:
        logger.warning(
            "Cache invalidate failed for key '%s': %s (%s)",
            key,
            e,
            type(e).__name__,
            extra={"operation": "invalidate", "cache_key": key},
        )
        return False

    logger.debug(f"Invalidated cache key '{key}'")
    return True

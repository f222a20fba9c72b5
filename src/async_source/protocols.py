"""Protocols for extending async-source.

Defines the interfaces behind the pluggable parts of the cache layer:
- StorageBackend: Key/value storage for cache records
- Serializer: Encoding of cache records to text
- CacheMetrics: Collection of cache metrics
"""

from collections.abc import Awaitable
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class StorageBackend(Protocol):
    """Protocol for cache storage backends.

    Any object with these three methods can back a source's cache. Each
    method may be a plain function or a coroutine function; callers always
    await the result uniformly (see ``async_source.storage.call_storage``).

    The backend is treated as a simple key/value store. It may be shared
    between many sources; no cross-instance coordination is performed.

    Example:
        ```python
        class RedisStorage:
            def __init__(self, redis):
                self._redis = redis

            async def get_item(self, key: str) -> str | None:
                return await self._redis.get(key)

            async def set_item(self, key: str, value: str) -> None:
                await self._redis.set(key, value)

            async def remove_item(self, key: str) -> None:
                await self._redis.delete(key)
        ```
    """

    def get_item(self, key: str) -> "str | None | Awaitable[str | None]":
        """Return the stored text for ``key`` or None if absent."""
        ...

    def set_item(self, key: str, value: str) -> Any:
        """Store ``value`` under ``key``."""
        ...

    def remove_item(self, key: str) -> Any:
        """Remove ``key`` if present."""
        ...


@runtime_checkable
class Serializer(Protocol):
    """Protocol for cache record serializers.

    A record is a ``dict`` mapping argument sub-keys to
    ``{"data": ..., "timestamp": ...}`` entries. Storage backends only
    deal with text, so serializers must produce ``str``.

    Example:
        ```python
        import json

        class PlainJsonSerializer:
            def serialize(self, data: Any) -> str:
                return json.dumps(data)

            def deserialize(self, data: str) -> Any:
                return json.loads(data)
        ```
    """

    def serialize(self, data: Any) -> str:
        """Serialize a record to text.

        Raises:
            CacheSerializationError: If the record cannot be serialized
        """
        ...

    def deserialize(self, data: str) -> Any:
        """Deserialize text back to a record.

        Raises:
            CacheSerializationError: If the text is not a valid record
        """
        ...


@runtime_checkable
class CacheMetrics(Protocol):
    """Protocol for source and cache metrics collectors.

    Example:
        ```python
        class PrometheusMetrics:
            def record_hit(self, key: str, latency: float) -> None:
                cache_hits_total.labels(key=key).inc()
                cache_latency.labels(operation="hit").observe(latency)
        ```
    """

    def record_hit(self, key: str, latency: float) -> None:
        """Record a cache hit.

        Args:
            key: Composite cache key
            latency: Lookup latency in seconds
        """
        ...

    def record_miss(self, key: str, latency: float) -> None:
        """Record a cache miss.

        Args:
            key: Composite cache key
            latency: Lookup latency in seconds
        """
        ...

    def record_write(self, key: str, size: int) -> None:
        """Record a cache write.

        Args:
            key: Composite cache key
            size: Size of the written record in characters
        """
        ...

    def record_error(self, key: str, error: Exception) -> None:
        """Record a cache error.

        Args:
            key: Composite cache key
            error: Exception raised by the storage or serializer
        """
        ...

    def record_discard(self, key: str, stage: str) -> None:
        """Record a superseded attempt that was dropped.

        Args:
            key: Metrics key of the source
            stage: Where it was dropped: "debounce", "cache" or "producer"
        """
        ...

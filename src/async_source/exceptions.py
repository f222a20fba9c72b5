"""Exceptions for async-source."""


class AsyncSourceError(Exception):
    """Base error for async-source."""

    pass


class ConfigurationError(AsyncSourceError, ValueError):
    """Invalid source or cache configuration."""

    pass


class CacheError(AsyncSourceError):
    """Base error for cache operations."""

    def __init__(self, message: str, key: str | None = None) -> None:
        self.key = key
        super().__init__(message)


class CacheSerializationError(CacheError):
    """Record or argument serialization/deserialization failed."""

    pass


class CacheKeyError(CacheError):
    """Cache key is empty or invalid."""

    pass


class StorageError(CacheError):
    """Storage backend failed to complete an operation."""

    pass


class StorageConnectionError(StorageError):
    """Storage backend is unreachable."""

    pass

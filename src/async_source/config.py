"""
Configuration for sources and process-wide cache defaults.

Each cache setting of a source is resolved once, when the source is
created, with the following precedence:

1. Explicit ``SourceConfig`` field (highest precedence)
2. Process-wide value set through ``configure()``
3. Environment variable
4. Built-in default (lowest precedence)

Changing the process-wide defaults later does not affect sources that
were already created.
"""

import logging
import os
from dataclasses import dataclass, replace

from .constants import (
    DEFAULT_CACHE_TTL_MS,
    DEFAULT_DEBOUNCE_MS,
    DEFAULT_KEY_PREFIX,
    ENV_CACHE_PREFIX,
    ENV_CACHE_TTL_MS,
    ERROR_DEBOUNCE_INVALID,
    ERROR_KEY_PREFIX_EMPTY,
    ERROR_TTL_INVALID,
)
from .exceptions import ConfigurationError
from .protocols import CacheMetrics, Serializer, StorageBackend
from .serializer import JsonSerializer
from .storage.memory import MemoryStorage

logger = logging.getLogger(__name__)


def _validate_debounce_ms(debounce_ms: float) -> None:
    # bool is a subclass of int
    if isinstance(debounce_ms, bool) or not isinstance(debounce_ms, (int, float)) or debounce_ms < 0:
        raise ConfigurationError(ERROR_DEBOUNCE_INVALID.format(value=debounce_ms))


def _validate_ttl_ms(ttl_ms: float | None) -> None:
    if ttl_ms is None:
        return
    if isinstance(ttl_ms, bool) or not isinstance(ttl_ms, (int, float)) or ttl_ms <= 0:
        raise ConfigurationError(ERROR_TTL_INVALID.format(value=ttl_ms))


def _validate_key_prefix(key_prefix: str | None) -> None:
    if key_prefix is not None and not key_prefix.strip():
        raise ConfigurationError(ERROR_KEY_PREFIX_EMPTY)


@dataclass(frozen=True)
class SourceConfig:
    """Configuration of one ``AsyncSource``.

    Attributes:
        debounce_ms: Delay before a non-first, non-immediate call runs the producer
        cache_key: Logical cache name; ``None`` or empty disables caching.
            Results the serializer cannot encode are served but not cached
        cache_ttl_ms: Lifetime of cached entries (process default if None)
        cache_key_prefix: Composite key prefix (process default if None)
        storage: Storage backend (process default if None)
        serializer: Record serializer (process default if None)
        refresh_on_hit: Still run the producer after serving a cache hit
        metrics: Cache metrics collector (no-op if None)
    """

    debounce_ms: float = DEFAULT_DEBOUNCE_MS
    cache_key: str | None = None
    cache_ttl_ms: float | None = None
    cache_key_prefix: str | None = None
    storage: StorageBackend | None = None
    serializer: Serializer | None = None
    refresh_on_hit: bool = False
    metrics: CacheMetrics | None = None

    def __post_init__(self) -> None:
        _validate_debounce_ms(self.debounce_ms)
        _validate_ttl_ms(self.cache_ttl_ms)
        _validate_key_prefix(self.cache_key_prefix)

    @classmethod
    def from_debounce(cls, debounce_ms: float) -> "SourceConfig":
        """Build a configuration that only sets the debounce window."""
        return cls(debounce_ms=debounce_ms)

    @property
    def cache_enabled(self) -> bool:
        return bool(self.cache_key)


@dataclass(frozen=True)
class CacheDefaults:
    """Process-wide cache defaults.

    Fields left as None fall through to environment variables and then
    to the built-in defaults.
    """

    storage: StorageBackend | None = None
    ttl_ms: float | None = None
    key_prefix: str | None = None
    serializer: Serializer | None = None


# Shared by every source that does not bring its own storage
_builtin_storage = MemoryStorage()
_builtin_serializer = JsonSerializer()
_defaults = CacheDefaults()


def configure(
    storage: StorageBackend | None = None,
    ttl_ms: float | None = None,
    key_prefix: str | None = None,
    serializer: Serializer | None = None,
) -> CacheDefaults:
    """Set process-wide cache defaults.

    Only the given arguments are changed; the others keep their current
    value. Sources created afterwards pick the new values up.

    Args:
        storage: Default storage backend
        ttl_ms: Default entry lifetime in milliseconds
        key_prefix: Default composite key prefix
        serializer: Default record serializer

    Returns:
        The updated defaults

    Raises:
        ConfigurationError: If ttl_ms or key_prefix is invalid
    """
    global _defaults

    _validate_ttl_ms(ttl_ms)
    _validate_key_prefix(key_prefix)

    changes = {
        name: value
        for name, value in (
            ("storage", storage),
            ("ttl_ms", ttl_ms),
            ("key_prefix", key_prefix),
            ("serializer", serializer),
        )
        if value is not None
    }
    _defaults = replace(_defaults, **changes)
    logger.debug(f"Updated cache defaults: {sorted(changes)}")
    return _defaults


def reset_defaults() -> None:
    """Restore the built-in defaults and empty the built-in storage."""
    global _defaults
    _defaults = CacheDefaults()
    _builtin_storage.clear()


def get_defaults() -> CacheDefaults:
    """Return the effective defaults with every field resolved."""
    return CacheDefaults(
        storage=resolve_storage(),
        ttl_ms=resolve_ttl_ms(),
        key_prefix=resolve_key_prefix(),
        serializer=resolve_serializer(),
    )


def resolve_storage(explicit_value: StorageBackend | None = None) -> StorageBackend:
    if explicit_value is not None:
        return explicit_value
    if _defaults.storage is not None:
        return _defaults.storage
    return _builtin_storage


def resolve_serializer(explicit_value: Serializer | None = None) -> Serializer:
    if explicit_value is not None:
        return explicit_value
    if _defaults.serializer is not None:
        return _defaults.serializer
    return _builtin_serializer


def resolve_key_prefix(explicit_value: str | None = None) -> str:
    """Resolve the composite key prefix following precedence rules."""
    if explicit_value is not None:
        return explicit_value
    if _defaults.key_prefix is not None:
        return _defaults.key_prefix

    env_value = os.getenv(ENV_CACHE_PREFIX)
    if env_value and env_value.strip():
        return env_value

    return DEFAULT_KEY_PREFIX


def resolve_ttl_ms(explicit_value: float | None = None) -> float:
    """Resolve the entry lifetime following precedence rules."""
    if explicit_value is not None:
        return explicit_value
    if _defaults.ttl_ms is not None:
        return _defaults.ttl_ms

    env_value = os.getenv(ENV_CACHE_TTL_MS)
    if env_value:
        try:
            ttl_ms = float(env_value)
            _validate_ttl_ms(ttl_ms)
            return ttl_ms
        except ValueError:
            logger.warning(f"Ignoring invalid {ENV_CACHE_TTL_MS}={env_value!r}")

    return DEFAULT_CACHE_TTL_MS

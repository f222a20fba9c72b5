"""async-source: latest-call-wins async data sources with optional caching.

Wraps an async producer and keeps a consistent view of its latest outcome
under concurrent, repeated calls: bursts are debounced, superseded calls
are discarded, and results can be memoized in a pluggable storage.

Basic usage:
    ```python
    from async_source import AsyncSource

    users = AsyncSource(fetch_users)

    await users.update()
    users.data        # latest result
    users.is_loading  # True while a call is in flight
    users.is_fetched  # True once any call settled
    ```

With caching:
    ```python
    from async_source import AsyncSource, FileStorage, SourceConfig, configure, invalidate

    configure(storage=FileStorage(".cache"), ttl_ms=60_000)

    user = AsyncSource(fetch_user, config=SourceConfig(cache_key="user"))
    await user.update(42)  # served from the cache on the next run

    # Drop every cached argument vector of "user"
    await invalidate("user")
    ```
"""

__version__ = "0.1.0"

# Cache
from .cache import CacheManager, invalidate

# Configuration
from .config import CacheDefaults, SourceConfig, configure, get_defaults, reset_defaults

# Exceptions
from .exceptions import (
    AsyncSourceError,
    CacheError,
    CacheKeyError,
    CacheSerializationError,
    ConfigurationError,
    StorageConnectionError,
    StorageError,
)

# Keys
from .keys import compute_key, serialize_args

# Metrics
from .metrics import InMemoryMetrics, MetricsSnapshot, NoOpMetrics, OpenTelemetryMetrics

# Protocols (for extensibility)
from .protocols import CacheMetrics, Serializer, StorageBackend

# Sequencing
from .sequencer import RequestSequencer

# Serialization
from .serializer import JsonSerializer, MsgPackSerializer

# Main primitive
from .source import AsyncSource

# Storage
from .storage import DaprStateStorage, FileStorage, MemoryStorage

__all__ = [
    # Main primitive
    "AsyncSource",
    "RequestSequencer",
    # Configuration
    "CacheDefaults",
    "SourceConfig",
    "configure",
    "get_defaults",
    "reset_defaults",
    # Cache
    "CacheManager",
    "compute_key",
    "invalidate",
    "serialize_args",
    # Storage
    "DaprStateStorage",
    "FileStorage",
    "MemoryStorage",
    # Serialization
    "JsonSerializer",
    "MsgPackSerializer",
    # Metrics
    "InMemoryMetrics",
    "MetricsSnapshot",
    "NoOpMetrics",
    "OpenTelemetryMetrics",
    # Exceptions
    "AsyncSourceError",
    "CacheError",
    "CacheKeyError",
    "CacheSerializationError",
    "ConfigurationError",
    "StorageConnectionError",
    "StorageError",
    # Protocols
    "CacheMetrics",
    "Serializer",
    "StorageBackend",
]

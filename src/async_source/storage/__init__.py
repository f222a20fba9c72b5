"""
Storage backends for cached records.

Any object implementing ``get_item``, ``set_item`` and ``remove_item``
(sync or async) satisfies ``async_source.protocols.StorageBackend``. This
package ships three implementations:
- MemoryStorage: In-process dict, the default
- FileStorage: One file per key, survives restarts
- DaprStateStorage: Dapr State Store over the sidecar HTTP API
"""

from .base import call_storage
from .dapr import DEFAULT_DAPR_HTTP_PORT, DEFAULT_TIMEOUT_SECONDS, DaprStateStorage
from .file import FileStorage
from .memory import MemoryStorage

__all__ = [
    "DEFAULT_DAPR_HTTP_PORT",
    "DEFAULT_TIMEOUT_SECONDS",
    "DaprStateStorage",
    "FileStorage",
    "MemoryStorage",
    "call_storage",
]

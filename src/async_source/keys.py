"""
Cache key and argument sub-key generation.

A composite key ``{prefix}-{name}`` identifies one stored record. Inside
the record every argument vector gets its own sub-key: the compact JSON
of the normalized argument list, or ``"default"`` for zero-argument calls
so they never collide with a genuinely empty serialization.

Supported type conversions for argument normalization:
- datetime, date, time -> ISO 8601 string
- Decimal, UUID -> string
- bytes -> base64 string
- set, frozenset -> sorted list
- tuple -> list
- objects with ``__dict__`` -> normalized ``__dict__``
"""

import base64
import json
import logging
from collections.abc import Sequence
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any
from uuid import UUID

from .constants import DEFAULT_SUBKEY, KEY_SEPARATOR
from .exceptions import CacheKeyError, CacheSerializationError

logger = logging.getLogger(__name__)


def compute_key(prefix: str, name: str) -> str:
    """Build the composite key for a logical cache name.

    Args:
        prefix: Key prefix (process default or per source)
        name: Logical cache name

    Returns:
        Composite key in the form ``{prefix}-{name}``

    Raises:
        CacheKeyError: If name is empty
    """
    if not name:
        raise CacheKeyError("Cache name cannot be empty", key=name)
    return f"{prefix}{KEY_SEPARATOR}{name}"


def _normalize_special(obj: Any) -> Any | None:
    if isinstance(obj, (datetime, date, time)):
        return obj.isoformat()
    if isinstance(obj, (Decimal, UUID)):
        return str(obj)
    if isinstance(obj, bytes):
        return base64.b64encode(obj).decode("ascii")
    return None


def normalize_argument(obj: Any) -> Any:
    """Normalize an argument to a JSON-serializable, deterministic form.

    Args:
        obj: Argument value

    Returns:
        JSON-serializable equivalent

    Raises:
        CacheSerializationError: If obj contains unsupported types or
            references itself
    """
    return _normalize(obj, set())


def _normalize(obj: Any, active: set[int]) -> Any:
    if obj is None or isinstance(obj, (bool, int, float, str)):
        return obj

    special = _normalize_special(obj)
    if special is not None:
        return special

    # ids of the containers on the current path, shared references elsewhere are fine
    if id(obj) in active:
        raise CacheSerializationError(f"Argument of type '{type(obj).__name__}' references itself")
    active.add(id(obj))
    try:
        return _normalize_container(obj, active)
    finally:
        active.discard(id(obj))


def _normalize_container(obj: Any, active: set[int]) -> Any:
    if isinstance(obj, (set, frozenset)):
        # Sort for deterministic order, mixed types compared by type name first
        items = [_normalize(item, active) for item in obj]
        return sorted(items, key=lambda x: (type(x).__name__, json.dumps(x, sort_keys=True)))

    if isinstance(obj, (list, tuple)):
        return [_normalize(item, active) for item in obj]

    if isinstance(obj, dict):
        return {str(key): _normalize(value, active) for key, value in sorted(obj.items(), key=lambda kv: str(kv[0]))}

    if hasattr(obj, "__dict__"):
        return _normalize(vars(obj), active)

    raise CacheSerializationError(f"Argument of type '{type(obj).__name__}' is not serializable")


def serialize_args(args: Sequence[Any]) -> str:
    """Serialize an argument vector to a record sub-key.

    Zero-argument calls map to ``"default"``. Arguments that cannot be
    normalized degrade to a ``repr``-based sub-key (logged as a warning);
    if even that fails the ``"default"`` sub-key is used. Never raises.

    Args:
        args: Positional arguments of the call

    Returns:
        Sub-key string
    """
    if not args:
        return DEFAULT_SUBKEY

    try:
        normalized = normalize_argument(list(args))
        return json.dumps(normalized, separators=(",", ":"), sort_keys=True, ensure_ascii=False)
    except (CacheSerializationError, TypeError, ValueError, RecursionError) as e:
        logger.warning(
            "Arguments are not serializable, using repr sub-key: %s",
            e,
            extra={"operation": "serialize_args"},
        )

    try:
        return json.dumps([repr(arg) for arg in args], separators=(",", ":"), ensure_ascii=False)
    except Exception as e:
        logger.warning(
            "Argument repr failed, using default sub-key: %s",
            e,
            extra={"operation": "serialize_args"},
        )
        return DEFAULT_SUBKEY

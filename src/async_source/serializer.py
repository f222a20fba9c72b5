"""
Cache record serializers.

Records are stored as text so that any key/value backend can hold them:
- JsonSerializer: Default, produces the documented JSON record format
- MsgPackSerializer: Compact binary MessagePack, base64 encoded to text
"""

import base64
import binascii
import json
from typing import Any

import msgpack

from .exceptions import CacheSerializationError


class JsonSerializer:
    """JSON serializer for cache records.

    Produces compact JSON with sorted keys. Values that JSON cannot encode
    natively (datetime, UUID, Decimal, ...) are rejected rather than stored
    as strings, so a cached value always comes back with the type the
    producer returned.

    Example:
        ```python
        serializer = JsonSerializer()
        text = serializer.serialize({"default": {"data": [1, 2], "timestamp": 1700000000000}})
        record = serializer.deserialize(text)
        ```
    """

    def serialize(self, data: Any) -> str:
        """Serialize a record to JSON text.

        Raises:
            CacheSerializationError: If data cannot be encoded
        """
        try:
            return json.dumps(data, separators=(",", ":"), sort_keys=True, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise CacheSerializationError(f"JSON serialization failed: {e}") from e

    def deserialize(self, data: str) -> Any:
        """Deserialize JSON text to a record.

        Raises:
            CacheSerializationError: If data is not valid JSON text
        """
        if not isinstance(data, str):
            raise CacheSerializationError(f"Expected str, got {type(data).__name__}")

        try:
            return json.loads(data)
        except json.JSONDecodeError as e:
            raise CacheSerializationError(f"Invalid JSON data: {e}") from e


class MsgPackSerializer:
    """MessagePack serializer for cache records.

    MsgPack is more compact than JSON for large payloads. The packed bytes
    are base64 encoded since storage backends only deal with text.
    """

    def serialize(self, data: Any) -> str:
        """Serialize a record to base64 MsgPack text.

        Raises:
            CacheSerializationError: If data cannot be packed
        """
        try:
            packed = msgpack.packb(data, use_bin_type=True)
        except (TypeError, ValueError) as e:
            raise CacheSerializationError(f"MsgPack serialization failed: {e}") from e
        return base64.b64encode(packed).decode("ascii")

    def deserialize(self, data: str) -> Any:
        """Deserialize base64 MsgPack text to a record.

        Raises:
            CacheSerializationError: If data is not valid base64 MsgPack
        """
        if not isinstance(data, str):
            raise CacheSerializationError(f"Expected str, got {type(data).__name__}")

        try:
            packed = base64.b64decode(data.encode("ascii"), validate=True)
            return msgpack.unpackb(packed, raw=False)
        except (binascii.Error, UnicodeEncodeError) as e:
            raise CacheSerializationError(f"Invalid base64 data: {e}") from e
        except (msgpack.UnpackException, ValueError) as e:
            raise CacheSerializationError(f"Failed to unpack MsgPack data: {e}") from e

"""Storage backend for a Dapr State Store via the sidecar HTTP API."""

import asyncio
import json
import logging
import os
from typing import Any
from urllib.parse import quote

import httpx

from ..exceptions import CacheKeyError, StorageConnectionError, StorageError

logger = logging.getLogger(__name__)

# Dapr sidecar configuration
DEFAULT_DAPR_HTTP_PORT = 3500
DEFAULT_TIMEOUT_SECONDS = 5.0


def _get_dapr_url() -> str:
    """Return the sidecar base URL from the environment."""
    host = os.getenv("DAPR_HTTP_HOST", "127.0.0.1")
    port = os.getenv("DAPR_HTTP_PORT", str(DEFAULT_DAPR_HTTP_PORT))
    return f"http://{host}:{port}"


class DaprStateStorage:
    """Async storage backend for a Dapr State Store.

    Talks to the Dapr sidecar over HTTP with httpx, which lets several
    services share one cache through any Dapr-supported state store
    (Redis, PostgreSQL, Cosmos DB, ...).

    The Dapr state REST API:
    - GET /v1.0/state/{storename}/{key} - fetch value
    - POST /v1.0/state/{storename} - save value(s)
    - DELETE /v1.0/state/{storename}/{key} - delete value

    Records are saved as JSON strings so the stored text comes back
    unchanged.

    Attributes:
        store_name: Name of the Dapr state store component
        timeout: HTTP timeout in seconds
    """

    def __init__(
        self,
        store_name: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        dapr_url: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the storage.

        Args:
            store_name: Dapr state store name
            timeout: HTTP timeout in seconds
            dapr_url: Sidecar URL (read from env vars if not given)
            client: Preconfigured client, mostly for tests

        Raises:
            CacheKeyError: If store_name is empty
        """
        if not store_name:
            raise CacheKeyError("store_name cannot be empty")

        self._store_name = store_name
        self._timeout = timeout
        self._base_url = dapr_url or _get_dapr_url()
        self._client = client
        self._owns_client = client is None
        # Created lazily so instances can be built before an event loop exists
        self._client_lock: asyncio.Lock | None = None

    @property
    def store_name(self) -> str:
        return self._store_name

    @property
    def timeout(self) -> float:
        return self._timeout

    def _get_lock(self) -> asyncio.Lock:
        if self._client_lock is None:
            self._client_lock = asyncio.Lock()
        return self._client_lock

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            async with self._get_lock():
                if self._client is None:
                    self._client = httpx.AsyncClient(base_url=self._base_url, timeout=self._timeout)
        return self._client

    def _state_url(self, key: str | None = None) -> str:
        if key:
            return f"/v1.0/state/{self._store_name}/{quote(key, safe='')}"
        return f"/v1.0/state/{self._store_name}"

    def _decode_value(self, response: httpx.Response) -> str | None:
        try:
            value: Any = response.json()
        except json.JSONDecodeError:
            return response.text
        if value is None:
            return None
        if isinstance(value, str):
            return value
        # Values written by other clients may be raw JSON documents
        return json.dumps(value, separators=(",", ":"))

    async def get_item(self, key: str) -> str | None:
        """Fetch a stored value.

        Returns:
            Stored text, or None on miss or timeout

        Raises:
            StorageConnectionError: If the sidecar is unreachable
            StorageError: On unexpected HTTP status
        """
        if not key:
            raise CacheKeyError("Key cannot be empty", key=key)

        try:
            client = await self._get_client()
            response = await client.get(self._state_url(key))
        except httpx.ConnectError as e:
            raise StorageConnectionError(f"Could not connect to Dapr sidecar: {e}", key=key) from e
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout fetching key {key}: {e}")
            return None

        if response.status_code == 204 or not response.content:
            logger.debug(f"Dapr state miss for key: {key}")
            return None

        if response.status_code == 200:
            return self._decode_value(response)

        raise StorageError(f"Unexpected Dapr response: {response.status_code}", key=key)

    async def set_item(self, key: str, value: str) -> bool:
        """Save a value.

        Returns:
            True if saved, False on timeout

        Raises:
            StorageConnectionError: If the sidecar is unreachable
            StorageError: On unexpected HTTP status
        """
        if not key:
            raise CacheKeyError("Key cannot be empty", key=key)

        payload = [{"key": key, "value": value}]
        try:
            client = await self._get_client()
            response = await client.post(self._state_url(), json=payload)
        except httpx.ConnectError as e:
            raise StorageConnectionError(f"Could not connect to Dapr sidecar: {e}", key=key) from e
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout saving key {key}: {e}")
            return False

        if response.status_code in (200, 201, 204):
            logger.debug(f"Dapr state set for key: {key}")
            return True

        raise StorageError(f"Failed to save state: {response.status_code}", key=key)

    async def remove_item(self, key: str) -> bool:
        """Delete a value.

        Returns:
            True if deleted, False for an empty key or on transport error
        """
        if not key:
            return False

        try:
            client = await self._get_client()
            response = await client.delete(self._state_url(key))
        except httpx.HTTPError as e:
            logger.warning(f"Error deleting key {key}: {e}")
            return False

        success = response.status_code in (200, 204)
        if success:
            logger.debug(f"Dapr state delete for key: {key}")
        return success

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "DaprStateStorage":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

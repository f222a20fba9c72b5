"""
Unit tests for storage backends.

DaprStateStorage is exercised against httpx.MockTransport, so no sidecar
is needed.
"""

import json
from pathlib import Path
from unittest.mock import AsyncMock

import httpx
import pytest

from async_source.exceptions import CacheKeyError, StorageConnectionError, StorageError
from async_source.protocols import StorageBackend
from async_source.storage import DaprStateStorage, FileStorage, MemoryStorage, call_storage

DAPR_URL = "http://dapr.test:3500"


def make_dapr(handler) -> DaprStateStorage:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=DAPR_URL)
    return DaprStateStorage("statestore", client=client)


class TestCallStorage:
    """Test call_storage."""

    @pytest.mark.asyncio
    async def test_plain_value(self) -> None:
        """Plain values are returned as-is."""
        assert await call_storage("value") == "value"
        assert await call_storage(None) is None

    @pytest.mark.asyncio
    async def test_awaitable(self) -> None:
        """Awaitables are awaited."""
        get_item = AsyncMock(return_value="value")

        assert await call_storage(get_item("k")) == "value"


class TestMemoryStorage:
    """Test MemoryStorage."""

    def test_satisfies_protocol(self, storage: MemoryStorage) -> None:
        assert isinstance(storage, StorageBackend)

    def test_set_get_remove(self, storage: MemoryStorage) -> None:
        """Basic item lifecycle."""
        storage.set_item("k", "v")
        assert storage.get_item("k") == "v"
        assert "k" in storage

        storage.remove_item("k")

        assert storage.get_item("k") is None
        assert len(storage) == 0

    def test_remove_missing_is_noop(self, storage: MemoryStorage) -> None:
        storage.remove_item("missing")

    def test_clear_and_keys(self, storage: MemoryStorage) -> None:
        """clear() empties the storage."""
        storage.set_item("a", "1")
        storage.set_item("b", "2")
        assert sorted(storage.keys()) == ["a", "b"]
        assert sorted(storage) == ["a", "b"]

        storage.clear()

        assert storage.keys() == []
        assert repr(storage) == "MemoryStorage(items=0)"


class TestFileStorage:
    """Test FileStorage."""

    def test_creates_directory(self, tmp_path: Path) -> None:
        """Missing directories are created."""
        target = tmp_path / "nested" / "cache"

        storage = FileStorage(target)

        assert storage.directory == target
        assert target.is_dir()

    def test_set_get_remove(self, tmp_path: Path) -> None:
        """Basic item lifecycle."""
        storage = FileStorage(tmp_path)

        storage.set_item("async-source-users", '{"default":{}}')

        assert storage.get_item("async-source-users") == '{"default":{}}'

        storage.remove_item("async-source-users")

        assert storage.get_item("async-source-users") is None

    def test_missing_key(self, tmp_path: Path) -> None:
        """Absent keys read as None and remove silently."""
        storage = FileStorage(tmp_path)

        assert storage.get_item("missing") is None
        storage.remove_item("missing")

    def test_survives_new_instance(self, tmp_path: Path) -> None:
        """Records persist across instances."""
        FileStorage(tmp_path).set_item("k", "v")

        assert FileStorage(tmp_path).get_item("k") == "v"

    def test_any_key_is_valid(self, tmp_path: Path) -> None:
        """Keys with path separators map to plain file names."""
        storage = FileStorage(tmp_path)

        storage.set_item("../escape/ünïcode", "v")

        assert storage.get_item("../escape/ünïcode") == "v"
        files = list(tmp_path.iterdir())
        assert len(files) == 1
        assert files[0].parent == tmp_path
        assert files[0].suffix == ".json"

    def test_overwrite_leaves_no_temp_files(self, tmp_path: Path) -> None:
        storage = FileStorage(tmp_path)

        storage.set_item("k", "one")
        storage.set_item("k", "two")

        assert storage.get_item("k") == "two"
        assert len(list(tmp_path.iterdir())) == 1

    def test_empty_key(self, tmp_path: Path) -> None:
        with pytest.raises(CacheKeyError):
            FileStorage(tmp_path).get_item("")


class TestDaprStateStorageInit:
    """Test DaprStateStorage construction."""

    def test_empty_store_name(self) -> None:
        with pytest.raises(CacheKeyError):
            DaprStateStorage("")

    def test_url_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Sidecar URL is built from DAPR_HTTP_HOST and DAPR_HTTP_PORT."""
        monkeypatch.setenv("DAPR_HTTP_HOST", "sidecar")
        monkeypatch.setenv("DAPR_HTTP_PORT", "3600")

        storage = DaprStateStorage("statestore")

        assert storage._base_url == "http://sidecar:3600"
        assert storage.store_name == "statestore"
        assert storage.timeout == 5.0

    def test_default_url(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("DAPR_HTTP_HOST", raising=False)
        monkeypatch.delenv("DAPR_HTTP_PORT", raising=False)

        assert DaprStateStorage("statestore")._base_url == "http://127.0.0.1:3500"


class TestDaprStateStorageGet:
    """Test DaprStateStorage.get_item."""

    @pytest.mark.asyncio
    async def test_returns_saved_string(self) -> None:
        """A JSON string body is returned as the stored text."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json='{"default":{"data":1,"timestamp":1}}')

        storage = make_dapr(handler)

        assert await storage.get_item("async-source-users") == '{"default":{"data":1,"timestamp":1}}'
        assert seen[0].method == "GET"
        assert seen[0].url.path == "/v1.0/state/statestore/async-source-users"

    @pytest.mark.asyncio
    async def test_raw_json_document(self) -> None:
        """Documents saved by other clients are returned as compact JSON text."""
        storage = make_dapr(lambda request: httpx.Response(200, json={"default": {"data": 1}}))

        assert await storage.get_item("k") == '{"default":{"data":1}}'

    @pytest.mark.asyncio
    async def test_key_is_quoted(self) -> None:
        """Keys are URL-encoded into a single path segment."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(204)

        await make_dapr(handler).get_item("a/b c")

        assert "a%2Fb%20c" in str(seen[0].url)

    @pytest.mark.asyncio
    async def test_miss(self) -> None:
        """204 means the key is absent."""
        storage = make_dapr(lambda request: httpx.Response(204))

        assert await storage.get_item("k") is None

    @pytest.mark.asyncio
    async def test_unexpected_status(self) -> None:
        storage = make_dapr(lambda request: httpx.Response(500, text="boom"))

        with pytest.raises(StorageError) as exc_info:
            await storage.get_item("k")

        assert exc_info.value.key == "k"

    @pytest.mark.asyncio
    async def test_connection_error(self) -> None:
        """Unreachable sidecars raise StorageConnectionError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(StorageConnectionError):
            await make_dapr(handler).get_item("k")

    @pytest.mark.asyncio
    async def test_timeout_is_miss(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        assert await make_dapr(handler).get_item("k") is None


class TestDaprStateStorageSetRemove:
    """Test DaprStateStorage.set_item and remove_item."""

    @pytest.mark.asyncio
    async def test_set_posts_state_list(self) -> None:
        """Values are saved through the bulk state endpoint."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(204)

        assert await make_dapr(handler).set_item("k", "text") is True

        assert seen[0].method == "POST"
        assert seen[0].url.path == "/v1.0/state/statestore"
        assert json.loads(seen[0].content) == [{"key": "k", "value": "text"}]

    @pytest.mark.asyncio
    async def test_set_failure(self) -> None:
        storage = make_dapr(lambda request: httpx.Response(400))

        with pytest.raises(StorageError):
            await storage.set_item("k", "text")

    @pytest.mark.asyncio
    async def test_set_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.WriteTimeout("slow", request=request)

        assert await make_dapr(handler).set_item("k", "text") is False

    @pytest.mark.asyncio
    async def test_remove(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(204)

        assert await make_dapr(handler).remove_item("k") is True
        assert seen[0].method == "DELETE"

    @pytest.mark.asyncio
    async def test_remove_empty_key(self) -> None:
        storage = make_dapr(lambda request: httpx.Response(204))

        assert await storage.remove_item("") is False

    @pytest.mark.asyncio
    async def test_remove_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        assert await make_dapr(handler).remove_item("k") is False


class TestDaprStateStorageLifecycle:
    """Test client ownership."""

    @pytest.mark.asyncio
    async def test_injected_client_not_closed(self) -> None:
        """Clients passed in are owned by the caller."""
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(204)), base_url=DAPR_URL)

        async with DaprStateStorage("statestore", client=client) as storage:
            await storage.get_item("k")

        assert client.is_closed is False
        await client.aclose()

    @pytest.mark.asyncio
    async def test_owned_client_closed(self) -> None:
        """Clients created by the storage are closed by aclose()."""
        storage = DaprStateStorage("statestore", dapr_url=DAPR_URL)
        client = await storage._get_client()

        await storage.aclose()

        assert client.is_closed is True

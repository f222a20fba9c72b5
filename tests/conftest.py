"""Shared fixtures for async-source tests."""

import asyncio
from collections.abc import Iterator
from unittest.mock import Mock

import pytest

from async_source.config import reset_defaults
from async_source.storage import MemoryStorage


@pytest.fixture(autouse=True)
def clean_defaults(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Isolate tests from process-wide defaults and environment."""
    monkeypatch.delenv("ASYNC_SOURCE_CACHE_PREFIX", raising=False)
    monkeypatch.delenv("ASYNC_SOURCE_CACHE_TTL_MS", raising=False)
    reset_defaults()
    yield
    reset_defaults()


@pytest.fixture
def storage() -> MemoryStorage:
    """Fresh in-memory storage."""
    return MemoryStorage()


@pytest.fixture
def failing_storage() -> Mock:
    """Storage whose every operation raises."""
    backend = Mock()
    backend.get_item.side_effect = OSError("storage down")
    backend.set_item.side_effect = OSError("storage down")
    backend.remove_item.side_effect = OSError("storage down")
    return backend


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, now: float = 1_700_000_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def make_producer(delay: float = 0.0):
    """Build an async producer echoing its first argument after ``delay`` seconds."""
    calls: list[tuple] = []

    async def producer(*args):
        calls.append(args)
        await asyncio.sleep(delay)
        return args[0] if args else "value"

    producer.calls = calls  # type: ignore[attr-defined]
    return producer


@pytest.fixture
def producer_factory():
    """Factory for recording async producers."""
    return make_producer

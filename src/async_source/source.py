"""
AsyncSource: latest-call-wins wrapper around an async producer.

The source keeps the outcome of the most recent call of a producer
(``data``, ``is_loading``, ``is_fetched``) consistent while callers fire
overlapping calls. Bursts are debounced, older attempts are silently
discarded, and successful results can be memoized in a pluggable storage.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from .cache import MISS, CacheManager
from .config import SourceConfig, resolve_key_prefix, resolve_serializer, resolve_storage, resolve_ttl_ms
from .constants import ERROR_PRODUCER_NOT_CALLABLE, UPDATE_ONCE_POLL_MS
from .metrics import NoOpMetrics
from .sequencer import RequestSequencer

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _ignore_error(error: Exception) -> None:
    pass


@dataclass
class SourceState(Generic[T]):
    """Mutable state of a source, written only by the current attempt."""

    value: T | None = None
    pending: bool = False
    fetched: bool = False


class AsyncSource(Generic[T]):
    """Stateful view of the latest outcome of an async producer.

    Mutating methods (``update``, ``push``, ...) do their synchronous part
    right away, so ``is_loading`` is True as soon as they return, and hand
    back an ``asyncio.Task``. Await it to wait for the call to settle, or
    drop it to fire and forget. They must be called with a running event
    loop.

    Only the latest call may change the state. A call made while an older
    one is still in flight supersedes it: the older producer call runs to
    completion but its result or error is discarded.

    Producer errors never propagate out of the source. They are passed to
    ``error_handler`` once per failed attempt that is still current.

    Example:
        ```python
        async def fetch_user(user_id: int) -> dict:
            ...

        users = AsyncSource(
            fetch_user,
            error_handler=lambda e: print(f"failed: {e}"),
            config=SourceConfig(debounce_ms=200, cache_key="user", cache_ttl_ms=60_000),
        )

        users.update(1)
        users.update(2)      # supersedes the first call
        await users.update(3)
        users.data           # result of fetch_user(3)
        ```
    """

    def __init__(
        self,
        producer: Callable[..., Awaitable[T]],
        error_handler: Callable[[Exception], Any] | None = None,
        config: SourceConfig | None = None,
    ) -> None:
        """Initialize the source.

        Cache settings missing from ``config`` are resolved from the
        process-wide defaults now; later ``configure()`` calls do not
        affect this instance.

        Args:
            producer: Async function supplying fresh data
            error_handler: Called with each producer error of a current attempt
            config: Source configuration (defaults if None)

        Raises:
            TypeError: If producer is not callable
        """
        if not callable(producer):
            raise TypeError(ERROR_PRODUCER_NOT_CALLABLE.format(name=type(producer).__name__))

        self._producer = producer
        self._error_handler = error_handler or _ignore_error
        self._config = config or SourceConfig()
        self._state: SourceState[T] = SourceState()
        self._sequencer = RequestSequencer(self._config.debounce_ms)
        self._tasks: set[asyncio.Task[Any]] = set()
        self._writes: set[asyncio.Task[Any]] = set()
        self._metrics = self._config.metrics or NoOpMetrics()

        self._cache: CacheManager | None = None
        if self._config.cache_enabled:
            self._cache = CacheManager(
                name=self._config.cache_key or "",
                storage=resolve_storage(self._config.storage),
                ttl_ms=resolve_ttl_ms(self._config.cache_ttl_ms),
                prefix=resolve_key_prefix(self._config.cache_key_prefix),
                serializer=resolve_serializer(self._config.serializer),
                metrics=self._metrics,
            )
        self._metrics_key = self.cache_key or getattr(producer, "__qualname__", type(producer).__name__)

    @classmethod
    def with_debounce(
        cls,
        producer: Callable[..., Awaitable[T]],
        debounce_ms: float,
        error_handler: Callable[[Exception], Any] | None = None,
    ) -> "AsyncSource[T]":
        """Create a source that only customizes the debounce window."""
        return cls(producer, error_handler, SourceConfig.from_debounce(debounce_ms))

    # ========== State accessors ==========

    @property
    def data(self) -> T | None:
        """Result of the last successful call, None if none or cleared."""
        return self._state.value

    @property
    def is_loading(self) -> bool:
        """True while the current call has not settled."""
        return self._state.pending

    @property
    def is_fetched(self) -> bool:
        """True once any call has settled, until ``clear()``."""
        return self._state.fetched

    @property
    def config(self) -> SourceConfig:
        return self._config

    @property
    def cache_key(self) -> str | None:
        """Composite cache key, or None when caching is disabled."""
        return self._cache.key if self._cache is not None else None

    # ========== Mutating operations ==========

    def update(self, *args: Any) -> "asyncio.Future[None]":
        """Load fresh data."""
        return self._invoke(args)

    def update_if_empty(self, *args: Any) -> "asyncio.Future[None]":
        """Load fresh data unless a result is already held."""
        if self._state.value is not None:
            return self._done()
        return self._invoke(args)

    def update_once(self, *args: Any) -> "asyncio.Future[None]":
        """Load data at most once, even when called while a call is in flight.

        If a call is pending, waits for it to settle (polling every 100 ms)
        and then behaves like ``update_if_empty``.
        """
        if not self._state.pending:
            return self.update_if_empty(*args)
        return self._spawn(self._update_once_when_settled(args))

    def update_immediate(self, *args: Any) -> "asyncio.Future[None]":
        """Load fresh data without waiting for the debounce window."""
        return self._invoke(args, immediate=True)

    def push(self, on_success: Callable[[T], Any], *args: Any) -> "asyncio.Future[None]":
        """Load fresh data and pass the result to ``on_success``."""
        return self._invoke(args, on_success)

    def clear(self) -> None:
        """Reset the state and evict the cached record (best effort).

        Cache writes already in flight finish before the record is evicted,
        so they cannot store the cleared value again. The source stays
        usable; the next call is treated as a first call.
        """
        self._state = SourceState()
        self._sequencer.reset()
        if self._cache is None:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No running loop (e.g. clear() from synchronous code)
            asyncio.run(self._cache.evict())
            return

        pending_writes = [task for task in self._writes if not task.done()]
        self._spawn(self._evict_after(self._cache, pending_writes), loop)

    async def drain(self) -> None:
        """Wait until every call and background cache task has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ========== Request flow ==========

    def _invoke(
        self,
        args: Sequence[Any],
        on_success: Callable[[T], Any] | None = None,
        immediate: bool = False,
    ) -> "asyncio.Future[None]":
        loop = asyncio.get_running_loop()
        self._state.pending = True
        request_id, skip_debounce = self._sequencer.allocate(immediate)
        return self._spawn(self._request(request_id, skip_debounce, tuple(args), on_success), loop)

    async def _request(
        self,
        request_id: int,
        skip_debounce: bool,
        args: tuple[Any, ...],
        on_success: Callable[[T], Any] | None,
    ) -> None:
        await self._sequencer.wait(request_id, skip_debounce)
        if not self._sequencer.is_current(request_id):
            logger.debug(f"Request {request_id} superseded during debounce")
            self._metrics.record_discard(self._metrics_key, "debounce")
            return

        if self._cache is not None:
            cached = await self._cache.read(args)
            if not self._sequencer.is_current(request_id):
                logger.debug(f"Request {request_id} superseded during cache lookup")
                self._metrics.record_discard(self._metrics_key, "cache")
                return
            if cached is not MISS:
                self._settle(cached, on_success)
                if not self._config.refresh_on_hit:
                    return

        try:
            result = await self._producer(*args)
        except Exception as e:
            if self._sequencer.is_current(request_id):
                logger.debug(f"Request {request_id} failed: {type(e).__name__}: {e}")
                self._state.pending = False
                self._state.fetched = True
                self._state.value = None
                self._error_handler(e)
            else:
                self._metrics.record_discard(self._metrics_key, "producer")
            return

        if not self._sequencer.is_current(request_id):
            logger.debug(f"Discarding result of superseded request {request_id}")
            self._metrics.record_discard(self._metrics_key, "producer")
            return

        if self._cache is not None and result is not None:
            self._schedule_write(self._cache, args, result)
        self._settle(result, on_success)

    def _settle(self, value: T, on_success: Callable[[T], Any] | None) -> None:
        self._state.pending = False
        self._state.fetched = True
        self._state.value = value
        if on_success is not None:
            on_success(value)

    async def _evict_after(self, cache: CacheManager, pending_writes: list["asyncio.Task[Any]"]) -> None:
        if pending_writes:
            await asyncio.gather(*pending_writes, return_exceptions=True)
        await cache.evict()

    async def _update_once_when_settled(self, args: tuple[Any, ...]) -> None:
        while self._state.pending:
            await asyncio.sleep(UPDATE_ONCE_POLL_MS / 1000)
        await self.update_if_empty(*args)

    # ========== Task bookkeeping ==========

    def _spawn(
        self,
        coro: Coroutine[Any, Any, Any],
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> "asyncio.Task[Any]":
        task = (loop or asyncio.get_running_loop()).create_task(coro)
        # Keep a reference so fire-and-forget calls are not garbage collected
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _schedule_write(self, cache: CacheManager, args: tuple[Any, ...], value: T) -> None:
        task = self._spawn(cache.write(args, value))
        self._writes.add(task)
        task.add_done_callback(self._writes.discard)

    def _done(self) -> "asyncio.Future[None]":
        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        future.set_result(None)
        return future

    def __repr__(self) -> str:
        return (
            f"AsyncSource(producer={getattr(self._producer, '__qualname__', repr(self._producer))}, "
            f"debounce_ms={self._config.debounce_ms}, cache_key={self.cache_key!r}, "
            f"loading={self._state.pending}, fetched={self._state.fetched})"
        )

"""
Metrics collectors for source and cache events.

Every collector receives the same five events, each tagged with the
source's metrics key (its composite cache key, or the producer name for
uncached sources):

- hit / miss: a cache lookup answered, with its latency in seconds
- write: a record was stored, with its size in characters
- error: a cache operation failed and degraded to "no cache"
- discard: a superseded attempt was dropped at one of the stages in
  ``DISCARD_STAGES``
"""

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass
from threading import Lock

from opentelemetry import metrics as otel_metrics

logger = logging.getLogger(__name__)

DISCARD_STAGES = ("debounce", "cache", "producer")

HIT = "hit"
MISS = "miss"
WRITE = "write"
ERROR = "error"
DISCARD = "discard"


class NoOpMetrics:
    """Collector that drops every event (default)."""

    def record_hit(self, key: str, latency: float) -> None:
        pass

    def record_miss(self, key: str, latency: float) -> None:
        pass

    def record_write(self, key: str, size: int) -> None:
        pass

    def record_error(self, key: str, error: Exception) -> None:
        pass

    def record_discard(self, key: str, stage: str) -> None:
        pass


@dataclass(frozen=True)
class MetricsSnapshot:
    """Event counts for one metrics key, or for all of them."""

    hits: int = 0
    misses: int = 0
    writes: int = 0
    errors: int = 0
    discarded: int = 0
    lookup_seconds: float = 0.0

    @property
    def lookups(self) -> int:
        return self.hits + self.misses

    @property
    def hit_ratio(self) -> float:
        return self.hits / self.lookups if self.lookups else 0.0

    @property
    def avg_lookup_ms(self) -> float:
        return self.lookup_seconds / self.lookups * 1000 if self.lookups else 0.0


class InMemoryMetrics:
    """Thread-safe counters kept in process, handy in tests and debugging.

    Example:
        ```python
        metrics = InMemoryMetrics()
        users = AsyncSource(fetch_users, config=SourceConfig(cache_key="users", metrics=metrics))
        ...
        metrics.snapshot("async-source-users").hit_ratio
        ```
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._events: Counter[tuple[str, str]] = Counter()
        self._lookup_seconds: defaultdict[str, float] = defaultdict(float)
        self._discards_by_stage: Counter[str] = Counter()

    def _count(self, event: str, key: str) -> None:
        with self._lock:
            self._events[(event, key)] += 1

    def record_hit(self, key: str, latency: float) -> None:
        self._count(HIT, key)
        with self._lock:
            self._lookup_seconds[key] += latency

    def record_miss(self, key: str, latency: float) -> None:
        self._count(MISS, key)
        with self._lock:
            self._lookup_seconds[key] += latency

    def record_write(self, key: str, size: int) -> None:
        self._count(WRITE, key)

    def record_error(self, key: str, error: Exception) -> None:
        self._count(ERROR, key)
        logger.debug(f"Recorded cache error for key {key}: {type(error).__name__}")

    def record_discard(self, key: str, stage: str) -> None:
        self._count(DISCARD, key)
        with self._lock:
            self._discards_by_stage[stage] += 1

    def keys(self) -> list[str]:
        """Metrics keys that received at least one event."""
        with self._lock:
            return sorted({key for _, key in self._events})

    def discards_by_stage(self) -> dict[str, int]:
        with self._lock:
            return {stage: self._discards_by_stage[stage] for stage in DISCARD_STAGES}

    def snapshot(self, key: str | None = None) -> MetricsSnapshot:
        """Return the counts for ``key``, or summed over every key if None."""
        with self._lock:

            def total(event: str) -> int:
                return sum(n for (name, k), n in self._events.items() if name == event and key in (None, k))

            if key is None:
                seconds = sum(self._lookup_seconds.values())
            else:
                seconds = self._lookup_seconds.get(key, 0.0)

            return MetricsSnapshot(
                hits=total(HIT),
                misses=total(MISS),
                writes=total(WRITE),
                errors=total(ERROR),
                discarded=total(DISCARD),
                lookup_seconds=seconds,
            )

    def reset(self) -> None:
        with self._lock:
            self._events.clear()
            self._lookup_seconds.clear()
            self._discards_by_stage.clear()


class OpenTelemetryMetrics:
    """Collector that exports events through the OpenTelemetry API.

    Instruments:
    - ``async_source.events`` counter, attributes ``event`` and ``key``
      (plus ``stage`` for discards and ``error_type`` for errors)
    - ``async_source.cache.lookup.duration`` histogram in seconds,
      attribute ``outcome`` (hit or miss)
    - ``async_source.cache.record.size`` histogram in characters

    Without a configured ``MeterProvider`` the API hands out no-op
    instruments, so this collector is safe to enable unconditionally.
    """

    def __init__(self, meter_name: str = "async_source") -> None:
        meter = otel_metrics.get_meter(meter_name)
        self._events = meter.create_counter(
            "async_source.events",
            description="Source and cache events",
            unit="1",
        )
        self._lookup_duration = meter.create_histogram(
            "async_source.cache.lookup.duration",
            description="Duration of cache lookups",
            unit="s",
        )
        self._record_size = meter.create_histogram(
            "async_source.cache.record.size",
            description="Size of stored cache records",
            unit="{char}",
        )

    def record_hit(self, key: str, latency: float) -> None:
        self._events.add(1, {"event": HIT, "key": key})
        self._lookup_duration.record(latency, {"outcome": HIT, "key": key})

    def record_miss(self, key: str, latency: float) -> None:
        self._events.add(1, {"event": MISS, "key": key})
        self._lookup_duration.record(latency, {"outcome": MISS, "key": key})

    def record_write(self, key: str, size: int) -> None:
        self._events.add(1, {"event": WRITE, "key": key})
        self._record_size.record(size, {"key": key})

    def record_error(self, key: str, error: Exception) -> None:
        self._events.add(1, {"event": ERROR, "key": key, "error_type": type(error).__name__})

    def record_discard(self, key: str, stage: str) -> None:
        self._events.add(1, {"event": DISCARD, "key": key, "stage": stage})

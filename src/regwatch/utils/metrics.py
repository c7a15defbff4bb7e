"""
Process-wide counters and latency stats.

Crawling, the pipeline, the scheduler and retrieval all report into one
shared Metrics object; the CLI prints its summary after a drain.
"""

import threading
import time
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import ClassVar, Iterator


@dataclass
class TimingStats:
    """Running count, total and extremes of a latency in milliseconds."""

    count: int = 0
    total_ms: float = 0.0
    min_ms: float = 0.0
    max_ms: float = 0.0

    @property
    def avg_ms(self) -> float:
        return self.total_ms / self.count if self.count else 0.0

    def add(self, duration_ms: float) -> None:
        self.min_ms = duration_ms if not self.count else min(self.min_ms, duration_ms)
        self.max_ms = max(self.max_ms, duration_ms)
        self.total_ms += duration_ms
        self.count += 1

    def to_dict(self) -> dict[str, float]:
        return {
            "count": self.count,
            "avg_ms": round(self.avg_ms, 2),
            "min_ms": round(self.min_ms, 2),
            "max_ms": round(self.max_ms, 2),
            "total_ms": round(self.total_ms, 2),
        }


class Metrics:
    """
    Thread-safe counter and latency registry.

    Example:
        >>> Metrics.get().increment("pages_fetched")
        >>> with Metrics.get().timer("search_latency_ms"):
        ...     hits = await engine.hybrid_search("breach notification")
        >>> Metrics.get().get_counter("pages_fetched")
        1
    """

    _instance: ClassVar["Metrics | None"] = None
    _instance_lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: Counter[str] = Counter()
        self._timings: dict[str, TimingStats] = {}

    @classmethod
    def get(cls) -> "Metrics":
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Drop all recorded values. Tests call this between cases."""
        with cls._instance_lock:
            cls._instance = None

    def increment(self, name: str, value: int = 1) -> int:
        with self._lock:
            self._counters[name] += value
            return self._counters[name]

    def get_counter(self, name: str) -> int:
        with self._lock:
            return self._counters[name]

    def observe(self, name: str, duration_ms: float) -> None:
        with self._lock:
            self._timings.setdefault(name, TimingStats()).add(duration_ms)

    def get_timing(self, name: str) -> TimingStats | None:
        """Copy of the stats recorded under ``name``, or None if nothing was."""
        with self._lock:
            stats = self._timings.get(name)
            return replace(stats) if stats is not None else None

    @contextmanager
    def timer(self, name: str) -> Iterator[None]:
        started = time.perf_counter()
        try:
            yield
        finally:
            self.observe(name, (time.perf_counter() - started) * 1000)

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "counters": dict(self._counters),
                "timings": {name: s.to_dict() for name, s in self._timings.items()},
            }

    def summary(self) -> str:
        snap = self.snapshot()
        if not snap["counters"] and not snap["timings"]:
            return "No metrics recorded"

        lines = []
        width = max(map(len, [*snap["counters"], *snap["timings"]]))
        for name in sorted(snap["counters"]):
            lines.append(f"{name:<{width}}  {snap['counters'][name]:>8,}")
        for name in sorted(snap["timings"]):
            t = snap["timings"][name]
            lines.append(
                f"{name:<{width}}  {t['count']:>8,}  "
                f"avg {t['avg_ms']:.1f}ms  max {t['max_ms']:.1f}ms"
            )
        return "\n".join(lines)


# Named recorders keep metric names in one place.


def increment_pages_fetched(count: int = 1) -> None:
    Metrics.get().increment("pages_fetched", count)


def increment_robots_blocked(count: int = 1) -> None:
    Metrics.get().increment("robots_blocked", count)


def increment_fetch_errors(count: int = 1) -> None:
    Metrics.get().increment("fetch_errors", count)


def increment_chunks_embedded(count: int = 1) -> None:
    Metrics.get().increment("chunks_embedded", count)


def record_pipeline_status(status: str) -> None:
    """Count a finished pipeline run as ``pipeline_success``, ``pipeline_partial`` or ``pipeline_failed``."""
    Metrics.get().increment(f"pipeline_{status}")


def record_job_outcome(outcome: str) -> None:
    """Count a job ending up completed, retried or failed as ``jobs_<outcome>``."""
    Metrics.get().increment(f"jobs_{outcome}")


@contextmanager
def time_search() -> Iterator[None]:
    with Metrics.get().timer("search_latency_ms"):
        yield


@contextmanager
def time_extraction() -> Iterator[None]:
    metrics = Metrics.get()
    metrics.increment("extraction_calls")
    with metrics.timer("extraction_latency_ms"):
        yield

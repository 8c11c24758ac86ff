"""Counters and timing for one engine invocation, plus run-level totals."""

import time
import tracemalloc
from dataclasses import asdict, dataclass, field, replace
from typing import Any


@dataclass(frozen=True)
class SyncRunReport:
    """Output contract of ``OrderImportService.import_batch``.

    ``skipped`` is ``processed - created - updated - failed``: matched rows
    left untouched under the skip-unless-dirty policy.
    """

    processed: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    skipped_no_sku: int = 0
    products_created: int = 0
    relation_failures: tuple[str, ...] = ()
    duration_seconds: float = 0.0
    peak_memory_delta_bytes: int = 0
    dry_run: bool = False

    @classmethod
    def empty(cls, dry_run: bool = False) -> "SyncRunReport":
        return cls(dry_run=dry_run)

    @property
    def orders_per_second(self) -> float:
        if self.duration_seconds <= 0:
            return 0.0
        return round(self.processed / self.duration_seconds, 2)

    @property
    def peak_memory_mb(self) -> float:
        return round(self.peak_memory_delta_bytes / (1024 * 1024), 2)

    def with_timing(self, timer: "RunTimer") -> "SyncRunReport":
        return replace(
            self,
            duration_seconds=timer.elapsed,
            peak_memory_delta_bytes=timer.peak_memory_delta,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["relation_failures"] = list(self.relation_failures)
        data["duration_seconds"] = round(self.duration_seconds, 3)
        data["orders_per_second"] = self.orders_per_second
        data["peak_memory_mb"] = self.peak_memory_mb
        return data


class RunTimer:
    """Wall-clock time and peak traced-heap growth between ``start()`` and ``stop()``.

    Starts ``tracemalloc`` when nobody else has, and stops it again on
    ``stop()``.
    """

    def __init__(self):
        self._started: float | None = None
        self._stopped: float | None = None
        self._owns_tracing = False
        self._heap_start = 0
        self._heap_peak = 0

    def start(self) -> "RunTimer":
        if not tracemalloc.is_tracing():
            tracemalloc.start()
            self._owns_tracing = True
        tracemalloc.reset_peak()
        self._heap_start, _ = tracemalloc.get_traced_memory()
        self._heap_peak = self._heap_start
        self._stopped = None
        self._started = time.perf_counter()
        return self

    def stop(self) -> "RunTimer":
        self._stopped = time.perf_counter()
        if tracemalloc.is_tracing():
            _, self._heap_peak = tracemalloc.get_traced_memory()
        if self._owns_tracing:
            tracemalloc.stop()
            self._owns_tracing = False
        return self

    def __enter__(self) -> "RunTimer":
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.stop()

    @property
    def elapsed(self) -> float:
        if self._started is None:
            return 0.0
        end = self._stopped if self._stopped is not None else time.perf_counter()
        return end - self._started

    @property
    def peak_memory_delta(self) -> int:
        return max(0, self._heap_peak - self._heap_start)


@dataclass
class RunTotals:
    """Accumulates batch reports across the pages of one sync run."""

    batches: int = 0
    processed: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    skipped_no_sku: int = 0
    products_created: int = 0
    relation_failures: int = 0
    peak_memory_delta_bytes: int = 0
    started_at: float = field(default_factory=time.perf_counter)

    def add(self, report: SyncRunReport) -> None:
        self.batches += 1
        self.processed += report.processed
        self.created += report.created
        self.updated += report.updated
        self.skipped += report.skipped
        self.failed += report.failed
        self.skipped_no_sku += report.skipped_no_sku
        self.products_created += report.products_created
        self.relation_failures += len(report.relation_failures)
        self.peak_memory_delta_bytes = max(
            self.peak_memory_delta_bytes, report.peak_memory_delta_bytes
        )

    @property
    def elapsed_seconds(self) -> float:
        return time.perf_counter() - self.started_at

    @property
    def orders_per_second(self) -> float:
        elapsed = self.elapsed_seconds
        if elapsed <= 0:
            return 0.0
        return round(self.processed / elapsed, 2)

    def to_dict(self) -> dict[str, Any]:
        return {
            "batches": self.batches,
            "processed": self.processed,
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "failed": self.failed,
            "skipped_no_sku": self.skipped_no_sku,
            "products_created": self.products_created,
            "relation_failures": self.relation_failures,
            "elapsed_seconds": round(self.elapsed_seconds, 2),
            "orders_per_second": self.orders_per_second,
            "peak_memory_mb": round(self.peak_memory_delta_bytes / (1024 * 1024), 2),
        }

"""Run-scoped progress state with percentage and ETA derivation."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import timedelta
from threading import Lock
from typing import Iterable

# Share of the progress bar credited once listing is complete.
ENUMERATION_WEIGHT = 20.0


@dataclass(frozen=True)
class FailureRecord:
    """One key the provider refused to delete."""

    code: str
    key: str
    message: str

    def as_row(self) -> str:
        return f"{self.code}\t{self.key}\t{self.message}"


@dataclass(frozen=True)
class ProgressSnapshot:
    """Immutable view of the tracker at one instant."""

    total_keys: int
    deleted: int
    failed: int
    remaining: int
    percent: float
    average_latency: float
    eta: timedelta
    active_batches: int
    total_bytes: int
    enumeration_complete: bool
    throttled: bool


@dataclass
class ProgressTracker:
    """
    Thread-safe aggregation point for listing pages and batch completions.

    All updates take the lock for a constant amount of work, once per page or
    per batch, never per key.

    Attributes:
        batch_size: Keys per delete batch, used for the ETA.
        concurrency: Number of batches in flight at once, used for the ETA.
        sample_window: Capacity of the batch latency window.
    """

    batch_size: int
    concurrency: int
    sample_window: int = 1000
    total_keys: int = 0
    keys_deleted: int = 0
    keys_failed: int = 0
    total_bytes: int = 0
    active_batches: int = 0
    retried_batches: int = 0
    enumeration_complete: bool = False
    throttled: bool = False
    failures: list[FailureRecord] = field(default_factory=list)
    latency_samples: deque[float] = field(init=False, repr=False)
    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.latency_samples = deque(maxlen=self.sample_window)

    def record_page(self, key_count: int, byte_count: int) -> None:
        """Thread-safe accounting of one listing page."""
        with self._lock:
            self.total_keys += key_count
            self.total_bytes += byte_count

    def finish_enumeration(self) -> None:
        with self._lock:
            self.enumeration_complete = True

    def batch_started(self) -> None:
        with self._lock:
            self.active_batches += 1

    def batch_finished(self) -> None:
        with self._lock:
            self.active_batches -= 1

    def record_retry(self) -> None:
        """Note a batch that hit a retryable condition."""
        with self._lock:
            self.retried_batches += 1
            self.throttled = True

    def record_completion(
        self,
        deleted: int,
        failures: Iterable[FailureRecord],
        duration: float,
    ) -> None:
        """
        Thread-safe accounting of one non-retryable batch completion.

        Args:
            deleted: Number of keys the provider confirmed as deleted.
            failures: Per-key failures reported for the batch.
            duration: Wall-clock duration of the delete call in seconds.
        """
        failures = list(failures)
        with self._lock:
            self.keys_deleted += deleted
            self.keys_failed += len(failures)
            self.failures.extend(failures)
            self.latency_samples.append(duration)
            self.throttled = False

    def record_failures(self, failures: Iterable[FailureRecord]) -> None:
        """Count keys as failed without a provider response, e.g. after retries ran out."""
        failures = list(failures)
        with self._lock:
            self.keys_failed += len(failures)
            self.failures.extend(failures)

    def failure_log(self) -> list[FailureRecord]:
        with self._lock:
            return list(self.failures)

    def snapshot(self) -> ProgressSnapshot:
        """Return a consistent, immutable view of the current progress."""
        with self._lock:
            total = self.total_keys
            deleted = self.keys_deleted
            failed = self.keys_failed
            samples = list(self.latency_samples)
            active = self.active_batches
            total_bytes = self.total_bytes
            listed = self.enumeration_complete
            throttled = self.throttled

        remaining = total - deleted - failed
        average_latency = sum(samples) / len(samples) if samples else 0.0

        percent = 0.0
        eta = timedelta(0)
        if listed:
            if remaining == 0:
                percent = 100.0
            else:
                processed = total - remaining
                percent = ENUMERATION_WEIGHT + (100.0 - ENUMERATION_WEIGHT) * (
                    processed / total
                )
            if remaining > 0 and samples:
                eta = timedelta(
                    seconds=average_latency * (remaining / self.batch_size) / self.concurrency
                )

        return ProgressSnapshot(
            total_keys=total,
            deleted=deleted,
            failed=failed,
            remaining=remaining,
            percent=percent,
            average_latency=average_latency,
            eta=eta,
            active_batches=active,
            total_bytes=total_bytes,
            enumeration_complete=listed,
            throttled=throttled,
        )

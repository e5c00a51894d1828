"""Bounded-concurrency dispatch of delete batches with a FIFO retry queue."""

from __future__ import annotations

import logging
import time
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, Sequence

from .config import EmptierConfig
from .deleter import BatchDeleter, BatchResult
from .progress import FailureRecord, ProgressTracker

logger = logging.getLogger(__name__)

RETRY_LIMIT_CODE = "RetryLimitExceeded"


@dataclass(frozen=True)
class Batch:
    keys: tuple[str, ...]
    attempts: int = 0


@dataclass
class DispatchStats:
    """Counters for one deletion phase."""

    dispatched: int = 0
    retried: int = 0
    abandoned_keys: int = 0


class Scheduler:
    """
    Partitions keys into batches and keeps at most ``max_workers`` of them in flight.

    Batches that come back retryable are appended to a FIFO retry queue with
    their original key list and take priority over fresh batches. After each
    retryable result no new batch is issued until a cool-down has elapsed.
    With ``max_retries`` unset a batch is retried for as long as the provider
    keeps throttling it.

    Attributes:
        deleter: Executes individual batches.
        tracker: Run-scoped progress state.
        config: Batch size, concurrency and retry policy.
    """

    def __init__(
        self,
        deleter: BatchDeleter,
        tracker: ProgressTracker,
        config: EmptierConfig,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.deleter = deleter
        self.tracker = tracker
        self.config = config
        self._sleep = sleep
        self._clock = clock
        self._keys: Sequence[str] = ()
        self._cursor = 0
        self._retry_queue: deque[Batch] = deque()

    def _has_pending(self) -> bool:
        return bool(self._retry_queue) or self._cursor < len(self._keys)

    def _next_batch(self) -> Batch | None:
        if self._retry_queue:
            return self._retry_queue.popleft()
        if self._cursor >= len(self._keys):
            return None
        end = self._cursor + self.config.batch_size
        batch = Batch(tuple(self._keys[self._cursor : end]))
        self._cursor = min(end, len(self._keys))
        return batch

    def _cooldown(self, streak: int) -> float:
        """Pause before issuing new batches after ``streak`` consecutive retryable results."""
        delay = self.config.retry_delay * (self.config.backoff_factor ** (streak - 1))
        return min(delay, self.config.max_retry_delay)

    def _requeue(self, batch: Batch, stats: DispatchStats) -> None:
        max_retries = self.config.max_retries
        if max_retries is not None and batch.attempts >= max_retries:
            logger.warning(
                f"Giving up on batch of {len(batch.keys)} keys after "
                f"{batch.attempts} retries"
            )
            message = f"Still throttled after {batch.attempts} retries"
            self.tracker.record_failures(
                FailureRecord(RETRY_LIMIT_CODE, key, message) for key in batch.keys
            )
            stats.abandoned_keys += len(batch.keys)
            return

        self._retry_queue.append(Batch(batch.keys, batch.attempts + 1))
        stats.retried += 1

    def run(self, bucket_name: str, keys: Sequence[str]) -> DispatchStats:
        """
        Delete every key, returning once no work is queued or in flight.

        Args:
            bucket_name: Name of the bucket.
            keys: Enumerated keys, without duplicates.

        Returns:
            Dispatch counters for the run.

        Raises:
            ProviderError: On the first fatal batch outcome. No further batch
                is dispatched once it is seen.
        """
        self._keys = keys
        self._cursor = 0
        self._retry_queue.clear()

        stats = DispatchStats()
        max_workers = self.config.max_workers
        in_flight: dict[Future[BatchResult], Batch] = {}

        total_batches = -(-len(keys) // self.config.batch_size)
        logger.info(
            f"Deleting {len(keys)} objects in {total_batches} batches "
            f"with {max_workers} workers"
        )

        executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="delete-batch"
        )
        try:
            self._dispatch(executor, bucket_name, in_flight, stats)
        except BaseException:
            # Batches still in flight are abandoned and no longer counted as active.
            for _ in in_flight:
                self.tracker.batch_finished()
            executor.shutdown(wait=False, cancel_futures=True)
            raise
        executor.shutdown()
        return stats

    def _dispatch(
        self,
        executor: ThreadPoolExecutor,
        bucket_name: str,
        in_flight: dict[Future[BatchResult], Batch],
        stats: DispatchStats,
    ) -> None:
        max_workers = self.config.max_workers
        resume_at = 0.0
        streak = 0

        while True:
            while len(in_flight) < max_workers and self._clock() >= resume_at:
                batch = self._next_batch()
                if batch is None:
                    break
                self.tracker.batch_started()
                future = executor.submit(self.deleter.delete_batch, bucket_name, batch.keys)
                in_flight[future] = batch
                stats.dispatched += 1

            if not in_flight:
                if not self._has_pending():
                    return
                self._sleep(max(0.0, resume_at - self._clock()))
                continue

            timeout = None
            if self._has_pending() and len(in_flight) < max_workers:
                timeout = max(0.0, resume_at - self._clock())

            done, _ = wait(in_flight, timeout=timeout, return_when=FIRST_COMPLETED)
            for future in done:
                batch = in_flight.pop(future)
                self.tracker.batch_finished()
                result = future.result()

                if result.fatal:
                    raise result.error
                if result.retryable:
                    streak += 1
                    resume_at = max(resume_at, self._clock() + self._cooldown(streak))
                    self._requeue(batch, stats)
                else:
                    streak = 0

"""Run orchestration: enumerate the bucket, then delete everything in it."""

from __future__ import annotations

import logging
import time
from contextlib import ExitStack
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, TextIO

import boto3
import botocore.config

from .config import EmptierConfig
from .deleter import BatchDeleter
from .enumerator import Enumerator
from .progress import FailureRecord, ProgressSnapshot, ProgressTracker
from .reporter import DebugLog, Reporter
from .scheduler import Scheduler

if TYPE_CHECKING:
    from boto3 import Session
    from mypy_boto3_s3 import S3Client

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    """Final outcome of one emptying run."""

    bucket_name: str
    snapshot: ProgressSnapshot
    elapsed: float
    batches_dispatched: int = 0
    batches_retried: int = 0
    failures: list[FailureRecord] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failures and self.snapshot.remaining == 0


class BucketEmptier:
    """
    Deletes every object in one bucket.

    Attributes:
        config: Configuration for the run.
        tracker: Progress state of the current (or last) run.
    """

    def __init__(
        self,
        config: EmptierConfig,
        s3_client: S3Client | None = None,
        stream: TextIO | None = None,
        live: bool = True,
    ) -> None:
        """
        Initialize the emptier.

        Args:
            config: Validated configuration.
            s3_client: Client to use instead of one built from the config.
            stream: Where live progress frames are written (stdout by default).
            live: Whether to draw live progress frames at all.
        """
        self.config = config
        self.tracker = self._new_tracker()
        self.stream = stream
        self.live = live
        self._session: Session | None = None
        self._boto_config: botocore.config.Config | None = None
        self._s3_client: S3Client | None = s3_client

    @property
    def session(self) -> Session:
        """Lazily create and cache boto3 session."""
        if self._session is None:
            self._session = boto3.session.Session(
                profile_name=self.config.profile,
                region_name=self.config.region,
            )
        return self._session

    @property
    def boto_config(self) -> botocore.config.Config:
        """Lazily create and cache boto configuration."""
        if self._boto_config is None:
            self._boto_config = botocore.config.Config(
                max_pool_connections=max(
                    self.config.connection_pool_size, self.config.max_workers
                ),
                retries={
                    "total_max_attempts": self.config.sdk_max_attempts,
                    "mode": "standard",
                },
            )
        return self._boto_config

    @property
    def s3_client(self) -> S3Client:
        """Lazily create and cache the S3 client."""
        if self._s3_client is None:
            self._s3_client = self.session.client(
                "s3", endpoint_url=self.config.endpoint_url, config=self.boto_config
            )
        return self._s3_client

    def _new_tracker(self) -> ProgressTracker:
        return ProgressTracker(
            batch_size=self.config.batch_size,
            concurrency=self.config.max_workers,
            sample_window=self.config.sample_window,
        )

    def empty_bucket(self) -> RunSummary:
        """
        Enumerate the bucket, then delete every listed object.

        Returns:
            RunSummary with the final snapshot and all per-key failures.

        Raises:
            ProviderError: On any fatal condition (authentication, missing
                bucket, region mismatch, access denied, unclassified error).
        """
        bucket_name = self.config.bucket
        self.tracker = self._new_tracker()
        start_time = time.time()

        reporter = Reporter(
            self.tracker,
            bucket_name,
            interval=self.config.report_interval,
            stream=self.stream,
            live=self.live,
        )

        with ExitStack() as stack:
            if self.config.debug_log:
                stack.enter_context(DebugLog(self.config.log_dir))
            reporter.start()
            stack.callback(reporter.stop)

            logger.info(f"Scanning bucket '{bucket_name}' for objects...")
            enumerator = Enumerator(self.s3_client, self.tracker, self.config.page_size)
            keys = enumerator.collect(bucket_name)

            deleter = BatchDeleter(
                self.s3_client,
                self.tracker,
                continue_on_access_denied=self.config.continue_on_access_denied,
            )
            stats = Scheduler(deleter, self.tracker, self.config).run(bucket_name, keys)

        summary = RunSummary(
            bucket_name=bucket_name,
            snapshot=self.tracker.snapshot(),
            elapsed=time.time() - start_time,
            batches_dispatched=stats.dispatched,
            batches_retried=stats.retried,
            failures=self.tracker.failure_log(),
        )
        self._log_statistics(summary)
        return summary

    def _log_statistics(self, summary: RunSummary) -> None:
        snapshot = summary.snapshot
        rate = snapshot.deleted / summary.elapsed if summary.elapsed > 0 else 0
        logger.info(f"{'=' * 50}")
        logger.info(f"Bucket '{summary.bucket_name}' emptying completed!")
        logger.info(f"Total objects listed: {snapshot.total_keys}")
        logger.info(f"Total objects deleted: {snapshot.deleted}")
        logger.info(f"Failed deletes: {snapshot.failed}")
        logger.info(f"Batches dispatched: {summary.batches_dispatched}")
        logger.info(f"Batches retried: {summary.batches_retried}")
        logger.info(f"Time elapsed: {summary.elapsed:.2f} seconds")
        logger.info(f"Average rate: {rate:.1f} objects/sec")
        logger.info(f"{'=' * 50}")

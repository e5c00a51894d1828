"""Bulk deletion of one batch of keys and classification of the outcome."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Sequence

import botocore.exceptions

from .errors import (
    ACCESS_DENIED_CODE,
    AccessDeniedError,
    AnomalousEmptyResponseError,
    ProviderError,
    classify,
)
from .progress import FailureRecord, ProgressTracker
from .reporter import DEBUG_LOGGER_NAME

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client

logger = logging.getLogger(__name__)
debug_log = logging.getLogger(DEBUG_LOGGER_NAME)


@dataclass
class BatchResult:
    """Outcome of one DeleteObjects call."""

    keys: tuple[str, ...]
    deleted_count: int = 0
    failures: list[FailureRecord] = field(default_factory=list)
    retryable: bool = False
    fatal: bool = False
    duration: float = 0.0
    error: ProviderError | None = None


class BatchDeleter:
    """
    Issues DeleteObjects requests and reports their results to the tracker.

    Attributes:
        s3_client: Client used for the delete calls.
        tracker: Run-scoped progress state.
        continue_on_access_denied: Record AccessDenied keys as ordinary
            failures instead of aborting the run.
    """

    def __init__(
        self,
        s3_client: S3Client,
        tracker: ProgressTracker,
        continue_on_access_denied: bool = False,
    ) -> None:
        self.s3_client = s3_client
        self.tracker = tracker
        self.continue_on_access_denied = continue_on_access_denied

    def delete_batch(self, bucket_name: str, keys: Sequence[str]) -> BatchResult:
        """
        Delete a batch of keys with a single request.

        Retryable outcomes (rate limiting, or a response that reports nothing
        for a non-empty batch) leave the tracker untouched so the caller can
        resubmit the same keys. Every other outcome is counted exactly once.

        Args:
            bucket_name: Name of the bucket.
            keys: Keys to delete, at most 1000.

        Returns:
            The classified BatchResult.

        Raises:
            ProviderError: For fatal provider errors other than AccessDenied
                entries inside a successful response.
        """
        keys = tuple(keys)
        start_time = time.monotonic()

        try:
            response = self.s3_client.delete_objects(
                Bucket=bucket_name,
                Delete={"Objects": [{"Key": key} for key in keys], "Quiet": False},
            )
        except (
            botocore.exceptions.ClientError,
            botocore.exceptions.BotoCoreError,
        ) as e:
            error = classify(e)
            if not error.retryable:
                raise error from e
            self._note_retryable(keys, f"Rate limit reached ({error.code})")
            return BatchResult(keys=keys, retryable=True, error=error)

        duration = time.monotonic() - start_time
        deleted = response.get("Deleted", [])
        errors = response.get("Errors", [])

        if keys and not deleted and not errors:
            self._note_retryable(keys, "Keys deleted count zero")
            return BatchResult(
                keys=keys,
                retryable=True,
                error=AnomalousEmptyResponseError(
                    "EmptyResponse", "Delete reported no deleted keys and no errors"
                ),
            )

        failures = [
            FailureRecord(
                code=err.get("Code", ""),
                key=err.get("Key", ""),
                message=err.get("Message", ""),
            )
            for err in errors
        ]
        self.tracker.record_completion(len(deleted), failures, duration)

        if failures:
            logger.warning(f"Batch delete had {len(failures)} errors")

        denied = [f for f in failures if f.code == ACCESS_DENIED_CODE]
        if denied and not self.continue_on_access_denied:
            return BatchResult(
                keys=keys,
                deleted_count=len(deleted),
                failures=failures,
                fatal=True,
                duration=duration,
                error=AccessDeniedError(denied[0].code, denied[0].message),
            )

        return BatchResult(
            keys=keys,
            deleted_count=len(deleted),
            failures=failures,
            duration=duration,
        )

    def _note_retryable(self, keys: tuple[str, ...], reason: str) -> None:
        self.tracker.record_retry()
        active = self.tracker.snapshot().active_batches
        first, last = (keys[0], keys[-1]) if keys else ("", "")
        debug_log.info(f"{reason}: {first}, {last}, {active}")
        logger.debug(f"{reason} for batch of {len(keys)} keys, queued for retry")

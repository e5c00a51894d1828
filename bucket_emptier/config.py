"""Run configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from dotenv import load_dotenv

from .errors import ConfigurationError

# DeleteObjects accepts at most this many keys per request.
MAX_BATCH_SIZE = 1000


@dataclass
class EmptierConfig:
    """Configuration settings for emptying one bucket."""

    bucket: str = ""
    region: str = ""
    endpoint_url: str | None = None
    profile: str | None = None
    max_workers: int = 7
    batch_size: int = 500
    page_size: int = 1000
    sample_window: int = 1000
    retry_delay: float = 1.0
    backoff_factor: float = 1.0
    max_retry_delay: float = 30.0
    max_retries: int | None = None
    sdk_max_attempts: int = 1
    connection_pool_size: int = 20
    continue_on_access_denied: bool = False
    report_interval: float = 0.3
    debug_log: bool = True
    log_dir: str = "."

    @classmethod
    def from_environment(cls, environ: Mapping[str, str] | None = None) -> EmptierConfig:
        """
        Create configuration from environment variables.

        A ``.env`` file in the working directory is loaded first when no
        explicit mapping is given.

        Args:
            environ: Mapping to read instead of ``os.environ``.

        Returns:
            A config that still needs ``validate()`` before use.
        """
        if environ is None:
            load_dotenv()
            environ = os.environ

        config = cls(
            bucket=environ.get("EMPTIER_BUCKET", ""),
            region=(
                environ.get("EMPTIER_REGION")
                or environ.get("AWS_REGION")
                or environ.get("AWS_DEFAULT_REGION")
                or ""
            ),
            endpoint_url=environ.get("EMPTIER_ENDPOINT_URL") or None,
        )
        config.max_workers = _int_from(environ, "EMPTIER_WORKERS", config.max_workers)
        config.batch_size = _int_from(environ, "EMPTIER_BATCH_SIZE", config.batch_size)
        return config

    def validate(self) -> EmptierConfig:
        """Raise ConfigurationError if any setting is missing or out of range."""
        if not self.bucket:
            raise ConfigurationError("Bucket name is required (--bucket).")
        if not self.region:
            raise ConfigurationError("Region is required (--region).")
        if not 1 <= self.batch_size <= MAX_BATCH_SIZE:
            raise ConfigurationError(
                f"Batch size must be between 1 and {MAX_BATCH_SIZE}, got {self.batch_size}."
            )
        if self.max_workers < 1:
            raise ConfigurationError(f"Workers must be at least 1, got {self.max_workers}.")
        if not 1 <= self.page_size <= MAX_BATCH_SIZE:
            raise ConfigurationError(
                f"Page size must be between 1 and {MAX_BATCH_SIZE}, got {self.page_size}."
            )
        if self.sample_window < 1:
            raise ConfigurationError(
                f"Sample window must be at least 1, got {self.sample_window}."
            )
        if self.retry_delay < 0 or self.max_retry_delay < 0:
            raise ConfigurationError("Retry delays cannot be negative.")
        if self.backoff_factor < 1:
            raise ConfigurationError(
                f"Backoff factor must be at least 1, got {self.backoff_factor}."
            )
        if self.max_retries is not None and self.max_retries < 0:
            raise ConfigurationError(
                f"Max retries cannot be negative, got {self.max_retries}."
            )
        return self


def _int_from(environ: Mapping[str, str], name: str, default: int) -> int:
    value = environ.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}.") from e

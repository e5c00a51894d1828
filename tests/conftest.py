from __future__ import annotations

from threading import Lock
from typing import Callable

import botocore.exceptions
import pytest

from bucket_emptier.config import EmptierConfig
from bucket_emptier.progress import ProgressTracker


def client_error(code: str, status_code: int = 400, message: str = "") -> botocore.exceptions.ClientError:
    return botocore.exceptions.ClientError(
        {
            "Error": {"Code": code, "Message": message or code},
            "ResponseMetadata": {"HTTPStatusCode": status_code},
        },
        "DeleteObjects",
    )


def make_objects(count: int, size: int = 10) -> dict[str, int]:
    return {f"key-{i:05d}": size for i in range(count)}


class FakeS3Client:
    """
    In-memory stand-in for the two S3 calls the emptier makes.

    ``responder`` may be set to a callable taking the batch keys; it can
    return a response dict, return None to fall through to a normal delete,
    or return an exception to be raised.
    """

    def __init__(self, objects: dict[str, int] | None = None) -> None:
        self.objects = dict(objects or {})
        self.list_calls: list[dict] = []
        self.delete_calls: list[tuple[str, ...]] = []
        self.list_error: Exception | None = None
        self.responder: Callable[[tuple[str, ...]], object] | None = None
        self._lock = Lock()

    def list_objects(self, Bucket: str, MaxKeys: int = 1000, Marker: str = "") -> dict:
        self.list_calls.append({"Bucket": Bucket, "MaxKeys": MaxKeys, "Marker": Marker})
        if self.list_error is not None:
            raise self.list_error
        remaining = sorted(key for key in self.objects if key > Marker)
        page = remaining[:MaxKeys]
        response = {"IsTruncated": len(remaining) > MaxKeys}
        if page:
            response["Contents"] = [{"Key": key, "Size": self.objects[key]} for key in page]
        return response

    def delete_objects(self, Bucket: str, Delete: dict) -> dict:
        keys = tuple(obj["Key"] for obj in Delete["Objects"])
        with self._lock:
            self.delete_calls.append(keys)

        if self.responder is not None:
            result = self.responder(keys)
            if isinstance(result, Exception):
                raise result
            if result is not None:
                return result

        with self._lock:
            for key in keys:
                self.objects.pop(key, None)
        return {"Deleted": [{"Key": key} for key in keys]}


@pytest.fixture
def config() -> EmptierConfig:
    return EmptierConfig(
        bucket="test-bucket",
        region="us-east-1",
        max_workers=7,
        batch_size=500,
        retry_delay=0.0,
        report_interval=0.01,
        debug_log=False,
    )


@pytest.fixture
def tracker(config: EmptierConfig) -> ProgressTracker:
    return ProgressTracker(batch_size=config.batch_size, concurrency=config.max_workers)

"""Paginated listing of every object in a bucket."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator

import botocore.exceptions

from .errors import AccessDeniedError, ListingAccessDeniedError, classify
from .progress import ProgressTracker

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ObjectRecord:
    key: str
    size: int


class Enumerator:
    """
    Lists a bucket with ListObjects, one page at a time.

    Attributes:
        s3_client: Client used for the listing calls.
        tracker: Receives key and byte totals as each page arrives.
        page_size: MaxKeys hint sent with every request.
    """

    def __init__(
        self, s3_client: S3Client, tracker: ProgressTracker, page_size: int = 1000
    ) -> None:
        self.s3_client = s3_client
        self.tracker = tracker
        self.page_size = page_size

    def _list_page(self, bucket_name: str, marker: str) -> dict:
        request = {"Bucket": bucket_name, "MaxKeys": self.page_size}
        if marker:
            request["Marker"] = marker
        try:
            return self.s3_client.list_objects(**request)
        except (
            botocore.exceptions.ClientError,
            botocore.exceptions.BotoCoreError,
        ) as e:
            error = classify(e)
            if isinstance(error, AccessDeniedError):
                error = ListingAccessDeniedError(error.code, error.message)
            raise error from e

    def list_all(self, bucket_name: str) -> Iterator[ObjectRecord]:
        """
        Yield every object in the bucket, fetching pages lazily.

        Every listing error is fatal: the classified ProviderError is raised
        and the run is expected to stop.

        Args:
            bucket_name: Name of the bucket.

        Yields:
            One ObjectRecord per listed object, in listing order.
        """
        marker = ""
        page_number = 0
        while True:
            page = self._list_page(bucket_name, marker)
            page_number += 1
            contents = page.get("Contents", [])
            records = [ObjectRecord(obj["Key"], obj.get("Size", 0)) for obj in contents]
            self.tracker.record_page(len(records), sum(r.size for r in records))
            logger.debug(f"Listed page {page_number}: {len(records)} objects")

            yield from records

            if not page.get("IsTruncated", False):
                return
            next_marker = page.get("NextMarker") or (records[-1].key if records else "")
            if not next_marker or next_marker == marker:
                logger.warning(
                    f"Listing reported more objects but gave no usable marker "
                    f"after page {page_number}; stopping enumeration"
                )
                return
            marker = next_marker

    def collect(self, bucket_name: str) -> list[str]:
        """
        Enumerate the whole bucket and return its keys without duplicates.

        Marks enumeration complete on the tracker when done.

        Args:
            bucket_name: Name of the bucket.

        Returns:
            Keys in listing order.
        """
        seen: set[str] = set()
        keys: list[str] = []
        duplicates = 0
        duplicate_bytes = 0
        for record in self.list_all(bucket_name):
            if record.key in seen:
                duplicates += 1
                duplicate_bytes += record.size
                continue
            seen.add(record.key)
            keys.append(record.key)

        if duplicates:
            logger.warning(f"Skipped {duplicates} keys listed more than once")
            self.tracker.record_page(-duplicates, -duplicate_bytes)

        self.tracker.finish_enumeration()
        logger.info(f"Found {len(keys)} objects in bucket '{bucket_name}'")
        return keys

"""Live progress rendering and the append-only debug log."""

from __future__ import annotations

import logging
import logging.handlers
import os
import queue
import sys
import threading
from datetime import date, timedelta
from typing import TextIO

from .progress import ProgressSnapshot, ProgressTracker

logger = logging.getLogger(__name__)

DEBUG_LOGGER_NAME = "bucket_emptier.debug"
# Debug records only reach the file written by DebugLog, never the console.
logging.getLogger(DEBUG_LOGGER_NAME).propagate = False
CLEAR_SCREEN = "\033[H\033[2J\033[3J"
BAR_WIDTH = 100


def progress_bar(percent: float) -> str:
    """Render ``Ongoing [=====>    ] 42.00%`` style progress text."""
    filled = int(percent)
    label = "Completed" if percent >= 100 else "Ongoing"
    bar = "=" * (filled + 1) + ">" + " " * (BAR_WIDTH - filled)
    return f"{label} [{bar}] {percent:.2f}%"


def format_duration(value: timedelta) -> str:
    seconds = int(value.total_seconds())
    hours, remainder = divmod(seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours:
        return f"{hours}h{minutes:02d}m{seconds:02d}s"
    if minutes:
        return f"{minutes}m{seconds:02d}s"
    return f"{seconds}s"


def render(bucket_name: str, snapshot: ProgressSnapshot) -> str:
    """Build the multi-line status frame for one snapshot."""
    if snapshot.throttled:
        status = "Rate limit hit. Slowing down..."
    elif not snapshot.enumeration_complete:
        status = "Listing objects..."
    else:
        status = "Deleting objects..."

    lines = [
        f"Execution Stats({bucket_name}):",
        f"\tTotal Keys: {snapshot.total_keys}",
        f"\tRemaining Keys: {snapshot.remaining}",
        f"\tTotal Keys Deleted: {snapshot.deleted}",
        f"\tTotal Failed Keys: {snapshot.failed}",
        f"\tActive Http Calls: {snapshot.active_batches}",
        f"\tStatus Message: {status}",
        f"\tBucket Size(MB): {snapshot.total_bytes / (1024 * 1024):.2f}",
        f"\tExpected Duration: {format_duration(snapshot.eta)}",
        "",
        progress_bar(snapshot.percent),
    ]
    return "\n".join(lines)


class DebugLog:
    """
    Date-stamped append-only debug log fed through a queue.

    Records sent to the ``bucket_emptier.debug`` logger are put on a queue by a
    QueueHandler; a single QueueListener thread owns the file handle and does
    all the writing.
    """

    def __init__(self, log_dir: str = ".", today: date | None = None) -> None:
        today = today or date.today()
        self.path = os.path.join(log_dir, f"{today.isoformat()}-s3delete-debug.log")
        self._queue: queue.Queue[logging.LogRecord] = queue.Queue()
        self._file_handler: logging.FileHandler | None = None
        self._queue_handler: logging.handlers.QueueHandler | None = None
        self._listener: logging.handlers.QueueListener | None = None

    def start(self) -> None:
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        self._file_handler = logging.FileHandler(self.path, mode="a", encoding="utf-8")
        self._file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
        )
        self._queue_handler = logging.handlers.QueueHandler(self._queue)

        debug_logger = logging.getLogger(DEBUG_LOGGER_NAME)
        debug_logger.setLevel(logging.INFO)
        debug_logger.addHandler(self._queue_handler)

        self._listener = logging.handlers.QueueListener(self._queue, self._file_handler)
        self._listener.start()
        logger.debug(f"Writing debug log to {self.path}")

    def stop(self) -> None:
        """Flush pending records and close the file."""
        if self._listener is None:
            return
        self._listener.stop()
        logging.getLogger(DEBUG_LOGGER_NAME).removeHandler(self._queue_handler)
        self._file_handler.close()
        self._listener = None

    def __enter__(self) -> DebugLog:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()


class Reporter:
    """
    Renders tracker snapshots on a fixed cadence from a daemon thread.

    Attributes:
        tracker: Source of snapshots.
        bucket_name: Shown in every frame.
        interval: Seconds between frames.
        live: Draw frames to ``stream``; when False only the debug log gets them.
    """

    def __init__(
        self,
        tracker: ProgressTracker,
        bucket_name: str,
        interval: float = 0.3,
        stream: TextIO | None = None,
        live: bool = True,
    ) -> None:
        self.tracker = tracker
        self.bucket_name = bucket_name
        self.interval = interval
        self.stream = stream if stream is not None else sys.stdout
        self.live = live
        self._debug_log = logging.getLogger(DEBUG_LOGGER_NAME)
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def report(self) -> ProgressSnapshot:
        """Render and log the current snapshot once."""
        snapshot = self.tracker.snapshot()
        frame = render(self.bucket_name, snapshot)
        if self.live:
            if self.stream.isatty():
                self.stream.write(CLEAR_SCREEN)
            self.stream.write(frame + "\n")
            self.stream.flush()
        self._debug_log.info(frame)
        return snapshot

    def _run(self) -> None:
        while not self._stop_event.wait(self.interval):
            self.report()

    def start(self) -> None:
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="reporter", daemon=True)
        self._thread.start()

    def stop(self) -> ProgressSnapshot:
        """Stop the cadence and render the final frame."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        return self.report()

import io
import logging
from datetime import date, timedelta

from bucket_emptier.progress import ProgressTracker
from bucket_emptier.reporter import (
    DEBUG_LOGGER_NAME,
    DebugLog,
    Reporter,
    format_duration,
    progress_bar,
    render,
)


def test_progress_bar_labels():
    assert progress_bar(42.0).startswith("Ongoing [" + "=" * 43 + ">")
    assert progress_bar(42.0).endswith("] 42.00%")
    assert progress_bar(100.0).startswith("Completed [")
    assert progress_bar(100.0).endswith("] 100.00%")


def test_format_duration():
    assert format_duration(timedelta(0)) == "0s"
    assert format_duration(timedelta(seconds=75)) == "1m15s"
    assert format_duration(timedelta(hours=2, seconds=5)) == "2h00m05s"


def test_render_shows_counts_and_status():
    tracker = ProgressTracker(batch_size=500, concurrency=7)
    tracker.record_page(1000, 2 * 1024 * 1024)
    tracker.finish_enumeration()
    tracker.record_completion(500, [], 1.0)
    tracker.record_retry()

    frame = render("my-bucket", tracker.snapshot())

    assert "Execution Stats(my-bucket):" in frame
    assert "Total Keys: 1000" in frame
    assert "Remaining Keys: 500" in frame
    assert "Bucket Size(MB): 2.00" in frame
    assert "Rate limit hit. Slowing down..." in frame
    assert "Ongoing [" in frame


def test_reporter_writes_final_frame_on_stop():
    tracker = ProgressTracker(batch_size=1, concurrency=1)
    tracker.finish_enumeration()
    stream = io.StringIO()
    reporter = Reporter(tracker, "my-bucket", interval=0.01, stream=stream)

    reporter.start()
    snapshot = reporter.stop()

    assert snapshot.percent == 100.0
    assert stream.getvalue().rstrip().endswith("] 100.00%")
    assert "\033[H" not in stream.getvalue()


def test_reporter_quiet_mode_writes_nothing():
    tracker = ProgressTracker(batch_size=1, concurrency=1)
    stream = io.StringIO()

    Reporter(tracker, "my-bucket", stream=stream, live=False).report()

    assert stream.getvalue() == ""


def test_debug_log_appends_to_date_stamped_file(tmp_path):
    debug_log = DebugLog(str(tmp_path), today=date(2024, 3, 9))

    with debug_log:
        logging.getLogger(DEBUG_LOGGER_NAME).info("first snapshot")
    with debug_log:
        logging.getLogger(DEBUG_LOGGER_NAME).info("second snapshot")

    path = tmp_path / "2024-03-09-s3delete-debug.log"
    assert debug_log.path == str(path)
    contents = path.read_text()
    assert "first snapshot" in contents
    assert "second snapshot" in contents


def test_debug_records_do_not_reach_console(caplog):
    with caplog.at_level(logging.INFO):
        logging.getLogger(DEBUG_LOGGER_NAME).info("frame")

    assert "frame" not in caplog.text

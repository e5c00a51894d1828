import pytest

from bucket_emptier import cli
from bucket_emptier.emptier import BucketEmptier
from tests.conftest import FakeS3Client, client_error, make_objects

BASE_ARGS = ["--bucket", "test-bucket", "--region", "us-east-1", "--no-debug-log", "-q"]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    for name in (
        "EMPTIER_BUCKET",
        "EMPTIER_REGION",
        "EMPTIER_ENDPOINT_URL",
        "EMPTIER_WORKERS",
        "EMPTIER_BATCH_SIZE",
        "AWS_REGION",
        "AWS_DEFAULT_REGION",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fake_client(monkeypatch):
    client = FakeS3Client(make_objects(1200))
    monkeypatch.setattr(BucketEmptier, "s3_client", property(lambda self: client))
    return client


def test_missing_region_exits_before_any_call(fake_client):
    assert cli.main(["--bucket", "test-bucket", "--yes", "-q"]) == 1
    assert fake_client.list_calls == []


def test_invalid_batch_size_exits(fake_client):
    assert cli.main(BASE_ARGS + ["--yes", "--batch-size", "5000"]) == 1
    assert fake_client.list_calls == []


def test_confirmation_mismatch_exits(monkeypatch, fake_client):
    monkeypatch.setattr("builtins.input", lambda prompt: "other-bucket")

    assert cli.main(BASE_ARGS) == 1
    assert fake_client.list_calls == []


def test_confirmation_eof_exits(monkeypatch, fake_client):
    def no_input(prompt):
        raise EOFError

    monkeypatch.setattr("builtins.input", no_input)

    assert cli.main(BASE_ARGS) == 1


def test_successful_run(monkeypatch, fake_client, capsys):
    monkeypatch.setattr("builtins.input", lambda prompt: "test-bucket")

    assert cli.main(BASE_ARGS + ["--retry-delay", "0"]) == 0
    assert fake_client.objects == {}
    assert len(fake_client.delete_calls) == 3
    out = capsys.readouterr().out
    assert "Completed deletion of files in the bucket" in out
    assert "Failed Keys Data" not in out


def test_per_key_failures_are_reported(fake_client, capsys):
    fake_client.responder = lambda batch: {
        "Deleted": [{"Key": key} for key in batch[1:]],
        "Errors": [{"Code": "InternalError", "Key": batch[0], "Message": "oops"}],
    }

    assert cli.main(BASE_ARGS + ["--yes"]) == 0
    out = capsys.readouterr().out
    assert "Failed Keys Data:\nErrorCode\tKeyName\tErrorMessage" in out
    assert "InternalError\tkey-00000\toops" in out


def test_access_denied_exits_with_error(fake_client):
    fake_client.responder = lambda batch: {
        "Errors": [
            {"Code": "AccessDenied", "Key": key, "Message": "Access Denied"} for key in batch
        ],
    }

    assert cli.main(BASE_ARGS + ["--yes", "--workers", "1"]) == 1
    assert len(fake_client.delete_calls) == 1


def test_access_denied_override_continues(fake_client):
    fake_client.responder = lambda batch: {
        "Errors": [
            {"Code": "AccessDenied", "Key": key, "Message": "Access Denied"} for key in batch
        ],
    }

    assert cli.main(BASE_ARGS + ["--yes", "--continue-on-access-denied"]) == 0
    assert len(fake_client.delete_calls) == 3


@pytest.mark.parametrize("code,status", [("NoSuchBucket", 404), ("BucketRegionError", 301)])
def test_listing_failures_exit_with_error(fake_client, code, status):
    fake_client.list_error = client_error(code, status)

    assert cli.main(BASE_ARGS + ["--yes"]) == 1
    assert fake_client.delete_calls == []


def test_throttled_listing_names_the_throttling_code(fake_client, caplog):
    fake_client.list_error = client_error("SlowDown", 503)

    assert cli.main(BASE_ARGS + ["--yes"]) == 1
    assert "throttling requests (SlowDown)" in caplog.text
    assert "Bucket emptying failed." not in caplog.text


def test_listing_access_denied_does_not_suggest_the_override(fake_client, caplog):
    fake_client.list_error = client_error("AccessDenied", 403)

    assert cli.main(BASE_ARGS + ["--yes", "--continue-on-access-denied"]) == 1
    assert "while listing the bucket" in caplog.text
    assert "--continue-on-access-denied" not in caplog.text
    assert fake_client.delete_calls == []


def test_debug_log_written(fake_client, tmp_path):
    args = ["--bucket", "test-bucket", "--region", "us-east-1", "-q", "--yes"]

    assert cli.main(args + ["--log-dir", str(tmp_path / "logs")]) == 0

    logs = list((tmp_path / "logs").glob("*-s3delete-debug.log"))
    assert len(logs) == 1
    assert "Execution Stats(test-bucket):" in logs[0].read_text()


def test_environment_fills_missing_flags(monkeypatch, fake_client):
    monkeypatch.setenv("EMPTIER_REGION", "us-east-1")

    args = ["--bucket", "test-bucket", "--yes", "--no-debug-log", "-q"]
    assert cli.main(args) == 0

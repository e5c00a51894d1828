"""Command line entry point."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Sequence

from .config import EmptierConfig
from .emptier import BucketEmptier, RunSummary
from .errors import EmptierError

logger = logging.getLogger("bucket_emptier")


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)


def confirm_bucket(bucket_name: str) -> bool:
    """
    Ask the user to type the bucket name again before anything is deleted.

    Args:
        bucket_name: The bucket name given on the command line.

    Returns:
        True if the re-entered name matches exactly, False otherwise.
    """
    try:
        entered = input("Re-enter the bucket name to be emptied: ").strip()
    except EOFError:
        return False
    return entered == bucket_name


def parse_arguments(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        prog="bucket-emptier",
        description="Bucket Emptier - delete every object in an S3 bucket",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --bucket my-bucket --region us-east-1
  %(prog)s -b my-bucket -r eu-west-1 --workers 10 --batch-size 1000
  %(prog)s -b my-bucket -r us-east-1 --endpoint-url https://s3.wasabisys.com

Environment Variables:
  EMPTIER_BUCKET, EMPTIER_REGION (or AWS_REGION), EMPTIER_ENDPOINT_URL,
  EMPTIER_WORKERS, EMPTIER_BATCH_SIZE. A .env file is read if present.
  Credentials come from the standard AWS chain (env vars, profile, role).
        """,
    )
    parser.add_argument("--bucket", "-b", type=str, help="Bucket to empty (required)")
    parser.add_argument(
        "--region",
        "--aws-region",
        "-r",
        type=str,
        help="Region in which the bucket exists (required)",
    )
    parser.add_argument("--endpoint-url", type=str, help="S3-compatible endpoint URL")
    parser.add_argument("--profile", type=str, help="Named AWS profile to use")
    parser.add_argument(
        "--workers", "-w", type=int, help="Concurrent delete requests (default: 7)"
    )
    parser.add_argument(
        "--batch-size", type=int, help="Keys per delete request, max 1000 (default: 500)"
    )
    parser.add_argument(
        "--page-size", type=int, default=1000, help="Keys per listing page (default: 1000)"
    )
    parser.add_argument(
        "--sample-window",
        type=int,
        default=1000,
        help="Batch latencies kept for the ETA (default: 1000)",
    )
    parser.add_argument(
        "--retry-delay",
        type=float,
        default=1.0,
        help="Seconds to pause new batches after throttling (default: 1.0)",
    )
    parser.add_argument(
        "--backoff-factor",
        type=float,
        default=1.0,
        help="Multiplier for consecutive throttling pauses; 1 keeps them fixed (default: 1.0)",
    )
    parser.add_argument(
        "--max-retry-delay",
        type=float,
        default=30.0,
        help="Upper bound for a throttling pause in seconds (default: 30)",
    )
    parser.add_argument(
        "--max-retries",
        type=int,
        default=None,
        help="Resubmissions allowed per batch (default: unlimited)",
    )
    parser.add_argument(
        "--continue-on-access-denied",
        action="store_true",
        help="Record AccessDenied keys as failures instead of aborting",
    )
    parser.add_argument(
        "--yes", "-y", action="store_true", help="Skip the bucket name confirmation"
    )
    parser.add_argument(
        "--no-debug-log", action="store_true", help="Do not write the debug log file"
    )
    parser.add_argument(
        "--log-dir", type=str, default=".", help="Directory for the debug log (default: .)"
    )
    parser.add_argument(
        "--quiet", "-q", action="store_true", help="Do not draw live progress frames"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose logging"
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> EmptierConfig:
    """Overlay command line flags on the environment configuration and validate it."""
    config = EmptierConfig.from_environment()
    if args.bucket:
        config.bucket = args.bucket
    if args.region:
        config.region = args.region
    if args.endpoint_url:
        config.endpoint_url = args.endpoint_url
    if args.profile:
        config.profile = args.profile
    if args.workers is not None:
        config.max_workers = args.workers
    if args.batch_size is not None:
        config.batch_size = args.batch_size
    config.page_size = args.page_size
    config.sample_window = args.sample_window
    config.retry_delay = args.retry_delay
    config.backoff_factor = args.backoff_factor
    config.max_retry_delay = args.max_retry_delay
    config.max_retries = args.max_retries
    config.continue_on_access_denied = args.continue_on_access_denied
    config.debug_log = not args.no_debug_log
    config.log_dir = args.log_dir
    return config.validate()


def print_summary(summary: RunSummary) -> None:
    if summary.failures:
        print("Failed Keys Data:\nErrorCode\tKeyName\tErrorMessage")
        for failure in summary.failures:
            print(failure.as_row())
        logger.warning(f"{len(summary.failures)} keys could not be deleted")
    print(
        f"Completed deletion of files in the bucket. "
        f"Total time taken: {summary.elapsed:.2f}s"
    )


def main(argv: Sequence[str] | None = None) -> int:
    """Main function that orchestrates the emptying run. Returns the exit code."""
    args = parse_arguments(argv)
    setup_logging(args.verbose)

    try:
        config = build_config(args)
    except EmptierError as e:
        logger.error(e.user_message)
        return 1

    if not args.yes and not confirm_bucket(config.bucket):
        logger.error("Bucket name doesn't match the previously entered value. Please re-run.")
        return 1

    emptier = BucketEmptier(config, live=not args.quiet)
    try:
        summary = emptier.empty_bucket()
    except EmptierError as e:
        logger.error(e.user_message)
        logger.debug(f"Run aborted: {e!r}")
        return 1
    except KeyboardInterrupt:
        logger.warning("Operation interrupted by user")
        return 1

    print_summary(summary)
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()

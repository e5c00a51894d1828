"""
Bucket Emptier - delete every object in an S3 bucket as fast as the provider allows.

Objects are listed page by page, then removed with bulk DeleteObjects calls
running on a bounded pool of workers. Throttled batches are queued again after
a short cool-down, and live progress with an ETA is reported while the run
is in flight.
"""

__version__ = "1.0.0"

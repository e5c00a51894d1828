"""Exception taxonomy for bucket emptying runs."""

from __future__ import annotations

import botocore.exceptions

AUTHENTICATION_CODES = frozenset(
    {
        "InvalidAccessKeyId",
        "SignatureDoesNotMatch",
        "ExpiredToken",
        "InvalidToken",
        "InvalidClientTokenId",
    }
)
NOT_FOUND_CODES = frozenset({"NoSuchBucket"})
REGION_MISMATCH_CODES = frozenset(
    {
        "BucketRegionError",
        "PermanentRedirect",
        "AuthorizationHeaderMalformed",
        "IllegalLocationConstraintException",
    }
)
RATE_LIMIT_CODES = frozenset(
    {
        "SlowDown",
        "ServiceUnavailable",
        "Throttling",
        "ThrottlingException",
        "RequestLimitExceeded",
        "TooManyRequests",
        "503",
    }
)
RATE_LIMIT_STATUSES = frozenset({429, 503})
ACCESS_DENIED_CODE = "AccessDenied"


class EmptierError(Exception):
    """Base exception for bucket emptier failures."""

    user_message = "Bucket emptying failed."


class ConfigurationError(EmptierError):
    """Required input is missing or invalid."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.user_message = message


class ProviderError(EmptierError):
    """
    An outcome reported by the storage provider.

    Attributes:
        code: Provider error code (e.g. 'SlowDown', 'NoSuchBucket').
        message: Provider error message.
        retryable: Whether the failed request should be resubmitted unchanged.
    """

    retryable = False

    def __init__(self, code: str = "", message: str = "") -> None:
        super().__init__(f"{code}: {message}" if code else message)
        self.code = code
        self.message = message


class AuthenticationError(ProviderError):
    user_message = (
        "Authentication failed. Configure credentials with 'aws configure', a named "
        "profile, or the AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY environment variables."
    )


class ResourceNotFoundError(ProviderError):
    user_message = "No bucket found with the given name. Please double check input."


class RegionMismatchError(ProviderError):
    user_message = "Bucket is not available in the specified region."


class AccessDeniedError(ProviderError):
    user_message = (
        "Encountered AccessDenied while deleting keys. Make sure the proper permissions "
        "exist on the bucket and its objects, or rerun with --continue-on-access-denied "
        "to record these keys as failures and keep going."
    )


class ListingAccessDeniedError(AccessDeniedError):
    """AccessDenied returned by ListObjects, before any key was deleted."""

    user_message = (
        "Encountered AccessDenied while listing the bucket. Make sure the "
        "credentials are allowed to list it (s3:ListBucket)."
    )


class UnclassifiedProviderError(ProviderError):
    @property
    def user_message(self) -> str:  # type: ignore[override]
        return f"Error: {self.code} {self.message}".strip()


class RateLimitError(ProviderError):
    retryable = True

    @property
    def user_message(self) -> str:  # type: ignore[override]
        return (
            f"The provider is throttling requests ({self.code}). "
            "Wait a moment and rerun."
        )


class AnomalousEmptyResponseError(ProviderError):
    """A delete call reported neither deleted keys nor errors."""

    retryable = True


def classify(exc: Exception) -> ProviderError:
    """
    Map a boto3/botocore exception onto the provider error taxonomy.

    Args:
        exc: Exception raised by a boto3 client call.

    Returns:
        The matching ProviderError instance. Unknown errors become
        UnclassifiedProviderError, which callers treat as fatal.
    """
    if isinstance(exc, ProviderError):
        return exc

    if isinstance(
        exc,
        (
            botocore.exceptions.NoCredentialsError,
            botocore.exceptions.PartialCredentialsError,
        ),
    ):
        return AuthenticationError(type(exc).__name__, str(exc))

    if isinstance(exc, botocore.exceptions.ClientError):
        error = exc.response.get("Error", {})
        code = str(error.get("Code", ""))
        message = str(error.get("Message", ""))
        status_code = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)

        if code in RATE_LIMIT_CODES or status_code in RATE_LIMIT_STATUSES:
            return RateLimitError(code or str(status_code), message)
        if code in AUTHENTICATION_CODES:
            return AuthenticationError(code, message)
        if code in NOT_FOUND_CODES:
            return ResourceNotFoundError(code, message)
        if code in REGION_MISMATCH_CODES:
            return RegionMismatchError(code, message)
        if code == ACCESS_DENIED_CODE:
            return AccessDeniedError(code, message)
        return UnclassifiedProviderError(code, message)

    return UnclassifiedProviderError(type(exc).__name__, str(exc))

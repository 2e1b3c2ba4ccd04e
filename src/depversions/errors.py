"""Error taxonomy for the versioned fetch pipeline.

Fetch errors are split by whether the request queue may retry them:
``TransientFetchError`` covers rate limiting and network hiccups,
``PermanentFetchError`` everything else the registry answers with.
``CancellationError`` marks work dropped because its scope moved on and is
never reported to the user as a failure.
"""

from __future__ import annotations

from typing import Optional


class DepVersionsError(Exception):
    """Base class for all package errors."""


class FetchError(DepVersionsError):
    """A registry lookup failed.

    Attributes:
        package_name: Package the lookup was for, when known.
        status: HTTP status code, or None for network-level failures.
        attempts: Number of attempts made before the error was surfaced.
    """

    def __init__(
        self,
        message: str,
        *,
        package_name: Optional[str] = None,
        status: Optional[int] = None,
    ):
        super().__init__(message)
        self.package_name = package_name
        self.status = status
        self.attempts = 1


class TransientFetchError(FetchError):
    """HTTP 429, connection reset or timeout. Retried by the request queue."""


class PermanentFetchError(FetchError):
    """Non-retryable registry failure (4xx other than 429, bad payload)."""


class CancellationError(DepVersionsError):
    """Work was cancelled through its cancel token or a queue abort."""


class MalformedInputError(DepVersionsError):
    """Manifest or version input could not be interpreted."""

"""Custom exceptions for the CRPT API client."""

from typing import Optional


class CrptApiError(Exception):
    """Base class for client exceptions.

    All custom exceptions should inherit from this class and define
    their specific error_kind for consistent handling by callers.
    """
    error_kind: str = "error"

    def __init__(self, message: str = "CRPT API error"):
        self.message = message
        super().__init__(message)


class InvalidConfigurationError(CrptApiError, ValueError):
    """Raised when a limiter or submitter is built with invalid parameters.

    Fatal, never retried.
    """
    error_kind = "invalid_configuration"


class PermitAcquisitionTimeoutError(CrptApiError, TimeoutError):
    """Raised when a caller gives up waiting for a rate limit permit."""
    error_kind = "acquire_timeout"

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"No rate limit permit became available within {timeout:.3f}s")


class RateLimiterClosedError(CrptApiError):
    """Raised when acquiring from a limiter that has been shut down."""
    error_kind = "limiter_closed"

    def __init__(self, message: str = "Rate limiter is closed"):
        super().__init__(message)


class SerializationError(CrptApiError):
    """Raised when a document cannot be encoded to the wire format."""
    error_kind = "serialization_failure"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)


class TransportError(CrptApiError):
    """Raised on connection failures, timeouts and other transport faults.

    The underlying httpx exception is kept in ``cause``.
    """
    error_kind = "transport_failure"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)


class RemoteRejectedError(CrptApiError):
    """Raised when the API answers with anything other than HTTP 200.

    Exception data includes the status code and response body for diagnostics.
    """
    error_kind = "remote_rejected"

    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Failed to create document: HTTP {status_code}: {body}")

    def to_result(self):
        """Convert to a failed SubmissionResult."""
        from crptapi.services.submitter import SubmissionResult, SubmissionStatus

        return SubmissionResult(
            status=SubmissionStatus.FAILURE,
            status_code=self.status_code,
            body=self.body,
        )

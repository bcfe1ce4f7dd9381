"""Rate-limited client for the CRPT document creation API."""

from crptapi.exceptions import (
    CrptApiError,
    InvalidConfigurationError,
    PermitAcquisitionTimeoutError,
    RateLimiterClosedError,
    RemoteRejectedError,
    SerializationError,
    TransportError,
)
from crptapi.models import Description, Document, Product
from crptapi.ratelimit import AsyncFixedWindowRateLimiter, FixedWindowRateLimiter, TimeUnit
from crptapi.services import (
    AsyncDocumentSubmitter,
    DocumentSubmitter,
    SubmissionResult,
    SubmissionStatus,
)

__version__ = "0.1.0"

__all__ = [
    "AsyncDocumentSubmitter",
    "AsyncFixedWindowRateLimiter",
    "CrptApiError",
    "Description",
    "Document",
    "DocumentSubmitter",
    "FixedWindowRateLimiter",
    "InvalidConfigurationError",
    "PermitAcquisitionTimeoutError",
    "Product",
    "RateLimiterClosedError",
    "RemoteRejectedError",
    "SerializationError",
    "SubmissionResult",
    "SubmissionStatus",
    "TimeUnit",
    "TransportError",
]

"""Services package for the CRPT API client.

This package provides rate-limited document submission, blocking and async.
"""

from crptapi.services.submitter import (
    AsyncDocumentSubmitter,
    DocumentSubmitter,
    SubmissionResult,
    SubmissionStatus,
)

__all__ = [
    "AsyncDocumentSubmitter",
    "DocumentSubmitter",
    "SubmissionResult",
    "SubmissionStatus",
]

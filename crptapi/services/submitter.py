"""Rate-limited document submission.

A submitter acquires one permit from its limiter, POSTs the serialized
document with the caller's signature, and turns the response into a
SubmissionResult or an exception. The permit is released exactly once on
every exit path, including serialization and transport failures.

Usage:
    with DocumentSubmitter.per(TimeUnit.SECONDS, 5) as submitter:
        submitter.submit(document, signature)
"""

import time
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

import httpx

from crptapi.core.config import settings
from crptapi.core.http_client import create_async_http_client, create_http_client
from crptapi.core.logging import get_log_context, get_logger
from crptapi.exceptions import (
    InvalidConfigurationError,
    RemoteRejectedError,
    SerializationError,
    TransportError,
)
from crptapi.models.document import Document, encode_document
from crptapi.ratelimit import AsyncFixedWindowRateLimiter, FixedWindowRateLimiter, TimeUnit

logger = get_logger(__name__)

DocumentLike = Union[Document, Mapping[str, Any]]


class SubmissionStatus(Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass
class SubmissionResult:
    """Outcome of one submission attempt."""
    status: SubmissionStatus
    status_code: int
    body: Optional[str] = None
    duration_ms: Optional[float] = None

    @property
    def ok(self) -> bool:
        return self.status is SubmissionStatus.SUCCESS


def _doc_context(document: DocumentLike) -> Dict[str, Any]:
    if isinstance(document, Mapping):
        return get_log_context(doc_id=document.get("doc_id"), doc_type=document.get("doc_type"))
    return get_log_context(
        doc_id=getattr(document, "doc_id", None),
        doc_type=getattr(document, "doc_type", None),
    )


class _SubmitterBase:
    """Request building and response handling shared by both submitters."""

    def __init__(
        self,
        api_url: Optional[str] = None,
        release_on_completion: Optional[bool] = None,
        acquire_timeout: Optional[float] = None,
    ):
        self.api_url = api_url or settings.api_url
        try:
            url = httpx.URL(self.api_url)
        except httpx.InvalidURL as e:
            raise InvalidConfigurationError(f"Invalid API URL {self.api_url!r}: {e}") from e
        if url.scheme not in ("http", "https") or not url.host:
            raise InvalidConfigurationError(f"API URL must be an absolute http(s) URL, got {self.api_url!r}")
        self.release_on_completion = (
            settings.rate_limit_release_on_completion
            if release_on_completion is None
            else release_on_completion
        )
        self.acquire_timeout = acquire_timeout

    def _build_headers(self, signature: str) -> Dict[str, str]:
        # httpx only accepts ASCII str header values
        try:
            signature.encode("ascii")
        except UnicodeEncodeError as e:
            raise SerializationError("Signature is not a valid ASCII header value", cause=e) from e
        return {
            "Content-Type": "application/json",
            "Signature": signature,
        }

    def _transport_error(self, exc: httpx.HTTPError, context: Dict[str, Any]) -> TransportError:
        logger.warning(
            f"Transport failure submitting document: {type(exc).__name__}: {exc}",
            extra=context,
        )
        return TransportError(f"Request to {self.api_url} failed: {type(exc).__name__}: {exc}", cause=exc)

    def _handle_response(
        self,
        response: httpx.Response,
        started: float,
        context: Dict[str, Any],
    ) -> SubmissionResult:
        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        if response.status_code != 200:
            logger.warning(
                "Document rejected by remote API",
                extra={**context, "status_code": response.status_code, "duration_ms": duration_ms},
            )
            raise RemoteRejectedError(response.status_code, response.text)
        logger.info(
            "Document submitted",
            extra={**context, "status_code": response.status_code, "duration_ms": duration_ms},
        )
        return SubmissionResult(
            status=SubmissionStatus.SUCCESS,
            status_code=response.status_code,
            duration_ms=duration_ms,
        )


class DocumentSubmitter(_SubmitterBase):
    """Blocking submitter safe to share between worker threads.

    If limiter or http_client is not provided the submitter creates its own
    from settings and closes it in close().
    """

    def __init__(
        self,
        limiter: Optional[FixedWindowRateLimiter] = None,
        *,
        api_url: Optional[str] = None,
        http_client: Optional[httpx.Client] = None,
        release_on_completion: Optional[bool] = None,
        acquire_timeout: Optional[float] = None,
    ):
        """Initialize the submitter.

        Args:
            limiter: Shared rate limiter
            api_url: Document creation endpoint, defaults to settings.api_url
            http_client: Optional shared HTTP client for connection pooling
            release_on_completion: Return the permit when the request
                finishes; if False only the window reset refills the pool
            acquire_timeout: Seconds to wait for a permit, None waits forever

        Raises:
            InvalidConfigurationError: If api_url is not an absolute http(s) URL
        """
        super().__init__(api_url, release_on_completion, acquire_timeout)
        # Client first: the default limiter starts its reset thread immediately
        self._owns_client = http_client is None
        self._http_client = http_client or create_http_client()
        self._owns_limiter = limiter is None
        self._limiter = limiter or FixedWindowRateLimiter(
            settings.rate_limit_requests, settings.rate_limit_window_seconds
        )

    @classmethod
    def per(cls, time_unit: TimeUnit, request_limit: int, **kwargs) -> "DocumentSubmitter":
        """Build a submitter allowing ``request_limit`` requests per ``time_unit``.

        The limiter is owned by the returned submitter.
        """
        limiter = FixedWindowRateLimiter.per(time_unit, request_limit)
        try:
            submitter = cls(limiter, **kwargs)
        except BaseException:
            limiter.close()
            raise
        submitter._owns_limiter = True
        return submitter

    @property
    def limiter(self) -> FixedWindowRateLimiter:
        return self._limiter

    def submit(self, document: DocumentLike, signature: str) -> SubmissionResult:
        """Create one document on the remote API.

        Blocks while the rate limit window is exhausted.

        Args:
            document: Document, or a mapping with the wire field names
            signature: Value for the Signature header

        Returns:
            Successful SubmissionResult

        Raises:
            SerializationError: If the document or signature cannot be encoded
            RemoteRejectedError: If the API answers with a non-200 status
            TransportError: On connection failures and timeouts
            PermitAcquisitionTimeoutError: If acquire_timeout elapses
            RateLimiterClosedError: If the limiter has been closed
        """
        self._limiter.acquire(self.acquire_timeout)
        try:
            return self._send(document, signature)
        finally:
            if self.release_on_completion:
                self._limiter.release()

    # Name of the operation on the remote API
    create_document = submit

    def _send(self, document: DocumentLike, signature: str) -> SubmissionResult:
        context = _doc_context(document)
        payload = encode_document(document)
        started = time.perf_counter()
        try:
            response = self._http_client.post(
                self.api_url,
                content=payload.encode("utf-8"),
                headers=self._build_headers(signature),
            )
        except httpx.HTTPError as e:
            raise self._transport_error(e, context) from e
        return self._handle_response(response, started, context)

    def close(self) -> None:
        """Close the HTTP client and limiter if this submitter created them."""
        if self._owns_client:
            self._http_client.close()
        if self._owns_limiter:
            self._limiter.close()

    def __enter__(self) -> "DocumentSubmitter":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class AsyncDocumentSubmitter(_SubmitterBase):
    """Coroutine submitter built on httpx.AsyncClient.

    The limiter's reset task is started on first use.
    """

    def __init__(
        self,
        limiter: Optional[AsyncFixedWindowRateLimiter] = None,
        *,
        api_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        release_on_completion: Optional[bool] = None,
        acquire_timeout: Optional[float] = None,
    ):
        super().__init__(api_url, release_on_completion, acquire_timeout)
        self._owns_limiter = limiter is None
        self._limiter = limiter or AsyncFixedWindowRateLimiter(
            settings.rate_limit_requests, settings.rate_limit_window_seconds
        )
        self._owns_client = http_client is None
        self._http_client = http_client or create_async_http_client()

    @classmethod
    def per(cls, time_unit: TimeUnit, request_limit: int, **kwargs) -> "AsyncDocumentSubmitter":
        # The reset task starts on first use, so there is nothing to stop on failure
        submitter = cls(AsyncFixedWindowRateLimiter.per(time_unit, request_limit), **kwargs)
        submitter._owns_limiter = True
        return submitter

    @property
    def limiter(self) -> AsyncFixedWindowRateLimiter:
        return self._limiter

    async def submit(self, document: DocumentLike, signature: str) -> SubmissionResult:
        """Create one document on the remote API.

        Same contract as DocumentSubmitter.submit(); waiting for a permit
        suspends only the calling task.
        """
        await self._limiter.start()
        await self._limiter.acquire(self.acquire_timeout)
        try:
            return await self._send(document, signature)
        finally:
            if self.release_on_completion:
                await self._limiter.release()

    create_document = submit

    async def _send(self, document: DocumentLike, signature: str) -> SubmissionResult:
        context = _doc_context(document)
        payload = encode_document(document)
        started = time.perf_counter()
        try:
            response = await self._http_client.post(
                self.api_url,
                content=payload.encode("utf-8"),
                headers=self._build_headers(signature),
            )
        except httpx.HTTPError as e:
            raise self._transport_error(e, context) from e
        return self._handle_response(response, started, context)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http_client.aclose()
        if self._owns_limiter:
            await self._limiter.aclose()

    async def __aenter__(self) -> "AsyncDocumentSubmitter":
        await self._limiter.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

"""Tests for rate-limited document submission."""

import json
import time
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

import httpx
import pytest
import respx
from httpx import Response

from crptapi.core.config import DEFAULT_API_URL
from crptapi.exceptions import (
    InvalidConfigurationError,
    PermitAcquisitionTimeoutError,
    RemoteRejectedError,
    SerializationError,
    TransportError,
)
from crptapi.models import Document
from crptapi.ratelimit import AsyncFixedWindowRateLimiter, FixedWindowRateLimiter, TimeUnit
from crptapi.services.submitter import (
    AsyncDocumentSubmitter,
    DocumentSubmitter,
    SubmissionStatus,
)


@pytest.fixture
def limiter():
    limiter = FixedWindowRateLimiter(capacity=3, window_seconds=60, autostart=False)
    yield limiter
    limiter.close()


@pytest.fixture
def document():
    return Document(doc_id="doc-1", doc_type="LP_INTRODUCE_GOODS")


class TestDocumentSubmitter:
    """Tests for the blocking submitter."""

    @respx.mock
    def test_success_returns_result_and_permit(self, limiter, document):
        """Test a 200 response succeeds and the permit is returned."""
        route = respx.post(DEFAULT_API_URL).mock(return_value=Response(200, text="{}"))

        with DocumentSubmitter(limiter) as submitter:
            result = submitter.submit(document, "signature-value")

        assert result.ok
        assert result.status is SubmissionStatus.SUCCESS
        assert result.status_code == 200
        assert limiter.available == 3
        assert limiter.stats().total_granted == 1

        request = route.calls.last.request
        assert request.headers["Content-Type"] == "application/json"
        assert request.headers["Signature"] == "signature-value"
        assert json.loads(request.content)["doc_id"] == "doc-1"

    @respx.mock
    def test_non_200_raises_remote_rejected(self, limiter, document):
        """Test a 500 response fails with status and body, permit released."""
        respx.post(DEFAULT_API_URL).mock(return_value=Response(500, text="error"))

        with DocumentSubmitter(limiter) as submitter:
            with pytest.raises(RemoteRejectedError) as exc_info:
                submitter.submit(document, "sig")

        assert exc_info.value.status_code == 500
        assert exc_info.value.body == "error"
        assert limiter.available == 3

        result = exc_info.value.to_result()
        assert result.status is SubmissionStatus.FAILURE
        assert result.body == "error"

    @respx.mock
    def test_201_is_still_a_rejection(self, limiter, document):
        """Test that only 200 counts as success."""
        respx.post(DEFAULT_API_URL).mock(return_value=Response(201))
        with DocumentSubmitter(limiter) as submitter:
            with pytest.raises(RemoteRejectedError):
                submitter.submit(document, "sig")

    @respx.mock
    def test_transport_fault_raises_transport_error(self, limiter, document):
        """Test connection failures are wrapped and the permit released."""
        respx.post(DEFAULT_API_URL).mock(side_effect=httpx.ConnectError("refused"))

        with DocumentSubmitter(limiter) as submitter:
            with pytest.raises(TransportError) as exc_info:
                submitter.submit(document, "sig")

        assert isinstance(exc_info.value.cause, httpx.ConnectError)
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
        assert limiter.available == 3

    @respx.mock
    def test_timeout_raises_transport_error(self, limiter, document):
        """Test read timeouts are transport failures."""
        respx.post(DEFAULT_API_URL).mock(side_effect=httpx.ReadTimeout("slow"))
        with DocumentSubmitter(limiter) as submitter:
            with pytest.raises(TransportError):
                submitter.submit(document, "sig")
        assert limiter.available == 3

    @respx.mock(assert_all_called=False)
    def test_serialization_failure_releases_permit(self, limiter):
        """Test an unencodable document fails before any request."""
        route = respx.post(DEFAULT_API_URL).mock(return_value=Response(200))

        with DocumentSubmitter(limiter) as submitter:
            with pytest.raises(SerializationError):
                submitter.submit({"reg_date": "yesterday"}, "sig")

        assert not route.called
        assert limiter.available == 3

    @respx.mock
    def test_mapping_document(self, limiter):
        """Test that a mapping with wire names can be submitted."""
        route = respx.post(DEFAULT_API_URL).mock(return_value=Response(200))
        with DocumentSubmitter(limiter) as submitter:
            submitter.create_document({"doc_id": "m-1", "importRequest": True}, "sig")
        body = json.loads(route.calls.last.request.content)
        assert body["doc_id"] == "m-1"
        assert body["importRequest"] is True

    @respx.mock
    def test_custom_api_url(self, limiter, document):
        """Test that the endpoint can be overridden."""
        route = respx.post("https://example.test/create").mock(return_value=Response(200))
        with DocumentSubmitter(limiter, api_url="https://example.test/create") as submitter:
            submitter.submit(document, "sig")
        assert route.called

    @pytest.mark.parametrize("api_url", ["http://[::1", "documents/create", "ftp://example.test/create"])
    def test_invalid_api_url_rejected(self, limiter, api_url):
        """Test a malformed endpoint fails at construction."""
        with pytest.raises(InvalidConfigurationError):
            DocumentSubmitter(limiter, api_url=api_url)
        assert not limiter.closed

    @respx.mock(assert_all_called=False)
    def test_non_ascii_signature_is_serialization_error(self, limiter, document):
        """Test a signature that cannot be a header value fails cleanly."""
        route = respx.post(DEFAULT_API_URL).mock(return_value=Response(200))

        with DocumentSubmitter(limiter) as submitter:
            with pytest.raises(SerializationError) as exc_info:
                submitter.submit(document, "подпись")

        assert isinstance(exc_info.value.cause, UnicodeEncodeError)
        assert not route.called
        assert limiter.available == 3

    @respx.mock
    def test_without_release_permit_waits_for_reset(self, limiter, document):
        """Test strict rate mode where only the window reset refills."""
        respx.post(DEFAULT_API_URL).mock(return_value=Response(200))
        with DocumentSubmitter(limiter, release_on_completion=False) as submitter:
            submitter.submit(document, "sig")
            submitter.submit(document, "sig")
        assert limiter.available == 1

    @respx.mock(assert_all_called=False)
    def test_acquire_timeout_skips_request(self, document):
        """Test that giving up on a permit never sends the request."""
        route = respx.post(DEFAULT_API_URL).mock(return_value=Response(200))
        limiter = FixedWindowRateLimiter(capacity=1, window_seconds=60, autostart=False)
        limiter.acquire()
        try:
            with DocumentSubmitter(limiter, acquire_timeout=0.05) as submitter:
                with pytest.raises(PermitAcquisitionTimeoutError):
                    submitter.submit(document, "sig")
        finally:
            limiter.close()
        assert not route.called
        assert limiter.available == 0

    @respx.mock
    def test_concurrent_submissions_are_rate_limited(self, document):
        """Test that six submissions at two per window span three windows."""
        respx.post(DEFAULT_API_URL).mock(return_value=Response(200))
        limiter = FixedWindowRateLimiter(capacity=2, window_seconds=0.1)
        started = time.monotonic()
        with limiter, DocumentSubmitter(limiter, release_on_completion=False) as submitter:
            with ThreadPoolExecutor(max_workers=6) as pool:
                results = list(pool.map(lambda _: submitter.submit(document, "sig"), range(6)))
        elapsed = time.monotonic() - started

        assert all(r.ok for r in results)
        assert elapsed >= 0.15
        assert limiter.stats().total_granted == 6

    def test_per_owns_its_limiter(self):
        """Test that per() builds a limiter that close() shuts down."""
        submitter = DocumentSubmitter.per(TimeUnit.SECONDS, 5)
        assert submitter.limiter.capacity == 5
        assert submitter.limiter.window_seconds == 1.0
        submitter.close()
        assert submitter.limiter.closed

    def test_per_closes_limiter_when_client_fails(self):
        """Test the limiter built by per() is closed if the submitter cannot be built."""
        created = []
        build = FixedWindowRateLimiter.per

        def tracking_per(time_unit, request_limit):
            created.append(build(time_unit, request_limit))
            return created[-1]

        with patch.object(FixedWindowRateLimiter, "per", side_effect=tracking_per), patch(
            "crptapi.services.submitter.create_http_client", side_effect=RuntimeError("no client")
        ):
            with pytest.raises(RuntimeError):
                DocumentSubmitter.per(TimeUnit.SECONDS, 5)

        assert len(created) == 1
        assert created[0].closed

    def test_shared_limiter_not_closed(self, limiter):
        """Test that a caller-supplied limiter outlives the submitter."""
        DocumentSubmitter(limiter).close()
        assert not limiter.closed


class TestAsyncDocumentSubmitter:
    """Tests for the async submitter."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_success(self, document):
        """Test a 200 response through the async client."""
        route = respx.post(DEFAULT_API_URL).mock(return_value=Response(200))
        limiter = AsyncFixedWindowRateLimiter(2, 60)
        async with limiter, AsyncDocumentSubmitter(limiter) as submitter:
            result = await submitter.submit(document, "sig")
            assert result.ok
            assert limiter.available == 2
        assert route.calls.last.request.headers["Signature"] == "sig"

    @pytest.mark.asyncio
    @respx.mock
    async def test_rejected_releases_permit(self, document):
        """Test a 500 response in the async path."""
        respx.post(DEFAULT_API_URL).mock(return_value=Response(500, text="error"))
        limiter = AsyncFixedWindowRateLimiter(2, 60)
        async with limiter, AsyncDocumentSubmitter(limiter) as submitter:
            with pytest.raises(RemoteRejectedError) as exc_info:
                await submitter.submit(document, "sig")
            assert limiter.available == 2
        assert exc_info.value.status_code == 500
        assert exc_info.value.body == "error"

    @pytest.mark.asyncio
    @respx.mock
    async def test_transport_fault(self, document):
        """Test transport failures in the async path."""
        respx.post(DEFAULT_API_URL).mock(side_effect=httpx.ConnectTimeout("timeout"))
        async with AsyncDocumentSubmitter.per(TimeUnit.SECONDS, 1) as submitter:
            with pytest.raises(TransportError):
                await submitter.submit(document, "sig")
            assert submitter.limiter.available == 1
        assert submitter.limiter.closed

    @pytest.mark.asyncio
    @respx.mock(assert_all_called=False)
    async def test_non_ascii_signature(self, document):
        """Test header encoding failures in the async path."""
        route = respx.post(DEFAULT_API_URL).mock(return_value=Response(200))
        limiter = AsyncFixedWindowRateLimiter(2, 60)
        async with limiter, AsyncDocumentSubmitter(limiter) as submitter:
            with pytest.raises(SerializationError):
                await submitter.submit(document, "подпись")
            assert limiter.available == 2
        assert not route.called

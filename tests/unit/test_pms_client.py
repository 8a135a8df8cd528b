"""
Unit tests for the PMS REST client
"""

import httpx
import pytest
from core.exceptions import (
    AuthenticationError,
    BadRequestError,
    ConfigurationError,
    NetworkError,
    PMSRequestError,
    RateLimitError,
    RetryExhaustedError,
    ServerError,
)
from ingestion.extractors.pms_client import PMSClient

BASE_URL = "https://pms.test/api/v1"


def _client(handler, **kwargs):
    return PMSClient(BASE_URL, "secret-key", transport=httpx.MockTransport(handler), **kwargs)


class TestConfiguration:

    def test_missing_credentials(self):
        with pytest.raises(ConfigurationError):
            PMSClient("", "key")
        with pytest.raises(ConfigurationError):
            PMSClient(BASE_URL, None)


class TestRequests:

    @pytest.mark.asyncio
    async def test_bearer_auth_and_json(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"id": "F1", "name": "Downtown"})

        async with _client(handler) as client:
            body = await client.get_facility("F1")

        assert body == {"id": "F1", "name": "Downtown"}
        assert seen[0].url.path == "/api/v1/facilities/F1"
        assert seen[0].headers["Authorization"] == "Bearer secret-key"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code, error_class", [
        (400, BadRequestError),
        (401, AuthenticationError),
        (403, AuthenticationError),
        (429, RateLimitError),
        (500, ServerError),
        (503, ServerError),
    ])
    async def test_status_classification(self, status_code, error_class):
        async with _client(lambda request: httpx.Response(status_code)) as client:
            with pytest.raises(error_class) as exc_info:
                await client.get_tenant("42")

        assert exc_info.value.context["status_code"] == status_code

    @pytest.mark.asyncio
    async def test_retry_after_header(self):
        def handler(request):
            return httpx.Response(429, headers={"Retry-After": "3"})

        async with _client(handler) as client:
            with pytest.raises(RateLimitError) as exc_info:
                await client.health_check()

        assert exc_info.value.retry_after == 3

    @pytest.mark.asyncio
    async def test_transport_failure_is_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(NetworkError):
                await client.health_check()

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        async with _client(lambda request: httpx.Response(200, content=b"<html>")) as client:
            with pytest.raises(PMSRequestError):
                await client.health_check()

    @pytest.mark.asyncio
    async def test_calls_recorded_in_metrics(self, metrics):
        responses = iter([httpx.Response(200, json={}), httpx.Response(500)])

        async with _client(lambda request: next(responses), metrics=metrics) as client:
            await client.get_facility("F1")
            with pytest.raises(ServerError):
                await client.get_facility("F1")

        by_operation = metrics.get_metrics()["api_calls"]["by_operation"]
        assert by_operation["getFacility"]["success"] == 1
        assert by_operation["getFacility"]["failure"] == 1


class TestPagination:

    @pytest.mark.asyncio
    async def test_list_pages_until_short_page(self):
        pages = {
            "1": [{"id": 1}, {"id": 2}],
            "2": [{"id": 3}, {"id": 4}],
            "3": [{"id": 5}],
        }
        requested = []

        def handler(request):
            page = request.url.params["page"]
            requested.append(page)
            assert request.url.params["per_page"] == "2"
            return httpx.Response(200, json=pages[page])

        async with _client(handler, page_size=2) as client:
            tenants = await client.list_tenants("F1")

        assert [t["id"] for t in tenants] == [1, 2, 3, 4, 5]
        assert requested == ["1", "2", "3"]

    @pytest.mark.asyncio
    async def test_envelope_with_has_next(self):
        def handler(request):
            page = int(request.url.params["page"])
            return httpx.Response(200, json={"data": [{"id": f"F{page}"}], "hasNext": page < 2})

        async with _client(handler) as client:
            facilities = await client.list_facilities()

        assert facilities == [{"id": "F1"}, {"id": "F2"}]

    @pytest.mark.asyncio
    async def test_server_ignoring_pages_terminates(self):
        def handler(request):
            return httpx.Response(200, json=[{"id": 1}, {"id": 2}])

        async with _client(handler, page_size=2) as client:
            tenants = await client.list_tenants("F1")

        assert tenants == [{"id": 1}, {"id": 2}]

    @pytest.mark.asyncio
    async def test_each_page_is_retried(self, retry, recording_sleep):
        attempts = {"1": 0, "2": 0}

        def handler(request):
            page = request.url.params["page"]
            attempts[page] += 1
            if page == "2" and attempts[page] == 1:
                return httpx.Response(502)
            return httpx.Response(200, json=[{"id": page}] if page == "2" else [{"id": "1"}, {"id": "1b"}])

        async with _client(handler, page_size=2) as client:
            tenants = await client.list_tenants("F1", call=retry.run)

        assert [t["id"] for t in tenants] == ["1", "1b", "2"]
        assert attempts == {"1": 1, "2": 2}
        assert recording_sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_exhausted_page_names_operation(self, retry):
        async with _client(lambda request: httpx.Response(503)) as client:
            with pytest.raises(RetryExhaustedError) as exc_info:
                await client.list_facilities(call=retry.run)

        assert exc_info.value.operation == "PMS getFacilities page 1"
        assert exc_info.value.attempts == 3

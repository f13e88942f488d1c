import json

import httpx
import pytest

from app.services.sign_api import SignApiClient, UpstreamApiError

pytestmark = pytest.mark.anyio


def _client(handler, **kwargs) -> SignApiClient:
    return SignApiClient("https://sign.example.com/", transport=httpx.MockTransport(handler), **kwargs)


async def test_requests_carry_bearer_token_and_company() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"data": {"_id": "tpl-1", "title": "Lease"}})

    async with _client(handler, access_token="abc") as client:
        raw = await client.get_template("tpl-1", "company-1")

    assert raw == {"data": {"_id": "tpl-1", "title": "Lease"}}
    request = seen[0]
    assert request.url.path == "/api/documents-templates/tpl-1"
    assert request.url.params["company_id"] == "company-1"
    assert request.headers["Authorization"] == "Bearer abc"


async def test_error_status_becomes_upstream_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"message": "Workflow not found"})

    async with _client(handler) as client:
        with pytest.raises(UpstreamApiError) as excinfo:
            await client.get_workflow("wf-x")

    assert excinfo.value.status_code == 404
    assert str(excinfo.value) == "Workflow not found"
    assert excinfo.value.details == {"message": "Workflow not found"}


async def test_transport_error_becomes_upstream_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        with pytest.raises(UpstreamApiError) as excinfo:
            await client.send_response("wf-1", "r-1")

    assert excinfo.value.status_code is None


async def test_timeout_becomes_upstream_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("too slow", request=request)

    async with _client(handler) as client:
        with pytest.raises(UpstreamApiError, match="timed out"):
            await client.get_template("tpl-1", "company-1")


async def test_list_contacts_unwraps_and_filters_params() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"success": True, "data": [{"_id": "c-1"}, "junk"]})

    async with _client(handler) as client:
        contacts = await client.list_contacts("company-1")

    assert contacts == [{"_id": "c-1"}]
    assert "contact_type" not in seen[0].url.params


async def test_create_response_posts_json_payload() -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        assert request.url.path == "/api/workflows/wf-1/responses"
        return httpx.Response(201, json={"data": {"data": {"_id": "r1"}}})

    async with _client(handler) as client:
        raw = await client.create_response("wf-1", {"company_id": "company-1"})

    assert bodies == [{"company_id": "company-1"}]
    assert raw["data"]["data"]["_id"] == "r1"


async def test_empty_body_returns_none() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(204)

    async with _client(handler) as client:
        assert await client.send_response("wf-1", "r1") is None

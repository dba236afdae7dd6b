import pytest

pytestmark = [pytest.mark.api, pytest.mark.asyncio]


async def test_request_id_is_generated_when_missing(async_client):
    response = await async_client.get("/health")

    request_id = response.headers["X-Request-ID"]
    assert len(request_id) == 32


async def test_valid_request_id_is_echoed(async_client):
    response = await async_client.get("/health", headers={"X-Request-ID": "req_abc-123"})

    assert response.headers["X-Request-ID"] == "req_abc-123"


async def test_unsafe_request_id_is_replaced(async_client):
    response = await async_client.get("/health", headers={"X-Request-ID": "bad id;drop"})

    assert response.headers["X-Request-ID"] != "bad id;drop"


async def test_security_headers_on_json_responses(async_client):
    response = await async_client.get("/health")

    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["Referrer-Policy"] == "no-referrer"
    assert "Content-Security-Policy" not in response.headers

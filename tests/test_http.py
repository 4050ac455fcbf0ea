import json

import httpx
import pytest
import pytest_asyncio
import respx

from infrabridge.connectors.http import HttpConnector
from infrabridge.envelope import BackendFailure

BASE = "https://api.example.test/v1"


@pytest_asyncio.fixture
async def connector():
    conn = HttpConnector(base_url=BASE + "/", headers={"X-Token": "t"})
    await conn.start()
    yield conn
    await conn.close()


@pytest.mark.asyncio
@respx.mock
async def test_json_body_returned(connector):
    route = respx.get(f"{BASE}/zones").mock(return_value=httpx.Response(200, json={"result": [1, 2]}))

    body = await connector.execute("get", "/zones", params={"page": 2, "name": None})

    assert body == {"result": [1, 2]}
    request = route.calls.last.request
    assert request.url.params["page"] == "2"
    assert "name" not in request.url.params
    assert request.headers["X-Token"] == "t"


@pytest.mark.asyncio
@respx.mock
async def test_json_payload_sent(connector):
    route = respx.post(f"{BASE}/records").mock(return_value=httpx.Response(200, json={"id": "r1"}))

    await connector.execute("POST", "/records", json={"type": "A", "name": "www"})

    assert json.loads(route.calls.last.request.content) == {"type": "A", "name": "www"}


@pytest.mark.asyncio
@respx.mock
async def test_form_data_drops_none(connector):
    route = respx.post(f"{BASE}/status/start").mock(return_value=httpx.Response(200, json={"data": "UPID"}))

    await connector.execute("POST", "/status/start", data={"timeout": 30, "forceStop": None})

    assert route.calls.last.request.read() == b"timeout=30"


@pytest.mark.asyncio
@respx.mock
async def test_empty_body_is_none(connector):
    respx.delete(f"{BASE}/things/1").mock(return_value=httpx.Response(204))

    assert await connector.execute("DELETE", "/things/1") is None


@pytest.mark.asyncio
@respx.mock
async def test_non_json_body_returned_as_text(connector):
    respx.get(f"{BASE}/plain").mock(return_value=httpx.Response(200, text="pong"))

    assert await connector.execute("GET", "/plain") == "pong"


@pytest.mark.asyncio
@respx.mock
@pytest.mark.parametrize(
    ("status", "retryable"),
    [(400, False), (403, False), (404, False), (429, True), (500, True), (503, True)],
)
async def test_error_status_raises_backend_failure(connector, status, retryable):
    respx.get(f"{BASE}/zones").mock(return_value=httpx.Response(status, json={"error": "nope"}))

    with pytest.raises(BackendFailure) as excinfo:
        await connector.execute("GET", "/zones")

    assert excinfo.value.retryable is retryable
    assert excinfo.value.raw == {"status": status, "body": {"error": "nope"}}
    assert excinfo.value.message.startswith(f"HTTP {status}: ")


@pytest.mark.asyncio
@respx.mock
async def test_timeout_is_retryable(connector):
    respx.get(f"{BASE}/slow").mock(side_effect=httpx.ReadTimeout("timed out"))

    with pytest.raises(BackendFailure, match="request timed out: GET /slow") as excinfo:
        await connector.execute("GET", "/slow")

    assert excinfo.value.retryable is True


@pytest.mark.asyncio
@respx.mock
async def test_connection_error_is_retryable(connector):
    respx.get(f"{BASE}/down").mock(side_effect=httpx.ConnectError("refused"))

    with pytest.raises(BackendFailure, match="request failed: GET /down") as excinfo:
        await connector.execute("GET", "/down")

    assert excinfo.value.retryable is True


@pytest.mark.asyncio
async def test_close_is_idempotent():
    conn = HttpConnector(base_url=BASE)
    await conn.start()

    await conn.close()
    await conn.close()

    assert conn._client is None


@pytest.mark.asyncio
@respx.mock
async def test_subclass_unwraps_envelope():
    class Enveloped(HttpConnector):
        def unwrap(self, body):
            return body["data"]

    respx.get(f"{BASE}/nodes").mock(return_value=httpx.Response(200, json={"data": [{"node": "pve"}]}))
    conn = Enveloped(base_url=BASE)

    assert await conn.execute("GET", "/nodes") == [{"node": "pve"}]
    await conn.close()

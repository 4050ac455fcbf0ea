import json
import logging
from typing import Any
from urllib.parse import parse_qs

import httpx
import pytest
import pytest_asyncio
import respx

from infrabridge.backends.proxmox import TOOLS
from infrabridge.backends.proxmox.config import ProxmoxConfig, load_config
from infrabridge.backends.proxmox.connector import ProxmoxConnector
from infrabridge.catalog import ToolCatalog
from infrabridge.config import ConfigError
from infrabridge.envelope import Err
from infrabridge.tool_handlers import invoke

API = "https://pve.lab:8006/api2/json"
CATALOG = ToolCatalog(TOOLS)
logger = logging.getLogger("test.proxmox")


@pytest_asyncio.fixture
async def px():
    conn = ProxmoxConnector(ProxmoxConfig(token_id="mcp", token_secret="s3cret", host="pve.lab"))
    yield conn
    await conn.close()


async def call(px: ProxmoxConnector, tool: str, /, **arguments: Any) -> Any:
    result = await invoke(CATALOG, px, tool, arguments, logger=logger)
    if isinstance(result, Err):
        return result.error
    return result.value


def form(request: httpx.Request) -> dict[str, list[str]]:
    return parse_qs(request.content.decode())


class TestConfig:
    def test_requires_token(self, monkeypatch: Any) -> None:
        monkeypatch.delenv("PROXMOX_TOKEN_ID", raising=False)
        monkeypatch.delenv("PROXMOX_TOKEN_SECRET", raising=False)

        with pytest.raises(ConfigError, match="Proxmox authentication not configured"):
            load_config()

    def test_defaults_and_auth_header(self, monkeypatch: Any) -> None:
        monkeypatch.setenv("PROXMOX_TOKEN_ID", "mcp")
        monkeypatch.setenv("PROXMOX_TOKEN_SECRET", "abc")

        config = load_config()

        assert config.base_url == "https://localhost:8006/api2/json"
        assert config.auth_header() == "PVEAPIToken=root@pam!mcp=abc"
        assert config.verify_ssl is True

    def test_file_settings(self, tmp_path: Any) -> None:
        (tmp_path / ".proxmox-mcp.json").write_text(
            json.dumps(
                {
                    "host": "pve1",
                    "port": 443,
                    "username": "automation",
                    "realm": "pve",
                    "tokenId": "t",
                    "tokenSecret": "s",
                    "verifySsl": False,
                }
            )
        )

        config = load_config()

        assert config.base_url == "https://pve1:443/api2/json"
        assert config.auth_header() == "PVEAPIToken=automation@pve!t=s"
        assert config.verify_ssl is False

    def test_verify_ssl_from_env_string(self, monkeypatch: Any) -> None:
        monkeypatch.setenv("PROXMOX_TOKEN_ID", "mcp")
        monkeypatch.setenv("PROXMOX_TOKEN_SECRET", "abc")
        monkeypatch.setenv("PROXMOX_VERIFY_SSL", "false")

        assert load_config().verify_ssl is False


class TestReads:
    @pytest.mark.asyncio
    @respx.mock
    async def test_list_nodes_unwraps_data(self, px: ProxmoxConnector) -> None:
        route = respx.get(f"{API}/nodes").mock(
            return_value=httpx.Response(200, json={"data": [{"node": "pve1", "status": "online"}]})
        )

        assert await call(px, "list_nodes") == [{"node": "pve1", "status": "online"}]
        assert route.calls.last.request.headers["Authorization"] == "PVEAPIToken=root@pam!mcp=s3cret"

    @pytest.mark.asyncio
    @respx.mock
    async def test_get_vm_status(self, px: ProxmoxConnector) -> None:
        respx.get(f"{API}/nodes/pve1/qemu/101/status/current").mock(
            return_value=httpx.Response(200, json={"data": {"status": "running"}})
        )

        assert await call(px, "get_vm_status", node="pve1", vmid=101) == {"status": "running"}

    @pytest.mark.asyncio
    async def test_vmid_below_100_rejected(self, px: ProxmoxConnector) -> None:
        error = await call(px, "get_vm_status", node="pve1", vmid=99)

        assert error.kind == "invalid_params"

    @pytest.mark.asyncio
    @respx.mock
    async def test_list_storage_cluster_wide(self, px: ProxmoxConnector) -> None:
        respx.get(f"{API}/storage").mock(return_value=httpx.Response(200, json={"data": [{"storage": "local"}]}))

        assert await call(px, "list_storage") == [{"storage": "local"}]

    @pytest.mark.asyncio
    @respx.mock
    async def test_list_tasks_defaults_limit(self, px: ProxmoxConnector) -> None:
        route = respx.get(f"{API}/nodes/pve1/tasks").mock(return_value=httpx.Response(200, json={"data": []}))

        await call(px, "list_tasks", node="pve1")

        params = route.calls.last.request.url.params
        assert params["limit"] == "50"
        assert "vmid" not in params


class TestActions:
    @pytest.mark.asyncio
    @respx.mock
    async def test_start_vm_returns_task(self, px: ProxmoxConnector) -> None:
        upid = "UPID:pve1:0001:qmstart:101:root@pam:"
        respx.post(f"{API}/nodes/pve1/qemu/101/status/start").mock(
            return_value=httpx.Response(200, json={"data": upid})
        )

        result = await call(px, "start_vm", node="pve1", vmid=101)

        assert result == {"vmid": 101, "action": "start", "task": upid}

    @pytest.mark.asyncio
    @respx.mock
    async def test_shutdown_sends_form_fields(self, px: ProxmoxConnector) -> None:
        route = respx.post(f"{API}/nodes/pve1/qemu/101/status/shutdown").mock(
            return_value=httpx.Response(200, json={"data": "UPID"})
        )

        await call(px, "shutdown_vm", node="pve1", vmid=101, timeout=60, forceStop=True)

        assert form(route.calls.last.request) == {"timeout": ["60"], "forceStop": ["1"]}

    @pytest.mark.asyncio
    @respx.mock
    async def test_stop_container(self, px: ProxmoxConnector) -> None:
        respx.post(f"{API}/nodes/pve1/lxc/200/status/stop").mock(
            return_value=httpx.Response(200, json={"data": "UPID:ct"})
        )

        result = await call(px, "stop_container", node="pve1", vmid=200)

        assert result == {"vmid": 200, "action": "stop", "task": "UPID:ct"}


class TestErrors:
    @pytest.mark.asyncio
    @respx.mock
    async def test_error_body_is_reported(self, px: ProxmoxConnector) -> None:
        respx.post(f"{API}/nodes/pve1/qemu/101/status/start").mock(
            return_value=httpx.Response(400, json={"errors": {"vmid": "invalid"}, "data": None})
        )

        error = await call(px, "start_vm", node="pve1", vmid=101)

        assert error.kind == "backend_error"
        assert error.message == 'Proxmox API error: {"vmid": "invalid"}'

    @pytest.mark.asyncio
    @respx.mock
    async def test_auth_failure_without_body(self, px: ProxmoxConnector) -> None:
        respx.get(f"{API}/version").mock(return_value=httpx.Response(401))

        error = await call(px, "get_version")

        assert error.message == "Proxmox API error: 401 Unauthorized"
        assert error.details["retryable"] is False

    @pytest.mark.asyncio
    @respx.mock
    async def test_server_error_is_retryable(self, px: ProxmoxConnector) -> None:
        respx.get(f"{API}/cluster/status").mock(return_value=httpx.Response(500, text="proxy error"))

        error = await call(px, "get_cluster_status")

        assert error.details["retryable"] is True

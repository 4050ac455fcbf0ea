from __future__ import annotations

from dataclasses import dataclass

from infrabridge.config import ConfigError, as_bool, as_int, pick, read_config_file


@dataclass(frozen=True)
class ProxmoxConfig:
    token_id: str
    token_secret: str
    host: str = "localhost"
    port: int = 8006
    username: str = "root"
    realm: str = "pam"
    verify_ssl: bool = True
    timeout: int = 30

    @property
    def base_url(self) -> str:
        return f"https://{self.host}:{self.port}/api2/json"

    def auth_header(self) -> str:
        return f"PVEAPIToken={self.username}@{self.realm}!{self.token_id}={self.token_secret}"


def load_config(cwd: str | None = None) -> ProxmoxConfig:
    values = read_config_file("proxmox", cwd)
    token_id = pick(values, "tokenId", "PROXMOX_TOKEN_ID")
    token_secret = pick(values, "tokenSecret", "PROXMOX_TOKEN_SECRET")
    if not token_id or not token_secret:
        raise ConfigError(
            "Proxmox authentication not configured. Set PROXMOX_TOKEN_ID and PROXMOX_TOKEN_SECRET"
        )
    return ProxmoxConfig(
        token_id=str(token_id),
        token_secret=str(token_secret),
        host=str(pick(values, "host", "PROXMOX_HOST", "localhost")),
        port=as_int(pick(values, "port", "PROXMOX_PORT", 8006), "PROXMOX_PORT", minimum=1, maximum=65535),
        username=str(pick(values, "username", "PROXMOX_USERNAME", "root")),
        realm=str(pick(values, "realm", "PROXMOX_REALM", "pam")),
        verify_ssl=as_bool(pick(values, "verifySsl", "PROXMOX_VERIFY_SSL", True), "PROXMOX_VERIFY_SSL"),
        timeout=as_int(pick(values, "timeout", "PROXMOX_TIMEOUT", 30), "PROXMOX_TIMEOUT", minimum=1),
    )

from __future__ import annotations

import logging
from dataclasses import dataclass

from infrabridge.config import ConfigError, as_int, pick, read_config_file

logger = logging.getLogger("infrabridge.cloudflare")

DEFAULT_BASE_URL = "https://api.cloudflare.com/client/v4"


@dataclass(frozen=True)
class CloudflareConfig:
    api_token: str | None = None
    api_key: str | None = None
    email: str | None = None
    account_id: str | None = None
    base_url: str = DEFAULT_BASE_URL
    timeout: int = 30

    def auth_headers(self) -> dict[str, str]:
        if self.api_token:
            return {"Authorization": f"Bearer {self.api_token}"}
        return {"X-Auth-Key": self.api_key or "", "X-Auth-Email": self.email or ""}


def load_config(cwd: str | None = None) -> CloudflareConfig:
    values = read_config_file("cloudflare", cwd)
    config = CloudflareConfig(
        api_token=pick(values, "apiToken", "CLOUDFLARE_API_TOKEN"),
        api_key=pick(values, "apiKey", "CLOUDFLARE_API_KEY"),
        email=pick(values, "email", "CLOUDFLARE_EMAIL"),
        account_id=pick(values, "accountId", "CLOUDFLARE_ACCOUNT_ID"),
        base_url=str(pick(values, "baseUrl", "CLOUDFLARE_BASE_URL", DEFAULT_BASE_URL)),
        timeout=as_int(pick(values, "timeout", "CLOUDFLARE_TIMEOUT", 30), "CLOUDFLARE_TIMEOUT", minimum=1),
    )
    has_key = bool(config.api_key and config.email)
    if not config.api_token and not has_key:
        raise ConfigError(
            "Cloudflare authentication not configured. "
            "Set CLOUDFLARE_API_TOKEN, or CLOUDFLARE_API_KEY and CLOUDFLARE_EMAIL"
        )
    if config.api_token and has_key:
        logger.warning("Both API token and API key provided; the API token will be used")
    return config

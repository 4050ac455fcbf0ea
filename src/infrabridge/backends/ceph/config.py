from __future__ import annotations

from dataclasses import dataclass, field

from infrabridge.config import as_int, as_list, pick, read_config_file


@dataclass(frozen=True)
class CephConfig:
    cluster_name: str = "ceph"
    monitor_hosts: tuple[str, ...] = field(default_factory=tuple)
    username: str | None = None
    keyring_path: str | None = None
    api_url: str | None = None
    api_username: str | None = None
    api_password: str | None = None
    api_key: str | None = None
    timeout: int = 30
    pool_name: str = "default"

    def cluster_args(self) -> list[str]:
        """Connection flags accepted by ceph, rados, rbd and radosgw-admin."""
        args: list[str] = []
        if self.cluster_name and self.cluster_name != "ceph":
            args += ["--cluster", self.cluster_name]
        if self.monitor_hosts:
            args += ["-m", ",".join(self.monitor_hosts)]
        if self.username:
            args += ["--name", self.username]
        if self.keyring_path:
            args += ["--keyring", self.keyring_path]
        return args


def load_config(cwd: str | None = None) -> CephConfig:
    values = read_config_file("ceph", cwd)
    return CephConfig(
        cluster_name=str(pick(values, "cluster_name", "CEPH_CLUSTER_NAME", "ceph")),
        monitor_hosts=tuple(as_list(pick(values, "monitor_hosts", "CEPH_MONITOR_HOSTS"))),
        username=pick(values, "username", "CEPH_USERNAME"),
        keyring_path=pick(values, "keyring_path", "CEPH_KEYRING_PATH"),
        api_url=pick(values, "api_url", "CEPH_API_URL"),
        api_username=pick(values, "api_username", "CEPH_API_USERNAME"),
        api_password=pick(values, "api_password", "CEPH_API_PASSWORD"),
        api_key=pick(values, "api_key", "CEPH_API_KEY"),
        timeout=as_int(pick(values, "timeout", "CEPH_TIMEOUT", 30), "CEPH_TIMEOUT", minimum=1),
        pool_name=str(pick(values, "pool_name", "CEPH_POOL_NAME", "default")),
    )

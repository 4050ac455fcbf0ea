from __future__ import annotations

from dataclasses import dataclass

from infrabridge.config import as_bool, as_int, pick, read_config_file


@dataclass(frozen=True)
class AnsibleConfig:
    ansible_path: str = "ansible"
    inventory_path: str = "./inventory"
    playbooks_path: str = "./playbooks"
    roles_path: str = "./roles"
    vault_password_file: str | None = None
    private_key_file: str | None = None
    remote_user: str = "root"
    forks: int = 5
    timeout: int = 30
    command_timeout: int = 600
    host_key_checking: bool = True
    db_path: str = "./ansible-mcp.db"

    def environment(self) -> dict[str, str]:
        """ANSIBLE_* variables exported to every child process."""
        env = {"ANSIBLE_ROLES_PATH": self.roles_path, "ANSIBLE_REMOTE_USER": self.remote_user}
        if not self.host_key_checking:
            env["ANSIBLE_HOST_KEY_CHECKING"] = "False"
        if self.private_key_file:
            env["ANSIBLE_PRIVATE_KEY_FILE"] = self.private_key_file
        return env


def load_config(cwd: str | None = None) -> AnsibleConfig:
    values = read_config_file("ansible", cwd)
    return AnsibleConfig(
        ansible_path=str(pick(values, "ansiblePath", "ANSIBLE_PATH", "ansible")),
        inventory_path=str(pick(values, "inventoryPath", "ANSIBLE_INVENTORY", "./inventory")),
        playbooks_path=str(pick(values, "playbooksPath", "ANSIBLE_PLAYBOOKS_PATH", "./playbooks")),
        roles_path=str(pick(values, "rolesPath", "ANSIBLE_ROLES_PATH", "./roles")),
        vault_password_file=pick(values, "vaultPasswordFile", "ANSIBLE_VAULT_PASSWORD_FILE"),
        private_key_file=pick(values, "privateKeyFile", "ANSIBLE_PRIVATE_KEY_FILE"),
        remote_user=str(pick(values, "remoteUser", "ANSIBLE_REMOTE_USER", "root")),
        forks=as_int(pick(values, "forks", "ANSIBLE_FORKS", 5), "ANSIBLE_FORKS", minimum=1),
        timeout=as_int(pick(values, "timeout", "ANSIBLE_TIMEOUT", 30), "ANSIBLE_TIMEOUT", minimum=1),
        command_timeout=as_int(
            pick(values, "commandTimeout", "ANSIBLE_COMMAND_TIMEOUT", 600),
            "ANSIBLE_COMMAND_TIMEOUT",
            minimum=1,
        ),
        host_key_checking=as_bool(
            pick(values, "hostKeyChecking", "ANSIBLE_HOST_KEY_CHECKING", True), "ANSIBLE_HOST_KEY_CHECKING"
        ),
        db_path=str(pick(values, "dbPath", "ANSIBLE_MCP_DB_PATH", "./ansible-mcp.db")),
    )

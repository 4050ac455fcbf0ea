from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml

from infrabridge.backends.ansible.connector import AnsibleConnector
from infrabridge.backends.ansible.history import RUN_STATUSES
from infrabridge.connectors.process import CommandResult
from infrabridge.envelope import BackendFailure
from infrabridge.tools import ToolDef, boolean, integer, obj, string

logger = logging.getLogger("infrabridge.ansible")

INVENTORY = string("Inventory file, directory or host list; defaults to the configured inventory")
BECOME = boolean("Run operations with become", default=False)
VERBOSE = integer("Verbosity level", minimum=0, maximum=4, default=0)
VAULT_PASSWORD_FILE = string("Path to vault password file; defaults to the configured one")


def _inventory(ans: AnsibleConnector, params: dict[str, Any]) -> str:
    return params["inventory"] or ans.config.inventory_path


def _verbosity(level: int) -> list[str]:
    return [f"-{'v' * min(level, 4)}"] if level else []


def _outcome(result: CommandResult, **extra: Any) -> dict[str, Any]:
    return {
        "success": result.success,
        "exitCode": result.returncode,
        "durationMs": result.duration_ms,
        **extra,
        "stdout": result.stdout,
        "stderr": result.stderr,
    }


async def _run_playbook(ans: AnsibleConnector, params: dict[str, Any]) -> Any:
    config = ans.config
    inventory = _inventory(ans, params)
    args = [params["playbook"], "-i", inventory, "--forks", str(config.forks), "--timeout", str(config.timeout)]
    if params["limit"]:
        args += ["--limit", params["limit"]]
    if params["tags"]:
        args += ["--tags", params["tags"]]
    if params["skipTags"]:
        args += ["--skip-tags", params["skipTags"]]
    if params["become"]:
        args.append("--become")
    if params["checkMode"]:
        args.append("--check")
    if params["diff"]:
        args.append("--diff")
    if config.vault_password_file:
        args += ["--vault-password-file", config.vault_password_file]
    extra_vars = json.dumps(params["extraVars"]) if params["extraVars"] else None
    if extra_vars:
        args += ["-e", extra_vars]
    args += _verbosity(params["verbose"])

    run_id, result = await ans.run_playbook(
        params["playbook"],
        inventory,
        args,
        tags=params["tags"],
        limit=params["limit"],
        extra_vars=extra_vars,
        check_mode=params["checkMode"],
    )
    return _outcome(result, runId=run_id)


async def _run_command(ans: AnsibleConnector, params: dict[str, Any]) -> Any:
    config = ans.config
    args = [params["pattern"], "-m", params["module"]]
    if params["args"]:
        args += ["-a", params["args"]]
    args += ["-i", _inventory(ans, params), "--forks", str(config.forks), "--timeout", str(config.timeout)]
    if params["become"]:
        args.append("--become")
    args += _verbosity(params["verbose"])
    return _outcome(await ans.execute("ansible", args, check=False))


async def _check_syntax(ans: AnsibleConnector, params: dict[str, Any]) -> Any:
    args = [params["playbook"], "--syntax-check", "-i", _inventory(ans, params)]
    result = await ans.execute("ansible-playbook", args, check=False)
    if result.success:
        return {"valid": True, "playbook": params["playbook"]}
    return {"valid": False, "playbook": params["playbook"], "errors": (result.stderr or result.stdout).strip()}


def _parse_json(result: CommandResult) -> Any:
    try:
        return json.loads(result.stdout)
    except ValueError:
        return result.stdout


async def _get_inventory(ans: AnsibleConnector, params: dict[str, Any]) -> Any:
    args = ["-i", _inventory(ans, params)]
    if params["host"]:
        args += ["--host", params["host"]]
    elif params["graph"]:
        args.append("--graph")
        if params["vars"]:
            args.append("--vars")
        return (await ans.execute("ansible-inventory", args)).stdout
    else:
        args.append("--list")
    return _parse_json(await ans.execute("ansible-inventory", args))


def _first_play(path: Path) -> dict[str, Any] | None:
    try:
        parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
        logger.debug("Skipping %s: %s", path, exc)
        return None
    if isinstance(parsed, list) and parsed and isinstance(parsed[0], dict):
        return parsed[0]
    return None


def scan_playbooks(directory: str) -> list[dict[str, Any]]:
    """YAML files under ``directory`` whose top level is a list of plays."""
    root = Path(directory)
    if not root.is_dir():
        return []
    playbooks = []
    for path in sorted(root.rglob("*")):
        if path.suffix not in (".yml", ".yaml") or not path.is_file():
            continue
        play = _first_play(path)
        if play is None:
            continue
        category = path.parent.relative_to(root).as_posix()
        tags = play.get("tags") or []
        playbooks.append(
            {
                "name": path.stem,
                "path": str(path),
                "category": "uncategorized" if category == "." else category,
                "description": play.get("name"),
                "tags": [tags] if isinstance(tags, str) else list(tags),
            }
        )
    return playbooks


async def _scan_playbooks(ans: AnsibleConnector, params: dict[str, Any]) -> Any:
    playbooks = scan_playbooks(params["directory"] or ans.config.playbooks_path)
    return {"count": len(playbooks), "playbooks": playbooks}


async def _install_requirements(ans: AnsibleConnector, params: dict[str, Any]) -> Any:
    kind = params["type"]
    args = [kind, "install", "-r", params["requirementsFile"]]
    if kind == "role" and ans.config.roles_path:
        args += ["-p", ans.config.roles_path]
    result = await ans.execute("ansible-galaxy", args)
    return _outcome(result)


async def _vault(ans: AnsibleConnector, action: str, content: str, password_file: str | None) -> str:
    password_file = password_file or ans.config.vault_password_file
    if not password_file:
        raise BackendFailure("Vault password file not configured")
    fd, temp_path = tempfile.mkstemp(prefix="ansible-vault-", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
        await ans.execute("ansible-vault", [action, temp_path, "--vault-password-file", password_file])
        return Path(temp_path).read_text(encoding="utf-8")
    finally:
        Path(temp_path).unlink(missing_ok=True)


async def _vault_encrypt(ans: AnsibleConnector, params: dict[str, Any]) -> Any:
    return await _vault(ans, "encrypt", params["content"], params["vaultPasswordFile"])


async def _vault_decrypt(ans: AnsibleConnector, params: dict[str, Any]) -> Any:
    return await _vault(ans, "decrypt", params["content"], params["vaultPasswordFile"])


async def _get_runs(ans: AnsibleConnector, params: dict[str, Any]) -> Any:
    runs = ans.history.recent_runs(params["limit"], status=params["status"], playbook=params["playbook"])
    # Output can be large; get_run_details returns it in full.
    return [{key: value for key, value in run.items() if key not in ("stdout", "stderr")} for run in runs]


async def _get_run_details(ans: AnsibleConnector, params: dict[str, Any]) -> Any:
    run = ans.history.get_run(params["runId"])
    if run is None:
        raise BackendFailure(f"Run {params['runId']} not found")
    return run


def to_ini(inventory: dict[str, Any]) -> str:
    """Render ``ansible-inventory --list`` output as an INI inventory."""
    hostvars = inventory.get("_meta", {}).get("hostvars", {})
    sections = []
    for group, data in inventory.items():
        if group == "_meta" or not isinstance(data, dict):
            continue
        hosts = data.get("hosts") or []
        if hosts:
            lines = [f"[{group}]"]
            for host in hosts:
                host_vars = " ".join(f"{key}={value}" for key, value in hostvars.get(host, {}).items())
                lines.append(f"{host} {host_vars}".rstrip())
            sections.append("\n".join(lines))
        children = data.get("children") or []
        if children and group != "all":
            sections.append("\n".join([f"[{group}:children]", *children]))
    return "\n\n".join(sections) + "\n"


async def _generate_inventory(ans: AnsibleConnector, params: dict[str, Any]) -> Any:
    result = await ans.execute("ansible-inventory", ["-i", _inventory(ans, params), "--list"])
    inventory = _parse_json(result)
    if not isinstance(inventory, dict):
        raise BackendFailure("ansible-inventory did not return JSON", raw={"stdout": result.stdout[:2000]})

    fmt = params["format"]
    if fmt == "yaml":
        output = yaml.safe_dump(inventory, default_flow_style=False, sort_keys=False)
    elif fmt == "ini":
        output = to_ini(inventory)
    else:
        output = json.dumps(inventory, indent=2)

    if params["outputFile"]:
        try:
            Path(params["outputFile"]).write_text(output, encoding="utf-8")
        except OSError as exc:
            raise BackendFailure(f"Failed to write {params['outputFile']}: {exc}") from exc
        return f"Inventory saved to {params['outputFile']}"
    return output


TOOLS: tuple[ToolDef, ...] = (
    ToolDef(
        name="run_playbook",
        description="Run an Ansible playbook and record the run",
        parameters=(
            ("playbook", string("Path to the playbook file")),
            ("inventory", INVENTORY),
            ("limit", string("Limit execution to specific hosts")),
            ("tags", string("Only run plays and tasks tagged with these values")),
            ("skipTags", string("Skip plays and tasks tagged with these values")),
            ("extraVars", obj("Additional variables")),
            ("become", BECOME),
            ("checkMode", boolean("Run in check mode (dry run)", default=False)),
            ("diff", boolean("Show differences in changed files", default=False)),
            ("verbose", VERBOSE),
        ),
        required=("playbook",),
        handler=_run_playbook,
    ),
    ToolDef(
        name="run_command",
        description="Run an ad-hoc Ansible module on hosts",
        parameters=(
            ("pattern", string('Host pattern, e.g. "all", "webservers" or "host1"')),
            ("module", string('Ansible module to execute, e.g. "ping", "shell" or "apt"')),
            ("args", string("Module arguments")),
            ("inventory", INVENTORY),
            ("become", BECOME),
            ("verbose", VERBOSE),
        ),
        required=("pattern", "module"),
        handler=_run_command,
    ),
    ToolDef(
        name="check_syntax",
        description="Check playbook syntax without executing it",
        parameters=(("playbook", string("Path to playbook to check")), ("inventory", INVENTORY)),
        required=("playbook",),
        handler=_check_syntax,
    ),
    ToolDef(
        name="get_inventory",
        description="Show the inventory as JSON, one host's variables, or a group graph",
        parameters=(
            ("inventory", INVENTORY),
            ("host", string("Get variables for a specific host")),
            ("graph", boolean("Show inventory as a graph", default=False)),
            ("vars", boolean("Include variables in graph output", default=False)),
        ),
        handler=_get_inventory,
    ),
    ToolDef(
        name="scan_playbooks",
        description="Find playbooks under a directory and read each first play's name and tags",
        parameters=(("directory", string("Directory to scan; defaults to the configured playbooks path")),),
        handler=_scan_playbooks,
    ),
    ToolDef(
        name="install_requirements",
        description="Install Ansible Galaxy roles or collections from a requirements file",
        parameters=(
            ("requirementsFile", string("Path to requirements file")),
            ("type", string("Type of requirements", enum=("role", "collection"), default="role")),
        ),
        required=("requirementsFile",),
        handler=_install_requirements,
    ),
    ToolDef(
        name="vault_encrypt",
        description="Encrypt content using Ansible Vault",
        parameters=(("content", string("Content to encrypt")), ("vaultPasswordFile", VAULT_PASSWORD_FILE)),
        required=("content",),
        handler=_vault_encrypt,
    ),
    ToolDef(
        name="vault_decrypt",
        description="Decrypt Ansible Vault encrypted content",
        parameters=(("content", string("Encrypted content")), ("vaultPasswordFile", VAULT_PASSWORD_FILE)),
        required=("content",),
        handler=_vault_decrypt,
    ),
    ToolDef(
        name="get_runs",
        description="List recent playbook runs, newest first",
        parameters=(
            ("limit", integer("Number of runs to retrieve", minimum=1, maximum=1000, default=10)),
            ("status", string("Filter by status", enum=RUN_STATUSES)),
            ("playbook", string("Filter by playbook path substring")),
        ),
        handler=_get_runs,
    ),
    ToolDef(
        name="get_run_details",
        description="Get one playbook run including its full output",
        parameters=(("runId", integer("Run ID", minimum=1)),),
        required=("runId",),
        handler=_get_run_details,
    ),
    ToolDef(
        name="generate_inventory",
        description="Export the resolved inventory as JSON, YAML or INI",
        parameters=(
            ("inventory", INVENTORY),
            ("format", string("Output format", enum=("json", "yaml", "ini"), default="json")),
            ("outputFile", string("Save to this file instead of returning the text")),
        ),
        handler=_generate_inventory,
    ),
)

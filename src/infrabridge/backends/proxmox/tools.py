from __future__ import annotations

from typing import Any

from infrabridge.backends.proxmox.connector import ProxmoxConnector
from infrabridge.tools import ToolDef, boolean, integer, string

NODE = string("Node name")
VMID = integer("VM or container ID", minimum=100)
TIMEOUT = integer("Seconds to wait before giving up", minimum=0)


def _form(**fields: Any) -> dict[str, Any]:
    """Proxmox takes form fields; booleans travel as 0/1."""
    return {key: int(value) if isinstance(value, bool) else value for key, value in fields.items() if value is not None}


async def _get_cluster_status(px: ProxmoxConnector, params: dict[str, Any]) -> Any:
    return await px.execute("GET", "/cluster/status")


async def _list_nodes(px: ProxmoxConnector, params: dict[str, Any]) -> Any:
    return await px.execute("GET", "/nodes")


async def _get_node_status(px: ProxmoxConnector, params: dict[str, Any]) -> Any:
    return await px.execute("GET", f"/nodes/{params['node']}/status")


async def _get_version(px: ProxmoxConnector, params: dict[str, Any]) -> Any:
    return await px.execute("GET", "/version")


async def _list_vms(px: ProxmoxConnector, params: dict[str, Any]) -> Any:
    return await px.execute("GET", f"/nodes/{params['node']}/qemu")


async def _get_vm_status(px: ProxmoxConnector, params: dict[str, Any]) -> Any:
    return await px.execute("GET", f"/nodes/{params['node']}/qemu/{params['vmid']}/status/current")


async def _get_vm_config(px: ProxmoxConnector, params: dict[str, Any]) -> Any:
    return await px.execute("GET", f"/nodes/{params['node']}/qemu/{params['vmid']}/config")


async def _vm_action(px: ProxmoxConnector, params: dict[str, Any], action: str, **fields: Any) -> Any:
    task = await px.execute(
        "POST",
        f"/nodes/{params['node']}/qemu/{params['vmid']}/status/{action}",
        data=_form(timeout=params["timeout"], **fields),
    )
    return {"vmid": params["vmid"], "action": action, "task": task}


async def _start_vm(px: ProxmoxConnector, params: dict[str, Any]) -> Any:
    return await _vm_action(px, params, "start")


async def _stop_vm(px: ProxmoxConnector, params: dict[str, Any]) -> Any:
    return await _vm_action(px, params, "stop")


async def _shutdown_vm(px: ProxmoxConnector, params: dict[str, Any]) -> Any:
    return await _vm_action(px, params, "shutdown", forceStop=params["forceStop"])


async def _reboot_vm(px: ProxmoxConnector, params: dict[str, Any]) -> Any:
    return await _vm_action(px, params, "reboot")


async def _list_containers(px: ProxmoxConnector, params: dict[str, Any]) -> Any:
    return await px.execute("GET", f"/nodes/{params['node']}/lxc")


async def _get_container_status(px: ProxmoxConnector, params: dict[str, Any]) -> Any:
    return await px.execute("GET", f"/nodes/{params['node']}/lxc/{params['vmid']}/status/current")


async def _container_action(px: ProxmoxConnector, params: dict[str, Any], action: str) -> Any:
    task = await px.execute("POST", f"/nodes/{params['node']}/lxc/{params['vmid']}/status/{action}")
    return {"vmid": params["vmid"], "action": action, "task": task}


async def _start_container(px: ProxmoxConnector, params: dict[str, Any]) -> Any:
    return await _container_action(px, params, "start")


async def _stop_container(px: ProxmoxConnector, params: dict[str, Any]) -> Any:
    return await _container_action(px, params, "stop")


async def _list_storage(px: ProxmoxConnector, params: dict[str, Any]) -> Any:
    if params["node"]:
        return await px.execute("GET", f"/nodes/{params['node']}/storage")
    return await px.execute("GET", "/storage")


async def _get_storage_content(px: ProxmoxConnector, params: dict[str, Any]) -> Any:
    return await px.execute(
        "GET",
        f"/nodes/{params['node']}/storage/{params['storage']}/content",
        params={"content": params["content"]},
    )


async def _list_tasks(px: ProxmoxConnector, params: dict[str, Any]) -> Any:
    return await px.execute(
        "GET",
        f"/nodes/{params['node']}/tasks",
        params={"vmid": params["vmid"], "limit": params["limit"]},
    )


async def _get_task_status(px: ProxmoxConnector, params: dict[str, Any]) -> Any:
    return await px.execute("GET", f"/nodes/{params['node']}/tasks/{params['upid']}/status")


_VM = (("node", NODE), ("vmid", VMID))

TOOLS: tuple[ToolDef, ...] = (
    ToolDef(
        name="get_cluster_status",
        description="Get cluster membership and quorum status",
        parameters=(),
        handler=_get_cluster_status,
    ),
    ToolDef(name="list_nodes", description="List cluster nodes", parameters=(), handler=_list_nodes),
    ToolDef(
        name="get_node_status",
        description="Get CPU, memory and uptime for a node",
        parameters=(("node", NODE),),
        required=("node",),
        handler=_get_node_status,
    ),
    ToolDef(name="get_version", description="Get the Proxmox VE version", parameters=(), handler=_get_version),
    ToolDef(
        name="list_vms",
        description="List QEMU virtual machines on a node",
        parameters=(("node", NODE),),
        required=("node",),
        handler=_list_vms,
    ),
    ToolDef(
        name="get_vm_status",
        description="Get the current status of a VM",
        parameters=_VM,
        required=("node", "vmid"),
        handler=_get_vm_status,
    ),
    ToolDef(
        name="get_vm_config",
        description="Get the configuration of a VM",
        parameters=_VM,
        required=("node", "vmid"),
        handler=_get_vm_config,
    ),
    ToolDef(
        name="start_vm",
        description="Start a VM",
        parameters=(*_VM, ("timeout", TIMEOUT)),
        required=("node", "vmid"),
        handler=_start_vm,
    ),
    ToolDef(
        name="stop_vm",
        description="Stop a VM immediately",
        parameters=(*_VM, ("timeout", TIMEOUT)),
        required=("node", "vmid"),
        handler=_stop_vm,
    ),
    ToolDef(
        name="shutdown_vm",
        description="Shut a VM down through ACPI",
        parameters=(
            *_VM,
            ("timeout", TIMEOUT),
            ("forceStop", boolean("Hard stop if the guest does not shut down in time")),
        ),
        required=("node", "vmid"),
        handler=_shutdown_vm,
    ),
    ToolDef(
        name="reboot_vm",
        description="Reboot a VM",
        parameters=(*_VM, ("timeout", TIMEOUT)),
        required=("node", "vmid"),
        handler=_reboot_vm,
    ),
    ToolDef(
        name="list_containers",
        description="List LXC containers on a node",
        parameters=(("node", NODE),),
        required=("node",),
        handler=_list_containers,
    ),
    ToolDef(
        name="get_container_status",
        description="Get the current status of a container",
        parameters=_VM,
        required=("node", "vmid"),
        handler=_get_container_status,
    ),
    ToolDef(
        name="start_container",
        description="Start a container",
        parameters=_VM,
        required=("node", "vmid"),
        handler=_start_container,
    ),
    ToolDef(
        name="stop_container",
        description="Stop a container",
        parameters=_VM,
        required=("node", "vmid"),
        handler=_stop_container,
    ),
    ToolDef(
        name="list_storage",
        description="List storage, cluster-wide or for one node",
        parameters=(("node", string("Node name; omit for cluster storage")),),
        handler=_list_storage,
    ),
    ToolDef(
        name="get_storage_content",
        description="List volumes on a storage",
        parameters=(
            ("node", NODE),
            ("storage", string("Storage ID")),
            ("content", string("Content type filter (images, iso, backup, ...)")),
        ),
        required=("node", "storage"),
        handler=_get_storage_content,
    ),
    ToolDef(
        name="list_tasks",
        description="List recent tasks on a node",
        parameters=(
            ("node", NODE),
            ("vmid", integer("Only tasks for this guest", minimum=100)),
            ("limit", integer("Maximum tasks to return", default=50, minimum=1)),
        ),
        required=("node",),
        handler=_list_tasks,
    ),
    ToolDef(
        name="get_task_status",
        description="Get the status of a task by UPID",
        parameters=(("node", NODE), ("upid", string("Task UPID"))),
        required=("node", "upid"),
        handler=_get_task_status,
    ),
)

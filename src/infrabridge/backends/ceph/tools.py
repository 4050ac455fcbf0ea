from __future__ import annotations

from typing import Any

from infrabridge.backends.ceph.connector import CephConnector
from infrabridge.tools import ToolDef, integer, string

POOL_NAME = string("Name of the pool")
OPTIONAL_POOL = string("Name of the pool (optional)")
IMAGE = string("Image name")
UID = string("User ID")


def _pool_flag(pool: str | None) -> list[str]:
    return ["-p", pool] if pool else []


async def _get_cluster_status(ceph: CephConnector, params: dict[str, Any]) -> Any:
    return await ceph.get("/api/health/full", "status")


async def _get_cluster_health(ceph: CephConnector, params: dict[str, Any]) -> Any:
    return await ceph.get("/api/health/status", "health")


async def _get_config(ceph: CephConnector, params: dict[str, Any]) -> Any:
    args = ["config", "get"]
    if params["section"]:
        args.append(params["section"])
    if params["name"]:
        args.append(params["name"])
    return await ceph.ceph(*args)


async def _set_config(ceph: CephConnector, params: dict[str, Any]) -> Any:
    return await ceph.ceph("config", "set", params["section"], params["name"], params["value"])


async def _list_pools(ceph: CephConnector, params: dict[str, Any]) -> Any:
    return await ceph.get("/api/pool", "osd", "pool", "ls", "detail")


async def _create_pool(ceph: CephConnector, params: dict[str, Any]) -> Any:
    return await ceph.ceph("osd", "pool", "create", params["name"], str(params["pg_num"]))


async def _delete_pool(ceph: CephConnector, params: dict[str, Any]) -> Any:
    name = params["pool_name"]
    return await ceph.ceph("osd", "pool", "delete", name, name, "--yes-i-really-really-mean-it")


async def _get_pool_stats(ceph: CephConnector, params: dict[str, Any]) -> Any:
    args = ["osd", "pool", "stats"]
    if params["pool_name"]:
        args.append(params["pool_name"])
    return await ceph.ceph(*args)


async def _list_objects(ceph: CephConnector, params: dict[str, Any]) -> Any:
    return await ceph.execute("rados", ["-p", params["pool_name"], "ls"])


async def _delete_object(ceph: CephConnector, params: dict[str, Any]) -> Any:
    await ceph.execute("rados", ["-p", params["pool"], "rm", params["object_name"]])
    return {"pool": params["pool"], "object": params["object_name"], "deleted": True}


async def _list_osds(ceph: CephConnector, params: dict[str, Any]) -> Any:
    return await ceph.get("/api/osd", "osd", "ls")


async def _get_osd_tree(ceph: CephConnector, params: dict[str, Any]) -> Any:
    return await ceph.ceph("osd", "tree")


async def _get_osd_stats(ceph: CephConnector, params: dict[str, Any]) -> Any:
    return await ceph.ceph("osd", "df")


async def _get_monitor_status(ceph: CephConnector, params: dict[str, Any]) -> Any:
    return await ceph.ceph("mon", "stat")


async def _list_monitors(ceph: CephConnector, params: dict[str, Any]) -> Any:
    return await ceph.ceph("mon", "dump")


async def _get_pg_stats(ceph: CephConnector, params: dict[str, Any]) -> Any:
    return await ceph.ceph("pg", "stat")


async def _list_pgs(ceph: CephConnector, params: dict[str, Any]) -> Any:
    return await ceph.ceph("pg", "ls")


async def _get_mds_status(ceph: CephConnector, params: dict[str, Any]) -> Any:
    return await ceph.ceph("mds", "stat")


async def _list_filesystems(ceph: CephConnector, params: dict[str, Any]) -> Any:
    return await ceph.ceph("fs", "ls")


async def _list_rbd_images(ceph: CephConnector, params: dict[str, Any]) -> Any:
    return await ceph.execute("rbd", ["ls", *_pool_flag(params["pool"])])


async def _create_rbd_image(ceph: CephConnector, params: dict[str, Any]) -> Any:
    await ceph.execute(
        "rbd", ["create", params["name"], "--size", params["size"], *_pool_flag(params["pool"])]
    )
    return {"image": params["name"], "size": params["size"], "pool": params["pool"], "created": True}


async def _delete_rbd_image(ceph: CephConnector, params: dict[str, Any]) -> Any:
    await ceph.execute("rbd", ["rm", params["name"], *_pool_flag(params["pool"])])
    return {"image": params["name"], "pool": params["pool"], "deleted": True}


async def _get_rbd_image_info(ceph: CephConnector, params: dict[str, Any]) -> Any:
    return await ceph.execute("rbd", ["info", params["name"], *_pool_flag(params["pool"])])


async def _list_rgw_users(ceph: CephConnector, params: dict[str, Any]) -> Any:
    return await ceph.execute("radosgw-admin", ["user", "list"])


async def _create_rgw_user(ceph: CephConnector, params: dict[str, Any]) -> Any:
    return await ceph.execute(
        "radosgw-admin",
        ["user", "create", "--uid", params["uid"], "--display-name", params["display_name"]],
    )


async def _get_rgw_user_info(ceph: CephConnector, params: dict[str, Any]) -> Any:
    return await ceph.execute("radosgw-admin", ["user", "info", "--uid", params["uid"]])


async def _delete_rgw_user(ceph: CephConnector, params: dict[str, Any]) -> Any:
    await ceph.execute("radosgw-admin", ["user", "rm", "--uid", params["uid"]])
    return {"uid": params["uid"], "deleted": True}


async def _list_rgw_buckets(ceph: CephConnector, params: dict[str, Any]) -> Any:
    return await ceph.execute("radosgw-admin", ["bucket", "list"])


async def _get_rgw_bucket_stats(ceph: CephConnector, params: dict[str, Any]) -> Any:
    return await ceph.execute("radosgw-admin", ["bucket", "stats", "--bucket", params["bucket"]])


_RBD_IMAGE = (("name", IMAGE), ("pool", string("Pool name (optional)")))

TOOLS: tuple[ToolDef, ...] = (
    ToolDef(
        name="get_cluster_status",
        description="Get the overall status of the Ceph cluster",
        parameters=(),
        handler=_get_cluster_status,
    ),
    ToolDef(
        name="get_cluster_health",
        description="Get the health status of the Ceph cluster",
        parameters=(),
        handler=_get_cluster_health,
    ),
    ToolDef(
        name="get_config",
        description="Get cluster configuration values",
        parameters=(
            ("section", string("Configuration section")),
            ("name", string("Configuration parameter name")),
        ),
        handler=_get_config,
    ),
    ToolDef(
        name="set_config",
        description="Set a cluster configuration value",
        parameters=(
            ("section", string("Configuration section")),
            ("name", string("Configuration parameter name")),
            ("value", string("Configuration value")),
        ),
        required=("section", "name", "value"),
        handler=_set_config,
    ),
    ToolDef(
        name="list_pools",
        description="List all pools in the cluster",
        parameters=(),
        handler=_list_pools,
    ),
    ToolDef(
        name="create_pool",
        description="Create a new pool",
        parameters=(
            ("name", string("Name of the new pool")),
            ("pg_num", integer("Number of placement groups", minimum=1, default=128)),
        ),
        required=("name",),
        handler=_create_pool,
    ),
    ToolDef(
        name="delete_pool",
        description="Delete a pool and all of its data",
        parameters=(("pool_name", POOL_NAME),),
        required=("pool_name",),
        handler=_delete_pool,
    ),
    ToolDef(
        name="get_pool_stats",
        description="Get I/O statistics for one pool or all pools",
        parameters=(("pool_name", OPTIONAL_POOL),),
        handler=_get_pool_stats,
    ),
    ToolDef(
        name="list_objects",
        description="List objects in a pool",
        parameters=(("pool_name", POOL_NAME),),
        required=("pool_name",),
        handler=_list_objects,
    ),
    ToolDef(
        name="delete_object",
        description="Delete an object from a pool",
        parameters=(("pool", string("Pool name")), ("object_name", string("Object name"))),
        required=("pool", "object_name"),
        handler=_delete_object,
    ),
    ToolDef(
        name="list_osds",
        description="List all OSDs in the cluster",
        parameters=(),
        handler=_list_osds,
    ),
    ToolDef(
        name="get_osd_tree",
        description="Get the OSD tree showing the cluster topology",
        parameters=(),
        handler=_get_osd_tree,
    ),
    ToolDef(
        name="get_osd_stats",
        description="Get OSD usage statistics",
        parameters=(),
        handler=_get_osd_stats,
    ),
    ToolDef(
        name="get_monitor_status",
        description="Get monitor quorum status",
        parameters=(),
        handler=_get_monitor_status,
    ),
    ToolDef(
        name="list_monitors",
        description="Dump the monitor map",
        parameters=(),
        handler=_list_monitors,
    ),
    ToolDef(
        name="get_pg_stats",
        description="Get placement group statistics",
        parameters=(),
        handler=_get_pg_stats,
    ),
    ToolDef(
        name="list_pgs",
        description="List placement groups",
        parameters=(),
        handler=_list_pgs,
    ),
    ToolDef(
        name="get_mds_status",
        description="Get metadata server status",
        parameters=(),
        handler=_get_mds_status,
    ),
    ToolDef(
        name="list_filesystems",
        description="List CephFS filesystems",
        parameters=(),
        handler=_list_filesystems,
    ),
    ToolDef(
        name="list_rbd_images",
        description="List RBD images",
        parameters=(("pool", string("Pool name (optional)")),),
        handler=_list_rbd_images,
    ),
    ToolDef(
        name="create_rbd_image",
        description="Create a new RBD image",
        parameters=(
            ("name", IMAGE),
            ("size", string("Image size, e.g. 10G or 1T")),
            ("pool", string("Pool name (optional)")),
        ),
        required=("name", "size"),
        handler=_create_rbd_image,
    ),
    ToolDef(
        name="delete_rbd_image",
        description="Delete an RBD image",
        parameters=_RBD_IMAGE,
        required=("name",),
        handler=_delete_rbd_image,
    ),
    ToolDef(
        name="get_rbd_image_info",
        description="Get information about an RBD image",
        parameters=_RBD_IMAGE,
        required=("name",),
        handler=_get_rbd_image_info,
    ),
    ToolDef(
        name="list_rgw_users",
        description="List RADOS Gateway (S3) users",
        parameters=(),
        handler=_list_rgw_users,
    ),
    ToolDef(
        name="create_rgw_user",
        description="Create a RADOS Gateway user",
        parameters=(("uid", UID), ("display_name", string("Display name"))),
        required=("uid", "display_name"),
        handler=_create_rgw_user,
    ),
    ToolDef(
        name="get_rgw_user_info",
        description="Get information about a RADOS Gateway user",
        parameters=(("uid", UID),),
        required=("uid",),
        handler=_get_rgw_user_info,
    ),
    ToolDef(
        name="delete_rgw_user",
        description="Delete a RADOS Gateway user",
        parameters=(("uid", UID),),
        required=("uid",),
        handler=_delete_rgw_user,
    ),
    ToolDef(
        name="list_rgw_buckets",
        description="List all RADOS Gateway buckets",
        parameters=(),
        handler=_list_rgw_buckets,
    ),
    ToolDef(
        name="get_rgw_bucket_stats",
        description="Get statistics for a RADOS Gateway bucket",
        parameters=(("bucket", string("Bucket name")),),
        required=("bucket",),
        handler=_get_rgw_bucket_stats,
    ),
)

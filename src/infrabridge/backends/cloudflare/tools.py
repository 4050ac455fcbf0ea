from __future__ import annotations

from typing import Any

from infrabridge.backends.cloudflare.connector import CloudflareConnector
from infrabridge.envelope import InvalidArguments, Violation
from infrabridge.tools import ToolDef, anything, array, boolean, integer, string

RECORD_TYPES = ("A", "AAAA", "CNAME", "TXT", "MX", "NS", "SRV", "CAA")

ZONE_ID = string("Zone ID")
RECORD_ID = string("DNS record ID")
PAGE = integer("Page number", minimum=1)
PER_PAGE = integer("Results per page (max 50 for zones)", minimum=1, maximum=5000)


def _record_fields(params: dict[str, Any]) -> dict[str, Any]:
    fields = ("type", "name", "content", "ttl", "priority", "proxied", "comment", "tags")
    return {field: params[field] for field in fields if params[field] is not None}


async def _list_zones(cf: CloudflareConnector, params: dict[str, Any]) -> Any:
    filters = {"name": params["name"], "status": params["status"], "account.id": params["accountId"]}
    if params["all"]:
        return await cf.list_all_zones(filters)
    return await cf.execute(
        "GET",
        "/zones",
        params={**filters, "page": params["page"], "per_page": params["perPage"]},
    )


async def _get_zone(cf: CloudflareConnector, params: dict[str, Any]) -> Any:
    return await cf.execute("GET", f"/zones/{params['zoneId']}")


async def _create_zone(cf: CloudflareConnector, params: dict[str, Any]) -> Any:
    account_id = params["accountId"] or await cf.account_id()
    body = {
        "name": params["name"],
        "account": {"id": account_id},
        "jump_start": params["jumpStart"],
        "type": params["type"],
    }
    return await cf.execute("POST", "/zones", json={k: v for k, v in body.items() if v is not None})


async def _delete_zone(cf: CloudflareConnector, params: dict[str, Any]) -> Any:
    await cf.execute("DELETE", f"/zones/{params['zoneId']}")
    return f"Zone {params['zoneId']} deleted successfully"


async def _purge_all_cache(cf: CloudflareConnector, params: dict[str, Any]) -> Any:
    await cf.execute("POST", f"/zones/{params['zoneId']}/purge_cache", json={"purge_everything": True})
    return "Cache purged successfully"


async def _purge_cache_by_urls(cf: CloudflareConnector, params: dict[str, Any]) -> Any:
    files = params["files"]
    if not files:
        raise InvalidArguments(Violation("files", "must contain at least one URL"))
    await cf.execute("POST", f"/zones/{params['zoneId']}/purge_cache", json={"files": files})
    return f"Cache purged for {len(files)} URLs"


async def _list_dns_records(cf: CloudflareConnector, params: dict[str, Any]) -> Any:
    return await cf.execute(
        "GET",
        f"/zones/{params['zoneId']}/dns_records",
        params={
            "type": params["type"],
            "name": params["name"],
            "content": params["content"],
            "page": params["page"],
            "per_page": params["perPage"],
        },
    )


async def _get_dns_record(cf: CloudflareConnector, params: dict[str, Any]) -> Any:
    return await cf.execute("GET", f"/zones/{params['zoneId']}/dns_records/{params['recordId']}")


async def _create_dns_record(cf: CloudflareConnector, params: dict[str, Any]) -> Any:
    return await cf.execute("POST", f"/zones/{params['zoneId']}/dns_records", json=_record_fields(params))


async def _update_dns_record(cf: CloudflareConnector, params: dict[str, Any]) -> Any:
    fields = _record_fields(params)
    if not fields:
        raise InvalidArguments(Violation("content", "provide at least one field to update"))
    return await cf.execute(
        "PATCH",
        f"/zones/{params['zoneId']}/dns_records/{params['recordId']}",
        json=fields,
    )


async def _delete_dns_record(cf: CloudflareConnector, params: dict[str, Any]) -> Any:
    await cf.execute("DELETE", f"/zones/{params['zoneId']}/dns_records/{params['recordId']}")
    return "DNS record deleted successfully"


async def _get_zone_settings(cf: CloudflareConnector, params: dict[str, Any]) -> Any:
    return await cf.execute("GET", f"/zones/{params['zoneId']}/settings")


async def _update_zone_setting(cf: CloudflareConnector, params: dict[str, Any]) -> Any:
    return await cf.execute(
        "PATCH",
        f"/zones/{params['zoneId']}/settings/{params['setting']}",
        json={"value": params["value"]},
    )


async def _verify_token(cf: CloudflareConnector, params: dict[str, Any]) -> Any:
    return await cf.execute("GET", "/user/tokens/verify")


def _record_params(required_fields: bool) -> tuple[tuple[str, Any], ...]:
    return (
        ("zoneId", ZONE_ID),
        *((("recordId", RECORD_ID),) if not required_fields else ()),
        ("type", string("DNS record type", enum=RECORD_TYPES)),
        ("name", string("Record name, e.g. example.com or www")),
        ("content", string("Record content, e.g. an IP address")),
        ("ttl", integer("Time to live in seconds (1 = automatic)", default=1 if required_fields else None, minimum=1)),
        ("priority", integer("Priority for MX and SRV records", minimum=0, maximum=65535)),
        ("proxied", boolean("Proxy through Cloudflare")),
        ("comment", string("Comment for the record")),
        ("tags", array("Tags for the record", items=string("Tag"))),
    )


TOOLS: tuple[ToolDef, ...] = (
    ToolDef(
        name="list_zones",
        description="List zones, optionally following every page",
        parameters=(
            ("name", string("Filter by domain name")),
            ("status", string("Filter by zone status")),
            ("accountId", string("Filter by account ID")),
            ("page", PAGE),
            ("perPage", PER_PAGE),
            ("all", boolean("Fetch every page", default=False)),
        ),
        handler=_list_zones,
    ),
    ToolDef(
        name="get_zone",
        description="Get zone details",
        parameters=(("zoneId", ZONE_ID),),
        required=("zoneId",),
        handler=_get_zone,
    ),
    ToolDef(
        name="create_zone",
        description="Add a zone to an account",
        parameters=(
            ("name", string("Domain name")),
            ("accountId", string("Account ID; defaults to the configured or first account")),
            ("jumpStart", boolean("Scan for existing DNS records")),
            ("type", string("Zone type", enum=("full", "partial"), default="full")),
        ),
        required=("name",),
        handler=_create_zone,
    ),
    ToolDef(
        name="delete_zone",
        description="Delete a zone",
        parameters=(("zoneId", ZONE_ID),),
        required=("zoneId",),
        handler=_delete_zone,
    ),
    ToolDef(
        name="purge_all_cache",
        description="Purge every cached file for a zone",
        parameters=(("zoneId", ZONE_ID),),
        required=("zoneId",),
        handler=_purge_all_cache,
    ),
    ToolDef(
        name="purge_cache_by_urls",
        description="Purge specific URLs from the cache",
        parameters=(("zoneId", ZONE_ID), ("files", array("URLs to purge", items=string("URL")))),
        required=("zoneId", "files"),
        handler=_purge_cache_by_urls,
    ),
    ToolDef(
        name="list_dns_records",
        description="List DNS records for a zone",
        parameters=(
            ("zoneId", ZONE_ID),
            ("type", string("Record type (A, AAAA, CNAME, ...)")),
            ("name", string("Record name")),
            ("content", string("Record content")),
            ("page", PAGE),
            ("perPage", PER_PAGE),
        ),
        required=("zoneId",),
        handler=_list_dns_records,
    ),
    ToolDef(
        name="get_dns_record",
        description="Get one DNS record",
        parameters=(("zoneId", ZONE_ID), ("recordId", RECORD_ID)),
        required=("zoneId", "recordId"),
        handler=_get_dns_record,
    ),
    ToolDef(
        name="create_dns_record",
        description="Create a DNS record",
        parameters=_record_params(required_fields=True),
        required=("zoneId", "type", "name", "content"),
        handler=_create_dns_record,
    ),
    ToolDef(
        name="update_dns_record",
        description="Update fields of a DNS record",
        parameters=_record_params(required_fields=False),
        required=("zoneId", "recordId"),
        handler=_update_dns_record,
    ),
    ToolDef(
        name="delete_dns_record",
        description="Delete a DNS record",
        parameters=(("zoneId", ZONE_ID), ("recordId", RECORD_ID)),
        required=("zoneId", "recordId"),
        handler=_delete_dns_record,
    ),
    ToolDef(
        name="get_zone_settings",
        description="Get every setting for a zone",
        parameters=(("zoneId", ZONE_ID),),
        required=("zoneId",),
        handler=_get_zone_settings,
    ),
    ToolDef(
        name="update_zone_setting",
        description="Change one zone setting",
        parameters=(
            ("zoneId", ZONE_ID),
            ("setting", string("Setting ID, e.g. ssl or always_use_https")),
            ("value", anything("New value")),
        ),
        required=("zoneId", "setting", "value"),
        handler=_update_zone_setting,
    ),
    ToolDef(
        name="verify_token",
        description="Check that the configured API token is valid",
        parameters=(),
        handler=_verify_token,
    ),
)

"""Redis tool catalog.

Stored strings that parse as JSON come back parsed; values that are not
strings are stored JSON-encoded.
"""

from __future__ import annotations

import json
from typing import Any

from infrabridge.backends.redis.connector import RedisConnector
from infrabridge.envelope import InvalidArguments, Violation
from infrabridge.tools import ToolDef, anything, array, boolean, integer, number, obj, string


def format_value(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError:
        return value


def encode_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


def _items(params: dict[str, Any], single: str, many: str) -> list[str]:
    if params[many] is not None:
        values = params[many]
    elif params[single] is not None:
        values = [params[single]]
    else:
        raise InvalidArguments(Violation(single, f"provide either {single} or {many}"))
    if not values:
        raise InvalidArguments(Violation(many, "must not be empty"))
    return [encode_value(item) for item in values]


KEY = string("Key name")
KEYS = array("Key names", items=string("Key name"))


# Server and keyspace


async def _ping(redis: RedisConnector, params: dict[str, Any]) -> Any:
    if params["message"]:
        return {"response": await redis.execute("echo", params["message"])}
    response = await redis.execute("ping")
    return {"response": "PONG" if response is True else response}


async def _info(redis: RedisConnector, params: dict[str, Any]) -> Any:
    if params["section"]:
        return await redis.execute("info", params["section"])
    return await redis.execute("info")


async def _dbsize(redis: RedisConnector, params: dict[str, Any]) -> Any:
    return {"keys": await redis.execute("dbsize")}


async def _keys(redis: RedisConnector, params: dict[str, Any]) -> Any:
    keys = await redis.execute("keys", redis.key(params["pattern"]))
    return sorted(redis.unkey(key) for key in keys)


async def _scan(redis: RedisConnector, params: dict[str, Any]) -> Any:
    match = redis.key(params["match"]) if params["match"] else None
    if redis.config.key_prefix and match is None:
        match = redis.key("*")
    cursor, keys = await redis.execute(
        "scan",
        cursor=int(params["cursor"]),
        match=match,
        count=params["count"],
        _type=params["type"],
    )
    return {"cursor": str(cursor), "keys": [redis.unkey(key) for key in keys]}


async def _exists(redis: RedisConnector, params: dict[str, Any]) -> Any:
    keys = params["keys"]
    count = await redis.execute("exists", *[redis.key(key) for key in keys])
    return {"exists": count, "total": len(keys)}


async def _del(redis: RedisConnector, params: dict[str, Any]) -> Any:
    count = await redis.execute("delete", *[redis.key(key) for key in params["keys"]])
    return {"deleted": count}


async def _expire(redis: RedisConnector, params: dict[str, Any]) -> Any:
    result = await redis.execute("expire", redis.key(params["key"]), params["seconds"])
    return {"success": bool(result)}


async def _ttl(redis: RedisConnector, params: dict[str, Any]) -> Any:
    ttl = await redis.execute("ttl", redis.key(params["key"]))
    return {"ttl": ttl, "exists": ttl != -2, "hasExpiration": ttl >= 0}


async def _type(redis: RedisConnector, params: dict[str, Any]) -> Any:
    return {"type": await redis.execute("type", redis.key(params["key"]))}


async def _rename(redis: RedisConnector, params: dict[str, Any]) -> Any:
    key, new_key = redis.key(params["key"]), redis.key(params["newKey"])
    if params["nx"]:
        return {"success": bool(await redis.execute("renamenx", key, new_key))}
    await redis.execute("rename", key, new_key)
    return {"success": True}


# Strings


async def _get(redis: RedisConnector, params: dict[str, Any]) -> Any:
    value = await redis.execute("get", redis.key(params["key"]))
    return {"key": params["key"], "value": format_value(value)}


async def _set(redis: RedisConnector, params: dict[str, Any]) -> Any:
    conflicts = []
    if params["ex"] is not None and params["px"] is not None:
        conflicts.append(Violation("px", "mutually exclusive with ex"))
    if params["nx"] and params["xx"]:
        conflicts.append(Violation("xx", "mutually exclusive with nx"))
    if conflicts:
        raise InvalidArguments(*conflicts)
    result = await redis.execute(
        "set",
        redis.key(params["key"]),
        encode_value(params["value"]),
        ex=params["ex"],
        px=params["px"],
        nx=params["nx"],
        xx=params["xx"],
        get=params["get"],
    )
    if params["get"]:
        return {"success": True, "oldValue": format_value(result)}
    return {"success": bool(result)}


async def _mget(redis: RedisConnector, params: dict[str, Any]) -> Any:
    keys = params["keys"]
    values = await redis.execute("mget", [redis.key(key) for key in keys])
    return {key: format_value(value) for key, value in zip(keys, values)}


async def _mset(redis: RedisConnector, params: dict[str, Any]) -> Any:
    data = params["data"]
    if not data:
        raise InvalidArguments(Violation("data", "must contain at least one key"))
    await redis.execute("mset", {redis.key(key): encode_value(value) for key, value in data.items()})
    return {"success": True, "count": len(data)}


async def _incr(redis: RedisConnector, params: dict[str, Any]) -> Any:
    return {"value": await redis.execute("incrby", redis.key(params["key"]), params["by"])}


async def _decr(redis: RedisConnector, params: dict[str, Any]) -> Any:
    return {"value": await redis.execute("decrby", redis.key(params["key"]), params["by"])}


# Lists


async def _lpush(redis: RedisConnector, params: dict[str, Any]) -> Any:
    items = _items(params, "value", "values")
    return {"length": await redis.execute("lpush", redis.key(params["key"]), *items)}


async def _rpush(redis: RedisConnector, params: dict[str, Any]) -> Any:
    items = _items(params, "value", "values")
    return {"length": await redis.execute("rpush", redis.key(params["key"]), *items)}


def _popped(result: Any) -> Any:
    if isinstance(result, list):
        return [format_value(item) for item in result]
    return format_value(result)


async def _lpop(redis: RedisConnector, params: dict[str, Any]) -> Any:
    return {"value": _popped(await redis.execute("lpop", redis.key(params["key"]), params["count"]))}


async def _rpop(redis: RedisConnector, params: dict[str, Any]) -> Any:
    return {"value": _popped(await redis.execute("rpop", redis.key(params["key"]), params["count"]))}


async def _lrange(redis: RedisConnector, params: dict[str, Any]) -> Any:
    values = await redis.execute("lrange", redis.key(params["key"]), params["start"], params["stop"])
    return [format_value(value) for value in values]


async def _llen(redis: RedisConnector, params: dict[str, Any]) -> Any:
    return {"length": await redis.execute("llen", redis.key(params["key"]))}


# Hashes


async def _hget(redis: RedisConnector, params: dict[str, Any]) -> Any:
    value = await redis.execute("hget", redis.key(params["key"]), params["field"])
    return {"value": format_value(value)}


async def _hset(redis: RedisConnector, params: dict[str, Any]) -> Any:
    key = redis.key(params["key"])
    if params["fields"]:
        mapping = {field: encode_value(value) for field, value in params["fields"].items()}
        return {"fieldsAdded": await redis.execute("hset", key, mapping=mapping)}
    if params["field"] is None or params["value"] is None:
        raise InvalidArguments(Violation("fields", "provide field and value, or fields"))
    added = await redis.execute("hset", key, params["field"], encode_value(params["value"]))
    return {"newField": added == 1}


async def _hgetall(redis: RedisConnector, params: dict[str, Any]) -> Any:
    data = await redis.execute("hgetall", redis.key(params["key"]))
    return {field: format_value(value) for field, value in data.items()}


async def _hdel(redis: RedisConnector, params: dict[str, Any]) -> Any:
    return {"deleted": await redis.execute("hdel", redis.key(params["key"]), *params["fields"])}


# Sets


async def _sadd(redis: RedisConnector, params: dict[str, Any]) -> Any:
    items = _items(params, "member", "members")
    return {"added": await redis.execute("sadd", redis.key(params["key"]), *items)}


async def _srem(redis: RedisConnector, params: dict[str, Any]) -> Any:
    items = _items(params, "member", "members")
    return {"removed": await redis.execute("srem", redis.key(params["key"]), *items)}


async def _smembers(redis: RedisConnector, params: dict[str, Any]) -> Any:
    members = await redis.execute("smembers", redis.key(params["key"]))
    return sorted((format_value(member) for member in members), key=str)


# Sorted sets


async def _zadd(redis: RedisConnector, params: dict[str, Any]) -> Any:
    if params["members"]:
        mapping = {encode_value(item["member"]): item["score"] for item in params["members"]}
    elif params["member"] is not None and params["score"] is not None:
        mapping = {encode_value(params["member"]): params["score"]}
    else:
        raise InvalidArguments(Violation("members", "provide member and score, or members"))
    return {"added": await redis.execute("zadd", redis.key(params["key"]), mapping)}


async def _zrange(redis: RedisConnector, params: dict[str, Any]) -> Any:
    result = await redis.execute(
        "zrange",
        redis.key(params["key"]),
        params["start"],
        params["stop"],
        withscores=params["withScores"],
    )
    if params["withScores"]:
        return [{"member": format_value(member), "score": score} for member, score in result]
    return [format_value(member) for member in result]


async def _zscore(redis: RedisConnector, params: dict[str, Any]) -> Any:
    score = await redis.execute("zscore", redis.key(params["key"]), encode_value(params["member"]))
    return {"score": score}


# Pub/sub


async def _publish(redis: RedisConnector, params: dict[str, Any]) -> Any:
    receivers = await redis.execute("publish", params["channel"], encode_value(params["message"]))
    return {"receivers": receivers}


TOOLS: tuple[ToolDef, ...] = (
    ToolDef(
        name="ping",
        description="Check the connection, optionally echoing a message",
        parameters=(("message", string("Message to echo back")),),
        handler=_ping,
    ),
    ToolDef(
        name="info",
        description="Get server information and statistics",
        parameters=(("section", string("Info section (server, memory, stats, ...)")),),
        handler=_info,
    ),
    ToolDef(
        name="dbsize",
        description="Count keys in the current database",
        parameters=(),
        handler=_dbsize,
    ),
    ToolDef(
        name="keys",
        description="Find keys matching a glob pattern. Prefer scan on large databases.",
        parameters=(("pattern", string('Pattern such as "user:*"', default="*")),),
        handler=_keys,
    ),
    ToolDef(
        name="scan",
        description="Incrementally iterate keys with a cursor",
        parameters=(
            ("cursor", string("Cursor from the previous call", default="0")),
            ("match", string("Glob pattern to match")),
            ("count", integer("Hint for keys per iteration", minimum=1)),
            ("type", string("Only keys of this type (string, list, hash, ...)")),
        ),
        handler=_scan,
    ),
    ToolDef(
        name="exists",
        description="Count how many of the given keys exist",
        parameters=(("keys", KEYS),),
        required=("keys",),
        handler=_exists,
    ),
    ToolDef(
        name="del",
        description="Delete keys",
        parameters=(("keys", KEYS),),
        required=("keys",),
        handler=_del,
    ),
    ToolDef(
        name="expire",
        description="Set a key's time to live in seconds",
        parameters=(("key", KEY), ("seconds", integer("TTL in seconds", minimum=1))),
        required=("key", "seconds"),
        handler=_expire,
    ),
    ToolDef(
        name="ttl",
        description="Get a key's remaining time to live",
        parameters=(("key", KEY),),
        required=("key",),
        handler=_ttl,
    ),
    ToolDef(
        name="type",
        description="Get the type stored at a key",
        parameters=(("key", KEY),),
        required=("key",),
        handler=_type,
    ),
    ToolDef(
        name="rename",
        description="Rename a key",
        parameters=(
            ("key", KEY),
            ("newKey", string("New key name")),
            ("nx", boolean("Only rename if the new key does not exist", default=False)),
        ),
        required=("key", "newKey"),
        handler=_rename,
    ),
    ToolDef(
        name="get",
        description="Get the value of a key",
        parameters=(("key", KEY),),
        required=("key",),
        handler=_get,
    ),
    ToolDef(
        name="set",
        description="Set a key; non-string values are stored as JSON",
        parameters=(
            ("key", KEY),
            ("value", anything("Value to store")),
            ("ex", integer("Expire after seconds", minimum=1)),
            ("px", integer("Expire after milliseconds", minimum=1)),
            ("nx", boolean("Only set if the key does not exist", default=False)),
            ("xx", boolean("Only set if the key exists", default=False)),
            ("get", boolean("Return the previous value", default=False)),
        ),
        required=("key", "value"),
        handler=_set,
    ),
    ToolDef(
        name="mget",
        description="Get the values of several keys",
        parameters=(("keys", KEYS),),
        required=("keys",),
        handler=_mget,
    ),
    ToolDef(
        name="mset",
        description="Set several keys at once",
        parameters=(("data", obj("Mapping of key to value")),),
        required=("data",),
        handler=_mset,
    ),
    ToolDef(
        name="incr",
        description="Increment an integer value",
        parameters=(("key", KEY), ("by", integer("Increment", default=1))),
        required=("key",),
        handler=_incr,
    ),
    ToolDef(
        name="decr",
        description="Decrement an integer value",
        parameters=(("key", KEY), ("by", integer("Decrement", default=1))),
        required=("key",),
        handler=_decr,
    ),
    ToolDef(
        name="lpush",
        description="Prepend values to a list",
        parameters=(
            ("key", KEY),
            ("value", anything("Single value")),
            ("values", array("Several values")),
        ),
        required=("key",),
        handler=_lpush,
    ),
    ToolDef(
        name="rpush",
        description="Append values to a list",
        parameters=(
            ("key", KEY),
            ("value", anything("Single value")),
            ("values", array("Several values")),
        ),
        required=("key",),
        handler=_rpush,
    ),
    ToolDef(
        name="lpop",
        description="Remove and return the first elements of a list",
        parameters=(("key", KEY), ("count", integer("Number of elements", minimum=1))),
        required=("key",),
        handler=_lpop,
    ),
    ToolDef(
        name="rpop",
        description="Remove and return the last elements of a list",
        parameters=(("key", KEY), ("count", integer("Number of elements", minimum=1))),
        required=("key",),
        handler=_rpop,
    ),
    ToolDef(
        name="lrange",
        description="Get a range of list elements",
        parameters=(
            ("key", KEY),
            ("start", integer("Start index", default=0)),
            ("stop", integer("Stop index, inclusive", default=-1)),
        ),
        required=("key",),
        handler=_lrange,
    ),
    ToolDef(
        name="llen",
        description="Get the length of a list",
        parameters=(("key", KEY),),
        required=("key",),
        handler=_llen,
    ),
    ToolDef(
        name="hget",
        description="Get a hash field",
        parameters=(("key", KEY), ("field", string("Hash field"))),
        required=("key", "field"),
        handler=_hget,
    ),
    ToolDef(
        name="hset",
        description="Set one hash field, or several with fields",
        parameters=(
            ("key", KEY),
            ("field", string("Hash field")),
            ("value", anything("Field value")),
            ("fields", obj("Mapping of field to value")),
        ),
        required=("key",),
        handler=_hset,
    ),
    ToolDef(
        name="hgetall",
        description="Get every field of a hash",
        parameters=(("key", KEY),),
        required=("key",),
        handler=_hgetall,
    ),
    ToolDef(
        name="hdel",
        description="Delete hash fields",
        parameters=(("key", KEY), ("fields", array("Fields to delete", items=string("Hash field")))),
        required=("key", "fields"),
        handler=_hdel,
    ),
    ToolDef(
        name="sadd",
        description="Add members to a set",
        parameters=(
            ("key", KEY),
            ("member", anything("Single member")),
            ("members", array("Several members")),
        ),
        required=("key",),
        handler=_sadd,
    ),
    ToolDef(
        name="srem",
        description="Remove members from a set",
        parameters=(
            ("key", KEY),
            ("member", anything("Single member")),
            ("members", array("Several members")),
        ),
        required=("key",),
        handler=_srem,
    ),
    ToolDef(
        name="smembers",
        description="Get every member of a set",
        parameters=(("key", KEY),),
        required=("key",),
        handler=_smembers,
    ),
    ToolDef(
        name="zadd",
        description="Add scored members to a sorted set",
        parameters=(
            ("key", KEY),
            ("member", anything("Single member")),
            ("score", number("Score for member")),
            (
                "members",
                array(
                    "Several score/member pairs",
                    items=obj(
                        "Score/member pair",
                        properties=(("score", number("Score")), ("member", anything("Member"))),
                        required=("score", "member"),
                    ),
                ),
            ),
        ),
        required=("key",),
        handler=_zadd,
    ),
    ToolDef(
        name="zrange",
        description="Get sorted set members by rank",
        parameters=(
            ("key", KEY),
            ("start", integer("Start rank", default=0)),
            ("stop", integer("Stop rank, inclusive", default=-1)),
            ("withScores", boolean("Include scores", default=False)),
        ),
        required=("key",),
        handler=_zrange,
    ),
    ToolDef(
        name="zscore",
        description="Get the score of a sorted set member",
        parameters=(("key", KEY), ("member", anything("Member"))),
        required=("key", "member"),
        handler=_zscore,
    ),
    ToolDef(
        name="publish",
        description="Publish a message to a channel",
        parameters=(("channel", string("Channel name")), ("message", anything("Message"))),
        required=("channel", "message"),
        handler=_publish,
    ),
)

"""PostgreSQL tool catalog.

Statements use psycopg2 ``%s`` placeholders; parameters are passed separately
and never interpolated into SQL text.
"""

from __future__ import annotations

from typing import Any

from infrabridge.backends.postgresql.connector import PostgresConnector
from infrabridge.envelope import BackendFailure, InvalidArguments, Violation
from infrabridge.tools import ToolDef, anything, array, boolean, obj, string

SCHEMA = string("Schema name", default="public")
TABLE = string("Table name")
QUERY_PARAMS = array("Values for %s placeholders", items=anything("Parameter value"))

_REGCLASS = "(quote_ident(%s) || '.' || quote_ident(%s))::regclass"

LIST_TABLES = """
SELECT
  t.table_name,
  t.table_type,
  obj_description(c.oid) AS comment,
  array_agg(
    json_build_object(
      'column_name', col.column_name,
      'data_type', col.data_type,
      'is_nullable', col.is_nullable,
      'column_default', col.column_default
    ) ORDER BY col.ordinal_position
  ) AS columns
FROM information_schema.tables t
JOIN pg_namespace n ON n.nspname = t.table_schema
JOIN pg_class c ON c.relname = t.table_name AND c.relnamespace = n.oid
LEFT JOIN information_schema.columns col
  ON col.table_schema = t.table_schema AND col.table_name = t.table_name
WHERE t.table_schema = %s
  AND t.table_type IN ('BASE TABLE', 'VIEW')
GROUP BY t.table_name, t.table_type, c.oid
ORDER BY t.table_name
"""

DESCRIBE_COLUMNS = """
SELECT
  column_name,
  data_type,
  character_maximum_length,
  numeric_precision,
  numeric_scale,
  is_nullable,
  column_default,
  is_identity,
  identity_generation
FROM information_schema.columns
WHERE table_schema = %s AND table_name = %s
ORDER BY ordinal_position
"""

DESCRIBE_CONSTRAINTS = f"""
SELECT
  conname AS constraint_name,
  CASE contype
    WHEN 'c' THEN 'CHECK'
    WHEN 'f' THEN 'FOREIGN KEY'
    WHEN 'p' THEN 'PRIMARY KEY'
    WHEN 'u' THEN 'UNIQUE'
    WHEN 't' THEN 'TRIGGER'
    WHEN 'x' THEN 'EXCLUSION'
  END AS constraint_type,
  pg_get_constraintdef(oid) AS definition
FROM pg_constraint
WHERE conrelid = {_REGCLASS}
ORDER BY conname
"""

LIST_INDEXES = """
SELECT indexname, indexdef, tablespace
FROM pg_indexes
WHERE schemaname = %s AND tablename = %s
ORDER BY indexname
"""

LIST_SCHEMAS = """
SELECT
  schema_name,
  schema_owner,
  array_remove(array_agg(privilege_type), NULL) AS privileges
FROM information_schema.schemata
LEFT JOIN information_schema.usage_privileges
  ON object_schema = schema_name AND object_type = 'SCHEMA'
WHERE schema_name NOT IN ('pg_catalog', 'information_schema')
  AND schema_name NOT LIKE 'pg_toast%'
  AND schema_name NOT LIKE 'pg_temp%'
GROUP BY schema_name, schema_owner
ORDER BY schema_name
"""

TABLE_STATS = f"""
SELECT
  pg_size_pretty(pg_total_relation_size({_REGCLASS})) AS total_size,
  pg_size_pretty(pg_relation_size({_REGCLASS})) AS table_size,
  pg_size_pretty(pg_indexes_size({_REGCLASS})) AS indexes_size,
  n_live_tup AS row_count,
  n_dead_tup AS dead_rows,
  last_vacuum,
  last_autovacuum,
  last_analyze,
  last_autoanalyze
FROM pg_stat_user_tables
WHERE schemaname = %s AND relname = %s
"""

DATABASE_STATS = """
SELECT
  current_database() AS database,
  pg_size_pretty(pg_database_size(current_database())) AS database_size,
  (SELECT count(*) FROM pg_stat_activity WHERE datname = current_database()) AS active_connections,
  (SELECT setting FROM pg_settings WHERE name = 'max_connections') AS max_connections,
  (SELECT setting FROM pg_settings WHERE name = 'server_version') AS postgres_version,
  current_timestamp AS current_time
"""

LIST_EXTENSIONS = """
SELECT extname AS name, extversion AS version, extnamespace::regnamespace::text AS schema
FROM pg_extension
ORDER BY extname
"""

LIST_FUNCTIONS = """
SELECT routine_name, routine_type, data_type AS return_type, routine_definition
FROM information_schema.routines
WHERE routine_schema = %s
ORDER BY routine_name
"""

LIST_VIEWS = """
SELECT table_name AS view_name, view_definition
FROM information_schema.views
WHERE table_schema = %s
ORDER BY table_name
"""


async def _query(pg: PostgresConnector, params: dict[str, Any]) -> Any:
    return await pg.execute(params["query"], params["params"])


async def _transaction(pg: PostgresConnector, params: dict[str, Any]) -> Any:
    queries = params["queries"]
    if not queries:
        raise InvalidArguments(Violation("queries", "must contain at least one statement"))
    return await pg.transaction([(item["query"], item["params"]) for item in queries])


async def _explain(pg: PostgresConnector, params: dict[str, Any]) -> Any:
    options = ["ANALYZE"] if params["analyze"] else []
    if params["format"] != "text":
        options.append(f"FORMAT {params['format'].upper()}")
    prefix = f"EXPLAIN ({', '.join(options)})" if options else "EXPLAIN"
    result = await pg.execute(f"{prefix} {params['query']}", params["params"])
    return result["rows"]


async def _list_schemas(pg: PostgresConnector, params: dict[str, Any]) -> Any:
    return (await pg.execute(LIST_SCHEMAS))["rows"]


async def _list_tables(pg: PostgresConnector, params: dict[str, Any]) -> Any:
    return (await pg.execute(LIST_TABLES, [params["schema"]]))["rows"]


async def _describe_table(pg: PostgresConnector, params: dict[str, Any]) -> Any:
    ident = [params["schema"], params["table"]]
    columns = await pg.execute(DESCRIBE_COLUMNS, ident)
    if not columns["rows"]:
        raise BackendFailure(f"Table {params['schema']}.{params['table']} not found")
    constraints = await pg.execute(DESCRIBE_CONSTRAINTS, ident)
    indexes = await pg.execute(LIST_INDEXES, ident)
    return {
        "columns": columns["rows"],
        "constraints": constraints["rows"],
        "indexes": indexes["rows"],
    }


async def _list_indexes(pg: PostgresConnector, params: dict[str, Any]) -> Any:
    return (await pg.execute(LIST_INDEXES, [params["schema"], params["table"]]))["rows"]


async def _table_stats(pg: PostgresConnector, params: dict[str, Any]) -> Any:
    ident = [params["schema"], params["table"]]
    rows = (await pg.execute(TABLE_STATS, ident * 4))["rows"]
    return rows[0] if rows else {}


async def _database_stats(pg: PostgresConnector, params: dict[str, Any]) -> Any:
    rows = (await pg.execute(DATABASE_STATS))["rows"]
    return rows[0] if rows else {}


async def _list_extensions(pg: PostgresConnector, params: dict[str, Any]) -> Any:
    return (await pg.execute(LIST_EXTENSIONS))["rows"]


async def _list_functions(pg: PostgresConnector, params: dict[str, Any]) -> Any:
    return (await pg.execute(LIST_FUNCTIONS, [params["schema"]]))["rows"]


async def _list_views(pg: PostgresConnector, params: dict[str, Any]) -> Any:
    return (await pg.execute(LIST_VIEWS, [params["schema"]]))["rows"]


_TABLE = (("schema", SCHEMA), ("table", TABLE))

TOOLS: tuple[ToolDef, ...] = (
    ToolDef(
        name="query",
        description="Execute a SQL statement and return rows, row count and field metadata",
        parameters=(("query", string("SQL statement")), ("params", QUERY_PARAMS)),
        required=("query",),
        handler=_query,
    ),
    ToolDef(
        name="transaction",
        description="Execute several statements atomically; any failure rolls back all of them",
        parameters=(
            (
                "queries",
                array(
                    "Statements in execution order",
                    items=obj(
                        "One statement",
                        properties=(("query", string("SQL statement")), ("params", QUERY_PARAMS)),
                        required=("query",),
                    ),
                ),
            ),
        ),
        required=("queries",),
        handler=_transaction,
    ),
    ToolDef(
        name="explain",
        description="Show the execution plan for a statement",
        parameters=(
            ("query", string("SQL statement to explain")),
            ("analyze", boolean("Run the statement and report actual timings", default=False)),
            ("format", string("Plan output format", enum=("text", "json", "yaml", "xml"), default="text")),
            ("params", QUERY_PARAMS),
        ),
        required=("query",),
        handler=_explain,
    ),
    ToolDef(
        name="list_schemas",
        description="List user schemas with owners and privileges",
        parameters=(),
        handler=_list_schemas,
    ),
    ToolDef(
        name="list_tables",
        description="List tables and views in a schema with their columns",
        parameters=(("schema", SCHEMA),),
        handler=_list_tables,
    ),
    ToolDef(
        name="describe_table",
        description="Describe a table's columns, constraints and indexes",
        parameters=_TABLE,
        required=("table",),
        handler=_describe_table,
    ),
    ToolDef(
        name="list_indexes",
        description="List indexes on a table",
        parameters=_TABLE,
        required=("table",),
        handler=_list_indexes,
    ),
    ToolDef(
        name="table_stats",
        description="Get size, row counts and vacuum/analyze history for a table",
        parameters=_TABLE,
        required=("table",),
        handler=_table_stats,
    ),
    ToolDef(
        name="database_stats",
        description="Get size, connection counts and server version for the current database",
        parameters=(),
        handler=_database_stats,
    ),
    ToolDef(
        name="list_extensions",
        description="List installed extensions",
        parameters=(),
        handler=_list_extensions,
    ),
    ToolDef(
        name="list_functions",
        description="List functions and procedures in a schema",
        parameters=(("schema", SCHEMA),),
        handler=_list_functions,
    ),
    ToolDef(
        name="list_views",
        description="List views in a schema with their definitions",
        parameters=(("schema", SCHEMA),),
        handler=_list_views,
    ),
)

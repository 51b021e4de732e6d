"""
MCP server factory and tool implementations for the ServiceNow introspection
tools.

Handlers are thin: they pull the shared ServiceNow client from the lifespan
context, call into ``sn_introspect.query`` and shape the result into a
``{"result": ...}`` payload. Domain errors become ``{"error": ...}`` payloads
in ``dispatch_tool``; anything else propagates to the MCP server.
"""

from __future__ import annotations

import inspect
import json
import re
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Optional

import mcp.types as types
from mcp.server.lowlevel.server import Server, request_ctx

from sn_introspect import query
from sn_introspect.clients import ServiceNowAPIError, ServiceNowClient
from sn_introspect.query.errors import InvalidArgumentError, QueryError
from sn_introspect.shared.config import Config, ConnectionInfo, get_config
from sn_introspect.shared.observability import (
    get_logger,
    new_correlation_id,
    set_correlation_id,
)
from sn_introspect.shared.observability.metrics import (
    mcp_tool_calls_total,
    mcp_tool_duration_seconds,
)

logger = get_logger(__name__)

SERVER_NAME = "sn-introspect"

INSTRUCTIONS = (
    "You are connected to a ServiceNow instance through read-only metadata tools. "
    "Use get_table_schema and get_field_choices before writing code against a table, "
    "find_relevant_scripts to locate existing logic, get_script_include_api to learn "
    "how to call a Script Include, and get_business_rule_details, get_acl_details and "
    "find_system_properties to understand behaviour that is configured rather than coded."
)


@dataclass
class Deps:
    """Dependencies shared across MCP tool calls via lifespan context."""

    client: Any
    config: Config


def _get_request_context(ctx: Any | None) -> Optional[Any]:
    if ctx is not None and hasattr(ctx, "request_context"):
        return ctx.request_context
    try:
        return request_ctx.get()
    except LookupError:
        return None


def _get_deps(ctx: Any | None) -> Deps:
    request_context = _get_request_context(ctx)
    if request_context is None:
        raise RuntimeError("MCP request context is required")
    return request_context.lifespan_context


def _error_payload(code: str, message: str, details: Optional[dict] = None) -> dict:
    payload = {"error": {"code": code, "message": message}}
    if details:
        payload["error"]["details"] = details
    return payload


def _found(result: Any) -> dict:
    return {"result": result}


def _not_found(message: str, empty: Any = None) -> dict:
    return {"result": empty, "message": message}


# ----- tool handlers -----


async def get_table_schema(table_name: str, ctx: Any | None = None) -> dict:
    """Get the schema / table definition for a ServiceNow table by its technical name (e.g., 'incident')."""
    deps = _get_deps(ctx)
    schema = await query.get_table_schema(deps.client, table_name, config=deps.config)
    if schema is None:
        return _not_found(f"Table '{table_name}' not found.")
    return _found(schema.to_dict())


async def get_field_choices(
    table_name: str, field_name: str, ctx: Any | None = None
) -> dict:
    """Get the available choices for a specific field on a ServiceNow table.

    Useful for fields of type 'choice' or integer fields representing states
    (e.g., incident state).
    """
    deps = _get_deps(ctx)
    choices = await query.get_field_choices(
        deps.client, table_name, field_name, config=deps.config
    )
    if not choices:
        return _not_found(
            f"No active choices found for field '{field_name}' on table '{table_name}'.",
            [],
        )
    return _found([choice.to_dict() for choice in choices])


async def get_script_include_api(
    script_include_name: str, ctx: Any | None = None
) -> dict:
    """Retrieve the public API methods (function names, parameters, and JSDoc
    comments if available) for a specific Script Include."""
    deps = _get_deps(ctx)
    api = await query.get_script_include_api(deps.client, script_include_name)
    if api is None:
        return _not_found(f"Script Include '{script_include_name}' not found.")
    if not api.functions:
        return _not_found(
            f"No public functions found in Script Include '{script_include_name}'.",
            api.to_dict(),
        )
    return _found(api.to_dict())


async def find_relevant_scripts(
    table_name: Optional[str] = None,
    keywords: Optional[str] = None,
    script_type: Optional[str] = None,
    scope_name: Optional[str] = None,
    ctx: Any | None = None,
) -> dict:
    """Find Business Rules, Script Includes and Client Scripts by table,
    keywords, script type or application scope. Newest first."""
    deps = _get_deps(ctx)
    scripts = await query.find_relevant_scripts(
        deps.client,
        table_name=table_name,
        keywords=keywords,
        script_type=script_type,
        scope_name=scope_name,
        config=deps.config,
    )
    if not scripts:
        return _not_found("No scripts found matching the given criteria.", [])
    return _found([script.to_dict() for script in scripts])


async def get_business_rule_details(
    business_rule_name: Optional[str] = None,
    table_name: Optional[str] = None,
    ctx: Any | None = None,
) -> dict:
    """Get Business Rule details by name, by table, or both.

    A name shared by rules on several tables is refused; add tableName.
    """
    deps = _get_deps(ctx)
    rules = await query.get_business_rule_details(
        deps.client,
        business_rule_name=business_rule_name,
        table_name=table_name,
        config=deps.config,
    )
    if not rules:
        return _not_found("No Business Rules found matching the given criteria.", [])
    return _found([rule.to_dict() for rule in rules])


async def get_acl_details(
    acl_name_or_table: str,
    operation: Optional[str] = None,
    type: Optional[str] = None,
    ctx: Any | None = None,
) -> dict:
    """Get ACL definitions for an ACL name ('incident.state') or a table
    ('incident', which includes its field ACLs)."""
    deps = _get_deps(ctx)
    acls = await query.get_acl_details(
        deps.client,
        acl_name_or_table,
        operation=operation,
        acl_type=type,
        config=deps.config,
    )
    if not acls:
        return _not_found(f"No ACLs found matching '{acl_name_or_table}'.", [])
    return _found([acl.to_dict() for acl in acls])


async def find_system_properties(search_term: str, ctx: Any | None = None) -> dict:
    """Find system properties by exact name or by a term in their description."""
    deps = _get_deps(ctx)
    properties = await query.find_system_properties(
        deps.client, search_term, config=deps.config
    )
    if not properties:
        return _not_found(f"No system properties found matching '{search_term}'.", [])
    return _found([prop.to_dict() for prop in properties])


# ----- schemas -----


def _string(description: str) -> dict:
    return {"type": "string", "description": description}


GET_TABLE_SCHEMA_INPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "tableName": _string("The technical name of the ServiceNow table."),
    },
    "required": ["tableName"],
}

GET_FIELD_CHOICES_INPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "tableName": _string(
            "The technical name of the ServiceNow table (e.g., 'incident')."
        ),
        "fieldName": _string(
            "The technical name of the field (element) on the table (e.g., 'state')."
        ),
    },
    "required": ["tableName", "fieldName"],
}

GET_SCRIPT_INCLUDE_API_INPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "scriptIncludeName": _string(
            "The API name or name of the Script Include (e.g., 'IncidentUtils')."
        ),
    },
    "required": ["scriptIncludeName"],
}

FIND_RELEVANT_SCRIPTS_INPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "tableName": _string("Table the scripts run on (e.g., 'incident')."),
        "keywords": _string("Text to look for in script names and bodies."),
        "scriptType": _string(
            "One of 'business rule', 'script include' or 'client script'."
        ),
        "scopeName": _string("Application scope technical name or label."),
    },
}

GET_BUSINESS_RULE_DETAILS_INPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "businessRuleName": _string("Exact name of the Business Rule."),
        "tableName": _string("Table the Business Rule runs on."),
    },
}

GET_ACL_DETAILS_INPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "aclNameOrTable": _string(
            "ACL name (e.g., 'incident.state') or table name (e.g., 'incident')."
        ),
        "operation": _string("ACL operation (e.g., 'read', 'write')."),
        "type": _string("ACL type (e.g., 'record')."),
    },
    "required": ["aclNameOrTable"],
}

FIND_SYSTEM_PROPERTIES_INPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "searchTerm": _string("Property name or a term from its description."),
    },
    "required": ["searchTerm"],
}


def _tool_description(func, fallback: str) -> str:
    return inspect.getdoc(func) or fallback


def _tool_specs() -> list[dict[str, Any]]:
    readonly = types.ToolAnnotations(
        readOnlyHint=True,
        openWorldHint=False,
        idempotentHint=True,
        destructiveHint=False,
    )
    handlers = [
        (get_table_schema, GET_TABLE_SCHEMA_INPUT_SCHEMA),
        (get_field_choices, GET_FIELD_CHOICES_INPUT_SCHEMA),
        (get_script_include_api, GET_SCRIPT_INCLUDE_API_INPUT_SCHEMA),
        (find_relevant_scripts, FIND_RELEVANT_SCRIPTS_INPUT_SCHEMA),
        (get_business_rule_details, GET_BUSINESS_RULE_DETAILS_INPUT_SCHEMA),
        (get_acl_details, GET_ACL_DETAILS_INPUT_SCHEMA),
        (find_system_properties, FIND_SYSTEM_PROPERTIES_INPUT_SCHEMA),
    ]
    return [
        {
            "name": handler.__name__,
            "handler": handler,
            "description": _tool_description(handler, handler.__name__),
            "input_schema": schema,
            "annotations": readonly,
        }
        for handler, schema in handlers
    ]


# ----- dispatch -----

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _snake_case(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def _camel_case(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


async def _invoke_tool(handler, arguments: dict[str, Any], ctx: Any | None = None) -> dict:
    sig = inspect.signature(handler)
    kwargs = {}
    for key, value in (arguments or {}).items():
        name = _snake_case(key)
        if name not in sig.parameters or name == "ctx":
            continue
        # blank strings count as not supplied
        if isinstance(value, str) and not value.strip():
            continue
        kwargs[name] = value
    for name, param in sig.parameters.items():
        if name == "ctx" or param.default is not inspect.Parameter.empty:
            continue
        if name not in kwargs:
            raise InvalidArgumentError(f"Missing required argument '{_camel_case(name)}'")
    return await handler(ctx=ctx, **kwargs)


def _summary_for_tool(name: str, result: dict) -> str:
    if "error" in result:
        message = result.get("error", {}).get("message", "error")
        return f"{name} error: {message}"
    if result.get("message"):
        return result["message"]
    return json.dumps(result.get("result"), indent=2)


def _status_for(result: dict) -> str:
    if "error" in result:
        return result["error"].get("code", "error").lower()
    if result.get("message"):
        return "not_found"
    return "ok"


async def dispatch_tool(
    tool_map: dict[str, Any],
    name: str,
    arguments: dict | None,
    ctx: Any | None = None,
) -> dict:
    """Run one tool call and return its payload.

    Unknown tools and domain errors are returned as error payloads.
    """
    handler = tool_map.get(name)
    if handler is None:
        return _error_payload("INVALID_ARGUMENT", f"Unknown tool '{name}'")

    set_correlation_id(new_correlation_id())
    logger.info("Tool called", tool=name, arguments=sorted((arguments or {}).keys()))
    started = time.perf_counter()
    try:
        result = await _invoke_tool(handler, arguments or {}, ctx)
    except (QueryError, ServiceNowAPIError) as exc:
        logger.warning("Tool failed", tool=name, code=exc.code, error=str(exc))
        result = _error_payload(exc.code, str(exc))
    except Exception:
        mcp_tool_calls_total.labels(name, "exception").inc()
        logger.exception("Tool raised", tool=name)
        raise
    finally:
        mcp_tool_duration_seconds.labels(name).observe(time.perf_counter() - started)

    status = _status_for(result)
    mcp_tool_calls_total.labels(name, status).inc()
    logger.info("Tool completed", tool=name, status=status)
    return result


def make_lifespan(
    connection: Optional[ConnectionInfo],
    config: Optional[Config] = None,
    client: Any | None = None,
):
    """Build the server lifespan.

    The ServiceNow client is created once here and shared by every call. A
    prebuilt ``client`` is used as-is (tests pass fakes).
    """

    @asynccontextmanager
    async def lifespan(server: Server) -> AsyncIterator[Deps]:
        effective_config = config or get_config()
        shared_client = client
        if shared_client is None:
            if connection is None:
                raise RuntimeError("A ServiceNow connection is required")
            shared_client = ServiceNowClient(connection, effective_config.servicenow)
        logger.info(
            "Server lifespan: ServiceNow client ready",
            instance=getattr(shared_client, "instance_url", None),
        )
        try:
            yield Deps(client=shared_client, config=effective_config)
        finally:
            close = getattr(shared_client, "aclose", None)
            if callable(close):
                await close()
                logger.info("Server lifespan: ServiceNow client closed")

    return lifespan


def build_mcp_server(
    connection: Optional[ConnectionInfo] = None,
    config: Optional[Config] = None,
    client: Any | None = None,
) -> Server:
    effective_config = config or get_config()
    server = Server(
        SERVER_NAME,
        version=effective_config.app.version,
        instructions=INSTRUCTIONS,
        lifespan=make_lifespan(connection, effective_config, client),
    )
    tool_specs = _tool_specs()
    tool_map = {spec["name"]: spec["handler"] for spec in tool_specs}

    @server.list_tools()
    async def _list_tools():
        return [
            types.Tool(
                name=spec["name"],
                description=spec["description"],
                inputSchema=spec["input_schema"],
                annotations=spec.get("annotations"),
            )
            for spec in tool_specs
        ]

    @server.call_tool()
    async def _call_tool(name: str, arguments: dict | None):
        result = await dispatch_tool(tool_map, name, arguments)
        summary = _summary_for_tool(name, result)
        return ([types.TextContent(type="text", text=summary)], result)

    return server

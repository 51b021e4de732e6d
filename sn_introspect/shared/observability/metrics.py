# Prometheus metrics for the ServiceNow introspection MCP server

from typing import Optional

from prometheus_client import Counter, Histogram, start_http_server

from .logging import get_logger

logger = get_logger(__name__)

# ===== MCP tool metrics =====
mcp_tool_calls_total = Counter(
    "sn_mcp_tool_calls_total",
    "Total MCP tool calls",
    ["tool_name", "status"],
)

mcp_tool_duration_seconds = Histogram(
    "sn_mcp_tool_duration_seconds",
    "MCP tool execution duration in seconds",
    ["tool_name"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# ===== Remote table API metrics =====
remote_queries_total = Counter(
    "sn_remote_queries_total",
    "Total ServiceNow table API queries",
    ["table", "status"],
)

remote_query_duration_seconds = Histogram(
    "sn_remote_query_duration_seconds",
    "ServiceNow table API query duration in seconds",
    ["table"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ===== Degradation metrics =====
scope_resolutions_total = Counter(
    "sn_scope_resolutions_total",
    "Scope lookups by outcome (resolved, miss, error)",
    ["outcome"],
)

script_sources_skipped_total = Counter(
    "sn_script_sources_skipped_total",
    "Script tables skipped by find_relevant_scripts after a query failure",
    ["table"],
)

ambiguous_lookups_total = Counter(
    "sn_ambiguous_lookups_total",
    "Lookups refused because the name matched more than one record",
    ["table"],
)


def setup_metrics(port: Optional[int]) -> bool:
    """Expose the default registry over HTTP when a port is configured."""
    if not port:
        return False
    start_http_server(port)
    logger.info("Prometheus metrics endpoint started", port=port)
    return True

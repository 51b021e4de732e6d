"""
Scope Resolver: map a scope's technical name or display label to its sys_id.

A miss and a transport failure are treated the same way. The caller decides
what a miss means for its search (drop the clause, or return nothing when the
scope was the only criterion).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sn_introspect.clients.servicenow_client import DisplayMode, ServiceNowAPIError
from sn_introspect.query.filters import FilterBuilder, any_of, equals
from sn_introspect.query.normalize import text
from sn_introspect.shared.observability import get_logger
from sn_introspect.shared.observability.metrics import scope_resolutions_total

logger = get_logger(__name__)

SCOPE_TABLE = "sys_scope"

_SYS_ID = text("sys_id")


@dataclass(frozen=True)
class ScopeResolution:
    requested: str
    sys_id: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.sys_id is not None


def scope_filter(scope_name: str) -> FilterBuilder:
    return FilterBuilder([any_of(equals("scope", scope_name), equals("name", scope_name))])


async def resolve_scope(client, scope_name: str) -> ScopeResolution:
    """Look up one scope whose technical name or label equals ``scope_name``."""
    try:
        rows = await client.query_table(
            SCOPE_TABLE,
            query=scope_filter(scope_name).build(),
            fields=["sys_id"],
            limit=1,
            display_value=DisplayMode.RAW,
        )
    except ServiceNowAPIError as exc:
        scope_resolutions_total.labels("error").inc()
        logger.warning(
            "Scope lookup failed; continuing without scope filter",
            scope=scope_name,
            error=str(exc),
        )
        return ScopeResolution(scope_name)

    sys_id = _SYS_ID.extract(rows[0]) if rows else None
    if not sys_id:
        scope_resolutions_total.labels("miss").inc()
        logger.info("Scope not found", scope=scope_name)
        return ScopeResolution(scope_name)

    scope_resolutions_total.labels("resolved").inc()
    logger.debug("Scope resolved", scope=scope_name, sys_id=sys_id)
    return ScopeResolution(scope_name, sys_id)


__all__ = ["SCOPE_TABLE", "ScopeResolution", "resolve_scope", "scope_filter"]

from __future__ import annotations

from typing import List, Optional

from sn_introspect.clients.servicenow_client import DisplayMode
from sn_introspect.query.filters import FilterBuilder, any_of, equals, like
from sn_introspect.query.normalize import SCOPE, normalize_record, text
from sn_introspect.query.records import SystemProperty
from sn_introspect.shared.config import Config, get_config

PROPERTY_TABLE = "sys_properties"

PROPERTY_FIELDS = [
    "name",
    "value",
    "description",
    "sys_updated_on",
    "sys_scope.scope",
    "sys_scope.name",
]

_PROPERTY = {
    "name": text("name", default=""),
    "value": text("value"),
    "description": text("description"),
    "scope": SCOPE,
    "updated_on": text("sys_updated_on"),
}


async def find_system_properties(
    client, search_term: str, config: Optional[Config] = None
) -> List[SystemProperty]:
    """Properties named exactly ``search_term`` or mentioning it in their description."""
    config = config or get_config()
    query = FilterBuilder(
        [any_of(equals("name", search_term), like("description", search_term))]
    ).build()
    rows = await client.query_table(
        PROPERTY_TABLE,
        query=query,
        fields=PROPERTY_FIELDS,
        limit=config.limits.system_properties,
        display_value=DisplayMode.RAW,
    )
    return [SystemProperty(**normalize_record(row, _PROPERTY)) for row in rows]


__all__ = ["PROPERTY_TABLE", "find_system_properties"]

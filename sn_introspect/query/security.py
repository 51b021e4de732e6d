"""ACL lookup by ACL name or by table (table ACL plus its field ACLs)."""

from __future__ import annotations

from typing import List, Optional

from sn_introspect.clients.servicenow_client import DisplayMode
from sn_introspect.query.filters import FilterBuilder, any_of, equals, starts_with
from sn_introspect.query.normalize import SCOPE, display, flag, normalize_record, text
from sn_introspect.query.records import AclDetail
from sn_introspect.shared.config import Config, get_config

ACL_TABLE = "sys_security_acl"

ACL_FIELDS = [
    "name",
    "type",
    "operation",
    "admin_overrides",
    "active",
    "description",
    "script",
    "roles",
    "sys_scope.scope",
    "sys_scope.name",
    "sys_updated_on",
    "sys_id",
]

_ACL = {
    "name": text("name", default=""),
    "type": text("type"),
    "operation": text("operation"),
    "admin_overrides": flag("admin_overrides"),
    "active": flag("active"),
    "description": text("description"),
    "condition_script": text("script"),
    "roles": display("roles", default=""),
    "scope": SCOPE,
    "updated_on": text("sys_updated_on"),
    "sys_id": text("sys_id", default=""),
}


def acl_filter(
    acl_name_or_table: str,
    operation: Optional[str] = None,
    acl_type: Optional[str] = None,
) -> FilterBuilder:
    builder = FilterBuilder(
        [
            any_of(
                equals("name", acl_name_or_table),
                starts_with("name", f"{acl_name_or_table}."),
            )
        ]
    )
    if operation:
        builder.add(equals("operation", operation))
    if acl_type:
        builder.add(equals("type", acl_type))
    return builder


async def get_acl_details(
    client,
    acl_name_or_table: str,
    operation: Optional[str] = None,
    acl_type: Optional[str] = None,
    config: Optional[Config] = None,
) -> List[AclDetail]:
    config = config or get_config()
    rows = await client.query_table(
        ACL_TABLE,
        query=acl_filter(acl_name_or_table, operation, acl_type).build(),
        fields=ACL_FIELDS,
        limit=config.limits.acls,
        display_value=DisplayMode.ALL,
    )
    return [AclDetail(**normalize_record(row, _ACL)) for row in rows]


__all__ = ["ACL_TABLE", "acl_filter", "get_acl_details"]

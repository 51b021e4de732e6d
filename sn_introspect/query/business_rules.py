"""
Business rule lookup with ambiguity detection.

Business rule names are not unique across tables. A name-only lookup asks
for two rows so a duplicate can be detected and refused instead of returning
an arbitrary one. Name plus table expects a single match. Table only lists
the table's rules in execution order.
"""

from __future__ import annotations

from typing import List, Optional

from sn_introspect.clients.servicenow_client import DisplayMode
from sn_introspect.query.errors import AmbiguousMatchError, InvalidArgumentError
from sn_introspect.query.filters import FilterBuilder, equals, is_not_empty
from sn_introspect.query.normalize import SCOPE, flag, normalize_record, number, text
from sn_introspect.query.records import BusinessRuleDetail
from sn_introspect.shared.config import Config, get_config
from sn_introspect.shared.observability import get_logger
from sn_introspect.shared.observability.metrics import ambiguous_lookups_total

logger = get_logger(__name__)

BUSINESS_RULE_TABLE = "sys_script"

BUSINESS_RULE_FIELDS = [
    "name",
    "collection",
    "when",
    "order",
    "active",
    "action_insert",
    "action_update",
    "action_delete",
    "action_query",
    "condition",
    "sys_scope.scope",
    "sys_scope.name",
    "sys_updated_on",
    "sys_id",
]

NAME_ONLY_PROBE = 2
EXACT_MATCH = 1

_RULES = {
    "name": text("name", default=""),
    "table": text("collection"),
    "when": text("when"),
    "order": number("order", default=0),
    "active": flag("active"),
    "insert": flag("action_insert"),
    "update": flag("action_update"),
    "delete": flag("action_delete"),
    "query": flag("action_query"),
    "condition": text("condition"),
    "scope": SCOPE,
    "updated_on": text("sys_updated_on"),
    "sys_id": text("sys_id", default=""),
}


async def get_business_rule_details(
    client,
    business_rule_name: Optional[str] = None,
    table_name: Optional[str] = None,
    config: Optional[Config] = None,
) -> List[BusinessRuleDetail]:
    """Return the business rules matching a name, a table, or both.

    Raises:
        InvalidArgumentError: neither filter was supplied.
        AmbiguousMatchError: a name-only lookup matched more than one rule.
    """
    if not business_rule_name and not table_name:
        raise InvalidArgumentError(
            "Either businessRuleName or tableName must be provided."
        )
    config = config or get_config()

    builder = FilterBuilder([is_not_empty("collection")])
    if business_rule_name:
        builder.add(equals("name", business_rule_name))
    if table_name:
        builder.add(equals("collection", table_name))

    order_by = None
    if business_rule_name and table_name:
        limit = EXACT_MATCH
    elif business_rule_name:
        limit = NAME_ONLY_PROBE
    else:
        limit = config.limits.business_rules_by_table
        order_by = "order"

    rows = await client.query_table(
        BUSINESS_RULE_TABLE,
        query=builder.build(),
        fields=BUSINESS_RULE_FIELDS,
        limit=limit,
        order_by=order_by,
        display_value=DisplayMode.RAW,
    )

    if business_rule_name and not table_name and len(rows) > 1:
        ambiguous_lookups_total.labels(BUSINESS_RULE_TABLE).inc()
        tables = sorted({text("collection").extract(row) or "?" for row in rows})
        logger.info(
            "Refusing ambiguous business rule lookup",
            name=business_rule_name,
            tables=tables,
        )
        raise AmbiguousMatchError(
            business_rule_name,
            f"Multiple Business Rules found with name '{business_rule_name}'. "
            "Please specify the tableName to disambiguate.",
            hint="tableName",
        )

    details = [BusinessRuleDetail(**normalize_record(row, _RULES)) for row in rows]
    if order_by:
        # the server sorts on the raw column; keep the parsed order authoritative
        details.sort(key=lambda rule: rule.order)
    return details


__all__ = ["BUSINESS_RULE_TABLE", "get_business_rule_details"]

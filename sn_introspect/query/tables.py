"""
Table schema and field choice lookups.

``get_table_schema`` resolves the table through the table registry first, so
the returned name is the platform's spelling, then reads the table's active
dictionary entries with value/display pairs.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from sn_introspect.clients.servicenow_client import DisplayMode
from sn_introspect.query.filters import FilterBuilder, equals, is_not_empty, is_true
from sn_introspect.query.normalize import display, flag, normalize_record, number, text
from sn_introspect.query.records import Choice, FieldSpec, TableSchema
from sn_introspect.shared.config import Config, get_config
from sn_introspect.shared.observability import get_logger

logger = get_logger(__name__)

TABLE_REGISTRY = "sys_db_object"
DICTIONARY_TABLE = "sys_dictionary"
CHOICE_TABLE = "sys_choice"

REFERENCE_TYPE = "reference"

DICTIONARY_FIELDS = [
    "element",
    "internal_type",
    "column_label",
    "reference",
    "max_length",
    "mandatory",
    "read_only",
    "comments",
]

_TABLE = {"name": text("name"), "label": display("label")}

_DICTIONARY = {
    "name": text("element"),
    "type": text("internal_type"),
    "label": display("column_label"),
    "description": text("comments", default=""),
    "reference_table": text("reference"),
    "max_length": number("max_length"),
    "mandatory": flag("mandatory"),
    "read_only": flag("read_only"),
}

_CHOICE = {"value": text("value"), "label": text("label")}


def _field_spec(row: Dict) -> Optional[FieldSpec]:
    values = normalize_record(row, _DICTIONARY)
    if not values["name"] or not values["type"]:
        return None
    if values["type"] != REFERENCE_TYPE:
        values["reference_table"] = None
    values["label"] = values["label"] or values["name"]
    return FieldSpec(**values)


async def get_table_schema(
    client, table_name: str, config: Optional[Config] = None
) -> Optional[TableSchema]:
    """Return the schema of ``table_name``, or None when the table does not exist."""
    config = config or get_config()

    tables = await client.query_table(
        TABLE_REGISTRY,
        query=FilterBuilder([equals("name", table_name)]).build(),
        fields=["name", "label", "sys_id"],
        limit=1,
        display_value=DisplayMode.RAW,
    )
    if not tables:
        logger.info("Table not found", table=table_name)
        return None

    table = normalize_record(tables[0], _TABLE)
    actual_name = table["name"] or table_name

    entries = await client.query_table(
        DICTIONARY_TABLE,
        query=FilterBuilder(
            [equals("name", actual_name), is_not_empty("element"), is_true("active")]
        ).build(),
        fields=DICTIONARY_FIELDS,
        limit=config.limits.dictionary_entries,
        display_value=DisplayMode.ALL,
    )

    fields: Dict[str, FieldSpec] = {}
    skipped = 0
    for row in entries:
        spec = _field_spec(row)
        if spec is None:
            skipped += 1
            continue
        # one column can have several dictionary rows; keep the first
        fields.setdefault(spec.name, spec)
    if skipped:
        logger.warning(
            "Skipped dictionary entries without element or type",
            table=actual_name,
            skipped=skipped,
        )

    return TableSchema(
        label=table["label"] or actual_name,
        name=actual_name,
        fields=[fields[name] for name in sorted(fields)],
    )


async def get_field_choices(
    client, table_name: str, field_name: str, config: Optional[Config] = None
) -> List[Choice]:
    """Return the active choices of a field sorted by label. Empty when none exist."""
    config = config or get_config()
    rows = await client.query_table(
        CHOICE_TABLE,
        query=FilterBuilder(
            [equals("name", table_name), equals("element", field_name), is_true("inactive", False)]
        ).build(),
        fields=["value", "label", "sequence"],
        limit=config.limits.choices,
        order_by="sequence",
        display_value=DisplayMode.RAW,
        exclude_reference_link=True,
    )

    choices = []
    for row in rows:
        values = normalize_record(row, _CHOICE)
        if values["value"] is None or values["label"] is None:
            continue
        choices.append(Choice(**values))
    dropped = len(rows) - len(choices)
    if dropped:
        logger.debug(
            "Dropped choices without value or label",
            table=table_name,
            field=field_name,
            dropped=dropped,
        )
    choices.sort(key=lambda choice: choice.label)
    return choices


__all__ = ["get_field_choices", "get_table_schema"]

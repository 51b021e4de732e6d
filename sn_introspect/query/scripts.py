"""
Multi-Source Aggregator for find_relevant_scripts.

One search is fanned out to the business rule, script include and client
script tables (or to a single one when the caller names a script type). Each
hit is tagged with its source type, the hits are merged and sorted newest
first by ``sys_updated_on``.

A table whose query fails is skipped; the remaining tables still answer. Skips
are logged and counted so partial results are visible to operators.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence

import anyio

from sn_introspect.clients.servicenow_client import DisplayMode, ServiceNowAPIError
from sn_introspect.query.errors import InvalidArgumentError
from sn_introspect.query.filters import CriteriaTrail, FilterBuilder, any_of, equals, like
from sn_introspect.query.normalize import SCOPE, normalize_record, text
from sn_introspect.query.records import ScriptRecord
from sn_introspect.query.scope import resolve_scope
from sn_introspect.shared.config import Config, get_config
from sn_introspect.shared.observability import get_logger
from sn_introspect.shared.observability.metrics import script_sources_skipped_total

logger = get_logger(__name__)


class ScriptType(str, Enum):
    BUSINESS_RULE = "Business Rule"
    SCRIPT_INCLUDE = "Script Include"
    CLIENT_SCRIPT = "Client Script"

    @property
    def key(self) -> str:
        return self.value.lower()

    @classmethod
    def parse(cls, raw: str) -> "ScriptType":
        """Accept ``business rule``, ``Business_Rule``, ``client-script`` and so on."""
        key = re.sub(r"[\s_\-]+", " ", raw).strip().lower()
        for member in cls:
            if member.key == key:
                return member
        valid = ", ".join(member.key for member in cls)
        raise InvalidArgumentError(
            f"Invalid scriptType specified: '{raw}'. Valid types are: {valid}."
        )


@dataclass(frozen=True)
class ScriptSource:
    """A script table and the column tying its records to a target table.

    ``subject_column`` is None for tables without table affinity; those match
    the table name against the record name and body instead.
    """

    script_type: ScriptType
    table: str
    subject_column: Optional[str]

    @property
    def fields(self) -> List[str]:
        fields = ["name", "sys_id", "sys_updated_on", "sys_scope.scope", "sys_scope.name"]
        if self.subject_column:
            fields.extend(["table", "collection"])
        return fields


SCRIPT_SOURCES: Dict[ScriptType, ScriptSource] = {
    ScriptType.BUSINESS_RULE: ScriptSource(ScriptType.BUSINESS_RULE, "sys_script", "collection"),
    ScriptType.SCRIPT_INCLUDE: ScriptSource(ScriptType.SCRIPT_INCLUDE, "sys_script_include", None),
    ScriptType.CLIENT_SCRIPT: ScriptSource(ScriptType.CLIENT_SCRIPT, "sys_script_client", "table"),
}

SCRIPT_FIELDS = {
    "name": text("name", default=""),
    "table": text("collection", "table"),
    "sys_id": text("sys_id", default=""),
    "updated_on": text("sys_updated_on", default=""),
    "scope": SCOPE,
}


def _name_or_body_like(term: str):
    return any_of(like("name", term), like("script", term))


def build_source_filter(
    source: ScriptSource,
    table_name: Optional[str] = None,
    keywords: Optional[str] = None,
    scope_sys_id: Optional[str] = None,
) -> FilterBuilder:
    """Filter for one script table. An empty builder means skip the table."""
    builder = FilterBuilder()
    if table_name:
        if source.subject_column:
            builder.add(equals(source.subject_column, table_name))
        elif not keywords:
            builder.add(_name_or_body_like(table_name))
    if keywords:
        builder.add(_name_or_body_like(keywords))
    if scope_sys_id:
        builder.add(equals("sys_scope", scope_sys_id))
    return builder


class ScriptSearch:
    """Runs one find_relevant_scripts request against a ServiceNow client."""

    def __init__(self, client, config: Optional[Config] = None):
        self.client = client
        self.config = config or get_config()

    async def _query_source(
        self, source: ScriptSource, query: str, reason: str
    ) -> List[ScriptRecord]:
        try:
            rows = await self.client.query_table(
                source.table,
                query=query,
                fields=source.fields,
                limit=self.config.limits.scripts_per_table,
                display_value=DisplayMode.RAW,
            )
        except ServiceNowAPIError as exc:
            script_sources_skipped_total.labels(source.table).inc()
            logger.warning(
                "Skipping script table after query failure",
                table=source.table,
                query=query,
                error=str(exc),
            )
            return []
        return [
            ScriptRecord(type=source.script_type.value, reason=reason, **normalize_record(row, SCRIPT_FIELDS))
            for row in rows
        ]

    async def _gather(
        self, plans: Sequence[tuple], reason: str
    ) -> List[List[ScriptRecord]]:
        results: List[List[ScriptRecord]] = [[] for _ in plans]

        async def run(index: int, source: ScriptSource, query: str) -> None:
            results[index] = await self._query_source(source, query, reason)

        if self.config.servicenow.concurrent_aggregation and len(plans) > 1:
            failures: List[Optional[Exception]] = [None for _ in plans]

            async def guarded(index: int, source: ScriptSource, query: str) -> None:
                try:
                    await run(index, source, query)
                except Exception as exc:
                    failures[index] = exc

            async with anyio.create_task_group() as tg:
                for index, (source, query) in enumerate(plans):
                    tg.start_soon(guarded, index, source, query)
            # first failure in plan order, unwrapped
            for failure in failures:
                if failure is not None:
                    raise failure
        else:
            for index, (source, query) in enumerate(plans):
                await run(index, source, query)
        return results

    async def find(
        self,
        table_name: Optional[str] = None,
        keywords: Optional[str] = None,
        script_type: Optional[str] = None,
        scope_name: Optional[str] = None,
    ) -> List[ScriptRecord]:
        selected = ScriptType.parse(script_type) if script_type else None

        trail = CriteriaTrail()
        scope_sys_id = None
        if scope_name:
            resolution = await resolve_scope(self.client, scope_name)
            if resolution.resolved:
                scope_sys_id = resolution.sys_id
                trail.add("scope(name/label)", scope_name)
            elif not (table_name or keywords or selected):
                logger.info("Scope was the only criterion and did not resolve", scope=scope_name)
                return []
        if table_name:
            trail.add("tableName", table_name)
        if keywords:
            trail.add("keywords", keywords)
        if script_type:
            trail.add("scriptType", script_type)
        if not trail:
            return []

        sources = [SCRIPT_SOURCES[selected]] if selected else list(SCRIPT_SOURCES.values())
        plans = []
        for source in sources:
            query = build_source_filter(source, table_name, keywords, scope_sys_id).build()
            if query is None:
                continue
            plans.append((source, query))

        reason = trail.render()
        merged: List[ScriptRecord] = []
        for records in await self._gather(plans, reason):
            merged.extend(records)
        merged.sort(key=lambda record: record.updated_on or "", reverse=True)
        logger.info(
            "Script search complete",
            criteria=trail.labels,
            tables=[source.table for source, _ in plans],
            results=len(merged),
        )
        return merged


async def find_relevant_scripts(
    client,
    table_name: Optional[str] = None,
    keywords: Optional[str] = None,
    script_type: Optional[str] = None,
    scope_name: Optional[str] = None,
    config: Optional[Config] = None,
) -> List[ScriptRecord]:
    return await ScriptSearch(client, config).find(
        table_name=table_name,
        keywords=keywords,
        script_type=script_type,
        scope_name=scope_name,
    )


__all__ = [
    "SCRIPT_SOURCES",
    "ScriptSearch",
    "ScriptSource",
    "ScriptType",
    "build_source_filter",
    "find_relevant_scripts",
]

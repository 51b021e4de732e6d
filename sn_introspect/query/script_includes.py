from __future__ import annotations

from typing import Optional

from sn_introspect.clients.servicenow_client import DisplayMode
from sn_introspect.query.filters import FilterBuilder, any_of, equals
from sn_introspect.query.normalize import normalize_record, text
from sn_introspect.query.records import ScriptIncludeApi
from sn_introspect.query.signatures import extract_signatures
from sn_introspect.shared.observability import get_logger

logger = get_logger(__name__)

SCRIPT_INCLUDE_TABLE = "sys_script_include"

_SCRIPT_INCLUDE = {
    "api_name": text("api_name", "name"),
    "script": text("script", default=""),
}


async def get_script_include_api(client, script_include_name: str) -> Optional[ScriptIncludeApi]:
    """Fetch a script include by API name or name and list its functions.

    Returns None when no script include matches. An include whose body has no
    recognisable functions gives an empty ``functions`` list.
    """
    query = FilterBuilder(
        [any_of(equals("api_name", script_include_name), equals("name", script_include_name))]
    ).build()
    rows = await client.query_table(
        SCRIPT_INCLUDE_TABLE,
        query=query,
        fields=["script", "api_name", "name"],
        limit=1,
        display_value=DisplayMode.RAW,
    )
    if not rows:
        logger.info("Script include not found", name=script_include_name)
        return None

    record = normalize_record(rows[0], _SCRIPT_INCLUDE)
    functions = extract_signatures(record["script"])
    logger.debug(
        "Extracted script include functions",
        name=script_include_name,
        functions=len(functions),
    )
    return ScriptIncludeApi(
        api_name=record["api_name"] or script_include_name,
        functions=functions,
    )


__all__ = ["SCRIPT_INCLUDE_TABLE", "get_script_include_api"]

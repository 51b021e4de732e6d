"""
Query layer for the ServiceNow introspection tools.

Each module owns one tool's query construction and result shaping so the MCP
handlers stay thin wrappers that validate arguments and render payloads.
"""

from .business_rules import get_business_rule_details  # noqa: F401
from .errors import AmbiguousMatchError, InvalidArgumentError, QueryError  # noqa: F401
from .properties import find_system_properties  # noqa: F401
from .script_includes import get_script_include_api  # noqa: F401
from .scripts import ScriptType, find_relevant_scripts  # noqa: F401
from .security import get_acl_details  # noqa: F401
from .tables import get_field_choices, get_table_schema  # noqa: F401

__all__ = [
    "AmbiguousMatchError",
    "InvalidArgumentError",
    "QueryError",
    "ScriptType",
    "find_relevant_scripts",
    "find_system_properties",
    "get_acl_details",
    "get_business_rule_details",
    "get_field_choices",
    "get_script_include_api",
    "get_table_schema",
]

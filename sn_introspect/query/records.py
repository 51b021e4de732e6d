"""
Result records returned by the introspection tools.

Records are built fresh per call from normalized rows and discarded after the
response is rendered. ``to_dict`` produces the JSON shape sent to clients.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class FieldSpec:
    """One column of a remote table."""

    name: str
    label: str
    type: str
    description: str = ""
    reference_table: Optional[str] = None
    max_length: Optional[int] = None
    mandatory: Optional[bool] = None
    read_only: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "label": self.label,
            "type": self.type,
            "description": self.description,
        }
        optional = {
            "referenceTable": self.reference_table,
            "maxLength": self.max_length,
            "mandatory": self.mandatory,
            "readOnly": self.read_only,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data


@dataclass
class TableSchema:
    label: str
    name: str
    fields: List[FieldSpec] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "name": self.name,
            "fields": [f.to_dict() for f in self.fields],
        }


@dataclass
class Choice:
    value: str
    label: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ScriptRecord:
    """A script found by the multi-table search.

    ``reason`` lists the criteria that actually shaped the query; it is for
    the caller's benefit only.
    """

    name: str
    type: str
    table: Optional[str]
    sys_id: str
    updated_on: str
    scope: str
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BusinessRuleDetail:
    name: str
    table: Optional[str]
    when: Optional[str]
    order: int
    active: bool
    insert: bool
    update: bool
    delete: bool
    query: bool
    condition: Optional[str]
    scope: str
    updated_on: Optional[str]
    sys_id: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class AclDetail:
    name: str
    type: Optional[str]
    operation: Optional[str]
    admin_overrides: bool
    active: bool
    description: Optional[str]
    condition_script: Optional[str]
    roles: Optional[str]
    scope: str
    updated_on: Optional[str]
    sys_id: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SystemProperty:
    name: str
    value: Optional[str]
    description: Optional[str]
    scope: str
    updated_on: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class FunctionSignature:
    function_name: str
    parameters: List[str] = field(default_factory=list)
    jsdoc: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "functionName": self.function_name,
            "parameters": list(self.parameters),
        }
        if self.jsdoc:
            data["jsdoc"] = self.jsdoc
        return data


@dataclass
class ScriptIncludeApi:
    api_name: str
    functions: List[FunctionSignature] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "apiName": self.api_name,
            "functions": [fn.to_dict() for fn in self.functions],
        }


__all__ = [
    "AclDetail",
    "BusinessRuleDetail",
    "Choice",
    "FieldSpec",
    "FunctionSignature",
    "ScriptIncludeApi",
    "ScriptRecord",
    "SystemProperty",
    "TableSchema",
]

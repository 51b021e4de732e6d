# Shared fixtures for the ServiceNow introspection tests.
# Remote calls go through FakeServiceNowClient; nothing talks to a real instance.

import os
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import pytest

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Set test environment
os.environ["ENV"] = "development"
os.environ.pop("CONFIG_PATH", None)

from sn_introspect.shared.config import Config  # noqa: E402

Rows = Union[List[Dict[str, Any]], Callable[[Dict[str, Any]], List[Dict[str, Any]]]]


class FakeServiceNowClient:
    """Stands in for ServiceNowClient.

    Replies from canned rows per table (a list, or a callable receiving the
    query parameters) and records every issued query in ``calls``.
    """

    def __init__(
        self,
        responses: Optional[Dict[str, Rows]] = None,
        errors: Optional[Dict[str, Exception]] = None,
    ):
        self.responses: Dict[str, Rows] = dict(responses or {})
        self.errors: Dict[str, Exception] = dict(errors or {})
        self.calls: List[Dict[str, Any]] = []
        self.closed = False
        self.instance_url = "https://dev00000.service-now.com"

    async def query_table(self, table: str, **params: Any) -> List[Dict[str, Any]]:
        self.calls.append({"table": table, **params})
        if table in self.errors:
            raise self.errors[table]
        rows = self.responses.get(table, [])
        if callable(rows):
            rows = rows(params)
        return [dict(row) for row in rows]

    def calls_for(self, table: str) -> List[Dict[str, Any]]:
        return [call for call in self.calls if call["table"] == table]

    @property
    def tables_queried(self) -> List[str]:
        return [call["table"] for call in self.calls]

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fake_client() -> FakeServiceNowClient:
    return FakeServiceNowClient()


@pytest.fixture
def config() -> Config:
    return Config()


@pytest.fixture
def sequential_config() -> Config:
    cfg = Config()
    cfg.servicenow.concurrent_aggregation = False
    return cfg

"""
Unit tests for ServiceNowClient against httpx.MockTransport.
"""

from __future__ import annotations

import anyio
import httpx
import pytest

from sn_introspect.clients.servicenow_client import (
    DisplayMode,
    ServiceNowAPIError,
    ServiceNowClient,
)
from sn_introspect.shared.config import ConnectionInfo, ServiceNowConfig

CONNECTION = ConnectionInfo(
    instance_url="https://dev00000.service-now.com",
    username="admin",
    password="s3cret",  # pragma: allowlist secret
)


def _client(handler) -> ServiceNowClient:
    settings = ServiceNowConfig()
    http = httpx.AsyncClient(
        base_url=f"{CONNECTION.instance_url}{settings.api_path}",
        transport=httpx.MockTransport(handler),
        auth=httpx.BasicAuth(CONNECTION.username, CONNECTION.password),
    )
    return ServiceNowClient(CONNECTION, settings, client=http)


class TestInit:
    def test_base_url_includes_api_path(self):
        client = ServiceNowClient(CONNECTION)

        assert client.base_url == "https://dev00000.service-now.com/api/now"
        anyio.run(client.aclose)

    def test_trailing_slash_is_stripped(self):
        connection = ConnectionInfo("https://dev00000.service-now.com/", "a", "b")

        client = ServiceNowClient(connection)

        assert client.instance_url == "https://dev00000.service-now.com"
        anyio.run(client.aclose)


class TestQueryTable:
    def test_query_parameters(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, json={"result": [{"name": "incident"}]})

        async def _run():
            async with _client(handler) as client:
                return await client.query_table(
                    "sys_db_object",
                    query="name=incident",
                    fields=["name", "label"],
                    limit=1,
                    order_by="name",
                    display_value=DisplayMode.ALL,
                    exclude_reference_link=True,
                )

        rows = anyio.run(_run)

        assert rows == [{"name": "incident"}]
        assert seen["path"] == "/api/now/table/sys_db_object"
        assert seen["params"] == {
            "sysparm_query": "name=incident",
            "sysparm_fields": "name,label",
            "sysparm_limit": "1",
            "sysparm_orderby": "name",
            "sysparm_display_value": "all",
            "sysparm_exclude_reference_link": "true",
        }
        assert seen["auth"].startswith("Basic ")

    def test_optional_parameters_are_omitted(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"result": []})

        async def _run():
            async with _client(handler) as client:
                return await client.query_table("sys_properties")

        assert anyio.run(_run) == []
        assert seen["params"] == {"sysparm_display_value": "false"}

    def test_missing_result_is_empty(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"unexpected": True})

        async def _run():
            async with _client(handler) as client:
                return await client.query_table("sys_choice")

        assert anyio.run(_run) == []


class TestErrors:
    def test_error_body_is_translated(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                403,
                json={
                    "error": {
                        "message": "Insufficient rights",
                        "detail": "ACL check failed on sys_script",
                    },
                    "status": "failure",
                },
            )

        async def _run():
            async with _client(handler) as client:
                await client.query_table("sys_script")

        with pytest.raises(ServiceNowAPIError) as excinfo:
            anyio.run(_run)

        err = excinfo.value
        assert err.status_code == 403
        assert err.message == "Insufficient rights"
        assert err.detail == "ACL check failed on sys_script"
        assert str(err) == (
            "ServiceNow API Error (403): Insufficient rights - ACL check failed on sys_script"
        )
        assert err.code == "REMOTE_API_ERROR"

    def test_non_json_error_uses_reason_phrase(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="<html>bad gateway</html>")

        async def _run():
            async with _client(handler) as client:
                await client.query_table("sys_script")

        with pytest.raises(ServiceNowAPIError) as excinfo:
            anyio.run(_run)

        assert excinfo.value.status_code == 502
        assert excinfo.value.message == "Bad Gateway"
        assert excinfo.value.detail is None

    def test_transport_failure_has_no_status(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("name resolution failed", request=request)

        async def _run():
            async with _client(handler) as client:
                await client.query_table("sys_script")

        with pytest.raises(ServiceNowAPIError) as excinfo:
            anyio.run(_run)

        assert excinfo.value.status_code is None
        assert str(excinfo.value).startswith("ServiceNow API Error (network):")

import anyio

from sn_introspect.clients import DisplayMode, ServiceNowAPIError
from sn_introspect.query.scope import SCOPE_TABLE, resolve_scope


def test_scope_resolves_by_name_or_label(fake_client):
    fake_client.responses[SCOPE_TABLE] = [{"sys_id": "scope-123"}]

    resolution = anyio.run(resolve_scope, fake_client, "Human Resources")

    assert resolution.resolved
    assert resolution.sys_id == "scope-123"
    call = fake_client.calls_for(SCOPE_TABLE)[0]
    assert call["query"] == "scope=Human Resources^ORname=Human Resources"
    assert call["fields"] == ["sys_id"]
    assert call["limit"] == 1
    assert call["display_value"] is DisplayMode.RAW


def test_scope_miss_is_unresolved(fake_client):
    resolution = anyio.run(resolve_scope, fake_client, "NoSuchScope")

    assert not resolution.resolved
    assert resolution.requested == "NoSuchScope"


def test_scope_lookup_failure_is_treated_as_miss(fake_client):
    fake_client.errors[SCOPE_TABLE] = ServiceNowAPIError(500, "Internal Server Error")

    resolution = anyio.run(resolve_scope, fake_client, "x_acme_hr")

    assert not resolution.resolved

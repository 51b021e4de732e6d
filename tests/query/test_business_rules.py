import anyio
import pytest

from sn_introspect.query.business_rules import BUSINESS_RULE_TABLE, get_business_rule_details
from sn_introspect.query.errors import AmbiguousMatchError, InvalidArgumentError


def _rule(name, table, order="100", sys_id=None, **extra):
    row = {
        "name": name,
        "collection": table,
        "when": "before",
        "order": order,
        "active": "true",
        "action_insert": "true",
        "action_update": "false",
        "action_delete": "false",
        "action_query": "false",
        "condition": "current.priority.changes()",
        "sys_scope.scope": "global",
        "sys_scope.name": "Global",
        "sys_updated_on": "2024-01-01 00:00:00",
        "sys_id": sys_id or f"{name}-{table}",
    }
    row.update(extra)
    return row


def _by_name(rows):
    """Simulate the server: filter canned rows by the name/collection clauses."""

    def respond(params):
        clauses = params["query"].split("^")
        wanted = dict(c.split("=", 1) for c in clauses if "=" in c)
        matches = [r for r in rows if all(r.get(k) == v for k, v in wanted.items())]
        return matches[: params["limit"]]

    return respond


class TestAmbiguity:
    def test_name_shared_across_tables_is_refused(self, fake_client, config):
        fake_client.responses[BUSINESS_RULE_TABLE] = _by_name(
            [_rule("Set priority", "incident"), _rule("Set priority", "problem")]
        )

        with pytest.raises(AmbiguousMatchError) as excinfo:
            anyio.run(
                lambda: get_business_rule_details(
                    fake_client, business_rule_name="Set priority", config=config
                )
            )

        assert excinfo.value.code == "AMBIGUOUS_MATCH"
        assert excinfo.value.identifier == "Set priority"
        assert "specify the tableName" in str(excinfo.value)
        assert fake_client.calls[0]["limit"] == 2

    def test_table_filter_disambiguates(self, fake_client, config):
        fake_client.responses[BUSINESS_RULE_TABLE] = _by_name(
            [_rule("Set priority", "incident"), _rule("Set priority", "problem")]
        )

        rules = anyio.run(
            lambda: get_business_rule_details(
                fake_client,
                business_rule_name="Set priority",
                table_name="problem",
                config=config,
            )
        )

        assert len(rules) == 1
        assert rules[0].table == "problem"
        call = fake_client.calls[0]
        assert call["limit"] == 1
        assert call["query"] == (
            "collectionISNOTEMPTY^name=Set priority^collection=problem"
        )

    def test_unique_name_is_returned(self, fake_client, config):
        fake_client.responses[BUSINESS_RULE_TABLE] = [_rule("Only one", "incident")]

        rules = anyio.run(
            lambda: get_business_rule_details(
                fake_client, business_rule_name="Only one", config=config
            )
        )

        assert [r.name for r in rules] == ["Only one"]


class TestTableListing:
    def test_rules_ordered_by_execution_order(self, fake_client, config):
        fake_client.responses[BUSINESS_RULE_TABLE] = [
            _rule("late", "incident", order="1,000"),
            _rule("broken", "incident", order="n/a"),
            _rule("early", "incident", order="50"),
        ]

        rules = anyio.run(
            lambda: get_business_rule_details(fake_client, table_name="incident", config=config)
        )

        assert [(r.name, r.order) for r in rules] == [("broken", 0), ("early", 50), ("late", 1000)]
        call = fake_client.calls[0]
        assert call["limit"] == 50
        assert call["order_by"] == "order"
        assert call["query"] == "collectionISNOTEMPTY^collection=incident"

    def test_fields_are_normalized(self, fake_client, config):
        fake_client.responses[BUSINESS_RULE_TABLE] = [_rule("r", "incident", active="false")]

        rule = anyio.run(
            lambda: get_business_rule_details(fake_client, table_name="incident", config=config)
        )[0]

        assert rule.to_dict() == {
            "name": "r",
            "table": "incident",
            "when": "before",
            "order": 100,
            "active": False,
            "insert": True,
            "update": False,
            "delete": False,
            "query": False,
            "condition": "current.priority.changes()",
            "scope": "global",
            "updated_on": "2024-01-01 00:00:00",
            "sys_id": "r-incident",
        }


def test_name_or_table_is_required(fake_client, config):
    with pytest.raises(InvalidArgumentError):
        anyio.run(lambda: get_business_rule_details(fake_client, config=config))
    assert fake_client.calls == []

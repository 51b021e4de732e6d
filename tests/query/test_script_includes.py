import anyio

from sn_introspect.query.script_includes import SCRIPT_INCLUDE_TABLE, get_script_include_api

SCRIPT = """
var ApprovalHelper = Class.create();
ApprovalHelper.prototype = {
    initialize: function() {},

    /** Approve a record. */
    approve: function(record, comment) {},

    type: 'ApprovalHelper'
};
"""


def test_script_include_api_lists_functions(fake_client):
    fake_client.responses[SCRIPT_INCLUDE_TABLE] = [
        {"script": SCRIPT, "api_name": "global.ApprovalHelper", "name": "ApprovalHelper"}
    ]

    api = anyio.run(get_script_include_api, fake_client, "ApprovalHelper")

    assert api.to_dict() == {
        "apiName": "global.ApprovalHelper",
        "functions": [
            {"functionName": "initialize", "parameters": []},
            {
                "functionName": "approve",
                "parameters": ["record", "comment"],
                "jsdoc": "Approve a record.",
            },
        ],
    }
    call = fake_client.calls_for(SCRIPT_INCLUDE_TABLE)[0]
    assert call["query"] == "api_name=ApprovalHelper^ORname=ApprovalHelper"
    assert call["limit"] == 1


def test_missing_script_include_returns_none(fake_client):
    assert anyio.run(get_script_include_api, fake_client, "Nope") is None


def test_script_without_functions_has_empty_api(fake_client):
    fake_client.responses[SCRIPT_INCLUDE_TABLE] = [
        {"script": "var x = 1;", "api_name": "global.Constants"}
    ]

    api = anyio.run(get_script_include_api, fake_client, "global.Constants")

    assert api.functions == []
    assert api.api_name == "global.Constants"

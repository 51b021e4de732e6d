"""
Tests for the tree-sitter based signature extractor.
"""

from sn_introspect.query.signatures import (
    SignatureExtractor,
    clean_doc_comment,
    extract_signatures,
)

CLASS_CREATE_SCRIPT = """
var IncidentUtils = Class.create();
IncidentUtils.prototype = {
    /**
     * Sets up the helper.
     */
    initialize: function() {
        this.helper = function(x) {};
    },

    /**
     * Returns the open incidents for a caller.
     * @param {string} callerId
     */
    getOpenIncidents: function(callerId, limit) {
        function inner(z) {}
        return [];
    },

    'quoted': function(q) {},

    type: 'IncidentUtils'
};
"""

MIXED_SCRIPT = """
/** Adds two numbers. */
function add(a, b) { return a + b; }

// not a doc comment
var multiply = function(x, y = 2, ...rest) {};

Utils.prototype.divide = function({num, den}) {};

this.subtract = function(a, b) {};

add = function(c) {};
"""


def _by_name(signatures):
    return {sig.function_name: sig for sig in signatures}


class TestObjectLiteralScripts:
    def test_prototype_methods_are_found(self):
        names = [sig.function_name for sig in extract_signatures(CLASS_CREATE_SCRIPT)]

        assert names == ["initialize", "helper", "getOpenIncidents", "quoted"]

    def test_nested_helpers_are_not_reported(self):
        names = {sig.function_name for sig in extract_signatures(CLASS_CREATE_SCRIPT)}

        assert "inner" not in names

    def test_doc_comments_are_attached(self):
        sigs = _by_name(extract_signatures(CLASS_CREATE_SCRIPT))

        assert sigs["initialize"].jsdoc == "Sets up the helper."
        assert sigs["getOpenIncidents"].jsdoc == (
            "Returns the open incidents for a caller.\n@param {string} callerId"
        )
        assert sigs["getOpenIncidents"].parameters == ["callerId", "limit"]
        assert sigs["quoted"].jsdoc is None


class TestDeclarationShapes:
    def test_all_shapes_are_recognised(self):
        sigs = _by_name(extract_signatures(MIXED_SCRIPT))

        assert sigs["add"].parameters == ["a", "b"]
        assert sigs["multiply"].parameters == ["x", "y", "...rest"]
        assert sigs["divide"].parameters == ["{num, den}"]
        assert sigs["subtract"].parameters == ["a", "b"]

    def test_first_definition_wins(self):
        sigs = [s for s in extract_signatures(MIXED_SCRIPT) if s.function_name == "add"]

        assert len(sigs) == 1
        assert sigs[0].parameters == ["a", "b"]
        assert sigs[0].jsdoc == "Adds two numbers."

    def test_line_comments_are_not_docs(self):
        sigs = _by_name(extract_signatures(MIXED_SCRIPT))

        assert sigs["multiply"].jsdoc is None

    def test_redeclaration_scenario(self):
        sigs = extract_signatures("function foo(a, b) {}\nfoo = function(c){};\n")

        assert [s.to_dict() for s in sigs] == [
            {"functionName": "foo", "parameters": ["a", "b"]}
        ]


class TestEdgeCases:
    def test_no_functions(self):
        assert extract_signatures("var limit = 10;\ngs.info('x');") == []

    def test_blank_script(self):
        assert SignatureExtractor().extract("   ") == []

    def test_clean_doc_comment(self):
        assert clean_doc_comment("/** One liner */") == "One liner"
        assert clean_doc_comment("/* plain block */") is None
        assert clean_doc_comment("/**\n * a\n *\n * b\n */") == "a\n\nb"


CONSTRUCTOR_SCRIPT = """
function IncidentHelper(gr) {
    /** Closes it. */
    this.close = function(reason) {};

    var secret = function(token) {};
    function privateStep(n) {}

    this.reopen = function() {};
}
"""


class TestConstructorScripts:
    def test_this_methods_inside_constructor(self):
        sigs = extract_signatures(CONSTRUCTOR_SCRIPT)

        assert [s.function_name for s in sigs] == ["IncidentHelper", "close", "reopen"]
        close = _by_name(sigs)["close"]
        assert close.parameters == ["reason"]
        assert close.jsdoc == "Closes it."

    def test_local_functions_stay_private(self):
        names = {s.function_name for s in extract_signatures(CONSTRUCTOR_SCRIPT)}

        assert "secret" not in names
        assert "privateStep" not in names

"""
Signature Extractor: recover function names, parameters and doc comments
from stored script text using the tree-sitter JavaScript grammar.

Recognised definitions:

1. ``function name(a, b) {}``
2. ``var name = function (a, b) {}``
3. ``name: function (a, b) {}`` inside an object literal
4. ``this.name = function (a, b) {}`` / ``Obj.prototype.name = function ...``
   and plain ``name = function ...``

The walk is in document order. Inside the body of a recognised function only
``this.name = function`` assignments are reported (constructor-style methods),
so private nested helpers stay out. Everything else is entered, including
object literals and wrapper calls. The first definition of a name wins.

A ``/** ... */`` comment directly before the defining statement (or object
property) becomes the function's ``jsdoc``.
"""

from __future__ import annotations

import re
from typing import Any, Iterator, List, Optional, Tuple

from tree_sitter_language_pack import get_parser

from sn_introspect.query.records import FunctionSignature

LANGUAGE = "javascript"

FUNCTION_EXPRESSIONS = frozenset(
    {"function_expression", "function", "generator_function"}
)
FUNCTION_DECLARATIONS = frozenset(
    {"function_declaration", "generator_function_declaration"}
)
VARIABLE_DECLARATIONS = frozenset({"variable_declaration", "lexical_declaration"})

_DOC_OPEN = re.compile(r"^/\*\*\s*\n?")
_DOC_CLOSE = re.compile(r"\n?\s*\*/$")
_DOC_LINE_MARKER = re.compile(r"^\s*\* ?")


def clean_doc_comment(comment: str) -> Optional[str]:
    """Strip ``/**``, ``*/`` and the leading ``*`` of each line."""
    if not comment.startswith("/**"):
        return None
    body = _DOC_CLOSE.sub("", _DOC_OPEN.sub("", comment))
    lines = [_DOC_LINE_MARKER.sub("", line) for line in body.split("\n")]
    cleaned = "\n".join(lines).strip()
    return cleaned or None


class SignatureExtractor:
    """Extracts public function signatures from JavaScript source."""

    def __init__(self, language: str = LANGUAGE):
        self.language = language
        self._parser = None

    @property
    def parser(self):
        """Lazy-load the tree-sitter parser."""
        if self._parser is None:
            self._parser = get_parser(self.language)
        return self._parser

    def extract(self, script: str) -> List[FunctionSignature]:
        if not script or not script.strip():
            return []
        source = bytes(script, "utf8")
        tree = self.parser.parse(source)

        seen = set()
        signatures: List[FunctionSignature] = []
        for name, function_node, anchor in self._definitions(tree.root_node, source):
            if name in seen:
                continue
            seen.add(name)
            signatures.append(
                FunctionSignature(
                    function_name=name,
                    parameters=self._parameters(function_node, source),
                    jsdoc=self._doc_comment(anchor, source),
                )
            )
        return signatures

    def _definitions(self, root: Any, source: bytes) -> Iterator[Tuple[str, Any, Any]]:
        # (node, inside a recognised function body)
        stack = [(root, False)]
        while stack:
            node, in_body = stack.pop()
            found = self._match(node, source)
            if found and in_body and not _is_this_assignment(node):
                found = None
            if found:
                yield found
                body = found[1].child_by_field_name("body")
                if body is not None:
                    stack.append((body, True))
                continue
            stack.extend((child, in_body) for child in reversed(node.children))

    def _match(self, node: Any, source: bytes) -> Optional[Tuple[str, Any, Any]]:
        kind = node.type
        if kind in FUNCTION_DECLARATIONS:
            name = node.child_by_field_name("name")
            if name is not None:
                return _text(name, source), node, node

        elif kind == "variable_declarator":
            value = node.child_by_field_name("value")
            name = node.child_by_field_name("name")
            if _is_function(value) and name is not None and name.type == "identifier":
                anchor = node
                if node.parent is not None and node.parent.type in VARIABLE_DECLARATIONS:
                    anchor = node.parent
                return _text(name, source), value, anchor

        elif kind == "pair":
            value = node.child_by_field_name("value")
            key = node.child_by_field_name("key")
            if _is_function(value) and key is not None:
                name = _property_key(key, source)
                if name:
                    return name, value, node

        elif kind == "assignment_expression":
            right = node.child_by_field_name("right")
            left = node.child_by_field_name("left")
            if _is_function(right) and left is not None:
                name = None
                if left.type == "member_expression":
                    prop = left.child_by_field_name("property")
                    if prop is not None:
                        name = _text(prop, source)
                elif left.type == "identifier":
                    name = _text(left, source)
                if name:
                    anchor = node
                    if node.parent is not None and node.parent.type == "expression_statement":
                        anchor = node.parent
                    return name, right, anchor
        return None

    def _parameters(self, function_node: Any, source: bytes) -> List[str]:
        params = function_node.child_by_field_name("parameters")
        if params is None:
            return []
        names = []
        for param in params.named_children:
            if param.type == "comment":
                continue
            if param.type == "assignment_pattern":
                left = param.child_by_field_name("left")
                names.append(_text(left if left is not None else param, source))
            else:
                names.append(_text(param, source))
        return names

    def _doc_comment(self, anchor: Any, source: bytes) -> Optional[str]:
        previous = anchor.prev_named_sibling
        if previous is None or previous.type != "comment":
            return None
        return clean_doc_comment(_text(previous, source))


def _text(node: Any, source: bytes) -> str:
    return source[node.start_byte:node.end_byte].decode("utf8", errors="replace")


def _is_function(node: Any) -> bool:
    return node is not None and node.type in FUNCTION_EXPRESSIONS


def _is_this_assignment(node: Any) -> bool:
    if node.type != "assignment_expression":
        return False
    left = node.child_by_field_name("left")
    if left is None or left.type != "member_expression":
        return False
    target = left.child_by_field_name("object")
    return target is not None and target.type == "this"


def _property_key(key: Any, source: bytes) -> Optional[str]:
    if key.type in ("property_identifier", "identifier"):
        return _text(key, source)
    if key.type == "string":
        return _text(key, source)[1:-1] or None
    return None


_default_extractor: Optional[SignatureExtractor] = None


def extract_signatures(script: str) -> List[FunctionSignature]:
    global _default_extractor
    if _default_extractor is None:
        _default_extractor = SignatureExtractor()
    return _default_extractor.extract(script)


__all__ = ["SignatureExtractor", "clean_doc_comment", "extract_signatures"]

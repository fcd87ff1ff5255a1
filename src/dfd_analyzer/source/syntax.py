"""tree-sitter grammar loading and small node helpers shared by the analyzers."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Iterator

import tree_sitter_javascript
import tree_sitter_typescript
from tree_sitter import Language, Node, Parser

log = logging.getLogger(__name__)

# Grammar names accepted by get_parser()
GRAMMARS = ("tsx", "typescript", "javascript")

IDENTIFIER_TYPES = frozenset({
    "identifier",
    "shorthand_property_identifier",
    "shorthand_property_identifier_pattern",
})
FUNCTION_TYPES = frozenset({
    "arrow_function",
    "function_expression",
    "function",
    "generator_function",
})
JSX_ELEMENT_TYPES = frozenset({
    "jsx_element",
    "jsx_self_closing_element",
    "jsx_fragment",
})
# Wrappers that do not change the value of the wrapped expression.
TRANSPARENT_TYPES = frozenset({
    "parenthesized_expression",
    "as_expression",
    "satisfies_expression",
    "non_null_expression",
    "type_assertion",
    "await_expression",
})


@lru_cache(maxsize=None)
def _language(grammar: str) -> Language:
    if grammar == "tsx":
        raw = tree_sitter_typescript.language_tsx()
    elif grammar == "typescript":
        raw = tree_sitter_typescript.language_typescript()
    elif grammar == "javascript":
        raw = tree_sitter_javascript.language()
    else:
        raise ValueError(f"Unknown grammar: {grammar}")
    return raw if isinstance(raw, Language) else Language(raw)


def get_parser(grammar: str) -> Parser:
    """Return a fresh parser; parsers are not shared between threads."""
    return Parser(_language(grammar))


def grammar_for(filename: str | None, lang: str | None = None) -> str:
    """Pick a grammar from a file name or an SFC ``lang`` attribute."""
    if lang:
        lang = lang.lower()
        if lang in ("ts", "typescript"):
            return "typescript"
        if lang == "tsx":
            return "tsx"
        return "javascript"
    name = (filename or "").lower()
    if name.endswith(".tsx"):
        return "tsx"
    if name.endswith((".ts", ".mts", ".cts")):
        return "typescript"
    if name.endswith((".js", ".jsx", ".mjs", ".cjs")):
        return "javascript"
    return "tsx"


# ── Node helpers ────────────────────────────────────────────────────────────

def node_text(node: Node | None) -> str:
    if node is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def position(node: Node) -> tuple[int, int]:
    """1-based (line, column) of a node's start."""
    row, col = node.start_point
    return row + 1, col + 1


def unwrap(node: Node | None) -> Node | None:
    """Strip parentheses, type assertions and ``await``."""
    while node is not None and node.type in TRANSPARENT_TYPES:
        inner = [c for c in node.named_children if c.type != "comment"]
        if not inner:
            return node
        node = inner[0]
    return node


def walk(node: Node, *, skip: frozenset[str] = frozenset()) -> Iterator[Node]:
    """Pre-order traversal; subtrees rooted at a type in ``skip`` are not entered."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        if current is not node and current.type in skip:
            continue
        stack.extend(reversed(current.children))


def first_error(node: Node) -> Node | None:
    """Return the first ERROR or MISSING node in document order."""
    if not node.has_error:
        return None
    for child in walk(node):
        if child.type == "ERROR" or child.is_missing:
            return child
    return None


def call_name(call: Node) -> str | None:
    """Flattened callee of a call expression: ``useState``, ``React.useState``, ``$effect.pre``."""
    if call is None or call.type != "call_expression":
        return None
    return flatten_member(call.child_by_field_name("function"))


def short_call_name(call: Node) -> str | None:
    """Callee without a namespace import prefix: ``React.useState`` -> ``useState``."""
    name = call_name(call)
    if name and name.startswith(("React.", "Vue.")):
        return name.split(".", 1)[1]
    return name


def flatten_member(node: Node | None) -> str | None:
    """Flatten ``a.b?.c`` to ``a.b.c``; None when any link is not a plain name."""
    node = unwrap(node)
    if node is None:
        return None
    if node.type in ("identifier", "this", "property_identifier", "private_property_identifier"):
        return node_text(node)
    if node.type == "member_expression":
        obj = flatten_member(node.child_by_field_name("object"))
        prop = node.child_by_field_name("property")
        if obj is None or prop is None:
            return None
        return f"{obj}.{node_text(prop)}"
    return None


def call_arguments(call: Node) -> list[Node]:
    args = call.child_by_field_name("arguments")
    if args is None:
        return []
    return [a for a in args.named_children if a.type != "comment"]


def string_value(node: Node | None) -> str | None:
    """Unquoted value of a string literal or a template string without substitutions."""
    node = unwrap(node)
    if node is None:
        return None
    if node.type == "string":
        return node_text(node)[1:-1]
    if node.type == "template_string" and not any(
        c.type == "template_substitution" for c in node.named_children
    ):
        return node_text(node)[1:-1]
    return None


def literal_or_identifier(node: Node | None) -> str | None:
    """Argument text kept for external calls: literals and plain identifiers only."""
    node = unwrap(node)
    if node is None:
        return None
    if node.type in ("identifier", "number", "true", "false", "null", "undefined"):
        return node_text(node)
    if node.type == "string" or node.type == "template_string":
        if string_value(node) is not None:
            return node_text(node)
    if node.type == "member_expression":
        return flatten_member(node)
    return None


def function_body(fn: Node) -> Node | None:
    return fn.child_by_field_name("body")


def function_parameters(fn: Node) -> list[Node]:
    """Parameter nodes of a function-like node, including the bare arrow parameter."""
    single = fn.child_by_field_name("parameter")
    if single is not None:
        return [single]
    params = fn.child_by_field_name("parameters")
    if params is None:
        return []
    return [p for p in params.named_children if p.type != "comment"]


def is_function(node: Node | None) -> bool:
    node = unwrap(node)
    return node is not None and node.type in FUNCTION_TYPES


def returned_expression(fn: Node) -> Node | None:
    """Expression body of an arrow, or the value of the last top-level return."""
    body = function_body(fn)
    if body is None:
        return None
    if body.type != "statement_block":
        return unwrap(body)
    last = None
    for stmt in body.named_children:
        if stmt.type == "return_statement":
            last = stmt
    if last is None:
        return None
    values = [c for c in last.named_children if c.type != "comment"]
    return unwrap(values[0]) if values else None


def pattern_names(pattern: Node | None) -> list[str]:
    """Names bound by a binding pattern, in source order."""
    if pattern is None:
        return []
    t = pattern.type
    if t in ("identifier", "shorthand_property_identifier_pattern"):
        return [node_text(pattern)]
    if t in ("required_parameter", "optional_parameter"):
        return pattern_names(pattern.child_by_field_name("pattern"))
    if t == "assignment_pattern":
        return pattern_names(pattern.child_by_field_name("left"))
    if t == "object_assignment_pattern":
        return pattern_names(pattern.child_by_field_name("left"))
    if t == "pair_pattern":
        return pattern_names(pattern.child_by_field_name("value"))
    if t == "rest_pattern":
        names: list[str] = []
        for child in pattern.named_children:
            names.extend(pattern_names(child))
        return names
    if t in ("object_pattern", "array_pattern"):
        names = []
        for child in pattern.named_children:
            names.extend(pattern_names(child))
        return names
    return []


def type_annotation_text(node: Node | None) -> str | None:
    """Type text of a ``type_annotation`` node without the leading colon."""
    if node is None:
        return None
    text = node_text(node).strip()
    if text.startswith(":"):
        text = text[1:].strip()
    return text or None


def find_children(node: Node, *types: str) -> list[Node]:
    return [c for c in node.named_children if c.type in types]

"""Collect uses of component bindings and external calls inside a syntax subtree.

Shared by the Process, Reactive-Primitive and Rendered-Output analyzers so
that every analyzer resolves names against the same symbol table.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from tree_sitter import Node

from dfd_analyzer.ir.facts import ExternalCall, Reference
from dfd_analyzer.ir.symbols import SymbolKind, SymbolTable
from dfd_analyzer.source.syntax import (
    FUNCTION_TYPES,
    call_arguments,
    flatten_member,
    function_parameters,
    is_function,
    literal_or_identifier,
    node_text,
    pattern_names,
    string_value,
    unwrap,
    walk,
)

log = logging.getLogger(__name__)

# Callee roots that never count as external calls.
BUILTIN_ROOTS = frozenset({
    "JSON", "Math", "Object", "Array", "Number", "String", "Boolean",
    "Symbol", "parseInt", "parseFloat", "isNaN", "Promise", "console",
    "Date", "Reflect",
})
# Unbound globals that are still worth drawing.
EXTERNAL_GLOBALS = frozenset({"fetch", "alert", "confirm"})
# Wrapper members read through to the value: Vue `count.value`, React `ref.current`.
TRANSPARENT_MEMBERS = frozenset({"value", "current"})

_ASSIGNMENT_TYPES = frozenset({"assignment_expression", "augmented_assignment_expression"})
_JSX_NAME_PARENTS = frozenset({
    "jsx_opening_element", "jsx_closing_element", "jsx_self_closing_element",
})


@dataclass
class BodyFacts:
    accesses: list[Reference] = field(default_factory=list)
    external_calls: list[ExternalCall] = field(default_factory=list)
    emits: list[str] = field(default_factory=list)

    @property
    def references(self) -> list[str]:
        seen: list[str] = []
        for ref in self.accesses:
            if ref.name not in seen:
                seen.append(ref.name)
        return seen

    def merge(self, other: BodyFacts) -> None:
        for ref in other.accesses:
            _add_ref(self.accesses, ref)
        for call in other.external_calls:
            _add_call(self.external_calls, call)
        for event in other.emits:
            if event not in self.emits:
                self.emits.append(event)


def local_bindings(node: Node, *, skip: Node | None = None) -> set[str]:
    """Names declared anywhere inside ``node``: parameters, variables, functions."""
    names: set[str] = set()
    if is_function(node) or node.type == "method_definition":
        for param in function_parameters(node):
            names.update(pattern_names(param))
    for n in walk(node):
        if skip is not None and n == skip:
            continue
        t = n.type
        if t == "variable_declarator":
            names.update(pattern_names(n.child_by_field_name("name")))
        elif t in FUNCTION_TYPES and n != node:
            for param in function_parameters(n):
                names.update(pattern_names(param))
        elif t in ("function_declaration", "generator_function_declaration"):
            name = n.child_by_field_name("name")
            if name is not None:
                names.add(node_text(name))
            for param in function_parameters(n):
                names.update(pattern_names(param))
        elif t == "catch_clause":
            names.update(pattern_names(n.child_by_field_name("parameter")))
        elif t == "for_in_statement":
            names.update(pattern_names(n.child_by_field_name("left")))
    return names


def module_bindings(root: Node | None, component: Node | None = None) -> set[str]:
    """Imports and top-level declarations outside the component."""
    names: set[str] = set()
    if root is None:
        return names
    for stmt in root.named_children:
        target = stmt
        if stmt.type == "export_statement":
            target = stmt.child_by_field_name("declaration") or stmt
        if component is not None and _contains(target, component):
            continue
        if target.type == "import_statement":
            for n in walk(target):
                if n.type == "identifier":
                    names.add(node_text(n))
        elif target.type in ("lexical_declaration", "variable_declaration"):
            for decl in target.named_children:
                if decl.type == "variable_declarator":
                    names.update(pattern_names(decl.child_by_field_name("name")))
        elif target.type in ("function_declaration", "class_declaration"):
            name = target.child_by_field_name("name")
            if name is not None:
                names.add(node_text(name))
    return names


class ReferenceCollector:
    """Resolve identifiers against a SymbolTable.

    ``module_names`` are bindings outside the component (imports, module
    constants); plain calls to them are external calls.
    """

    def __init__(
        self,
        symbols: SymbolTable,
        module_names: set[str] | None = None,
        emitters: set[str] | None = None,
    ):
        self.symbols = symbols
        self.module_names = module_names or set()
        self.emitters = set(emitters or ())
        self.emitters.update(f"this.{e}" for e in list(self.emitters))

    def collect(self, node: Node | None, *, skip: Node | None = None,
                extra_locals: set[str] | None = None) -> BodyFacts:
        facts = BodyFacts()
        if node is None:
            return facts
        locals_ = local_bindings(node, skip=skip) | (extra_locals or set())
        self._visit(node, facts, locals_, skip)
        return facts

    # ── Traversal ───────────────────────────────────────────────────────

    def _visit(self, root: Node, facts: BodyFacts, locals_: set[str],
               skip: Node | None) -> None:
        stack = [root]
        while stack:
            node = stack.pop()
            if skip is not None and node == skip:
                continue
            t = node.type
            if t == "call_expression":
                self._call(node, facts, locals_)
            if t in ("identifier", "shorthand_property_identifier"):
                self._identifier(node, facts, locals_)
            elif t == "this":
                self._this(node, facts)
            stack.extend(reversed(node.children))

    def _identifier(self, node: Node, facts: BodyFacts, locals_: set[str]) -> None:
        name = node_text(node)
        # a local declaration shadows the component binding
        if name not in self.symbols or name in locals_:
            return
        if _is_binding_position(node):
            return
        parent = node.parent
        if parent is not None and parent.type in _JSX_NAME_PARENTS:
            return
        if self.symbols.is_emitter(name):
            return
        ref = self._reference_for(name, node)
        if ref is not None:
            _add_ref(facts.accesses, ref)

    def _this(self, node: Node, facts: BodyFacts) -> None:
        parent = node.parent
        if parent is None or parent.type != "member_expression" \
                or parent.child_by_field_name("object") != node:
            return
        prop = parent.child_by_field_name("property")
        if prop is None:
            return
        name = node_text(prop)
        if name not in self.symbols or self.symbols.is_emitter(name):
            return
        ref = self._reference_for(name, parent)
        if ref is not None:
            _add_ref(facts.accesses, ref)

    def _reference_for(self, name: str, node: Node) -> Reference | None:
        props: list[str] = []
        expr = node
        while expr.parent is not None and expr.parent.type == "member_expression" \
                and expr.parent.child_by_field_name("object") == expr:
            prop = expr.parent.child_by_field_name("property")
            props.append(node_text(prop))
            expr = expr.parent
        if props and props[0] in TRANSPARENT_MEMBERS:
            # ref.current.method() is an imperative-handle call, not a use of the ref
            if props[0] == "current" and len(props) >= 2 and _is_callee(expr):
                return None
            props = props[1:]
        if self.symbols.is_props_object(name):
            if not props or props[0] not in self.symbols:
                return None
            name, props = props[0], props[1:]
        kind = "read"
        if _is_callee(expr):
            kind = "invoke"
        elif _is_write_target(expr):
            kind = "write"
        return Reference(name=name, kind=kind, property=props[0] if props else None)

    def _call(self, call: Node, facts: BodyFacts, locals_: set[str]) -> None:
        callee = flatten_member(call.child_by_field_name("function"))
        if callee is None:
            return
        parts = callee.split(".")
        root = parts[0]
        args = call_arguments(call)

        if callee in self.emitters:
            event = string_value(args[0]) if args else None
            if event and event not in facts.emits:
                facts.emits.append(event)
            return

        if len(parts) == 3 and parts[1] == "current" and root not in locals_ and (
                self._is_ref(root) or root.endswith(("Ref", "ref"))):
            _add_call(facts.external_calls, ExternalCall(
                callee=callee,
                arguments=_argument_texts(args),
                ref_name=root,
                method_name=parts[2],
            ))
            return

        if root == "this" or root in BUILTIN_ROOTS:
            return
        if root in locals_ or root in self.symbols:
            return
        if len(parts) == 1 and root not in self.module_names and root not in EXTERNAL_GLOBALS:
            return

        callbacks: list[str] = []
        for arg in args:
            if is_function(arg):
                inner = self.collect(unwrap(arg))
                for name in inner.references:
                    if name not in callbacks:
                        callbacks.append(name)
        _add_call(facts.external_calls, ExternalCall(
            callee=callee,
            arguments=_argument_texts(args),
            callback_references=callbacks,
        ))

    def _is_ref(self, name: str) -> bool:
        sym = self.symbols.get(name)
        return sym is not None and sym.kind in (SymbolKind.PRIMITIVE, SymbolKind.TEMPLATE_REF)


# ── Helpers ─────────────────────────────────────────────────────────────────

def _argument_texts(args: list[Node]) -> list[str]:
    out: list[str] = []
    for arg in args:
        text = literal_or_identifier(arg)
        if text is not None:
            out.append(text)
    return out


def _is_callee(expr: Node) -> bool:
    parent = expr.parent
    return parent is not None and parent.type == "call_expression" \
        and parent.child_by_field_name("function") == expr


def _is_write_target(expr: Node) -> bool:
    parent = expr.parent
    if parent is None:
        return False
    if parent.type in _ASSIGNMENT_TYPES:
        return parent.child_by_field_name("left") == expr
    return parent.type == "update_expression"


def _is_binding_position(node: Node) -> bool:
    parent = node.parent
    if parent is None:
        return False
    t = parent.type
    if t == "variable_declarator":
        return parent.child_by_field_name("name") == node
    if t in ("required_parameter", "optional_parameter"):
        return parent.child_by_field_name("pattern") == node
    if t in ("formal_parameters", "array_pattern", "rest_pattern", "object_pattern"):
        return True
    if t in FUNCTION_TYPES:
        return parent.child_by_field_name("parameter") == node
    if t in ("function_declaration", "class_declaration", "method_definition"):
        return parent.child_by_field_name("name") == node
    if t in ("assignment_pattern", "object_assignment_pattern"):
        return parent.child_by_field_name("left") == node and _inside_pattern(parent)
    if t == "pair_pattern":
        return parent.child_by_field_name("value") == node
    if t in ("import_specifier", "import_clause", "namespace_import", "catch_clause",
             "labeled_statement"):
        return True
    return False


def _inside_pattern(node: Node) -> bool:
    parent = node.parent
    return parent is not None and parent.type in (
        "object_pattern", "array_pattern", "formal_parameters",
        "required_parameter", "optional_parameter",
    )


def _contains(outer: Node, inner: Node) -> bool:
    return outer.start_byte <= inner.start_byte and inner.end_byte <= outer.end_byte


def _add_ref(refs: list[Reference], ref: Reference) -> None:
    for existing in refs:
        if (existing.name, existing.kind, existing.property) == (ref.name, ref.kind, ref.property):
            return
    refs.append(ref)


def _add_call(calls: list[ExternalCall], call: ExternalCall) -> None:
    for existing in calls:
        if existing.callee == call.callee:
            for arg in call.arguments:
                if arg not in existing.arguments:
                    existing.arguments.append(arg)
            for name in call.callback_references:
                if name not in existing.callback_references:
                    existing.callback_references.append(name)
            return
    calls.append(call)

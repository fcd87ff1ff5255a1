"""Reactive-Primitive Analyzer: state, computed, context and store declarations."""

from __future__ import annotations

import logging
import re

from tree_sitter import Node

from dfd_analyzer.analyzer.component import (
    ComponentShape,
    declarators,
    is_exported_let,
    object_pairs,
    scope_statements,
)
from dfd_analyzer.analyzer.references import ReferenceCollector
from dfd_analyzer.ir.facts import ReactivePrimitive
from dfd_analyzer.ir.primitive_registry import (
    EMITTER_FACTORIES,
    PrimitiveEntry,
    PrimitiveKind,
    is_custom_hook,
    lookup_primitive,
    lookup_process,
)
from dfd_analyzer.source.syntax import (
    call_arguments,
    function_body,
    is_function,
    literal_or_identifier,
    node_text,
    pattern_names,
    returned_expression,
    short_call_name,
    unwrap,
    walk,
)
from dfd_analyzer.type_query import TypeQuery

log = logging.getLogger(__name__)

# Names that read as functions when no type information is available.
CALLABLE_NAME_RE = re.compile(
    r"^(on|handle|set|get|update|delete|create|fetch|load|toggle|increment"
    r"|decrement|dispatch|navigate|logout|login|submit)[A-Z]"
)
CALLABLE_NAMES = frozenset({
    "dispatch", "navigate", "logout", "login", "submit", "reset", "clear",
    "increment", "decrement",
})

# Only for the all-names is_function_only check.
FUNCTION_ONLY_PATTERNS = (
    re.compile(r"^(on|handle)[A-Z]"),
    re.compile(r"^(set|get|update|delete|create|fetch|load)[A-Z]"),
    re.compile(r"^(is|has|can|should)[A-Z]"),
    re.compile(r"^(dispatch|navigate|logout|login|submit)$"),
)

_NOT_PRIMITIVES = frozenset({"defineProps", "defineEmits", "withDefaults", "$props", "defineExpose"})
_CUSTOM = PrimitiveEntry(kind=PrimitiveKind.CUSTOM, library="custom", category="custom-hook")
_SVELTE_LET = PrimitiveEntry(kind=PrimitiveKind.STATE, library="svelte", category="state")
_SVELTE_REACTIVE = PrimitiveEntry(kind=PrimitiveKind.COMPUTED, library="svelte", category="computed")


def looks_callable(name: str) -> bool:
    return name in CALLABLE_NAMES or bool(CALLABLE_NAME_RE.match(name))


def looks_function_only(names: list[str]) -> bool:
    return bool(names) and all(any(p.match(n) for p in FUNCTION_ONLY_PATTERNS) for n in names)


class PrimitiveAnalyzer:
    def __init__(
        self,
        shape: ComponentShape,
        types: TypeQuery | None = None,
        extra_fetch_hooks: frozenset[str] = frozenset(),
        extra_process_properties: frozenset[str] = frozenset(),
    ):
        self.shape = shape
        self.types = types
        self.extra_fetch_hooks = extra_fetch_hooks
        self.extra_process_properties = extra_process_properties

    def analyze(self) -> list[ReactivePrimitive]:
        found: list[ReactivePrimitive] = []
        if self.shape.kind == "class":
            found.extend(self._class_state())
        elif self.shape.kind == "options":
            found.extend(self._options_state())
        for stmt in scope_statements(self.shape.body):
            if stmt.type == "labeled_statement":
                prim = self._svelte_reactive(stmt)
                if prim is not None:
                    found.append(prim)
                continue
            for decl in declarators(stmt):
                prim = self._from_declarator(stmt, decl)
                if prim is not None:
                    found.append(prim)
        log.debug("Primitives: %s", [(p.name, p.variables) for p in found])
        return found

    # ── Declarators ─────────────────────────────────────────────────────

    def _from_declarator(self, stmt: Node, decl: Node) -> ReactivePrimitive | None:
        target = decl.child_by_field_name("name")
        value = unwrap(decl.child_by_field_name("value"))
        if target is None:
            return None
        if value is not None and value.type == "call_expression":
            name = short_call_name(value)
            if name is None or name in _NOT_PRIMITIVES or name in EMITTER_FACTORIES:
                return None
            if name.startswith("$derived"):
                name = "$derived"
            if lookup_process(name) is not None:
                return None
            entry = lookup_primitive(name, self.extra_fetch_hooks)
            if entry is None and is_custom_hook(name):
                entry = _CUSTOM
            if entry is not None:
                return self._primitive(name, entry, target, value)
        if self.shape.framework == "svelte" and self._is_svelte_state(stmt, value):
            return self._primitive("let", _SVELTE_LET, target, value)
        return None

    def _is_svelte_state(self, stmt: Node, value: Node | None) -> bool:
        if is_exported_let(stmt) or not node_text(stmt).lstrip().startswith("let"):
            return False
        if value is None:
            return True
        return not is_function(value) and value.type != "call_expression"

    def _primitive(self, name: str, entry: PrimitiveEntry, target: Node,
                   call: Node | None) -> ReactivePrimitive:
        names = pattern_names(target)
        args = call_arguments(call) if call is not None and call.type == "call_expression" else []
        line, col = self.shape.position(target)
        targs = call.child_by_field_name("type_arguments") if call is not None else None

        is_pair = (
            len(names) == 2
            and target.type == "array_pattern"
            and (names[1] == _setter_name(names[0]) or entry.tuple_setter)
        )
        callables = [n for n in names if self._is_callable(n, target, entry)]
        if is_pair and names[1] not in callables:
            callables.append(names[1])
        if entry.data_fetching and target.type == "array_pattern" and names:
            first = target.named_children[0] if target.named_children else None
            if first is not None and first.type == "identifier" and names[0] not in callables:
                callables.insert(0, names[0])

        prim = ReactivePrimitive(
            name=name,
            kind=entry.kind.value,
            variables=names,
            is_read_write_pair=is_pair,
            is_function_only=len(names) >= 2 and (
                all(n in callables for n in names) or looks_function_only(names)),
            dependencies=_dependency_array(args) if entry is _CUSTOM else None,
            is_object_pattern=target.type == "object_pattern",
            callable_variables=callables,
            arguments=[a for a in (literal_or_identifier(x) for x in args) if a is not None],
            type_argument=node_text(targs)[1:-1].strip() if targs is not None else None,
            library=entry.library,
            category=entry.category or entry.kind.value,
            data_fetching=entry.data_fetching,
            line=line,
            column=col,
            init=call,
        )
        if entry.library == "svelte-store" and len(names) == 1:
            prim.aliases["$" + names[0]] = names[0]
        return prim

    def _is_callable(self, name: str, node: Node, entry: PrimitiveEntry) -> bool:
        if self.types is not None:
            line, col = self.shape.position(node)
            verdict = self.types.is_callable(name, line, col)
            if verdict is not None:
                return verdict
        if name in entry.process_members or name in self.extra_process_properties:
            return True
        if entry.data_fetching:
            return False
        return looks_callable(name)

    # ── Svelte `$:` ─────────────────────────────────────────────────────

    def _svelte_reactive(self, stmt: Node) -> ReactivePrimitive | None:
        label = next((c for c in stmt.named_children if c.type == "statement_identifier"), None)
        if label is None or node_text(label) != "$":
            return None
        body = stmt.child_by_field_name("body")
        if body is None or body.type != "expression_statement" or not body.named_children:
            return None
        expr = unwrap(body.named_children[0])
        if expr is None or expr.type != "assignment_expression":
            return None
        left = expr.child_by_field_name("left")
        if left is None or left.type != "identifier":
            return None
        prim = self._primitive("$:", _SVELTE_REACTIVE, left, None)
        prim.init = expr.child_by_field_name("right")
        return prim

    # ── Class and Options API ───────────────────────────────────────────

    def _class_state(self) -> list[ReactivePrimitive]:
        found: list[ReactivePrimitive] = []
        body = self.shape.body
        if body is None:
            return found
        state_node = None
        for member in body.named_children:
            if member.type in ("public_field_definition", "field_definition"):
                name = member.child_by_field_name("name") or member.child_by_field_name("property")
                value = unwrap(member.child_by_field_name("value"))
                if name is None:
                    continue
                if node_text(name) == "state":
                    state_node = member
                elif value is not None and value.type == "call_expression":
                    call_name = short_call_name(value)
                    entry = lookup_primitive(call_name or "")
                    if entry is not None:
                        found.append(self._primitive(call_name, entry, name, value))
        if state_node is None:
            state_node = next((n for n in walk(body) if n.type == "member_expression"
                               and node_text(n) == "this.state"), None)
        if state_node is not None:
            line, col = self.shape.position(state_node)
            found.insert(0, ReactivePrimitive(
                name="state",
                kind="state",
                variables=["state", "setState"],
                is_read_write_pair=True,
                callable_variables=["setState"],
                library="react",
                category="state",
                line=line,
                column=col,
            ))
        return found

    def _options_state(self) -> list[ReactivePrimitive]:
        found: list[ReactivePrimitive] = []
        options = dict(object_pairs(self.shape.node))
        data = options.get("data")
        if data is not None:
            fn = data if data.type == "method_definition" or is_function(data) else None
            returned = returned_expression(fn) if fn is not None else unwrap(data)
            for key, value in object_pairs(returned):
                line, col = self.shape.position(value)
                found.append(ReactivePrimitive(
                    name="data", kind="state", variables=[key], library="vue",
                    category="state", line=line, column=col, init=value,
                ))
        computed = options.get("computed")
        if computed is not None:
            for key, value in object_pairs(computed):
                line, col = self.shape.position(value)
                found.append(ReactivePrimitive(
                    name="computed", kind="computed", variables=[key], library="vue",
                    category="computed", line=line, column=col,
                    init=function_body(value) if value.type == "method_definition" else value,
                ))
        return found


def analyze_primitives(
    shape: ComponentShape,
    types: TypeQuery | None = None,
    extra_fetch_hooks: frozenset[str] = frozenset(),
    extra_process_properties: frozenset[str] = frozenset(),
) -> list[ReactivePrimitive]:
    return PrimitiveAnalyzer(shape, types, extra_fetch_hooks, extra_process_properties).analyze()


def resolve_dependencies(primitives: list[ReactivePrimitive], collector: ReferenceCollector) -> None:
    """Fill ``dependencies`` of computed primitives from the names their initializer reads.

    Other primitives record the names read by their call arguments in
    ``init_references``: ``useState(initialCount)``, ``useSWR(userKey)``.
    """
    for prim in primitives:
        if prim.init is None:
            continue
        facts = collector.collect(prim.init)
        names = [r for r in facts.references if r not in prim.variables]
        if prim.kind == "computed":
            prim.dependencies = names or None
        else:
            prim.init_references = names


def _setter_name(name: str) -> str:
    return "set" + name[:1].upper() + name[1:]


def _dependency_array(args: list[Node]) -> list[str] | None:
    """Identifiers of a trailing ``[a, b]`` argument; an empty array gives None."""
    if len(args) < 2:
        return None
    last = unwrap(args[-1])
    if last is None or last.type != "array":
        return None
    deps = [node_text(e) for e in last.named_children if e.type == "identifier"]
    return deps or None

"""Process Analyzer: handlers, effects, callbacks, memos and imperative handles."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from tree_sitter import Node

from dfd_analyzer.analyzer.component import (
    ComponentShape,
    declarators,
    object_pairs,
    scope_statements,
)
from dfd_analyzer.analyzer.references import BodyFacts, ReferenceCollector
from dfd_analyzer.ir.facts import ExportedMethod, Process
from dfd_analyzer.ir.primitive_registry import ProcessEntry, ProcessKind, lookup_process
from dfd_analyzer.source.syntax import (
    FUNCTION_TYPES,
    call_arguments,
    flatten_member,
    function_body,
    is_function,
    node_text,
    returned_expression,
    short_call_name,
    unwrap,
)

log = logging.getLogger(__name__)

_HANDLER_NAME_RE = re.compile(r"^(handle|on)[A-Z]")

_CLASS_LIFECYCLE = frozenset({
    "componentDidMount", "componentDidUpdate", "componentWillUnmount",
    "componentDidCatch", "getSnapshotBeforeUpdate",
})
_CLASS_SKIP = frozenset({"render", "constructor", "shouldComponentUpdate"})
_OPTIONS_LIFECYCLE = frozenset({
    "beforeCreate", "created", "beforeMount", "mounted", "beforeUpdate", "updated",
    "beforeUnmount", "unmounted", "activated", "deactivated",
})


@dataclass
class InlineHandler:
    """An inline event handler found by the rendered-output traversal."""

    name: str                      # inline_onClick, inline_onClick_2, ...
    attribute: str                 # normalized event attribute: onClick
    node: Node                     # function literal or handler statement
    line: int = 0
    column: int = 0


class ProcessAnalyzer:
    def __init__(
        self,
        shape: ComponentShape,
        collector: ReferenceCollector,
        handler_names: set[str] | None = None,
    ):
        self.shape = shape
        self.collector = collector
        self.handler_names = handler_names or set()

    def analyze(self, inline_handlers: list[InlineHandler] | None = None) -> list[Process]:
        found: list[Process] = []
        if self.shape.kind == "class":
            found.extend(self._class_methods())
        elif self.shape.kind == "options":
            found.extend(self._options_members())

        for stmt in scope_statements(self.shape.body):
            found.extend(self._from_statement(stmt))

        for handler in inline_handlers or ():
            found.append(self._inline(handler))

        log.debug("Processes: %s", [(p.name, p.kind) for p in found])
        return found

    # ── Statements ──────────────────────────────────────────────────────

    def _from_statement(self, stmt: Node) -> list[Process]:
        t = stmt.type
        if t in ("function_declaration", "generator_function_declaration"):
            name = node_text(stmt.child_by_field_name("name"))
            return [self._function(name, stmt)]
        if t in ("lexical_declaration", "variable_declaration"):
            out = []
            for decl in declarators(stmt):
                target = decl.child_by_field_name("name")
                value = unwrap(decl.child_by_field_name("value"))
                if target is None or target.type != "identifier" or value is None:
                    continue
                name = node_text(target)
                if is_function(value):
                    out.append(self._function(name, value))
                elif value.type == "call_expression":
                    proc = self._hook(value, name)
                    if proc is not None:
                        out.append(proc)
            return out
        if t == "expression_statement" and stmt.named_children:
            expr = unwrap(stmt.named_children[0])
            if expr is not None and expr.type == "call_expression":
                proc = self._hook(expr, None)
                if proc is not None:
                    return [proc]
            return []
        if t == "labeled_statement":
            proc = self._svelte_reactive_block(stmt)
            return [proc] if proc is not None else []
        return []

    def _function(self, name: str, fn: Node) -> Process:
        facts = self.collector.collect(fn)
        line, col = self.shape.position(fn)
        kind = ProcessKind.CUSTOM_FUNCTION
        if name in self.handler_names or _HANDLER_NAME_RE.match(name):
            kind = ProcessKind.EVENT_HANDLER
        return _process(name, kind.value, facts, line=line, column=col)

    def _hook(self, call: Node, var_name: str | None) -> Process | None:
        hook = short_call_name(call)
        if hook == "defineExpose":
            return self._define_expose(call)
        entry = lookup_process(hook or "")
        if entry is None:
            return None
        args = call_arguments(call)
        callback = unwrap(args[entry.callback_index]) if len(args) > entry.callback_index else None
        line, col = self.shape.position(call)
        name = var_name or hook
        deps = self._dependencies(args, entry)

        if entry.kind == ProcessKind.IMPERATIVE_HANDLE:
            return self._imperative_handle(name, args, callback, deps, line, col)

        if callback is None or not is_function(callback):
            # useMemo(() => compute, deps) always has a function; a bare value is skipped
            return None

        cleanup_fn = _returned_cleanup(callback) if entry.kind == ProcessKind.EFFECT else None
        facts = self.collector.collect(callback, skip=cleanup_fn)
        proc = _process(name, entry.kind.value, facts, dependencies=deps, line=line, column=col)
        if cleanup_fn is not None:
            cl_line, cl_col = self.shape.position(cleanup_fn)
            proc.cleanup = _process("cleanup", ProcessKind.CLEANUP.value,
                                    self.collector.collect(cleanup_fn),
                                    line=cl_line, column=cl_col)
        return proc

    def _dependencies(self, args: list[Node], entry: ProcessEntry) -> list[str] | None:
        """Dependency array names; an explicitly empty array gives None."""
        if entry.library == "vue" and entry.callback_index == 1 and args:
            # watch(source, cb): the source is the dependency
            source = unwrap(args[0])
            if source is not None and source.type == "identifier":
                return [node_text(source)]
            deps = self.collector.collect(source).references
            return deps or None
        if entry.deps_index is None or len(args) <= entry.deps_index:
            return None
        array = unwrap(args[entry.deps_index])
        if array is None or array.type != "array":
            return None
        deps: list[str] = []
        for element in array.named_children:
            flat = flatten_member(element)
            if flat is None:
                continue
            root = flat.split(".")[0]
            if root not in deps:
                deps.append(root)
        return deps or None

    # ── Imperative handles ──────────────────────────────────────────────

    def _imperative_handle(self, name: str, args: list[Node], factory: Node | None,
                           deps: list[str] | None, line: int, col: int) -> Process:
        ref_name = node_text(unwrap(args[0])) if args else None
        returned = returned_expression(factory) if factory is not None and is_function(factory) else None
        methods: list[ExportedMethod] = []
        if returned is not None and returned.type == "object":
            methods = self._exported_methods(returned, factory)
        facts = self.collector.collect(factory, skip=returned) if factory is not None else BodyFacts()
        proc = _process(name, ProcessKind.IMPERATIVE_HANDLE.value, facts,
                        dependencies=deps, line=line, column=col)
        proc.ref_name = ref_name
        proc.exported_methods = methods
        return proc

    def _exported_methods(self, obj: Node, factory: Node | None) -> list[ExportedMethod]:
        local_fns = _local_functions(function_body(factory)) if factory is not None else {}
        methods: list[ExportedMethod] = []
        for key, value in object_pairs(obj):
            target = value
            if value.type == "shorthand_property_identifier":
                target = local_fns.get(key)
            line, col = self.shape.position(value)
            if target is not None and (is_function(target) or target.type in (
                    "method_definition", "function_declaration")):
                facts = self.collector.collect(target)
            elif value.type == "shorthand_property_identifier" and key in self.collector.symbols:
                # exposes a component-level function: the method calls it
                facts = self.collector.collect(value)
            else:
                facts = self.collector.collect(unwrap(value))
            methods.append(ExportedMethod(
                name=key,
                references=facts.references,
                accesses=facts.accesses,
                external_calls=facts.external_calls,
                line=line,
                column=col,
            ))
        return methods

    def _define_expose(self, call: Node) -> Process | None:
        args = call_arguments(call)
        obj = unwrap(args[0]) if args else None
        if obj is None or obj.type != "object":
            return None
        line, col = self.shape.position(call)
        proc = Process(name="defineExpose", kind=ProcessKind.IMPERATIVE_HANDLE.value,
                       line=line, column=col)
        proc.exported_methods = self._exported_methods(obj, None)
        return proc

    # ── Svelte / class / options ────────────────────────────────────────

    def _svelte_reactive_block(self, stmt: Node) -> Process | None:
        label = next((c for c in stmt.named_children if c.type == "statement_identifier"), None)
        if label is None or node_text(label) != "$":
            return None
        body = stmt.child_by_field_name("body")
        if body is None:
            return None
        if body.type == "expression_statement" and body.named_children:
            expr = unwrap(body.named_children[0])
            if expr is not None and expr.type == "assignment_expression" \
                    and expr.child_by_field_name("left").type == "identifier":
                return None  # reactive declaration, handled as a computed primitive
        facts = self.collector.collect(body)
        line, col = self.shape.position(stmt)
        return _process("$:", ProcessKind.EFFECT.value, facts,
                        dependencies=facts.references or None, line=line, column=col)

    def _class_methods(self) -> list[Process]:
        found: list[Process] = []
        body = self.shape.body
        if body is None:
            return found
        for member in body.named_children:
            name_node = member.child_by_field_name("name") or member.child_by_field_name("property")
            if name_node is None:
                continue
            name = node_text(name_node)
            if member.type == "method_definition":
                fn = member
            elif member.type in ("public_field_definition", "field_definition"):
                fn = unwrap(member.child_by_field_name("value"))
                if fn is None or not is_function(fn):
                    continue
            else:
                continue
            if name in _CLASS_SKIP:
                continue
            if name in _CLASS_LIFECYCLE:
                facts = self.collector.collect(fn)
                line, col = self.shape.position(member)
                found.append(_process(name, ProcessKind.EFFECT.value, facts, line=line, column=col))
            else:
                found.append(self._function(name, fn))
        return found

    def _options_members(self) -> list[Process]:
        found: list[Process] = []
        for key, value in object_pairs(self.shape.node):
            if key == "methods":
                for name, fn in object_pairs(value):
                    found.append(self._function(name, fn))
            elif key == "watch":
                for name, fn in object_pairs(value):
                    facts = self.collector.collect(fn)
                    line, col = self.shape.position(fn)
                    found.append(_process(f"watch_{name}", ProcessKind.EFFECT.value, facts,
                                          dependencies=[name], line=line, column=col))
            elif key in _OPTIONS_LIFECYCLE:
                facts = self.collector.collect(value)
                line, col = self.shape.position(value)
                found.append(_process(key, ProcessKind.EFFECT.value, facts, line=line, column=col))
        return found

    def _inline(self, handler: InlineHandler) -> Process:
        facts = self.collector.collect(handler.node)
        proc = _process(handler.name, ProcessKind.EVENT_HANDLER.value, facts,
                        line=handler.line, column=handler.column)
        proc.is_inline = True
        proc.attribute = handler.attribute
        return proc


def analyze_processes(
    shape: ComponentShape,
    collector: ReferenceCollector,
    handler_names: set[str] | None = None,
    inline_handlers: list[InlineHandler] | None = None,
) -> list[Process]:
    return ProcessAnalyzer(shape, collector, handler_names).analyze(inline_handlers)


def declared_process_names(shape: ComponentShape) -> list[str]:
    """Names of function-valued bindings, known before any body is analyzed."""
    names: list[str] = []
    if shape.kind == "class" and shape.body is not None:
        for member in shape.body.named_children:
            name_node = member.child_by_field_name("name") or member.child_by_field_name("property")
            if name_node is None:
                continue
            value = unwrap(member.child_by_field_name("value"))
            if member.type == "method_definition" or (value is not None and is_function(value)):
                if node_text(name_node) not in _CLASS_SKIP | _CLASS_LIFECYCLE:
                    names.append(node_text(name_node))
    if shape.kind == "options":
        for key, value in object_pairs(shape.node):
            if key == "methods":
                names.extend(name for name, _ in object_pairs(value))
    for stmt in scope_statements(shape.body):
        if stmt.type in ("function_declaration", "generator_function_declaration"):
            names.append(node_text(stmt.child_by_field_name("name")))
        for decl in declarators(stmt):
            target = decl.child_by_field_name("name")
            value = unwrap(decl.child_by_field_name("value"))
            if target is None or target.type != "identifier" or value is None:
                continue
            if is_function(value):
                names.append(node_text(target))
            elif value.type == "call_expression":
                entry = lookup_process(short_call_name(value) or "")
                if entry is not None and entry.kind in (ProcessKind.CALLBACK, ProcessKind.MEMO):
                    names.append(node_text(target))
    return names


# ── Helpers ─────────────────────────────────────────────────────────────────

def _process(name: str, kind: str, facts: BodyFacts, *, dependencies: list[str] | None = None,
             line: int = 0, column: int = 0) -> Process:
    return Process(
        name=name,
        kind=kind,
        dependencies=dependencies,
        references=facts.references,
        accesses=facts.accesses,
        external_calls=facts.external_calls,
        emits=facts.emits,
        line=line,
        column=column,
    )


def _returned_cleanup(fn: Node) -> Node | None:
    """Function literal returned by the final statement of an effect body."""
    body = function_body(fn)
    if body is None or body.type != "statement_block":
        return None
    stmts = [s for s in body.named_children if s.type != "comment"]
    if not stmts or stmts[-1].type != "return_statement":
        return None
    values = [c for c in stmts[-1].named_children if c.type != "comment"]
    value = unwrap(values[0]) if values else None
    if value is not None and value.type in FUNCTION_TYPES:
        return value
    return None


def _local_functions(body: Node | None) -> dict[str, Node]:
    found: dict[str, Node] = {}
    for stmt in scope_statements(body):
        if stmt.type == "function_declaration":
            found[node_text(stmt.child_by_field_name("name"))] = stmt
        for decl in declarators(stmt):
            target = decl.child_by_field_name("name")
            value = unwrap(decl.child_by_field_name("value"))
            if target is not None and value is not None and is_function(value):
                found[node_text(target)] = value
    return found

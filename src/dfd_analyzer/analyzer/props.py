"""Props Analyzer: component inputs, plus Vue emits and Svelte dispatcher events."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from tree_sitter import Node

from dfd_analyzer.analyzer.component import (
    ComponentShape,
    declarators,
    is_exported_let,
    object_pairs,
    scope_statements,
)
from dfd_analyzer.ir.facts import Prop
from dfd_analyzer.ir.primitive_registry import EMITTER_FACTORIES
from dfd_analyzer.source.syntax import (
    call_arguments,
    function_parameters,
    node_text,
    pattern_names,
    short_call_name,
    string_value,
    type_annotation_text,
    unwrap,
    walk,
)
from dfd_analyzer.type_query import TypeQuery

log = logging.getLogger(__name__)

_FC_NAMES = frozenset({
    "FC", "React.FC", "FunctionComponent", "React.FunctionComponent",
    "PropsWithChildren", "React.PropsWithChildren", "VFC", "React.VFC",
})
_EMIT_SIGNATURE_RE = re.compile(r"\(\s*\w+\s*:\s*(['\"])(.+?)\1")


@dataclass
class PropsResult:
    props: list[Prop] = field(default_factory=list)
    props_objects: list[str] = field(default_factory=list)   # `props` in `props.title`
    emitters: list[str] = field(default_factory=list)        # `emit`, `dispatch`

    def add(self, prop: Prop) -> None:
        if all(p.name != prop.name for p in self.props):
            self.props.append(prop)


def analyze_props(shape: ComponentShape, types: TypeQuery | None = None) -> PropsResult:
    result = PropsResult()
    if shape.framework == "react":
        if shape.kind == "class":
            _class_props(shape, result)
        else:
            _function_props(shape, result)
    elif shape.kind == "options":
        _options_props(shape, result)
    elif shape.framework == "vue":
        _vue_setup_props(shape, result)
    else:
        _svelte_props(shape, result)

    _events_from_emit_calls(shape, result)

    if types is not None and types.available:
        for prop in result.props:
            if prop.declared_type is None and not prop.is_event:
                prop.declared_type = types.type_of(prop.name, prop.line, prop.column)

    log.debug("Props: %s", [p.name for p in result.props])
    return result


# ── React ───────────────────────────────────────────────────────────────────

def _function_props(shape: ComponentShape, result: PropsResult) -> None:
    params = shape.params
    if not params:
        return
    root = shape.module.root
    param = params[0]
    pattern = param.child_by_field_name("pattern") if param.type in (
        "required_parameter", "optional_parameter") else param
    type_node = param.child_by_field_name("type")
    if type_node is None:
        type_node = _contextual_props_type(shape.node)
    members = _type_members(type_node, root)
    if pattern is not None and pattern.type == "assignment_pattern":
        pattern = pattern.child_by_field_name("left")
    if pattern is None:
        return
    if pattern.type == "object_pattern":
        _destructured(shape, pattern, members, result)
    elif pattern.type == "identifier":
        line, col = shape.position(pattern)
        result.add(Prop(
            name=node_text(pattern),
            declared_type=_type_name(type_node),
            line=line,
            column=col,
        ))


def _class_props(shape: ComponentShape, result: PropsResult) -> None:
    heritage = next((c for c in shape.node.named_children if c.type == "class_heritage"), None)
    declared = None
    if heritage is not None:
        m = re.search(r"<\s*([\w.]+)", node_text(heritage))
        if m:
            declared = m.group(1)
    line, col = shape.position(shape.node)
    result.add(Prop(name="props", declared_type=declared, line=line, column=col))


def _destructured(shape: ComponentShape, pattern: Node, members: dict[str, str],
                  result: PropsResult) -> None:
    for child in pattern.named_children:
        key = None
        local = None
        has_default = False
        is_rest = False
        if child.type == "shorthand_property_identifier_pattern":
            key = local = node_text(child)
        elif child.type == "object_assignment_pattern":
            left = child.child_by_field_name("left")
            key = local = node_text(left)
            has_default = True
        elif child.type == "pair_pattern":
            key = node_text(child.child_by_field_name("key")).strip("'\"")
            value = child.child_by_field_name("value")
            has_default = value is not None and value.type == "assignment_pattern"
            names = pattern_names(value)
            local = names[0] if names else key
        elif child.type == "rest_pattern":
            names = pattern_names(child)
            if not names:
                continue
            key = local = names[0]
            is_rest = True
        else:
            continue
        line, col = shape.position(child)
        result.add(Prop(
            name=local,
            declared_type=None if is_rest else members.get(key),
            is_destructured=True,
            is_rest=is_rest,
            has_default=has_default,
            line=line,
            column=col,
        ))


def _contextual_props_type(fn: Node | None) -> Node | None:
    """Props type given outside the parameter list.

    ``const X: React.FC<Props> = (...) => ...`` and
    ``forwardRef<Handle, Props>((props, ref) => ...)``.
    """
    node = fn
    while node is not None and node.parent is not None:
        parent = node.parent
        if parent.type == "arguments" and parent.parent is not None \
                and parent.parent.type == "call_expression":
            call = parent.parent
            targs = call.child_by_field_name("type_arguments")
            if targs is not None and short_call_name(call) == "forwardRef":
                named = [c for c in targs.named_children if c.type != "comment"]
                if len(named) >= 2:
                    return named[1]
            node = call
            continue
        if parent.type == "variable_declarator":
            annotation = parent.child_by_field_name("type")
            if annotation is None:
                return None
            target = annotation.named_children[0] if annotation.named_children else None
            if target is not None and target.type == "generic_type":
                base = node_text(target.child_by_field_name("name"))
                targs = target.child_by_field_name("type_arguments")
                if base in _FC_NAMES and targs is not None and targs.named_children:
                    return targs.named_children[0]
            return None
        return None
    return None


# ── Vue ─────────────────────────────────────────────────────────────────────

def _vue_setup_props(shape: ComponentShape, result: PropsResult) -> None:
    root = shape.module.root
    for stmt in scope_statements(shape.body):
        bindings: list[tuple[Node | None, Node]] = []
        if stmt.type == "expression_statement":
            expr = unwrap(stmt.named_children[0]) if stmt.named_children else None
            if expr is not None and expr.type == "call_expression":
                bindings.append((None, expr))
        for decl in declarators(stmt):
            value = unwrap(decl.child_by_field_name("value"))
            if value is not None and value.type == "call_expression":
                bindings.append((decl.child_by_field_name("name"), value))
        for target, call in bindings:
            name = short_call_name(call)
            defaults: set[str] = set()
            if name == "withDefaults":
                args = call_arguments(call)
                if not args or unwrap(args[0]).type != "call_expression":
                    continue
                if len(args) > 1:
                    defaults = {k for k, _ in object_pairs(args[1])}
                call = unwrap(args[0])
                name = short_call_name(call)
            if name == "defineProps":
                _define_props(shape, call, target, defaults, root, result)
            elif name == "defineEmits":
                _define_emits(shape, call, root, result)
                if target is not None and target.type == "identifier":
                    result.emitters.append(node_text(target))


def _define_props(shape, call: Node, target: Node | None, defaults: set[str],
                  root: Node, result: PropsResult) -> None:
    declared: list[tuple[str, str | None, bool, Node]] = []
    targs = call.child_by_field_name("type_arguments")
    if targs is not None and targs.named_children:
        members = _type_members(targs.named_children[0], root)
        for key, type_text in members.items():
            declared.append((key, type_text, False, targs))
    else:
        args = call_arguments(call)
        if args:
            declared.extend(_runtime_props(args[0]))

    local_defaults: set[str] = set()
    if target is not None and target.type == "object_pattern":
        local_defaults = {
            node_text(c.child_by_field_name("left"))
            for c in target.named_children if c.type == "object_assignment_pattern"
        }
    elif target is not None and target.type == "identifier":
        result.props_objects.append(node_text(target))

    for key, type_text, has_default, node in declared:
        line, col = shape.position(node)
        result.add(Prop(
            name=key,
            declared_type=type_text,
            is_destructured=True,
            has_default=has_default or key in defaults or key in local_defaults,
            line=line,
            column=col,
        ))


def _runtime_props(arg: Node) -> list[tuple[str, str | None, bool, Node]]:
    """``['a', 'b']`` or ``{ a: String, b: { type: Number, default: 0 } }``."""
    arg = unwrap(arg)
    out: list[tuple[str, str | None, bool, Node]] = []
    if arg is None:
        return out
    if arg.type == "array":
        for item in arg.named_children:
            value = string_value(item)
            if value:
                out.append((value, None, False, item))
        return out
    for key, value in object_pairs(arg):
        value = unwrap(value)
        type_text = None
        has_default = False
        if value is not None and value.type == "object":
            inner = dict(object_pairs(value))
            if "type" in inner:
                type_text = node_text(inner["type"])
            has_default = "default" in inner
        elif value is not None:
            type_text = node_text(value)
        out.append((key, type_text, has_default, value or arg))
    return out


def _define_emits(shape, call: Node, root: Node, result: PropsResult) -> None:
    events: list[tuple[str, Node]] = []
    targs = call.child_by_field_name("type_arguments")
    if targs is not None and targs.named_children:
        type_node = targs.named_children[0]
        text = node_text(type_node)
        if _EMIT_SIGNATURE_RE.search(text):
            events.extend((m.group(2), type_node) for m in _EMIT_SIGNATURE_RE.finditer(text))
        else:
            events.extend((k, type_node) for k in _type_members(type_node, root))
    else:
        args = call_arguments(call)
        if args:
            events.extend((k, n) for k, _, _, n in _runtime_props(args[0]))
    for name, node in events:
        line, col = shape.position(node)
        result.add(Prop(name=name, is_event=True, line=line, column=col))


def _options_props(shape: ComponentShape, result: PropsResult) -> None:
    options = dict(object_pairs(shape.node))
    if "props" in options:
        for key, type_text, has_default, node in _runtime_props(options["props"]):
            line, col = shape.position(node)
            result.add(Prop(name=key, declared_type=type_text, is_destructured=True,
                            has_default=has_default, line=line, column=col))
    if "emits" in options:
        for key, _, _, node in _runtime_props(options["emits"]):
            line, col = shape.position(node)
            result.add(Prop(name=key, is_event=True, line=line, column=col))
    result.emitters.append("$emit")
    if shape.setup is not None:
        params = function_parameters(shape.setup)
        if params:
            names = pattern_names(params[0])
            if len(names) == 1:
                result.props_objects.append(names[0])
        if len(params) > 1:
            # setup(props, { emit })
            for name in pattern_names(params[1]):
                if name == "emit":
                    result.emitters.append(name)


# ── Svelte ──────────────────────────────────────────────────────────────────

def _svelte_props(shape: ComponentShape, result: PropsResult) -> None:
    root = shape.module.root
    for stmt in scope_statements(shape.body):
        exported = is_exported_let(stmt) and node_text(stmt).lstrip().startswith(("let", "var"))
        for decl in declarators(stmt):
            target = decl.child_by_field_name("name")
            value = unwrap(decl.child_by_field_name("value"))
            call_name = short_call_name(value) if value is not None and value.type == "call_expression" else None
            if exported and target is not None and target.type == "identifier":
                line, col = shape.position(target)
                result.add(Prop(
                    name=node_text(target),
                    declared_type=type_annotation_text(decl.child_by_field_name("type")),
                    is_destructured=True,
                    has_default=value is not None,
                    line=line,
                    column=col,
                ))
            elif call_name == "$props" and target is not None:
                members = _type_members(decl.child_by_field_name("type"), root)
                if target.type == "object_pattern":
                    _destructured(shape, target, members, result)
                else:
                    line, col = shape.position(target)
                    result.add(Prop(name=node_text(target), line=line, column=col))
            elif call_name in EMITTER_FACTORIES and target is not None and target.type == "identifier":
                result.emitters.append(node_text(target))


def _events_from_emit_calls(shape: ComponentShape, result: PropsResult) -> None:
    """Events named by ``emit('x')`` / ``dispatch('x')`` that were not declared."""
    root = shape.module.root
    if root is None or not result.emitters:
        return
    emitters = set(result.emitters) | {f"this.{e}" for e in result.emitters}
    for node in walk(root):
        if node.type != "call_expression":
            continue
        callee = short_call_name(node)
        if callee not in emitters:
            continue
        args = call_arguments(node)
        event = string_value(args[0]) if args else None
        if event:
            line, col = shape.position(node)
            result.add(Prop(name=event, is_event=True, line=line, column=col))


# ── Type members ────────────────────────────────────────────────────────────

def _type_name(type_node: Node | None) -> str | None:
    if type_node is None:
        return None
    if type_node.type == "type_annotation":
        return type_annotation_text(type_node)
    return node_text(type_node) or None


def _type_members(type_node: Node | None, root: Node | None, depth: int = 0) -> dict[str, str]:
    """Member name -> type text for an object type, interface or alias."""
    members: dict[str, str] = {}
    if type_node is None or root is None or depth > 8:
        return members
    node = type_node
    if node.type == "type_annotation":
        node = node.named_children[0] if node.named_children else None
        if node is None:
            return members
    t = node.type
    if t in ("object_type", "interface_body"):
        for child in node.named_children:
            name = child.child_by_field_name("name")
            if name is None:
                continue
            key = node_text(name).strip("'\"")
            if child.type == "property_signature":
                members[key] = type_annotation_text(child.child_by_field_name("type")) or "any"
            elif child.type == "method_signature":
                params = child.child_by_field_name("parameters")
                members[key] = f"{node_text(params) or '()'} => void"
    elif t == "parenthesized_type":
        for child in node.named_children:
            members.update(_type_members(child, root, depth + 1))
    elif t == "intersection_type":
        for child in node.named_children:
            members.update(_type_members(child, root, depth + 1))
    elif t == "generic_type":
        base = node_text(node.child_by_field_name("name"))
        targs = node.child_by_field_name("type_arguments")
        if base in _FC_NAMES and targs is not None and targs.named_children:
            members.update(_type_members(targs.named_children[0], root, depth + 1))
        else:
            members.update(_type_members_by_name(base, root, depth))
    elif t in ("type_identifier", "nested_type_identifier"):
        members.update(_type_members_by_name(node_text(node), root, depth))
    return members


def _type_members_by_name(name: str, root: Node, depth: int) -> dict[str, str]:
    for stmt in scope_statements(root):
        if stmt.type == "interface_declaration" and node_text(stmt.child_by_field_name("name")) == name:
            members = _type_members(stmt.child_by_field_name("body"), root, depth + 1)
            for clause in (c for c in stmt.named_children if c.type == "extends_type_clause"):
                for base in clause.named_children:
                    members = {**_type_members(base, root, depth + 1), **members}
            return members
        if stmt.type == "type_alias_declaration" and node_text(stmt.child_by_field_name("name")) == name:
            return _type_members(stmt.child_by_field_name("value"), root, depth + 1)
    return {}

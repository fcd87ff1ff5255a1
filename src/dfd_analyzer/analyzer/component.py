"""Locate the component shape inside a script module.

React: function declarations, arrow/function-expression declarators,
``forwardRef``/``memo`` wrappers and class components. Exported
components win over private ones, ``export default`` over named exports.

Vue: an Options API object (``export default {...}`` or
``defineComponent({...})``) or, failing that, the ``<script setup>``
module itself. Svelte: always the module.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import PurePath

from tree_sitter import Node

from dfd_analyzer.errors import ComponentNotFound
from dfd_analyzer.source.adapter import AdaptedSource, ScriptModule
from dfd_analyzer.source.syntax import (
    FUNCTION_TYPES,
    JSX_ELEMENT_TYPES,
    call_arguments,
    function_body,
    function_parameters,
    node_text,
    short_call_name,
    unwrap,
    walk,
)

log = logging.getLogger(__name__)

ANONYMOUS = "AnonymousComponent"

_WRAPPERS = frozenset({"forwardRef", "memo", "observer", "defineComponent"})
_CLASS_BASES = re.compile(r"\b(?:React\.)?(?:Pure)?Component\b")


@dataclass
class ComponentShape:
    name: str
    framework: str
    kind: str                      # "function" | "class" | "options" | "module"
    node: Node | None              # function / class / options object / program
    module: ScriptModule
    wrappers: list[str] = field(default_factory=list)
    setup: Node | None = None      # Options API setup() function

    @property
    def body(self) -> Node | None:
        """Node whose statements hold the component's bindings."""
        if self.node is None:
            return None
        if self.kind == "function":
            return function_body(self.node)
        if self.kind == "class":
            return self.node.child_by_field_name("body")
        if self.kind == "options":
            return function_body(self.setup) if self.setup is not None else None
        return self.node

    @property
    def params(self) -> list[Node]:
        if self.kind == "function" and self.node is not None:
            return function_parameters(self.node)
        return []

    def position(self, node: Node) -> tuple[int, int]:
        return self.module.position(node)


# ── Scope helpers ───────────────────────────────────────────────────────────

def scope_statements(scope: Node | None) -> list[Node]:
    """Top-level statements of a block, with ``export`` wrappers removed."""
    if scope is None or scope.type not in ("statement_block", "program", "class_body"):
        return []
    out: list[Node] = []
    for stmt in scope.named_children:
        if stmt.type == "comment":
            continue
        if stmt.type == "export_statement":
            decl = stmt.child_by_field_name("declaration")
            if decl is not None:
                out.append(decl)
                continue
        out.append(stmt)
    return out


def declarators(stmt: Node) -> list[Node]:
    if stmt.type not in ("lexical_declaration", "variable_declaration"):
        return []
    return [c for c in stmt.named_children if c.type == "variable_declarator"]


def is_exported_let(stmt: Node) -> bool:
    parent = stmt.parent
    return parent is not None and parent.type == "export_statement"


def contains_jsx(node: Node | None) -> bool:
    if node is None:
        return False
    return any(n.type in JSX_ELEMENT_TYPES for n in walk(node))


def object_pairs(obj: Node | None) -> list[tuple[str, Node]]:
    """``(key, value)`` entries of an object literal, methods included."""
    obj = unwrap(obj)
    if obj is None or obj.type != "object":
        return []
    out: list[tuple[str, Node]] = []
    for child in obj.named_children:
        if child.type == "pair":
            key = child.child_by_field_name("key")
            value = child.child_by_field_name("value")
            if key is not None and value is not None:
                out.append((node_text(key).strip("'\""), value))
        elif child.type == "method_definition":
            key = child.child_by_field_name("name")
            if key is not None:
                out.append((node_text(key), child))
        elif child.type == "shorthand_property_identifier":
            out.append((node_text(child), child))
    return out


# ── Location ────────────────────────────────────────────────────────────────

def component_name_from_file(filename: str | None) -> str:
    if not filename or filename in ("vue", "svelte", "react"):
        return "Component"
    stem = PurePath(filename).stem
    stem = re.sub(r"^\d+-", "", stem)
    return stem or "Component"


def locate_component(adapted: AdaptedSource) -> ComponentShape:
    module = adapted.module
    if adapted.framework in ("vue", "svelte"):
        return _locate_sfc(adapted)
    root = module.root
    if root is None:
        raise ComponentNotFound()

    tiers: dict[int, list[ComponentShape]] = {0: [], 1: [], 2: []}
    default_name: str | None = None
    for stmt in root.named_children:
        tier = 2
        target = stmt
        if stmt.type == "export_statement":
            tier = 1
            if any(c.type == "default" for c in stmt.children):
                tier = 0
            decl = stmt.child_by_field_name("declaration") or stmt.child_by_field_name("value")
            if decl is None:
                continue
            target = decl
            if tier == 0 and unwrap(decl) is not None and unwrap(decl).type == "identifier":
                default_name = node_text(unwrap(decl))
                continue
        for shape in _candidates(target, module):
            tiers[tier].append(shape)

    if default_name is not None:
        for shape in tiers[1] + tiers[2]:
            if shape.name == default_name:
                log.debug("Component %s selected via default export", shape.name)
                return shape
    for tier in (0, 1, 2):
        if tiers[tier]:
            shape = tiers[tier][0]
            log.debug("Component %s (%s) selected", shape.name, shape.kind)
            return shape
    raise ComponentNotFound()


def _candidates(node: Node, module: ScriptModule) -> list[ComponentShape]:
    t = node.type
    found: list[ComponentShape] = []
    if t == "function_declaration" or t in FUNCTION_TYPES:
        name_node = node.child_by_field_name("name")
        name = node_text(name_node) if name_node is not None else ANONYMOUS
        if _is_component_function(node, name, anonymous_ok=name_node is None):
            found.append(ComponentShape(name, "react", "function", node, module))
    elif t in ("class_declaration", "class", "abstract_class_declaration"):
        shape = _class_shape(node, module)
        if shape is not None:
            found.append(shape)
    elif t in ("lexical_declaration", "variable_declaration"):
        for decl in declarators(node):
            name_node = decl.child_by_field_name("name")
            if name_node is None or name_node.type != "identifier":
                continue
            fn, wrappers = _unwrap_component_value(decl.child_by_field_name("value"))
            name = node_text(name_node)
            if fn is not None and fn.type in ("class", "class_declaration"):
                shape = _class_shape(fn, module, name)
                if shape is not None:
                    found.append(shape)
            elif fn is not None and _is_component_function(fn, name, anonymous_ok=False):
                found.append(ComponentShape(name, "react", "function", fn, module, wrappers))
    elif t == "call_expression":
        fn, wrappers = _unwrap_component_value(node)
        if fn is not None and _is_component_function(fn, ANONYMOUS, anonymous_ok=True):
            name_node = fn.child_by_field_name("name")
            name = node_text(name_node) if name_node is not None else ANONYMOUS
            found.append(ComponentShape(name, "react", "function", fn, module, wrappers))
    return found


def _unwrap_component_value(value: Node | None) -> tuple[Node | None, list[str]]:
    """Peel ``memo(forwardRef((props, ref) => ...))`` down to the function."""
    wrappers: list[str] = []
    value = unwrap(value)
    while value is not None and value.type == "call_expression":
        name = short_call_name(value)
        if name is None or name.rsplit(".", 1)[-1] not in _WRAPPERS:
            return None, wrappers
        wrappers.append(name.rsplit(".", 1)[-1])
        args = call_arguments(value)
        if not args:
            return None, wrappers
        value = unwrap(args[0])
    if value is None:
        return None, wrappers
    if value.type in FUNCTION_TYPES or value.type == "class":
        return value, wrappers
    return None, wrappers


def _is_component_function(fn: Node, name: str, *, anonymous_ok: bool) -> bool:
    if not anonymous_ok and not name[:1].isupper():
        return False
    return contains_jsx(function_body(fn))


def _class_shape(node: Node, module: ScriptModule, name: str | None = None) -> ComponentShape | None:
    name_node = node.child_by_field_name("name")
    if name is None:
        name = node_text(name_node) if name_node is not None else ANONYMOUS
    heritage = next((c for c in node.named_children if c.type == "class_heritage"), None)
    extends_component = heritage is not None and bool(_CLASS_BASES.search(node_text(heritage)))
    body = node.child_by_field_name("body")
    has_render = body is not None and any(
        c.type == "method_definition" and node_text(c.child_by_field_name("name")) == "render"
        for c in body.named_children
    )
    if extends_component or (has_render and contains_jsx(body)):
        return ComponentShape(name, "react", "class", node, module)
    return None


def _locate_sfc(adapted: AdaptedSource) -> ComponentShape:
    module = adapted.module
    name = component_name_from_file(module.filename)
    root = module.root
    if adapted.framework == "vue" and root is not None and "setup" not in module.attrs:
        options = _options_object(root)
        if options is not None:
            setup = next((v for k, v in object_pairs(options) if k == "setup"), None)
            if setup is not None and setup.type not in FUNCTION_TYPES | {"method_definition"}:
                setup = None
            for key, value in object_pairs(options):
                if key == "name":
                    literal = node_text(value).strip("'\"`")
                    if literal:
                        name = literal
            return ComponentShape(name, "vue", "options", options, module, setup=setup)
    return ComponentShape(name, adapted.framework, "module", root, module)


def _options_object(root: Node) -> Node | None:
    for stmt in root.named_children:
        if stmt.type != "export_statement":
            continue
        value = stmt.child_by_field_name("value")
        if value is None:
            continue
        value = unwrap(value)
        if value is not None and value.type == "call_expression":
            args = call_arguments(value)
            value = unwrap(args[0]) if args else None
        if value is not None and value.type == "object":
            return value
    return None

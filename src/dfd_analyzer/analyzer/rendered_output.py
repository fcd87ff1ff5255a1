"""Rendered-Output Analyzer: JSX, Vue templates and Svelte markup.

Produces the RenderedOutput tree together with the inline event handlers
found on the way, so that the Process Analyzer names them exactly as the
output tree references them.
"""

from __future__ import annotations

import logging
import re

from tree_sitter import Node

from dfd_analyzer.analyzer.component import ComponentShape, scope_statements
from dfd_analyzer.analyzer.markup import (
    MarkupAttr,
    MarkupBlock,
    MarkupElement,
    MarkupExpr,
    MarkupNode,
    tokenize_markup,
)
from dfd_analyzer.analyzer.processes import InlineHandler
from dfd_analyzer.analyzer.references import ReferenceCollector, local_bindings
from dfd_analyzer.ir.facts import OutputBranch, OutputElement, OutputItem, Reference, RenderedOutput
from dfd_analyzer.source.adapter import AdaptedSource
from dfd_analyzer.source.syntax import (
    FUNCTION_TYPES,
    JSX_ELEMENT_TYPES,
    call_arguments,
    flatten_member,
    function_body,
    function_parameters,
    get_parser,
    node_text,
    pattern_names,
    unwrap,
    walk,
)

log = logging.getLogger(__name__)

_REACT_EVENT_RE = re.compile(r"^on[A-Z]")
_LOOP_METHODS = frozenset({"map", "flatMap"})
_FILTER_METHODS = frozenset({"filter", "slice", "sort", "reverse", "concat", "toSorted"})
_VUE_FOR_RE = re.compile(r"^\s*\(?(.*?)\)?\s+(?:in|of)\s+(.+)$", re.S)
_SVELTE_EACH_RE = re.compile(r"^(.*?)\s+as\s+(.+?)(?:\s*\((.*)\))?\s*$", re.S)
_MUSTACHE_RE = re.compile(r"\{([^{}]+)\}")

TEXT_TAG = "text"


def event_attribute(raw: str) -> str:
    """``click`` / ``update:modelValue`` -> ``onClick`` / ``onUpdate:modelValue``."""
    return "on" + raw[:1].upper() + raw[1:]


class RenderedOutputAnalyzer:
    def __init__(self, shape: ComponentShape, adapted: AdaptedSource, collector: ReferenceCollector):
        self.shape = shape
        self.adapted = adapted
        self.collector = collector
        self.inline_handlers: list[InlineHandler] = []
        self.bound_handlers: set[str] = set()
        self._inline_counts: dict[str, int] = {}
        self._parser = None

    def analyze(self) -> RenderedOutput:
        if self.adapted.framework in ("vue", "svelte"):
            if not self.adapted.template:
                return RenderedOutput()
            nodes = tokenize_markup(self.adapted.template, self.adapted.framework,
                                    line_offset=self.adapted.template_line - 1)
            out = RenderedOutput(children=self._markup_children(nodes, None, set()))
        else:
            out = RenderedOutput(children=self._jsx_root())
        log.debug("Rendered output: %d top-level items, %d inline handlers",
                  len(out.children), len(self.inline_handlers))
        return out

    def _inline_name(self, attribute: str) -> str:
        count = self._inline_counts.get(attribute, 0) + 1
        self._inline_counts[attribute] = count
        return f"inline_{attribute}" if count == 1 else f"inline_{attribute}_{count}"

    def _handler_ref(self, attribute: str, node: Node, line: int, column: int) -> Reference:
        name = self._inline_name(attribute)
        self.inline_handlers.append(InlineHandler(name=name, attribute=attribute, node=node,
                                                  line=line, column=column))
        return Reference(name=name, kind="invoke", attribute=attribute)

    # ── JSX ─────────────────────────────────────────────────────────────

    def _jsx_root(self) -> list[OutputItem]:
        shape = self.shape
        if shape.node is None:
            return []
        if shape.kind == "class":
            render = next((m for m in shape.body.named_children
                           if m.type == "method_definition"
                           and node_text(m.child_by_field_name("name")) == "render"), None)
            if render is None:
                return []
            body = function_body(render)
        else:
            body = function_body(shape.node)
        if body is None:
            return []
        if body.type != "statement_block":
            return self._jsx_structure(unwrap(body), set())

        items: list[OutputItem] = []
        for stmt in scope_statements(body):
            if stmt.type == "if_statement":
                early = self._early_return(stmt)
                if early is not None:
                    items.append(early)
            elif stmt.type == "return_statement":
                value = _return_value(stmt)
                if value is not None:
                    items.extend(self._jsx_structure(value, set()))
        return items

    def _early_return(self, stmt: Node) -> OutputBranch | None:
        """``if (cond) return <JSX>`` becomes a conditional branch."""
        if stmt.child_by_field_name("alternative") is not None:
            return None
        cond = stmt.child_by_field_name("condition")
        consequence = stmt.child_by_field_name("consequence")
        if cond is None or consequence is None:
            return None
        ret = consequence
        if consequence.type == "statement_block":
            stmts = [s for s in consequence.named_children if s.type != "comment"]
            if len(stmts) != 1:
                return None
            ret = stmts[0]
        if ret.type != "return_statement":
            return None
        value = _return_value(ret)
        if value is None or not _has_jsx(value):
            return None
        cond = unwrap(cond)
        return OutputBranch(
            kind="conditional",
            expression=node_text(cond),
            refs=self._reads(cond, set()),
            children=self._jsx_structure(value, set()),
        )

    def _jsx_structure(self, node: Node | None, scope: set[str]) -> list[OutputItem]:
        node = unwrap(node)
        if node is None:
            return []
        t = node.type
        if t == "jsx_fragment" or _is_fragment(node):
            return self._jsx_children(node, None, scope)
        if t in ("jsx_element", "jsx_self_closing_element"):
            return [self._jsx_element(node, scope)]
        if t == "binary_expression" and node_text(node.child_by_field_name("operator")) == "&&":
            left = node.child_by_field_name("left")
            right = node.child_by_field_name("right")
            children = self._jsx_structure(right, scope)
            if not children:
                return []
            return [OutputBranch(kind="conditional", expression=node_text(unwrap(left)),
                                 refs=self._reads(left, scope), children=children)]
        if t == "ternary_expression":
            cond = unwrap(node.child_by_field_name("condition"))
            refs = self._reads(cond, scope)
            out: list[OutputItem] = []
            yes = self._jsx_structure(node.child_by_field_name("consequence"), scope)
            no = self._jsx_structure(node.child_by_field_name("alternative"), scope)
            if yes:
                out.append(OutputBranch(kind="conditional", expression=node_text(cond),
                                        refs=refs, children=yes))
            if no:
                out.append(OutputBranch(kind="conditional", expression=node_text(cond),
                                        negated=True, refs=list(refs), children=no))
            return out
        if t == "call_expression":
            loop = self._jsx_loop(node, scope)
            if loop is not None:
                return [loop]
        # any other expression: structure the outermost JSX nodes inside it
        items: list[OutputItem] = []
        for inner in _outer_jsx(node):
            items.extend(self._jsx_structure(inner, scope | _enclosing_params(inner, node)))
        return items

    def _jsx_loop(self, call: Node, scope: set[str]) -> OutputBranch | None:
        callee = unwrap(call.child_by_field_name("function"))
        if callee is None or callee.type != "member_expression":
            return None
        method = node_text(callee.child_by_field_name("property"))
        args = call_arguments(call)
        if method not in _LOOP_METHODS or not args:
            return None
        callback = unwrap(args[0])
        if callback is None or callback.type not in FUNCTION_TYPES or not _has_jsx(callback):
            return None
        iterable = _loop_source(callee.child_by_field_name("object"))
        inner_scope = set(scope)
        for param in function_parameters(callback):
            inner_scope.update(pattern_names(param))
        inner_scope |= local_bindings(callback)
        body = function_body(callback)
        children: list[OutputItem] = []
        if body is not None and body.type == "statement_block":
            for stmt in scope_statements(body):
                if stmt.type == "return_statement":
                    children.extend(self._jsx_structure(_return_value(stmt), inner_scope))
        else:
            children = self._jsx_structure(body, inner_scope)
        return OutputBranch(kind="loop", expression=node_text(iterable),
                            refs=self._reads(iterable, scope), children=children)

    def _jsx_element(self, node: Node, scope: set[str]) -> OutputElement:
        opening = node if node.type == "jsx_self_closing_element" else \
            node.child_by_field_name("open_tag") or node.named_children[0]
        name_node = opening.child_by_field_name("name")
        line, col = self.shape.position(node)
        element = OutputElement(tag=node_text(name_node) or "fragment", line=line, column=col)
        for attr in opening.named_children:
            if attr.type == "jsx_attribute":
                self._jsx_attribute(attr, element, scope)
            elif attr.type == "jsx_expression":
                # {...spread}
                _extend(element.refs, self._reads(attr, scope))
        if node.type == "jsx_element":
            element.children = self._jsx_children(node, element, scope)
        return element

    def _jsx_attribute(self, attr: Node, element: OutputElement, scope: set[str]) -> None:
        named = attr.named_children
        if not named:
            return
        name = node_text(named[0])
        value = named[1] if len(named) > 1 else None
        if value is None:
            return
        if value.type == "jsx_expression":
            inner = [c for c in value.named_children if c.type != "comment"]
            expr = unwrap(inner[0]) if inner else None
        else:
            expr = value
        if expr is None:
            return
        if name == "ref":
            target = flatten_member(expr)
            if target is not None and target.split(".")[0] in self.collector.symbols:
                _extend(element.refs, [Reference(target.split(".")[0], "ref", attribute="ref")])
            return
        if _REACT_EVENT_RE.match(name):
            line, col = self.shape.position(expr)
            _extend(element.refs, self._event_refs(name, expr, scope, line, col))
            return
        if expr.type in JSX_ELEMENT_TYPES:
            return
        _extend(element.refs, self._reads(expr, scope, attribute=name))

    def _jsx_children(self, node: Node, parent: OutputElement | None,
                      scope: set[str]) -> list[OutputItem]:
        items: list[OutputItem] = []
        for child in node.named_children:
            t = child.type
            if t == "jsx_fragment" or _is_fragment(child):
                items.extend(self._jsx_children(child, parent, scope))
            elif t in ("jsx_element", "jsx_self_closing_element"):
                items.append(self._jsx_element(child, scope))
            elif t == "jsx_expression":
                inner = [c for c in child.named_children if c.type != "comment"]
                expr = unwrap(inner[0]) if inner else None
                if expr is None:
                    continue
                if _has_jsx(expr):
                    items.extend(self._jsx_structure(expr, scope))
                else:
                    refs = self._reads(expr, scope)
                    if not refs:
                        continue
                    if parent is not None:
                        _extend(parent.refs, refs)
                    else:
                        line, col = self.shape.position(expr)
                        items.append(OutputElement(tag=TEXT_TAG, refs=refs, line=line, column=col))
        return items

    def _event_refs(self, attribute: str, expr: Node, scope: set[str],
                    line: int, column: int) -> list[Reference]:
        """An event binding: a bound name is invoked, anything else is an inline handler."""
        target = flatten_member(expr)
        if target is not None:
            refs = self.collector.collect(expr, extra_locals=scope).accesses
            out = [Reference(r.name, "invoke", attribute=attribute, property=r.property)
                   for r in refs]
            self.bound_handlers.update(r.name for r in out)
            return out
        return [self._handler_ref(attribute, expr, line, column)]

    def _reads(self, node: Node | None, scope: set[str], attribute: str | None = None) -> list[Reference]:
        if node is None:
            return []
        facts = self.collector.collect(node, extra_locals=scope)
        return [Reference(r.name, "read", attribute=attribute, property=r.property)
                for r in facts.accesses]

    # ── Vue / Svelte markup ─────────────────────────────────────────────

    def _parse_expression(self, text: str) -> Node:
        if self._parser is None:
            self._parser = get_parser("typescript")
        return self._parser.parse(text.encode("utf-8")).root_node

    def _markup_reads(self, text: str, scope: set[str], attribute: str | None = None) -> list[Reference]:
        if not text.strip():
            return []
        return self._reads(self._parse_expression(text), scope, attribute)

    def _markup_children(self, nodes: list[MarkupNode], parent: OutputElement | None,
                         scope: set[str]) -> list[OutputItem]:
        items: list[OutputItem] = []
        chain: str | None = None   # condition of the open v-if chain
        for node in nodes:
            if isinstance(node, MarkupExpr):
                refs = self._markup_reads(node.text, scope)
                if not refs:
                    continue
                if parent is not None:
                    _extend(parent.refs, refs)
                else:
                    items.append(OutputElement(tag=TEXT_TAG, refs=refs,
                                               line=node.line, column=node.column))
            elif isinstance(node, MarkupBlock):
                items.extend(self._svelte_block(node, parent, scope))
            elif isinstance(node, MarkupElement):
                item, chain = self._vue_directives(node, scope, chain)
                if item is not None:
                    items.append(item)
        return items

    def _markup_element(self, node: MarkupElement, scope: set[str]) -> OutputElement:
        element = OutputElement(tag=node.tag, line=node.line, column=node.column)
        for attr in node.attrs:
            _extend(element.refs, self._markup_attribute(attr, scope))
        element.children = self._markup_children(node.children, element, scope)
        return element

    def _vue_directives(self, node: MarkupElement, scope: set[str],
                        chain: str | None) -> tuple[OutputItem | None, str | None]:
        """Wrap an element in the branches its structural directives imply."""
        if self.adapted.framework != "vue":
            return self._markup_element(node, scope), None
        inner_scope = set(scope)
        loop: OutputBranch | None = None
        v_for = node.attr("v-for")
        if v_for is not None and v_for.value:
            m = _VUE_FOR_RE.match(v_for.value)
            if m is not None:
                names = [n.strip() for n in re.split(r"[,(){}\[\]\s]+", m.group(1)) if n.strip()]
                inner_scope.update(names)
                source = m.group(2).strip()
                loop = OutputBranch(kind="loop", expression=source,
                                    refs=self._markup_reads(source, scope))

        element = self._markup_element(node, inner_scope)
        item: OutputItem = element
        next_chain = None
        v_if = node.attr("v-if", "v-show")
        v_else_if = node.attr("v-else-if")
        if v_if is not None and v_if.value:
            item = OutputBranch(kind="conditional", expression=v_if.value.strip(),
                                refs=self._markup_reads(v_if.value, inner_scope), children=[element])
            next_chain = v_if.value.strip() if v_if.name == "v-if" else None
        elif v_else_if is not None and v_else_if.value:
            item = OutputBranch(kind="conditional", expression=v_else_if.value.strip(),
                                refs=self._markup_reads(v_else_if.value, inner_scope), children=[element])
            next_chain = chain
        elif node.attr("v-else") is not None and chain is not None:
            item = OutputBranch(kind="conditional", expression=chain, negated=True,
                                refs=self._markup_reads(chain, inner_scope), children=[element])
        if loop is not None:
            loop.children = [item]
            item = loop
        return item, next_chain

    def _markup_attribute(self, attr: MarkupAttr, scope: set[str]) -> list[Reference]:
        name, value = attr.name, attr.value
        if value is None:
            return []
        fw = self.adapted.framework
        if name == "ref" or name == "bind:this":
            target = value.strip()
            if target in self.collector.symbols:
                return [Reference(target, "ref", attribute="ref")]
            return []

        event = _markup_event(name, fw, attr.braced)
        if event is not None:
            return self._markup_event_refs(event, value, scope, attr)

        if fw == "vue":
            if name.startswith("v-model"):
                return _read_and_invoke(self._markup_reads(value, scope, attribute=name))
            if name.startswith((":", "v-bind")) or name in ("v-html", "v-text"):
                bound = name.split(":", 1)[-1] if ":" in name else name
                bound = bound.split(".", 1)[0] or name
                return self._markup_reads(value, scope, attribute=bound)
            return []

        # svelte
        if name.startswith("bind:"):
            return _read_and_invoke(self._markup_reads(value, scope, attribute=name))
        if name.startswith(("use:", "transition:", "in:", "out:", "animate:")):
            return []
        if attr.braced:
            bound = name.split(":", 1)[-1] if name.startswith("class:") else name
            return self._markup_reads(value, scope, attribute=bound)
        refs: list[Reference] = []
        for m in _MUSTACHE_RE.finditer(value):
            _extend(refs, self._markup_reads(m.group(1), scope, attribute=name))
        return refs

    def _markup_event_refs(self, event: str, value: str, scope: set[str],
                           attr: MarkupAttr) -> list[Reference]:
        text = value.strip()
        if not text:
            return []
        tree = self._parse_expression(text)
        stmts = [c for c in tree.named_children if c.type != "comment"]
        expr = None
        if len(stmts) == 1 and stmts[0].type == "expression_statement" and stmts[0].named_children:
            expr = unwrap(stmts[0].named_children[0])
        if expr is not None and flatten_member(expr) is not None:
            refs = self.collector.collect(expr, extra_locals=scope).accesses
            out = [Reference(r.name, "invoke", attribute=event, property=r.property) for r in refs]
            self.bound_handlers.update(r.name for r in out)
            return out
        handler = expr if expr is not None and expr.type in FUNCTION_TYPES else tree
        return [self._handler_ref(event, handler, attr.line, attr.column)]

    def _svelte_block(self, block: MarkupBlock, parent: OutputElement | None,
                      scope: set[str]) -> list[OutputItem]:
        items: list[OutputItem] = []
        if block.kind == "if":
            first = block.branches[0].expression if block.branches else ""
            for branch in block.branches:
                children = self._markup_children(branch.children, parent, scope)
                if branch.keyword in ("if", "else if"):
                    items.append(OutputBranch(kind="conditional", expression=branch.expression,
                                              refs=self._markup_reads(branch.expression, scope),
                                              children=children))
                else:
                    items.append(OutputBranch(kind="conditional", expression=first, negated=True,
                                              refs=self._markup_reads(first, scope), children=children))
        elif block.kind == "each":
            head = block.branches[0].expression if block.branches else ""
            m = _SVELTE_EACH_RE.match(head)
            source, names = (m.group(1).strip(), m.group(2)) if m else (head.strip(), "")
            inner_scope = scope | {n for n in re.split(r"[,(){}\[\]\s]+", names) if n}
            for branch in block.branches:
                if branch.keyword == "each":
                    items.append(OutputBranch(
                        kind="loop", expression=source, refs=self._markup_reads(source, scope),
                        children=self._markup_children(branch.children, parent, inner_scope)))
                else:
                    items.append(OutputBranch(
                        kind="conditional", expression=source, negated=True,
                        refs=self._markup_reads(source, scope),
                        children=self._markup_children(branch.children, parent, scope)))
        elif block.kind == "await":
            head = block.branches[0].expression if block.branches else ""
            source = head.split(" then ")[0].strip()
            children: list[OutputItem] = []
            inner_scope = set(scope)
            for branch in block.branches:
                if branch.keyword in ("then", "catch") and branch.expression:
                    inner_scope.add(branch.expression.split()[0])
                children.extend(self._markup_children(branch.children, parent, inner_scope))
            items.append(OutputBranch(kind="await", expression=source,
                                      refs=self._markup_reads(source, scope), children=children))
        else:
            for branch in block.branches:
                items.extend(self._markup_children(branch.children, parent, scope))
        return items


def analyze_rendered_output(
    shape: ComponentShape,
    adapted: AdaptedSource,
    collector: ReferenceCollector,
) -> tuple[RenderedOutput, list[InlineHandler], set[str]]:
    analyzer = RenderedOutputAnalyzer(shape, adapted, collector)
    output = analyzer.analyze()
    return output, analyzer.inline_handlers, analyzer.bound_handlers


# ── Helpers ─────────────────────────────────────────────────────────────────

def _markup_event(name: str, framework: str, braced: bool) -> str | None:
    if framework == "vue":
        if name.startswith("@"):
            raw = name[1:]
        elif name.startswith("v-on:"):
            raw = name[5:]
        else:
            return None
        return event_attribute(raw.split(".", 1)[0])
    if name.startswith("on:"):
        return event_attribute(name[3:].split("|", 1)[0])
    if braced and re.match(r"^on[a-z]+$", name):
        return event_attribute(name[2:])
    return None


def _read_and_invoke(refs: list[Reference]) -> list[Reference]:
    out = list(refs)
    for r in refs:
        out.append(Reference(r.name, "invoke", attribute=r.attribute, property=r.property))
    return out


def _extend(refs: list[Reference], more: list[Reference]) -> None:
    for ref in more:
        if not any((r.name, r.kind, r.attribute, r.property)
                   == (ref.name, ref.kind, ref.attribute, ref.property) for r in refs):
            refs.append(ref)


def _return_value(stmt: Node) -> Node | None:
    values = [c for c in stmt.named_children if c.type != "comment"]
    value = unwrap(values[0]) if values else None
    if value is None or value.type in ("null", "undefined"):
        return None
    return value


def _is_fragment(node: Node) -> bool:
    """``<>...</>`` parsed as an element whose opening tag has no name."""
    if node.type != "jsx_element":
        return False
    opening = node.child_by_field_name("open_tag") or (node.named_children[0] if node.named_children else None)
    return opening is not None and opening.child_by_field_name("name") is None


def _has_jsx(node: Node | None) -> bool:
    if node is None:
        return False
    return any(n.type in JSX_ELEMENT_TYPES for n in walk(node))


def _outer_jsx(node: Node) -> list[Node]:
    """JSX nodes inside ``node`` that are not nested in another JSX node."""
    found: list[Node] = []
    stack = [node]
    while stack:
        current = stack.pop()
        if current.type in JSX_ELEMENT_TYPES:
            found.append(current)
            continue
        stack.extend(reversed(current.children))
    return found


def _enclosing_params(inner: Node, outer: Node) -> set[str]:
    """Parameters of functions between ``inner`` and ``outer``."""
    names: set[str] = set()
    current = inner.parent
    while current is not None and current != outer:
        if current.type in FUNCTION_TYPES:
            for param in function_parameters(current):
                names.update(pattern_names(param))
        current = current.parent
    return names


def _loop_source(node: Node | None) -> Node | None:
    """Strip chained ``filter``/``slice``/``sort`` calls: ``items.filter(f).map(g)`` -> ``items``."""
    node = unwrap(node)
    while node is not None and node.type == "call_expression":
        callee = unwrap(node.child_by_field_name("function"))
        if callee is None or callee.type != "member_expression":
            break
        if node_text(callee.child_by_field_name("property")) not in _FILTER_METHODS:
            break
        node = unwrap(callee.child_by_field_name("object"))
    return node

"""DFD Builder: merge ComponentFacts into a DFDSourceData graph.

Usage:
    from dfd_analyzer.builder import build

    data = build(facts)

Construction order matters only for id numbering: props, events, reactive
primitives, processes (with cleanups and external calls), imperative
handles, then the rendered-output subgraph. All name bindings exist before
the first reference edge is drawn.
"""

from __future__ import annotations

import logging
import re

from dfd_analyzer.builder.edges import connect_process
from dfd_analyzer.builder.graph import Binding, GraphAccumulator
from dfd_analyzer.builder.library_hooks import add_library_hook
from dfd_analyzer.builder.output import OutputSubgraphBuilder
from dfd_analyzer.diagnostics import Diagnostics
from dfd_analyzer.ir.facts import ComponentFacts, ExternalCall, Process, Prop, ReactivePrimitive, Reference
from dfd_analyzer.ir.type_classifier import classify
from dfd_analyzer.models import DFDNode, DFDSourceData, DFDSubgraph, NodeRole, SubgraphKind

log = logging.getLogger(__name__)

_CALLBACK_PROP_RE = re.compile(r"^on[A-Z]")
_ID_UNSAFE_RE = re.compile(r"[^A-Za-z0-9_]")


def is_callable_prop(prop: Prop) -> bool:
    """Callback props flow data out of the component.

    The declared type decides; an untyped prop counts as a callback only
    when it is named like one (``onClose``).
    """
    if prop.declared_type:
        return classify(prop.declared_type).is_function
    return bool(_CALLBACK_PROP_RE.match(prop.name))


class DFDBuilder:
    def __init__(self, facts: ComponentFacts, diagnostics: Diagnostics | None = None):
        self.facts = facts
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self.graph = GraphAccumulator()
        self.events: dict[str, str] = {}               # event name -> node id
        self.process_ids: list[tuple[Process, str]] = []
        self.cleanup_ids: list[tuple[Process, str]] = []
        self.store_ids: list[tuple[ReactivePrimitive, str]] = []
        self.subgraphs: list[DFDSubgraph] = []
        self.exported_by_ref: dict[str, str] = {}      # ref name -> exported-handlers subgraph id

    def build(self) -> DFDSourceData:
        facts = self.facts
        for prop in facts.props:
            self._prop(prop)
        for prim in facts.primitives:
            self._primitive(prim)
        for proc in facts.processes:
            self._process_node(proc)

        for prim, node_id in self.store_ids:
            self._primitive_edges(prim, node_id)
        for proc, node_id in self.process_ids:
            self._process_edges(proc, node_id)
        self._imperative_calls()

        label = "JSX Output" if facts.framework == "react" else "Template Output"
        root = OutputSubgraphBuilder(self.graph, self.diagnostics, self.exported_by_ref) \
            .build(facts.output, label)

        data = DFDSourceData(
            nodes=self.graph.nodes,
            edges=self.graph.edges,
            root_subgraph=root,
            subgraphs=self.subgraphs,
        )
        log.info("DFD built: %d nodes, %d edges", len(data.all_nodes()), len(data.edges))
        return data

    # ── Props and events ────────────────────────────────────────────────

    def _prop(self, prop: Prop) -> None:
        g = self.graph
        if prop.is_event:
            self._event_node(prop.name, prop)
            return
        callable_ = is_callable_prop(prop)
        node = g.add_node("prop", prop.name, NodeRole.OUTPUT if callable_ else NodeRole.INPUT, {
            "category": "prop",
            "declaredType": prop.declared_type,
            "isCallable": callable_,
            "isDestructured": prop.is_destructured,
            "isRest": prop.is_rest,
            "hasDefault": prop.has_default,
            "line": prop.line,
            "column": prop.column,
        })
        g.bind(prop.name, Binding(node.id, "output" if callable_ else "input", prop.name))

    def _event_node(self, name: str, prop: Prop | None = None) -> str:
        if name in self.events:
            return self.events[name]
        node = self.graph.add_node("event", name, NodeRole.OUTPUT, {
            "category": "event",
            "line": prop.line if prop else 0,
            "column": prop.column if prop else 0,
        })
        self.events[name] = node.id
        self.graph.bind(name, Binding(node.id, "output", name))
        return node.id

    # ── Reactive primitives ─────────────────────────────────────────────

    def _primitive(self, prim: ReactivePrimitive) -> None:
        g = self.graph
        if not prim.variables:
            self.diagnostics.note("builder", f"{prim.name} binds no names")
            return
        if prim.data_fetching:
            node = add_library_hook(g, prim)
        else:
            node = g.add_node("store", _store_label(prim), NodeRole.STORE, {
                "category": prim.category or prim.kind,
                "kind": prim.kind,
                "hookName": prim.name,
                "library": prim.library,
                "variables": list(prim.variables),
                "reader": prim.reader if prim.is_read_write_pair else None,
                "writer": prim.writer,
                "isReadWritePair": prim.is_read_write_pair,
                "isFunctionOnly": prim.is_function_only,
                "callableVariables": list(prim.callable_variables),
                "dependencies": prim.dependencies,
                "line": prim.line,
                "column": prim.column,
            })
            if prim.is_read_write_pair:
                g.bind(prim.variables[0], Binding(node.id, "reader", prim.variables[0]))
                g.bind(prim.variables[1], Binding(node.id, "writer", prim.variables[1]))
            elif len(prim.variables) == 1:
                g.bind(prim.variables[0], Binding(node.id, "sole", prim.variables[0]))
            else:
                for name in prim.variables:
                    role = "callable" if name in prim.callable_variables else "data"
                    g.bind(name, Binding(node.id, role, name))
        for alias, target in prim.aliases.items():
            binding = g.binding(target)
            if binding is not None:
                g.bind(alias, binding)
        self.store_ids.append((prim, node.id))

    def _primitive_edges(self, prim: ReactivePrimitive, node_id: str) -> None:
        """Initializer and dependency names flow into the store."""
        for name in _unique((prim.dependencies or []) + prim.init_references):
            binding = self.graph.binding(name)
            if binding is None:
                continue
            self.graph.add_edge(binding.node_id, node_id, name)

    # ── Processes ───────────────────────────────────────────────────────

    def _process_node(self, proc: Process) -> None:
        node = self.graph.add_node("process", proc.name, NodeRole.PROCESS, {
            "category": "process",
            "processKind": proc.kind,
            "dependencies": proc.dependencies,
            "isInline": proc.is_inline,
            "attribute": proc.attribute,
            "line": proc.line,
            "column": proc.column,
        })
        # inline handlers are bound by their synthesized name only
        self.graph.bind(proc.name, Binding(node.id, "process", proc.name))
        self.process_ids.append((proc, node.id))

    def _process_edges(self, proc: Process, node_id: str) -> None:
        g = self.graph
        self._body_edges(proc.name, node_id, proc.accesses, proc.external_calls, proc.emits)

        for dep in proc.dependencies or []:
            if dep in proc.references:
                continue
            binding = g.binding(dep)
            if binding is not None:
                g.add_edge(binding.node_id, node_id, dep)

        if proc.cleanup is not None:
            cleanup = g.add_node("cleanup", "cleanup", NodeRole.PROCESS, {
                "category": "cleanup",
                "processKind": "cleanup",
                "parent": proc.name,
                "line": proc.cleanup.line,
                "column": proc.cleanup.column,
            })
            g.add_edge(node_id, cleanup.id, "cleanup", is_cleanup=True)
            self.cleanup_ids.append((proc.cleanup, cleanup.id))
            self._body_edges("cleanup", cleanup.id, proc.cleanup.accesses,
                             proc.cleanup.external_calls, proc.cleanup.emits)

        if proc.kind == "imperative-handle":
            self._exported_handlers(proc, node_id)

    def _body_edges(self, name: str, node_id: str, accesses: list[Reference],
                    calls: list[ExternalCall], emits: list[str]) -> None:
        for ref in accesses:
            if ref.name == name:
                continue
            if not connect_process(self.graph, node_id, ref):
                self.diagnostics.note("builder", f"{name} uses unbound name '{ref.name}'")
        self._external_calls(node_id, calls)
        for event in emits:
            self.graph.add_edge(node_id, self._event_node(event), event)

    def _external_calls(self, parent_id: str, calls: list[ExternalCall]) -> None:
        g = self.graph
        seen: dict[str, str] = {}
        for call in calls:
            if call.is_imperative_handle_call:
                continue
            call_id = seen.get(call.callee)
            if call_id is None:
                node = g.add_node("external_call", call.callee, NodeRole.OUTPUT, {
                    "category": "external-call",
                    "callee": call.callee,
                    "arguments": list(call.arguments),
                })
                call_id = seen[call.callee] = node.id
            g.add_edge(parent_id, call_id, "calls")
            for arg in call.arguments:
                binding = g.binding(arg.split(".")[0])
                if binding is not None and not binding.flows_out:
                    g.add_edge(binding.node_id, call_id, arg.split(".")[0])
            for name in call.callback_references:
                binding = g.binding(name)
                if binding is not None and binding.role == "writer":
                    g.add_edge(call_id, binding.node_id, name)

    # ── Imperative handles ──────────────────────────────────────────────

    def _exported_handlers(self, proc: Process, node_id: str) -> None:
        """Child side: one process node per method exposed through the handle."""
        if not proc.exported_methods:
            return
        owner = _safe_id(proc.ref_name or proc.name)
        sub = DFDSubgraph(
            id=f"{owner}_exported_handlers",
            label="exported handlers",
            kind=SubgraphKind.EXPORTED_HANDLERS,
        )
        for method in proc.exported_methods:
            node = DFDNode(
                id=f"{owner}_exported_handlers_{_safe_id(method.name)}",
                label=method.name,
                role=NodeRole.PROCESS,
                metadata={
                    "category": "exported-handler",
                    "owner": proc.name,
                    "line": method.line,
                    "column": method.column,
                },
            )
            sub.elements.append(node)
        self.subgraphs.append(sub)
        for method, node in zip(proc.exported_methods, sub.elements):
            self._body_edges(method.name, node.id, method.accesses, method.external_calls, [])
        self.graph.add_edge(node_id, sub.id, proc.ref_name, is_long_arrow=True)

    def _imperative_calls(self) -> None:
        """Parent side: ``childRef.current.focus()`` calls grouped per ref."""
        groups: dict[str, DFDSubgraph] = {}
        existing = {s.id: s for s in self.subgraphs}
        for proc, node_id in self.process_ids + self.cleanup_ids:
            for call in proc.external_calls:
                if not call.is_imperative_handle_call or not call.method_name:
                    continue
                owner = _safe_id(call.ref_name)
                sub = groups.get(call.ref_name)
                if sub is None:
                    sub_id = f"{owner}_exported_handlers"
                    sub = groups[call.ref_name] = existing.get(sub_id) or DFDSubgraph(
                        id=sub_id,
                        label="exported handlers",
                        kind=SubgraphKind.EXPORTED_HANDLERS,
                    )
                method_id = f"{owner}_exported_handlers_{_safe_id(call.method_name)}"
                if not any(e.id == method_id for e in sub.elements):
                    sub.elements.append(DFDNode(
                        id=method_id,
                        label=call.method_name,
                        role=NodeRole.PROCESS,
                        metadata={"category": "exported-handler", "ref": call.ref_name},
                    ))
                self.graph.add_edge(node_id, method_id, "calls")
        for ref_name, sub in groups.items():
            if sub.id not in existing:
                self.subgraphs.append(sub)
            self.exported_by_ref[ref_name] = sub.id


def build(facts: ComponentFacts, diagnostics: Diagnostics | None = None) -> DFDSourceData:
    """Build the graph; never raises."""
    diagnostics = diagnostics if diagnostics is not None else Diagnostics()
    try:
        return DFDBuilder(facts, diagnostics).build()
    except Exception as exc:
        log.exception("DFD build failed (non-fatal)")
        diagnostics.note("builder", f"Build aborted: {exc}")
        return DFDSourceData()


def _store_label(prim: ReactivePrimitive) -> str:
    if prim.is_read_write_pair or len(prim.variables) == 1:
        return prim.variables[0]
    return prim.name


def _safe_id(name: str | None) -> str:
    return _ID_UNSAFE_RE.sub("_", name or "handle")


def _unique(names: list[str]) -> list[str]:
    seen: list[str] = []
    for name in names:
        if name not in seen:
            seen.append(name)
    return seen

"""Tests for the DFD builder on hand-built component facts."""

from __future__ import annotations

from dfd_analyzer.builder import build, is_callable_prop
from dfd_analyzer.builder.graph import Binding, GraphAccumulator
from dfd_analyzer.diagnostics import Diagnostics
from dfd_analyzer.ir.facts import (
    ComponentFacts,
    ExportedMethod,
    ExternalCall,
    OutputBranch,
    OutputElement,
    Process,
    Prop,
    ReactivePrimitive,
    Reference,
    RenderedOutput,
)
from dfd_analyzer.models import NodeRole, SubgraphKind


def read(name: str, **kw) -> Reference:
    return Reference(name=name, kind="read", **kw)


def invoke(name: str, **kw) -> Reference:
    return Reference(name=name, kind="invoke", **kw)


def state_pair(reader: str, writer: str) -> ReactivePrimitive:
    return ReactivePrimitive(
        name="useState", kind="state", variables=[reader, writer],
        is_read_write_pair=True, category="state", library="react",
    )


def facts(**kw) -> ComponentFacts:
    kw.setdefault("name", "Example")
    kw.setdefault("framework", "react")
    return ComponentFacts(**kw)


def by_label(data, label):
    return [n for n in data.all_nodes() if n.label == label]


def edge_triples(data):
    return {(e.from_, e.to, e.label) for e in data.edges}


class TestGraphAccumulator:
    def test_ids_share_one_counter(self):
        g = GraphAccumulator()
        a = g.add_node("prop", "a", NodeRole.INPUT)
        b = g.add_node("store", "b", NodeRole.STORE)
        assert a.id == "prop_1"
        assert b.id == "store_2"
        assert len(g) == 2

    def test_duplicate_and_self_edges_dropped(self):
        g = GraphAccumulator()
        assert g.add_edge("a", "b", "x") is not None
        assert g.add_edge("a", "b", "x") is None
        assert g.add_edge("a", "a", "x") is None
        assert g.add_edge("a", "b", "y") is not None
        assert len(g.edges) == 2

    def test_none_metadata_dropped(self):
        g = GraphAccumulator()
        node = g.add_node("prop", "a", NodeRole.INPUT, {"declaredType": None, "line": 3})
        assert node.metadata == {"line": 3}

    def test_first_binding_wins(self):
        g = GraphAccumulator()
        g.bind("x", Binding("n1", "input", "x"))
        g.bind("x", Binding("n2", "reader", "x"))
        assert g.binding("x").node_id == "n1"

    def test_binding_direction_and_member(self):
        data = Binding("n1", "data", "user", member="user")
        setter = Binding("n1", "callable", "logout", member="logout")
        assert data.member == "user"
        assert not data.flows_out
        assert setter.flows_out
        assert Binding("n2", "writer", "setCount").flows_out
        assert not Binding("n2", "reader", "count").flows_out

    def test_top_level_false_not_collected(self):
        g = GraphAccumulator()
        g.add_node("jsx_element", "div", NodeRole.OUTPUT, top_level=False)
        assert g.nodes == []


class TestProps:
    def test_callback_prop_is_output(self):
        """A prop typed as a function flips to an output node."""
        data = build(facts(props=[Prop(name="onClick", declared_type="() => void", is_destructured=True)]))
        (node,) = by_label(data, "onClick")
        assert node.role == NodeRole.OUTPUT
        assert node.metadata["isCallable"] is True
        assert not [n for n in data.nodes if n.role == NodeRole.INPUT]

    def test_data_type_ending_in_action_is_input(self):
        data = build(facts(props=[Prop(name="tx", declared_type="Transaction", is_destructured=True)]))
        (node,) = by_label(data, "tx")
        assert node.role == NodeRole.INPUT
        assert node.metadata["isCallable"] is False

    def test_data_prop_is_input(self):
        data = build(facts(props=[Prop(name="title", declared_type="string")]))
        (node,) = by_label(data, "title")
        assert node.role == NodeRole.INPUT
        assert node.metadata["category"] == "prop"

    def test_untyped_callable_name(self):
        assert is_callable_prop(Prop(name="onClose"))
        assert not is_callable_prop(Prop(name="once"))
        assert not is_callable_prop(Prop(name="label"))

    def test_declared_type_decides_over_name(self):
        assert not is_callable_prop(Prop(name="onValue", declared_type="string"))


class TestStateAndEffects:
    def test_count_effect_scenario(self):
        """One state pair, one effect reading it, no cleanup."""
        effect = Process(
            name="useEffect", kind="effect", dependencies=["count"],
            references=["count"], accesses=[read("count")],
        )
        data = build(facts(primitives=[state_pair("count", "setCount")], processes=[effect]))

        stores = [n for n in data.nodes if n.role == NodeRole.STORE]
        processes = [n for n in data.nodes if n.role == NodeRole.PROCESS]
        assert len(stores) == 1
        assert stores[0].metadata["reader"] == "count"
        assert stores[0].metadata["writer"] == "setCount"
        assert len(processes) == 1
        assert processes[0].metadata["processKind"] == "effect"
        assert edge_triples(data) == {(stores[0].id, processes[0].id, "count")}
        assert not [e for e in data.edges if e.is_cleanup]

    def test_writer_edge_points_into_store(self):
        handler = Process(
            name="increment", kind="event-handler",
            references=["count", "setCount"],
            accesses=[read("count"), invoke("setCount")],
        )
        data = build(facts(primitives=[state_pair("count", "setCount")], processes=[handler]))
        (store,) = [n for n in data.nodes if n.role == NodeRole.STORE]
        (proc,) = [n for n in data.nodes if n.role == NodeRole.PROCESS]
        assert (store.id, proc.id, "count") in edge_triples(data)
        assert (proc.id, store.id, "setCount") in edge_triples(data)

    def test_dependency_without_body_reference_still_triggers(self):
        effect = Process(name="useEffect", kind="effect", dependencies=["userId"])
        data = build(facts(props=[Prop(name="userId")], processes=[effect]))
        (prop,) = by_label(data, "userId")
        (proc,) = by_label(data, "useEffect")
        assert (prop.id, proc.id, "userId") in edge_triples(data)

    def test_cleanup_node_and_edge(self):
        """A returned disposer adds exactly one cleanup node and one cleanup edge."""
        effect = Process(
            name="useEffect", kind="effect",
            cleanup=Process(
                name="cleanup", kind="cleanup",
                external_calls=[ExternalCall(callee="clearInterval", arguments=["id"])],
            ),
        )
        data = build(facts(processes=[effect]))
        cleanups = [n for n in data.nodes if n.metadata.get("category") == "cleanup"]
        assert len(cleanups) == 1
        assert cleanups[0].label == "cleanup"
        cleanup_edges = [e for e in data.edges if e.is_cleanup]
        assert len(cleanup_edges) == 1
        assert cleanup_edges[0].label == "cleanup"
        (ext,) = by_label(data, "clearInterval")
        assert (cleanups[0].id, ext.id, "calls") in edge_triples(data)

    def test_no_cleanup_without_disposer(self):
        data = build(facts(processes=[Process(name="useEffect", kind="effect")]))
        assert not by_label(data, "cleanup")
        assert not [e for e in data.edges if e.is_cleanup]

    def test_computed_dependencies_flow_into_store(self):
        doubled = ReactivePrimitive(
            name="computed", kind="computed", variables=["doubled"],
            dependencies=["count"], category="computed",
        )
        count = ReactivePrimitive(name="ref", kind="state", variables=["count"], category="state")
        data = build(facts(framework="vue", primitives=[count, doubled]))
        (count_node,) = by_label(data, "count")
        (doubled_node,) = by_label(data, "doubled")
        assert (count_node.id, doubled_node.id, "count") in edge_triples(data)


class TestExternalCalls:
    def test_one_node_per_callee_per_parent(self):
        proc = Process(
            name="save", kind="event-handler",
            external_calls=[
                ExternalCall(callee="api.post", arguments=["title"]),
                ExternalCall(callee="api.post", arguments=["'/x'"]),
            ],
        )
        data = build(facts(props=[Prop(name="title")], processes=[proc]))
        calls = by_label(data, "api.post")
        assert len(calls) == 1
        assert calls[0].role == NodeRole.OUTPUT
        (prop,) = by_label(data, "title")
        (save,) = by_label(data, "save")
        triples = edge_triples(data)
        assert (save.id, calls[0].id, "calls") in triples
        assert (prop.id, calls[0].id, "title") in triples

    def test_callback_setter_edge(self):
        proc = Process(
            name="useEffect", kind="effect",
            external_calls=[ExternalCall(callee="fetchUser", callback_references=["setUser"])],
        )
        data = build(facts(primitives=[state_pair("user", "setUser")], processes=[proc]))
        (store,) = by_label(data, "user")
        (ext,) = by_label(data, "fetchUser")
        assert (ext.id, store.id, "setUser") in edge_triples(data)

    def test_emit_creates_event_output(self):
        proc = Process(name="submit", kind="event-handler", emits=["save"])
        data = build(facts(framework="vue", processes=[proc]))
        (event,) = by_label(data, "save")
        assert event.role == NodeRole.OUTPUT
        assert event.metadata["category"] == "event"
        (submit,) = by_label(data, "submit")
        assert (submit.id, event.id, "save") in edge_triples(data)


class TestLibraryHooks:
    def _swr(self) -> ReactivePrimitive:
        return ReactivePrimitive(
            name="useSWR", kind="store",
            variables=["data", "error", "isLoading", "mutate"],
            callable_variables=["mutate"], is_object_pattern=True,
            arguments=["'/api/user'", "fetcher"], library="swr",
            category="library-hook", data_fetching=True,
        )

    def test_consolidation(self):
        """One store node for the hook, per-property edges out of it."""
        output = RenderedOutput(children=[
            OutputElement(tag="div", refs=[read("isLoading"), read("error"), read("data", property="name")]),
        ])
        refresh = Process(name="refresh", kind="event-handler",
                          references=["mutate"], accesses=[invoke("mutate")])
        data = build(facts(primitives=[self._swr()], processes=[refresh], output=output))

        stores = [n for n in data.all_nodes() if n.role == NodeRole.STORE]
        assert len(stores) == 1
        hook = stores[0]
        assert hook.label == "useSWR"
        assert hook.metadata["dataProperties"] == ["data", "error", "isLoading"]
        assert hook.metadata["processProperties"] == ["mutate"]
        labels = {e.label for e in data.edges if e.from_ == hook.id}
        assert {"isLoading", "error", "data"} <= labels
        (proc,) = by_label(data, "refresh")
        assert (proc.id, hook.id, "mutate") in edge_triples(data)

    def test_server_node(self):
        data = build(facts(primitives=[self._swr()]))
        (server,) = by_label(data, "Server: /api/user")
        assert server.role == NodeRole.INPUT
        assert server.metadata["endpoint"] == "/api/user"
        (hook,) = by_label(data, "useSWR")
        assert (server.id, hook.id, "fetches") in edge_triples(data)

    def test_no_server_for_variable_key(self):
        prim = self._swr()
        prim.arguments = ["key"]
        data = build(facts(primitives=[prim]))
        assert not [n for n in data.nodes if n.metadata.get("category") == "server"]

    def test_type_argument_in_label(self):
        prim = self._swr()
        prim.type_argument = "User"
        data = build(facts(primitives=[prim]))
        assert by_label(data, "useSWR<User>")


class TestRenderedOutput:
    def test_root_subgraph_and_element_edges(self):
        output = RenderedOutput(children=[
            OutputElement(tag="button", refs=[read("count"), invoke("increment", attribute="onClick")]),
        ])
        handler = Process(name="increment", kind="event-handler")
        data = build(facts(primitives=[state_pair("count", "setCount")], processes=[handler], output=output))

        root = data.root_subgraph
        assert root.label == "JSX Output"
        assert root.kind == SubgraphKind.RENDERED_OUTPUT
        (button,) = [n for n in root.iter_nodes() if n.label == "button"]
        assert button.metadata["category"] == "jsx-element"
        (store,) = by_label(data, "count")
        (proc,) = by_label(data, "increment")
        assert (store.id, button.id, "count") in edge_triples(data)
        assert (button.id, proc.id, "onClick") in edge_triples(data)

    def test_template_label_for_vue(self):
        output = RenderedOutput(children=[OutputElement(tag="p", refs=[read("msg")])])
        data = build(facts(framework="vue", props=[Prop(name="msg")], output=output))
        assert data.root_subgraph.label == "Template Output"

    def test_conditional_branch(self):
        branch = OutputBranch(
            kind="conditional", expression="isOpen", refs=[read("isOpen")],
            children=[OutputElement(tag="Modal")],
        )
        data = build(facts(props=[Prop(name="isOpen")], output=RenderedOutput(children=[branch])))
        (sub,) = data.root_subgraph.elements
        assert sub.kind == SubgraphKind.CONDITIONAL
        assert sub.label == "{isOpen}"
        assert sub.condition.expression == "isOpen"
        # the empty branch keeps its element so the subgraph is not dropped
        assert [n.label for n in sub.iter_nodes()] == ["Modal"]
        (prop,) = by_label(data, "isOpen")
        assert (prop.id, sub.id, "isOpen") in edge_triples(data)

    def test_nested_loops_merge(self):
        inner = OutputBranch(kind="loop", expression="row.cells",
                             children=[OutputElement(tag="td", refs=[read("rows")])])
        outer = OutputBranch(kind="loop", expression="rows", refs=[read("rows")], children=[inner])
        data = build(facts(props=[Prop(name="rows")], output=RenderedOutput(children=[outer])))
        (sub,) = data.root_subgraph.elements
        assert sub.kind == SubgraphKind.LOOP
        assert sub.label == "{loop: rows}"
        assert not [e for e in sub.elements if hasattr(e, "elements")]

    def test_unbound_reference_noted(self):
        diagnostics = Diagnostics()
        output = RenderedOutput(children=[OutputElement(tag="p", refs=[read("ghost")])])
        build(facts(output=output), diagnostics)
        assert any("ghost" in m for m in diagnostics.for_stage("builder"))


class TestImperativeHandles:
    def test_child_side_exported_handlers(self):
        handle = Process(
            name="useImperativeHandle", kind="imperative-handle", ref_name="ref",
            exported_methods=[
                ExportedMethod(name="focus", external_calls=[ExternalCall(callee="inputRef.current.focus")]),
                ExportedMethod(name="clear", accesses=[invoke("setValue")]),
            ],
        )
        data = build(facts(primitives=[state_pair("value", "setValue")], processes=[handle]))
        (sub,) = data.subgraphs
        assert sub.id == "ref_exported_handlers"
        assert sub.kind == SubgraphKind.EXPORTED_HANDLERS
        assert [n.id for n in sub.elements] == [
            "ref_exported_handlers_focus", "ref_exported_handlers_clear",
        ]
        (proc,) = by_label(data, "useImperativeHandle")
        long_edges = [e for e in data.edges if e.is_long_arrow]
        assert [(e.from_, e.to, e.label) for e in long_edges] == [(proc.id, sub.id, "ref")]
        (store,) = by_label(data, "value")
        assert ("ref_exported_handlers_clear", store.id, "setValue") in edge_triples(data)

    def test_parent_side_calls_grouped_per_ref(self):
        proc = Process(
            name="handleReset", kind="event-handler",
            external_calls=[
                ExternalCall(callee="formRef.current.reset", ref_name="formRef", method_name="reset"),
                ExternalCall(callee="formRef.current.focus", ref_name="formRef", method_name="focus"),
            ],
        )
        ref = ReactivePrimitive(name="useRef", kind="state", variables=["formRef"], category="ref")
        output = RenderedOutput(children=[
            OutputElement(tag="Form", refs=[Reference(name="formRef", kind="ref", attribute="ref")]),
        ])
        data = build(facts(primitives=[ref], processes=[proc], output=output))

        (sub,) = data.subgraphs
        assert sub.id == "formRef_exported_handlers"
        assert {n.label for n in sub.elements} == {"reset", "focus"}
        (handler,) = by_label(data, "handleReset")
        assert (handler.id, "formRef_exported_handlers_reset", "calls") in edge_triples(data)
        (form,) = [n for n in data.root_subgraph.iter_nodes() if n.label == "Form"]
        assert (form.id, sub.id, "formRef") in edge_triples(data)
        assert not by_label(data, "formRef.current.reset")

    def test_calls_from_cleanup_start_at_cleanup_node(self):
        effect = Process(
            name="useEffect", kind="effect",
            cleanup=Process(
                name="cleanup", kind="cleanup",
                external_calls=[
                    ExternalCall(callee="childRef.current.reset", ref_name="childRef", method_name="reset"),
                ],
            ),
        )
        data = build(facts(processes=[effect]))
        (effect_node,) = by_label(data, "useEffect")
        (cleanup,) = by_label(data, "cleanup")
        triples = edge_triples(data)
        assert (cleanup.id, "childRef_exported_handlers_reset", "calls") in triples
        assert (effect_node.id, "childRef_exported_handlers_reset", "calls") not in triples


class TestIntegrity:
    def test_no_dangling_edges(self):
        """Every edge endpoint resolves to a node or subgraph somewhere in the graph."""
        effect = Process(
            name="useEffect", kind="effect", dependencies=["count"],
            accesses=[read("count"), invoke("setCount")],
            external_calls=[ExternalCall(callee="console.log", arguments=["count"])],
            cleanup=Process(name="cleanup", kind="cleanup", accesses=[invoke("setCount")]),
        )
        output = RenderedOutput(children=[
            OutputBranch(kind="conditional", expression="count > 0", refs=[read("count")],
                         children=[OutputElement(tag="span", refs=[read("count")])]),
            OutputElement(tag="button", refs=[invoke("setCount", attribute="onClick")]),
        ])
        data = build(facts(
            props=[Prop(name="label"), Prop(name="onChange", declared_type="(v: number) => void")],
            primitives=[state_pair("count", "setCount")],
            processes=[effect],
            output=output,
        ))
        assert data.dangling_edges() == []
        ids = [n.id for n in data.all_nodes()]
        assert len(ids) == len(set(ids))

    def test_empty_facts(self):
        data = build(facts())
        assert data.nodes == []
        assert data.edges == []
        assert data.root_subgraph is None

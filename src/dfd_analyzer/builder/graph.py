"""GraphAccumulator: id allocation, edge dedup and name bindings for one build."""

from __future__ import annotations

from dataclasses import dataclass

from dfd_analyzer.models import DFDEdge, DFDNode, NodeRole


@dataclass(frozen=True)
class Binding:
    """How a component-level name maps onto a graph node.

    ``role`` decides edge direction:
        input      prop or event data flowing in
        output     callable prop / event, invoked by the component
        reader     read half of a [value, setValue] pair
        writer     write half of a pair
        data       non-callable member of a multi-name store
        callable   callable member of a multi-name store
        sole       the only name bound by a store (``count = ref(0)``)
        process    a process node
    """

    node_id: str
    role: str
    name: str
    member: str | None = None      # member name on a consolidated / multi-name store

    @property
    def flows_out(self) -> bool:
        """True when using the name sends data from the user to the node."""
        return self.role in ("output", "writer", "callable", "process")


class GraphAccumulator:
    """Nodes and edges of one build, with a single per-build id counter."""

    def __init__(self) -> None:
        self.nodes: list[DFDNode] = []
        self.edges: list[DFDEdge] = []
        self.bindings: dict[str, Binding] = {}
        self._counter = 0
        self._edge_keys: set[tuple[str, str, str | None]] = set()

    def new_id(self, prefix: str) -> str:
        self._counter += 1
        return f"{prefix}_{self._counter}"

    def add_node(
        self,
        prefix: str,
        label: str,
        role: NodeRole,
        metadata: dict | None = None,
        *,
        top_level: bool = True,
    ) -> DFDNode:
        node = DFDNode(
            id=self.new_id(prefix),
            label=label,
            role=role,
            metadata={k: v for k, v in (metadata or {}).items() if v is not None},
        )
        if top_level:
            self.nodes.append(node)
        return node

    def add_edge(
        self,
        from_id: str,
        to_id: str,
        label: str | None = None,
        *,
        is_cleanup: bool = False,
        is_long_arrow: bool = False,
    ) -> DFDEdge | None:
        """Add a directed edge; self-loops and repeats of (from, to, label) are dropped."""
        if from_id == to_id:
            return None
        key = (from_id, to_id, label)
        if key in self._edge_keys:
            return None
        self._edge_keys.add(key)
        edge = DFDEdge(
            from_=from_id, to=to_id, label=label,
            is_cleanup=is_cleanup, is_long_arrow=is_long_arrow,
        )
        self.edges.append(edge)
        return edge

    def bind(self, name: str, binding: Binding) -> None:
        # first binding wins, matching the analyzers' symbol table
        if name and name not in self.bindings:
            self.bindings[name] = binding

    def binding(self, name: str) -> Binding | None:
        return self.bindings.get(name)

    def __len__(self) -> int:
        return len(self.nodes)

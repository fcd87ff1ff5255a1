"""Library-hook consolidation: one store node per data-fetching call."""

from __future__ import annotations

import logging

from dfd_analyzer.builder.graph import Binding, GraphAccumulator
from dfd_analyzer.ir.facts import ReactivePrimitive
from dfd_analyzer.models import DFDNode, NodeRole

log = logging.getLogger(__name__)


def hook_label(prim: ReactivePrimitive) -> str:
    if prim.type_argument:
        return f"{prim.name}<{prim.type_argument}>"
    return prim.name


def endpoint_of(prim: ReactivePrimitive) -> str | None:
    """First argument when it is a string literal: ``useSWR('/api/user')`` -> ``/api/user``."""
    if not prim.arguments:
        return None
    first = prim.arguments[0]
    if len(first) >= 2 and first[0] in "'\"`" and first[-1] == first[0]:
        return first[1:-1]
    return None


def add_library_hook(graph: GraphAccumulator, prim: ReactivePrimitive) -> DFDNode:
    """Emit the consolidated node, its optional Server node and the name bindings.

    Destructured names are partitioned into ``dataProperties`` and
    ``processProperties``; reads of a data property later produce edges
    labelled with that property.
    """
    data_props = [v for v in prim.variables if v not in prim.callable_variables]
    process_props = [v for v in prim.variables if v in prim.callable_variables]
    node = graph.add_node("library_hook", hook_label(prim), NodeRole.STORE, {
        "category": "library-hook",
        "hookName": prim.name,
        "library": prim.library,
        "properties": list(prim.variables),
        "dataProperties": data_props,
        "processProperties": process_props,
        "isDataFetching": True,
        "line": prim.line,
        "column": prim.column,
    })

    if prim.is_object_pattern or len(prim.variables) > 1:
        for name in data_props:
            graph.bind(name, Binding(node.id, "data", name, member=name))
        for name in process_props:
            graph.bind(name, Binding(node.id, "callable", name, member=name))
    elif prim.variables:
        graph.bind(prim.variables[0], Binding(node.id, "sole", prim.variables[0]))

    endpoint = endpoint_of(prim)
    if endpoint is not None:
        server = graph.add_node("server", f"Server: {endpoint}", NodeRole.INPUT, {
            "category": "server",
            "endpoint": endpoint,
            "line": prim.line,
            "column": prim.column,
        })
        graph.add_edge(server.id, node.id, "fetches")
    log.debug("Consolidated %s: data=%s process=%s", prim.name, data_props, process_props)
    return node

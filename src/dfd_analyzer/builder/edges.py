"""Edge policy: turn one Reference from a process or element into a labelled edge."""

from __future__ import annotations

import logging

from dfd_analyzer.builder.graph import Binding, GraphAccumulator
from dfd_analyzer.ir.facts import Reference

log = logging.getLogger(__name__)


def reference_label(binding: Binding, ref: Reference) -> str:
    """The name an edge carries: the property for consolidated and sole-variable stores."""
    if binding.member:
        return binding.member
    if binding.role == "sole" and ref.property:
        return ref.property
    return binding.name


def is_outward(binding: Binding, ref: Reference) -> bool:
    """Whether the user of ``ref`` sends data to the bound node."""
    if binding.flows_out:
        return True
    return ref.kind in ("invoke", "write")


def connect_process(graph: GraphAccumulator, process_id: str, ref: Reference) -> bool:
    """Edge between a process-like node and the node ``ref`` resolves to."""
    binding = graph.binding(ref.name)
    if binding is None:
        return False
    label = reference_label(binding, ref)
    if is_outward(binding, ref):
        graph.add_edge(process_id, binding.node_id, label)
    else:
        graph.add_edge(binding.node_id, process_id, label)
    return True


def connect_element(graph: GraphAccumulator, element_id: str, ref: Reference) -> bool:
    """Edge between a rendered element and the node ``ref`` resolves to.

    Reads flow into the element. Invocations flow out: to a process the
    edge is labelled with the event attribute, to anything else with
    ``attribute: name``.
    """
    binding = graph.binding(ref.name)
    if binding is None:
        return False
    label = reference_label(binding, ref)
    if ref.kind == "ref":
        graph.add_edge(element_id, binding.node_id, label)
    elif ref.kind == "read" and not binding.flows_out:
        graph.add_edge(binding.node_id, element_id, label)
    elif binding.role == "process":
        graph.add_edge(element_id, binding.node_id, ref.attribute or label)
    else:
        graph.add_edge(element_id, binding.node_id,
                       f"{ref.attribute}: {label}" if ref.attribute else label)
    return True

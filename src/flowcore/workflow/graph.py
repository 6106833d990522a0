"""NetworkX views of a workflow's structure, used for export."""

from __future__ import annotations

from collections.abc import Mapping

import networkx as nx

from flowcore.workflow.edges import EdgeTopology
from flowcore.workflow.node import Node
from flowcore.workflow.router import EventRouter, produced_event_types


def event_graph(router: EventRouter, nodes: Mapping[str, Node]) -> nx.DiGraph:
    """Build an ``event -> node -> produced event`` graph.

    Graph attribute ``start`` names the entry event.
    """
    graph: nx.DiGraph = nx.DiGraph(mode="events")

    mapping = router.mapping
    for event_type, key in mapping.items():
        graph.add_node(event_type.__name__, kind="event")
        graph.add_node(key, kind="node")
        graph.add_edge(event_type.__name__, key)

        for produced in produced_event_types(nodes[key]):
            graph.add_node(produced.__name__, kind="event")
            graph.add_edge(key, produced.__name__)
            # subclass events routed to a parent-type handler
            handler = router.resolve(produced)
            if produced not in mapping and handler is not None:
                graph.add_edge(produced.__name__, handler)

    start_type = router.start_event_type
    start_key = router.resolve(start_type)
    if start_key is not None:
        graph.add_node(start_type.__name__, kind="event")
        graph.add_edge(start_type.__name__, start_key)
    graph.graph["start"] = start_type.__name__
    return graph


def edge_graph(topology: EdgeTopology) -> nx.DiGraph:
    """Build a ``node -> node`` graph from explicit edges.

    Edge attribute ``conditional`` marks guarded transitions; graph
    attributes ``start`` and ``end`` name the entry and end nodes.
    """
    graph: nx.DiGraph = nx.DiGraph(mode="edges")
    for key in topology.graph.nodes:
        graph.add_node(key, kind="node")
    for edge in topology.edges:
        if graph.has_edge(edge.source, edge.target):
            graph.edges[edge.source, edge.target]["conditional"] &= edge.is_conditional
        else:
            graph.add_edge(edge.source, edge.target, conditional=edge.is_conditional)

    graph.graph["start"] = topology.start_key
    graph.graph["end"] = sorted(topology.end_keys)
    return graph

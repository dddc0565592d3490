"""
Topology Builder
================

Turns explicit wires plus implicit panel contact into an undirected
graph. Panels whose bounding boxes overlap or touch (within a small
tolerance) are treated as electrically joined without a wire.
"""

import logging
from typing import Iterable, List

import networkx as nx

from .equipment import Node, NodeType, Wire

logger = logging.getLogger(__name__)

DEFAULT_TOUCH_TOLERANCE = 0.2


def panels_touch(a: Node, b: Node, tolerance: float = DEFAULT_TOUCH_TOLERANCE) -> bool:
    """True if the two bounding boxes, grown by ``tolerance``, intersect."""
    return not (
        b.x > a.x + a.width + tolerance
        or b.x + b.width + tolerance < a.x
        or b.y > a.y + a.height + tolerance
        or b.y + b.height + tolerance < a.y
    )


def build_adjacency(
    nodes: Iterable[Node],
    wires: Iterable[Wire],
    touch_tolerance: float = DEFAULT_TOUCH_TOLERANCE,
) -> nx.Graph:
    """
    Build the undirected connectivity graph.

    Every node and every wire endpoint becomes a graph node, even when
    the endpoint does not reference known equipment; traversals skip
    such ids. Panel pairs are checked pairwise, which is quadratic in
    the panel count.

    Args:
        nodes: Equipment on the canvas
        wires: Explicit connections
        touch_tolerance: Gap (canvas units) still counted as touching

    Returns:
        networkx.Graph keyed by node id
    """
    nodes = list(nodes)
    graph = nx.Graph()
    graph.add_nodes_from(n.id for n in nodes)

    for wire in wires:
        if not wire.from_id or not wire.to_id:
            continue
        graph.add_edge(wire.from_id, wire.to_id)

    panels: List[Node] = [n for n in nodes if n.node_type == NodeType.PANEL]
    implicit = 0
    for i, first in enumerate(panels):
        for second in panels[i + 1:]:
            if panels_touch(first, second, touch_tolerance):
                graph.add_edge(first.id, second.id)
                implicit += 1

    if implicit:
        logger.debug("Inferred %d implicit panel connections", implicit)
    return graph

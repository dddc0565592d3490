"""
Island Partitioner
==================

Splits the network into electrically isolated islands. An island is
the maximal set of nodes reachable through closed switches; an open or
auto-tripped protective device belongs to the island that reached it
first but is never expanded, so it separates its two sides.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

import networkx as nx

from ..resources.load import DEFAULT_HOURS_PER_MONTH, DEFAULT_NOMINAL_LOAD_KW, monthly_units_to_kw
from .equipment import LoadSpec, Node, NodeType, as_float
from .reachability import GridOracle

logger = logging.getLogger(__name__)


@dataclass
class Island:
    """
    Electrically connected group of nodes.

    Attributes:
        index: Position in discovery order
        node_ids: Members in traversal order
        has_grid: A healthy grid node is inside the island
        grid_connection_id: The grid node providing that connection
        total_load_kw: Average demand of all loads
        total_solar_kw: Instantaneous panel generation
        battery_ids: Batteries in node-list order
    """
    index: int
    node_ids: List[str] = field(default_factory=list)
    has_grid: bool = False
    grid_connection_id: Optional[str] = None
    total_load_kw: float = 0.0
    total_solar_kw: float = 0.0
    battery_ids: List[str] = field(default_factory=list)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self.node_ids


def is_cut_point(node: Node, oracle: GridOracle) -> bool:
    """Open devices and devices that only see outaged grids stop expansion."""
    if not node.is_protective:
        return False
    if not node.is_on:
        return True
    return oracle.reaches_grid(node.id).outage_only


def partition_islands(
    nodes: Sequence[Node],
    graph: nx.Graph,
    oracle: GridOracle,
    generation: Mapping[str, float],
    hours_per_month: float = DEFAULT_HOURS_PER_MONTH,
    nominal_load_kw: float = DEFAULT_NOMINAL_LOAD_KW,
) -> List[Island]:
    """
    Sweep all nodes once and group them into islands.

    Args:
        nodes: Equipment, in canvas order
        graph: Connectivity from ``build_adjacency``
        oracle: Grid reachability for the same snapshot
        generation: Panel id -> kW
        hours_per_month: Divisor turning monthly units into kW
        nominal_load_kw: Demand assumed for loads declaring zero units

    Returns:
        Islands covering every node exactly once
    """
    by_id: Dict[str, Node] = {n.id: n for n in nodes}
    order = {n.id: i for i, n in enumerate(nodes)}
    visited = set()
    islands: List[Island] = []

    for start in nodes:
        if start.id in visited:
            continue

        island = Island(index=len(islands))
        queue = deque([start.id])
        visited.add(start.id)

        while queue:
            curr_id = queue.popleft()
            curr = by_id[curr_id]
            island.node_ids.append(curr_id)

            if curr.is_healthy_grid and not island.has_grid:
                island.has_grid = True
                island.grid_connection_id = curr_id
            elif curr.node_type == NodeType.LOAD and isinstance(curr.spec, LoadSpec):
                island.total_load_kw += monthly_units_to_kw(
                    curr.spec.units, hours_per_month, nominal_load_kw
                )
            elif curr.node_type == NodeType.PANEL:
                island.total_solar_kw += max(0.0, as_float(generation.get(curr_id), 0.0))
            elif curr.is_battery:
                island.battery_ids.append(curr_id)

            if is_cut_point(curr, oracle) or curr_id not in graph:
                continue

            for next_id in graph.neighbors(curr_id):
                if next_id in visited or next_id not in by_id:
                    continue
                visited.add(next_id)
                queue.append(next_id)

        island.battery_ids.sort(key=order.__getitem__)
        islands.append(island)

    logger.debug("Partitioned %d nodes into %d islands", len(nodes), len(islands))
    return islands

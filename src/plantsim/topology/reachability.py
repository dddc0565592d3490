"""
Grid Reachability
=================

Breaker-aware search from a node to the grid connections it can see.

Open protective devices (other than the starting one) are cut points:
the search neither enters nor leaves them. Each visited grid node is
classified as healthy or outaged (an outage or a grid switched off).

Every query is a full BFS, O(V + E). The engine asks once per
protective device, so a plant with many breakers costs O(B * (V + E))
per invocation. Results are memoised for the lifetime of one oracle,
which is one engine invocation.
"""

from collections import deque
from dataclasses import dataclass
from typing import Dict, Mapping

import networkx as nx

from .equipment import Node


@dataclass(frozen=True)
class GridReach:
    """What kind of grid sources a node can reach."""
    has_outage: bool = False
    has_healthy: bool = False

    @property
    def outage_only(self) -> bool:
        """Only dead grid connections are reachable: the auto-trip condition."""
        return self.has_outage and not self.has_healthy


class GridOracle:
    """Answers ``reaches_grid`` queries over one network snapshot."""

    def __init__(self, nodes: Mapping[str, Node], graph: nx.Graph):
        self._nodes = nodes
        self._graph = graph
        self._cache: Dict[str, GridReach] = {}

    def reaches_grid(self, start_id: str) -> GridReach:
        """
        Search outward from ``start_id`` for grid nodes.

        The start node is traversed even if it is an open device, so a
        breaker can ask what lies on either side of itself.
        """
        cached = self._cache.get(start_id)
        if cached is not None:
            return cached

        has_outage = False
        has_healthy = False
        queue = deque([start_id])
        visited = {start_id}

        while queue:
            curr_id = queue.popleft()
            curr = self._nodes.get(curr_id)
            if curr is None:
                continue

            if curr.is_grid:
                if curr.is_healthy_grid:
                    has_healthy = True
                else:
                    has_outage = True
                if has_outage and has_healthy:
                    break

            if curr_id not in self._graph:
                continue
            for next_id in self._graph.neighbors(curr_id):
                if next_id in visited:
                    continue
                neighbor = self._nodes.get(next_id)
                if neighbor is None:
                    continue
                if neighbor.is_protective and not neighbor.is_on and next_id != start_id:
                    continue
                visited.add(next_id)
                queue.append(next_id)

        result = GridReach(has_outage=has_outage, has_healthy=has_healthy)
        self._cache[start_id] = result
        return result

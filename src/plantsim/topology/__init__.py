"""
Topology Layer
==============

Network structure of the plant:
- Equipment nodes, wires and typed specifications
- Adjacency from wires plus touching panels
- Breaker-aware grid reachability
- Island partitioning
"""

from .equipment import Node, NodeType, Wire, WireKind
from .adjacency import build_adjacency
from .reachability import GridOracle, GridReach
from .islands import Island, partition_islands

__all__ = [
    "Node",
    "NodeType",
    "Wire",
    "WireKind",
    "build_adjacency",
    "GridOracle",
    "GridReach",
    "Island",
    "partition_islands",
]

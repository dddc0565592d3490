"""
Flow Module
===========

Steady-state power balance over the plant network:
- Priority balancer allocating solar, battery and grid per island
- Flow engine producing per-node results from a network snapshot
"""

from .balancer import DEFAULT_PRIORITY, IslandBalance, SourceType, balance_island
from .engine import FlowResult, NetworkFlow, calculate_flows, solve_network

__all__ = [
    "DEFAULT_PRIORITY",
    "IslandBalance",
    "SourceType",
    "balance_island",
    "FlowResult",
    "NetworkFlow",
    "calculate_flows",
    "solve_network",
]

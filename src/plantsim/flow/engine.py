"""
Flow Engine
===========

Pure function from a network snapshot to per-node flow results:

    (nodes, wires, generation, battery limits, priority) -> {node_id: FlowResult}

Steps:
1. Build adjacency (wires + touching panels)
2. Partition into islands, cutting at open or outage-tripped devices
3. Balance each island by source priority
4. Assign per-node results and fold in protection flags

The engine holds no state between calls and performs no I/O. Applying
the results (battery SoC, meter readings, switch positions) is the
stepping driver's job.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Union

from ..control.protection import ProtectionState, classify_device
from ..resources.battery import BatteryLimits, BatteryState, limits_for_network
from ..resources.load import DEFAULT_HOURS_PER_MONTH, DEFAULT_NOMINAL_LOAD_KW, monthly_units_to_kw
from ..resources.solar import default_generation
from ..topology.adjacency import DEFAULT_TOUCH_TOLERANCE, build_adjacency
from ..topology.equipment import LoadSpec, Node, NodeType, Wire, as_float
from ..topology.islands import Island, partition_islands
from ..topology.reachability import GridOracle, GridReach
from .balancer import DEFAULT_PRIORITY, IslandBalance, SourceType, balance_island

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FlowResult:
    """
    Engine output for one node.

    Attributes:
        island: Index of the island the node belongs to
        is_energized: The island has a live source (grid, solar, discharging battery)
        is_tripped: Protective device sees only outaged grid connections
        can_reset: Protective device sees at least one healthy grid
        protection_state: Classification for protective devices, else None
        active_power: Panel generation or load demand (kW)
        grid_flow: Net grid import (+) / export (-) read by net meters
        load_flow: Served load read by gross meters
        battery_flow: Battery power (+ discharge, - charge)
        net_power: The reading a meter shows (grid_flow or load_flow)
    """
    island: int
    is_energized: bool
    is_tripped: bool = False
    can_reset: bool = False
    protection_state: Optional[ProtectionState] = None
    active_power: float = 0.0
    grid_flow: float = 0.0
    load_flow: float = 0.0
    battery_flow: float = 0.0
    net_power: float = 0.0


@dataclass
class NetworkFlow:
    """Full result of one engine invocation."""
    flows: Dict[str, FlowResult] = field(default_factory=dict)
    islands: List[Island] = field(default_factory=list)
    balances: List[IslandBalance] = field(default_factory=list)
    grid_reach: Dict[str, GridReach] = field(default_factory=dict)

    def island_of(self, node_id: str) -> Optional[Island]:
        flow = self.flows.get(node_id)
        if flow is None:
            return None
        return self.islands[flow.island]

    def balance_of(self, node_id: str) -> Optional[IslandBalance]:
        flow = self.flows.get(node_id)
        if flow is None:
            return None
        return self.balances[flow.island]

    @property
    def total_grid_import(self) -> float:
        return sum(b.grid_import for b in self.balances)

    @property
    def total_grid_export(self) -> float:
        return sum(b.grid_export for b in self.balances)

    @property
    def total_deficit(self) -> float:
        return sum(b.deficit for b in self.balances)


def _node_result(
    node: Node,
    island: Island,
    balance: IslandBalance,
    oracle: GridOracle,
    generation: Mapping[str, float],
    load_kw: float,
) -> FlowResult:
    energized = island.has_grid or island.total_solar_kw > 0 or balance.battery_discharged > 0
    values = dict(island=island.index, is_energized=energized)

    if node.is_protective:
        reach = oracle.reaches_grid(node.id)
        if reach.outage_only:
            values["is_energized"] = False
            values["is_tripped"] = True
        values["can_reset"] = reach.has_healthy
        values["protection_state"] = classify_device(node, reach)

    if node.node_type == NodeType.NET_METER:
        if island.has_grid:
            net = balance.grid_import - balance.grid_export
            values["grid_flow"] = net
            values["net_power"] = net
    elif node.node_type == NodeType.GROSS_METER:
        values["load_flow"] = balance.served_load
        values["net_power"] = balance.served_load
    elif node.is_battery:
        values["battery_flow"] = balance.battery_flows.get(node.id, 0.0)
        values["net_power"] = values["battery_flow"]
    elif node.node_type == NodeType.PANEL:
        values["active_power"] = max(0.0, as_float(generation.get(node.id), 0.0))
    elif node.node_type == NodeType.LOAD:
        values["active_power"] = load_kw

    return FlowResult(**values)


def solve_network(
    nodes: Sequence[Node],
    wires: Sequence[Wire],
    *,
    generation: Optional[Mapping[str, float]] = None,
    battery_limits: Optional[Mapping[str, BatteryLimits]] = None,
    battery_states: Optional[Mapping[str, BatteryState]] = None,
    dt_hours: Optional[float] = None,
    priority: Sequence[Union[str, SourceType]] = DEFAULT_PRIORITY,
    hour: float = 12.0,
    performance_ratio: float = 1.0,
    touch_tolerance: float = DEFAULT_TOUCH_TOLERANCE,
    hours_per_month: float = DEFAULT_HOURS_PER_MONTH,
    nominal_load_kw: float = DEFAULT_NOMINAL_LOAD_KW,
) -> NetworkFlow:
    """
    Compute energization, protection flags and power balance.

    Args:
        nodes: Equipment snapshot, in canvas order
        wires: Wire snapshot; dangling endpoints are ignored
        generation: Panel id -> kW. If None, the daylight curve at
            ``hour`` is used
        battery_limits: Precomputed per-battery limits. If None and
            ``dt_hours`` is given, limits are computed from
            ``battery_states`` (or each battery's initial SoC);
            otherwise batteries are idle
        battery_states: Stored energy per battery
        dt_hours: Interval used for computing limits
        priority: Order of source types
        hour: Hour of day for default generation
        performance_ratio: Derate for default generation
        touch_tolerance: Implicit panel contact margin
        hours_per_month: Load conversion divisor
        nominal_load_kw: Demand of loads declaring zero units

    Returns:
        NetworkFlow with per-node results, islands and balances
    """
    if generation is None:
        generation = default_generation(nodes, hour, performance_ratio)
    if battery_limits is None:
        if dt_hours is not None:
            battery_limits = limits_for_network(nodes, battery_states or {}, dt_hours)
        else:
            battery_limits = {}

    by_id = {n.id: n for n in nodes}
    graph = build_adjacency(nodes, wires, touch_tolerance)
    oracle = GridOracle(by_id, graph)

    islands = partition_islands(
        nodes, graph, oracle, generation,
        hours_per_month=hours_per_month,
        nominal_load_kw=nominal_load_kw,
    )

    result = NetworkFlow(islands=islands)
    for island in islands:
        balance = balance_island(island, battery_limits, priority)
        result.balances.append(balance)
        logger.debug(
            "Island %d: load=%.3f solar=%.3f import=%.3f export=%.3f deficit=%.3f",
            island.index, balance.total_load, balance.total_solar,
            balance.grid_import, balance.grid_export, balance.deficit,
        )

    for island, balance in zip(islands, result.balances):
        for node_id in island.node_ids:
            node = by_id[node_id]
            load_kw = 0.0
            if isinstance(node.spec, LoadSpec):
                load_kw = monthly_units_to_kw(node.spec.units, hours_per_month, nominal_load_kw)
            result.flows[node_id] = _node_result(node, island, balance, oracle, generation, load_kw)
            if node.is_protective:
                result.grid_reach[node_id] = oracle.reaches_grid(node_id)

    return result


def calculate_flows(
    nodes: Sequence[Node],
    wires: Sequence[Wire],
    **options,
) -> Dict[str, FlowResult]:
    """Per-node flow results; see ``solve_network`` for options."""
    return solve_network(nodes, wires, **options).flows

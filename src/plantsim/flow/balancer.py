"""
Priority Power Balancer
=======================

Serves each island's demand from its sources in a user-defined
priority order, then routes surplus solar into batteries and, if the
island is grid-connected, to export.

Battery allocation is greedy in node-list order: the first battery is
drained to its limit before the next is touched. This is deterministic
but not proportional to battery size.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Sequence, Union

from ..resources.battery import BatteryLimits
from ..topology.islands import Island

logger = logging.getLogger(__name__)


class SourceType(Enum):
    """Supply categories that can be ordered by priority."""
    SOLAR = "Solar"
    BATTERY = "Battery"
    GRID = "Grid"


DEFAULT_PRIORITY: List[SourceType] = [SourceType.SOLAR, SourceType.BATTERY, SourceType.GRID]


def normalize_priority(priority: Iterable[Union[str, SourceType]]) -> List[SourceType]:
    """
    Turn a user priority list into source types.

    Unknown names are dropped and repeats keep their first position;
    any subset of the three sources is a valid order.
    """
    result: List[SourceType] = []
    for item in priority:
        try:
            source = item if isinstance(item, SourceType) else SourceType(str(item).strip().title())
        except ValueError:
            logger.debug("Ignoring unknown source type %r in priority", item)
            continue
        if source not in result:
            result.append(source)
    return result


@dataclass
class IslandBalance:
    """
    Power balance of one island for one invocation (kW).

    Attributes:
        island_index: Island this balance belongs to
        total_load: Demand
        total_solar: Generation available
        solar_used: Solar serving load directly
        battery_discharged: Sum of battery discharge
        battery_charged: Sum of battery charge (positive)
        grid_import: Grid supply to load
        grid_export: Surplus solar sent to the grid
        deficit: Demand left unserved
        battery_flows: Battery id -> kW (+ discharge, - charge)
    """
    island_index: int
    total_load: float = 0.0
    total_solar: float = 0.0
    solar_used: float = 0.0
    battery_discharged: float = 0.0
    battery_charged: float = 0.0
    grid_import: float = 0.0
    grid_export: float = 0.0
    deficit: float = 0.0
    battery_flows: Dict[str, float] = field(default_factory=dict)

    @property
    def served_load(self) -> float:
        return self.total_load - self.deficit

    @property
    def solar_curtailed(self) -> float:
        """Surplus solar with nowhere to go (no grid, batteries full)."""
        return max(0.0, self.total_solar - self.solar_used - self.battery_charged - self.grid_export)

    @property
    def solar_consumed(self) -> float:
        """Solar going to load, batteries or export."""
        return self.total_solar - self.solar_curtailed


def balance_island(
    island: Island,
    battery_limits: Mapping[str, BatteryLimits],
    priority: Sequence[Union[str, SourceType]] = DEFAULT_PRIORITY,
) -> IslandBalance:
    """
    Allocate sources to demand for one island.

    Args:
        island: Island with aggregated load, solar and batteries
        battery_limits: Per-battery limits; missing batteries get zero
        priority: Order in which source types are drawn

    Returns:
        IslandBalance with per-battery flows
    """
    balance = IslandBalance(
        island_index=island.index,
        total_load=island.total_load_kw,
        total_solar=island.total_solar_kw,
    )
    flows = {bat_id: 0.0 for bat_id in island.battery_ids}
    discharged = set()
    remaining_load = island.total_load_kw

    for source in normalize_priority(priority):
        if remaining_load <= 0:
            break

        if source == SourceType.SOLAR:
            used = min(remaining_load, island.total_solar_kw)
            balance.solar_used += used
            remaining_load -= used

        elif source == SourceType.BATTERY:
            for bat_id in island.battery_ids:
                if remaining_load <= 0:
                    break
                limits = battery_limits.get(bat_id, BatteryLimits())
                used = min(remaining_load, limits.max_discharge_kw)
                if used <= 0:
                    continue
                flows[bat_id] += used
                discharged.add(bat_id)
                balance.battery_discharged += used
                remaining_load -= used

        elif source == SourceType.GRID:
            if island.has_grid:
                balance.grid_import += remaining_load
                remaining_load = 0.0

    # Surplus solar charges batteries that did not discharge this pass
    solar_excess = island.total_solar_kw - balance.solar_used
    if solar_excess > 0:
        for bat_id in island.battery_ids:
            if solar_excess <= 0:
                break
            if bat_id in discharged:
                continue
            limits = battery_limits.get(bat_id, BatteryLimits())
            charge = min(solar_excess, limits.max_charge_kw)
            if charge <= 0:
                continue
            flows[bat_id] = -charge
            balance.battery_charged += charge
            solar_excess -= charge

    if island.has_grid and solar_excess > 0:
        balance.grid_export = solar_excess

    balance.deficit = max(0.0, remaining_load)
    balance.battery_flows = flows
    return balance

"""
Battery Limits and State
========================

Per-battery charge/discharge power limits derived from the current
stored energy, and the per-tick energy integration that the stepping
driver applies after the flow engine has allocated battery power.

Sign convention for battery power: positive = discharge, negative = charge.
"""

from dataclasses import dataclass, replace
from typing import Dict, Iterable, Mapping

from ..topology.equipment import BatterySpec, Node


@dataclass(frozen=True)
class BatteryLimits:
    """Maximum power the battery can deliver / absorb this tick (kW, >= 0)."""
    max_discharge_kw: float = 0.0
    max_charge_kw: float = 0.0


@dataclass(frozen=True)
class BatteryState:
    """
    Runtime state of one battery, owned by the stepping driver.

    Attributes:
        node_id: Battery node id
        capacity_kwh: Nameplate energy
        energy_kwh: Stored energy, always within [0, capacity_kwh]
    """
    node_id: str
    capacity_kwh: float
    energy_kwh: float

    @property
    def soc(self) -> float:
        """State of charge (%)."""
        if self.capacity_kwh <= 0:
            return 0.0
        return 100.0 * self.energy_kwh / self.capacity_kwh

    @classmethod
    def from_spec(cls, node_id: str, spec: BatterySpec) -> "BatteryState":
        """Initial state from the battery's configured SoC."""
        energy = spec.capacity_kwh * spec.initial_soc / 100.0
        return cls(node_id=node_id, capacity_kwh=spec.capacity_kwh, energy_kwh=energy)


def compute_battery_limits(
    spec: BatterySpec,
    energy_kwh: float,
    dt_hours: float,
) -> BatteryLimits:
    """
    Power limits for the next interval.

    Discharge stops at the reserve floor (100 - DoD % of capacity),
    charge stops at full capacity; both are also capped by the rated
    power. Limits never go negative. A non-positive interval yields
    zero limits.

    Args:
        spec: Battery parameters
        energy_kwh: Stored energy before the interval
        dt_hours: Interval duration

    Returns:
        BatteryLimits for the interval
    """
    if dt_hours <= 0 or spec.capacity_kwh <= 0:
        return BatteryLimits()

    energy = min(max(energy_kwh, 0.0), spec.capacity_kwh)
    floor_kwh = spec.capacity_kwh * spec.min_soc / 100.0

    # Energy above the reserve floor, delivered over the interval
    discharge_from_energy = (energy - floor_kwh) / dt_hours
    # Headroom to full
    charge_from_headroom = (spec.capacity_kwh - energy) / dt_hours

    return BatteryLimits(
        max_discharge_kw=max(0.0, min(spec.rated_discharge_kw, discharge_from_energy)),
        max_charge_kw=max(0.0, min(spec.rated_charge_kw, charge_from_headroom)),
    )


def limits_for_network(
    nodes: Iterable[Node],
    states: Mapping[str, BatteryState],
    dt_hours: float,
) -> Dict[str, BatteryLimits]:
    """Limits for every battery node; batteries without state start at their initial SoC."""
    limits: Dict[str, BatteryLimits] = {}
    for node in nodes:
        if not node.is_battery or not isinstance(node.spec, BatterySpec):
            continue
        state = states.get(node.id) or BatteryState.from_spec(node.id, node.spec)
        limits[node.id] = compute_battery_limits(node.spec, state.energy_kwh, dt_hours)
    return limits


def integrate_battery(
    state: BatteryState,
    net_discharge_kw: float,
    dt_hours: float,
) -> BatteryState:
    """
    Apply one interval of battery power.

    Args:
        state: State before the interval
        net_discharge_kw: Battery flow (positive = discharge)
        dt_hours: Interval duration

    Returns:
        New state with energy clamped to [0, capacity]
    """
    energy = state.energy_kwh - net_discharge_kw * dt_hours
    energy = min(max(energy, 0.0), max(state.capacity_kwh, 0.0))
    return replace(state, energy_kwh=energy)

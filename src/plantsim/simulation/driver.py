"""
Simulation Driver
=================

Owns the mutable plant state (switch positions, battery energy, meter
readings, clock) and advances it one tick at a time:

1. Apply grid outage schedules for the current hour
2. Compute battery limits and run the flow engine on a snapshot
3. Integrate battery energy and meter readings
4. Let the rule controller react (after its thinking delay)
5. Apply the controller's commands, visible from the next tick on
6. Advance the clock

Ticks never overlap: ``step`` refuses to start while one is running.
``start``/``pause``/``resume``/``stop`` pace ticks on the event loop;
``step`` and ``run`` drive the simulation directly for tests and batch
runs. Stopping lets an in-flight tick finish and only suppresses the
next one.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Sequence

from ..config import PlantCase, SimulationSettings
from ..control.protection import ResetPolicy
from ..control.rules import ControlOutcome, RuleController, apply_commands
from ..exceptions import SimulationBusyError
from ..flow.engine import NetworkFlow, solve_network
from ..resources.battery import BatteryLimits, BatteryState, integrate_battery, limits_for_network
from ..topology.equipment import BatterySpec, GridSpec, METER_TYPES, Node, NodeType, Wire
from .history import SimulationHistory, TickRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TickReport:
    """What happened during one tick."""
    tick: int
    hour: float
    network: NetworkFlow
    battery_limits: Dict[str, BatteryLimits]
    outcome: Optional[ControlOutcome]
    changed: bool


class PlantSimulator:
    """
    Tick loop around the flow engine and rule controller.

    Args:
        nodes: Equipment, in canvas order
        wires: Connections
        settings: Simulation settings (defaults if omitted)
        controller: Rule controller (built from settings if omitted)
    """

    def __init__(
        self,
        nodes: Sequence[Node],
        wires: Sequence[Wire],
        settings: Optional[SimulationSettings] = None,
        controller: Optional[RuleController] = None,
    ):
        self.settings = settings or SimulationSettings()
        self.nodes: List[Node] = list(nodes)
        self.wires: List[Wire] = list(wires)
        self.controller = controller or RuleController(
            delay_s=self.settings.controller_delay_s,
            reset_policy=ResetPolicy(self.settings.reset_policy),
        )

        self.hour = float(self.settings.start_hour)
        self.tick_count = 0
        self.battery_states: Dict[str, BatteryState] = {
            n.id: BatteryState.from_spec(n.id, n.spec)
            for n in self.nodes
            if n.is_battery and isinstance(n.spec, BatterySpec)
        }
        self.meter_readings: Dict[str, float] = {
            n.id: 0.0 for n in self.nodes if n.node_type in METER_TYPES
        }
        self.history = SimulationHistory()
        self.last_flow: Optional[NetworkFlow] = None

        self._processing = False
        self._paused = False
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._wake: Optional[asyncio.Event] = None

    @classmethod
    def from_case(cls, case: PlantCase) -> "PlantSimulator":
        return cls(case.build_nodes(), case.build_wires(), case.settings)

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    @property
    def is_processing(self) -> bool:
        return self._processing

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_paused(self) -> bool:
        return self._paused

    def get_node(self, node_id: str) -> Optional[Node]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def _replace_node(self, node_id: str, **changes) -> None:
        for i, node in enumerate(self.nodes):
            if node.id == node_id:
                self.nodes[i] = replace(node, **changes)
                return
        raise KeyError(f"Unknown node: {node_id}")

    def set_switch(self, node_id: str, is_on: bool) -> None:
        """User toggles a device; the opening counts as manual."""
        if is_on:
            self._replace_node(node_id, is_on=True, manual_override=False, auto_tripped=False)
        else:
            self._replace_node(node_id, is_on=False, manual_override=True, auto_tripped=False)

    def set_outage(self, grid_id: str, is_outage: bool) -> None:
        """Force a grid node's outage flag."""
        self._replace_node(grid_id, is_outage=is_outage)

    def soc(self, battery_id: str) -> float:
        return self.battery_states[battery_id].soc

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def _apply_outage_schedule(self) -> None:
        hour_of_day = int(self.hour) % 24
        for i, node in enumerate(self.nodes):
            if node.node_type != NodeType.GRID or not isinstance(node.spec, GridSpec):
                continue
            if not node.spec.outage_hours:
                continue
            scheduled = hour_of_day in node.spec.outage_hours
            if scheduled != node.is_outage:
                logger.info("Grid %s %s at %05.2f h", node.display_name,
                            "outage begins" if scheduled else "restored", self.hour)
                self.nodes[i] = replace(node, is_outage=scheduled)

    def _ensure_battery_states(self) -> None:
        for node in self.nodes:
            if node.is_battery and node.id not in self.battery_states and isinstance(node.spec, BatterySpec):
                self.battery_states[node.id] = BatteryState.from_spec(node.id, node.spec)

    def compute_flows(self) -> NetworkFlow:
        """Run the engine on the current state without advancing anything."""
        self._ensure_battery_states()
        limits = limits_for_network(self.nodes, self.battery_states, self.settings.dt_hours)
        return self._solve(limits)

    def _solve(self, limits: Dict[str, BatteryLimits]) -> NetworkFlow:
        s = self.settings
        return solve_network(
            list(self.nodes),
            list(self.wires),
            battery_limits=limits,
            priority=s.priority,
            hour=self.hour,
            performance_ratio=s.performance_ratio,
            touch_tolerance=s.touch_tolerance,
            hours_per_month=s.hours_per_month,
            nominal_load_kw=s.nominal_load_kw,
        )

    def _apply_flows(self, network: NetworkFlow) -> None:
        dt = self.settings.dt_hours
        for battery_id, state in list(self.battery_states.items()):
            flow = network.flows.get(battery_id)
            if flow is None:
                continue
            self.battery_states[battery_id] = integrate_battery(state, flow.battery_flow, dt)

        for meter_id in list(self.meter_readings):
            flow = network.flows.get(meter_id)
            if flow is not None:
                self.meter_readings[meter_id] += flow.net_power * dt

        balances = network.balances
        self.history.append(TickRecord(
            tick=self.tick_count,
            hour=self.hour,
            dt_hours=dt,
            solar_kw=sum(b.total_solar for b in balances),
            load_kw=sum(b.total_load for b in balances),
            served_kw=sum(b.served_load for b in balances),
            deficit_kw=sum(b.deficit for b in balances),
            grid_import_kw=sum(b.grid_import for b in balances),
            grid_export_kw=sum(b.grid_export for b in balances),
            battery_discharge_kw=sum(b.battery_discharged for b in balances),
            battery_charge_kw=sum(b.battery_charged for b in balances),
            islands=len(network.islands),
            tripped=[nid for nid, f in network.flows.items() if f.is_tripped],
            soc={bid: st.soc for bid, st in self.battery_states.items()},
        ))

    async def step(self, strict: bool = False) -> Optional[TickReport]:
        """
        Advance the simulation by one tick.

        Args:
            strict: Raise instead of skipping when a tick is already running

        Returns:
            TickReport, or None if skipped because a tick is in progress
        """
        if self._processing:
            if strict:
                raise SimulationBusyError("A tick is already in progress")
            logger.debug("Tick skipped: previous tick still running")
            return None

        self._processing = True
        try:
            self._apply_outage_schedule()
            self._ensure_battery_states()
            limits = limits_for_network(self.nodes, self.battery_states, self.settings.dt_hours)
            network = self._solve(limits)
            self._apply_flows(network)
            self.last_flow = network

            snapshot = list(self.nodes)
            outcome = None
            try:
                outcome = await self.controller.run(snapshot, network.flows, self.hour)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Controller pass failed at %05.2f h", self.hour)

            changed = False
            if outcome is not None and outcome.commands:
                for cmd in outcome.commands:
                    logger.info(cmd.reason)
                self.nodes, changed = apply_commands(self.nodes, outcome.commands)

            report = TickReport(
                tick=self.tick_count,
                hour=self.hour,
                network=network,
                battery_limits=limits,
                outcome=outcome,
                changed=changed,
            )
            logger.debug("Tick %d at %05.2f h: %d islands, changed=%s",
                         self.tick_count, self.hour, len(network.islands), changed)

            self.tick_count += 1
            self.hour = (self.hour + self.settings.dt_hours) % 24.0
            return report
        finally:
            self._processing = False

    async def run(self, steps: int) -> List[TickReport]:
        """Run ``steps`` ticks back to back."""
        reports = []
        for _ in range(steps):
            report = await self.step(strict=True)
            reports.append(report)
        return reports

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def start(self) -> asyncio.Task:
        """Start ticking on the running event loop."""
        if self._task is not None and not self._task.done():
            return self._task
        self._running = True
        self._paused = False
        self._wake = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.info("Simulation started at %05.2f h", self.hour)
        return self._task

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        self._paused = False

    async def stop(self) -> None:
        """Stop scheduling; a tick already running completes."""
        self._running = False
        if self._wake is not None:
            self._wake.set()
        if self._task is not None:
            await self._task
            self._task = None
        logger.info("Simulation stopped after %d ticks", self.tick_count)

    async def _loop(self) -> None:
        while self._running:
            if not self._paused:
                await self.step()
            if not self._running:
                break
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self.settings.tick_interval_s)
            except asyncio.TimeoutError:
                pass

"""
Rule Controller (PLC)
=====================

Runs once per tick after the flow computation and turns flags and
user-authored rules into switch commands:

1. Protection: open devices flagged ``is_tripped``; re-close devices
   flagged ``can_reset`` when the reset policy allows it.
2. Interlock rules: if the source device's on/off state matches
   ``val``, trip or close the target.
3. Time rules: if the simulated hour is in ``[val, val2)`` (wrapping
   past midnight when start > end), trip or close the target.

Rules are evaluated in array order against the state the tick started
with; commands are applied in the same order, so a later rule wins
over an earlier one for the same target. A failing rule is logged and
skipped without affecting the others.
"""

import asyncio
import logging
import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Sequence, Tuple, Union

from ..exceptions import RuleError
from ..topology.equipment import ControllerSpec, Node, NodeType, as_float
from .protection import ResetPolicy, should_reset

if TYPE_CHECKING:
    from ..flow.engine import FlowResult

logger = logging.getLogger(__name__)


class RuleAction(Enum):
    """What a rule does to its target."""
    TRIP = "Trip"
    CLOSE = "Close"


class CommandSource(Enum):
    """Origin of a switch command; decides which state flags it sets."""
    PROTECTION_TRIP = "protection_trip"
    PROTECTION_RESET = "protection_reset"
    INTERLOCK = "interlock"
    TIME = "time"


@dataclass(frozen=True)
class InterlockRule:
    """Trip/close ``target_id`` while ``source_id`` is in state ``source_on``."""
    source_id: str
    target_id: str
    source_on: bool
    action: RuleAction


@dataclass(frozen=True)
class TimeRule:
    """Trip/close ``target_id`` during ``[start_hour, end_hour)``."""
    target_id: str
    start_hour: float
    end_hour: float
    action: RuleAction


Rule = Union[InterlockRule, TimeRule]


@dataclass(frozen=True)
class SwitchCommand:
    """Request to set a device's switch position."""
    node_id: str
    is_on: bool
    source: CommandSource
    reason: str = ""


@dataclass
class ControlOutcome:
    """Commands produced by one controller pass."""
    commands: List[SwitchCommand] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return len(self.commands) > 0


def _parse_action(value: Any) -> RuleAction:
    try:
        return RuleAction(str(value).strip().title())
    except ValueError:
        raise RuleError(f"Unknown rule action: {value!r}") from None


def parse_rule(raw: Mapping[str, Any]) -> Rule:
    """
    Build a rule from its editor dict.

    Raises:
        RuleError: Unknown rule type, action, or missing fields
    """
    rule_type = str(raw.get("type", ""))
    target_id = raw.get("targetId")
    if not target_id:
        raise RuleError(f"{rule_type or 'Rule'} has no target")
    action = _parse_action(raw.get("action"))

    if rule_type == "Interlock":
        source_id = raw.get("sourceId")
        if not source_id:
            raise RuleError("Interlock rule has no source")
        val = str(raw.get("val", "")).strip().upper()
        if val not in ("ON", "OFF"):
            raise RuleError(f"Interlock condition must be ON or OFF, got {raw.get('val')!r}")
        return InterlockRule(str(source_id), str(target_id), val == "ON", action)

    if rule_type == "Time":
        start = as_float(raw.get("val"), float("nan"))
        end = as_float(raw.get("val2"), float("nan"))
        if math.isnan(start) or math.isnan(end):
            raise RuleError("Time rule needs numeric start and end hours")
        return TimeRule(str(target_id), start, end, action)

    raise RuleError(f"Unknown rule type: {rule_type!r}")


def in_time_window(hour: float, start: float, end: float) -> bool:
    """Hour in ``[start, end)``; windows with start >= end wrap past midnight."""
    if start < end:
        return start <= hour < end
    return hour >= start or hour < end


def _switch(target: Node, action: RuleAction, source: CommandSource, reason: str) -> List[SwitchCommand]:
    if action == RuleAction.TRIP and target.is_on:
        return [SwitchCommand(target.id, False, source, f"{reason}: {target.display_name} TRIPPED")]
    if action == RuleAction.CLOSE and not target.is_on:
        return [SwitchCommand(target.id, True, source, f"{reason}: {target.display_name} CLOSED")]
    return []


class RuleController:
    """
    Plant controller evaluating protection flags and user rules.

    Args:
        delay_s: Simulated controller thinking time awaited by ``run``
        reset_policy: Which open devices protection may re-close
    """

    def __init__(
        self,
        delay_s: float = 0.5,
        reset_policy: ResetPolicy = ResetPolicy.AUTO_TRIPPED_ONLY,
    ):
        self.delay_s = delay_s
        self.reset_policy = reset_policy

    def protection_commands(
        self,
        nodes: Sequence[Node],
        flows: Mapping[str, "FlowResult"],
    ) -> List[SwitchCommand]:
        """Trip and reset commands from the engine's protection flags."""
        commands: List[SwitchCommand] = []
        for node in nodes:
            if not node.is_protective:
                continue
            flow = flows.get(node.id)
            if flow is None:
                continue
            if flow.is_tripped:
                if node.is_on:
                    commands.append(SwitchCommand(
                        node.id, False, CommandSource.PROTECTION_TRIP,
                        f"Protection: {node.display_name} TRIPPED (grid outage)",
                    ))
            elif should_reset(node, flow.can_reset, self.reset_policy):
                commands.append(SwitchCommand(
                    node.id, True, CommandSource.PROTECTION_RESET,
                    f"Protection: {node.display_name} RESET (grid restored)",
                ))
            elif not node.is_on and flow.can_reset and node.manual_override:
                logger.info("Not resetting %s: opened manually", node.display_name)
        return commands

    def rule_commands(self, rule: Rule, by_id: Mapping[str, Node], hour: float) -> List[SwitchCommand]:
        """Commands for a single parsed rule."""
        target = by_id.get(rule.target_id)
        if target is None:
            raise RuleError(f"Rule target {rule.target_id!r} does not exist")

        if isinstance(rule, InterlockRule):
            source = by_id.get(rule.source_id)
            if source is None:
                raise RuleError(f"Interlock source {rule.source_id!r} does not exist")
            if source.is_on != rule.source_on:
                return []
            state = "ON" if rule.source_on else "OFF"
            return _switch(target, rule.action, CommandSource.INTERLOCK,
                           f"Interlock ({source.display_name} is {state})")

        if not in_time_window(hour, rule.start_hour, rule.end_hour):
            return []
        return _switch(target, rule.action, CommandSource.TIME,
                       f"Time Rule ({int(hour) % 24:02d}:00)")

    def evaluate(
        self,
        nodes: Sequence[Node],
        flows: Mapping[str, "FlowResult"],
        hour: float,
    ) -> ControlOutcome:
        """One controller pass over a snapshot; does not mutate anything."""
        outcome = ControlOutcome(commands=self.protection_commands(nodes, flows))
        by_id = {n.id: n for n in nodes}

        for controller in nodes:
            if controller.node_type != NodeType.PLANT_CONTROLLER:
                continue
            if not isinstance(controller.spec, ControllerSpec):
                continue
            for index, raw in enumerate(controller.spec.custom_logic):
                try:
                    rule = parse_rule(raw)
                    outcome.commands.extend(self.rule_commands(rule, by_id, hour))
                except RuleError as e:
                    logger.warning("Skipping rule %d on %s: %s", index, controller.display_name, e)
                    outcome.errors.append(str(e))
                except Exception as e:
                    logger.exception("Rule %d on %s failed", index, controller.display_name)
                    outcome.errors.append(f"{type(e).__name__}: {e}")

        return outcome

    async def run(
        self,
        nodes: Sequence[Node],
        flows: Mapping[str, "FlowResult"],
        hour: float,
    ) -> ControlOutcome:
        """Controller pass after the configured thinking delay."""
        if self.delay_s > 0:
            await asyncio.sleep(self.delay_s)
        return self.evaluate(nodes, flows, hour)


def apply_commands(
    nodes: Sequence[Node],
    commands: Sequence[SwitchCommand],
) -> Tuple[List[Node], bool]:
    """
    Apply commands in order and return the updated node list.

    Protection trips mark the device ``auto_tripped``; rule trips mark
    it ``manual_override``; any close clears both.

    Returns:
        (nodes, changed) where changed is True if any node differs
    """
    by_id: Dict[str, Node] = {n.id: n for n in nodes}
    for cmd in commands:
        node = by_id.get(cmd.node_id)
        if node is None:
            continue
        if cmd.is_on:
            updated = replace(node, is_on=True, auto_tripped=False, manual_override=False)
        elif cmd.source == CommandSource.PROTECTION_TRIP:
            updated = replace(node, is_on=False, auto_tripped=True, manual_override=False)
        else:
            updated = replace(node, is_on=False, auto_tripped=False, manual_override=True)
        by_id[cmd.node_id] = updated

    result = [by_id[n.id] for n in nodes]
    changed = any(new != old for new, old in zip(result, nodes))
    return result, changed

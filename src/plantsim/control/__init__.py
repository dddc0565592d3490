"""
Control Layer
=============

Decisions taken on top of the flow results:
- Protection state machine for breakers and distribution panels
- Rule controller (PLC) for interlocks, time schedules and auto trip/reset
"""

from .protection import ProtectionState, ResetPolicy, classify_device
from .rules import (
    ControlOutcome,
    InterlockRule,
    RuleController,
    SwitchCommand,
    TimeRule,
    apply_commands,
    parse_rule,
)

__all__ = [
    "ProtectionState",
    "ResetPolicy",
    "classify_device",
    "ControlOutcome",
    "InterlockRule",
    "RuleController",
    "SwitchCommand",
    "TimeRule",
    "apply_commands",
    "parse_rule",
]

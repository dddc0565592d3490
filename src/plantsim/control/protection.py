"""
Protection State Machine
========================

Classifies each protective device (breakers and distribution panels)
from its switch flags and what it can reach on the grid side.

The engine only signals: ``is_tripped`` when a device sees nothing but
dead grid connections, ``can_reset`` when it sees at least one healthy
one. Opening and re-closing is left to the rule controller, so the
topology never changes in the middle of a flow computation.

Who opened a device is kept in two flags on the node:
``manual_override`` (user or rule action) and ``auto_tripped``
(controller reacting to an outage). Re-closing a manually opened device
is a policy decision; see ``ResetPolicy``.
"""

from enum import Enum

from ..topology.equipment import Node
from ..topology.reachability import GridReach


class ProtectionState(Enum):
    """States of a protective device."""
    CLOSED_HEALTHY = "closed_healthy"
    OPEN_MANUAL = "open_manual"
    TRIPPED_OUTAGE = "tripped_outage"
    # Auto-tripped, healthy grid visible again: waiting for the controller to close
    CLOSED_RESET_ELIGIBLE = "closed_reset_eligible"


class ResetPolicy(Enum):
    """Which open devices the controller may re-close automatically."""
    AUTO_TRIPPED_ONLY = "auto_tripped_only"  # only devices the controller opened
    ANY_OFF = "any_off"                      # any open device, manual or not


def classify_device(node: Node, reach: GridReach) -> ProtectionState:
    """
    Current protection state of ``node``.

    Order matters: a manual opening wins over everything, then the
    outage condition, then an automatic opening waiting for a healthy
    grid to come back.
    """
    if not node.is_on and (node.manual_override or not node.auto_tripped):
        return ProtectionState.OPEN_MANUAL
    if reach.outage_only:
        return ProtectionState.TRIPPED_OUTAGE
    if not node.is_on:
        if reach.has_healthy:
            return ProtectionState.CLOSED_RESET_ELIGIBLE
        return ProtectionState.TRIPPED_OUTAGE
    return ProtectionState.CLOSED_HEALTHY


def should_reset(node: Node, can_reset: bool, policy: ResetPolicy) -> bool:
    """Whether the controller should re-close an open device."""
    if node.is_on or not can_reset:
        return False
    if policy == ResetPolicy.ANY_OFF:
        return True
    return node.auto_tripped and not node.manual_override

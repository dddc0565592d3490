"""
Solar Generation
================

Default generation when the caller does not supply a generation map:
a half-sine daylight curve between sunrise (06:00) and sunset (18:00),
scaled by each panel's nameplate.
"""

import math
from typing import Dict, Iterable, Union

import numpy as np

from ..topology.equipment import Node, NodeType, PanelSpec, DEFAULT_PANEL_WATTS

SUNRISE_HOUR = 6.0
SUNSET_HOUR = 18.0

ArrayLike = Union[float, np.ndarray]


def daylight_factor(hours: ArrayLike) -> ArrayLike:
    """
    Fraction of peak output at the given hour(s) of day.

    Accepts a scalar or an array of hours; zero outside daylight.
    """
    h = np.asarray(hours, dtype=float) % 24.0
    angle = math.pi * (h - SUNRISE_HOUR) / (SUNSET_HOUR - SUNRISE_HOUR)
    factor = np.where((h > SUNRISE_HOUR) & (h < SUNSET_HOUR), np.sin(angle), 0.0)
    factor = np.clip(factor, 0.0, 1.0)
    if factor.ndim == 0:
        return float(factor)
    return factor


def daily_profile(timestep_hours: float = 1.0) -> np.ndarray:
    """Daylight factor sampled over one day."""
    n = int(round(24.0 / timestep_hours))
    return daylight_factor(np.arange(n, dtype=float) * timestep_hours)


def default_generation(
    nodes: Iterable[Node],
    hour: float,
    performance_ratio: float = 1.0,
) -> Dict[str, float]:
    """
    Panel id -> kW for every panel at ``hour``.

    Args:
        nodes: Equipment; only panels are used
        hour: Hour of day (0-24)
        performance_ratio: System derate applied to nameplate output

    Returns:
        Generation map for the flow engine
    """
    factor = daylight_factor(hour)
    generation: Dict[str, float] = {}
    for node in nodes:
        if node.node_type != NodeType.PANEL:
            continue
        watts = node.spec.watts if isinstance(node.spec, PanelSpec) else DEFAULT_PANEL_WATTS
        generation[node.id] = (watts / 1000.0) * factor * performance_ratio
    return generation

"""
Resource Models
===============

Physical behaviour of plant equipment:
- Battery: SoC dynamics and charge/discharge limits
- Load: monthly units to average kW
- Solar: default daylight generation curve
"""

from .battery import (
    BatteryLimits,
    BatteryState,
    compute_battery_limits,
    integrate_battery,
    limits_for_network,
)
from .load import monthly_units_to_kw
from .solar import daily_profile, daylight_factor, default_generation

__all__ = [
    "BatteryLimits",
    "BatteryState",
    "compute_battery_limits",
    "integrate_battery",
    "limits_for_network",
    "monthly_units_to_kw",
    "daily_profile",
    "daylight_factor",
    "default_generation",
]

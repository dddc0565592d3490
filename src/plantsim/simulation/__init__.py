"""
Simulation Layer
================

Time stepping on top of the flow engine:
- Tick driver owning switch positions, battery energy and meter readings
- Per-tick history with energy totals and DataFrame export
"""

from .driver import PlantSimulator, TickReport
from .history import SimulationHistory, TickRecord

__all__ = [
    "PlantSimulator",
    "TickReport",
    "SimulationHistory",
    "TickRecord",
]

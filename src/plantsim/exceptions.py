"""Exception types raised by the simulator."""


class PlantSimError(Exception):
    """Base class for simulator errors."""


class RuleError(PlantSimError):
    """A controller rule is malformed or references unknown equipment."""


class SimulationBusyError(PlantSimError):
    """A tick was requested while the previous one is still running."""

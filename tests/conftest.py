"""Shared fixtures for building plant networks."""

import pytest

from plantsim.config import SimulationSettings
from plantsim.topology.equipment import Node, Wire


def _node(node_id, node_type, **fields):
    raw = {"id": node_id, "type": node_type}
    specs = fields.pop("specifications", None)
    if specs is not None:
        raw["specifications"] = specs
    raw.update(fields)
    return Node.from_dict(raw)


def _wire(a, b, kind="ac"):
    return Wire.from_dict({"id": f"{a}-{b}", "from": a, "to": b, "type": kind})


@pytest.fixture
def make_node():
    """Build a Node from editor-style fields."""
    return _node


@pytest.fixture
def make_wire():
    """Build a Wire between two node ids."""
    return _wire


@pytest.fixture
def fast_settings():
    """Settings with no controller delay and a short tick interval."""
    return SimulationSettings(controller_delay_s=0.0, tick_interval_s=0.01)


@pytest.fixture
def grid_panel_load():
    """Scenario A: grid, net meter and breaker feeding one panel and one load."""
    nodes = [
        _node("grid", "grid"),
        _node("nm", "net_meter"),
        _node("vcb", "vcb"),
        _node("p1", "panel", specifications={"watts": 550}),
        _node("load", "load", specifications={"units": 0}),
    ]
    wires = [
        _wire("grid", "nm"),
        _wire("nm", "vcb"),
        _wire("vcb", "p1", "dc"),
        _wire("vcb", "load"),
    ]
    return nodes, wires


@pytest.fixture
def outage_network():
    """Scenario B: grid in outage, breaker, then a load island behind an inverter."""
    nodes = [
        _node("grid", "grid", isOutage=True),
        _node("vcb", "vcb"),
        _node("inv", "inverter"),
        _node("load", "load", specifications={"units": 720}),
        _node("p1", "panel", specifications={"watts": 550}),
    ]
    wires = [
        _wire("grid", "vcb"),
        _wire("vcb", "inv"),
        _wire("inv", "load"),
        _wire("inv", "p1", "dc"),
    ]
    return nodes, wires


@pytest.fixture
def battery_island():
    """Off-grid battery feeding a 1 kW load."""
    nodes = [
        _node("bat", "battery", specifications={"capacity_kwh": 5, "dod": 80, "soc": 50}),
        _node("load", "load"),
    ]
    wires = [_wire("bat", "load")]
    return nodes, wires

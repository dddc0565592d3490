"""Tests for node and wire parsing."""

import math

import pytest

from plantsim.topology.equipment import (
    BatterySpec,
    ControllerSpec,
    GenericSpec,
    GridSpec,
    LoadSpec,
    Node,
    NodeType,
    PanelSpec,
    Wire,
    WireKind,
    as_float,
)


class TestAsFloat:

    @pytest.mark.parametrize("value", [None, "abc", True, float("nan"), float("inf"), [1]])
    def test_bad_values_fall_back(self, value):
        assert as_float(value, 7.0) == 7.0

    def test_numeric_strings_parse(self):
        assert as_float("2.5", 0.0) == 2.5
        assert as_float(3, 0.0) == 3.0


class TestNodeFromDict:

    def test_defaults(self):
        node = Node.from_dict({"id": "n1", "type": "inverter"})
        assert node.node_type == NodeType.INVERTER
        assert node.is_on is True
        assert node.is_outage is False
        assert node.manual_override is False
        assert node.auto_tripped is False
        assert isinstance(node.spec, GenericSpec)

    def test_only_explicit_false_switches_off(self):
        assert Node.from_dict({"id": "a", "type": "vcb", "isOn": None}).is_on is True
        assert Node.from_dict({"id": "a", "type": "vcb", "isOn": False}).is_on is False
        assert Node.from_dict({"id": "a", "type": "vcb", "is_on": False}).is_on is False

    def test_unknown_type_is_other(self):
        node = Node.from_dict({"id": "x", "type": "flux_capacitor"})
        assert node.node_type == NodeType.OTHER
        assert not node.is_protective

    def test_protective_types(self):
        for kind in ("vcb", "acb", "lt_panel", "ht_panel", "acdb"):
            assert Node.from_dict({"id": kind, "type": kind}).is_protective
        assert not Node.from_dict({"id": "t", "type": "transformer"}).is_protective

    def test_geometry_aliases(self):
        node = Node.from_dict({"id": "p", "type": "panel", "x": 1, "y": 2, "w": 3, "h": 4})
        assert (node.x, node.y, node.width, node.height) == (1.0, 2.0, 3.0, 4.0)

    def test_label_used_for_display(self):
        assert Node.from_dict({"id": "vcb1", "type": "vcb", "label": "Main"}).display_name == "Main"
        assert Node.from_dict({"id": "vcb1", "type": "vcb"}).display_name == "vcb1"

    def test_grid_switched_off_is_not_healthy(self):
        node = Node.from_dict({"id": "g", "type": "grid", "isOn": False})
        assert node.is_grid
        assert not node.is_healthy_grid


class TestSpecs:

    def test_panel_default_watts(self):
        node = Node.from_dict({"id": "p", "type": "panel"})
        assert isinstance(node.spec, PanelSpec)
        assert node.spec.watts == 550.0
        assert node.spec.peak_kw == pytest.approx(0.55)

    def test_panel_bad_watts(self):
        node = Node.from_dict({"id": "p", "type": "panel", "specifications": {"watts": "lots"}})
        assert node.spec.watts == 550.0

    def test_battery_defaults(self):
        node = Node.from_dict({"id": "b", "type": "battery"})
        spec = node.spec
        assert isinstance(spec, BatterySpec)
        assert spec.capacity_kwh == 5.0
        assert spec.dod == 80.0
        assert spec.min_soc == pytest.approx(20.0)
        assert spec.rated_discharge_kw == pytest.approx(2.5)
        assert spec.rated_charge_kw == pytest.approx(2.5)
        assert spec.initial_soc == 50.0

    def test_battery_keys_at_top_level(self):
        node = Node.from_dict({"id": "b", "type": "bess", "capacity_kwh": 20, "soc": 75})
        assert node.is_battery
        assert node.spec.capacity_kwh == 20.0
        assert node.spec.initial_soc == 75.0

    def test_battery_spec_bag_wins(self):
        node = Node.from_dict({
            "id": "b", "type": "battery", "capacity_kwh": 20,
            "specifications": {"capacity_kwh": 8},
        })
        assert node.spec.capacity_kwh == 8.0

    def test_battery_power_rating(self):
        node = Node.from_dict({
            "id": "b", "type": "battery",
            "specifications": {"capacity_kwh": 10, "power_kw": 3, "max_charge_kw": 1},
        })
        assert node.spec.rated_discharge_kw == 3.0
        assert node.spec.rated_charge_kw == 1.0

    def test_battery_soc_clamped(self):
        node = Node.from_dict({"id": "b", "type": "battery", "specifications": {"soc": 140}})
        assert node.spec.initial_soc == 100.0

    def test_unknown_keys_kept(self):
        node = Node.from_dict({
            "id": "b", "type": "battery",
            "specifications": {"capacity_kwh": 8, "chemistry": "LFP"},
        })
        assert node.spec.extra == {"chemistry": "LFP"}

    def test_load_units(self):
        node = Node.from_dict({"id": "l", "type": "load", "specifications": {"units": "1440"}})
        assert isinstance(node.spec, LoadSpec)
        assert node.spec.units == 1440.0

    def test_grid_outage_hours(self):
        node = Node.from_dict({
            "id": "g", "type": "grid",
            "specifications": {"outage_hours": [13, "14", 25, -1, "x"]},
        })
        assert isinstance(node.spec, GridSpec)
        assert node.spec.outage_hours == frozenset({13, 14, 1})

    def test_controller_rules(self):
        rules = [{"type": "Time", "targetId": "vcb", "val": 1, "val2": 2, "action": "Trip"}, "junk"]
        node = Node.from_dict({"id": "plc", "type": "master_plc",
                               "specifications": {"custom_logic": rules}})
        assert node.node_type == NodeType.PLANT_CONTROLLER
        assert isinstance(node.spec, ControllerSpec)
        assert len(node.spec.custom_logic) == 1


class TestWireFromDict:

    def test_fields(self):
        wire = Wire.from_dict({
            "id": "w1", "from": "a", "to": "b", "type": "DC",
            "specifications": {"size": "4", "length": 12, "material": "Cu"},
        })
        assert wire.kind == WireKind.DC
        assert wire.size_mm2 == 4.0
        assert wire.length_m == 12.0
        assert wire.material == "Cu"

    def test_missing_endpoint(self):
        wire = Wire.from_dict({"id": "w", "from": "a"})
        assert wire.to_id == ""
        assert wire.kind == WireKind.AC

    def test_nan_size_defaults(self):
        wire = Wire.from_dict({"id": "w", "from": "a", "to": "b",
                               "specifications": {"size": float("nan")}})
        assert not math.isnan(wire.size_mm2)

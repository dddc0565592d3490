"""Tests for settings and case-file loading."""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from plantsim.config import PlantCase, SimulationSettings, load_case_file
from plantsim.topology.equipment import NodeType

EXAMPLE_CASE = Path(__file__).resolve().parent.parent / "examples" / "rooftop_plant.json"


class TestSimulationSettings:

    def test_defaults(self):
        s = SimulationSettings()
        assert s.dt_hours == 0.25
        assert s.start_hour == 6.0
        assert s.priority == ["Solar", "Battery", "Grid"]
        assert s.touch_tolerance == 0.2
        assert s.reset_policy == "auto_tripped_only"

    def test_priority_normalised(self):
        assert SimulationSettings(priority=["grid", " solar "]).priority == ["Grid", "Solar"]

    def test_priority_subset_allowed(self):
        assert SimulationSettings(priority=[]).priority == []

    @pytest.mark.parametrize("priority", [["Wind"], ["Solar", "solar"]])
    def test_priority_rejected(self, priority):
        with pytest.raises(ValidationError):
            SimulationSettings(priority=priority)

    @pytest.mark.parametrize("field,value", [
        ("dt_hours", 0),
        ("start_hour", 24),
        ("performance_ratio", 1.5),
        ("reset_policy", "sometimes"),
    ])
    def test_out_of_range(self, field, value):
        with pytest.raises(ValidationError):
            SimulationSettings(**{field: value})


class TestPlantCase:

    def test_nodes_need_ids(self):
        with pytest.raises(ValidationError):
            PlantCase(nodes=[{"type": "grid"}])

    def test_build(self):
        case = PlantCase(
            nodes=[{"id": "g", "type": "grid"}, {"id": "l", "type": "load"}],
            wires=[{"id": "w", "from": "g", "to": "l"}],
        )
        nodes = case.build_nodes()
        assert [n.node_type for n in nodes] == [NodeType.GRID, NodeType.LOAD]
        assert case.build_wires()[0].to_id == "l"

    def test_loose_node_fields_accepted(self):
        case = PlantCase(nodes=[{"id": "p", "type": "panel", "specifications": {"watts": "?"}}])
        assert case.build_nodes()[0].spec.watts == 550.0


class TestLoadCaseFile:

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_case_file(tmp_path / "nope.json")

    def test_round_trip(self, tmp_path):
        path = tmp_path / "case.json"
        path.write_text(json.dumps({
            "name": "tiny",
            "settings": {"dt_hours": 1.0},
            "nodes": [{"id": "g", "type": "grid"}],
        }))
        case = load_case_file(path)
        assert case.name == "tiny"
        assert case.settings.dt_hours == 1.0
        assert case.wires == []

    def test_example_case(self):
        case = load_case_file(EXAMPLE_CASE)
        nodes = {n.id: n for n in case.build_nodes()}
        assert nodes["grid"].spec.outage_hours == frozenset({13, 14})
        assert nodes["bat"].spec.capacity_kwh == 10.0
        assert len(nodes["plc"].spec.custom_logic) == 2

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Literal

from pydantic import BaseModel, Field, PositiveFloat, confloat, field_validator

from .flow.balancer import SourceType
from .topology.equipment import Node, Wire


class SimulationSettings(BaseModel):
    dt_hours: PositiveFloat = Field(0.25, description="Simulated hours advanced per tick.")
    start_hour: confloat(ge=0, lt=24) = Field(6.0, description="Hour of day the run starts at.")
    priority: List[str] = Field(
        default_factory=lambda: [s.value for s in SourceType],
        description="Order in which Solar / Battery / Grid serve load (any subset).",
    )
    touch_tolerance: confloat(ge=0) = Field(
        0.2, description="Gap (canvas units) at which panels still count as touching."
    )
    performance_ratio: confloat(gt=0, le=1) = Field(
        1.0, description="Derate applied to the default daylight generation curve."
    )
    hours_per_month: PositiveFloat = Field(720.0, description="Converts monthly load units to kW.")
    nominal_load_kw: confloat(ge=0) = Field(
        1.0, description="Demand assumed for loads that declare no consumption."
    )
    controller_delay_s: confloat(ge=0) = Field(0.5, description="PLC thinking time per tick (s).")
    tick_interval_s: confloat(ge=0) = Field(1.0, description="Wall-clock pause between ticks (s).")
    reset_policy: Literal["auto_tripped_only", "any_off"] = Field(
        "auto_tripped_only",
        description="Which open devices protection may re-close automatically.",
    )

    @field_validator("priority")
    @classmethod
    def _valid_priority(cls, value: List[str]) -> List[str]:
        names = []
        for item in value:
            try:
                names.append(SourceType(str(item).strip().title()).value)
            except ValueError:
                raise ValueError(f"Unknown source type in priority: {item!r}") from None
        if len(set(names)) != len(names):
            raise ValueError("priority must not repeat a source type")
        return names


class PlantCase(BaseModel):
    name: str = Field("Plant", description="Case name.")
    settings: SimulationSettings = Field(default_factory=SimulationSettings)
    nodes: List[Dict[str, Any]] = Field(default_factory=list, description="Editor objects.")
    wires: List[Dict[str, Any]] = Field(default_factory=list, description="Editor wires.")

    @field_validator("nodes")
    @classmethod
    def _nodes_have_ids(cls, value: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        for i, raw in enumerate(value):
            if raw.get("id") in (None, ""):
                raise ValueError(f"node {i} has no id")
        return value

    def build_nodes(self) -> List[Node]:
        return [Node.from_dict(raw) for raw in self.nodes]

    def build_wires(self) -> List[Wire]:
        return [Wire.from_dict(raw) for raw in self.wires]


def load_case_file(filepath: str | Path) -> PlantCase:
    """Load and validate a JSON case file."""
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Case file not found: {filepath}")
    data = json.loads(path.read_text())
    return PlantCase.model_validate(data)

"""
Simulation History
==================

Per-tick records of a run with aggregation and tabular export.
"""

from dataclasses import asdict, dataclass, field
from typing import Dict, List

import pandas as pd


@dataclass(frozen=True)
class TickRecord:
    """Plant-wide figures for one tick (power in kW)."""
    tick: int
    hour: float
    dt_hours: float
    solar_kw: float
    load_kw: float
    served_kw: float
    deficit_kw: float
    grid_import_kw: float
    grid_export_kw: float
    battery_discharge_kw: float
    battery_charge_kw: float
    islands: int
    tripped: List[str] = field(default_factory=list)
    soc: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Flat dictionary, one ``soc_<id>`` column per battery."""
        row = asdict(self)
        soc = row.pop("soc")
        row["tripped"] = ",".join(self.tripped)
        for battery_id, value in soc.items():
            row[f"soc_{battery_id}"] = value
        return row


class SimulationHistory:
    """Ordered list of tick records."""

    def __init__(self):
        self.records: List[TickRecord] = []

    def __len__(self) -> int:
        return len(self.records)

    def append(self, record: TickRecord) -> None:
        self.records.append(record)

    def to_dataframe(self) -> pd.DataFrame:
        """One row per tick."""
        if not self.records:
            return pd.DataFrame(columns=[f for f in TickRecord.__dataclass_fields__ if f != "soc"])
        return pd.DataFrame([r.to_dict() for r in self.records])

    def totals(self) -> dict:
        """
        Energy totals over the run (kWh).

        Returns:
            Dict with solar, load, served, unserved, grid import/export
            and battery charge/discharge energy
        """
        totals = {
            "solar_kwh": 0.0,
            "load_kwh": 0.0,
            "served_kwh": 0.0,
            "unserved_kwh": 0.0,
            "grid_import_kwh": 0.0,
            "grid_export_kwh": 0.0,
            "battery_discharge_kwh": 0.0,
            "battery_charge_kwh": 0.0,
        }
        for r in self.records:
            dt = r.dt_hours
            totals["solar_kwh"] += r.solar_kw * dt
            totals["load_kwh"] += r.load_kw * dt
            totals["served_kwh"] += r.served_kw * dt
            totals["unserved_kwh"] += r.deficit_kw * dt
            totals["grid_import_kwh"] += r.grid_import_kw * dt
            totals["grid_export_kwh"] += r.grid_export_kw * dt
            totals["battery_discharge_kwh"] += r.battery_discharge_kw * dt
            totals["battery_charge_kwh"] += r.battery_charge_kw * dt
        return totals

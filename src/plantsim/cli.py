from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict

from pydantic import ValidationError

from .config import load_case_file
from .simulation.driver import PlantSimulator


def flows_to_json(simulator: PlantSimulator) -> Dict[str, Any]:
    """Last flow map, battery SoC and meter readings as plain JSON data."""
    flows: Dict[str, Any] = {}
    if simulator.last_flow is not None:
        for node_id, flow in simulator.last_flow.flows.items():
            row = asdict(flow)
            state = row.pop("protection_state")
            row["protection_state"] = state.value if state is not None else None
            flows[node_id] = row
    return {
        "hour": simulator.hour,
        "ticks": simulator.tick_count,
        "flows": flows,
        "soc": {bid: st.soc for bid, st in simulator.battery_states.items()},
        "meters": dict(simulator.meter_readings),
        "totals": simulator.history.totals(),
    }


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Step a solar plant network and report power flows."
    )
    parser.add_argument("case", help="Path to plant case JSON.")
    parser.add_argument(
        "--steps",
        "-n",
        type=int,
        default=96,
        help="Number of ticks to simulate.",
    )
    parser.add_argument(
        "--output",
        "-o",
        default="flows.json",
        help="Path to write the final flows, SoC and meter readings.",
    )
    parser.add_argument(
        "--history",
        help="Optional path to write the per-tick history as CSV.",
    )
    parser.add_argument(
        "--realtime",
        action="store_true",
        help="Keep the controller thinking delay instead of running flat out.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity.",
    )

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.steps < 0:
        print("Input error: --steps must be >= 0", file=sys.stderr)
        return 2

    try:
        case = load_case_file(args.case)
    except (FileNotFoundError, json.JSONDecodeError) as e:
        print(f"Input error: {e}", file=sys.stderr)
        return 2
    except ValidationError as e:
        print("Case validation error:", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    if not args.realtime:
        case.settings = case.settings.model_copy(update={"controller_delay_s": 0.0})

    simulator = PlantSimulator.from_case(case)
    asyncio.run(simulator.run(args.steps))

    Path(args.output).write_text(json.dumps(flows_to_json(simulator), indent=2))
    if args.history:
        simulator.history.to_dataframe().to_csv(args.history, index=False)

    # Minimal console summary
    t = simulator.history.totals()
    print(f"Case: {case.name} ({len(case.nodes)} nodes, {len(case.wires)} wires)")
    print(f"Ticks: {simulator.tick_count}, clock now {simulator.hour:05.2f} h")
    print(f"Solar: {t['solar_kwh']:.2f} kWh, Load: {t['load_kwh']:.2f} kWh, "
          f"Unserved: {t['unserved_kwh']:.2f} kWh")
    print(f"Grid import: {t['grid_import_kwh']:.2f} kWh, export: {t['grid_export_kwh']:.2f} kWh")
    for battery_id, state in simulator.battery_states.items():
        print(f"Battery {battery_id}: SoC {state.soc:.1f}%")
    for meter_id, reading in simulator.meter_readings.items():
        print(f"Meter {meter_id}: {reading:.2f} kWh")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())

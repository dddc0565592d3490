"""
Equipment Model
===============

Nodes (equipment instances) and wires as the engine sees them.

Specification bags coming from the editor are free-form; each node
type gets its own typed spec with defaults, and unknown keys are kept
in ``extra`` for forward compatibility. Parsing never raises on bad
values: non-numeric or missing fields fall back to the defaults below.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple, Union
from enum import Enum
import math


class NodeType(Enum):
    """Equipment types known to the engine."""
    PANEL = "panel"
    INVERTER = "inverter"
    BATTERY = "battery"
    BESS = "bess"
    LOAD = "load"
    GRID = "grid"
    NET_METER = "net_meter"
    GROSS_METER = "gross_meter"
    VCB = "vcb"
    ACB = "acb"
    LT_PANEL = "lt_panel"
    HT_PANEL = "ht_panel"
    ACDB = "acdb"
    TRANSFORMER = "transformer"
    PLANT_CONTROLLER = "master_plc"
    OTHER = "other"

    @classmethod
    def _missing_(cls, value):
        return cls.OTHER


class WireKind(Enum):
    """Electrical class of a wire."""
    DC = "dc"
    AC = "ac"
    EARTH = "earth"

    @classmethod
    def _missing_(cls, value):
        return cls.AC


# Breakers and distribution panels: can be opened, act as cut points
PROTECTIVE_TYPES: FrozenSet[NodeType] = frozenset({
    NodeType.VCB,
    NodeType.ACB,
    NodeType.LT_PANEL,
    NodeType.HT_PANEL,
    NodeType.ACDB,
})

BATTERY_TYPES: FrozenSet[NodeType] = frozenset({NodeType.BATTERY, NodeType.BESS})

METER_TYPES: FrozenSet[NodeType] = frozenset({NodeType.NET_METER, NodeType.GROSS_METER})


DEFAULT_PANEL_WATTS = 550.0
DEFAULT_BATTERY_CAPACITY_KWH = 5.0
DEFAULT_BATTERY_DOD = 80.0
DEFAULT_BATTERY_SOC = 50.0


def as_float(value: Any, default: float) -> float:
    """Coerce an editor value to float, falling back to ``default``."""
    if value is None or isinstance(value, bool):
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(result) or math.isinf(result):
        return default
    return result


def _pick(raw: Mapping[str, Any], *keys: str) -> Any:
    """First present key from the spec bag, then from the node itself."""
    specs = raw.get("specifications")
    if not isinstance(specs, Mapping):
        specs = {}
    for source in (specs, raw):
        for key in keys:
            if key in source and source[key] is not None:
                return source[key]
    return None


def _extra(raw: Mapping[str, Any], known: Tuple[str, ...]) -> Dict[str, Any]:
    specs = raw.get("specifications")
    if not isinstance(specs, Mapping):
        return {}
    return {k: v for k, v in specs.items() if k not in known}


@dataclass(frozen=True)
class GenericSpec:
    """Spec for equipment the engine does not read parameters from."""
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "GenericSpec":
        return cls(extra=_extra(raw, ()))


@dataclass(frozen=True)
class PanelSpec:
    """Solar panel nameplate."""
    watts: float = DEFAULT_PANEL_WATTS
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def peak_kw(self) -> float:
        return self.watts / 1000.0

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "PanelSpec":
        watts = max(0.0, as_float(_pick(raw, "watts"), DEFAULT_PANEL_WATTS))
        return cls(watts=watts, extra=_extra(raw, ("watts",)))


@dataclass(frozen=True)
class BatterySpec:
    """
    Battery parameters.

    Attributes:
        capacity_kwh: Usable nameplate energy
        dod: Depth of discharge (%), the reserve floor is 100 - dod
        max_discharge_kw: Rated discharge power (None = capacity / 2)
        max_charge_kw: Rated charge power (None = capacity / 2)
        initial_soc: State of charge (%) when a run starts
    """
    capacity_kwh: float = DEFAULT_BATTERY_CAPACITY_KWH
    dod: float = DEFAULT_BATTERY_DOD
    max_discharge_kw: Optional[float] = None
    max_charge_kw: Optional[float] = None
    initial_soc: float = DEFAULT_BATTERY_SOC
    extra: Dict[str, Any] = field(default_factory=dict)

    _KEYS = ("capacity_kwh", "capKwh", "dod", "max_discharge_kw",
             "max_charge_kw", "power_kw", "soc", "initial_soc")

    @property
    def min_soc(self) -> float:
        """Reserve floor (%)."""
        return 100.0 - self.dod

    @property
    def rated_discharge_kw(self) -> float:
        if self.max_discharge_kw is None:
            return self.capacity_kwh / 2.0
        return self.max_discharge_kw

    @property
    def rated_charge_kw(self) -> float:
        if self.max_charge_kw is None:
            return self.capacity_kwh / 2.0
        return self.max_charge_kw

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "BatterySpec":
        capacity = max(0.0, as_float(_pick(raw, "capacity_kwh", "capKwh"),
                                     DEFAULT_BATTERY_CAPACITY_KWH))
        dod = min(100.0, max(0.0, as_float(_pick(raw, "dod"), DEFAULT_BATTERY_DOD)))

        power = _pick(raw, "power_kw")
        power_kw = None if power is None else max(0.0, as_float(power, capacity / 2.0))

        def _rate(key: str) -> Optional[float]:
            value = _pick(raw, key)
            if value is None:
                return power_kw
            return max(0.0, as_float(value, capacity / 2.0))

        soc = min(100.0, max(0.0, as_float(_pick(raw, "soc", "initial_soc"),
                                           DEFAULT_BATTERY_SOC)))
        return cls(
            capacity_kwh=capacity,
            dod=dod,
            max_discharge_kw=_rate("max_discharge_kw"),
            max_charge_kw=_rate("max_charge_kw"),
            initial_soc=soc,
            extra=_extra(raw, cls._KEYS),
        )


@dataclass(frozen=True)
class LoadSpec:
    """Consumer declared in monthly units (kWh / month)."""
    units: float = 0.0
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "LoadSpec":
        units = max(0.0, as_float(_pick(raw, "units"), 0.0))
        return cls(units=units, extra=_extra(raw, ("units",)))


@dataclass(frozen=True)
class GridSpec:
    """Utility connection with an optional daily outage schedule."""
    outage_hours: FrozenSet[int] = frozenset()
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "GridSpec":
        hours = _pick(raw, "outage_hours", "outageHours")
        parsed = set()
        if isinstance(hours, (list, tuple, set, frozenset)):
            for h in hours:
                value = as_float(h, -1.0)
                if value >= 0:
                    parsed.add(int(value) % 24)
        return cls(outage_hours=frozenset(parsed),
                   extra=_extra(raw, ("outage_hours", "outageHours")))


@dataclass(frozen=True)
class ControllerSpec:
    """Plant controller holding user-authored rules (raw dicts)."""
    custom_logic: Tuple[Dict[str, Any], ...] = ()
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "ControllerSpec":
        rules = _pick(raw, "custom_logic")
        if not isinstance(rules, (list, tuple)):
            rules = ()
        return cls(custom_logic=tuple(r for r in rules if isinstance(r, Mapping)),
                   extra=_extra(raw, ("custom_logic",)))


EquipmentSpec = Union[GenericSpec, PanelSpec, BatterySpec, LoadSpec, GridSpec, ControllerSpec]

_SPEC_TYPES = {
    NodeType.PANEL: PanelSpec,
    NodeType.BATTERY: BatterySpec,
    NodeType.BESS: BatterySpec,
    NodeType.LOAD: LoadSpec,
    NodeType.GRID: GridSpec,
    NodeType.PLANT_CONTROLLER: ControllerSpec,
}


@dataclass(frozen=True)
class Node:
    """
    Equipment instance on the plant canvas.

    ``is_on`` is the switch position. ``manual_override`` and
    ``auto_tripped`` record who opened it: a user or rule action, or
    the controller reacting to a grid outage.
    """
    id: str
    node_type: NodeType
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    is_on: bool = True
    is_outage: bool = False
    manual_override: bool = False
    auto_tripped: bool = False
    label: str = ""
    spec: EquipmentSpec = field(default_factory=GenericSpec)

    @property
    def is_protective(self) -> bool:
        return self.node_type in PROTECTIVE_TYPES

    @property
    def is_battery(self) -> bool:
        return self.node_type in BATTERY_TYPES

    @property
    def is_grid(self) -> bool:
        return self.node_type == NodeType.GRID

    @property
    def is_healthy_grid(self) -> bool:
        """Grid node that can supply power (no outage, not switched off)."""
        return self.is_grid and not self.is_outage and self.is_on

    @property
    def display_name(self) -> str:
        return self.label or self.id

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Node":
        """Build a node from an editor object dict."""
        node_type = NodeType(str(raw.get("type", "other")).lower())
        spec_cls = _SPEC_TYPES.get(node_type, GenericSpec)
        return cls(
            id=str(raw["id"]),
            node_type=node_type,
            x=as_float(raw.get("x"), 0.0),
            y=as_float(raw.get("y"), 0.0),
            width=as_float(raw.get("w", raw.get("width")), 0.0),
            height=as_float(raw.get("h", raw.get("height")), 0.0),
            is_on=raw.get("isOn", raw.get("is_on")) is not False,
            is_outage=bool(raw.get("isOutage", raw.get("is_outage", False))),
            manual_override=bool(raw.get("manualOverride", False)),
            auto_tripped=bool(raw.get("autoTripped", False)),
            label=str(raw.get("label") or ""),
            spec=spec_cls.from_raw(raw),
        )


@dataclass(frozen=True)
class Wire:
    """
    Connection between two nodes.

    Attributes:
        id: Wire identifier
        from_id: Node id at one end
        to_id: Node id at the other end
        kind: DC, AC or earth
        size_mm2: Conductor cross-section
        length_m: Run length
        material: Conductor material
    """
    id: str
    from_id: str
    to_id: str
    kind: WireKind = WireKind.AC
    size_mm2: Optional[float] = None
    length_m: Optional[float] = None
    material: str = ""

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Wire":
        specs = raw.get("specifications")
        if not isinstance(specs, Mapping):
            specs = {}
        size = specs.get("size_mm2", specs.get("size"))
        length = specs.get("length_m", specs.get("length"))
        return cls(
            id=str(raw.get("id", f"{raw.get('from')}-{raw.get('to')}")),
            from_id="" if raw.get("from") is None else str(raw["from"]),
            to_id="" if raw.get("to") is None else str(raw["to"]),
            kind=WireKind(str(raw.get("type", "ac")).lower()),
            size_mm2=None if size is None else as_float(size, 0.0),
            length_m=None if length is None else as_float(length, 0.0),
            material=str(specs.get("material") or ""),
        )

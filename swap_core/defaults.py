"""Utilities to load scenario presets and turn flat input records into scenarios."""
from __future__ import annotations

import copy
import json
import logging
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping, Type, TypeVar

from .models import AccountingPolicy, CapitalCostPolicy, ScenarioInput, VehicleSpec

logger = logging.getLogger(__name__)

_PACKAGE_ROOT = Path(__file__).resolve().parent
_DEFAULTS_PATH = _PACKAGE_ROOT.parent / "data" / "processed" / "defaults_by_segment.json"

VEHICLE_FIELDS = (
    "price",
    "fuel_consumption_per_100",
    "annual_maintenance",
    "annual_tax",
    "depreciation_rate_pct",
)
# Champs optionnels : absents ou None -> 0 / False
OPTIONAL_RATES = ("inflation_pct", "discount_rate_pct", "capital_opportunity_rate_pct")
OPTIONAL_FLAGS = ("risk_grows_with_age", "risk_grows_with_mileage")

E = TypeVar("E", bound=Enum)


@lru_cache(maxsize=None)
def _load_defaults_cached(path_str: str) -> Dict[str, Any]:
    path = Path(path_str)
    if not path.exists():
        raise FileNotFoundError(f"Defaults file not found: {path}")
    logger.debug("Loading scenario defaults from %s", path)
    with path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def load_defaults_by_segment(path: str | Path | None = None) -> Dict[str, Any]:
    """Return the presets file content (``scenario`` + ``segments``).

    Parameters
    ----------
    path:
        Optional path to the JSON file. When omitted, the project-level file
        located under ``data/processed/defaults_by_segment.json`` is used.

    Returns
    -------
    dict
        A *deep copy* of the defaults structure so callers can manipulate the
        returned mapping without mutating the cached data.
    """

    resolved_path = Path(path) if path is not None else _DEFAULTS_PATH
    data = _load_defaults_cached(str(resolved_path))
    return copy.deepcopy(data)


def _normalize_segment(segments: Mapping[str, Any], segment: str) -> str:
    lookup = segment.lower()
    for key in segments:
        if key.lower() == lookup:
            return key
    raise KeyError(f"Unknown vehicle segment '{segment}' (available: {', '.join(segments)})")


def get_defaults(segment: str, defaults: Mapping[str, Any] | None = None) -> Dict[str, Any]:
    """Return the ``{"old": ..., "new": ...}`` vehicle presets of a segment (case insensitive)."""

    defaults = defaults or load_defaults_by_segment()
    segments = defaults["segments"]
    key = _normalize_segment(segments, segment)
    return copy.deepcopy(segments[key])


def apply_defaults(
    record: MutableMapping[str, Any],
    vehicle_defaults: Mapping[str, Any],
    *,
    side: str,
) -> None:
    """Populate a flat record with ``<side>_<field>`` values.

    Helper mainly used by the Streamlit app when pre-filling forms.
    """

    if side not in ("old", "new"):
        raise ValueError(f"side must be 'old' or 'new', got {side!r}")
    for name in VEHICLE_FIELDS:
        record[f"{side}_{name}"] = float(vehicle_defaults[name])


def flat_defaults(segment: str, defaults: Mapping[str, Any] | None = None) -> Dict[str, Any]:
    """Full flat record (global scenario + both vehicles) for a segment."""

    defaults = defaults or load_defaults_by_segment()
    record: Dict[str, Any] = dict(defaults["scenario"])
    pair = get_defaults(segment, defaults)
    apply_defaults(record, pair["old"], side="old")
    apply_defaults(record, pair["new"], side="new")
    return record


def _ensure_enum(enum_cls: Type[E], value: Any) -> E:
    """Coerce value into enum_cls from a member, its value or its name."""
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.lower())
        except ValueError:
            pass
        try:
            return enum_cls[value.upper()]
        except KeyError:
            pass
    raise TypeError(f"Invalid {enum_cls.__name__} value: {value!r}")


def _required(record: Mapping[str, Any], name: str) -> Any:
    try:
        value = record[name]
    except KeyError as exc:
        raise KeyError(f"Missing scenario field '{name}'") from exc
    if value is None:
        raise KeyError(f"Missing scenario field '{name}'")
    return value


def _vehicle_from_record(record: Mapping[str, Any], side: str) -> VehicleSpec:
    return VehicleSpec(**{name: float(_required(record, f"{side}_{name}")) for name in VEHICLE_FIELDS})


def scenario_from_mapping(record: Mapping[str, Any]) -> ScenarioInput:
    """Build a :class:`ScenarioInput` from a flat record.

    Optional rates default to 0, optional risk flags to ``False`` and
    ``extra_capital`` to 0. Policies may be given as enum members, values
    or names; when absent the canonical policies are used.
    """

    years = _required(record, "years")
    scenario = ScenarioInput(
        years=int(years),
        mileage_per_year=float(_required(record, "mileage_per_year")),
        fuel_price_per_unit=float(_required(record, "fuel_price_per_unit")),
        breakdown_probability_pct=float(_required(record, "breakdown_probability_pct")),
        repair_cost=float(_required(record, "repair_cost")),
        current_odometer=float(_required(record, "current_odometer")),
        overhaul_interval_distance=float(_required(record, "overhaul_interval_distance")),
        old=_vehicle_from_record(record, "old"),
        new=_vehicle_from_record(record, "new"),
        extra_capital=float(record.get("extra_capital") or 0.0),
        **{name: float(record.get(name) or 0.0) for name in OPTIONAL_RATES},
        **{name: bool(record.get(name) or False) for name in OPTIONAL_FLAGS},
    )
    if record.get("accounting_policy") is not None:
        scenario.accounting_policy = _ensure_enum(AccountingPolicy, record["accounting_policy"])
    if record.get("capital_cost_policy") is not None:
        scenario.capital_cost_policy = _ensure_enum(CapitalCostPolicy, record["capital_cost_policy"])
    return scenario

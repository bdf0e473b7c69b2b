# swap_core/cashflows.py
from __future__ import annotations
import math
from typing import Any, Iterable, List, Tuple

import numpy as np

from .models import CapitalCostPolicy, VehicleSpec

# Croissance du risque de panne (hypothèses produit)
RISK_AGE_GROWTH = 1.5                 # x1.5 par année de vieillissement
RISK_MILEAGE_GROWTH_PER_100K = 0.2    # +20 % par tranche de 100'000 km


# ---------- helpers ----------

def _as_float(x: Any) -> float:
    """Defensive cast to float, raising a clear error if a placeholder (e.g., Ellipsis) slipped in."""
    if x is ...:
        raise TypeError("Found Ellipsis (...) where a number was expected. Check defaults/inputs.")
    return float(x)


def pct(x: Any) -> float:
    """Pourcentage -> décimal ; None compte comme 0."""
    if x is None:
        return 0.0
    return _as_float(x) / 100.0


# ---------- FACTEURS INFLATION / ACTUALISATION ----------

def inflation_factor(rate: float, year: int) -> np.float64:
    """Coûts exprimés en « monnaie année 1 » : (1+i)^(t-1), t=1 -> facteur 1."""
    return np.power(np.float64(1.0) + _as_float(rate), year - 1)


def discount_factor(rate: float, year: int) -> np.float64:
    """(1+r)^t ; division par ce facteur = valeur actuelle en t=0."""
    return np.power(np.float64(1.0) + _as_float(rate), year)


def pv_weights(inflation: float, discount: float, years: int) -> np.ndarray:
    """
    Poids infl_t / disc_t pour t = 1..years.
    sum(poids) * coût_base = valeur actuelle d'un coût annuel constant en monnaie année 1.
    """
    if years <= 0:
        return np.zeros(0)
    t = np.arange(1, years + 1, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        return np.power(1.0 + _as_float(inflation), t - 1) / np.power(1.0 + _as_float(discount), t)


def geometric_sum(q: float, n: int) -> float:
    """sum_{k=0}^{n-1} q^k, closed form (n terms when q == 1)."""
    if n <= 0:
        return 0.0
    q = _as_float(q)
    if q == 1.0:
        return float(n)
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        return float((np.float64(1.0) - np.power(np.float64(q), n)) / (np.float64(1.0) - q))


# ---------- ÉNERGIE & OPEX ----------

def annual_fuel_cost(km: float, l_per_100: float, fuel_price_per_l: float) -> float:
    """(L/100km) * km * prix/L"""
    return _as_float((_as_float(km) / 100.0) * _as_float(l_per_100) * _as_float(fuel_price_per_l))


def operating_baseline(spec: VehicleSpec, km: float, fuel_price_per_l: float) -> float:
    """Carburant + maintenance + taxe, en monnaie année 1 (hors risque et révisions)."""
    fuel = annual_fuel_cost(km, spec.fuel_consumption_per_100, fuel_price_per_l)
    return _as_float(fuel + _as_float(spec.annual_maintenance) + _as_float(spec.annual_tax))


# ---------- RISQUE DE PANNE ----------

def breakdown_probability(
    probability_pct: float,
    year: int,
    odometer: float,
    grows_with_age: bool = False,
    grows_with_mileage: bool = False,
) -> float:
    """
    Probabilité annuelle de panne (0..1) pour l'année t (1-based).
    - âge : x1.5^(t-1)
    - kilométrage : x(1 + 0.2 * odo/100'000), odomètre en début d'année
    Plafonnée à 100 %.
    """
    p = pct(probability_pct)
    # p == 0 reste 0 même si la croissance déborde en inf
    if grows_with_age and p != 0.0:
        with np.errstate(over="ignore"):
            p = float(p * np.power(np.float64(RISK_AGE_GROWTH), year - 1))
    if grows_with_mileage:
        p *= 1.0 + RISK_MILEAGE_GROWTH_PER_100K * (_as_float(odometer) / 100_000.0)
    return min(p, 1.0)


def breakdown_risk_cost(
    probability_pct: float,
    repair_cost: float,
    year: int,
    odometer: float,
    grows_with_age: bool = False,
    grows_with_mileage: bool = False,
) -> float:
    """Espérance du coût de réparation non planifiée (monnaie année 1, non inflationnée)."""
    p = breakdown_probability(probability_pct, year, odometer, grows_with_age, grows_with_mileage)
    return _as_float(p * _as_float(repair_cost))


# ---------- RÉVISIONS MAJEURES ----------

def overhauls_triggered(prev_odometer: float, new_odometer: float, interval: float) -> int:
    """Nombre de multiples de l'intervalle franchis entre deux relevés d'odomètre."""
    interval = _as_float(interval)
    return int(math.floor(_as_float(new_odometer) / interval) - math.floor(_as_float(prev_odometer) / interval))


def overhaul_schedule(start_odometer: float, increments: Iterable[float], interval: float) -> List[int]:
    """
    Révisions déclenchées par année pour une suite de kilométrages annuels.
    La somme ne dépend que de l'odomètre final : floor(fin/int) - floor(début/int).
    """
    out: List[int] = []
    odo = _as_float(start_odometer)
    for km in increments:
        prev = odo
        odo += _as_float(km)
        out.append(overhauls_triggered(prev, odo, interval))
    return out


# ---------- VALEUR RÉSIDUELLE & CAPITAL ----------

def residual_series(price: float, depreciation_rate_pct: float, years: int) -> List[float]:
    """Valeur résiduelle t = 0..years, amortissement dégressif (prix à t=0)."""
    keep = 1.0 - pct(depreciation_rate_pct)
    value = _as_float(price)
    out = [value]
    for _ in range(max(0, years)):
        value *= keep
        out.append(value)
    return out


def capital_charges(
    old_value_start: float,
    new_value_start: float,
    rate: float,
    policy: CapitalCostPolicy = CapitalCostPolicy.SYMMETRIC,
) -> Tuple[float, float]:
    """
    Coût d'opportunité du capital immobilisé pour l'année (ancien, nouveau).
    SYMMETRIC : chacun paie sa valeur de début d'année * taux.
    INCREMENTAL : seul l'écart est facturé, au véhicule qui immobilise le plus.
    L'écart (nouveau - ancien) est identique dans les deux cas.
    """
    rate = _as_float(rate)
    old_v = _as_float(old_value_start)
    new_v = _as_float(new_value_start)
    if policy == CapitalCostPolicy.SYMMETRIC:
        return old_v * rate, new_v * rate
    gap = new_v - old_v
    if gap >= 0:
        return 0.0, gap * rate
    return -gap * rate, 0.0

"""Break-even recommendations for the replacement vehicle.

The old vehicle's TCO is re-simulated with the same per-year primitives as
:func:`swap_core.tco.calculate` (same odometer start, same overhaul rule),
then the new vehicle's cost, which is linear in its purchase price ``P``::

    new_tco(P) = P - offset + new_operating_pv + P * depreciation_factor

is inverted for ``P``. ``offset`` is the cash freed by not keeping the old
vehicle (its value plus the extra capital).
"""
from __future__ import annotations

from typing import Optional

import numpy as np

from .models import (
    AccountingPolicy,
    ConsumptionPolicy,
    DEFAULT_TARGET,
    OptimizationDiagnostics,
    OptimizationResult,
    ScenarioInput,
    TargetSpec,
    VehicleSpec,
)
from .cashflows import (
    _as_float,
    pct,
    inflation_factor,
    discount_factor,
    pv_weights,
    geometric_sum,
    annual_fuel_cost,
    operating_baseline,
    breakdown_risk_cost,
    overhaul_schedule,
    residual_series,
)
from .tco import _effective_discount
from .validation import validate_scenario


def target_vehicle(old: VehicleSpec, target: TargetSpec = DEFAULT_TARGET) -> VehicleSpec:
    """Replacement « idéal » dérivé de l'ancien véhicule (prix inconnu -> 0)."""
    return VehicleSpec(
        price=0.0,
        fuel_consumption_per_100=_as_float(old.fuel_consumption_per_100) * target.consumption_factor,
        annual_maintenance=_as_float(old.annual_maintenance) * target.maintenance_factor,
        annual_tax=_as_float(old.annual_tax) * target.tax_factor,
        depreciation_rate_pct=0.0,
    )


def depreciation_factor(
    depreciation_rate_pct: float,
    years: int,
    discount: float,
    capital_rate: float,
    policy: AccountingPolicy,
) -> float:
    """
    Coût actualisé de la perte de valeur (et du capital immobilisé) par unité de prix d'achat.

    q = (1-d)/(1+r), S = 1 + q + ... + q^(N-1)
      - politiques terminales : (1-(1-d)^N)/(1+r)^N + c*S/(1+r)
      - politique lissée      : (d+c)*S/(1+r)
    """
    if years <= 0:
        return 0.0
    d = pct(depreciation_rate_pct)
    r = _as_float(discount)
    c = _as_float(capital_rate)
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        base = np.float64(1.0) + r
        s = geometric_sum((1.0 - d) / base, years)
        if policy == AccountingPolicy.SMOOTHED_WEALTH_LOSS_PV:
            return float((d + c) * s / base)
        terminal = (1.0 - np.power(np.float64(1.0) - d, years)) / np.power(base, years)
        return float(terminal + c * s / base)


def _old_vehicle_tco(scenario: ScenarioInput, r_disc: float):
    """Returns (operating PV, depreciation PV, overhaul count) for keeping the old vehicle."""
    years = int(scenario.years)
    km = _as_float(scenario.mileage_per_year)
    repair = _as_float(scenario.repair_cost)
    r_infl = pct(scenario.inflation_pct)
    r_cap = pct(scenario.capital_opportunity_rate_pct)
    smoothed = scenario.accounting_policy == AccountingPolicy.SMOOTHED_WEALTH_LOSS_PV

    old = scenario.old
    old_price = _as_float(old.price)
    base = operating_baseline(old, km, _as_float(scenario.fuel_price_per_unit))

    values = residual_series(old_price, old.depreciation_rate_pct, years)
    odometer = _as_float(scenario.current_odometer)
    overhauls = overhaul_schedule(odometer, [km] * years, scenario.overhaul_interval_distance)

    operating_pv = np.float64(0.0)
    depreciation_pv = np.float64(0.0)

    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        for t in range(1, years + 1):
            inflator = inflation_factor(r_infl, t)
            disc = discount_factor(r_disc, t)

            risk = breakdown_risk_cost(
                scenario.breakdown_probability_pct,
                repair,
                t,
                odometer,
                scenario.risk_grows_with_age,
                scenario.risk_grows_with_mileage,
            ) * inflator
            odometer += km

            start, value = values[t - 1], values[t]
            # capital symétrique : le break-even ne dépend que de l'écart
            nominal = base * inflator + risk + overhauls[t - 1] * repair * inflator + start * r_cap
            operating_pv += nominal / disc
            if smoothed:
                depreciation_pv += (start - value) / disc

        if not smoothed and years > 0:
            depreciation_pv = (old_price - values[years]) / discount_factor(r_disc, years)

    return float(operating_pv), float(depreciation_pv), sum(overhauls)


def optimize(
    scenario: ScenarioInput,
    target: TargetSpec = DEFAULT_TARGET,
    consumption_policy: ConsumptionPolicy = ConsumptionPolicy.TARGET_FRACTION,
    fixed_price: Optional[float] = None,
) -> OptimizationResult:
    """Recommend the maximum new-vehicle price (and consumption) reaching parity with keeping the old one.

    Parameters
    ----------
    scenario:
        Same record as :func:`swap_core.tco.calculate`. The new vehicle's
        price and consumption are unknowns; only its depreciation rate is
        read (plus price, maintenance and tax under ``SOLVE_AT_FIXED_PRICE``).
    target:
        Ratios defining the hypothetical replacement (defaults: -10 %
        consumption, -15 % maintenance, same tax, no breakdown risk).
    consumption_policy:
        ``TARGET_FRACTION`` reports the target consumption;
        ``SOLVE_AT_FIXED_PRICE`` solves the consumption that reaches parity
        at ``fixed_price`` (default: the new vehicle's input price).

    Returns
    -------
    OptimizationResult
        Infeasible recommendations are reported as ``0.0`` with the matching
        ``*_feasible`` flag set to ``False``.
    """

    validate_scenario(scenario)

    years = int(scenario.years)
    km = _as_float(scenario.mileage_per_year)
    fuel_price = _as_float(scenario.fuel_price_per_unit)
    r_infl = pct(scenario.inflation_pct)
    r_disc = _effective_discount(scenario)
    r_cap = pct(scenario.capital_opportunity_rate_pct)
    policy = scenario.accounting_policy

    # --- 1. TCO de l'ancien véhicule ---
    old_operating_pv, old_depreciation_pv, overhaul_count = _old_vehicle_tco(scenario, r_disc)
    old_tco = old_operating_pv + old_depreciation_pv

    old_op_year = operating_baseline(scenario.old, km, fuel_price) + breakdown_risk_cost(
        scenario.breakdown_probability_pct, scenario.repair_cost, 1, scenario.current_odometer
    )

    # --- 2. Cible (sans risque ni révision) ---
    ideal = target_vehicle(scenario.old, target)
    new_op_year = operating_baseline(ideal, km, fuel_price)
    weights = pv_weights(r_infl, r_disc, years)
    weight_sum = float(weights.sum())
    new_operating_pv = new_op_year * weight_sum

    # --- 3. Prix max ---
    factor = depreciation_factor(scenario.new.depreciation_rate_pct, years, r_disc, r_cap, policy)
    offset = _as_float(scenario.old.price) + _as_float(scenario.extra_capital or 0.0)

    numerator = old_tco + offset - new_operating_pv
    rec_price = 0.0
    if numerator > 0:
        with np.errstate(divide="ignore", invalid="ignore"):
            rec_price = float(np.float64(numerator) / (1.0 + factor))
    # nan / négatif -> infaisable
    if not rec_price > 0:
        rec_price = 0.0
    price_feasible = rec_price > 0

    # --- 4. Consommation ---
    if consumption_policy == ConsumptionPolicy.TARGET_FRACTION:
        rec_cons = ideal.fuel_consumption_per_100
    else:
        price = _as_float(scenario.new.price if fixed_price is None else fixed_price)
        fixed_costs = (
            price - offset
            + price * factor
            + (_as_float(scenario.new.annual_maintenance) + _as_float(scenario.new.annual_tax)) * weight_sum
        )
        # coût actualisé d'1 L/100km sur l'horizon
        unit = annual_fuel_cost(km, 1.0, fuel_price) * weight_sum
        rec_cons = (old_tco - fixed_costs) / unit if unit > 0 else 0.0
    rec_cons = rec_cons if rec_cons > 0 else 0.0
    consumption_feasible = rec_cons > 0

    diagnostics = OptimizationDiagnostics(
        years=years,
        mileage_per_year=km,
        old_tco=old_tco,
        old_operating_pv=old_operating_pv,
        old_depreciation_pv=old_depreciation_pv,
        old_op_year=old_op_year,
        new_op_year=new_op_year,
        new_operating_pv=new_operating_pv,
        depreciation_factor=factor,
        target_consumption=ideal.fuel_consumption_per_100,
        target_maintenance=ideal.annual_maintenance,
        target_tax=ideal.annual_tax,
        overhaul_count=overhaul_count,
        offset=offset,
    )

    return OptimizationResult(
        recommended_max_price=rec_price,
        recommended_max_consumption=rec_cons,
        price_feasible=price_feasible,
        consumption_feasible=consumption_feasible,
        consumption_policy=consumption_policy,
        diagnostics=diagnostics,
    )

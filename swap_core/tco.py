from __future__ import annotations
from dataclasses import replace
from typing import Dict, List

import numpy as np
import pandas as pd

from .models import AccountingPolicy, ProjectionResult, ScenarioInput
from .cashflows import (
    _as_float,
    pct,
    inflation_factor,
    discount_factor,
    operating_baseline,
    breakdown_risk_cost,
    overhaul_schedule,
    residual_series,
    capital_charges,
)
from .validation import validate_scenario


def _effective_discount(scenario: ScenarioInput) -> float:
    if scenario.accounting_policy == AccountingPolicy.NOMINAL_NO_DISCOUNT:
        return 0.0
    return pct(scenario.discount_rate_pct)


def calculate(scenario: ScenarioInput) -> ProjectionResult:
    """
    Projection année par année, garder l'ancien véhicule vs passer au nouveau.

    Année 0 = décision de changement (aucun OPEX) : le nouveau démarre à
    prix_neuf - (valeur_ancien + épargne). Années 1..N : OPEX inflationnés,
    risque de panne, révisions majeures (ancien uniquement), amortissement
    dégressif, coût du capital, puis actualisation et cumul selon la
    politique comptable du scénario.
    """
    validate_scenario(scenario)

    policy = scenario.accounting_policy
    smoothed = policy == AccountingPolicy.SMOOTHED_WEALTH_LOSS_PV

    years = int(scenario.years)
    km = _as_float(scenario.mileage_per_year)
    fuel_price = _as_float(scenario.fuel_price_per_unit)
    repair = _as_float(scenario.repair_cost)

    r_infl = pct(scenario.inflation_pct)
    r_disc = _effective_discount(scenario)
    r_cap = pct(scenario.capital_opportunity_rate_pct)

    old, new = scenario.old, scenario.new
    old_price = _as_float(old.price)
    new_price = _as_float(new.price)

    old_base = operating_baseline(old, km, fuel_price)
    new_base = operating_baseline(new, km, fuel_price)

    # Valeurs résiduelles et révisions : séries t = 0..N (t=0 -> prix, 0 révision)
    res_old = residual_series(old_price, old.depreciation_rate_pct, years)
    res_new = residual_series(new_price, new.depreciation_rate_pct, years)
    start_odometer = _as_float(scenario.current_odometer)
    overhauls: List[int] = [0] + overhaul_schedule(
        start_odometer, [km] * years, scenario.overhaul_interval_distance
    )

    # ---------- Année 0 : changement ----------
    switch_cost = new_price - (old_price + _as_float(scenario.extra_capital or 0.0))

    labels: List[int] = [0]
    cum_old: List[float] = [0.0]
    cum_new: List[float] = [switch_cost]
    annual_old: List[float] = [0.0]
    annual_new: List[float] = [switch_cost]

    odometer = start_odometer
    odometers: List[float] = [odometer]

    cum_old_pv = np.float64(0.0)
    cum_new_pv = np.float64(switch_cost)

    # ---------- Années 1..N ----------
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        for t in range(1, years + 1):
            inflator = inflation_factor(r_infl, t)
            disc = discount_factor(r_disc, t)

            # risque évalué sur l'odomètre de début d'année
            risk = breakdown_risk_cost(
                scenario.breakdown_probability_pct,
                repair,
                t,
                odometer,
                scenario.risk_grows_with_age,
                scenario.risk_grows_with_mileage,
            ) * inflator
            odometer += km

            overhaul_cost = overhauls[t] * repair * inflator

            old_start, new_start = res_old[t - 1], res_new[t - 1]
            old_val, new_val = res_old[t], res_new[t]
            old_cap, new_cap = capital_charges(old_start, new_start, r_cap, scenario.capital_cost_policy)

            nominal_old = old_base * inflator + risk + overhaul_cost + old_cap
            nominal_new = new_base * inflator + new_cap
            if smoothed:
                nominal_old += old_start - old_val
                nominal_new += new_start - new_val

            cum_old_pv += nominal_old / disc
            cum_new_pv += nominal_new / disc

            if smoothed:
                point_old, point_new = cum_old_pv, cum_new_pv
            else:
                # « coût si revendu cette année » : + perte de valeur actualisée
                point_old = cum_old_pv + (old_price - old_val) / disc
                point_new = cum_new_pv + (new_price - new_val) / disc

            labels.append(t)
            cum_old.append(float(point_old))
            cum_new.append(float(point_new))
            annual_old.append(float(nominal_old))
            annual_new.append(float(nominal_new))
            odometers.append(odometer)

    final_old = cum_old[years]
    final_new = cum_new[years]

    df = pd.DataFrame({
        "Année": labels,
        "Odomètre": odometers,
        "Révisions": overhauls,
        "Coût annuel ancien": annual_old,
        "Coût annuel nouveau": annual_new,
        "Cumul ancien": cum_old,
        "Cumul nouveau": cum_new,
        "Valeur résiduelle ancien": res_old,
        "Valeur résiduelle nouveau": res_new,
    })
    df.attrs["accounting_policy"] = policy.value
    df.attrs["old_price"] = old_price
    df.attrs["new_price"] = new_price
    df.attrs["switch_cost"] = switch_cost

    return ProjectionResult(
        labels=labels,
        cumulative_old=cum_old,
        cumulative_new=cum_new,
        residual_old=res_old,
        residual_new=res_new,
        annual_old=annual_old,
        annual_new=annual_new,
        overhauls_per_year=overhauls,
        final_old=final_old,
        final_new=final_new,
        overhaul_count=sum(overhauls),
        diff=final_new - final_old,
        upgrade_cash=new_price - old_price,
        accounting_policy=policy,
        annual_table=df,
    )


def calculate_all_policies(scenario: ScenarioInput) -> Dict[AccountingPolicy, ProjectionResult]:
    return {policy: calculate(replace(scenario, accounting_policy=policy)) for policy in AccountingPolicy}

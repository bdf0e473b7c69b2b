# tests/test_tco.py
import math

import pytest

from swap_core.models import AccountingPolicy, CapitalCostPolicy, ScenarioInput, VehicleSpec
from swap_core.tco import calculate, calculate_all_policies
from swap_core.validation import InvalidInput


def _scenario_simple(**overrides):
    """Carburant seul : pas de risque, pas de dépréciation, pas d'inflation/actualisation."""
    old = overrides.pop("old", VehicleSpec(
        price=1_000_000.0,
        fuel_consumption_per_100=10.0,
        annual_maintenance=0.0,
        annual_tax=0.0,
        depreciation_rate_pct=0.0,
    ))
    new = overrides.pop("new", VehicleSpec(
        price=1_000_000.0,
        fuel_consumption_per_100=10.0,
        annual_maintenance=0.0,
        annual_tax=0.0,
        depreciation_rate_pct=0.0,
    ))
    base = dict(
        years=5,
        mileage_per_year=10_000,
        fuel_price_per_unit=50.0,
        breakdown_probability_pct=0.0,
        repair_cost=100_000.0,
        current_odometer=0.0,
        overhaul_interval_distance=1_000_000.0,
        old=old,
        new=new,
    )
    base.update(overrides)
    return ScenarioInput(**base)


def _vehicle(price, cons=0.0, maint=0.0, tax=0.0, depr=0.0):
    return VehicleSpec(price, cons, maint, tax, depr)


def test_pure_fuel_baseline():
    # 10'000 km * 10 L/100 * 50 = 50'000 / an -> 5 ans = 250'000
    res = calculate(_scenario_simple())
    assert res.final_old == 250_000.0
    assert res.final_new == 250_000.0
    assert res.diff == 0.0


def test_pure_fuel_baseline_all_policies():
    results = calculate_all_policies(_scenario_simple(discount_rate_pct=0.0))
    assert set(results) == set(AccountingPolicy)
    for res in results.values():
        assert res.final_old == pytest.approx(250_000.0)


def test_switch_cost_isolation():
    s = _scenario_simple(
        fuel_price_per_unit=0.0,
        old=_vehicle(500_000.0, cons=10.0),
        new=_vehicle(1_000_000.0, cons=10.0),
    )
    res = calculate(s)
    assert res.cumulative_new[0] == 500_000.0
    assert res.final_new == 500_000.0
    assert res.annual_new[0] == 500_000.0
    assert res.annual_old[0] == 0.0
    assert res.upgrade_cash == 500_000.0


def test_switch_cost_uses_extra_capital():
    s = _scenario_simple(
        fuel_price_per_unit=0.0,
        old=_vehicle(500_000.0),
        new=_vehicle(1_000_000.0),
        extra_capital=200_000.0,
    )
    res = calculate(s)
    assert res.cumulative_new[0] == 300_000.0
    assert res.cumulative_old[0] == 0.0


def test_depreciation_only_one_year():
    s = _scenario_simple(years=1, fuel_price_per_unit=0.0, old=_vehicle(1_000_000.0, depr=10.0))
    res = calculate(s)
    # 1M * 0.9 = 900k -> perte 100k
    assert res.final_old == pytest.approx(100_000.0)
    assert res.residual_old == pytest.approx([1_000_000.0, 900_000.0])


def test_series_lengths_and_labels():
    res = calculate(_scenario_simple(years=7))
    assert res.labels == list(range(8))
    for series in (res.cumulative_old, res.cumulative_new, res.residual_old, res.residual_new,
                   res.annual_old, res.annual_new, res.overhauls_per_year):
        assert len(series) == 8
    assert len(res.annual_table) == 8
    assert res.annual_table.attrs["accounting_policy"] == AccountingPolicy.OPERATING_PLUS_TERMINAL_DEPRECIATION_PV.value


def test_years_zero_only_switching_row():
    s = _scenario_simple(years=0, old=_vehicle(8_000.0, cons=7.0), new=_vehicle(30_000.0, cons=6.0))
    res = calculate(s)
    assert res.labels == [0]
    assert res.final_old == 0.0
    assert res.final_new == 22_000.0
    assert res.overhaul_count == 0


def test_residual_value_is_non_increasing():
    s = _scenario_simple(
        years=12,
        old=_vehicle(15_000.0, depr=12.5),
        new=_vehicle(40_000.0, depr=18.0),
    )
    res = calculate(s)
    for series in (res.residual_old, res.residual_new):
        assert all(b <= a for a, b in zip(series, series[1:]))


def test_negative_depreciation_compounds_growth():
    s = _scenario_simple(years=2, fuel_price_per_unit=0.0, old=_vehicle(10_000.0, depr=-10.0))
    res = calculate(s)
    assert res.residual_old[-1] == pytest.approx(12_100.0)
    assert res.final_old == pytest.approx(-2_100.0)


def test_inflation_and_discount():
    # 1'000/an, inflation 10 %, actualisation 10 % -> chaque année vaut 1000/1.1 en VA
    s = _scenario_simple(
        years=3,
        fuel_price_per_unit=0.0,
        inflation_pct=10.0,
        discount_rate_pct=10.0,
        old=_vehicle(0.0, maint=1_000.0),
    )
    res = calculate(s)
    assert res.annual_old[1:] == pytest.approx([1_000.0, 1_100.0, 1_210.0])
    assert res.final_old == pytest.approx(3 * 1_000.0 / 1.1)


def test_overhauls_counted_and_costed():
    # 0 -> 60k -> 120k -> 180k avec intervalle 50k : 1 + 1 + 1 révisions
    s = _scenario_simple(
        years=3,
        fuel_price_per_unit=0.0,
        mileage_per_year=60_000,
        overhaul_interval_distance=50_000.0,
        repair_cost=2_000.0,
    )
    res = calculate(s)
    assert res.overhauls_per_year == [0, 1, 1, 1]
    assert res.overhaul_count == 3
    assert res.final_old == pytest.approx(6_000.0)
    # le nouveau n'a pas de révisions
    assert res.final_new == pytest.approx(0.0)


def test_overhaul_multiple_in_one_year_from_current_odometer():
    s = _scenario_simple(
        years=1,
        fuel_price_per_unit=0.0,
        mileage_per_year=100_000,
        current_odometer=45_000.0,
        overhaul_interval_distance=30_000.0,
        repair_cost=1_000.0,
    )
    res = calculate(s)
    # 45k -> 145k : multiples 60k, 90k, 120k
    assert res.overhaul_count == 3
    assert res.final_old == pytest.approx(3_000.0)


def test_breakdown_risk_grows_with_age_and_caps():
    s = _scenario_simple(
        years=3,
        fuel_price_per_unit=0.0,
        breakdown_probability_pct=60.0,
        repair_cost=1_000.0,
        risk_grows_with_age=True,
    )
    res = calculate(s)
    # 60 %, 90 %, 135 % -> plafonné à 100 %
    assert res.annual_old[1:] == pytest.approx([600.0, 900.0, 1_000.0])
    assert res.annual_new[1:] == pytest.approx([0.0, 0.0, 0.0])


def test_breakdown_risk_grows_with_mileage():
    s = _scenario_simple(
        years=2,
        fuel_price_per_unit=0.0,
        breakdown_probability_pct=10.0,
        repair_cost=1_000.0,
        risk_grows_with_mileage=True,
        current_odometer=100_000.0,
        mileage_per_year=50_000,
    )
    res = calculate(s)
    # début année 1 : 100k -> x1.2 ; début année 2 : 150k -> x1.3
    assert res.annual_old[1:] == pytest.approx([120.0, 130.0])


def test_smoothed_policy_spreads_depreciation():
    s = _scenario_simple(
        years=2,
        fuel_price_per_unit=0.0,
        old=_vehicle(10_000.0, depr=10.0),
        accounting_policy=AccountingPolicy.SMOOTHED_WEALTH_LOSS_PV,
    )
    res = calculate(s)
    assert res.annual_old[1:] == pytest.approx([1_000.0, 900.0])
    assert res.cumulative_old == pytest.approx([0.0, 1_000.0, 1_900.0])


def test_policies_agree_without_discounting():
    s = _scenario_simple(
        years=4,
        old=_vehicle(12_000.0, cons=8.0, maint=900.0, tax=300.0, depr=12.0),
        new=_vehicle(35_000.0, cons=6.0, maint=500.0, tax=300.0, depr=15.0),
        fuel_price_per_unit=2.0,
        mileage_per_year=15_000,
    )
    results = calculate_all_policies(s)
    finals = [r.final_old for r in results.values()]
    assert max(finals) - min(finals) == pytest.approx(0.0, abs=1e-6)


def test_nominal_policy_ignores_discount_rate():
    s = _scenario_simple(
        years=3,
        fuel_price_per_unit=0.0,
        discount_rate_pct=8.0,
        old=_vehicle(0.0, maint=1_000.0),
        accounting_policy=AccountingPolicy.NOMINAL_NO_DISCOUNT,
    )
    assert calculate(s).final_old == pytest.approx(3_000.0)


def test_capital_cost_policies_share_diff():
    common = dict(
        years=4,
        fuel_price_per_unit=0.0,
        capital_opportunity_rate_pct=5.0,
        discount_rate_pct=3.0,
        old=_vehicle(10_000.0, depr=10.0),
        new=_vehicle(30_000.0, depr=15.0),
    )
    sym = calculate(_scenario_simple(**common))
    inc = calculate(_scenario_simple(capital_cost_policy=CapitalCostPolicy.INCREMENTAL, **common))
    assert sym.diff == pytest.approx(inc.diff)
    assert inc.final_old < sym.final_old
    # année 1 : 10'000 * 5 % = 500 pour l'ancien en symétrique
    assert sym.annual_old[1] == pytest.approx(500.0)
    assert inc.annual_old[1] == pytest.approx(0.0)
    assert inc.annual_new[1] == pytest.approx(1_000.0)


def test_degenerate_discount_gives_inf_not_exception():
    s = _scenario_simple(years=2, discount_rate_pct=-100.0)
    res = calculate(s)
    assert math.isinf(res.final_old) or math.isnan(res.final_old)


@pytest.mark.parametrize("interval", [0.0, -10.0])
def test_non_positive_overhaul_interval_rejected(interval):
    with pytest.raises(InvalidInput):
        calculate(_scenario_simple(overhaul_interval_distance=interval))


def test_negative_years_rejected():
    with pytest.raises(InvalidInput):
        calculate(_scenario_simple(years=-1))


def test_calculate_is_referentially_transparent():
    s = _scenario_simple(breakdown_probability_pct=20.0, inflation_pct=2.0, discount_rate_pct=4.0)
    a, b = calculate(s), calculate(s)
    assert a.cumulative_old == b.cumulative_old
    assert a.cumulative_new == b.cumulative_new


def test_risk_and_overhaul_costs_are_inflated():
    # 40'000 km/an depuis 0, intervalle 100'000 -> révision en année 3
    s = _scenario_simple(
        years=3,
        fuel_price_per_unit=0.0,
        inflation_pct=10.0,
        breakdown_probability_pct=20.0,
        repair_cost=1_000.0,
        mileage_per_year=40_000,
        overhaul_interval_distance=100_000.0,
    )
    res = calculate(s)
    assert res.overhauls_per_year == [0, 0, 0, 1]
    for t in (1, 2, 3):
        expected = (0.2 * 1_000.0 + res.overhauls_per_year[t] * 1_000.0) * 1.1 ** (t - 1)
        assert res.annual_old[t] == pytest.approx(expected)
    assert res.annual_old[3] == pytest.approx(1_452.0)
    assert res.annual_new[1:] == pytest.approx([0.0, 0.0, 0.0])


def test_long_horizon_age_risk_does_not_raise():
    s = _scenario_simple(years=2000, breakdown_probability_pct=10.0, risk_grows_with_age=True)
    res = calculate(s)
    assert len(res.cumulative_old) == 2001
    # année 1001 : risque plafonné à 100 %, pas de révision (1e7 -> 1.001e7 km)
    assert res.overhauls_per_year[1001] == 0
    assert res.annual_old[1001] == pytest.approx(50_000.0 + 100_000.0)


def test_long_horizon_overflow_gives_inf_or_nan():
    s = _scenario_simple(
        years=2000,
        inflation_pct=50.0,
        breakdown_probability_pct=10.0,
        risk_grows_with_age=True,
        old=_vehicle(10_000.0, cons=10.0, depr=-50.0),
    )
    res = calculate(s)
    assert not math.isfinite(res.final_old)
    assert not math.isfinite(res.residual_old[-1])


def test_residual_and_overhaul_series_match_helpers():
    from swap_core.cashflows import overhaul_schedule, residual_series

    s = _scenario_simple(
        years=6,
        mileage_per_year=35_000,
        current_odometer=20_000.0,
        overhaul_interval_distance=50_000.0,
        old=_vehicle(12_000.0, depr=11.0),
        new=_vehicle(30_000.0, depr=16.0),
    )
    res = calculate(s)
    assert res.residual_old == residual_series(12_000.0, 11.0, 6)
    assert res.residual_new == residual_series(30_000.0, 16.0, 6)
    assert res.overhauls_per_year[1:] == overhaul_schedule(20_000.0, [35_000.0] * 6, 50_000.0)
    assert res.overhaul_count == sum(res.overhauls_per_year)

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import List

import pandas as pd


class AccountingPolicy(Enum):
    OPERATING_PLUS_TERMINAL_DEPRECIATION_PV = "operating_plus_terminal_depreciation_pv"
    SMOOTHED_WEALTH_LOSS_PV = "smoothed_wealth_loss_pv"
    NOMINAL_NO_DISCOUNT = "nominal_no_discount"


class CapitalCostPolicy(Enum):
    SYMMETRIC = "symmetric"        # chaque véhicule paie sur sa propre valeur
    INCREMENTAL = "incremental"    # seul l'écart de capital est facturé


class ConsumptionPolicy(Enum):
    TARGET_FRACTION = "target_fraction"
    SOLVE_AT_FIXED_PRICE = "solve_at_fixed_price"


@dataclass
class VehicleSpec:
    price: float                       # valeur de départ (reprise / achat)
    fuel_consumption_per_100: float    # L/100km
    annual_maintenance: float
    annual_tax: float
    depreciation_rate_pct: float       # dégressif, % de la valeur courante / an


@dataclass
class ScenarioInput:
    # Horizon
    years: int
    mileage_per_year: float
    fuel_price_per_unit: float

    # Risque
    breakdown_probability_pct: float   # 0..100
    repair_cost: float

    # Révision majeure
    current_odometer: float
    overhaul_interval_distance: float  # > 0

    old: VehicleSpec
    new: VehicleSpec

    risk_grows_with_age: bool = False
    risk_grows_with_mileage: bool = False

    # Finance (en %, 0 si absent)
    inflation_pct: float = 0.0
    discount_rate_pct: float = 0.0
    capital_opportunity_rate_pct: float = 0.0

    # Épargne disponible à côté de la valeur de l'ancien véhicule
    extra_capital: float = 0.0

    accounting_policy: AccountingPolicy = AccountingPolicy.OPERATING_PLUS_TERMINAL_DEPRECIATION_PV
    capital_cost_policy: CapitalCostPolicy = CapitalCostPolicy.SYMMETRIC


@dataclass(frozen=True)
class TargetSpec:
    """Hypothetical replacement used by the optimizer: ratios applied to the old vehicle."""

    consumption_factor: float = 0.90
    maintenance_factor: float = 0.85
    tax_factor: float = 1.0


DEFAULT_TARGET = TargetSpec()


@dataclass
class ProjectionResult:
    labels: List[int]
    cumulative_old: List[float]
    cumulative_new: List[float]
    residual_old: List[float]
    residual_new: List[float]
    annual_old: List[float]
    annual_new: List[float]
    overhauls_per_year: List[int]
    final_old: float
    final_new: float
    overhaul_count: int
    diff: float
    upgrade_cash: float
    accounting_policy: AccountingPolicy
    annual_table: pd.DataFrame = field(repr=False)


@dataclass
class OptimizationDiagnostics:
    years: int
    mileage_per_year: float
    old_tco: float
    old_operating_pv: float
    old_depreciation_pv: float
    old_op_year: float
    new_op_year: float
    new_operating_pv: float
    depreciation_factor: float
    target_consumption: float
    target_maintenance: float
    target_tax: float
    overhaul_count: int
    offset: float


@dataclass
class OptimizationResult:
    recommended_max_price: float         # 0.0 si infaisable
    recommended_max_consumption: float   # 0.0 si infaisable
    price_feasible: bool
    consumption_feasible: bool
    consumption_policy: ConsumptionPolicy
    diagnostics: OptimizationDiagnostics

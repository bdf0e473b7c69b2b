from __future__ import annotations
# --- hack chemin local (racine du dépôt pour swap_core, app/ pour charts) ---
import sys, os
sys.path.append(os.path.dirname(__file__))
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
# ----------------------------------------------------------------------------

import logging

import streamlit as st
import pandas as pd

from swap_core.defaults import flat_defaults, load_defaults_by_segment, scenario_from_mapping
from swap_core.models import AccountingPolicy, CapitalCostPolicy, ConsumptionPolicy
from swap_core.optimize import optimize
from swap_core.tco import calculate
from swap_core.validation import InvalidInput

from charts import make_cum_df, fig_line_cumulative, make_annual_df, fig_bar_annual

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


DEFAULTS = load_defaults_by_segment()
SEGMENT_OPTIONS = list(DEFAULTS["segments"].keys())
DEFAULT_SEGMENT_INDEX = SEGMENT_OPTIONS.index("compact") if "compact" in SEGMENT_OPTIONS else 0

POLICY_LABELS = {
    AccountingPolicy.OPERATING_PLUS_TERMINAL_DEPRECIATION_PV: "OPEX actualisés + perte de valeur si revente",
    AccountingPolicy.SMOOTHED_WEALTH_LOSS_PV: "Perte de patrimoine lissée (actualisée)",
    AccountingPolicy.NOMINAL_NO_DISCOUNT: "Nominal, sans actualisation",
}


def vehicle_inputs(record: dict, side: str, title: str, expanded: bool, key_prefix: str = "") -> None:
    with st.expander(title, expanded=expanded):
        record[f"{side}_price"] = st.number_input(
            "Valeur / prix (CHF)", 0.0, 500_000.0, float(record[f"{side}_price"]), step=500.0, key=f"{key_prefix}{side}_price")
        record[f"{side}_fuel_consumption_per_100"] = st.number_input(
            "Consommation (L/100 km)", 0.0, 30.0, float(record[f"{side}_fuel_consumption_per_100"]), step=0.1,
            key=f"{key_prefix}{side}_cons")
        record[f"{side}_annual_maintenance"] = st.number_input(
            "Entretien (CHF/an)", 0.0, 20_000.0, float(record[f"{side}_annual_maintenance"]), step=50.0,
            key=f"{key_prefix}{side}_maint")
        record[f"{side}_annual_tax"] = st.number_input(
            "Taxes (CHF/an)", 0.0, 10_000.0, float(record[f"{side}_annual_tax"]), step=10.0, key=f"{key_prefix}{side}_tax")
        record[f"{side}_depreciation_rate_pct"] = st.number_input(
            "Dépréciation (%/an, dégressive)", -20.0, 60.0, float(record[f"{side}_depreciation_rate_pct"]),
            step=0.5, key=f"{key_prefix}{side}_depr")


# ============================ UI ============================

st.set_page_config(page_title="Garder ou remplacer ?", page_icon="🚗", layout="wide")
st.title("Garder ou remplacer son véhicule — comparaison TCO")

st.sidebar.markdown("### Paramètres globaux")
segment = st.sidebar.selectbox("Segment", SEGMENT_OPTIONS, index=DEFAULT_SEGMENT_INDEX)
record = flat_defaults(segment, DEFAULTS)

record["years"] = st.sidebar.slider("Horizon (années)", 0, 15, int(record["years"]))
record["mileage_per_year"] = st.sidebar.number_input(
    "Kilométrage annuel (km/an)", 0, 100_000, int(record["mileage_per_year"]), step=1_000)
record["fuel_price_per_unit"] = st.sidebar.number_input(
    "Prix carburant (CHF/L)", 0.0, 5.0, float(record["fuel_price_per_unit"]), step=0.01)

with st.sidebar.expander("⚠️ Risques & révisions"):
    record["breakdown_probability_pct"] = st.slider(
        "Probabilité de panne (%/an)", 0, 100, int(record["breakdown_probability_pct"]))
    record["repair_cost"] = st.number_input("Coût réparation / révision (CHF)", 0.0, 50_000.0,
                                            float(record["repair_cost"]), step=100.0)
    record["risk_grows_with_age"] = st.checkbox("Risque croissant avec l'âge", bool(record["risk_grows_with_age"]))
    record["risk_grows_with_mileage"] = st.checkbox("Risque croissant avec le kilométrage",
                                                    bool(record["risk_grows_with_mileage"]))
    record["current_odometer"] = st.number_input("Odomètre actuel (km)", 0, 1_000_000,
                                                 int(record["current_odometer"]), step=5_000)
    record["overhaul_interval_distance"] = st.number_input(
        "Intervalle révision majeure (km)", 1_000, 1_000_000, int(record["overhaul_interval_distance"]), step=5_000)

with st.sidebar.expander("⚙️ Finance"):
    record["inflation_pct"] = st.number_input("Inflation (%/an)", -5.0, 50.0, float(record["inflation_pct"]), step=0.5)
    record["discount_rate_pct"] = st.number_input("Taux d’actualisation (%)", 0.0, 15.0,
                                                  float(record["discount_rate_pct"]), step=0.5)
    record["capital_opportunity_rate_pct"] = st.number_input(
        "Rendement du capital immobilisé (%)", 0.0, 15.0, float(record["capital_opportunity_rate_pct"]), step=0.5)
    record["extra_capital"] = st.number_input("Épargne disponible (CHF)", 0.0, 500_000.0,
                                              float(record["extra_capital"]), step=500.0)
    record["accounting_policy"] = st.selectbox(
        "Convention comptable", list(POLICY_LABELS), format_func=POLICY_LABELS.get)
    record["capital_cost_policy"] = st.selectbox(
        "Coût du capital", list(CapitalCostPolicy), format_func=lambda p: p.value)

st.subheader("Véhicules")
col_old, col_new = st.columns(2)
with col_old:
    vehicle_inputs(record, "old", "🚙 Ancien véhicule", expanded=True, key_prefix=f"{segment}_")
with col_new:
    vehicle_inputs(record, "new", "🚘 Nouveau véhicule", expanded=True, key_prefix=f"{segment}_")

# ============================ Calcul ============================

try:
    scenario = scenario_from_mapping(record)
    result = calculate(scenario)
except InvalidInput as exc:
    logger.warning("Invalid scenario: %s", exc)
    st.error(f"Paramètres invalides : {exc}")
    st.stop()

# ======================= Résultats ========================

st.divider()
c1, c2, c3, c4 = st.columns(4)
c1.metric("Garder l'ancien (total)", f"{result.final_old:,.0f} CHF")
c2.metric("Passer au nouveau (total)", f"{result.final_new:,.0f} CHF")
c3.metric("Écart (nouveau − ancien)", f"{result.diff:,.0f} CHF")
c4.metric("Cash nécessaire au changement", f"{result.upgrade_cash:,.0f} CHF")
st.caption(f"Révisions majeures sur l'horizon (ancien) : {result.overhaul_count}")

if result.diff < 0:
    st.success("✅ Remplacer est avantageux sur l'horizon choisi")
else:
    st.error("❌ Remplacer n'est pas rentable sur l'horizon choisi")

st.plotly_chart(fig_line_cumulative(make_cum_df(result), result.diff), use_container_width=True)
st.plotly_chart(fig_bar_annual(make_annual_df(result)), use_container_width=True)

# ======================== Optimisation ========================

st.subheader("Seuil de rentabilité")
consumption_policy = st.radio(
    "Consommation recommandée",
    list(ConsumptionPolicy),
    format_func=lambda p: {
        ConsumptionPolicy.TARGET_FRACTION: "Cible (-10 % vs ancien)",
        ConsumptionPolicy.SOLVE_AT_FIXED_PRICE: "Résolue au prix saisi",
    }[p],
    horizontal=True,
)
if st.button("Calculer le prix maximum"):
    opt = optimize(scenario, consumption_policy=consumption_policy)
    o1, o2 = st.columns(2)
    if opt.price_feasible:
        o1.metric("Prix max du nouveau", f"{opt.recommended_max_price:,.0f} CHF")
    else:
        o1.warning("Impossible (trop cher à entretenir)")
    if opt.consumption_feasible:
        o2.metric("Consommation max", f"{opt.recommended_max_consumption:.1f} L/100 km")
    else:
        o2.warning("0 L : aucune consommation ne permet l'équilibre")
    with st.expander("Détails"):
        st.json(vars(opt.diagnostics))

# ======================== Export ========================

st.subheader("Export")


def _to_csv(df: pd.DataFrame) -> bytes:
    return df.to_csv(index=False).encode("utf-8")


st.dataframe(result.annual_table, use_container_width=True)
st.download_button("⬇️ Table annuelle (CSV)", data=_to_csv(result.annual_table),
                   file_name="garder_vs_remplacer.csv", mime="text/csv")

from __future__ import annotations
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from swap_core.models import ProjectionResult

OLD_LABEL = "Garder l'ancien"
NEW_LABEL = "Passer au nouveau"
COLORS = {OLD_LABEL: "#ef4444", NEW_LABEL: "#0ea5e9"}


def make_cum_df(res: ProjectionResult) -> pd.DataFrame:
    """Table longue : cumul des coûts et valeur résiduelle, par année et par option."""
    parts = []
    for label, cum, residual in (
        (OLD_LABEL, res.cumulative_old, res.residual_old),
        (NEW_LABEL, res.cumulative_new, res.residual_new),
    ):
        parts.append(pd.DataFrame({
            "Année": res.labels,
            "Option": label,
            "Cumul": cum,
            "Valeur résiduelle": residual,
        }))
    return pd.concat(parts, ignore_index=True)


def fig_line_cumulative(cum_df: pd.DataFrame, diff: float):
    verdict = "plus cher" if diff > 0 else "moins cher"
    fig = px.line(
        cum_df,
        x="Année",
        y="Cumul",
        color="Option",
        color_discrete_map=COLORS,
        title=f"Coût total de possession cumulé — écart {diff:,.0f} CHF ({verdict})",
        markers=True,
    )
    # valeurs résiduelles en pointillés
    for option, part in cum_df.groupby("Option", sort=False):
        fig.add_trace(go.Scatter(
            x=part["Année"],
            y=part["Valeur résiduelle"],
            mode="lines",
            name=f"{option} (valeur résiduelle)",
            line=dict(dash="dash", width=1.5, color=COLORS.get(option)),
            opacity=0.5,
        ))
    fig.update_layout(
        legend=dict(orientation="h", y=-0.2, x=0.5, xanchor="center"),
        title=dict(x=0, xanchor="left", font=dict(size=15)),
        plot_bgcolor="white",
        yaxis=dict(gridcolor="lightgrey", title="CHF (cumulé)"),
        xaxis=dict(gridcolor="lightgrey", dtick=1),
    )
    return fig


def make_annual_df(res: ProjectionResult) -> pd.DataFrame:
    """Dépenses annuelles nominales (année 0 = coût du changement pour le nouveau)."""
    return pd.concat([
        pd.DataFrame({"Année": res.labels, "Option": OLD_LABEL, "CHF": res.annual_old}),
        pd.DataFrame({"Année": res.labels, "Option": NEW_LABEL, "CHF": res.annual_new}),
    ], ignore_index=True)


def fig_bar_annual(annual_df: pd.DataFrame):
    fig = px.bar(
        annual_df,
        x="Année",
        y="CHF",
        color="Option",
        color_discrete_map=COLORS,
        barmode="group",
        text_auto=".0f",
        title="Dépenses annuelles (nominales)",
    )
    fig.update_layout(
        plot_bgcolor="white",
        xaxis=dict(showgrid=False, dtick=1),
        yaxis=dict(showgrid=False, title="CHF (nominal)"),
        title=dict(x=0, xanchor="left", font=dict(size=15)),
        bargap=0.3,
        legend=dict(orientation="h", x=0, y=1.1),
    )
    return fig

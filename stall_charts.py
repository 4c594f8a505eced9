"""Plotly figures and tables for the Performance Analytics screen."""

from typing import Sequence

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from stall_metrics import ItemMetrics

METRIC_COLUMNS = [
    "id", "name", "selling_price", "cost", "profit_per_plate",
    "profit_margin", "plates_sold", "item_revenue", "item_profit",
]


def metrics_frame(item_metrics: Sequence[ItemMetrics]) -> pd.DataFrame:
    """One row per menu item, catalog order."""
    return pd.DataFrame(
        [{col: getattr(m, col) for col in METRIC_COLUMNS} for m in item_metrics],
        columns=METRIC_COLUMNS,
    )


def profit_distribution_figure(item_metrics: Sequence[ItemMetrics], currency: str = "₹") -> go.Figure:
    """Pie of today's profit by item. Items with no positive profit are left out."""
    df = metrics_frame(item_metrics)
    df = df[df["item_profit"] > 0]
    fig = px.pie(
        df,
        names="name",
        values="item_profit",
        title="Profit Contribution by Item (Today)",
        hole=0.0,
    )
    fig.update_traces(
        marker=dict(line=dict(color="#ffffff", width=2)),
        hovertemplate=f"<b>%{{label}}</b><br>{currency}%{{value:,.2f}} (%{{percent}})<extra></extra>",
    )
    fig.update_layout(legend=dict(orientation="v", x=1.02, y=0.5), margin=dict(t=50, b=10, l=10, r=10))
    return fig


def sales_vs_margin_figure(item_metrics: Sequence[ItemMetrics]) -> go.Figure:
    """Plates sold (left axis) against profit margin (right axis), busiest item first."""
    df = metrics_frame(item_metrics).sort_values("plates_sold", ascending=False, kind="stable")

    fig = go.Figure()
    fig.add_trace(go.Bar(
        x=df["name"],
        y=df["plates_sold"],
        name="Plates Sold",
        marker_color="rgba(255, 159, 64, 0.7)",
        offsetgroup=0,
        yaxis="y",
        hovertemplate="<b>%{x}</b><br>Plates: %{y}<extra></extra>",
    ))
    fig.add_trace(go.Bar(
        x=df["name"],
        y=df["profit_margin"],
        name="Profit Margin (%)",
        marker_color="rgba(75, 192, 192, 0.7)",
        offsetgroup=1,
        yaxis="y2",
        hovertemplate="<b>%{x}</b><br>Margin: %{y:.1f}%<extra></extra>",
    ))
    fig.update_layout(
        title="Sales Volume vs. Profit Margin",
        barmode="group",
        yaxis=dict(title="Plates Sold"),
        yaxis2=dict(title="Profit Margin (%)", overlaying="y", side="right", showgrid=False),
        legend=dict(orientation="h", y=1.1),
        margin=dict(t=80, b=10, l=10, r=10),
    )
    return fig


def cost_breakdown_figure(item_metrics: Sequence[ItemMetrics], currency: str = "₹") -> go.Figure:
    """Selling price split into ingredient cost and profit, per plate."""
    df = metrics_frame(item_metrics)
    long_df = df.melt(
        id_vars="name",
        value_vars=["cost", "profit_per_plate"],
        var_name="part",
        value_name="amount",
    )
    long_df["part"] = long_df["part"].map({"cost": "Ingredient Cost", "profit_per_plate": "Profit"})
    fig = px.bar(
        long_df,
        x="name",
        y="amount",
        color="part",
        barmode="relative",
        title="Per-Plate Cost vs. Profit",
        labels={"name": "", "amount": f"{currency} per plate", "part": ""},
        color_discrete_map={"Ingredient Cost": "#f97316", "Profit": "#22c55e"},
    )
    fig.update_layout(margin=dict(t=50, b=10, l=10, r=10))
    return fig

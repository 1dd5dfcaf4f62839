"""
visualization.py — Plotly figure factories for project ledgers.

Depends on: ledger.py, sale.py, statements.py
All functions return plotly.graph_objects.Figure objects.
"""
from __future__ import annotations

from typing import Iterable

import pandas as pd
import plotly.graph_objects as go
from plotly.subplots import make_subplots

from invest_ledger.ledger import ProjectLedger
from invest_ledger.sale import SaleDistribution
from invest_ledger.statements import StatementRow, participants_frame, statement_frame


# ---------------------------------------------------------------------------
# Theme
# ---------------------------------------------------------------------------

_LEDGER_COLORS = {
    "background": "#FFFFFF",
    "paper": "#F8FAFC",
    "grid": "#E2E8F0",
    "text": "#1E293B",
    "text_secondary": "#64748B",
    "accent": "#F97316",
    "positive": "#16A34A",
    "negative": "#DC2626",
    "neutral": "#0EA5E9",
}

_SERIES_COLORS = [
    "#F97316", "#0EA5E9", "#16A34A", "#A855F7",
    "#EAB308", "#EC4899", "#14B8A6", "#64748B",
]

_PLOTLY_TEMPLATE = "plotly_white"


def _apply_ledger_theme(fig: go.Figure) -> go.Figure:
    """Light console styling; modifies the figure in place and returns it."""
    fig.update_layout(
        template=_PLOTLY_TEMPLATE,
        paper_bgcolor=_LEDGER_COLORS["paper"],
        plot_bgcolor=_LEDGER_COLORS["background"],
        font=dict(
            family="Inter, -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif",
            color=_LEDGER_COLORS["text"],
            size=12,
        ),
        title_font=dict(size=16, color=_LEDGER_COLORS["text"]),
        legend=dict(
            bgcolor=_LEDGER_COLORS["paper"],
            bordercolor=_LEDGER_COLORS["grid"],
            borderwidth=1,
            font=dict(color=_LEDGER_COLORS["text_secondary"]),
        ),
    )
    fig.update_xaxes(gridcolor=_LEDGER_COLORS["grid"], zerolinecolor=_LEDGER_COLORS["grid"])
    fig.update_yaxes(gridcolor=_LEDGER_COLORS["grid"], zerolinecolor=_LEDGER_COLORS["grid"])
    return fig


# ---------------------------------------------------------------------------
# Ownership
# ---------------------------------------------------------------------------

def plot_share_breakdown(ledger: ProjectLedger, title: str = "Project Ownership") -> go.Figure:
    """
    Donut of active participants' shares next to a capital bar chart.

    Parameters
    ----------
    ledger:
        ProjectLedger instance.
    title:
        Chart title.

    Returns
    -------
    go.Figure (subplot with pie + bar chart)
    """
    df = participants_frame(ledger.engine, include_blocked=False)
    if df.empty:
        return go.Figure()

    currency = ledger.project.currency
    fig = make_subplots(
        rows=1,
        cols=2,
        specs=[[{"type": "domain"}, {"type": "bar"}]],
        subplot_titles=["Share of Project", f"Capital Committed ({currency})"],
    )
    colors = _SERIES_COLORS[: len(df)]

    fig.add_trace(
        go.Pie(
            labels=df["investor_name"],
            values=df["project_share"],
            hole=0.5,
            marker=dict(colors=colors),
            hovertemplate="%{label}<br>%{value:.2f}%<extra></extra>",
            sort=False,
        ),
        row=1,
        col=1,
    )
    fig.add_trace(
        go.Bar(
            y=df["investor_name"],
            x=df["amount"],
            orientation="h",
            marker_color=colors,
            hovertemplate="%{y}<br>%{x:,.2f}<extra></extra>",
            name="Capital",
            showlegend=False,
        ),
        row=1,
        col=2,
    )

    remaining = float(ledger.engine.remaining_capacity())
    fig.update_layout(title=f"{title} — {ledger.project.title} (unfunded {remaining:,.0f} {currency})")
    return _apply_ledger_theme(fig)


# ---------------------------------------------------------------------------
# Sale
# ---------------------------------------------------------------------------

def plot_sale_waterfall(distribution: SaleDistribution, title: str = "Sale Profit Split") -> go.Figure:
    """Sale price down to net distributable profit as a waterfall."""
    steps = [
        ("Sale Amount", float(distribution.sale_amount), "absolute"),
        ("Project Amount", -float(distribution.project_amount), "relative"),
        ("Gross Profit", float(distribution.gross_profit), "total"),
        ("Admin Fee", -float(distribution.admin_fee), "relative"),
        ("Net Distributable", float(distribution.net_distributable), "total"),
    ]
    fig = go.Figure(
        go.Waterfall(
            x=[s[0] for s in steps],
            y=[s[1] for s in steps],
            measure=[s[2] for s in steps],
            increasing=dict(marker=dict(color=_LEDGER_COLORS["positive"])),
            decreasing=dict(marker=dict(color=_LEDGER_COLORS["negative"])),
            totals=dict(marker=dict(color=_LEDGER_COLORS["accent"])),
            connector=dict(line=dict(color=_LEDGER_COLORS["grid"])),
            hovertemplate="%{x}<br>%{y:,.2f}<extra></extra>",
        )
    )
    fig.update_layout(title=title, yaxis_title=distribution.currency, showlegend=False)
    return _apply_ledger_theme(fig)


def plot_payouts(distribution: SaleDistribution, title: str = "Payout per Investor") -> go.Figure:
    """Stacked payout and agent commission exposure per investor."""
    df = distribution.to_frame()
    if df.empty:
        return go.Figure()
    names = df["investor_name"].fillna(df["investor_id"])

    fig = go.Figure()
    fig.add_trace(
        go.Bar(
            x=names,
            y=df["payout"],
            name="Payout",
            marker_color=[
                _LEDGER_COLORS["positive"] if v >= 0 else _LEDGER_COLORS["negative"] for v in df["payout"]
            ],
            customdata=df["share"],
            hovertemplate="%{x}<br>Payout: %{y:,.2f}<br>Share: %{customdata:.2f}%<extra></extra>",
        )
    )
    fig.add_trace(
        go.Bar(
            x=names,
            y=df["commission"],
            name="Agent Commission",
            marker_color=_LEDGER_COLORS["neutral"],
            hovertemplate="%{x}<br>Commission: %{y:,.2f}<extra></extra>",
        )
    )
    fig.update_layout(title=title, barmode="group", yaxis_title=distribution.currency)
    return _apply_ledger_theme(fig)


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------

def plot_monthly_statement(
    rows: Iterable[StatementRow],
    show_cumulative: bool = True,
    title: str = "Monthly Statement",
) -> go.Figure:
    """
    Due versus paid per accrual month, with cumulative outstanding on a
    secondary axis.
    """
    df: pd.DataFrame = statement_frame(rows)
    if df.empty:
        return go.Figure()

    fig = make_subplots(specs=[[{"secondary_y": True}]])
    fig.add_trace(
        go.Bar(
            x=df["label"],
            y=df["monthly_total_due"],
            name="Due",
            marker_color=_LEDGER_COLORS["accent"],
            opacity=0.8,
        ),
        secondary_y=False,
    )
    fig.add_trace(
        go.Bar(
            x=df["label"],
            y=df["monthly_total_paid"],
            name="Paid",
            marker_color=_LEDGER_COLORS["positive"],
            opacity=0.8,
            customdata=df["status"],
            hovertemplate="%{x}<br>Paid: %{y:,.2f} (%{customdata})<extra></extra>",
        ),
        secondary_y=False,
    )
    if show_cumulative:
        fig.add_trace(
            go.Scatter(
                x=df["label"],
                y=df["outstanding"].cumsum(),
                name="Cumulative Outstanding",
                mode="lines+markers",
                line=dict(color=_LEDGER_COLORS["negative"], width=2),
            ),
            secondary_y=True,
        )

    fig.update_layout(title=title, barmode="group", hovermode="x unified")
    fig.update_yaxes(title_text="Amount", secondary_y=False)
    fig.update_yaxes(title_text="Outstanding", secondary_y=True)
    return _apply_ledger_theme(fig)


def plot_investor_cashflows(flows: pd.DataFrame, title: str = "Investor Cash Flows") -> go.Figure:
    """
    Bars of dated cash flows with the running net position.

    Parameters
    ----------
    flows:
        Output of ``returns.participant_cashflows``.
    """
    if flows.empty:
        return go.Figure()
    colors = [_LEDGER_COLORS["positive"] if v > 0 else _LEDGER_COLORS["negative"] for v in flows["amount"]]
    fig = make_subplots(specs=[[{"secondary_y": True}]])
    fig.add_trace(
        go.Bar(
            x=flows["created_at"],
            y=flows["amount"],
            name="Cash Flow",
            marker_color=colors,
            customdata=flows["transaction_type"],
            hovertemplate="%{x|%d %b %Y}<br>%{customdata}: %{y:,.2f}<extra></extra>",
        ),
        secondary_y=False,
    )
    fig.add_trace(
        go.Scatter(
            x=flows["created_at"],
            y=flows["amount"].cumsum(),
            name="Net Position",
            mode="lines+markers",
            line=dict(color=_LEDGER_COLORS["accent"], width=2, shape="hv"),
        ),
        secondary_y=True,
    )
    fig.update_layout(title=title, hovermode="x unified")
    return _apply_ledger_theme(fig)

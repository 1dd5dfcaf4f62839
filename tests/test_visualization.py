"""Tests for invest_ledger.visualization — figure construction only."""
from __future__ import annotations

import pandas as pd
import plotly.graph_objects as go

from invest_ledger import visualization as viz
from invest_ledger.returns import participant_cashflows
from invest_ledger.statements import monthly_statement


class TestFigures:
    def test_share_breakdown(self, funded_ledger):
        fig = viz.plot_share_breakdown(funded_ledger)
        assert isinstance(fig, go.Figure)
        assert len(fig.data) == 2
        assert fig.data[0].type == "pie"

    def test_share_breakdown_empty(self, ledger):
        assert len(viz.plot_share_breakdown(ledger).data) == 0

    def test_sale_figures(self, funded_ledger):
        distribution = funded_ledger.preview_sale(150_000)
        waterfall = viz.plot_sale_waterfall(distribution)
        assert waterfall.data[0].type == "waterfall"
        assert list(waterfall.data[0].x)[-1] == "Net Distributable"
        assert len(viz.plot_payouts(distribution).data) == 2

    def test_monthly_statement(self, funded_ledger):
        funded_ledger.accrue("part-a", 500, month="2024-01")
        funded_ledger.accrue("part-a", 500, month="2024-02")
        rows = monthly_statement(funded_ledger.book, "inv-a", 2024)
        assert len(viz.plot_monthly_statement(rows).data) == 3
        assert len(viz.plot_monthly_statement(rows, show_cumulative=False).data) == 2
        assert len(viz.plot_monthly_statement([]).data) == 0

    def test_cashflows(self, funded_ledger):
        flows = participant_cashflows(funded_ledger.audit_log, "proj-1", "inv-a")
        assert len(viz.plot_investor_cashflows(flows).data) == 2
        assert len(viz.plot_investor_cashflows(pd.DataFrame(columns=flows.columns)).data) == 0

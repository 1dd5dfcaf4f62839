"""
sale_distribution.py — Builds a three-investor project, previews and declares a sale.

Run:
    python examples/sale_distribution.py
"""
from __future__ import annotations

import logging

from invest_ledger import InvestmentProject, ProjectLedger, format_currency
from invest_ledger import visualization as viz


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    # -------------------------------------------------------------------
    # 1. A 250k project with a 10% admin cost
    # -------------------------------------------------------------------
    project = InvestmentProject(
        id="canal-wharf",
        title="Canal Wharf Conversion",
        currency="GBP",
        project_amount=250_000,
        admin_cost=10,
        project_duration=3,
    )
    ledger = ProjectLedger(project)

    # -------------------------------------------------------------------
    # 2. Participants; shares follow committed capital
    # -------------------------------------------------------------------
    ledger.add_participant("inv-ada", 100_000, commission_rate=2, investor_name="Ada")
    ledger.add_participant("inv-ben", 90_000, investor_name="Ben")
    carla = ledger.add_participant("inv-carla", 40_000, commission_rate=1.5, investor_name="Carla")
    ledger.raise_participant_capital(carla.id, 20_000)

    print(ledger.participants_frame()[["investor_name", "amount", "project_share", "agent_commission_rate"]])

    # -------------------------------------------------------------------
    # 3. Preview a few offers, then declare one
    # -------------------------------------------------------------------
    print("\nOffers:")
    for offer in (230_000, 310_000, 360_000):
        preview = ledger.preview_sale(offer)
        print(
            f"  {format_currency(offer):>14}  ->  net {format_currency(preview.net_distributable):>14}"
            f"  {'(loss)' if preview.is_loss else ''}"
        )

    distribution = ledger.declare_sale(360_000)
    summary = distribution.summary()

    print("=" * 60)
    print(f"  {project.title} — Sale")
    print("=" * 60)
    print(f"  Sale Amount:        {format_currency(summary['sale_amount']):>16}")
    print(f"  Project Amount:     {format_currency(summary['project_amount']):>16}")
    print(f"  Gross Profit:       {format_currency(summary['gross_profit']):>16}")
    print(f"  Admin Fee:          {format_currency(summary['admin_fee']):>16}")
    print(f"  Net Distributable:  {format_currency(summary['net_distributable']):>16}")
    print(f"  Agent Commission:   {format_currency(summary['total_commission']):>16}")
    print("=" * 60)
    print(distribution.to_frame().to_string(index=False))

    # -------------------------------------------------------------------
    # 4. Audit trail written by the declaration
    # -------------------------------------------------------------------
    print("\nHistory:")
    print(ledger.history_frame()[["created_at", "label", "details", "amount"]].to_string(index=False))

    # -------------------------------------------------------------------
    # 5. Visualize
    # -------------------------------------------------------------------
    viz.plot_share_breakdown(ledger).show()
    viz.plot_sale_waterfall(distribution).show()
    viz.plot_payouts(distribution).show()


if __name__ == "__main__":
    main()

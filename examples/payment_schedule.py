"""
payment_schedule.py — Monthly profit accruals paid off in installments.

Run:
    python examples/payment_schedule.py
"""
from __future__ import annotations

from invest_ledger import InvestmentProject, ProjectLedger, ValidationError, returns
from invest_ledger import visualization as viz


def main() -> None:
    project = InvestmentProject(
        id="mill-lane",
        title="Mill Lane Refurbishment",
        currency="GBP",
        project_amount=100_000,
        admin_cost=10,
        project_duration=2,
        installment_number=12,
    )
    ledger = ProjectLedger(project)
    alice = ledger.add_participant("inv-alice", 60_000, commission_rate=5, investor_name="Alice")
    ledger.add_participant("inv-bob", 40_000, investor_name="Bob")

    # -------------------------------------------------------------------
    # 1. Accrue rental profit for the first quarter
    # -------------------------------------------------------------------
    for month in ("2024-01", "2024-02", "2024-03"):
        ledger.accrue(alice.id, 500, month=month)

    # -------------------------------------------------------------------
    # 2. Pay January in two installments, part of February
    # -------------------------------------------------------------------
    january = ledger.book.find("inv-alice", "2024-01")
    ledger.record_payment(january.id, 200, note="first installment")
    ledger.record_payment(january.id, 300, note="balance")
    try:
        ledger.record_payment(january.id, 50)
    except ValidationError as exc:
        print(f"Rejected: {exc}")

    february = ledger.book.find("inv-alice", "2024-02")
    ledger.record_payment(february.id, 150)

    # -------------------------------------------------------------------
    # 3. Statement and totals
    # -------------------------------------------------------------------
    rows = ledger.monthly_statement("inv-alice", 2024)
    print("\nStatement 2024 — Alice")
    for row in rows:
        print(
            f"  {row.label:<15} due {row.monthly_total_due:>9,.2f}  "
            f"paid {row.monthly_total_paid:>9,.2f}  {row.status.value}"
        )
    alice = ledger.participant(alice.id)
    print(f"\n  Total due:  {alice.total_due:>10,.2f}")
    print(f"  Total paid: {alice.total_paid:>10,.2f}")

    metrics = returns.participant_returns(ledger.audit_log, project.id, "inv-alice")
    print(f"  Returned / invested: {metrics['profit_multiple']:.2%}")

    # -------------------------------------------------------------------
    # 4. Visualize
    # -------------------------------------------------------------------
    viz.plot_monthly_statement(rows).show()
    viz.plot_investor_cashflows(returns.participant_cashflows(ledger.audit_log, project.id, "inv-alice")).show()


if __name__ == "__main__":
    main()

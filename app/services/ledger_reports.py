"""
Reporting Engine
Read-only financial summaries built from invoices, payments, adjustments,
completed treatments and expenses.
"""

from datetime import date
from typing import Dict, Optional

from app.repositories.ledger import LedgerRepository
from app.schemas.billing import (
    RevenueReport, MonthlyRevenue, ARAgingReport, ProductionReport, DoctorProduction,
    ExpenseReport, CategoryAmount, MonthlyAmount,
)
from app.services.billing_math import (
    money2, aging_bucket, aging_reference, days_past_due, ZERO,
)

AGING_BUCKETS = ("current", "thirty_days", "sixty_days", "ninety_days", "over_ninety")


class ReportingEngine:
    def __init__(self, repository: LedgerRepository):
        self.repository = repository

    async def revenue_report(self, start_date: date, end_date: date) -> RevenueReport:
        """
        Revenue (final amounts by issue date) against collections (non-refunded
        payments by payment date), merged per YYYY-MM.
        """
        total_revenue = await self.repository.total_invoiced(start_date, end_date)
        total_collections = await self.repository.total_collected(start_date, end_date)
        total_adjustments = await self.repository.total_adjusted(start_date, end_date)

        months: Dict[str, MonthlyRevenue] = {}
        for month, amount in await self.repository.invoiced_by_month(start_date, end_date):
            months.setdefault(month, MonthlyRevenue(month=month)).revenue = amount
        for month, amount in await self.repository.collected_by_month(start_date, end_date):
            months.setdefault(month, MonthlyRevenue(month=month)).collections = amount

        return RevenueReport(
            start_date=start_date,
            end_date=end_date,
            total_revenue=total_revenue,
            total_collections=total_collections,
            total_adjustments=total_adjustments,
            by_month=[months[key] for key in sorted(months)],
        )

    async def ar_aging_report(self, as_of: Optional[date] = None) -> ARAgingReport:
        """
        Outstanding balances of sent, partial and overdue invoices, aged in
        whole days from the due date (issue date when there is none).
        """
        as_of = as_of or date.today()
        buckets = {name: ZERO for name in AGING_BUCKETS}
        invoices = await self.repository.receivable_invoices()

        for invoice in invoices:
            balance = money2(invoice.final_amount) - money2(invoice.paid_amount)
            days = days_past_due(aging_reference(invoice.due_date, invoice.issued_date), as_of)
            buckets[aging_bucket(days)] += balance

        return ARAgingReport(
            as_of=as_of,
            total=sum(buckets.values(), ZERO),
            invoice_count=len(invoices),
            **buckets,
        )

    async def production_by_doctor_report(self, start_date: date, end_date: date) -> ProductionReport:
        rows = await self.repository.production_by_doctor(start_date, end_date)
        doctors = [
            DoctorProduction(
                doctor_id=doctor_id,
                doctor_name=name or "Unknown",
                total_production=production,
                treatment_count=count,
            )
            for doctor_id, name, production, count in rows
        ]
        doctors.sort(key=lambda d: d.total_production, reverse=True)
        return ProductionReport(start_date=start_date, end_date=end_date, doctors=doctors)

    async def expense_report(self, start_date: date, end_date: date) -> ExpenseReport:
        total = await self.repository.total_expenses(start_date, end_date)
        by_category = await self.repository.expenses_by_category(start_date, end_date)
        by_month = await self.repository.expenses_by_month(start_date, end_date)

        return ExpenseReport(
            start_date=start_date,
            end_date=end_date,
            total=total,
            by_category=[CategoryAmount(category=c, amount=a) for c, a in by_category],
            by_month=[MonthlyAmount(month=m, amount=a) for m, a in by_month],
        )

"""
Billing ledger facade
One object exposing every ledger operation, built around a single repository
(and therefore a single session / transaction scope).
"""

from sqlalchemy.ext.asyncio import AsyncSession

from app.repositories.ledger import LedgerRepository
from app.services.adjustments import AdjustmentEngine
from app.services.expenses import ExpenseBook
from app.services.invoice_store import InvoiceStore
from app.services.ledger_reports import ReportingEngine
from app.services.payment_ledger import PaymentLedger
from app.services.payment_plans import PaymentPlanManager


class BillingLedger:
    def __init__(self, repository: LedgerRepository):
        self.repository = repository
        self.invoices = InvoiceStore(repository)
        self.payments = PaymentLedger(repository)
        self.plans = PaymentPlanManager(repository)
        self.adjustments = AdjustmentEngine(repository)
        self.expenses = ExpenseBook(repository)
        self.reports = ReportingEngine(repository)

    @classmethod
    def for_session(cls, session: AsyncSession) -> "BillingLedger":
        return cls(LedgerRepository(session))

    # Invoice Store
    async def create_invoice(self, invoice_data):
        return await self.invoices.create_invoice(invoice_data)

    async def get_invoice(self, invoice_id: int):
        return await self.invoices.get_invoice(invoice_id)

    async def list_invoices(self, filters=None):
        return await self.invoices.list_invoices(filters)

    async def update_invoice(self, invoice_id: int, invoice_data):
        return await self.invoices.update_invoice(invoice_id, invoice_data)

    async def mark_overdue(self, as_of=None):
        return await self.invoices.mark_overdue(as_of)

    # Payment Ledger
    async def create_payment(self, payment_data):
        return await self.payments.create_payment(payment_data)

    async def refund_payment(self, payment_id: int, reason: str):
        return await self.payments.refund_payment(payment_id, reason)

    async def get_payment(self, payment_id: int):
        return await self.payments.get_payment(payment_id)

    async def list_payments(self, filters=None):
        return await self.payments.list_payments(filters)

    # Payment Plan Manager
    async def create_payment_plan(self, plan_data):
        return await self.plans.create_payment_plan(plan_data)

    async def create_installment(self, plan_id: int, installment_data):
        return await self.plans.create_installment(plan_id, installment_data)

    async def list_installments(self, plan_id: int):
        return await self.plans.list_installments(plan_id)

    async def get_payment_plan(self, plan_id: int):
        return await self.plans.get_payment_plan(plan_id)

    async def list_payment_plans(self, filters=None):
        return await self.plans.list_payment_plans(filters)

    async def update_payment_plan_status(self, plan_id: int, new_status):
        return await self.plans.update_payment_plan_status(plan_id, new_status)

    # Adjustment Engine
    async def create_adjustment(self, adjustment_data):
        return await self.adjustments.create_adjustment(adjustment_data)

    async def list_adjustments(self, filters=None):
        return await self.adjustments.list_adjustments(filters)

    # Expense Book
    async def create_expense(self, expense_data):
        return await self.expenses.create_expense(expense_data)

    async def get_expense(self, expense_id: int):
        return await self.expenses.get_expense(expense_id)

    async def list_expenses(self, filters=None):
        return await self.expenses.list_expenses(filters)

    async def update_expense(self, expense_id: int, expense_data):
        return await self.expenses.update_expense(expense_id, expense_data)

    async def delete_expense(self, expense_id: int):
        return await self.expenses.delete_expense(expense_id)

    # Reporting Engine
    async def get_revenue_report(self, start_date, end_date):
        return await self.reports.revenue_report(start_date, end_date)

    async def get_ar_aging_report(self, as_of=None):
        return await self.reports.ar_aging_report(as_of)

    async def get_production_by_doctor_report(self, start_date, end_date):
        return await self.reports.production_by_doctor_report(start_date, end_date)

    async def get_expense_report(self, start_date, end_date):
        return await self.reports.expense_report(start_date, end_date)

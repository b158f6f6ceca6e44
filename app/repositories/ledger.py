"""
Billing ledger repository
All SQL used by the ledger services goes through this class. Services receive
an instance in their constructor, so they can run against any AsyncSession
(PostgreSQL in production, in-memory SQLite in tests).
"""

from contextlib import asynccontextmanager
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import select, update, delete, and_, case, extract, func, inspect
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models import (
    Invoice, InvoiceStatus, Payment, PaymentPlan, PaymentPlanInstallment,
    InvoiceAdjustment, Expense, PatientTreatment, TreatmentStatus, User,
)
from app.schemas.billing import (
    InvoiceFilters, PaymentFilters, PaymentPlanFilters, AdjustmentFilters, ExpenseFilters,
)
from app.services.billing_errors import LedgerError
from app.services.billing_math import D, money2, month_key

RECEIVABLE_STATUSES = (InvoiceStatus.SENT, InvoiceStatus.PARTIAL, InvoiceStatus.OVERDUE)


def _floored(expression):
    return case((expression < 0, 0), else_=expression)


def _month_columns(column):
    return extract("year", column), extract("month", column)


class LedgerRepository:
    """Storage access for invoices, payments, plans, adjustments and expenses"""

    def __init__(self, session: AsyncSession):
        self.session = session

    @asynccontextmanager
    async def unit_of_work(self):
        """
        Commit everything done inside the block, or roll all of it back.

        A rejected operation (LedgerError) leaves the session usable: rows the
        ledger already returned are re-read after the rollback, so callers
        holding them can keep reading attributes.
        """
        try:
            yield self
            await self.session.commit()
        except LedgerError:
            await self._rollback_and_reload()
            raise
        except Exception:
            await self.session.rollback()
            raise

    async def _rollback_and_reload(self) -> None:
        # rollback() expires every instance; remember what was loaded first
        loaded = []
        for obj in list(self.session.identity_map.values()):
            state = inspect(obj)
            names = [key for key in state.mapper.attrs.keys() if key not in state.unloaded]
            loaded.append((obj, names))

        await self.session.rollback()

        for obj, names in loaded:
            if names and inspect(obj).persistent:
                await self.session.refresh(obj, attribute_names=names)

    async def add(self, obj):
        self.session.add(obj)
        await self.session.flush()
        return obj

    # ==================== Invoices ====================

    async def get_invoice(self, invoice_id: int, for_update: bool = False) -> Optional[Invoice]:
        """
        Load an invoice with its items, always overwriting cached attributes.
        for_update takes the row lock that serializes balance changes.
        """
        query = select(Invoice).options(selectinload(Invoice.items)).filter(Invoice.id == invoice_id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query.execution_options(populate_existing=True))
        return result.scalar_one_or_none()

    async def list_invoices(self, filters: InvoiceFilters) -> List[Invoice]:
        query = select(Invoice).options(selectinload(Invoice.items))

        if filters.patient_id:
            query = query.filter(Invoice.patient_id == filters.patient_id)
        if filters.status:
            query = query.filter(Invoice.status == filters.status)
        if filters.start_date:
            query = query.filter(Invoice.issued_date >= filters.start_date)
        if filters.end_date:
            query = query.filter(Invoice.issued_date <= filters.end_date)

        result = await self.session.execute(
            query.order_by(Invoice.issued_date.desc(), Invoice.id.desc()).execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def invoice_number_exists(self, invoice_number: str) -> bool:
        result = await self.session.execute(
            select(func.count(Invoice.id)).filter(Invoice.invoice_number == invoice_number)
        )
        return result.scalar_one() > 0

    async def increment_invoice_paid(self, invoice_id: int, delta: Decimal) -> Invoice:
        """paid_amount = max(0, paid_amount + delta), evaluated by the database"""
        await self.session.execute(
            update(Invoice)
            .where(Invoice.id == invoice_id)
            .values(paid_amount=_floored(Invoice.paid_amount + delta))
            .execution_options(synchronize_session=False)
        )
        return await self.get_invoice(invoice_id)

    async def shift_invoice_final(self, invoice_id: int, delta: Decimal, floor_at_zero: bool) -> Invoice:
        """final_amount = final_amount + delta (floored at zero when asked), evaluated by the database"""
        new_final = Invoice.final_amount + delta
        await self.session.execute(
            update(Invoice)
            .where(Invoice.id == invoice_id)
            .values(final_amount=_floored(new_final) if floor_at_zero else new_final)
            .execution_options(synchronize_session=False)
        )
        return await self.get_invoice(invoice_id)

    async def mark_overdue(self, as_of: date) -> int:
        result = await self.session.execute(
            update(Invoice)
            .where(and_(
                Invoice.status == InvoiceStatus.SENT,
                Invoice.due_date.isnot(None),
                Invoice.due_date < as_of,
            ))
            .values(status=InvoiceStatus.OVERDUE)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def receivable_invoices(self) -> List[Invoice]:
        result = await self.session.execute(
            select(Invoice)
            .filter(Invoice.status.in_(RECEIVABLE_STATUSES))
            .order_by(Invoice.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    # ==================== Payments ====================

    async def get_payment(self, payment_id: int, for_update: bool = False) -> Optional[Payment]:
        query = select(Payment).filter(Payment.id == payment_id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query.execution_options(populate_existing=True))
        return result.scalar_one_or_none()

    async def list_payments(self, filters: PaymentFilters) -> List[Payment]:
        query = select(Payment)

        if filters.invoice_id:
            query = query.filter(Payment.invoice_id == filters.invoice_id)
        if filters.payment_plan_installment_id:
            query = query.filter(Payment.payment_plan_installment_id == filters.payment_plan_installment_id)
        if filters.is_refunded is not None:
            query = query.filter(Payment.is_refunded == filters.is_refunded)
        if filters.start_date:
            query = query.filter(Payment.payment_date >= filters.start_date)
        if filters.end_date:
            query = query.filter(Payment.payment_date <= filters.end_date)

        result = await self.session.execute(query.order_by(Payment.payment_date.desc(), Payment.id.desc()))
        return list(result.scalars().all())

    # ==================== Payment Plans ====================

    async def get_payment_plan(self, plan_id: int, for_update: bool = False) -> Optional[PaymentPlan]:
        query = select(PaymentPlan).options(selectinload(PaymentPlan.installments)).filter(PaymentPlan.id == plan_id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query.execution_options(populate_existing=True))
        return result.scalar_one_or_none()

    async def list_payment_plans(self, filters: PaymentPlanFilters) -> List[PaymentPlan]:
        query = select(PaymentPlan).options(selectinload(PaymentPlan.installments))

        if filters.invoice_id:
            query = query.filter(PaymentPlan.invoice_id == filters.invoice_id)
        if filters.patient_id:
            query = query.filter(PaymentPlan.patient_id == filters.patient_id)
        if filters.status:
            query = query.filter(PaymentPlan.status == filters.status)

        result = await self.session.execute(query.order_by(PaymentPlan.id.desc()))
        return list(result.scalars().all())

    async def get_installment(self, installment_id: int, for_update: bool = False) -> Optional[PaymentPlanInstallment]:
        query = select(PaymentPlanInstallment).filter(PaymentPlanInstallment.id == installment_id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query.execution_options(populate_existing=True))
        return result.scalar_one_or_none()

    async def list_installments(self, plan_id: int) -> List[PaymentPlanInstallment]:
        result = await self.session.execute(
            select(PaymentPlanInstallment)
            .filter(PaymentPlanInstallment.payment_plan_id == plan_id)
            .order_by(PaymentPlanInstallment.installment_number)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def increment_installment_paid(self, installment_id: int, delta: Decimal) -> PaymentPlanInstallment:
        await self.session.execute(
            update(PaymentPlanInstallment)
            .where(PaymentPlanInstallment.id == installment_id)
            .values(paid_amount=PaymentPlanInstallment.paid_amount + delta)
            .execution_options(synchronize_session=False)
        )
        return await self.get_installment(installment_id)

    # ==================== Adjustments ====================

    async def list_adjustments(self, filters: AdjustmentFilters) -> List[InvoiceAdjustment]:
        query = select(InvoiceAdjustment)

        if filters.invoice_id:
            query = query.filter(InvoiceAdjustment.invoice_id == filters.invoice_id)
        if filters.type:
            query = query.filter(InvoiceAdjustment.type == filters.type)
        if filters.start_date:
            query = query.filter(InvoiceAdjustment.applied_date >= filters.start_date)
        if filters.end_date:
            query = query.filter(InvoiceAdjustment.applied_date <= filters.end_date)

        result = await self.session.execute(
            query.order_by(InvoiceAdjustment.applied_date.desc(), InvoiceAdjustment.id.desc())
        )
        return list(result.scalars().all())

    # ==================== Expenses ====================

    async def get_expense(self, expense_id: int) -> Optional[Expense]:
        result = await self.session.execute(select(Expense).filter(Expense.id == expense_id))
        return result.scalar_one_or_none()

    async def list_expenses(self, filters: ExpenseFilters) -> List[Expense]:
        query = select(Expense)

        if filters.category:
            query = query.filter(Expense.category == filters.category)
        if filters.start_date:
            query = query.filter(Expense.expense_date >= filters.start_date)
        if filters.end_date:
            query = query.filter(Expense.expense_date <= filters.end_date)

        result = await self.session.execute(query.order_by(Expense.expense_date.desc(), Expense.id.desc()))
        return list(result.scalars().all())

    async def delete_expense(self, expense_id: int) -> bool:
        result = await self.session.execute(delete(Expense).where(Expense.id == expense_id))
        return (result.rowcount or 0) > 0

    # ==================== Report aggregates ====================

    async def _sum(self, column, *conditions) -> Decimal:
        result = await self.session.execute(
            select(func.coalesce(func.sum(column), 0)).filter(*conditions)
        )
        return money2(result.scalar_one())

    async def _sum_by_month(self, amount_column, date_column, *conditions) -> List[Tuple[str, Decimal]]:
        year, month = _month_columns(date_column)
        result = await self.session.execute(
            select(year, month, func.coalesce(func.sum(amount_column), 0))
            .filter(*conditions)
            .group_by(year, month)
            .order_by(year, month)
        )
        return [(month_key(y, m), money2(total)) for y, m, total in result.all()]

    def _invoice_range(self, start: date, end: date):
        return (Invoice.issued_date >= start, Invoice.issued_date <= end)

    def _collection_range(self, start: date, end: date):
        return (Payment.payment_date >= start, Payment.payment_date <= end, Payment.is_refunded == False)  # noqa: E712

    def _expense_range(self, start: date, end: date):
        return (Expense.expense_date >= start, Expense.expense_date <= end)

    async def total_invoiced(self, start: date, end: date) -> Decimal:
        return await self._sum(Invoice.final_amount, *self._invoice_range(start, end))

    async def total_collected(self, start: date, end: date) -> Decimal:
        return await self._sum(Payment.amount, *self._collection_range(start, end))

    async def total_adjusted(self, start: date, end: date) -> Decimal:
        return await self._sum(
            InvoiceAdjustment.amount,
            InvoiceAdjustment.applied_date >= start,
            InvoiceAdjustment.applied_date <= end,
        )

    async def invoiced_by_month(self, start: date, end: date) -> List[Tuple[str, Decimal]]:
        return await self._sum_by_month(Invoice.final_amount, Invoice.issued_date, *self._invoice_range(start, end))

    async def collected_by_month(self, start: date, end: date) -> List[Tuple[str, Decimal]]:
        return await self._sum_by_month(Payment.amount, Payment.payment_date, *self._collection_range(start, end))

    async def total_expenses(self, start: date, end: date) -> Decimal:
        return await self._sum(Expense.amount, *self._expense_range(start, end))

    async def expenses_by_category(self, start: date, end: date) -> List[Tuple[str, Decimal]]:
        total = func.coalesce(func.sum(Expense.amount), 0)
        result = await self.session.execute(
            select(Expense.category, total)
            .filter(*self._expense_range(start, end))
            .group_by(Expense.category)
            .order_by(total.desc())
        )
        return [(category, money2(amount)) for category, amount in result.all()]

    async def expenses_by_month(self, start: date, end: date) -> List[Tuple[str, Decimal]]:
        return await self._sum_by_month(Expense.amount, Expense.expense_date, *self._expense_range(start, end))

    async def production_by_doctor(self, start: date, end: date) -> List[Tuple[int, Optional[str], Decimal, int]]:
        """(doctor_id, doctor full name or None, production, treatment count) for completed treatments"""
        query = (
            select(
                PatientTreatment.doctor_id,
                User.first_name,
                User.last_name,
                func.coalesce(func.sum(PatientTreatment.price), 0),
                func.count(PatientTreatment.id),
            )
            .outerjoin(User, User.id == PatientTreatment.doctor_id)
            .filter(
                PatientTreatment.status == TreatmentStatus.COMPLETED,
                PatientTreatment.doctor_id.isnot(None),
                PatientTreatment.completion_date >= start,
                PatientTreatment.completion_date <= end,
            )
            .group_by(PatientTreatment.doctor_id, User.first_name, User.last_name)
        )
        result = await self.session.execute(query)
        rows = []
        for doctor_id, first_name, last_name, production, count in result.all():
            name = f"{first_name} {last_name}" if first_name is not None else None
            rows.append((doctor_id, name, money2(production), int(count)))
        return rows

"""
Payment Plan Manager
Splits an invoice balance into scheduled installments. Installments are
settled only by payments that reference them.
"""

import logging
from typing import List, Optional

from app.core.logging import ledger_logger
from app.models import PaymentPlan, PaymentPlanInstallment, PaymentPlanStatus
from app.repositories.ledger import LedgerRepository
from app.schemas.billing import (
    PaymentPlanCreate, PaymentPlanFilters, InstallmentCreate,
)
from app.services.billing_errors import (
    InvoiceNotFound, PaymentPlanNotFound, InvalidAmountError, InvalidScheduleError,
)
from app.services.billing_math import money2, split_installments, ZERO

logger = logging.getLogger(__name__)


def _validate_schedule(schedule: List[InstallmentCreate], covered) -> None:
    numbers = [item.installment_number for item in schedule]
    if len(numbers) != len(set(numbers)):
        raise InvalidScheduleError("Installment numbers must be unique within a plan")

    scheduled = sum((money2(item.amount) for item in schedule), ZERO)
    if scheduled != covered:
        raise InvalidScheduleError(
            f"Installments add up to {scheduled} but the plan covers {covered}"
        )


class PaymentPlanManager:
    def __init__(self, repository: LedgerRepository):
        self.repository = repository

    async def create_payment_plan(self, plan_data: PaymentPlanCreate) -> PaymentPlan:
        total = money2(plan_data.total_amount)
        down_payment = money2(plan_data.down_payment)
        covered = total - down_payment
        if covered <= 0:
            raise InvalidAmountError("Down payment must be smaller than the plan total")

        if plan_data.schedule is not None:
            # An empty schedule creates the plan bare; installments are appended later
            if plan_data.schedule:
                _validate_schedule(plan_data.schedule, covered)
            rows = [
                (item.installment_number, money2(item.amount), item.due_date, item.notes)
                for item in sorted(plan_data.schedule, key=lambda i: i.installment_number)
            ]
        else:
            rows = [
                (number, amount, due_date, None)
                for number, amount, due_date in split_installments(
                    covered, plan_data.number_of_installments, plan_data.start_date, plan_data.frequency
                )
            ]

        async with self.repository.unit_of_work():
            invoice = await self.repository.get_invoice(plan_data.invoice_id, for_update=True)
            if not invoice:
                raise InvoiceNotFound(plan_data.invoice_id)

            outstanding = money2(invoice.final_amount) - money2(invoice.paid_amount)
            if covered > outstanding:
                raise InvalidScheduleError(
                    f"Plan covers {covered} but invoice {invoice.id} has {outstanding} outstanding"
                )

            plan = PaymentPlan(
                invoice_id=invoice.id,
                patient_id=plan_data.patient_id,
                total_amount=total,
                down_payment=down_payment,
                number_of_installments=len(rows) or plan_data.number_of_installments,
                installment_amount=rows[0][1] if rows else money2(covered / plan_data.number_of_installments),
                frequency=plan_data.frequency,
                start_date=plan_data.start_date,
                status=PaymentPlanStatus.ACTIVE,
                notes=plan_data.notes,
                installments=[
                    PaymentPlanInstallment(
                        installment_number=number,
                        amount=amount,
                        due_date=due_date,
                        paid_amount=ZERO,
                        is_paid=False,
                        notes=notes,
                    )
                    for number, amount, due_date, notes in rows
                ],
            )
            await self.repository.add(plan)
            plan_id = plan.id

        ledger_logger.log_payment_plan_created(plan_id, plan_data.invoice_id, len(rows), covered)
        return await self.get_payment_plan(plan_id)

    async def create_installment(self, plan_id: int, installment_data: InstallmentCreate) -> PaymentPlanInstallment:
        """Append one installment; the schedule may not exceed the plan's covered balance"""
        amount = money2(installment_data.amount)
        if amount <= 0:
            raise InvalidAmountError("Installment amount must be greater than zero")

        async with self.repository.unit_of_work():
            plan = await self.repository.get_payment_plan(plan_id, for_update=True)
            if not plan:
                raise PaymentPlanNotFound(plan_id)

            if any(i.installment_number == installment_data.installment_number for i in plan.installments):
                raise InvalidScheduleError(
                    f"Installment {installment_data.installment_number} already exists on plan {plan_id}"
                )

            scheduled = sum((money2(i.amount) for i in plan.installments), ZERO)
            covered = money2(plan.covered_amount)
            if scheduled + amount > covered:
                raise InvalidScheduleError(
                    f"Plan {plan_id} covers {covered}; {scheduled} is already scheduled"
                )

            installment = PaymentPlanInstallment(
                payment_plan_id=plan.id,
                installment_number=installment_data.installment_number,
                amount=amount,
                due_date=installment_data.due_date,
                paid_amount=ZERO,
                is_paid=False,
                notes=installment_data.notes,
            )
            await self.repository.add(installment)
            plan.number_of_installments = max(plan.number_of_installments, len(plan.installments) + 1)
            installment_id = installment.id

        logger.info(f"Installment {installment_data.installment_number} added to payment plan {plan_id}")
        return await self.repository.get_installment(installment_id)

    async def list_installments(self, plan_id: int) -> List[PaymentPlanInstallment]:
        if not await self.repository.get_payment_plan(plan_id):
            raise PaymentPlanNotFound(plan_id)
        return await self.repository.list_installments(plan_id)

    async def get_payment_plan(self, plan_id: int) -> PaymentPlan:
        plan = await self.repository.get_payment_plan(plan_id)
        if not plan:
            raise PaymentPlanNotFound(plan_id)
        return plan

    async def list_payment_plans(self, filters: Optional[PaymentPlanFilters] = None) -> List[PaymentPlan]:
        return await self.repository.list_payment_plans(filters or PaymentPlanFilters())

    async def update_payment_plan_status(self, plan_id: int, new_status: PaymentPlanStatus) -> PaymentPlan:
        async with self.repository.unit_of_work():
            plan = await self.repository.get_payment_plan(plan_id, for_update=True)
            if not plan:
                raise PaymentPlanNotFound(plan_id)
            previous = plan.status
            plan.status = new_status
            await self.repository.session.flush()

        logger.info(f"Payment plan {plan_id} status changed: {previous.value} -> {new_status.value}")
        return await self.get_payment_plan(plan_id)

"""
Payment Ledger
Records payments against invoices (and optionally plan installments) and
reverses them through refunds. Every balance change locks the invoice row,
applies an atomic increment and re-derives the status in the same transaction.
"""

import logging
from datetime import date, datetime, timezone
from typing import List, Optional

from app.core.logging import ledger_logger
from app.models import Payment, InvoiceStatus, PaymentPlanStatus
from app.repositories.ledger import LedgerRepository
from app.schemas.billing import PaymentCreate, PaymentFilters, RefundResponse, PaymentResponse
from app.services.billing_errors import (
    InvoiceNotFound, PaymentNotFound, PaymentPlanNotFound, InstallmentNotFound,
    InvalidAmountError, InvalidScheduleError, InvoiceStateError,
)
from app.services.billing_math import money2, derive_status, refund_status

logger = logging.getLogger(__name__)


class PaymentLedger:
    def __init__(self, repository: LedgerRepository):
        self.repository = repository

    async def create_payment(self, payment_data: PaymentCreate) -> Payment:
        amount = money2(payment_data.amount)
        if amount <= 0:
            raise InvalidAmountError("Payment amount must be greater than zero")

        payment_date = payment_data.payment_date or date.today()

        async with self.repository.unit_of_work():
            invoice = await self.repository.get_invoice(payment_data.invoice_id, for_update=True)
            if not invoice:
                raise InvoiceNotFound(payment_data.invoice_id)
            if invoice.status == InvoiceStatus.CANCELED:
                raise InvoiceStateError(f"Invoice {invoice.id} is canceled and cannot take payments")

            installment = None
            if payment_data.payment_plan_installment_id:
                installment = await self.repository.get_installment(
                    payment_data.payment_plan_installment_id, for_update=True
                )
                if not installment:
                    raise InstallmentNotFound(payment_data.payment_plan_installment_id)
                plan = await self.repository.get_payment_plan(installment.payment_plan_id)
                if plan.invoice_id != invoice.id:
                    raise InvalidScheduleError(
                        f"Installment {installment.id} belongs to a plan on invoice {plan.invoice_id}"
                    )

            payment = Payment(
                invoice_id=invoice.id,
                payment_plan_installment_id=installment.id if installment else None,
                amount=amount,
                payment_date=payment_date,
                payment_method=payment_data.payment_method,
                reference_number=payment_data.reference_number,
                notes=payment_data.notes,
                is_refunded=False,
            )
            await self.repository.add(payment)

            invoice = await self.repository.increment_invoice_paid(invoice.id, amount)
            invoice.status = derive_status(invoice.status, invoice.paid_amount, invoice.final_amount)

            if installment:
                await self._settle_installment(installment.id, amount, payment_date)

            await self.repository.session.flush()
            payment_id = payment.id
            paid_amount = invoice.paid_amount
            new_status = invoice.status

        ledger_logger.log_payment_recorded(
            payment_id, payment_data.invoice_id, amount, paid_amount, new_status.value,
            installment_id=payment_data.payment_plan_installment_id,
        )
        return await self.get_payment(payment_id)

    async def _settle_installment(self, installment_id: int, amount, payment_date: date):
        """Add amount to the installment; close it, and its plan once every installment is closed"""
        installment = await self.repository.increment_installment_paid(installment_id, amount)
        if not installment.is_paid and installment.paid_amount >= installment.amount:
            installment.is_paid = True
            installment.paid_date = payment_date
            await self.repository.session.flush()

        plan = await self.repository.get_payment_plan(installment.payment_plan_id, for_update=True)
        if plan is None:
            raise PaymentPlanNotFound(installment.payment_plan_id)
        if plan.status == PaymentPlanStatus.ACTIVE and all(i.is_paid for i in plan.installments):
            plan.status = PaymentPlanStatus.COMPLETED
            logger.info(f"Payment plan {plan.id} completed")

    async def refund_payment(self, payment_id: int, reason: str) -> RefundResponse:
        """
        Refund a payment.

        Refunding a payment twice changes nothing the second time; the result
        carries already_refunded=True instead of raising. Installment
        allocations are left as they are.
        """
        async with self.repository.unit_of_work():
            payment = await self.repository.get_payment(payment_id)
            if not payment:
                raise PaymentNotFound(payment_id)

            # Same lock order as create_payment: invoice row first, then the payment
            invoice = await self.repository.get_invoice(payment.invoice_id, for_update=True)
            payment = await self.repository.get_payment(payment_id, for_update=True)

            if payment.is_refunded:
                already_refunded = True
                paid_amount = None
                new_status = None
            else:
                already_refunded = False
                payment.is_refunded = True
                payment.refunded_at = datetime.now(timezone.utc)
                payment.refund_reason = reason
                await self.repository.session.flush()

                invoice = await self.repository.increment_invoice_paid(invoice.id, -money2(payment.amount))
                invoice.status = refund_status(invoice.status, invoice.paid_amount, invoice.final_amount)
                await self.repository.session.flush()
                paid_amount = invoice.paid_amount
                new_status = invoice.status.value

        ledger_logger.log_payment_refunded(
            payment_id, payment.invoice_id, payment.amount, reason,
            already_refunded=already_refunded, paid_amount=paid_amount, status=new_status,
        )
        payment = await self.get_payment(payment_id)
        return RefundResponse(
            payment=PaymentResponse.model_validate(payment),
            already_refunded=already_refunded,
        )

    async def get_payment(self, payment_id: int) -> Payment:
        payment = await self.repository.get_payment(payment_id)
        if not payment:
            raise PaymentNotFound(payment_id)
        return payment

    async def list_payments(self, filters: Optional[PaymentFilters] = None) -> List[Payment]:
        return await self.repository.list_payments(filters or PaymentFilters())

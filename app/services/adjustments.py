"""
Adjustment Engine
Discounts, write-offs, refunds, fees and corrections change what an invoice
owes (final_amount) independently of payments. Adjustments are append-only.
"""

from datetime import date
from typing import List, Optional

from app.core.logging import ledger_logger
from app.models import InvoiceAdjustment, AdjustmentType
from app.repositories.ledger import LedgerRepository
from app.schemas.billing import AdjustmentCreate, AdjustmentFilters
from app.services.billing_errors import InvoiceNotFound, InvalidAmountError
from app.services.billing_math import money2, adjustment_delta, status_after_adjustment


class AdjustmentEngine:
    def __init__(self, repository: LedgerRepository):
        self.repository = repository

    async def create_adjustment(self, adjustment_data: AdjustmentCreate) -> InvoiceAdjustment:
        amount = money2(adjustment_data.amount)
        if adjustment_data.type == AdjustmentType.CORRECTION:
            if amount == 0:
                raise InvalidAmountError("Correction amount cannot be zero")
        elif amount <= 0:
            raise InvalidAmountError(f"{adjustment_data.type.value} amount must be greater than zero")

        delta, floor_at_zero = adjustment_delta(adjustment_data.type, amount)

        async with self.repository.unit_of_work():
            invoice = await self.repository.get_invoice(adjustment_data.invoice_id, for_update=True)
            if not invoice:
                raise InvoiceNotFound(adjustment_data.invoice_id)

            if not floor_at_zero and money2(invoice.final_amount) + delta < 0:
                raise InvalidAmountError(
                    f"Correction of {amount} would make the final amount of invoice {invoice.id} negative"
                )

            adjustment = InvoiceAdjustment(
                invoice_id=invoice.id,
                type=adjustment_data.type,
                amount=amount,
                reason=adjustment_data.reason,
                applied_date=adjustment_data.applied_date or date.today(),
            )
            await self.repository.add(adjustment)

            invoice = await self.repository.shift_invoice_final(invoice.id, delta, floor_at_zero)
            invoice.status = status_after_adjustment(invoice.status, invoice.paid_amount, invoice.final_amount)
            await self.repository.session.flush()

            adjustment_id = adjustment.id
            final_amount = invoice.final_amount
            new_status = invoice.status

        ledger_logger.log_adjustment_applied(
            adjustment_id, adjustment_data.invoice_id, adjustment_data.type.value,
            amount, final_amount, new_status.value,
        )
        return adjustment

    async def list_adjustments(self, filters: Optional[AdjustmentFilters] = None) -> List[InvoiceAdjustment]:
        return await self.repository.list_adjustments(filters or AdjustmentFilters())

"""
Invoice Store
Creates invoices from billed lines and owns the descriptive invoice fields.
Balances are changed only by the payment ledger and the adjustment engine.
"""

import logging
import time
from datetime import date
from typing import List, Optional

from app.core.logging import ledger_logger
from app.models import Invoice, InvoiceItem, InvoiceStatus
from app.repositories.ledger import LedgerRepository
from app.schemas.billing import InvoiceCreate, InvoiceUpdate, InvoiceFilters
from app.services.billing_errors import (
    InvoiceNotFound, InvalidAmountError, InvoiceStateError,
)
from app.services.billing_math import money2, SETTLEMENT_STATUSES, ZERO
from config import settings

logger = logging.getLogger(__name__)

BASE36_DIGITS = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
CREATABLE_STATUSES = {InvoiceStatus.DRAFT, InvoiceStatus.SENT}


def to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


class InvoiceStore:
    def __init__(self, repository: LedgerRepository):
        self.repository = repository

    async def _next_invoice_number(self) -> str:
        """INV-<millisecond timestamp in base 36>, bumped past any number already taken"""
        stamp = int(time.time() * 1000)
        while True:
            candidate = f"{settings.INVOICE_NUMBER_PREFIX}{to_base36(stamp)}"
            if not await self.repository.invoice_number_exists(candidate):
                return candidate
            stamp += 1

    async def create_invoice(self, invoice_data: InvoiceCreate) -> Invoice:
        """
        Create an invoice; total_amount is the sum of quantity x unit price
        over the lines, final_amount starts equal to it and nothing is paid.
        """
        if invoice_data.status not in CREATABLE_STATUSES:
            raise InvoiceStateError(
                f"Invoices are created as draft or sent, not {invoice_data.status.value}"
            )

        async with self.repository.unit_of_work():
            if invoice_data.invoice_number:
                if await self.repository.invoice_number_exists(invoice_data.invoice_number):
                    raise InvoiceStateError(f"Invoice number {invoice_data.invoice_number} already exists")
                invoice_number = invoice_data.invoice_number
            else:
                invoice_number = await self._next_invoice_number()

            items = []
            total = ZERO
            for item_data in invoice_data.items:
                unit_price = money2(item_data.unit_price)
                if unit_price < 0:
                    raise InvalidAmountError("Unit price cannot be negative")
                line_total = money2(unit_price * item_data.quantity)
                total += line_total
                items.append(InvoiceItem(
                    description=item_data.description,
                    patient_treatment_id=item_data.patient_treatment_id,
                    quantity=item_data.quantity,
                    unit_price=unit_price,
                    total_price=line_total,
                ))

            invoice = Invoice(
                invoice_number=invoice_number,
                patient_id=invoice_data.patient_id,
                total_amount=total,
                final_amount=total,
                paid_amount=ZERO,
                status=invoice_data.status,
                issued_date=invoice_data.issued_date or date.today(),
                due_date=invoice_data.due_date,
                notes=invoice_data.notes,
                items=items,
            )
            await self.repository.add(invoice)
            invoice_id = invoice.id

        ledger_logger.log_invoice_created(invoice_id, invoice_number, invoice_data.patient_id, total)
        return await self.get_invoice(invoice_id)

    async def get_invoice(self, invoice_id: int) -> Invoice:
        invoice = await self.repository.get_invoice(invoice_id)
        if not invoice:
            raise InvoiceNotFound(invoice_id)
        return invoice

    async def list_invoices(self, filters: Optional[InvoiceFilters] = None) -> List[Invoice]:
        return await self.repository.list_invoices(filters or InvoiceFilters())

    async def update_invoice(self, invoice_id: int, invoice_data: InvoiceUpdate) -> Invoice:
        """
        Update status, due date and notes. Amounts are never edited here:
        total_amount stays the sum of the items.

        Once an invoice is settled (anything paid, or closed as paid by an
        adjustment) the only status change left is cancellation.
        """
        update_data = invoice_data.model_dump(exclude_unset=True)

        async with self.repository.unit_of_work():
            invoice = await self.repository.get_invoice(invoice_id, for_update=True)
            if not invoice:
                raise InvoiceNotFound(invoice_id)

            new_status = update_data.pop("status", None)
            if new_status is not None and new_status != invoice.status:
                if invoice.status == InvoiceStatus.CANCELED:
                    raise InvoiceStateError(f"Invoice {invoice_id} is canceled")
                if new_status in SETTLEMENT_STATUSES:
                    raise InvoiceStateError("paid and partial are derived from payments and cannot be set")
                settled = invoice.paid_amount > 0 or invoice.status == InvoiceStatus.PAID
                if settled and new_status != InvoiceStatus.CANCELED:
                    raise InvoiceStateError(
                        f"Invoice {invoice_id} is settled; only cancellation can change its status"
                    )
                invoice.status = new_status

            for field, value in update_data.items():
                setattr(invoice, field, value)

            await self.repository.session.flush()

        logger.info(f"Invoice {invoice_id} updated: {sorted(invoice_data.model_dump(exclude_unset=True))}")
        return await self.get_invoice(invoice_id)

    async def mark_overdue(self, as_of: Optional[date] = None) -> int:
        """Move sent invoices whose due date is before as_of to overdue"""
        as_of = as_of or date.today()
        async with self.repository.unit_of_work():
            updated = await self.repository.mark_overdue(as_of)
        ledger_logger.log_invoices_overdue(updated, as_of.isoformat())
        return updated

from decimal import Decimal

import pytest

from app.models import InvoiceStatus, PaymentMethod
from app.repositories.ledger import LedgerRepository
from app.schemas.billing import PaymentCreate
from app.services.ledger import BillingLedger


def cash(invoice_id, amount) -> PaymentCreate:
    return PaymentCreate(invoice_id=invoice_id, amount=Decimal(amount), payment_method=PaymentMethod.CASH)


@pytest.mark.asyncio
async def test_interleaved_payments_keep_both_amounts(session_factory, make_invoice) -> None:
    invoice_id = (await make_invoice("100.00")).id

    async with session_factory() as session_a, session_factory() as session_b:
        front_desk = BillingLedger.for_session(session_a)
        online = BillingLedger.for_session(session_b)

        seen = await front_desk.get_invoice(invoice_id)
        assert seen.paid_amount == Decimal("0.00")

        await online.create_payment(cash(invoice_id, "40"))
        await front_desk.create_payment(cash(invoice_id, "60"))

    async with session_factory() as session:
        invoice = await BillingLedger.for_session(session).get_invoice(invoice_id)
        assert invoice.paid_amount == Decimal("100.00")
        assert invoice.status == InvoiceStatus.PAID


@pytest.mark.asyncio
async def test_paid_increment_is_applied_by_the_database(session_factory, make_invoice) -> None:
    invoice_id = (await make_invoice("100.00")).id

    async with session_factory() as session_a, session_factory() as session_b:
        first = LedgerRepository(session_a)
        second = LedgerRepository(session_b)

        # Stale copy held by the first session
        stale = await first.get_invoice(invoice_id)
        assert stale.paid_amount == Decimal("0.00")

        async with second.unit_of_work():
            await second.increment_invoice_paid(invoice_id, Decimal("40.00"))

        async with first.unit_of_work():
            updated = await first.increment_invoice_paid(invoice_id, Decimal("25.00"))

        assert updated.paid_amount == Decimal("65.00")

    async with session_factory() as session:
        assert (await LedgerRepository(session).get_invoice(invoice_id)).paid_amount == Decimal("65.00")

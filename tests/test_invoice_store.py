from datetime import date
from decimal import Decimal

import pytest

from app.models import InvoiceStatus, AdjustmentType, PaymentMethod
from app.schemas.billing import (
    InvoiceCreate, InvoiceItemCreate, InvoiceUpdate, InvoiceFilters, AdjustmentCreate,
    PaymentCreate,
)
from app.services.billing_errors import InvoiceNotFound, InvoiceStateError


@pytest.mark.asyncio
async def test_create_invoice_totals_lines(ledger) -> None:
    invoice = await ledger.create_invoice(InvoiceCreate(
        patient_id=7,
        items=[
            InvoiceItemCreate(description="Cleaning", unit_price=Decimal("80.00")),
            InvoiceItemCreate(description="X-ray", quantity=2, unit_price=Decimal("25.50")),
        ],
        due_date=date(2024, 4, 1),
    ))

    assert invoice.total_amount == Decimal("131.00")
    assert invoice.final_amount == invoice.total_amount
    assert invoice.paid_amount == Decimal("0.00")
    assert invoice.status == InvoiceStatus.DRAFT
    assert invoice.invoice_number.startswith("INV-")
    assert [item.total_price for item in invoice.items] == [Decimal("80.00"), Decimal("51.00")]


@pytest.mark.asyncio
async def test_generated_invoice_numbers_are_unique(make_invoice) -> None:
    first = await make_invoice()
    second = await make_invoice()
    assert first.invoice_number != second.invoice_number


@pytest.mark.asyncio
async def test_create_invoice_rejects_settlement_status(ledger) -> None:
    with pytest.raises(InvoiceStateError):
        await ledger.create_invoice(InvoiceCreate(
            patient_id=1,
            items=[InvoiceItemCreate(description="Crown", unit_price=Decimal("900"))],
            status=InvoiceStatus.PAID,
        ))


@pytest.mark.asyncio
async def test_get_missing_invoice_raises(ledger) -> None:
    with pytest.raises(InvoiceNotFound):
        await ledger.get_invoice(999)


@pytest.mark.asyncio
async def test_list_invoices_filters(ledger, make_invoice) -> None:
    await make_invoice(patient_id=1, issued_date=date(2024, 1, 10))
    await make_invoice(patient_id=2, issued_date=date(2024, 2, 10))
    await make_invoice(patient_id=2, issued_date=date(2024, 3, 10), status=InvoiceStatus.DRAFT)

    by_patient = await ledger.list_invoices(InvoiceFilters(patient_id=2))
    assert len(by_patient) == 2

    sent_in_range = await ledger.list_invoices(InvoiceFilters(
        status=InvoiceStatus.SENT, start_date=date(2024, 2, 1), end_date=date(2024, 3, 31)
    ))
    assert [invoice.patient_id for invoice in sent_in_range] == [2]


@pytest.mark.asyncio
async def test_update_invoice_cancel_and_notes(ledger, make_invoice) -> None:
    invoice = await make_invoice()
    updated = await ledger.update_invoice(invoice.id, InvoiceUpdate(
        status=InvoiceStatus.CANCELED, notes="Patient moved away"
    ))
    assert updated.status == InvoiceStatus.CANCELED
    assert updated.notes == "Patient moved away"

    with pytest.raises(InvoiceStateError):
        await ledger.update_invoice(invoice.id, InvoiceUpdate(status=InvoiceStatus.SENT))


@pytest.mark.asyncio
async def test_update_invoice_cannot_set_paid(ledger, make_invoice) -> None:
    invoice = await make_invoice()
    with pytest.raises(InvoiceStateError):
        await ledger.update_invoice(invoice.id, InvoiceUpdate(status=InvoiceStatus.PAID))


@pytest.mark.asyncio
async def test_update_invoice_never_touches_amounts(ledger, make_invoice) -> None:
    invoice = await make_invoice("100.00")
    invoice_id = invoice.id

    assert "total_amount" not in InvoiceUpdate.model_fields
    updated = await ledger.update_invoice(invoice_id, InvoiceUpdate.model_validate({
        "notes": "Reprinted", "total_amount": "120.00",
    }))

    assert updated.notes == "Reprinted"
    assert updated.total_amount == Decimal("100.00")
    assert updated.final_amount == Decimal("100.00")
    assert sum(item.total_price for item in updated.items) == updated.total_amount


@pytest.mark.asyncio
async def test_written_off_invoice_cannot_be_reopened(ledger, make_invoice) -> None:
    invoice = await make_invoice("150.00")
    invoice_id = invoice.id
    await ledger.create_adjustment(AdjustmentCreate(
        invoice_id=invoice_id, type=AdjustmentType.WRITE_OFF, amount=Decimal("150"), reason="Hardship"
    ))

    for status in (InvoiceStatus.SENT, InvoiceStatus.DRAFT, InvoiceStatus.OVERDUE):
        with pytest.raises(InvoiceStateError):
            await ledger.update_invoice(invoice_id, InvoiceUpdate(status=status))

    closed = await ledger.get_invoice(invoice_id)
    assert closed.status == InvoiceStatus.PAID
    assert closed.final_amount == Decimal("0.00")

    canceled = await ledger.update_invoice(invoice_id, InvoiceUpdate(status=InvoiceStatus.CANCELED))
    assert canceled.status == InvoiceStatus.CANCELED


@pytest.mark.asyncio
async def test_returned_invoice_stays_readable_after_rejected_call(ledger, make_invoice) -> None:
    invoice = await make_invoice("100.00")

    with pytest.raises(InvoiceNotFound):
        await ledger.create_payment(PaymentCreate(
            invoice_id=999, amount=Decimal("10"), payment_method=PaymentMethod.CASH
        ))
    with pytest.raises(InvoiceStateError):
        await ledger.update_invoice(invoice.id, InvoiceUpdate(status=InvoiceStatus.PARTIAL))

    assert invoice.final_amount == Decimal("100.00")
    assert invoice.status == InvoiceStatus.SENT
    assert [item.description for item in invoice.items] == ["Composite filling"]


@pytest.mark.asyncio
async def test_mark_overdue_moves_only_past_due_sent_invoices(ledger, make_invoice) -> None:
    past_due = await make_invoice(due_date=date(2024, 3, 15))
    not_due = await make_invoice(due_date=date(2024, 5, 1))
    draft = await make_invoice(status=InvoiceStatus.DRAFT, due_date=date(2024, 3, 15))
    partial = await make_invoice(due_date=date(2024, 3, 15))
    await ledger.create_payment(PaymentCreate(
        invoice_id=partial.id, amount=Decimal("10"), payment_method=PaymentMethod.CASH
    ))

    assert await ledger.mark_overdue(date(2024, 4, 1)) == 1

    assert (await ledger.get_invoice(past_due.id)).status == InvoiceStatus.OVERDUE
    assert (await ledger.get_invoice(not_due.id)).status == InvoiceStatus.SENT
    assert (await ledger.get_invoice(draft.id)).status == InvoiceStatus.DRAFT
    assert (await ledger.get_invoice(partial.id)).status == InvoiceStatus.PARTIAL

from datetime import date
from decimal import Decimal

import pytest

from app.models import AdjustmentType, InvoiceStatus, PaymentMethod
from app.schemas.billing import AdjustmentCreate, AdjustmentFilters, PaymentCreate, InvoiceUpdate
from app.services.billing_errors import InvoiceNotFound, InvalidAmountError


async def adjust(ledger, invoice_id, adjustment_type, amount, applied_date=None):
    return await ledger.create_adjustment(AdjustmentCreate(
        invoice_id=invoice_id,
        type=adjustment_type,
        amount=Decimal(amount),
        reason=f"{adjustment_type.value} applied at the front desk",
        applied_date=applied_date,
    ))


@pytest.mark.asyncio
async def test_full_write_off_marks_invoice_paid(ledger, make_invoice) -> None:
    invoice = await make_invoice("100.00")
    await adjust(ledger, invoice.id, AdjustmentType.WRITE_OFF, "100")

    invoice = await ledger.get_invoice(invoice.id)
    assert invoice.final_amount == Decimal("0.00")
    assert invoice.paid_amount == Decimal("0.00")
    assert invoice.status == InvoiceStatus.PAID
    assert invoice.total_amount == Decimal("100.00")


@pytest.mark.asyncio
async def test_reducing_adjustments_floor_at_zero(ledger, make_invoice) -> None:
    invoice = await make_invoice("50.00")
    await adjust(ledger, invoice.id, AdjustmentType.DISCOUNT, "80")

    invoice = await ledger.get_invoice(invoice.id)
    assert invoice.final_amount == Decimal("0.00")


@pytest.mark.asyncio
async def test_discount_settles_partially_paid_invoice(ledger, make_invoice) -> None:
    invoice = await make_invoice("100.00")
    await ledger.create_payment(PaymentCreate(
        invoice_id=invoice.id, amount=Decimal("90"), payment_method=PaymentMethod.CASH
    ))
    await adjust(ledger, invoice.id, AdjustmentType.DISCOUNT, "10")

    invoice = await ledger.get_invoice(invoice.id)
    assert invoice.final_amount == Decimal("90.00")
    assert invoice.status == InvoiceStatus.PAID


@pytest.mark.asyncio
async def test_fee_does_not_reopen_paid_invoice(ledger, make_invoice) -> None:
    invoice = await make_invoice("100.00")
    await ledger.create_payment(PaymentCreate(
        invoice_id=invoice.id, amount=Decimal("100"), payment_method=PaymentMethod.CARD
    ))
    await adjust(ledger, invoice.id, AdjustmentType.FEE, "25")

    invoice = await ledger.get_invoice(invoice.id)
    assert invoice.final_amount == Decimal("125.00")
    assert invoice.status == InvoiceStatus.PAID


@pytest.mark.asyncio
async def test_fee_on_open_invoice_keeps_status(ledger, make_invoice) -> None:
    invoice = await make_invoice("100.00")
    await adjust(ledger, invoice.id, AdjustmentType.FEE, "15")

    invoice = await ledger.get_invoice(invoice.id)
    assert invoice.final_amount == Decimal("115.00")
    assert invoice.status == InvoiceStatus.SENT


@pytest.mark.asyncio
async def test_signed_corrections(ledger, make_invoice) -> None:
    invoice_id = (await make_invoice("100.00")).id
    await adjust(ledger, invoice_id, AdjustmentType.CORRECTION, "-30")
    await adjust(ledger, invoice_id, AdjustmentType.CORRECTION, "5")

    invoice = await ledger.get_invoice(invoice_id)
    assert invoice.final_amount == Decimal("75.00")

    with pytest.raises(InvalidAmountError):
        await adjust(ledger, invoice_id, AdjustmentType.CORRECTION, "-80")
    with pytest.raises(InvalidAmountError):
        await adjust(ledger, invoice_id, AdjustmentType.CORRECTION, "0")

    assert (await ledger.get_invoice(invoice_id)).final_amount == Decimal("75.00")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "adjustment_type",
    [AdjustmentType.DISCOUNT, AdjustmentType.WRITE_OFF, AdjustmentType.REFUND, AdjustmentType.FEE],
)
async def test_unsigned_types_need_positive_amount(ledger, make_invoice, adjustment_type) -> None:
    invoice = await make_invoice()
    with pytest.raises(InvalidAmountError):
        await adjust(ledger, invoice.id, adjustment_type, "-5")


@pytest.mark.asyncio
async def test_adjustment_on_missing_invoice(ledger) -> None:
    with pytest.raises(InvoiceNotFound):
        await adjust(ledger, 77, AdjustmentType.DISCOUNT, "5")


@pytest.mark.asyncio
async def test_canceled_invoice_stays_canceled(ledger, make_invoice) -> None:
    invoice = await make_invoice("100.00")
    await ledger.update_invoice(invoice.id, InvoiceUpdate(status=InvoiceStatus.CANCELED))
    await adjust(ledger, invoice.id, AdjustmentType.WRITE_OFF, "100")

    assert (await ledger.get_invoice(invoice.id)).status == InvoiceStatus.CANCELED


@pytest.mark.asyncio
async def test_list_adjustments_filters(ledger, make_invoice) -> None:
    first = await make_invoice()
    second = await make_invoice()
    await adjust(ledger, first.id, AdjustmentType.DISCOUNT, "5", applied_date=date(2024, 3, 2))
    await adjust(ledger, first.id, AdjustmentType.FEE, "5", applied_date=date(2024, 4, 2))
    await adjust(ledger, second.id, AdjustmentType.DISCOUNT, "5", applied_date=date(2024, 4, 3))

    assert len(await ledger.list_adjustments(AdjustmentFilters(invoice_id=first.id))) == 2
    april = await ledger.list_adjustments(AdjustmentFilters(start_date=date(2024, 4, 1)))
    assert {a.invoice_id for a in april} == {first.id, second.id}
    discounts = await ledger.list_adjustments(AdjustmentFilters(type=AdjustmentType.DISCOUNT))
    assert len(discounts) == 2

from datetime import date
from decimal import Decimal

import pytest

from app.models import InvoiceStatus, PaymentMethod, PaymentPlanStatus
from app.schemas.billing import PaymentCreate, PaymentFilters, PaymentPlanCreate, InvoiceUpdate
from app.services.billing_errors import (
    InvoiceNotFound, PaymentNotFound, InstallmentNotFound,
    InvalidAmountError, InvalidScheduleError, InvoiceStateError,
)


async def pay(ledger, invoice_id, amount, **kwargs):
    return await ledger.create_payment(PaymentCreate(
        invoice_id=invoice_id,
        amount=Decimal(amount),
        payment_method=kwargs.pop("payment_method", PaymentMethod.CARD),
        **kwargs,
    ))


@pytest.mark.asyncio
async def test_partial_then_full_then_refund(ledger, make_invoice) -> None:
    invoice = await make_invoice("100.00")

    first = await pay(ledger, invoice.id, "40")
    invoice = await ledger.get_invoice(invoice.id)
    assert invoice.paid_amount == Decimal("40.00")
    assert invoice.status == InvoiceStatus.PARTIAL
    assert invoice.outstanding_amount == Decimal("60.00")

    await pay(ledger, invoice.id, "60")
    invoice = await ledger.get_invoice(invoice.id)
    assert invoice.paid_amount == Decimal("100.00")
    assert invoice.status == InvoiceStatus.PAID

    result = await ledger.refund_payment(first.id, "Duplicate charge")
    assert result.already_refunded is False
    assert result.payment.is_refunded is True
    assert result.payment.refund_reason == "Duplicate charge"
    assert result.payment.refunded_at is not None

    invoice = await ledger.get_invoice(invoice.id)
    assert invoice.paid_amount == Decimal("60.00")
    assert invoice.status == InvoiceStatus.PARTIAL


@pytest.mark.asyncio
async def test_refund_twice_is_a_noop(ledger, make_invoice) -> None:
    invoice = await make_invoice("100.00")
    payment = await pay(ledger, invoice.id, "40")

    await ledger.refund_payment(payment.id, "Card chargeback")
    second = await ledger.refund_payment(payment.id, "Card chargeback again")

    assert second.already_refunded is True
    assert second.payment.refund_reason == "Card chargeback"
    invoice = await ledger.get_invoice(invoice.id)
    assert invoice.paid_amount == Decimal("0.00")
    assert invoice.status == InvoiceStatus.SENT


@pytest.mark.asyncio
async def test_refund_to_zero_resets_overdue_to_sent(ledger, make_invoice) -> None:
    invoice = await make_invoice("100.00", due_date=date(2024, 3, 10))
    await ledger.mark_overdue(date(2024, 4, 1))
    payment = await pay(ledger, invoice.id, "30")

    await ledger.refund_payment(payment.id, "Wrong patient")
    invoice = await ledger.get_invoice(invoice.id)
    assert invoice.status == InvoiceStatus.SENT


@pytest.mark.asyncio
async def test_overpayment_is_allowed(ledger, make_invoice) -> None:
    invoice = await make_invoice("100.00")
    await pay(ledger, invoice.id, "150")

    invoice = await ledger.get_invoice(invoice.id)
    assert invoice.paid_amount == Decimal("150.00")
    assert invoice.status == InvoiceStatus.PAID


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", ["0", "-10"])
async def test_non_positive_payment_rejected(ledger, make_invoice, amount) -> None:
    invoice = await make_invoice()
    with pytest.raises(InvalidAmountError):
        await pay(ledger, invoice.id, amount)


@pytest.mark.asyncio
async def test_payment_requires_existing_open_invoice(ledger, make_invoice) -> None:
    with pytest.raises(InvoiceNotFound):
        await pay(ledger, 404, "10")

    invoice_id = (await make_invoice()).id
    await ledger.update_invoice(invoice_id, InvoiceUpdate(status=InvoiceStatus.CANCELED))
    with pytest.raises(InvoiceStateError):
        await pay(ledger, invoice_id, "10")

    assert await ledger.list_payments(PaymentFilters(invoice_id=invoice_id)) == []


@pytest.mark.asyncio
async def test_refund_missing_payment(ledger) -> None:
    with pytest.raises(PaymentNotFound):
        await ledger.refund_payment(12345, "Nope")


@pytest.mark.asyncio
async def test_installment_payment_settles_installment_and_plan(ledger, make_invoice) -> None:
    invoice = await make_invoice("300.00")
    plan = await ledger.create_payment_plan(PaymentPlanCreate(
        invoice_id=invoice.id,
        patient_id=invoice.patient_id,
        total_amount=Decimal("300.00"),
        number_of_installments=2,
        start_date=date(2024, 4, 1),
    ))
    first, second = plan.installments

    await pay(ledger, invoice.id, "100", payment_plan_installment_id=first.id, payment_date=date(2024, 4, 1))
    installments = await ledger.list_installments(plan.id)
    assert installments[0].paid_amount == Decimal("100.00")
    assert installments[0].is_paid is False

    await pay(ledger, invoice.id, "50", payment_plan_installment_id=first.id, payment_date=date(2024, 4, 3))
    installments = await ledger.list_installments(plan.id)
    assert installments[0].is_paid is True
    assert installments[0].paid_date == date(2024, 4, 3)
    assert (await ledger.get_payment_plan(plan.id)).status == PaymentPlanStatus.ACTIVE

    await pay(ledger, invoice.id, "150", payment_plan_installment_id=second.id)
    assert (await ledger.get_payment_plan(plan.id)).status == PaymentPlanStatus.COMPLETED
    assert (await ledger.get_invoice(invoice.id)).status == InvoiceStatus.PAID


@pytest.mark.asyncio
async def test_installment_from_another_invoice_is_rejected(ledger, make_invoice) -> None:
    invoice = await make_invoice("200.00")
    other = await make_invoice("200.00")
    plan = await ledger.create_payment_plan(PaymentPlanCreate(
        invoice_id=invoice.id,
        patient_id=invoice.patient_id,
        total_amount=Decimal("200.00"),
        number_of_installments=2,
        start_date=date(2024, 4, 1),
    ))

    invoice_id, other_id = invoice.id, other.id
    installment_id = plan.installments[0].id

    with pytest.raises(InvalidScheduleError):
        await pay(ledger, other_id, "100", payment_plan_installment_id=installment_id)
    with pytest.raises(InstallmentNotFound):
        await pay(ledger, invoice_id, "100", payment_plan_installment_id=9999)

    # Neither failed call touched the balances
    assert (await ledger.get_invoice(other_id)).paid_amount == Decimal("0.00")
    assert (await ledger.get_invoice(invoice_id)).paid_amount == Decimal("0.00")


@pytest.mark.asyncio
async def test_refund_keeps_installment_allocation(ledger, make_invoice) -> None:
    invoice = await make_invoice("100.00")
    plan = await ledger.create_payment_plan(PaymentPlanCreate(
        invoice_id=invoice.id,
        patient_id=invoice.patient_id,
        total_amount=Decimal("100.00"),
        number_of_installments=1,
        start_date=date(2024, 4, 1),
    ))
    payment = await pay(ledger, invoice.id, "100", payment_plan_installment_id=plan.installments[0].id)

    await ledger.refund_payment(payment.id, "Bounced transfer")

    installment = (await ledger.list_installments(plan.id))[0]
    assert installment.paid_amount == Decimal("100.00")
    assert installment.is_paid is True
    assert (await ledger.get_invoice(invoice.id)).paid_amount == Decimal("0.00")


@pytest.mark.asyncio
async def test_list_payments_filters(ledger, make_invoice) -> None:
    invoice = await make_invoice("500.00")
    kept = await pay(ledger, invoice.id, "100", payment_date=date(2024, 3, 5))
    refunded = await pay(ledger, invoice.id, "50", payment_date=date(2024, 3, 20))
    await ledger.refund_payment(refunded.id, "Returned")

    active = await ledger.list_payments(PaymentFilters(invoice_id=invoice.id, is_refunded=False))
    assert [p.id for p in active] == [kept.id]

    late = await ledger.list_payments(PaymentFilters(start_date=date(2024, 3, 10)))
    assert [p.id for p in late] == [refunded.id]

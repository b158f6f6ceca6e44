"""
Billing ledger API endpoints
Thin routes over BillingLedger; business rules live in app/services.
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_async_session
from app.models import InvoiceStatus, PaymentPlanStatus, AdjustmentType, ExpenseCategory
from app.schemas.billing import (
    InvoiceCreate, InvoiceUpdate, InvoiceResponse, InvoiceFilters, OverdueSweepResponse,
    PaymentCreate, PaymentResponse, PaymentFilters, RefundRequest, RefundResponse,
    PaymentPlanCreate, PaymentPlanResponse, PaymentPlanFilters, PaymentPlanStatusUpdate,
    InstallmentCreate, InstallmentResponse,
    AdjustmentCreate, AdjustmentResponse, AdjustmentFilters,
    ExpenseCreate, ExpenseUpdate, ExpenseResponse, ExpenseFilters,
)
from app.services.ledger import BillingLedger

router = APIRouter(tags=["Billing"])


async def get_ledger(db: AsyncSession = Depends(get_async_session)) -> BillingLedger:
    return BillingLedger.for_session(db)


# ==================== Invoices ====================

@router.get("/invoices", response_model=List[InvoiceResponse])
async def list_invoices(
    patient_id: Optional[int] = Query(None, description="Filter by patient"),
    status_filter: Optional[InvoiceStatus] = Query(None, alias="status", description="Filter by status"),
    start_date: Optional[date] = Query(None, description="Issued on or after"),
    end_date: Optional[date] = Query(None, description="Issued on or before"),
    ledger: BillingLedger = Depends(get_ledger),
):
    filters = InvoiceFilters(
        patient_id=patient_id, status=status_filter, start_date=start_date, end_date=end_date
    )
    return await ledger.list_invoices(filters)


@router.post("/invoices", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(invoice_data: InvoiceCreate, ledger: BillingLedger = Depends(get_ledger)):
    return await ledger.create_invoice(invoice_data)


@router.post("/invoices/mark-overdue", response_model=OverdueSweepResponse)
async def mark_overdue_invoices(
    as_of: Optional[date] = Query(None, description="Reference date, defaults to today"),
    ledger: BillingLedger = Depends(get_ledger),
):
    """Move sent invoices past their due date to overdue"""
    as_of = as_of or date.today()
    updated = await ledger.mark_overdue(as_of)
    return OverdueSweepResponse(as_of=as_of, updated=updated)


@router.get("/invoices/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(invoice_id: int, ledger: BillingLedger = Depends(get_ledger)):
    return await ledger.get_invoice(invoice_id)


@router.patch("/invoices/{invoice_id}", response_model=InvoiceResponse)
async def update_invoice(
    invoice_id: int,
    invoice_data: InvoiceUpdate,
    ledger: BillingLedger = Depends(get_ledger),
):
    return await ledger.update_invoice(invoice_id, invoice_data)


# ==================== Payments ====================

@router.get("/payments", response_model=List[PaymentResponse])
async def list_payments(
    invoice_id: Optional[int] = Query(None),
    payment_plan_installment_id: Optional[int] = Query(None),
    is_refunded: Optional[bool] = Query(None),
    start_date: Optional[date] = Query(None, description="Paid on or after"),
    end_date: Optional[date] = Query(None, description="Paid on or before"),
    ledger: BillingLedger = Depends(get_ledger),
):
    filters = PaymentFilters(
        invoice_id=invoice_id,
        payment_plan_installment_id=payment_plan_installment_id,
        is_refunded=is_refunded,
        start_date=start_date,
        end_date=end_date,
    )
    return await ledger.list_payments(filters)


@router.post("/payments", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def create_payment(payment_data: PaymentCreate, ledger: BillingLedger = Depends(get_ledger)):
    return await ledger.create_payment(payment_data)


@router.get("/payments/{payment_id}", response_model=PaymentResponse)
async def get_payment(payment_id: int, ledger: BillingLedger = Depends(get_ledger)):
    return await ledger.get_payment(payment_id)


@router.post("/payments/{payment_id}/refund", response_model=RefundResponse)
async def refund_payment(
    payment_id: int,
    refund: RefundRequest,
    ledger: BillingLedger = Depends(get_ledger),
):
    """Refund a payment; repeating the call is a no-op flagged with already_refunded"""
    return await ledger.refund_payment(payment_id, refund.reason)


# ==================== Payment Plans ====================

@router.get("/payment-plans", response_model=List[PaymentPlanResponse])
async def list_payment_plans(
    invoice_id: Optional[int] = Query(None),
    patient_id: Optional[int] = Query(None),
    status_filter: Optional[PaymentPlanStatus] = Query(None, alias="status"),
    ledger: BillingLedger = Depends(get_ledger),
):
    filters = PaymentPlanFilters(invoice_id=invoice_id, patient_id=patient_id, status=status_filter)
    return await ledger.list_payment_plans(filters)


@router.post("/payment-plans", response_model=PaymentPlanResponse, status_code=status.HTTP_201_CREATED)
async def create_payment_plan(plan_data: PaymentPlanCreate, ledger: BillingLedger = Depends(get_ledger)):
    return await ledger.create_payment_plan(plan_data)


@router.get("/payment-plans/{plan_id}", response_model=PaymentPlanResponse)
async def get_payment_plan(plan_id: int, ledger: BillingLedger = Depends(get_ledger)):
    return await ledger.get_payment_plan(plan_id)


@router.patch("/payment-plans/{plan_id}/status", response_model=PaymentPlanResponse)
async def update_payment_plan_status(
    plan_id: int,
    status_update: PaymentPlanStatusUpdate,
    ledger: BillingLedger = Depends(get_ledger),
):
    return await ledger.update_payment_plan_status(plan_id, status_update.status)


@router.get("/payment-plans/{plan_id}/installments", response_model=List[InstallmentResponse])
async def list_installments(plan_id: int, ledger: BillingLedger = Depends(get_ledger)):
    return await ledger.list_installments(plan_id)


@router.post(
    "/payment-plans/{plan_id}/installments",
    response_model=InstallmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_installment(
    plan_id: int,
    installment_data: InstallmentCreate,
    ledger: BillingLedger = Depends(get_ledger),
):
    return await ledger.create_installment(plan_id, installment_data)


# ==================== Adjustments ====================

@router.get("/adjustments", response_model=List[AdjustmentResponse])
async def list_adjustments(
    invoice_id: Optional[int] = Query(None),
    adjustment_type: Optional[AdjustmentType] = Query(None, alias="type"),
    start_date: Optional[date] = Query(None, description="Applied on or after"),
    end_date: Optional[date] = Query(None, description="Applied on or before"),
    ledger: BillingLedger = Depends(get_ledger),
):
    filters = AdjustmentFilters(
        invoice_id=invoice_id, type=adjustment_type, start_date=start_date, end_date=end_date
    )
    return await ledger.list_adjustments(filters)


@router.post("/adjustments", response_model=AdjustmentResponse, status_code=status.HTTP_201_CREATED)
async def create_adjustment(adjustment_data: AdjustmentCreate, ledger: BillingLedger = Depends(get_ledger)):
    return await ledger.create_adjustment(adjustment_data)


# ==================== Expenses ====================

@router.get("/expenses", response_model=List[ExpenseResponse])
async def list_expenses(
    category: Optional[ExpenseCategory] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    ledger: BillingLedger = Depends(get_ledger),
):
    filters = ExpenseFilters(category=category, start_date=start_date, end_date=end_date)
    return await ledger.list_expenses(filters)


@router.post("/expenses", response_model=ExpenseResponse, status_code=status.HTTP_201_CREATED)
async def create_expense(expense_data: ExpenseCreate, ledger: BillingLedger = Depends(get_ledger)):
    return await ledger.create_expense(expense_data)


@router.get("/expenses/{expense_id}", response_model=ExpenseResponse)
async def get_expense(expense_id: int, ledger: BillingLedger = Depends(get_ledger)):
    return await ledger.get_expense(expense_id)


@router.put("/expenses/{expense_id}", response_model=ExpenseResponse)
async def update_expense(
    expense_id: int,
    expense_data: ExpenseUpdate,
    ledger: BillingLedger = Depends(get_ledger),
):
    return await ledger.update_expense(expense_id, expense_data)


@router.delete("/expenses/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_expense(expense_id: int, ledger: BillingLedger = Depends(get_ledger)):
    await ledger.delete_expense(expense_id)

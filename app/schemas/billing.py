"""
Billing ledger Pydantic schemas
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, Field

from app.models import (
    InvoiceStatus, PaymentMethod, PaymentPlanStatus, PlanFrequency,
    AdjustmentType, ExpenseCategory,
)


# ==================== Invoices ====================

class InvoiceItemCreate(BaseModel):
    """Schema for creating an invoice line"""
    description: str = Field(..., max_length=500, description="Line description")
    patient_treatment_id: Optional[int] = Field(None, description="Treatment billed by this line")
    quantity: int = Field(default=1, ge=1, description="Quantity")
    unit_price: Decimal = Field(..., ge=0, decimal_places=2, description="Unit price")


class InvoiceItemResponse(BaseModel):
    """Schema for invoice line responses"""
    id: int
    description: str
    patient_treatment_id: Optional[int] = None
    quantity: int
    unit_price: Decimal
    total_price: Decimal

    class Config:
        from_attributes = True


class InvoiceCreate(BaseModel):
    """Schema for creating an invoice"""
    patient_id: int = Field(..., description="Patient ID")
    items: List[InvoiceItemCreate] = Field(..., min_length=1, description="Billed lines")
    status: InvoiceStatus = Field(default=InvoiceStatus.DRAFT, description="Initial status (draft or sent)")
    issued_date: Optional[date] = Field(None, description="Issue date, defaults to today")
    due_date: Optional[date] = Field(None, description="Payment due date")
    invoice_number: Optional[str] = Field(None, max_length=50, description="Generated when omitted")
    notes: Optional[str] = Field(None, description="Invoice notes")


class InvoiceUpdate(BaseModel):
    """Schema for updating an invoice; balances are not editable here"""
    status: Optional[InvoiceStatus] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None


class InvoiceResponse(BaseModel):
    """Schema for invoice responses"""
    id: int
    invoice_number: str
    patient_id: int
    status: InvoiceStatus
    total_amount: Decimal
    final_amount: Decimal
    paid_amount: Decimal
    outstanding_amount: Decimal
    issued_date: date
    due_date: Optional[date] = None
    notes: Optional[str] = None
    items: List[InvoiceItemResponse] = []

    class Config:
        from_attributes = True


class InvoiceFilters(BaseModel):
    """Schema for invoice filtering"""
    patient_id: Optional[int] = None
    status: Optional[InvoiceStatus] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class OverdueSweepResponse(BaseModel):
    """Result of moving past-due invoices to overdue"""
    as_of: date
    updated: int


# ==================== Payments ====================

class PaymentCreate(BaseModel):
    """Schema for recording a payment"""
    invoice_id: int = Field(..., description="Invoice ID")
    amount: Decimal = Field(..., decimal_places=2, description="Payment amount")
    payment_method: PaymentMethod = Field(..., description="Payment method")
    payment_date: Optional[date] = Field(None, description="Payment date, defaults to today")
    payment_plan_installment_id: Optional[int] = Field(None, description="Installment settled by this payment")
    reference_number: Optional[str] = Field(None, max_length=100, description="Transaction reference")
    notes: Optional[str] = Field(None, description="Payment notes")


class PaymentResponse(BaseModel):
    """Schema for payment responses"""
    id: int
    invoice_id: int
    payment_plan_installment_id: Optional[int] = None
    amount: Decimal
    payment_method: PaymentMethod
    payment_date: date
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    is_refunded: bool
    refunded_at: Optional[datetime] = None
    refund_reason: Optional[str] = None

    class Config:
        from_attributes = True


class RefundRequest(BaseModel):
    """Schema for refunding a payment"""
    reason: str = Field(..., min_length=1, description="Why the payment is refunded")


class RefundResponse(BaseModel):
    """
    Refund outcome
    already_refunded is True when the payment had been refunded before and
    this call changed nothing.
    """
    payment: PaymentResponse
    already_refunded: bool = False


class PaymentFilters(BaseModel):
    """Schema for payment filtering"""
    invoice_id: Optional[int] = None
    payment_plan_installment_id: Optional[int] = None
    is_refunded: Optional[bool] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


# ==================== Payment Plans ====================

class InstallmentCreate(BaseModel):
    """Schema for one scheduled installment"""
    installment_number: int = Field(..., ge=1, description="Position in the schedule")
    amount: Decimal = Field(..., gt=0, decimal_places=2, description="Amount due")
    due_date: date = Field(..., description="Due date")
    notes: Optional[str] = None


class InstallmentResponse(BaseModel):
    """Schema for installment responses"""
    id: int
    payment_plan_id: int
    installment_number: int
    due_date: date
    amount: Decimal
    paid_amount: Decimal
    is_paid: bool
    paid_date: Optional[date] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class PaymentPlanCreate(BaseModel):
    """
    Schema for creating a payment plan
    When schedule is omitted, the covered balance (total_amount - down_payment)
    is split evenly into number_of_installments installments. An empty schedule
    creates the plan without installments; they are appended one by one later.
    """
    invoice_id: int = Field(..., description="Invoice ID")
    patient_id: int = Field(..., description="Patient ID")
    total_amount: Decimal = Field(..., gt=0, decimal_places=2, description="Balance the plan covers")
    down_payment: Decimal = Field(default=Decimal("0.00"), ge=0, decimal_places=2)
    number_of_installments: int = Field(..., ge=1, description="Number of installments")
    frequency: PlanFrequency = Field(default=PlanFrequency.MONTHLY)
    start_date: date = Field(..., description="Due date of the first installment")
    notes: Optional[str] = None
    schedule: Optional[List[InstallmentCreate]] = Field(None, description="Explicit installment schedule")


class PaymentPlanResponse(BaseModel):
    """Schema for payment plan responses"""
    id: int
    invoice_id: int
    patient_id: int
    total_amount: Decimal
    down_payment: Decimal
    number_of_installments: int
    installment_amount: Decimal
    frequency: PlanFrequency
    start_date: date
    status: PaymentPlanStatus
    notes: Optional[str] = None
    installments: List[InstallmentResponse] = []

    class Config:
        from_attributes = True


class PaymentPlanStatusUpdate(BaseModel):
    """Schema for changing a plan's status"""
    status: PaymentPlanStatus


class PaymentPlanFilters(BaseModel):
    """Schema for payment plan filtering"""
    invoice_id: Optional[int] = None
    patient_id: Optional[int] = None
    status: Optional[PaymentPlanStatus] = None


# ==================== Adjustments ====================

class AdjustmentCreate(BaseModel):
    """
    Schema for creating an invoice adjustment
    amount is unsigned for discount, write_off, refund and fee; signed for correction.
    """
    invoice_id: int = Field(..., description="Invoice ID")
    type: AdjustmentType = Field(..., description="Adjustment type")
    amount: Decimal = Field(..., decimal_places=2, description="Adjustment amount")
    reason: str = Field(..., min_length=1, description="Why the adjustment was made")
    applied_date: Optional[date] = Field(None, description="Applied date, defaults to today")


class AdjustmentResponse(BaseModel):
    """Schema for adjustment responses"""
    id: int
    invoice_id: int
    type: AdjustmentType
    amount: Decimal
    reason: str
    applied_date: date

    class Config:
        from_attributes = True


class AdjustmentFilters(BaseModel):
    """Schema for adjustment filtering"""
    invoice_id: Optional[int] = None
    type: Optional[AdjustmentType] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


# ==================== Expenses ====================

class ExpenseCreate(BaseModel):
    """Schema for creating an expense"""
    description: str = Field(..., max_length=500)
    category: ExpenseCategory
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    expense_date: date
    vendor: Optional[str] = Field(None, max_length=200)
    reference_number: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class ExpenseUpdate(BaseModel):
    """Schema for updating an expense"""
    description: Optional[str] = Field(None, max_length=500)
    category: Optional[ExpenseCategory] = None
    amount: Optional[Decimal] = Field(None, gt=0, decimal_places=2)
    expense_date: Optional[date] = None
    vendor: Optional[str] = Field(None, max_length=200)
    reference_number: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None


class ExpenseResponse(BaseModel):
    """Schema for expense responses"""
    id: int
    description: str
    category: ExpenseCategory
    amount: Decimal
    expense_date: date
    vendor: Optional[str] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class ExpenseFilters(BaseModel):
    """Schema for expense filtering"""
    category: Optional[ExpenseCategory] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


# ==================== Reports ====================

class MonthlyRevenue(BaseModel):
    """Revenue and collections for one YYYY-MM bucket"""
    month: str
    revenue: Decimal = Decimal("0.00")
    collections: Decimal = Decimal("0.00")


class RevenueReport(BaseModel):
    """Revenue report over an issue/payment date range"""
    start_date: date
    end_date: date
    total_revenue: Decimal = Field(..., description="Final amounts of invoices issued in range")
    total_collections: Decimal = Field(..., description="Non-refunded payments dated in range")
    total_adjustments: Decimal = Field(..., description="Adjustment amounts applied in range")
    by_month: List[MonthlyRevenue]


class ARAgingReport(BaseModel):
    """Accounts receivable aging buckets"""
    as_of: date
    current: Decimal = Field(..., description="Less than 30 days past due")
    thirty_days: Decimal = Field(..., description="30-59 days past due")
    sixty_days: Decimal = Field(..., description="60-89 days past due")
    ninety_days: Decimal = Field(..., description="Exactly 90 days past due")
    over_ninety: Decimal = Field(..., description="More than 90 days past due")
    total: Decimal
    invoice_count: int


class DoctorProduction(BaseModel):
    """Completed treatment production for one doctor"""
    doctor_id: int
    doctor_name: str
    total_production: Decimal
    treatment_count: int


class ProductionReport(BaseModel):
    """Production by doctor over a completion date range"""
    start_date: date
    end_date: date
    doctors: List[DoctorProduction]


class CategoryAmount(BaseModel):
    category: ExpenseCategory
    amount: Decimal


class MonthlyAmount(BaseModel):
    month: str
    amount: Decimal


class ExpenseReport(BaseModel):
    """Expense totals over a date range"""
    start_date: date
    end_date: date
    total: Decimal
    by_category: List[CategoryAmount]
    by_month: List[MonthlyAmount]

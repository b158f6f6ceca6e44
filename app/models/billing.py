"""
Billing ledger database models
"""

import enum
from sqlalchemy import (
    Column, Integer, String, Text, Numeric, Boolean, Date, DateTime,
    ForeignKey, UniqueConstraint, Enum as SQLEnum
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from . import Base


class InvoiceStatus(str, enum.Enum):
    """Invoice status enumeration"""
    DRAFT = "draft"
    SENT = "sent"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELED = "canceled"


class PaymentMethod(str, enum.Enum):
    """Payment method enumeration"""
    CASH = "cash"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    INSURANCE = "insurance"
    OTHER = "other"


class PaymentPlanStatus(str, enum.Enum):
    """Payment plan status enumeration"""
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELED = "canceled"
    DEFAULTED = "defaulted"


class PlanFrequency(str, enum.Enum):
    """Spacing between generated installments"""
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class AdjustmentType(str, enum.Enum):
    """Invoice adjustment types"""
    DISCOUNT = "discount"
    WRITE_OFF = "write_off"
    REFUND = "refund"
    FEE = "fee"
    CORRECTION = "correction"


class ExpenseCategory(str, enum.Enum):
    """Expense categories"""
    SUPPLIES = "supplies"
    EQUIPMENT = "equipment"
    LAB_FEES = "lab_fees"
    UTILITIES = "utilities"
    RENT = "rent"
    SALARIES = "salaries"
    MARKETING = "marketing"
    INSURANCE = "insurance"
    MAINTENANCE = "maintenance"
    SOFTWARE = "software"
    TRAINING = "training"
    OTHER = "other"


class Invoice(Base):
    """Patient invoices"""
    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    invoice_number = Column(String(50), nullable=False, unique=True, index=True)
    patient_id = Column(Integer, nullable=False, index=True)
    total_amount = Column(Numeric(10, 2), nullable=False, default=0)
    final_amount = Column(Numeric(10, 2), nullable=False, default=0)
    paid_amount = Column(Numeric(10, 2), nullable=False, default=0)
    status = Column(SQLEnum(InvoiceStatus), nullable=False, default=InvoiceStatus.DRAFT, index=True)
    issued_date = Column(Date, nullable=False, index=True)
    due_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    items = relationship(
        "InvoiceItem", back_populates="invoice",
        cascade="all, delete-orphan", order_by="InvoiceItem.id"
    )
    payments = relationship("Payment", back_populates="invoice", order_by="Payment.id")
    adjustments = relationship("InvoiceAdjustment", back_populates="invoice", order_by="InvoiceAdjustment.id")
    payment_plans = relationship("PaymentPlan", back_populates="invoice")

    @property
    def outstanding_amount(self):
        return self.final_amount - self.paid_amount


class InvoiceItem(Base):
    """Individual line items on an invoice"""
    __tablename__ = "invoice_items"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    patient_treatment_id = Column(Integer, nullable=True)  # Treatment this line bills, if any
    description = Column(String(500), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)

    # Relationships
    invoice = relationship("Invoice", back_populates="items")


class Payment(Base):
    """Payment records for invoices"""
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    payment_plan_installment_id = Column(
        Integer, ForeignKey("payment_plan_installments.id"), nullable=True, index=True
    )
    amount = Column(Numeric(10, 2), nullable=False)
    payment_date = Column(Date, nullable=False, index=True)
    payment_method = Column(SQLEnum(PaymentMethod), nullable=False)
    reference_number = Column(String(100), nullable=True)  # Transaction reference
    notes = Column(Text, nullable=True)
    is_refunded = Column(Boolean, nullable=False, default=False)
    refunded_at = Column(DateTime(timezone=True), nullable=True)
    refund_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    invoice = relationship("Invoice", back_populates="payments")
    installment = relationship("PaymentPlanInstallment", back_populates="payments")


class PaymentPlan(Base):
    """Installment plans covering an invoice balance"""
    __tablename__ = "payment_plans"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    patient_id = Column(Integer, nullable=False, index=True)
    total_amount = Column(Numeric(10, 2), nullable=False)
    down_payment = Column(Numeric(10, 2), nullable=False, default=0)
    number_of_installments = Column(Integer, nullable=False)
    installment_amount = Column(Numeric(10, 2), nullable=False)
    frequency = Column(SQLEnum(PlanFrequency), nullable=False, default=PlanFrequency.MONTHLY)
    start_date = Column(Date, nullable=False)
    status = Column(SQLEnum(PaymentPlanStatus), nullable=False, default=PaymentPlanStatus.ACTIVE, index=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    invoice = relationship("Invoice", back_populates="payment_plans")
    installments = relationship(
        "PaymentPlanInstallment", back_populates="payment_plan",
        cascade="all, delete-orphan", order_by="PaymentPlanInstallment.installment_number"
    )

    @property
    def covered_amount(self):
        """Balance the installments are expected to add up to"""
        return self.total_amount - (self.down_payment or 0)


class PaymentPlanInstallment(Base):
    """Scheduled installment of a payment plan"""
    __tablename__ = "payment_plan_installments"
    __table_args__ = (
        UniqueConstraint("payment_plan_id", "installment_number", name="uq_plan_installment_number"),
    )

    id = Column(Integer, primary_key=True, index=True)
    payment_plan_id = Column(Integer, ForeignKey("payment_plans.id"), nullable=False, index=True)
    installment_number = Column(Integer, nullable=False)
    due_date = Column(Date, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    paid_amount = Column(Numeric(10, 2), nullable=False, default=0)
    is_paid = Column(Boolean, nullable=False, default=False)
    paid_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)

    # Relationships
    payment_plan = relationship("PaymentPlan", back_populates="installments")
    payments = relationship("Payment", back_populates="installment")


class InvoiceAdjustment(Base):
    """Append-only changes to what an invoice owes"""
    __tablename__ = "invoice_adjustments"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    type = Column(SQLEnum(AdjustmentType), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)  # Signed only for corrections
    reason = Column(Text, nullable=False)
    applied_date = Column(Date, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    invoice = relationship("Invoice", back_populates="adjustments")


class Expense(Base):
    """Clinic expenses"""
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True)
    description = Column(String(500), nullable=False)
    category = Column(SQLEnum(ExpenseCategory), nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    expense_date = Column(Date, nullable=False, index=True)
    vendor = Column(String(200), nullable=True)
    reference_number = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

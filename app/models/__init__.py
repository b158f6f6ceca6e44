"""
Dental Billing Ledger Database Models
SQLAlchemy ORM models for invoices, payments, plans, adjustments and expenses
"""

from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean, Date, Numeric,
    ForeignKey, Enum as SQLEnum
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from database import Base
import enum


# ==================== Enums ====================

class UserRole(str, enum.Enum):
    """User role enumeration"""
    ADMIN = "admin"
    DOCTOR = "doctor"
    STAFF = "staff"
    STUDENT = "student"


class TreatmentStatus(str, enum.Enum):
    """Patient treatment status enumeration"""
    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELED = "canceled"


# ==================== Base Model ====================

class BaseModel(Base):
    """Base model with common fields"""
    __abstract__ = True

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


# ==================== Collaborator Models ====================

class User(BaseModel):
    """
    Clinic staff member
    The ledger only reads it to resolve doctor display names.
    """
    __tablename__ = "users"

    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(100), nullable=True, index=True)
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.STAFF)
    is_active = Column(Boolean, default=True, nullable=False)

    treatments = relationship("PatientTreatment", back_populates="doctor")

    @property
    def full_name(self):
        """Get user's full name"""
        return f"{self.first_name} {self.last_name}"


class PatientTreatment(BaseModel):
    """
    Treatment performed (or planned) for a patient
    Owned by the clinical subsystem; the price is fixed when the row is created.
    """
    __tablename__ = "patient_treatments"

    patient_id = Column(Integer, nullable=False, index=True)
    treatment_code = Column(String(50), nullable=True)
    doctor_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    status = Column(SQLEnum(TreatmentStatus), nullable=False, default=TreatmentStatus.PLANNED)
    tooth_number = Column(Integer, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    scheduled_date = Column(Date, nullable=True)
    completion_date = Column(Date, nullable=True, index=True)

    doctor = relationship("User", back_populates="treatments")


# Import billing models
from app.models.billing import (
    Invoice, InvoiceItem, InvoiceStatus,
    Payment, PaymentMethod,
    PaymentPlan, PaymentPlanInstallment, PaymentPlanStatus, PlanFrequency,
    InvoiceAdjustment, AdjustmentType,
    Expense, ExpenseCategory,
)

# Export all models
__all__ = [
    "Base",
    "BaseModel",
    "UserRole",
    "TreatmentStatus",
    "User",
    "PatientTreatment",
    "Invoice",
    "InvoiceItem",
    "InvoiceStatus",
    "Payment",
    "PaymentMethod",
    "PaymentPlan",
    "PaymentPlanInstallment",
    "PaymentPlanStatus",
    "PlanFrequency",
    "InvoiceAdjustment",
    "AdjustmentType",
    "Expense",
    "ExpenseCategory",
]

"""
Billing ledger exceptions
Every ledger operation fails with one of these instead of returning None.
"""

from fastapi import status


class LedgerError(Exception):
    """Base class for billing ledger errors"""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFoundError(LedgerError):
    """Target record does not exist"""
    status_code = status.HTTP_404_NOT_FOUND
    entity = "Record"

    def __init__(self, entity_id: int):
        super().__init__(f"{self.entity} {entity_id} not found")
        self.entity_id = entity_id


class InvoiceNotFound(NotFoundError):
    entity = "Invoice"


class PaymentNotFound(NotFoundError):
    entity = "Payment"


class PaymentPlanNotFound(NotFoundError):
    entity = "Payment plan"


class InstallmentNotFound(NotFoundError):
    entity = "Installment"


class ExpenseNotFound(NotFoundError):
    entity = "Expense"


class InvalidAmountError(LedgerError):
    """Zero, negative or otherwise unusable money amount"""


class InvalidScheduleError(LedgerError):
    """Installment schedule does not match the plan it belongs to"""


class InvoiceStateError(LedgerError):
    """Operation is not allowed in the invoice's current state"""
    status_code = status.HTTP_409_CONFLICT

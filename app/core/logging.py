"""
Structured logging for billing ledger events
"""

import json
import logging
import sys
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional
from config import settings


def _money(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None


class LedgerEventLogger:
    """Custom logger for money-moving ledger events"""

    def __init__(self):
        self.logger = logging.getLogger("ledger")
        self.logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

        # Console handler; one JSON document per event in the message field
        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def _emit(self, event: Dict[str, Any], severity: str = "INFO"):
        event["timestamp"] = datetime.now(timezone.utc).isoformat()
        event["severity"] = severity
        if severity == "ERROR":
            self.logger.error(json.dumps(event))
        elif severity == "WARNING":
            self.logger.warning(json.dumps(event))
        else:
            self.logger.info(json.dumps(event))

    def log_invoice_created(self, invoice_id: int, invoice_number: str, patient_id: int, total_amount: Decimal):
        """Log invoice creation"""
        self._emit({
            "event_type": "invoice_created",
            "invoice_id": invoice_id,
            "invoice_number": invoice_number,
            "patient_id": patient_id,
            "total_amount": _money(total_amount),
        })

    def log_payment_recorded(
        self,
        payment_id: int,
        invoice_id: int,
        amount: Decimal,
        paid_amount: Decimal,
        status: str,
        installment_id: Optional[int] = None
    ):
        """Log a payment and the invoice balance it produced"""
        self._emit({
            "event_type": "payment_recorded",
            "payment_id": payment_id,
            "invoice_id": invoice_id,
            "installment_id": installment_id,
            "amount": _money(amount),
            "invoice_paid_amount": _money(paid_amount),
            "invoice_status": status,
        })

    def log_payment_refunded(
        self,
        payment_id: int,
        invoice_id: int,
        amount: Decimal,
        reason: str,
        already_refunded: bool = False,
        paid_amount: Optional[Decimal] = None,
        status: Optional[str] = None
    ):
        """Log refunds, including repeated refund requests that change nothing"""
        self._emit({
            "event_type": "payment_refund_repeated" if already_refunded else "payment_refunded",
            "payment_id": payment_id,
            "invoice_id": invoice_id,
            "amount": _money(amount),
            "reason": reason,
            "invoice_paid_amount": _money(paid_amount),
            "invoice_status": status,
        }, severity="WARNING" if already_refunded else "INFO")

    def log_adjustment_applied(
        self,
        adjustment_id: int,
        invoice_id: int,
        adjustment_type: str,
        amount: Decimal,
        final_amount: Decimal,
        status: str
    ):
        """Log adjustments to an invoice's payable total"""
        self._emit({
            "event_type": "adjustment_applied",
            "adjustment_id": adjustment_id,
            "invoice_id": invoice_id,
            "adjustment_type": adjustment_type,
            "amount": _money(amount),
            "invoice_final_amount": _money(final_amount),
            "invoice_status": status,
        })

    def log_payment_plan_created(self, plan_id: int, invoice_id: int, installments: int, covered_amount: Decimal):
        """Log a new payment plan"""
        self._emit({
            "event_type": "payment_plan_created",
            "payment_plan_id": plan_id,
            "invoice_id": invoice_id,
            "installments": installments,
            "covered_amount": _money(covered_amount),
        })

    def log_invoices_overdue(self, count: int, as_of: str):
        """Log an overdue sweep"""
        self._emit({
            "event_type": "invoices_marked_overdue",
            "count": count,
            "as_of": as_of,
        })


# Global ledger event logger instance
ledger_logger = LedgerEventLogger()

"""
Money helpers and the pure status / balance rules of the billing ledger
"""

import calendar
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Tuple

from app.models import InvoiceStatus, AdjustmentType, PlanFrequency

Q2 = Decimal("0.01")
ZERO = Decimal("0.00")

# Statuses that describe settlement rather than the invoice's billing stage
SETTLEMENT_STATUSES = {InvoiceStatus.PAID, InvoiceStatus.PARTIAL}

# Adjustments whose unsigned amount reduces what is owed
REDUCING_ADJUSTMENTS = {AdjustmentType.DISCOUNT, AdjustmentType.WRITE_OFF, AdjustmentType.REFUND}


def D(x) -> Decimal:
    return Decimal(str(x if x is not None else 0))


def money2(x) -> Decimal:
    return D(x).quantize(Q2, rounding=ROUND_HALF_UP)


def derive_status(current: InvoiceStatus, paid_amount, final_amount) -> InvoiceStatus:
    """
    Status after a balance change.

    paid > 0 and paid >= final -> paid, 0 < paid < final -> partial.
    With nothing paid the invoice returns to its billing stage: sent/overdue/draft
    are kept, a settlement status falls back to sent. Canceled is never overwritten.
    """
    paid = D(paid_amount)
    final = D(final_amount)

    if current == InvoiceStatus.CANCELED:
        return current
    if paid > 0 and paid >= final:
        return InvoiceStatus.PAID
    if paid > 0:
        return InvoiceStatus.PARTIAL
    if current in SETTLEMENT_STATUSES:
        return InvoiceStatus.SENT
    return current


def refund_status(current: InvoiceStatus, paid_amount, final_amount) -> InvoiceStatus:
    """
    Status after a refund.

    Unlike derive_status, a refund that brings the paid amount to zero always
    lands on sent, whatever stage the invoice was in before it was paid.
    """
    paid = D(paid_amount)
    final = D(final_amount)

    if current == InvoiceStatus.CANCELED:
        return current
    if paid >= final:
        return InvoiceStatus.PAID
    if paid > 0:
        return InvoiceStatus.PARTIAL
    return InvoiceStatus.SENT


def adjustment_delta(adjustment_type: AdjustmentType, amount) -> Tuple[Decimal, bool]:
    """
    Signed change an adjustment makes to final_amount, and whether the result
    is floored at zero (reducing adjustments) rather than validated.
    """
    amount = money2(amount)
    if adjustment_type in REDUCING_ADJUSTMENTS:
        return -amount, True
    return amount, False


def status_after_adjustment(current: InvoiceStatus, paid_amount, final_amount) -> InvoiceStatus:
    """
    Adjustments only ever close an invoice: paid >= final flips it to paid,
    anything else leaves the status as it was (a paid invoice stays paid).
    """
    if current == InvoiceStatus.CANCELED:
        return current
    if D(paid_amount) >= D(final_amount):
        return InvoiceStatus.PAID
    return current


def add_interval(start: date, frequency: PlanFrequency, steps: int) -> date:
    """Due date of the installment `steps` periods after start"""
    if frequency == PlanFrequency.WEEKLY:
        return start + timedelta(weeks=steps)
    if frequency == PlanFrequency.BIWEEKLY:
        return start + timedelta(weeks=2 * steps)

    month_index = start.month - 1 + steps
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def split_installments(
    covered_amount,
    count: int,
    start: date,
    frequency: PlanFrequency
) -> List[Tuple[int, Decimal, date]]:
    """
    Split a balance into `count` equal installments; the last one absorbs the
    rounding cents so the schedule always sums to the covered amount.
    """
    covered = money2(covered_amount)
    base = (covered / count).quantize(Q2, rounding=ROUND_HALF_UP)
    schedule = []
    allocated = ZERO
    for index in range(count):
        amount = base if index < count - 1 else covered - allocated
        allocated += amount
        schedule.append((index + 1, amount, add_interval(start, frequency, index)))
    return schedule


def days_past_due(reference: date, as_of: date) -> int:
    return (as_of - reference).days


def aging_bucket(days: int) -> str:
    """
    Whole days past due -> AR aging bucket.
    current < 30 <= thirty_days < 60 <= sixty_days < 90 == ninety_days < over_ninety
    Invoices not yet due (negative days) are current.
    """
    if days < 30:
        return "current"
    if days < 60:
        return "thirty_days"
    if days < 90:
        return "sixty_days"
    if days == 90:
        return "ninety_days"
    return "over_ninety"


def month_key(year, month) -> str:
    return f"{int(year):04d}-{int(month):02d}"


def aging_reference(due_date: Optional[date], issued_date: date) -> date:
    return due_date or issued_date

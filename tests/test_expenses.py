from datetime import date
from decimal import Decimal

import pytest

from app.models import ExpenseCategory
from app.schemas.billing import ExpenseCreate, ExpenseUpdate, ExpenseFilters
from app.services.billing_errors import ExpenseNotFound


async def record_expense(ledger, **overrides):
    data = dict(
        description="Impression material",
        category=ExpenseCategory.SUPPLIES,
        amount=Decimal("300.00"),
        expense_date=date(2024, 3, 5),
        vendor="Dental Depot",
    )
    data.update(overrides)
    return await ledger.create_expense(ExpenseCreate(**data))


@pytest.mark.asyncio
async def test_null_does_not_clear_required_expense_fields(ledger) -> None:
    expense = await record_expense(ledger)

    updated = await ledger.update_expense(expense.id, ExpenseUpdate.model_validate({
        "amount": None,
        "description": None,
        "category": None,
        "expense_date": None,
        "vendor": None,
        "notes": "Invoice lost",
    }))

    assert updated.amount == Decimal("300.00")
    assert updated.description == "Impression material"
    assert updated.category == ExpenseCategory.SUPPLIES
    assert updated.expense_date == date(2024, 3, 5)
    assert updated.vendor is None
    assert updated.notes == "Invoice lost"


@pytest.mark.asyncio
async def test_update_expense_rounds_amount(ledger) -> None:
    expense = await record_expense(ledger)
    updated = await ledger.update_expense(expense.id, ExpenseUpdate(amount=Decimal("120.50")))
    assert updated.amount == Decimal("120.50")

    stored = await ledger.get_expense(expense.id)
    assert stored.amount == Decimal("120.50")


@pytest.mark.asyncio
async def test_missing_expense(ledger) -> None:
    with pytest.raises(ExpenseNotFound):
        await ledger.update_expense(77, ExpenseUpdate(notes="x"))
    with pytest.raises(ExpenseNotFound):
        await ledger.delete_expense(77)


@pytest.mark.asyncio
async def test_list_expenses_by_category(ledger) -> None:
    await record_expense(ledger)
    rent = await record_expense(
        ledger, description="March rent", category=ExpenseCategory.RENT, amount=Decimal("2000.00")
    )

    listed = await ledger.list_expenses(ExpenseFilters(category=ExpenseCategory.RENT))
    assert [expense.id for expense in listed] == [rent.id]

"""
Expense Book
Clinic expenses consumed by the expense report.
"""

import logging
from typing import List, Optional

from app.models import Expense
from app.repositories.ledger import LedgerRepository
from app.schemas.billing import ExpenseCreate, ExpenseUpdate, ExpenseFilters
from app.services.billing_errors import ExpenseNotFound
from app.services.billing_math import money2

logger = logging.getLogger(__name__)

# An explicit null leaves these unchanged; vendor, reference and notes can be cleared
REQUIRED_FIELDS = {"description", "category", "amount", "expense_date"}


class ExpenseBook:
    def __init__(self, repository: LedgerRepository):
        self.repository = repository

    async def create_expense(self, expense_data: ExpenseCreate) -> Expense:
        async with self.repository.unit_of_work():
            expense = Expense(**expense_data.model_dump())
            expense.amount = money2(expense.amount)
            await self.repository.add(expense)
        logger.info(f"Expense {expense.id} recorded: {expense.category.value} {expense.amount}")
        return expense

    async def get_expense(self, expense_id: int) -> Expense:
        expense = await self.repository.get_expense(expense_id)
        if not expense:
            raise ExpenseNotFound(expense_id)
        return expense

    async def list_expenses(self, filters: Optional[ExpenseFilters] = None) -> List[Expense]:
        return await self.repository.list_expenses(filters or ExpenseFilters())

    async def update_expense(self, expense_id: int, expense_data: ExpenseUpdate) -> Expense:
        async with self.repository.unit_of_work():
            expense = await self.repository.get_expense(expense_id)
            if not expense:
                raise ExpenseNotFound(expense_id)

            update_data = {
                field: value
                for field, value in expense_data.model_dump(exclude_unset=True).items()
                if value is not None or field not in REQUIRED_FIELDS
            }
            for field, value in update_data.items():
                setattr(expense, field, value)
            if "amount" in update_data:
                expense.amount = money2(expense.amount)
            await self.repository.session.flush()
        return expense

    async def delete_expense(self, expense_id: int) -> None:
        async with self.repository.unit_of_work():
            if not await self.repository.delete_expense(expense_id):
                raise ExpenseNotFound(expense_id)
        logger.info(f"Expense {expense_id} deleted")

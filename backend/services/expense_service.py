"""
expense_service.py — Expense ledger
Records what a user spent and answers the date-range queries that budget
rollover aggregates over.
"""

import logging
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy.orm import Session

from clock import Clock, today
from errors import NotFoundError, UnauthorizedError, belongs_to
from models.expense import Expense
from services.period_calculator import add_months
from services.stores import ExpenseStore

logger = logging.getLogger(__name__)


def parse_expense_date(value, fallback: date) -> date:
    """ISO date, or ``fallback`` when missing or unparseable."""
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            logger.info(f"Unparseable expense date {value!r}; using {fallback}")
    return fallback


class ExpenseService:
    def __init__(self, db: Session, clock: Clock = today):
        self.db = db
        self.clock = clock
        self.expenses = ExpenseStore(db)

    def create_expense(self, data: dict, user_id: int) -> Expense:
        expense = Expense(
            user_id=user_id,
            description=data.get("description") or "",
            amount=Decimal(str(data.get("amount"))),
            date=parse_expense_date(data.get("date"), self.clock()),
            category=data.get("category"),
        )
        return self.expenses.add(expense)

    def period_start(self, period: str) -> date | None:
        """Start of a named look-back window ending today; None means no bound."""
        end = self.clock()
        period = (period or "all").lower()
        if period == "today":
            return end
        if period == "week":
            return end - timedelta(weeks=1)
        if period == "month":
            return add_months(end, -1)
        if period == "6months":
            return add_months(end, -6)
        return None

    def list_expenses(self, user_id: int, period: str | None = None,
                      start: date | None = None, end: date | None = None) -> list[Expense]:
        if period is not None:
            since = self.period_start(period)
            if since is None:
                return self.expenses.list_by_user(user_id)
            return self.expenses.list_by_user_date_range(user_id, since, self.clock())
        if start is not None and end is not None:
            return self.expenses.list_by_user_date_range(user_id, start, end)
        return self.expenses.list_by_user(user_id)

    def list_by_category(self, user_id: int, category: str) -> list[Expense]:
        return self.expenses.list_by_user_and_category(user_id, category)

    def delete_expense(self, expense_id: int, user_id: int) -> None:
        expense = self.expenses.get(expense_id)
        if expense is None:
            raise NotFoundError("Expense", expense_id)
        if not belongs_to(expense, user_id):
            raise UnauthorizedError("delete", "expense")
        self.expenses.delete(expense)

"""
stores.py — Persistence for budgets, budget history and expenses
Thin query objects over a SQLAlchemy session. They flush and commit only
where noted; transaction boundaries belong to the services.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy.orm import Session

from models.budget import Budget
from models.budget_history import BudgetHistory
from models.expense import Expense


class BudgetStore:
    def __init__(self, db: Session):
        self.db = db

    def get(self, budget_id: int) -> Budget | None:
        return self.db.get(Budget, budget_id)

    def find_by_user_and_category(self, user_id: int, category: str) -> Budget | None:
        return self.db.query(Budget).filter_by(user_id=user_id, category=category).first()

    def list_by_user(self, user_id: int) -> list[Budget]:
        return self.db.query(Budget).filter_by(user_id=user_id).order_by(Budget.id).all()

    def save(self, budget: Budget) -> Budget:
        """Add (if new) and commit, then reload server-side defaults."""
        self.db.add(budget)
        self.db.commit()
        self.db.refresh(budget)
        return budget

    def delete(self, budget: Budget) -> None:
        self.db.delete(budget)
        self.db.commit()

    def advance_period(self, budget_id: int, expected_next_reset: date,
                       new_start: date, new_next_reset: date) -> bool:
        """Compare-and-swap on next_reset_date. Does not commit.

        Returns False when the row no longer has ``expected_next_reset``,
        i.e. someone else already advanced it.
        """
        matched = (
            self.db.query(Budget)
            .filter(Budget.id == budget_id, Budget.next_reset_date == expected_next_reset)
            .update(
                {
                    Budget.current_period_start: new_start,
                    Budget.next_reset_date: new_next_reset,
                },
                synchronize_session=False,
            )
        )
        return matched == 1


class HistoryStore:
    def __init__(self, db: Session):
        self.db = db

    def add(self, history: BudgetHistory) -> BudgetHistory:
        """Stage a history row in the current transaction."""
        self.db.add(history)
        return history

    def _for_user(self, user_id: int):
        return self.db.query(BudgetHistory).filter(BudgetHistory.user_id == user_id)

    @staticmethod
    def _newest_first(query):
        return query.order_by(BudgetHistory.period_start.desc(), BudgetHistory.id.desc())

    def list_by_user(self, user_id: int) -> list[BudgetHistory]:
        return self._newest_first(self._for_user(user_id)).all()

    def list_by_user_and_category(self, user_id: int, category: str) -> list[BudgetHistory]:
        query = self._for_user(user_id).filter(BudgetHistory.category == category)
        return self._newest_first(query).all()

    def list_by_user_and_period_start_between(self, user_id: int, start: date, end: date,
                                              category: str | None = None) -> list[BudgetHistory]:
        query = self._for_user(user_id).filter(
            BudgetHistory.period_start >= start,
            BudgetHistory.period_start <= end,
        )
        if category is not None:
            query = query.filter(BudgetHistory.category == category)
        return self._newest_first(query).all()


class ExpenseStore:
    def __init__(self, db: Session):
        self.db = db

    def get(self, expense_id: int) -> Expense | None:
        return self.db.get(Expense, expense_id)

    def add(self, expense: Expense) -> Expense:
        self.db.add(expense)
        self.db.commit()
        self.db.refresh(expense)
        return expense

    def delete(self, expense: Expense) -> None:
        self.db.delete(expense)
        self.db.commit()

    @staticmethod
    def _newest_first(query):
        return query.order_by(Expense.date.desc(), Expense.created_at.desc(), Expense.id.desc())

    def list_by_user(self, user_id: int) -> list[Expense]:
        return self._newest_first(self.db.query(Expense).filter_by(user_id=user_id)).all()

    def list_by_user_and_category(self, user_id: int, category: str) -> list[Expense]:
        query = self.db.query(Expense).filter_by(user_id=user_id, category=category)
        return self._newest_first(query).all()

    def list_by_user_date_range(self, user_id: int, start: date, end: date) -> list[Expense]:
        """Inclusive on both ends."""
        query = self.db.query(Expense).filter(
            Expense.user_id == user_id,
            Expense.date >= start,
            Expense.date <= end,
        )
        return self._newest_first(query).all()

    def query_by_user_category_date_range(self, user_id: int, category: str,
                                          start: date, end: date) -> list[Expense]:
        query = self.db.query(Expense).filter(
            Expense.user_id == user_id,
            Expense.category == category,
            Expense.date >= start,
            Expense.date <= end,
        )
        return self._newest_first(query).all()

    def total_by_user_category_date_range(self, user_id: int, category: str,
                                          start: date, end: date) -> Decimal:
        rows = self.query_by_user_category_date_range(user_id, category, start, end)
        return sum((Decimal(str(e.amount)) for e in rows), Decimal("0"))

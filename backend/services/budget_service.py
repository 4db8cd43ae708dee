"""
budget_service.py — Budgets & budget history
Create, list, update and delete a user's per-category budgets. Listing is
also where periods roll over: every budget is normalized and checked before
it is returned.
"""

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clock import Clock, today
from errors import NotFoundError, UnauthorizedError, DuplicateCategoryError, belongs_to
from models.budget import Budget, PeriodType
from models.budget_history import BudgetHistory
from services.period_calculator import next_reset, period_end
from services.rollover_service import RolloverEngine
from services.stores import BudgetStore, ExpenseStore, HistoryStore

logger = logging.getLogger(__name__)

_TRUE = {"true", "1", "yes", "y", "on"}
_FALSE = {"false", "0", "no", "n", "off"}


def coerce_bool(value) -> bool | None:
    """Best-effort boolean; None when the value can't be read as one."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
    return None


class BudgetService:
    def __init__(self, db: Session, clock: Clock = today):
        self.db = db
        self.clock = clock
        self.budgets = BudgetStore(db)
        self.history = HistoryStore(db)
        self.expenses = ExpenseStore(db)
        self.engine = RolloverEngine(db, clock=clock)

    def _owned(self, budget_id: int, user_id: int, action: str) -> Budget:
        budget = self.budgets.get(budget_id)
        if budget is None:
            raise NotFoundError("Budget", budget_id)
        if not belongs_to(budget, user_id):
            raise UnauthorizedError(action, "budget")
        return budget

    def create_budget(self, data: dict, user_id: int) -> Budget:
        category = data.get("category")
        if self.budgets.find_by_user_and_category(user_id, category) is not None:
            raise DuplicateCategoryError(category)

        auto_reset = coerce_bool(data.get("auto_reset"))
        period_type = PeriodType.coerce(data.get("period_type"))
        start = self.clock()
        budget = Budget(
            user_id=user_id,
            category=category,
            amount=Decimal(str(data.get("amount"))),
            period_type=period_type.value,
            auto_reset=True if auto_reset is None else auto_reset,
            current_period_start=start,
            next_reset_date=next_reset(start, period_type),
        )
        try:
            budget = self.budgets.save(budget)
        except IntegrityError:
            self.db.rollback()
            if self.budgets.find_by_user_and_category(user_id, category) is None:
                raise
            # Lost a race with a concurrent create for the same category
            raise DuplicateCategoryError(category) from None
        logger.info(f"Created budget {budget.id} for user {user_id}: {category} {period_type.value}")
        return budget

    def list_budgets(self, user_id: int) -> list[Budget]:
        return self.engine.run(self.budgets.list_by_user(user_id))

    def update_budget(self, budget_id: int, data: dict, user_id: int) -> Budget:
        budget = self._owned(budget_id, user_id, "update")

        if data.get("amount") is not None:
            budget.amount = Decimal(str(data["amount"]))
        if data.get("period_type") is not None:
            budget.period_type = PeriodType.coerce(data["period_type"]).value
        auto_reset = coerce_bool(data.get("auto_reset"))
        if auto_reset is not None:
            budget.auto_reset = auto_reset
        elif budget.auto_reset is None:
            budget.auto_reset = True

        if budget.current_period_start is None:
            budget.current_period_start = self.clock()
        # Always recompute so the schedule follows a changed period type
        budget.next_reset_date = next_reset(budget.current_period_start, budget.period_type)

        budget = self.budgets.save(budget)
        logger.info(f"Updated budget {budget.id}: next reset {budget.next_reset_date}")
        return budget

    def delete_budget(self, budget_id: int, user_id: int) -> None:
        budget = self._owned(budget_id, user_id, "delete")
        self.budgets.delete(budget)
        logger.info(f"Deleted budget {budget_id} for user {user_id}")

    def get_history(self, user_id: int, category: str | None = None,
                    start: date | None = None, end: date | None = None) -> list[BudgetHistory]:
        if start is not None or end is not None:
            return self.history.list_by_user_and_period_start_between(
                user_id, start or date.min, end or date.max, category=category
            )
        if category is not None:
            return self.history.list_by_user_and_category(user_id, category)
        return self.history.list_by_user(user_id)

    def get_budget_status(self, user_id: int) -> list[dict]:
        """Spend so far against each budget's current period."""
        status = []
        for b in self.list_budgets(user_id):
            if b.current_period_start is None or b.next_reset_date is None:
                continue
            spent = self.expenses.total_by_user_category_date_range(
                user_id, b.category, b.current_period_start, period_end(b.next_reset_date)
            )
            amount = Decimal(str(b.amount))
            status.append({
                "budget_id": b.id,
                "category": b.category,
                "period_type": b.period_type,
                "period_start": b.current_period_start,
                "next_reset_date": b.next_reset_date,
                "budget_amount": amount,
                "spent_amount": spent,
                "remaining": amount - spent,
                "percentage_used": float(spent / amount * 100) if amount else 0.0,
            })
        return status

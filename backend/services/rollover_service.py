"""
rollover_service.py — Budget period lifecycle
Fills in missing period fields on legacy rows, detects elapsed periods,
archives what was actually spent and moves the budget onto a fresh period.
"""

import logging
import threading
import weakref

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clock import Clock, today
from models.budget import Budget, PeriodType
from models.budget_history import BudgetHistory
from services.period_calculator import next_reset, period_end
from services.stores import BudgetStore, ExpenseStore, HistoryStore

logger = logging.getLogger(__name__)

# Entries disappear once no rollover holds the lock
_locks: "weakref.WeakValueDictionary[int, threading.Lock]" = weakref.WeakValueDictionary()
_locks_guard = threading.Lock()


def _budget_lock(budget_id: int) -> threading.Lock:
    with _locks_guard:
        return _locks.setdefault(budget_id, threading.Lock())


class RolloverEngine:
    def __init__(self, db: Session, clock: Clock = today):
        self.db = db
        self.clock = clock
        self.budgets = BudgetStore(db)
        self.history = HistoryStore(db)
        self.expenses = ExpenseStore(db)

    def normalize(self, budget: Budget) -> bool:
        """Default any missing period fields. Writes only if something changed."""
        changed = False
        if budget.auto_reset is None:
            budget.auto_reset = True
            changed = True
        if budget.period_type is None or not str(budget.period_type).strip():
            budget.period_type = PeriodType.MONTHLY.value
            changed = True
        if budget.current_period_start is None:
            budget.current_period_start = self.clock()
            changed = True
        if budget.next_reset_date is None:
            budget.next_reset_date = next_reset(budget.current_period_start, budget.period_type)
            changed = True
        if changed:
            self.budgets.save(budget)
            logger.info(f"Normalized budget {budget.id} ({budget.category}): next reset {budget.next_reset_date}")
        return changed

    @staticmethod
    def is_due(budget: Budget, on) -> bool:
        return (
            budget.auto_reset is True
            and budget.current_period_start is not None
            and budget.next_reset_date is not None
            and on >= budget.next_reset_date
        )

    def check_and_reset(self, budget: Budget) -> bool:
        """Archive and advance ``budget`` if its period has elapsed.

        The new period always starts today, so a budget that missed several
        resets produces a single history row spanning the whole gap.
        Returns True if this call performed the rollover.
        """
        current = self.clock()
        if not self.is_due(budget, current):
            return False

        lock = _budget_lock(budget.id)
        with lock:
            self.db.refresh(budget)
            if not self.is_due(budget, current):
                return False

            budget_id, category, limit = budget.id, budget.category, budget.amount
            start = budget.current_period_start
            expected_reset = budget.next_reset_date
            end = period_end(expected_reset)
            spent = self.expenses.total_by_user_category_date_range(
                budget.user_id, budget.category, start, end
            )
            entry = BudgetHistory(
                user_id=budget.user_id,
                budget_id=budget.id,
                category=budget.category,
                budget_amount=limit,
                spent_amount=spent,
                period_start=start,
                period_end=end,
                period_type=PeriodType.coerce(budget.period_type).value,
            )
            new_reset = next_reset(current, budget.period_type)

            try:
                if not self.budgets.advance_period(budget.id, expected_reset, current, new_reset):
                    self.db.rollback()
                    logger.info(f"Budget {budget_id} already rolled over past {expected_reset}")
                    return False
                self.history.add(entry)
                self.db.commit()
            except SQLAlchemyError:
                self.db.rollback()
                raise

        logger.info(
            f"Rolled over budget {budget_id} ({category}): "
            f"{start}..{end} spent {spent} of {limit}, next reset {new_reset}"
        )
        return True

    def run(self, budgets: list[Budget]) -> list[Budget]:
        """Normalize then roll over each budget; one failure does not stop the rest."""
        for budget in budgets:
            budget_id = budget.id
            try:
                self.normalize(budget)
                self.check_and_reset(budget)
            except SQLAlchemyError:
                self.db.rollback()
                logger.exception(f"Rollover failed for budget {budget_id}; skipping this pass")
        return budgets

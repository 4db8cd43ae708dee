# Import all models so they register with SQLAlchemy Base.metadata
# This ensures Base.metadata.create_all() creates all tables

from models.user import User
from models.expense import Expense
from models.budget import Budget, PeriodType
from models.budget_history import BudgetHistory

__all__ = [
    "User",
    "Expense",
    "Budget",
    "PeriodType",
    "BudgetHistory",
]

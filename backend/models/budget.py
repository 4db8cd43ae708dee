import enum
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, Boolean, ForeignKey, UniqueConstraint
from database import Base


class PeriodType(str, enum.Enum):
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"
    CUSTOM = "CUSTOM"

    @classmethod
    def coerce(cls, value) -> "PeriodType":
        """Lenient parse: blank, unknown or oddly-cased values never fail."""
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.MONTHLY
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return cls.MONTHLY


class Budget(Base):
    __tablename__ = "budgets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    category = Column(String(50), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    # Nullable columns below: rows written before rollover existed may lack them
    period_type = Column(String(20), nullable=True, default=PeriodType.MONTHLY.value)
    current_period_start = Column(Date, nullable=True)
    next_reset_date = Column(Date, nullable=True)
    auto_reset = Column(Boolean, nullable=True, default=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        UniqueConstraint("user_id", "category", name="uq_budget_user_category"),
    )

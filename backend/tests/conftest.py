"""Shared fixtures: in-memory database, a settable clock, users and an HTTP client."""

from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401  registers every table on Base.metadata
from auth import create_token, hash_password
from clock import get_clock
from database import Base, get_db
from main import app
from models.budget import Budget, PeriodType
from models.expense import Expense
from models.user import User
from services.period_calculator import next_reset


class FakeClock:
    """Callable clock whose date the test can move."""

    def __init__(self, day: date) -> None:
        self.day = day

    def __call__(self) -> date:
        return self.day


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(date(2024, 1, 1))


def _make_user(db, username: str) -> User:
    user = User(username=username, hashed_password=hash_password("secret"))
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def user(db) -> User:
    return _make_user(db, "alice")


@pytest.fixture
def other_user(db) -> User:
    return _make_user(db, "bob")


@pytest.fixture
def make_budget(db):
    """Insert a budget directly, bypassing the service."""

    def _make(user, category="Food", amount="500", period_type=PeriodType.MONTHLY,
              start=date(2024, 1, 1), auto_reset=True):
        period_type = PeriodType.coerce(period_type)
        budget = Budget(
            user_id=user.id,
            category=category,
            amount=Decimal(amount),
            period_type=period_type.value,
            auto_reset=auto_reset,
            current_period_start=start,
            next_reset_date=next_reset(start, period_type),
        )
        db.add(budget)
        db.commit()
        db.refresh(budget)
        return budget

    return _make


@pytest.fixture
def add_expense(db):
    def _add(user, amount, day, category="Food", description="test"):
        expense = Expense(
            user_id=user.id,
            amount=Decimal(str(amount)),
            date=day,
            category=category,
            description=description,
        )
        db.add(expense)
        db.commit()
        return expense

    return _add


@pytest.fixture
def headers_for():
    """Bearer-token headers for a given user."""

    def _headers(user: User) -> dict:
        token = create_token({"user_id": user.id, "username": user.username})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def client(session_factory, clock):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.clear()

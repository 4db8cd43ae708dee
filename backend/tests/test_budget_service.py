from datetime import date
from decimal import Decimal

import pytest

from errors import DuplicateCategoryError, NotFoundError, UnauthorizedError
from models.budget import Budget
from models.budget_history import BudgetHistory
from services.budget_service import BudgetService, coerce_bool


@pytest.fixture
def service(db, clock) -> BudgetService:
    return BudgetService(db, clock=clock)


class TestCoerceBool:
    @pytest.mark.parametrize("raw, expected", [
        (True, True), (False, False), ("true", True), ("No", False),
        ("1", True), (0, False), ("maybe", None), (None, None), ([], None),
    ])
    def test_values(self, raw, expected) -> None:
        assert coerce_bool(raw) is expected


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------


class TestCreateBudget:
    def test_defaults_are_filled_in(self, service, user, clock) -> None:
        clock.day = date(2024, 1, 31)
        budget = service.create_budget({"category": "Food", "amount": 500}, user.id)

        assert budget.id is not None
        assert budget.period_type == "MONTHLY"
        assert budget.auto_reset is True
        assert budget.current_period_start == date(2024, 1, 31)
        assert budget.next_reset_date == date(2024, 2, 29)
        assert budget.amount == Decimal("500")

    def test_lenient_optional_fields(self, service, user) -> None:
        weekly = service.create_budget(
            {"category": "Fuel", "amount": "40.5", "period_type": "weekly", "auto_reset": "no"}, user.id
        )
        assert weekly.period_type == "WEEKLY"
        assert weekly.auto_reset is False
        assert weekly.next_reset_date == date(2024, 1, 8)

        odd = service.create_budget(
            {"category": "Fun", "amount": 10, "period_type": "fortnightly", "auto_reset": "maybe"}, user.id
        )
        assert odd.period_type == "MONTHLY"
        assert odd.auto_reset is True

    def test_duplicate_category_is_rejected(self, service, db, user) -> None:
        service.create_budget({"category": "Food", "amount": 500}, user.id)

        with pytest.raises(DuplicateCategoryError, match="Food"):
            service.create_budget({"category": "Food", "amount": 900}, user.id)

        rows = db.query(Budget).filter_by(user_id=user.id).all()
        assert len(rows) == 1
        assert rows[0].amount == Decimal("500")

    def test_same_category_for_different_users(self, service, user, other_user) -> None:
        service.create_budget({"category": "Food", "amount": 500}, user.id)
        budget = service.create_budget({"category": "Food", "amount": 200}, other_user.id)
        assert budget.user_id == other_user.id


# ---------------------------------------------------------------------------
# update
# ---------------------------------------------------------------------------


class TestUpdateBudget:
    def test_changing_period_type_recomputes_reset_date(self, service, user, make_budget) -> None:
        budget = make_budget(user, start=date(2024, 1, 10))

        updated = service.update_budget(budget.id, {"period_type": "YEARLY"}, user.id)

        assert updated.current_period_start == date(2024, 1, 10)
        assert updated.next_reset_date == date(2025, 1, 10)
        assert updated.period_type == "YEARLY"

    def test_absent_fields_are_kept(self, service, user, make_budget) -> None:
        budget = make_budget(user, amount="300", start=date(2024, 1, 10), auto_reset=False)

        updated = service.update_budget(budget.id, {"amount": "450"}, user.id)

        assert updated.amount == Decimal("450")
        assert updated.period_type == "MONTHLY"
        assert updated.auto_reset is False
        assert updated.next_reset_date == date(2024, 2, 10)

    def test_recomputes_even_when_reset_date_was_set(self, db, service, user, make_budget) -> None:
        budget = make_budget(user, start=date(2024, 1, 10))
        db.query(Budget).filter_by(id=budget.id).update({"next_reset_date": date(2030, 1, 1)})
        db.commit()

        updated = service.update_budget(budget.id, {}, user.id)
        assert updated.next_reset_date == date(2024, 2, 10)

    def test_missing_anchor_and_auto_reset_are_defaulted(self, db, service, user, make_budget, clock) -> None:
        budget = make_budget(user)
        db.query(Budget).filter_by(id=budget.id).update(
            {"current_period_start": None, "auto_reset": None}, synchronize_session=False
        )
        db.commit()
        db.expire_all()
        clock.day = date(2024, 3, 3)

        updated = service.update_budget(budget.id, {"period_type": "weekly"}, user.id)

        assert updated.current_period_start == date(2024, 3, 3)
        assert updated.next_reset_date == date(2024, 3, 10)
        assert updated.auto_reset is True

    def test_unknown_budget(self, service, user) -> None:
        with pytest.raises(NotFoundError):
            service.update_budget(999, {"amount": 1}, user.id)

    def test_someone_elses_budget(self, service, user, other_user, make_budget) -> None:
        budget = make_budget(other_user)
        with pytest.raises(UnauthorizedError, match="update"):
            service.update_budget(budget.id, {"amount": 1}, user.id)


# ---------------------------------------------------------------------------
# delete
# ---------------------------------------------------------------------------


class TestDeleteBudget:
    def test_owner_can_delete(self, db, service, user, make_budget) -> None:
        budget = make_budget(user)
        service.delete_budget(budget.id, user.id)
        assert db.query(Budget).count() == 0

    def test_other_user_cannot_delete(self, db, service, user, other_user, make_budget) -> None:
        budget = make_budget(other_user, amount="250")

        with pytest.raises(UnauthorizedError, match="delete"):
            service.delete_budget(budget.id, user.id)

        db.expire_all()
        row = db.get(Budget, budget.id)
        assert row is not None
        assert row.amount == Decimal("250")

    def test_unknown_budget(self, service, user) -> None:
        with pytest.raises(NotFoundError):
            service.delete_budget(12345, user.id)

    def test_history_survives_delete(self, service, user, make_budget, clock) -> None:
        budget = make_budget(user, start=date(2024, 1, 1))
        clock.day = date(2024, 2, 1)
        service.list_budgets(user.id)

        service.delete_budget(budget.id, user.id)

        [entry] = service.get_history(user.id)
        assert entry.category == "Food"


# ---------------------------------------------------------------------------
# list / history / status
# ---------------------------------------------------------------------------


class TestListBudgets:
    def test_listing_rolls_over_elapsed_budgets(self, db, service, user, make_budget, add_expense, clock) -> None:
        make_budget(user, category="Food", amount="500", start=date(2024, 1, 1))
        make_budget(user, category="Rent", amount="1200", start=date(2024, 1, 20))
        add_expense(user, 300, date(2024, 1, 10))
        clock.day = date(2024, 2, 1)

        budgets = service.list_budgets(user.id)

        by_category = {b.category: b for b in budgets}
        assert by_category["Food"].current_period_start == date(2024, 2, 1)
        assert by_category["Food"].next_reset_date == date(2024, 3, 1)
        assert by_category["Rent"].current_period_start == date(2024, 1, 20)
        [entry] = db.query(BudgetHistory).all()
        assert entry.spent_amount == Decimal("300")

    def test_only_own_budgets_are_listed(self, service, user, other_user, make_budget) -> None:
        make_budget(user, category="Food")
        make_budget(other_user, category="Travel")
        assert [b.category for b in service.list_budgets(user.id)] == ["Food"]

    def test_listing_twice_archives_once(self, db, service, user, make_budget, clock) -> None:
        make_budget(user, start=date(2024, 1, 1))
        clock.day = date(2024, 2, 1)

        service.list_budgets(user.id)
        service.list_budgets(user.id)

        assert db.query(BudgetHistory).count() == 1


class TestHistory:
    @pytest.fixture
    def archived(self, service, user, make_budget, clock):
        make_budget(user, category="Food", start=date(2024, 1, 1))
        make_budget(user, category="Rent", start=date(2024, 1, 1))
        clock.day = date(2024, 2, 1)
        service.list_budgets(user.id)
        clock.day = date(2024, 3, 1)
        service.list_budgets(user.id)
        return service

    def test_newest_period_first(self, archived, user) -> None:
        starts = [h.period_start for h in archived.get_history(user.id)]
        assert starts == sorted(starts, reverse=True)
        assert len(starts) == 4

    def test_filter_by_category(self, archived, user) -> None:
        history = archived.get_history(user.id, category="Rent")
        assert [h.period_start for h in history] == [date(2024, 2, 1), date(2024, 1, 1)]
        assert all(h.category == "Rent" for h in history)

    def test_filter_by_period_start_range(self, archived, user) -> None:
        history = archived.get_history(user.id, start=date(2024, 2, 1))
        assert {h.period_start for h in history} == {date(2024, 2, 1)}

    def test_other_users_history_is_hidden(self, archived, other_user) -> None:
        assert archived.get_history(other_user.id) == []

    def test_every_period_end_precedes_the_next_start(self, archived, user) -> None:
        for entry in archived.get_history(user.id):
            assert entry.period_end < archived.clock()
            assert entry.period_end >= entry.period_start


class TestBudgetStatus:
    def test_reports_current_period_spend(self, service, user, make_budget, add_expense, clock) -> None:
        make_budget(user, category="Food", amount="400", start=date(2024, 1, 1))
        add_expense(user, 100, date(2024, 1, 3))
        add_expense(user, 50, date(2024, 1, 9))
        clock.day = date(2024, 1, 10)

        [status] = service.get_budget_status(user.id)

        assert status["category"] == "Food"
        assert status["spent_amount"] == Decimal("150")
        assert status["remaining"] == Decimal("250")
        assert status["percentage_used"] == pytest.approx(37.5)

    def test_zero_limit_does_not_divide(self, service, user, make_budget) -> None:
        make_budget(user, amount="0")
        [status] = service.get_budget_status(user.id)
        assert status["percentage_used"] == 0.0

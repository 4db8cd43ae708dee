import logging
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from auth import get_current_user
from clock import Clock, get_clock
from database import get_db
from errors import BudgetServiceError
from services.budget_service import BudgetService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/budgets", tags=["Budgets"])


class BudgetCreate(BaseModel):
    category: str = Field(..., min_length=1, max_length=50)
    amount: Decimal = Field(..., ge=0)
    # Lenient: unknown or malformed values are defaulted by the service
    period_type: Optional[Any] = None
    auto_reset: Optional[Any] = None


class BudgetUpdate(BaseModel):
    amount: Optional[Decimal] = Field(None, ge=0)
    period_type: Optional[Any] = None
    auto_reset: Optional[Any] = None


class BudgetOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    category: str
    amount: float
    period_type: Optional[str] = None
    current_period_start: Optional[date] = None
    next_reset_date: Optional[date] = None
    auto_reset: Optional[bool] = None


class BudgetHistoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    budget_id: Optional[int] = None
    category: str
    budget_amount: float
    spent_amount: float
    period_start: date
    period_end: date
    period_type: str


class BudgetStatusOut(BaseModel):
    budget_id: int
    category: str
    period_type: str
    period_start: date
    next_reset_date: date
    budget_amount: float
    spent_amount: float
    remaining: float
    percentage_used: float


def get_budget_service(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)) -> BudgetService:
    return BudgetService(db, clock=clock)


def _http_error(e: BudgetServiceError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=str(e))


def _server_error(e: Exception) -> HTTPException:
    logger.exception(f"Unhandled error: {e}")
    return HTTPException(status_code=500, detail=str(e))


@router.post("")
def create_budget(body: BudgetCreate, user_id: int = Depends(get_current_user),
                  service: BudgetService = Depends(get_budget_service)):
    try:
        budget = service.create_budget(body.model_dump(exclude_unset=True), user_id)
        return {"status": "success", "data": BudgetOut.model_validate(budget)}
    except BudgetServiceError as e:
        raise _http_error(e)
    except Exception as e:
        raise _server_error(e)


@router.get("", response_model=list[BudgetOut])
def list_budgets(user_id: int = Depends(get_current_user),
                 service: BudgetService = Depends(get_budget_service)):
    try:
        return service.list_budgets(user_id)
    except Exception as e:
        raise _server_error(e)


@router.get("/status", response_model=list[BudgetStatusOut])
def budget_status(user_id: int = Depends(get_current_user),
                  service: BudgetService = Depends(get_budget_service)):
    try:
        return service.get_budget_status(user_id)
    except Exception as e:
        raise _server_error(e)


@router.get("/history", response_model=list[BudgetHistoryOut])
def budget_history(start: Optional[date] = None, end: Optional[date] = None,
                   user_id: int = Depends(get_current_user),
                   service: BudgetService = Depends(get_budget_service)):
    try:
        return service.get_history(user_id, start=start, end=end)
    except Exception as e:
        raise _server_error(e)


@router.get("/history/{category}", response_model=list[BudgetHistoryOut])
def budget_history_by_category(category: str, user_id: int = Depends(get_current_user),
                               service: BudgetService = Depends(get_budget_service)):
    try:
        return service.get_history(user_id, category=category)
    except Exception as e:
        raise _server_error(e)


@router.put("/{budget_id}")
def update_budget(budget_id: int, body: BudgetUpdate, user_id: int = Depends(get_current_user),
                  service: BudgetService = Depends(get_budget_service)):
    try:
        budget = service.update_budget(budget_id, body.model_dump(exclude_unset=True), user_id)
        return {"status": "success", "data": BudgetOut.model_validate(budget)}
    except BudgetServiceError as e:
        raise _http_error(e)
    except Exception as e:
        raise _server_error(e)


@router.delete("/{budget_id}")
def delete_budget(budget_id: int, user_id: int = Depends(get_current_user),
                  service: BudgetService = Depends(get_budget_service)):
    try:
        service.delete_budget(budget_id, user_id)
        return {"status": "success"}
    except BudgetServiceError as e:
        raise _http_error(e)
    except Exception as e:
        raise _server_error(e)

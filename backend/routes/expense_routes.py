import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from auth import get_current_user
from clock import Clock, get_clock
from database import get_db
from errors import BudgetServiceError
from services.expense_service import ExpenseService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/expenses", tags=["Expenses"])


class ExpenseCreate(BaseModel):
    amount: Decimal = Field(..., ge=0)
    description: Optional[str] = None
    category: Optional[str] = None
    date: Optional[str] = None  # YYYY-MM-DD; anything else falls back to today


class ExpenseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    description: str
    amount: float
    date: date
    category: Optional[str] = None


def get_expense_service(db: Session = Depends(get_db), clock: Clock = Depends(get_clock)) -> ExpenseService:
    return ExpenseService(db, clock=clock)


def _server_error(e: Exception) -> HTTPException:
    logger.exception(f"Unhandled error: {e}")
    return HTTPException(status_code=500, detail=str(e))


@router.post("")
def create_expense(body: ExpenseCreate, user_id: int = Depends(get_current_user),
                   service: ExpenseService = Depends(get_expense_service)):
    try:
        expense = service.create_expense(body.model_dump(exclude_unset=True), user_id)
        return {"status": "success", "data": ExpenseOut.model_validate(expense)}
    except Exception as e:
        raise _server_error(e)


@router.get("", response_model=list[ExpenseOut])
def list_expenses(period: Optional[str] = None, start_date: Optional[date] = None,
                  end_date: Optional[date] = None, user_id: int = Depends(get_current_user),
                  service: ExpenseService = Depends(get_expense_service)):
    try:
        return service.list_expenses(user_id, period=period, start=start_date, end=end_date)
    except Exception as e:
        raise _server_error(e)


@router.get("/categories/{category}", response_model=list[ExpenseOut])
def expenses_by_category(category: str, user_id: int = Depends(get_current_user),
                         service: ExpenseService = Depends(get_expense_service)):
    try:
        return service.list_by_category(user_id, category)
    except Exception as e:
        raise _server_error(e)


@router.delete("/{expense_id}")
def delete_expense(expense_id: int, user_id: int = Depends(get_current_user),
                   service: ExpenseService = Depends(get_expense_service)):
    try:
        service.delete_expense(expense_id, user_id)
        return {"status": "success"}
    except BudgetServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    except Exception as e:
        raise _server_error(e)

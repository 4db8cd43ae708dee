# ---------- routes/auth_routes.py ----------
"""
Auth routes — register and log in against the local users table.
Both return a bearer token for the budget and expense endpoints.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from auth import hash_password, verify_password, create_token
from database import get_db
from models.user import User

router = APIRouter(prefix="/api/v1/auth", tags=["Auth"])
logger = logging.getLogger(__name__)


# ── Pydantic schemas ──────────────────────────────────────────────
class AuthRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=1)


def _token_response(user: User) -> dict:
    token = create_token({"user_id": user.id, "username": user.username})
    return {"status": "success", "data": {"token": token, "username": user.username}}


# ── Routes ────────────────────────────────────────────────────────
@router.post("/register")
def register(body: AuthRequest, db: Session = Depends(get_db)):
    """Create an account and log it straight in."""
    if db.query(User).filter_by(username=body.username).first():
        raise HTTPException(status_code=400, detail="Username already exists")

    user = User(username=body.username, hashed_password=hash_password(body.password))
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=400, detail="Username already exists")
    db.refresh(user)
    logger.info(f"Registered user {user.id} ({user.username})")
    return _token_response(user)


@router.post("/login")
def login(body: AuthRequest, db: Session = Depends(get_db)):
    """Authenticate with username + password."""
    user = db.query(User).filter_by(username=body.username).first()
    if not user or not verify_password(body.password, user.hashed_password):
        logger.info(f"Failed login for {body.username!r}")
        raise HTTPException(status_code=401, detail="Invalid username or password")
    return _token_response(user)

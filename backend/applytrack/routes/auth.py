# applytrack/routes/auth.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from applytrack.core.config import settings
from applytrack.core.database import get_db
from applytrack.core.rate_limit import limiter
from applytrack.core.security import create_access_token, verify_password
from applytrack.dependencies.auth import get_current_user
from applytrack.models.user import User
from applytrack.schemas.auth import LoginIn, RegisterIn, TokenOut, UserOut
from applytrack.services.users import create_user, get_user_by_email

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    name = payload.name.strip()
    if not name:
        raise HTTPException(status_code=400, detail="Name is required")

    try:
        return create_user(db, email=payload.email, name=name, password=payload.password)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/login", response_model=TokenOut)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
def login(request: Request, payload: LoginIn, db: Session = Depends(get_db)):  # noqa: ARG001
    user = get_user_by_email(db, payload.email)
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    return {"access_token": create_access_token(subject=user.email), "token_type": "bearer"}


@router.get("/me", response_model=UserOut)
def get_me(user: User = Depends(get_current_user)) -> User:
    return user

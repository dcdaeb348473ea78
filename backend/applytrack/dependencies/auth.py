# applytrack/dependencies/auth.py
from __future__ import annotations

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from applytrack.core.database import get_db
from applytrack.core.security import verify_token_purpose
from applytrack.models.user import User
from applytrack.services.users import get_user_by_email

bearer_scheme = HTTPBearer(auto_error=False)


class InvalidCredentials(Exception):
    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


def _unauthorized(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def user_from_access_token(db: Session, token: str) -> User:
    """
    Shared by HTTP and WebSocket auth. Raises InvalidCredentials.
    """
    try:
        payload = verify_token_purpose(token, expected_purpose="access")
    except ValueError:
        raise InvalidCredentials("Invalid or expired token")

    email = str(payload.get("sub") or "").strip().lower()
    if not email:
        raise InvalidCredentials("Invalid or expired token")

    user = get_user_by_email(db, email)
    if not user:
        raise InvalidCredentials("User not found")
    if not getattr(user, "is_active", True):
        raise InvalidCredentials("User is inactive")
    return user


def get_current_user(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Validates:
      - Authorization: Bearer <token>
      - token signature + exp
      - user exists + is_active
    Returns:
      - User SQLAlchemy model
    """
    if not creds or creds.scheme.lower() != "bearer":
        raise _unauthorized("Missing Authorization header")

    try:
        return user_from_access_token(db, creds.credentials)
    except InvalidCredentials as e:
        raise _unauthorized(e.detail)

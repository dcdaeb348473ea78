# applytrack/services/users.py
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from applytrack.core.security import hash_password
from applytrack.models.user import User

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    """Look up a user by email address."""
    return db.query(User).filter(User.email == normalize_email(email)).first()


def create_user(db: Session, *, email: str, name: str, password: str) -> User:
    """
    Create an active, non-admin account.

    Raises:
        ValueError: if the email is already registered
    """
    normalized_email = normalize_email(email)
    if get_user_by_email(db, normalized_email):
        raise ValueError("Email already registered")

    user = User(
        email=normalized_email,
        name=name.strip()[:100],
        password_hash=hash_password(password),
        is_active=True,
        is_admin=False,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Registered user: id=%s email=%s", user.id, normalized_email)
    return user

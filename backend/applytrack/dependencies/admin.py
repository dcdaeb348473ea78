from __future__ import annotations

from fastapi import Depends, HTTPException, status

from applytrack.dependencies.auth import get_current_user
from applytrack.models.user import User


def require_admin_user(current_user: User = Depends(get_current_user)) -> User:
    """
    Ensure the authenticated user has admin privileges.
    """
    if not getattr(current_user, "is_admin", False):
        raise HTTPException(status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return current_user

"""
Identity handling for the storefront API.

Authentication happens upstream: the gateway verifies credentials and forwards
the user's identity in trusted headers. This module only reads them.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, status


@dataclass(frozen=True)
class CurrentUser:
    id: int
    email: Optional[str] = None
    role: str = "customer"

    @property
    def is_admin(self) -> bool:
        return self.role.lower() == "admin"


def get_current_user(
    x_user_id: Optional[str] = Header(None),
    x_user_email: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> CurrentUser:
    """
    Build the caller's identity from gateway headers.
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authenticated user",
        )
    try:
        user_id = int(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Malformed user identifier",
        )
    return CurrentUser(id=user_id, email=x_user_email, role=x_user_role or "customer")


def get_admin_user(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user


def require_admin():
    """
    Dependency to require the admin role
    Usage: APIRouter(dependencies=[require_admin()])
    """
    return Depends(get_admin_user)

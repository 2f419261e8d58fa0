"""
FastAPI dependencies for the application.
"""

from uuid import UUID

from fastapi import Header, HTTPException, status

from workbench.core.permissions import Actor
from workbench.db.session import get_db

__all__ = ["get_db", "get_current_actor"]


async def get_current_actor(
    x_user_id: str = Header(None),
    x_user_role: str = Header(None),
) -> Actor:
    """
    Resolve the calling identity from the gateway headers.

    The identity provider sits in front of the API and forwards the
    authenticated user as X-User-Id / X-User-Role.

    Raises 401 if X-User-Id is missing or not a UUID.
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id header is required",
        )
    try:
        user_id = UUID(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id header must be a UUID",
        )
    return Actor(user_id=user_id, role=(x_user_role or "").strip().lower())

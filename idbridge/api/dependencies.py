"""FastAPI dependency providers."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from idbridge.core.auth import decode_access_token
from idbridge.core.config import get_settings
from idbridge.core.database import get_session_factory
from idbridge.identity.postgres import PostgresUserDirectory
from idbridge.identity.reconciler import IdentityReconciler, reconciler_for_session
from idbridge.models.user import User

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")

ADMIN_ROLES = frozenset({"owner", "admin"})


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session for the duration of a request."""
    factory = get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_reconciler(db: AsyncSession = Depends(get_db)) -> IdentityReconciler:
    """Reconciler bound to the request's session and current settings."""
    return reconciler_for_session(db)


def get_user_directory() -> PostgresUserDirectory | None:
    """External Postgres directory, or None when Postgres auth is disabled."""
    return PostgresUserDirectory.from_settings(get_settings())


async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    db: AsyncSession = Depends(get_db),
):
    """Decode the JWT and return the matching User row."""
    payload = decode_access_token(token)
    user_id_str = payload.get("sub")
    try:
        user_id = uuid.UUID(user_id_str)
    except (TypeError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


async def get_current_active_user(
    current_user=Depends(get_current_user),
):
    """Raise 403 if the account is disabled."""
    if not current_user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account disabled")
    return current_user


async def require_admin(
    current_user=Depends(get_current_active_user),
):
    """Raise 403 unless the user holds an administrative role."""
    if current_user.role.slug not in ADMIN_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required"
        )
    return current_user

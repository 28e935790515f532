"""Auth router — login, current user, logout."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from idbridge.api.dependencies import (
    get_current_active_user,
    get_db,
    get_reconciler,
    get_user_directory,
)
from idbridge.core.auth import create_access_token, verify_password
from idbridge.core.errors import IdentityError
from idbridge.core.limiter import limiter
from idbridge.core.logging import get_logger
from idbridge.identity.postgres import PostgresUserDirectory, handle_postgres_login
from idbridge.identity.reconciler import IdentityReconciler
from idbridge.models.user import User
from idbridge.schemas.user import TokenOut, UserOut

router = APIRouter(prefix="/auth", tags=["auth"])
logger = get_logger(__name__)

DbDep = Annotated[AsyncSession, Depends(get_db)]
ReconcilerDep = Annotated[IdentityReconciler, Depends(get_reconciler)]
DirectoryDep = Annotated[PostgresUserDirectory | None, Depends(get_user_directory)]


def _invalid_credentials() -> HTTPException:
    # Same response for every failure so callers cannot enumerate accounts
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def _local_login(db: AsyncSession, email: str, password: str) -> User | None:
    result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
    user = result.scalar_one_or_none()
    # Externally provisioned users have no hash and cannot log in locally
    if user is None or not verify_password(password, user.hashed_password):
        return None
    return user


@router.post("/login", response_model=TokenOut)
@limiter.limit("10/minute")
async def login(
    request: Request,
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    db: DbDep,
    reconciler: ReconcilerDep,
    directory: DirectoryDep,
) -> TokenOut:
    """Authenticate with email + password (external directory first, then local). Returns a JWT."""
    email = form_data.username.strip()
    user: User | None = None

    if directory is not None:
        try:
            user = await handle_postgres_login(
                email, form_data.password, directory=directory, reconciler=reconciler
            )
        except (IdentityError, SQLAlchemyError) as exc:
            logger.error("External login failed", provider="postgres", email=email, error=str(exc))
            raise _invalid_credentials()

    if user is None:
        user = await _local_login(db, email, form_data.password)

    if user is None:
        raise _invalid_credentials()
    if not user.is_active:
        logger.info("Login rejected for disabled account", email=user.email)
        raise _invalid_credentials()

    token = create_access_token(str(user.id), user.role.slug, user.auth_provider)
    return TokenOut(access_token=token, user=UserOut.model_validate(user))


@router.get("/me", response_model=UserOut)
async def get_me(
    current_user: Annotated[User, Depends(get_current_active_user)],
) -> User:
    """Return the authenticated user's profile."""
    return current_user


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout() -> None:
    """Logout is handled client-side (drop the token)."""

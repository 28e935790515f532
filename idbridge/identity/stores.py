"""User and role store collaborators of the reconciler.

Each write commits on its own: a user created by JIT provisioning stays
visible even if the later role update fails.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from idbridge.core.errors import DuplicateEmailError
from idbridge.core.logging import get_logger
from idbridge.models.role import Role
from idbridge.models.user import User

logger = get_logger(__name__)


class UserStore(Protocol):
    async def find_by_email(self, email: str) -> User | None: ...

    async def create(self, user: User) -> User:
        """Persist a new user; raise DuplicateEmailError if the email is taken."""
        ...

    async def save(self, user: User) -> User: ...


class RoleStore(Protocol):
    async def find_by_slug(self, slug: str) -> Role | None: ...


class SqlUserStore:
    """UserStore backed by the ``users`` table (unique index on email)."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_by_email(self, email: str) -> User | None:
        result = await self._session.execute(
            select(User).where(func.lower(User.email) == email.lower())
        )
        return result.scalar_one_or_none()

    async def create(self, user: User) -> User:
        user.email = user.email.lower()
        self._session.add(user)
        try:
            await self._session.commit()
        except IntegrityError as exc:
            await self._session.rollback()
            raise DuplicateEmailError(user.email) from exc
        await self._session.refresh(user)
        return user

    async def save(self, user: User) -> User:
        self._session.add(user)
        await self._session.commit()
        await self._session.refresh(user)
        return user


class SqlRoleStore:
    """RoleStore backed by the ``roles`` table."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_by_slug(self, slug: str) -> Role | None:
        result = await self._session.execute(select(Role).where(Role.slug == slug))
        return result.scalar_one_or_none()

    async def list_all(self) -> list[Role]:
        result = await self._session.execute(select(Role).order_by(Role.slug))
        return list(result.scalars().all())

    async def ensure(self, slugs: Iterable[str]) -> list[Role]:
        """Create any missing roles; return the ones that were created."""
        created: list[Role] = []
        for slug in slugs:
            if await self.find_by_slug(slug) is None:
                role = Role(slug=slug, display_name=slug.replace("_", " ").title())
                self._session.add(role)
                created.append(role)
        if created:
            await self._session.commit()
            logger.info("Roles created", roles=[r.slug for r in created])
        return created

"""External Postgres user directory login.

Users live in a table of another database (configurable table and
email/password column names, plus optional ``first_name``, ``last_name`` and
``roles`` columns). A successful password check turns the row into an
ExternalIdentityAssertion for the reconciler.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field

from pydantic import ValidationError
from sqlalchemy import column, func, select, table
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from idbridge.core.auth import verify_password
from idbridge.core.config import Settings
from idbridge.core.errors import ExternalDirectoryError
from idbridge.core.logging import get_logger
from idbridge.identity.providers import AuthProvider
from idbridge.identity.reconciler import IdentityReconciler
from idbridge.models.user import User
from idbridge.schemas.identity import ExternalIdentityAssertion

logger = get_logger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

_engines: dict[str, AsyncEngine] = {}


@dataclass
class DirectoryUser:
    id: str
    email: str
    password_hash: str | None
    first_name: str = ""
    last_name: str = ""
    roles: list[str] = field(default_factory=list)


def _check_identifier(value: str, what: str) -> str:
    if not _IDENTIFIER.match(value):
        raise ExternalDirectoryError(f"Invalid {what} name in Postgres auth configuration: {value!r}")
    return value


def _async_url(dsn: str) -> str:
    if dsn.startswith("postgresql://") or dsn.startswith("postgres://"):
        return "postgresql+asyncpg://" + dsn.split("://", 1)[1]
    return dsn


def _coerce_roles(value) -> list[str]:
    """Normalise the roles column: text[] arrives as a list, other drivers may give JSON text.

    A scalar (an integer role id, say) becomes a single role name.
    """
    if value is None:
        return []
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return []
        try:
            decoded = json.loads(value)
        except json.JSONDecodeError:
            return [part.strip() for part in value.split(",") if part.strip()]
        if decoded is None:
            return []
        value = decoded
    if not isinstance(value, (list, tuple, set, frozenset)):
        value = [value]
    return [str(item) for item in value if item is not None and str(item)]


class PostgresUserDirectory:
    def __init__(
        self,
        engine: AsyncEngine,
        *,
        table_name: str = "users",
        email_column: str = "email",
        password_column: str = "password_hash",
    ) -> None:
        schema, _, name = table_name.rpartition(".")
        self._engine = engine
        self._schema = _check_identifier(schema, "schema") if schema else None
        self._table = _check_identifier(name, "table")
        self._email_column = _check_identifier(email_column, "email column")
        self._password_column = _check_identifier(password_column, "password column")

    @classmethod
    def from_settings(cls, settings: Settings) -> "PostgresUserDirectory | None":
        """Build the directory from settings; None when the feature is off or incomplete."""
        if not settings.postgres_auth_enabled:
            return None
        if not settings.postgres_auth_dsn:
            logger.warning("Postgres auth enabled but DSN not configured")
            return None

        url = _async_url(settings.postgres_auth_dsn)
        engine = _engines.get(url)
        if engine is None:
            engine = create_async_engine(url, pool_size=5, pool_timeout=2, pool_recycle=30)
            _engines[url] = engine
        return cls(
            engine,
            table_name=settings.postgres_auth_table,
            email_column=settings.postgres_auth_email_column,
            password_column=settings.postgres_auth_password_column,
        )

    async def find_user(self, email: str) -> DirectoryUser | None:
        """Look the user up by case-insensitive email."""
        users = table(
            self._table,
            column("id"),
            column(self._email_column),
            column(self._password_column),
            column("first_name"),
            column("last_name"),
            column("roles"),
            schema=self._schema,
        )
        email_col = users.c[self._email_column]
        stmt = (
            select(
                users.c.id,
                email_col.label("email"),
                users.c[self._password_column].label("password_hash"),
                users.c.first_name,
                users.c.last_name,
                users.c.roles,
            )
            .where(func.lower(email_col) == email.lower())
            .limit(1)
        )
        try:
            async with self._engine.connect() as conn:
                row = (await conn.execute(stmt)).mappings().first()
        except SQLAlchemyError as exc:
            raise ExternalDirectoryError("Postgres directory query failed") from exc

        if row is None:
            return None
        try:
            return DirectoryUser(
                id=str(row["id"]),
                email=row["email"],
                password_hash=row["password_hash"],
                first_name=row["first_name"] or "",
                last_name=row["last_name"] or "",
                roles=_coerce_roles(row["roles"]),
            )
        except (TypeError, ValueError) as exc:
            raise ExternalDirectoryError("Unreadable Postgres directory row") from exc

    async def authenticate(self, email: str, password: str) -> ExternalIdentityAssertion | None:
        """Return an assertion for valid credentials, None otherwise."""
        directory_user = await self.find_user(email)
        if directory_user is None:
            return None
        if not verify_password(password, directory_user.password_hash):
            return None
        try:
            return ExternalIdentityAssertion(
                email=directory_user.email,
                first_name=directory_user.first_name or None,
                last_name=directory_user.last_name or None,
                external_user_id=directory_user.id,
                external_roles=tuple(directory_user.roles),
                auth_provider=AuthProvider.POSTGRES,
            )
        except ValidationError as exc:
            raise ExternalDirectoryError(
                f"Postgres directory row for user {directory_user.id!r} is not a valid identity"
            ) from exc


async def handle_postgres_login(
    email: str,
    password: str,
    *,
    directory: PostgresUserDirectory,
    reconciler: IdentityReconciler,
) -> User | None:
    """Authenticate against the directory and reconcile the local user.

    None means the credentials were rejected; errors propagate to the caller.
    """
    assertion = await directory.authenticate(email, password)
    if assertion is None:
        return None
    return await reconciler.reconcile(assertion)


async def close_directory_engines() -> None:
    for engine in _engines.values():
        await engine.dispose()
    _engines.clear()

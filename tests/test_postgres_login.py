"""Tests for the external Postgres user directory login flow.

The directory is exercised against an SQLite table with the same shape; the
roles column holds JSON text there instead of a text[] array.
"""

from __future__ import annotations

import json

import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine

from idbridge.api.dependencies import get_user_directory
from idbridge.core.auth import hash_password
from idbridge.core.config import Settings
from idbridge.core.errors import ExternalDirectoryError
from idbridge.identity.postgres import (
    PostgresUserDirectory,
    _async_url,
    _coerce_roles,
    handle_postgres_login,
)
from idbridge.identity.providers import AuthProvider
from idbridge.identity.reconciler import reconciler_for_session

PASSWORD = "s3cret-pass"
LONG_EMAIL = "x" * 250 + "@example.com"


@pytest_asyncio.fixture
async def directory_engine():
    eng = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with eng.begin() as conn:
        await conn.execute(text(
            "CREATE TABLE users ("
            " id TEXT PRIMARY KEY, email TEXT, password_hash TEXT,"
            " first_name TEXT, last_name TEXT, roles TEXT)"
        ))
        await conn.execute(
            text(
                "INSERT INTO users VALUES (:id, :email, :pw, :first, :last, :roles)"
            ),
            [
                {
                    "id": "u-1", "email": "Jane.Doe@Example.com", "pw": hash_password(PASSWORD),
                    "first": "Jane", "last": "Doe", "roles": json.dumps(["opsViewer", "opsAdmin"]),
                },
                {
                    "id": "u-2", "email": "bob@example.com", "pw": hash_password(PASSWORD),
                    "first": None, "last": None, "roles": None,
                },
                {
                    "id": "u-3", "email": "broken@example.com", "pw": "not-a-bcrypt-hash",
                    "first": None, "last": None, "roles": None,
                },
                {
                    "id": "u-4", "email": LONG_EMAIL, "pw": hash_password(PASSWORD),
                    "first": None, "last": None, "roles": None,
                },
            ],
        )
    yield eng
    await eng.dispose()


@pytest.fixture
def directory(directory_engine):
    return PostgresUserDirectory(directory_engine)


@pytest.mark.asyncio
async def test_find_user_is_case_insensitive(directory):
    found = await directory.find_user("JANE.DOE@example.COM")
    assert found is not None
    assert found.id == "u-1"
    assert found.email == "Jane.Doe@Example.com"
    assert found.roles == ["opsViewer", "opsAdmin"]


@pytest.mark.asyncio
async def test_find_user_defaults_missing_columns(directory):
    found = await directory.find_user("bob@example.com")
    assert (found.first_name, found.last_name, found.roles) == ("", "", [])


@pytest.mark.asyncio
async def test_authenticate_builds_assertion(directory):
    a = await directory.authenticate("jane.doe@example.com", PASSWORD)
    assert a is not None
    assert a.auth_provider is AuthProvider.POSTGRES
    assert a.normalized_email == "jane.doe@example.com"
    assert a.external_user_id == "u-1"
    assert a.external_roles == ("opsViewer", "opsAdmin")
    assert (a.first_name, a.last_name) == ("Jane", "Doe")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "email,password",
    [
        ("jane.doe@example.com", "wrong"),
        ("nobody@example.com", PASSWORD),
        ("broken@example.com", PASSWORD),
    ],
)
async def test_authenticate_rejects(directory, email, password):
    assert await directory.authenticate(email, password) is None


@pytest.mark.asyncio
async def test_scalar_roles_column_becomes_single_role(directory_engine):
    async with directory_engine.begin() as conn:
        await conn.execute(text(
            "CREATE TABLE staff (id INTEGER PRIMARY KEY, email TEXT, password_hash TEXT,"
            " first_name TEXT, last_name TEXT, roles INTEGER)"
        ))
        await conn.execute(
            text("INSERT INTO staff VALUES (1, 'ops@example.com', :pw, NULL, NULL, 7)"),
            {"pw": hash_password(PASSWORD)},
        )
    directory = PostgresUserDirectory(directory_engine, table_name="staff")

    a = await directory.authenticate("ops@example.com", PASSWORD)

    assert a.external_user_id == "1"
    assert a.external_roles == ("7",)


@pytest.mark.asyncio
async def test_invalid_directory_identity_is_wrapped(directory):
    with pytest.raises(ExternalDirectoryError):
        await directory.authenticate(LONG_EMAIL, PASSWORD)


@pytest.mark.asyncio
async def test_invalid_directory_identity_gives_generic_login_failure(app, login, roles, directory):
    app.dependency_overrides[get_user_directory] = lambda: directory

    r = await login(LONG_EMAIL, PASSWORD)

    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid credentials"


@pytest.mark.asyncio
async def test_query_failure_is_wrapped(directory_engine):
    directory = PostgresUserDirectory(directory_engine, table_name="missing_table")
    with pytest.raises(ExternalDirectoryError):
        await directory.find_user("jane.doe@example.com")


@pytest.mark.parametrize(
    "kwargs",
    [
        {"table_name": "users; DROP TABLE users"},
        {"email_column": "email--"},
        {"password_column": "pass word"},
        {"table_name": "bad-schema.users"},
    ],
)
def test_rejects_unsafe_identifiers(directory_engine, kwargs):
    with pytest.raises(ExternalDirectoryError):
        PostgresUserDirectory(directory_engine, **kwargs)


def test_from_settings_disabled_or_incomplete():
    assert PostgresUserDirectory.from_settings(Settings()) is None
    assert PostgresUserDirectory.from_settings(Settings(postgres_auth_enabled=True)) is None


def test_async_url():
    assert _async_url("postgresql://u:p@h/db") == "postgresql+asyncpg://u:p@h/db"
    assert _async_url("postgres://u:p@h/db") == "postgresql+asyncpg://u:p@h/db"
    assert _async_url("postgresql+asyncpg://u:p@h/db") == "postgresql+asyncpg://u:p@h/db"


@pytest.mark.parametrize(
    "raw,expected",
    [
        (None, []),
        (["a", "b"], ["a", "b"]),
        (("a",), ["a"]),
        ('["a", "b"]', ["a", "b"]),
        ("a, b", ["a", "b"]),
        ("", []),
        (7, ["7"]),
        ("7", ["7"]),
        ("null", []),
    ],
)
def test_coerce_roles(raw, expected):
    assert _coerce_roles(raw) == expected


@pytest.mark.asyncio
async def test_handle_postgres_login_provisions_and_maps(directory, db_session, roles):
    settings = Settings(postgres_auth_role_mapping='{"opsAdmin": "admin", "opsViewer": "viewer"}')
    rec = reconciler_for_session(db_session, settings)

    user = await handle_postgres_login(
        "Jane.Doe@example.com", PASSWORD, directory=directory, reconciler=rec
    )

    assert user is not None
    assert user.email == "jane.doe@example.com"
    assert user.role.slug == "viewer"
    assert user.auth_provider == "postgres"
    assert user.external_user_id == "u-1"


@pytest.mark.asyncio
async def test_handle_postgres_login_wrong_password(directory, db_session, roles):
    rec = reconciler_for_session(db_session, Settings())
    assert await handle_postgres_login(
        "jane.doe@example.com", "nope", directory=directory, reconciler=rec
    ) is None

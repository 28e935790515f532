"""Authentication helpers: password hashing and JWT management.

Login flow:
    1. POST /api/v1/auth/login (OAuth2 form)
       → external Postgres directory (when enabled) verifies the password and
         the identity is reconciled onto a local user,
       → otherwise the local bcrypt hash is checked (bootstrap admin, local
         accounts; externally provisioned users have no local hash)
    2. A local JWT is issued either way
    3. Every protected endpoint validates Authorization: Bearer <jwt>
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from fastapi import HTTPException, status

from idbridge.core.config import get_settings


# ── Password helpers ─────────────────────────────────────────────────────────

def hash_password(plain: str) -> str:
    return bcrypt.hashpw(plain.encode(), bcrypt.gensalt()).decode()


def verify_password(plain: str, hashed: str | None) -> bool:
    """Check *plain* against a bcrypt hash; malformed or missing hashes never match."""
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(plain.encode(), hashed.encode())
    except ValueError:
        return False


# ── JWT helpers ───────────────────────────────────────────────────────────────

def create_access_token(user_id: str, role: str, provider: str = "local") -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    expire = now + timedelta(minutes=settings.jwt_access_token_expire_minutes)
    payload = {
        "sub": user_id,
        "role": role,
        "provider": provider,   # "local" | "postgres" | "xsuaa" | "oidc"
        "iat": now,
        "exp": expire,
        "iss": "idbridge",
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict:
    settings = get_settings()
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp", "iss"]},
            issuer="idbridge",
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

"""User model — local accounts and externally provisioned identities."""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from idbridge.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from idbridge.models.role import Role


class User(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "users"

    # Always stored lower-cased; the unique index is the JIT race arbiter
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")

    # None for externally provisioned accounts (local password login disabled)
    hashed_password: Mapped[str | None] = mapped_column(Text, nullable=True)

    role_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("roles.id"), nullable=False, index=True
    )
    role: Mapped[Role] = relationship(lazy="joined")

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # "local" | "postgres" | "xsuaa" | "oidc"
    auth_provider: Mapped[str] = mapped_column(String(20), nullable=False, default="local")
    # Opaque user id asserted by the provider at provisioning time
    external_user_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        return f"<User {self.email!r} provider={self.auth_provider!r}>"


# Matches the migration: emails are unique regardless of case
Index("uq_users_email_lower", func.lower(User.email), unique=True)

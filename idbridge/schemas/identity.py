"""Schemas exchanged between login handlers and the identity reconciler."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from idbridge.identity.providers import AuthProvider


class ExternalIdentityAssertion(BaseModel):
    """An identity the external provider has already authenticated.

    Email, names and the external id are whitespace-stripped. Role names are
    kept exactly as asserted, since mapping keys match them verbatim.
    """

    model_config = ConfigDict(frozen=True)

    email: str = Field(..., min_length=1, max_length=255)
    first_name: str | None = None
    last_name: str | None = None
    external_user_id: str | None = None
    # Order matters: the first mapped entry decides the role
    external_roles: tuple[str, ...] = ()
    auth_provider: AuthProvider

    @field_validator("email", "first_name", "last_name", "external_user_id", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value

    @property
    def normalized_email(self) -> str:
        return self.email.lower()


class AttributePatch(BaseModel):
    """Partial attribute update for an existing local user."""

    model_config = ConfigDict(str_strip_whitespace=True)

    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    # Accepted for interface compatibility; roles only change through reconcile()
    roles: list[str] | None = None

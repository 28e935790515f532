"""Schemas for the Admin panel — role mapping inspection."""

from __future__ import annotations

from pydantic import BaseModel


class RoleMappingOut(BaseModel):
    provider: str
    config_key: str
    enabled: bool
    valid: bool
    # Entries whose local slug has no Role row are still listed
    entries: dict[str, str]
    unknown_roles: list[str] = []


class RoleMappingList(BaseModel):
    default_role: str
    jit_provisioning: bool
    items: list[RoleMappingOut]

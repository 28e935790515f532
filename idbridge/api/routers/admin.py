"""Admin router — role mapping inspection (admin only)."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from idbridge.api.dependencies import get_db, require_admin
from idbridge.core.config import get_settings
from idbridge.core.errors import MappingParseError
from idbridge.identity.mapping import load_role_mapping
from idbridge.identity.providers import (
    AuthProvider,
    SettingsRoleMappingSource,
    provider_enabled,
    role_mapping_key,
)
from idbridge.identity.stores import SqlRoleStore
from idbridge.schemas.admin import RoleMappingList, RoleMappingOut
from idbridge.schemas.user import RoleOut

router = APIRouter(prefix="/admin", tags=["admin"])

DbDep = Annotated[AsyncSession, Depends(get_db)]


@router.get("/roles", response_model=list[RoleOut], dependencies=[Depends(require_admin)])
async def list_roles(db: DbDep) -> list[RoleOut]:
    roles = await SqlRoleStore(db).list_all()
    return [RoleOut.model_validate(r) for r in roles]


@router.get("/role-mappings", response_model=RoleMappingList,
            dependencies=[Depends(require_admin)])
async def get_role_mappings(db: DbDep) -> RoleMappingList:
    """Show each provider's role mapping as the next login would parse it."""
    settings = get_settings()
    mappings = SettingsRoleMappingSource()
    known = {r.slug for r in await SqlRoleStore(db).list_all()}

    items: list[RoleMappingOut] = []
    for provider in AuthProvider:
        key = role_mapping_key(provider)
        try:
            entries = load_role_mapping(mappings.role_mapping_text(provider))
            valid = True
        except MappingParseError:
            entries, valid = {}, False
        items.append(
            RoleMappingOut(
                provider=provider.value,
                config_key=key,
                enabled=provider_enabled(settings, provider),
                valid=valid,
                entries=entries,
                unknown_roles=sorted({slug for slug in entries.values() if slug not in known}),
            )
        )

    return RoleMappingList(
        default_role=settings.default_role_slug,
        jit_provisioning=settings.jit_provisioning,
        items=items,
    )

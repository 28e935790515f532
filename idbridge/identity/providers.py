"""External authentication providers and where their role mappings live."""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Protocol

from idbridge.core.config import RoleMappingSettings, Settings


class AuthProvider(str, Enum):
    POSTGRES = "postgres"
    XSUAA = "xsuaa"
    OIDC = "oidc"


# Settings field holding each provider's role mapping JSON
_ROLE_MAPPING_KEYS: dict[AuthProvider, str] = {
    AuthProvider.POSTGRES: "postgres_auth_role_mapping",
    AuthProvider.XSUAA: "xsuaa_scope_role_mapping",
    AuthProvider.OIDC: "oidc_role_mapping",
}

_ENABLED_KEYS: dict[AuthProvider, str] = {
    AuthProvider.POSTGRES: "postgres_auth_enabled",
    AuthProvider.XSUAA: "xsuaa_enabled",
    AuthProvider.OIDC: "oidc_enabled",
}


def role_mapping_key(provider: AuthProvider) -> str:
    return _ROLE_MAPPING_KEYS[provider]


def provider_enabled(settings: Settings, provider: AuthProvider) -> bool:
    return bool(getattr(settings, _ENABLED_KEYS[provider]))


class RoleMappingSource(Protocol):
    """Supplies the raw (unparsed) role mapping text configured for a provider."""

    def role_mapping_text(self, provider: AuthProvider) -> str | None: ...


class SettingsRoleMappingSource:
    """Reads role mappings from configuration on every call.

    The default factory builds uncached ``RoleMappingSettings``, so a changed
    environment or ``.env`` file is what the next login applies. Pass a
    factory returning a fixed ``Settings`` to pin the mapping instead.
    """

    def __init__(
        self, settings_factory: Callable[[], RoleMappingSettings] = RoleMappingSettings
    ) -> None:
        self._settings_factory = settings_factory

    def role_mapping_text(self, provider: AuthProvider) -> str | None:
        return getattr(self._settings_factory(), role_mapping_key(provider))

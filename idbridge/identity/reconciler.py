"""Identity reconciler: maps external identities onto local users.

A login handler authenticates the principal with its provider, builds an
ExternalIdentityAssertion and calls ``reconcile()``:

    1. look up the local user by lower-cased email
    2. unseen email → create it with the default role (JIT provisioning)
       seen email   → refresh first/last name from non-empty assertion values
    3. if the provider has a role mapping and the assertion carries external
       roles, apply the resolved role in a second, separate write

Step 3 failing or being unconfigured never undoes step 2.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from idbridge.core.config import Settings, get_settings
from idbridge.core.errors import ConfigurationError, DuplicateEmailError, ProvisioningDisabledError
from idbridge.core.logging import get_logger
from idbridge.identity.mapping import parse_role_mapping
from idbridge.identity.providers import RoleMappingSource, SettingsRoleMappingSource, role_mapping_key
from idbridge.identity.resolver import resolve_role
from idbridge.identity.stores import RoleStore, SqlRoleStore, SqlUserStore, UserStore
from idbridge.models.user import User
from idbridge.schemas.identity import AttributePatch, ExternalIdentityAssertion

logger = get_logger(__name__)


class IdentityReconciler:
    def __init__(
        self,
        users: UserStore,
        roles: RoleStore,
        mappings: RoleMappingSource,
        *,
        default_role_slug: str = "member",
        jit_provisioning: bool = True,
    ) -> None:
        self._users = users
        self._roles = roles
        self._mappings = mappings
        self._default_role_slug = default_role_slug
        self._jit_provisioning = jit_provisioning

    async def reconcile(self, assertion: ExternalIdentityAssertion) -> User:
        """Find or create the local user for *assertion* and bring it up to date.

        Raises ConfigurationError when a new user must be created but the
        default role does not exist; nothing is written in that case.
        """
        email = assertion.normalized_email
        user = await self._users.find_by_email(email)

        if user is None:
            user = await self._provision(assertion)
        else:
            user = await self._refresh_names(user, assertion.first_name, assertion.last_name)

        return await self._apply_mapped_role(user, assertion)

    async def sync_attributes(self, user: User, patch: AttributePatch) -> User:
        """Apply name changes from *patch*; email and roles are never changed here."""
        if patch.first_name:
            user.first_name = patch.first_name
        if patch.last_name:
            user.last_name = patch.last_name

        # Identity stays keyed by the original email; renaming pending product review
        if patch.email and patch.email.lower() != user.email.lower():
            logger.warning(
                "Email change detected but not updating",
                user_id=str(user.id),
                old_email=user.email,
                new_email=patch.email,
            )

        return await self._users.save(user)

    # ── Internals ────────────────────────────────────────────────────────────

    async def _provision(self, assertion: ExternalIdentityAssertion) -> User:
        email = assertion.normalized_email
        provider = assertion.auth_provider.value

        if not self._jit_provisioning:
            logger.warning("JIT provisioning disabled, login rejected", email=email, auth_provider=provider)
            raise ProvisioningDisabledError(email)

        default_role = await self._roles.find_by_slug(self._default_role_slug)
        if default_role is None:
            logger.error("Default role not found", role=self._default_role_slug, email=email)
            raise ConfigurationError(f"Default role {self._default_role_slug!r} not found")

        candidate = User(
            email=email,
            first_name=assertion.first_name or "",
            last_name=assertion.last_name or "",
            hashed_password=None,
            role=default_role,
            is_active=True,
            auth_provider=provider,
            external_user_id=assertion.external_user_id,
        )
        try:
            user = await self._users.create(candidate)
        except DuplicateEmailError:
            # A concurrent first login for the same email committed first
            existing = await self._users.find_by_email(email)
            if existing is None:
                raise
            logger.info("Lost JIT provisioning race, using existing user", email=email)
            return await self._refresh_names(existing, assertion.first_name, assertion.last_name)

        logger.info(
            "Created new user via JIT provisioning",
            user_id=str(user.id),
            email=email,
            auth_provider=provider,
        )
        return user

    async def _refresh_names(self, user: User, first_name: str | None, last_name: str | None) -> User:
        # Blank values from the provider never erase what we already have
        if first_name:
            user.first_name = first_name
        if last_name:
            user.last_name = last_name
        return await self._users.save(user)

    async def _apply_mapped_role(self, user: User, assertion: ExternalIdentityAssertion) -> User:
        if not assertion.external_roles:
            return user

        provider = assertion.auth_provider
        mapping = parse_role_mapping(
            self._mappings.role_mapping_text(provider),
            provider=provider.value,
            config_key=role_mapping_key(provider),
        )
        if not mapping:
            return user

        slug = resolve_role(assertion.external_roles, mapping)
        if slug is None:
            logger.info(
                "No role mapping entry matched",
                email=user.email,
                auth_provider=provider.value,
                external_roles=list(assertion.external_roles),
            )
            return user

        role = await self._roles.find_by_slug(slug)
        if role is None:
            logger.warning(
                "Mapped role not found, keeping current role",
                email=user.email,
                auth_provider=provider.value,
                role=slug,
            )
            return user

        if user.role is not None and user.role.slug == role.slug:
            return user

        user.role = role
        return await self._users.save(user)


def reconciler_for_session(session: AsyncSession, settings: Settings | None = None) -> IdentityReconciler:
    """Wire an IdentityReconciler to the SQL stores of *session*.

    Without explicit *settings* the role mappings are re-read from the
    environment on each login; with them, the mappings stay pinned.
    """
    if settings is None:
        settings = get_settings()
        mappings = SettingsRoleMappingSource()
    else:
        mappings = SettingsRoleMappingSource(lambda: settings)
    return IdentityReconciler(
        SqlUserStore(session),
        SqlRoleStore(session),
        mappings,
        default_role_slug=settings.default_role_slug,
        jit_provisioning=settings.jit_provisioning,
    )

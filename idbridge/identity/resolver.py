"""Resolve a local role slug from the external roles asserted for a user.

The policy is first-match-wins over the *assertion's* order: if a user holds
``["opsViewer", "opsAdmin"]`` and both are mapped, the role mapped from
``opsViewer`` is chosen. Privilege level plays no part, and the mapping's own
key order is irrelevant. Providers that want a particular role to win must
list it first.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping


def resolve_role(external_roles: Iterable[str], mapping: Mapping[str, str]) -> str | None:
    """Return the slug mapped from the earliest matching external role, or None."""
    for external_role in external_roles:
        slug = mapping.get(external_role)
        if slug:
            return slug
    return None

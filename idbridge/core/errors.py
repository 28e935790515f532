"""Exceptions raised by the identity reconciliation core.

Only ConfigurationError, ProvisioningDisabledError and ExternalDirectoryError
leave the core; the API layer turns all of them into a generic login failure.
"""

from __future__ import annotations


class IdentityError(Exception):
    """Base class for identity reconciliation errors."""


class ConfigurationError(IdentityError):
    """Required local configuration is missing (e.g. the default role)."""


class ProvisioningDisabledError(IdentityError):
    """An unseen identity logged in while JIT provisioning is switched off."""

    def __init__(self, email: str) -> None:
        super().__init__(f"JIT provisioning disabled, no local user for {email!r}")
        self.email = email


class MappingParseError(IdentityError):
    """A role mapping configuration string is not a JSON object of strings."""


class DuplicateEmailError(IdentityError):
    """The user store already holds a user with this (lower-cased) email."""

    def __init__(self, email: str) -> None:
        super().__init__(f"A user with email {email!r} already exists")
        self.email = email


class ExternalDirectoryError(IdentityError):
    """The external user directory is misconfigured or could not be queried."""

"""Role mapping table parser.

Administrators configure, per provider, a JSON object translating external
role/scope names into local role slugs, e.g.::

    {"opsAdmin": "admin", "opsViewer": "member"}
"""

from __future__ import annotations

import json

from idbridge.core.errors import MappingParseError
from idbridge.core.logging import get_logger

logger = get_logger(__name__)


def load_role_mapping(text: str | None) -> dict[str, str]:
    """Strictly parse *text*; raise MappingParseError on anything but an object of strings.

    Empty or missing text means "no mapping configured" and yields ``{}``.
    """
    if text is None or not text.strip():
        return {}

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MappingParseError(
            f"invalid JSON: {exc.msg} (line {exc.lineno}, column {exc.colno})"
        ) from exc

    if not isinstance(data, dict):
        raise MappingParseError(f"expected a JSON object, got {type(data).__name__}")

    non_strings = sorted(key for key, value in data.items() if not isinstance(value, str))
    if non_strings:
        raise MappingParseError(
            "role slugs must be strings (offending keys: "
            + ", ".join(repr(key) for key in non_strings)
            + ")"
        )
    return data


def parse_role_mapping(
    text: str | None,
    *,
    provider: str | None = None,
    config_key: str | None = None,
) -> dict[str, str]:
    """Parse a role mapping, falling back to ``{}`` when the configuration is broken."""
    try:
        return load_role_mapping(text)
    except MappingParseError as exc:
        logger.warning(
            "Invalid role mapping configuration ignored",
            provider=provider,
            config_key=config_key,
            error=str(exc),
        )
        return {}

"""CLI commands for inspecting role mapping configuration."""

from __future__ import annotations

import click

from idbridge.cli.output import console, mapping_table
from idbridge.core.config import get_settings
from idbridge.core.errors import MappingParseError
from idbridge.identity.mapping import load_role_mapping
from idbridge.identity.providers import AuthProvider, provider_enabled, role_mapping_key


@click.group("mapping")
def mapping_cmd() -> None:
    """Inspect external-role → local-role mappings."""


@mapping_cmd.command("show")
@click.option(
    "--provider",
    "providers",
    type=click.Choice([p.value for p in AuthProvider]),
    multiple=True,
    help="Only show these providers (repeatable)",
)
def mapping_show(providers: tuple[str, ...]) -> None:
    """Parse and print each provider's role mapping. Exits 1 if any is invalid."""
    settings = get_settings()
    selected = [AuthProvider(p) for p in providers] or list(AuthProvider)

    failed = False
    for provider in selected:
        key = role_mapping_key(provider)
        state = "enabled" if provider_enabled(settings, provider) else "disabled"
        try:
            entries = load_role_mapping(getattr(settings, key))
        except MappingParseError as e:
            console.print(f"[red]{provider.value}[/red] ({state}): {key} is invalid: {e}")
            failed = True
            continue
        if not entries:
            console.print(f"[dim]{provider.value} ({state}): no role mapping configured[/dim]")
            continue
        console.print(mapping_table(f"{provider.value} ({state})", key, entries))

    if failed:
        raise SystemExit(1)

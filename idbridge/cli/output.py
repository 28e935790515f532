"""Rich output helpers: tables for roles, role mappings and users."""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.table import Table
from rich.text import Text

console = Console()


def roles_table(roles: list[Any], default_role: str) -> Table:
    table = Table(
        title=f"Roles ({len(roles)})",
        show_header=True,
        header_style="bold cyan",
        border_style="dim",
    )
    table.add_column("Slug", style="bold", no_wrap=True)
    table.add_column("Name")
    table.add_column("Default", justify="center")

    for r in roles:
        default = Text("✓", style="green") if r.slug == default_role else Text("")
        table.add_row(r.slug, r.display_name or "—", default)
    return table


def mapping_table(provider: str, config_key: str, entries: dict[str, str]) -> Table:
    table = Table(
        title=f"{provider} ({config_key})",
        show_header=True,
        header_style="bold cyan",
        border_style="dim",
    )
    # Row order is irrelevant to resolution; the assertion's role order decides
    table.add_column("External role", style="bold", no_wrap=True)
    table.add_column("Local role")

    for external_role, slug in sorted(entries.items()):
        table.add_row(external_role, slug or "—")
    return table


def user_detail(u: dict[str, Any]) -> None:
    """Print the user returned by a login."""
    console.rule(f"[bold cyan]User — {u.get('email')}")
    role = u.get("role") or {}
    fields = [
        ("ID", u.get("id")),
        ("Email", u.get("email")),
        ("Name", " ".join(p for p in (u.get("first_name"), u.get("last_name")) if p) or "—"),
        ("Role", role.get("slug")),
        ("Provider", u.get("auth_provider")),
        ("Active", "yes" if u.get("is_active") else "no"),
    ]
    for label, value in fields:
        console.print(f"  [dim]{label:<10}[/dim] {value}")

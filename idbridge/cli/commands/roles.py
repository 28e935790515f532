"""CLI commands for the local role store."""

from __future__ import annotations

import asyncio

import click

from idbridge.cli.output import console, roles_table
from idbridge.core.config import get_settings
from idbridge.core.database import close_engine, get_session_factory
from idbridge.identity.stores import SqlRoleStore


@click.group("roles")
def roles_cmd() -> None:
    """Manage local roles."""


async def _seed(slugs: list[str]) -> list[str]:
    try:
        async with get_session_factory()() as session:
            created = await SqlRoleStore(session).ensure(slugs)
            return [r.slug for r in created]
    finally:
        await close_engine()


async def _list():
    try:
        async with get_session_factory()() as session:
            return await SqlRoleStore(session).list_all()
    finally:
        await close_engine()


@roles_cmd.command("seed")
@click.argument("slugs", nargs=-1)
def roles_seed(slugs: tuple[str, ...]) -> None:
    """Create missing roles (defaults to SEED_ROLES plus the default role)."""
    settings = get_settings()
    wanted = list(slugs) or list(dict.fromkeys([*settings.seed_roles, settings.default_role_slug]))
    created = asyncio.run(_seed(wanted))
    if created:
        console.print(f"[green]Created:[/green] {', '.join(created)}")
    else:
        console.print("[dim]All roles already exist[/dim]")


@roles_cmd.command("list")
def roles_list() -> None:
    """List local roles."""
    roles = asyncio.run(_list())
    console.print(roles_table(roles, get_settings().default_role_slug))

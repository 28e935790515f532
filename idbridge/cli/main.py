"""idbridge CLI entry point — `idbridge` command group."""

from __future__ import annotations

import click

from idbridge.cli.commands.mapping import mapping_cmd
from idbridge.cli.commands.roles import roles_cmd
from idbridge.cli.output import console, user_detail


@click.group()
@click.version_option(package_name="idbridge")
@click.option(
    "--api-url",
    default="http://localhost:8000",
    envvar="IDBRIDGE_API_URL",
    show_default=True,
    help="Base URL of the idbridge API server",
)
@click.pass_context
def cli(ctx: click.Context, api_url: str) -> None:
    """idbridge — external identity reconciliation and JIT provisioning.

    \b
    Quick start:
      idbridge roles seed
      idbridge mapping show
      idbridge login jane.doe@example.com

    API docs: http://localhost:8000/docs
    """
    ctx.ensure_object(dict)
    ctx.obj["api_url"] = api_url.rstrip("/")


cli.add_command(roles_cmd)
cli.add_command(mapping_cmd)


@cli.command("login")
@click.argument("email")
@click.password_option(confirmation_prompt=False)
@click.pass_context
def login(ctx: click.Context, email: str, password: str) -> None:
    """Log in through the API and show the reconciled local user."""
    import httpx

    api_url: str = ctx.obj["api_url"]
    try:
        r = httpx.post(
            f"{api_url}/api/v1/auth/login",
            data={"username": email, "password": password},
            timeout=10,
        )
    except httpx.ConnectError:
        console.print(
            f"[red]Cannot connect to API at {api_url}.[/red] "
            "Is the server running? (idbridge serve)"
        )
        raise SystemExit(1)

    if r.status_code != 200:
        console.print(f"[red]Login failed:[/red] {r.json().get('detail', r.status_code)}")
        raise SystemExit(1)
    user_detail(r.json()["user"])


@cli.command("serve")
@click.option("--host", default="0.0.0.0", show_default=True, help="Bind host")
@click.option("--port", default=8000, show_default=True, help="Bind port")
@click.option("--reload", is_flag=True, default=False, help="Enable auto-reload (dev mode)")
def serve(host: str, port: int, reload: bool) -> None:
    """Start the idbridge API server."""
    import uvicorn

    uvicorn.run(
        "idbridge.api.app:app",
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


if __name__ == "__main__":
    cli()

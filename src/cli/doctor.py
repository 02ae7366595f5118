"""Doctor command for configuration and connectivity diagnostics."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from adapters.http_client import httpx_transport_factory
from core.config import AdtSettings, get_user_env_file, write_user_env_vars
from core.errors import AdtError
from core.services.adt_client import AdtClient

app = typer.Typer(no_args_is_help=True, help="Configuration and connectivity diagnostics.")

_console = Console()


async def _check_login(settings: AdtSettings) -> tuple[bool, str, int]:
    """Login + lectura del documento de discovery (best-effort)."""

    try:
        async with AdtClient(settings.credentials(), httpx_transport_factory(settings)) as client:
            collections = await client.readers.discovery()
        return True, "OK", len(collections)
    except AdtError as exc:
        return False, str(exc), 0


@app.command()
def run() -> None:
    """Run baseline diagnostics and show recommended fixes."""

    settings = AdtSettings()

    table = Table(title="adtctl doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    # Config
    table.add_row("SAP_URL", "OK" if settings.url else "MISSING", settings.url or "-")
    table.add_row("SAP_USER", "OK" if settings.user else "MISSING", settings.user or "-")
    table.add_row("SAP_PASSWORD", "OK" if settings.password else "MISSING", "***" if settings.password else "-")
    table.add_row("Client / language", "OK", f"{settings.client} / {settings.language}")
    table.add_row("TLS verification", "OK" if settings.verify_tls else "DISABLED", f"timeout {settings.http_timeout_seconds}s")
    table.add_row("User config", "INFO", str(get_user_env_file()))

    # Connectivity (best-effort)
    if settings.url and settings.user and settings.password:
        ok, detail, count = asyncio.run(_check_login(settings))
        table.add_row("Login", "OK" if ok else "FAIL", detail)
        if ok:
            table.add_row("Discovery", "OK", f"{count} collections")
    else:
        table.add_row("Login", "SKIPPED", "connection settings incomplete")

    _console.print(table)

    if not (settings.url and settings.user and settings.password):
        _console.print("\n[yellow]Note:[/yellow] run `adtctl doctor setup` to store connection settings.")


@app.command()
def setup() -> None:
    """Interactive connection setup (stores config in the user config .env)."""

    settings = AdtSettings()

    url = typer.prompt("System URL (http[s]://host:port)", default=settings.url or "", show_default=True).strip()
    user = typer.prompt("User", default=settings.user or "", show_default=True).strip()
    password = typer.prompt("Password", hide_input=True, confirmation_prompt=False).strip()
    client = typer.prompt("Client", default=settings.client, show_default=True).strip()
    language = typer.prompt("Language", default=settings.language, show_default=True).strip()

    if not url or not user:
        raise typer.BadParameter("url and user are required")

    env_path = write_user_env_vars(
        {
            "SAP_URL": url.rstrip("/"),
            "SAP_USER": user,
            "SAP_PASSWORD": password,
            "SAP_CLIENT": client,
            "SAP_LANGUAGE": language,
        }
    )

    _console.print(f"[green]Saved connection config to:[/green] {env_path}")

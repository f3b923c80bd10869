"""Doctor command for environment diagnostics."""

from __future__ import annotations

import asyncio
import tempfile
from urllib.parse import urlsplit

import typer
from rich.console import Console

from adapters.http_client import build_async_client
from adapters.protocol_loader import load_messaging_client
from adapters.upload_providers import PROVIDERS, build_providers
from cli.ui_components import build_checks_table
from core.config import AppSettings, write_user_env_vars
from core.errors import ConfigurationError

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console()

_PROVIDER_HOSTS: dict[str, str] = {
    "pastebin": "https://pastebin.com",
    "0x0": "https://0x0.st",
    "file.io": "https://file.io",
}


async def _check_http(url: str, settings: AppSettings) -> tuple[bool, str]:
    try:
        async with build_async_client(settings) as client:
            response = await client.head(url)
        return True, f"HTTP {response.status_code}"
    except Exception as exc:
        return False, str(exc)


def _check_sessions_dir(settings: AppSettings) -> tuple[bool, str]:
    """Verifica que el directorio de sesiones exista (o se pueda crear) y sea escribible."""

    try:
        settings.sessions_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(dir=settings.sessions_dir):
            pass
        return True, str(settings.sessions_dir.resolve())
    except OSError as exc:
        return False, str(exc)


@app.command()
def run(
    offline: bool = typer.Option(False, "--offline", help="Saltar los checks de red."),
) -> None:
    """Run baseline diagnostics and show recommended fixes."""

    settings = AppSettings()
    table = build_checks_table("pairlink Doctor")

    # Protocolo
    try:
        client = load_messaging_client(settings.protocol_factory)
        table.add_row("Messaging client", "OK", type(client).__name__)
    except ConfigurationError as exc:
        table.add_row("Messaging client", "FAIL", str(exc))

    # Proveedores
    providers_ok = True
    try:
        build_providers(settings)
        table.add_row("Upload providers", "OK", " → ".join(settings.upload_providers))
    except ConfigurationError as exc:
        providers_ok = False
        table.add_row("Upload providers", "FAIL", str(exc))

    if "pastebin" in settings.upload_providers:
        if settings.pastebin_api_key:
            table.add_row("Pastebin key", "OK", "api_dev_key set")
        else:
            table.add_row("Pastebin key", "WARN", "No key set -> Pastebin will be skipped")

    ok_dir, detail_dir = _check_sessions_dir(settings)
    table.add_row("Sessions dir", "OK" if ok_dir else "FAIL", detail_dir)

    # Conectividad (best-effort)
    if not offline and providers_ok:
        for name in settings.upload_providers:
            host = _PROVIDER_HOSTS.get(name)
            if not host:
                continue
            ok_http, detail_http = asyncio.run(_check_http(host, settings))
            table.add_row(f"{name} ({urlsplit(host).netloc})", "OK" if ok_http else "FAIL", detail_http)

    _console.print(table)


@app.command(name="setup-uploads")
def setup_uploads() -> None:
    """Interactive upload setup (stores config in the user config .env)."""

    order = typer.prompt(
        "Upload providers (priority order, comma separated)",
        default=",".join(PROVIDERS),
        show_default=True,
    ).strip()
    names = [part.strip() for part in order.split(",") if part.strip()]
    unknown = [name for name in names if name not in PROVIDERS]
    if not names or unknown:
        raise typer.BadParameter(f"unknown providers: {', '.join(unknown) or '(empty)'}")

    values = {"PAIRLINK_UPLOAD_PROVIDERS": ",".join(names)}
    if "pastebin" in names:
        api_key = typer.prompt("Pastebin API key", hide_input=True, default="", show_default=False).strip()
        if api_key:
            values["PAIRLINK_PASTEBIN_API_KEY"] = api_key

    env_path = write_user_env_vars(values)
    _console.print(f"[green]Saved upload config to:[/green] {env_path}")

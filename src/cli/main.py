"""CLI de pairlink (Typer).

Comandos:
- `serve`: levanta la API HTTP (uvicorn).
- `pair NUMBER`: un emparejamiento completo desde la terminal.
- `doctor ...`: diagnósticos y configuración.
"""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console

from cli import doctor
from cli.ui_components import build_outcome_text, build_pairing_panel, print_banner
from core.config import AppSettings
from core.errors import PairlinkError
from core.logging import setup_logging
from core.phone import canonicalize_number
from core.services.lifecycle import install_exception_handler
from core.services.pairing import PairingService

app = typer.Typer(no_args_is_help=True, help="Pairing-code sessions with credential export.")
app.add_typer(doctor.app, name="doctor")

_console = Console()


def _build_service(settings: AppSettings) -> PairingService:
    try:
        return PairingService.from_settings(settings)
    except PairlinkError as exc:
        _console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=2) from exc


@app.command()
def serve(
    host: str | None = typer.Option(None, help="Interfaz de escucha (default: settings)."),
    port: int | None = typer.Option(None, help="Puerto (default: settings)."),
) -> None:
    """Serve the pairing API over HTTP."""

    import uvicorn

    from api.app import create_app

    settings = AppSettings()
    setup_logging(settings.log_level, console=_console)
    service = _build_service(settings)
    uvicorn.run(
        create_app(service),
        host=host or settings.api_host,
        port=port or settings.api_port,
        log_level=settings.log_level.lower(),
    )


@app.command()
def pair(
    number: str = typer.Argument(..., help="Número de teléfono con código de país."),
    no_banner: bool = typer.Option(False, "--no-banner", help="No imprimir el banner."),
) -> None:
    """Request a pairing code and wait until the session is exported."""

    settings = AppSettings()
    setup_logging(settings.log_level, console=_console)
    if not no_banner:
        print_banner(_console)
    service = _build_service(settings)

    async def _run() -> None:
        install_exception_handler(asyncio.get_running_loop())
        try:
            code = await service.begin_pairing(number)
        except PairlinkError as exc:
            _console.print(f"[red]{exc}[/red] (HTTP {exc.http_status})")
            await service.aclose()
            raise typer.Exit(code=1) from exc

        session_id = canonicalize_number(number)
        _console.print(build_pairing_panel(number=session_id, code=code))
        with _console.status("Waiting for the device to link..."):
            outcome = await service.wait_finished(session_id)
        _console.print(build_outcome_text(outcome))

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        raise typer.Exit(code=130) from None


def run() -> None:
    app()

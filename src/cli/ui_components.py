"""Componentes de UI para CLI (Rich).

Por qué separar componentes:
- Evita mezclar lógica de comandos con detalles visuales.
- Permite reutilizar tablas/paneles en múltiples comandos.
"""

from __future__ import annotations

from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.domain.models import SessionOutcome


def print_banner(console: Console) -> None:
    """Imprime el banner de bienvenida (se omite en modos no interactivos)."""

    title = Text("PAIRLINK", style="bold cyan")
    subtitle = Text("Emparejamiento • Exportación de sesión", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def build_pairing_panel(*, number: str, code: str) -> Panel:
    """Panel con el código que el usuario debe introducir en su teléfono."""

    body = Text()
    body.append(code, style="bold green")
    body.append("\n\nLinked devices → Link with phone number", style="dim")
    return Panel(
        Align.center(body),
        title=Text(f"Pairing code for +{number}", style="bold"),
        border_style="green",
        padding=(1, 4),
    )


def build_outcome_text(outcome: SessionOutcome | None) -> Text:
    styles = {
        SessionOutcome.EXPORTED: "green",
        SessionOutcome.EXPORT_FAILED: "yellow",
        SessionOutcome.LOGGED_OUT: "red",
        SessionOutcome.PAIRING_FAILED: "red",
        SessionOutcome.RESTARTS_EXHAUSTED: "red",
    }
    if outcome is None:
        return Text("Session cancelled", style="dim")
    return Text(f"Session finished: {outcome.value}", style=styles.get(outcome, "white"))


def build_checks_table(title: str) -> Table:
    table = Table(title=title)
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")
    return table

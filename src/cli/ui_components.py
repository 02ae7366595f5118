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

from core.domain.models import (
    DiscoveryCollection,
    DumpsFeed,
    MutationOutcome,
    NamedItem,
    ObjectReference,
    Package,
    ResourceSnapshot,
    Severity,
    SystemMessagesFeed,
    ValidationResult,
)

_SEVERITY_STYLES = {
    Severity.SUCCESS: "green",
    Severity.INFO: "cyan",
    Severity.WARNING: "yellow",
    Severity.ERROR: "red",
}


def print_banner(console: Console) -> None:
    """Imprime el banner de bienvenida.

    Por qué aquí:
    - Evita dependencias circulares (main <-> doctor).
    - Permite desactivar banner en modos no interactivos (JSON/pipelines).
    """

    title = Text("adtctl", style="bold cyan")
    subtitle = Text("ABAP Development Tools • Paquetes • Objetos • Runtime", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def build_validation_table(result: ValidationResult) -> Table:
    table = Table(title="Validation " + ("passed" if result.success else "failed"))
    table.add_column("Severity", no_wrap=True)
    table.add_column("Message", style="white")
    table.add_column("Code", style="dim")
    for message in result.messages:
        style = _SEVERITY_STYLES.get(message.severity, "white")
        table.add_row(f"[{style}]{message.severity.value}[/{style}]", message.text, message.code or "")
    return table


def build_resource_panel(resource: Package | ResourceSnapshot) -> Panel:
    """Panel con los atributos confirmados por el servidor."""

    body = Text()
    for key, value in resource.model_dump(mode="json", exclude_none=True).items():
        if value in ("", None):
            continue
        body.append(f"{key}: ", style="bold")
        body.append(f"{value}\n")
    return Panel(body, title=Text(resource.name, style="bold cyan"), border_style="cyan")


def build_outcome_panel(outcome: MutationOutcome) -> Panel:
    style = "green" if outcome.succeeded else "red"
    body = Text()
    body.append(f"{outcome.descriptor.object_type.value} {outcome.descriptor.name}\n", style="bold")
    body.append(f"phase: {outcome.phase.value}\n")
    if outcome.location:
        body.append(f"location: {outcome.location}\n")
    if outcome.etag:
        body.append(f"etag: {outcome.etag}\n", style="dim")
    return Panel(body, title=Text("Mutation", style=f"bold {style}"), border_style=style)


def build_named_items_table(title: str, items: list[NamedItem]) -> Table:
    table = Table(title=title)
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Description", style="white")
    for item in items:
        table.add_row(item.name, item.description)
    return table


def build_search_table(results: list[ObjectReference]) -> Table:
    table = Table(title=f"Search results ({len(results)})")
    table.add_column("Type", style="magenta", no_wrap=True)
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Package", style="white")
    table.add_column("Description", style="dim")
    for ref in results:
        table.add_row(ref.object_type, ref.name, ref.package_name, ref.description)
    return table


def build_properties_table(name: str, properties: dict[str, str]) -> Table:
    table = Table(title=f"Properties of {name}")
    table.add_column("Property", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")
    for key in sorted(properties):
        table.add_row(key, properties[key])
    return table


def build_dumps_table(feed: DumpsFeed) -> Table:
    suffix = f" ({feed.count} total)" if feed.count is not None else ""
    table = Table(title=(feed.title or "Runtime dumps") + suffix)
    table.add_column("Published", style="dim", no_wrap=True)
    table.add_column("Author", style="cyan")
    table.add_column("Title", style="white")
    table.add_column("Id", style="magenta")
    for dump in feed.dumps:
        published = dump.published.strftime("%Y-%m-%d %H:%M:%S") if dump.published else ""
        table.add_row(published, dump.author, dump.title, dump.id)
    return table


def build_system_messages_table(feed: SystemMessagesFeed) -> Table:
    table = Table(title=feed.title or "System messages")
    table.add_column("Updated", style="dim", no_wrap=True)
    table.add_column("Title", style="white")
    table.add_column("Content", style="yellow")
    for message in feed.messages:
        updated = message.updated.strftime("%Y-%m-%d %H:%M") if message.updated else ""
        table.add_row(updated, message.title, message.content)
    return table


def build_discovery_table(collections: list[DiscoveryCollection]) -> Table:
    table = Table(title=f"Discovery ({len(collections)} collections)")
    table.add_column("Workspace", style="cyan")
    table.add_column("Title", style="white")
    table.add_column("Href", style="magenta")
    for collection in collections:
        table.add_row(collection.workspace, collection.title, collection.href)
    return table

"""CLI `adtctl` (Typer).

Por qué Typer + Rich:
- Subcomandos tipados con ayuda autogenerada.
- Salida legible en terminal; `--json` para scripts y pipelines.

La CLI solo traduce argumentos a llamadas de `AdtClient` y renderiza; toda la
lógica de protocolo vive en `core.services`.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Awaitable, Callable, TypeVar

import typer
from rich.console import Console
from rich.markup import escape

from adapters.http_client import httpx_transport_factory
from adapters.json_exporter import dumps_json, export_json
from cli import doctor
from cli.ui_components import (
    build_discovery_table,
    build_dumps_table,
    build_named_items_table,
    build_outcome_panel,
    build_properties_table,
    build_resource_panel,
    build_search_table,
    build_system_messages_table,
    build_validation_table,
    print_banner,
)
from core.config import AdtSettings
from core.domain.models import (
    LOCAL_PACKAGE,
    CheckMode,
    ObjectType,
    PackageType,
    ResourceDescriptor,
)
from core.domain.timestamps import parse_timestamp
from core.errors import AdtError
from core.log import configure_logging
from core.services.adt_client import AdtClient

T = TypeVar("T")

app = typer.Typer(no_args_is_help=True, help="Client for the ABAP Development Tools (ADT) REST service.")
package_app = typer.Typer(no_args_is_help=True, help="Read, validate and create packages.")
valuehelp_app = typer.Typer(no_args_is_help=True, help="Value helps for package creation.")
object_app = typer.Typer(no_args_is_help=True, help="Programs and classes: create, read and write source.")
runtime_app = typer.Typer(no_args_is_help=True, help="Runtime dumps, system messages and discovery.")

app.add_typer(doctor.app, name="doctor")
app.add_typer(package_app, name="package")
app.add_typer(valuehelp_app, name="valuehelp")
app.add_typer(object_app, name="object")
app.add_typer(runtime_app, name="runtime")

_console = Console()
_err_console = Console(stderr=True)

JsonOption = typer.Option(False, "--json", help="Print the result as JSON.")
OutputOption = typer.Option(None, "--output", "-o", help="Also write the JSON result to this file.")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    banner: bool = typer.Option(False, "--banner", help="Show the banner."),
) -> None:
    settings = AdtSettings()
    configure_logging("DEBUG" if verbose else settings.log_level, console=_err_console)
    if banner:
        print_banner(_console)


def _execute(action: Callable[[AdtClient], Awaitable[T]]) -> T:
    """Login → acción → logout; los errores del cliente salen con código 1."""

    settings = AdtSettings()

    async def _run() -> T:
        async with AdtClient(settings.credentials(), httpx_transport_factory(settings)) as client:
            return await action(client)

    try:
        return asyncio.run(_run())
    except AdtError as exc:
        _err_console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc


def _emit(value: Any, *, as_json: bool, render: Callable[[], Any] | None = None, output: Path | None = None) -> None:
    if output is not None:
        export_json(value, output_path=output)
    if as_json or render is None:
        typer.echo(dumps_json(value))
        return
    _console.print(render())
    if output is not None:
        _console.print(f"[green]Saved JSON to:[/green] {output}")


def _object_type(value: str) -> ObjectType:
    try:
        return ObjectType.parse(value)
    except ValueError as exc:
        raise typer.BadParameter(f"unknown object type {value!r} (package, program, class)") from exc


def _read_source_file(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise typer.BadParameter(f"cannot read {path}: {exc}") from exc


# --------------------------------------------------------------------- package


@package_app.command("get")
def package_get(
    name: str = typer.Argument(..., help="Package name."),
    etag: str | None = typer.Option(None, "--etag", help="Send If-None-Match with this token."),
    as_json: bool = JsonOption,
    output: Path | None = OutputOption,
) -> None:
    """Read a package (conditional when --etag is given)."""

    read = _execute(lambda c: c.readers.get_package(name, if_none_match=etag))
    if read.not_modified:
        _console.print(f"[dim]{name.upper()} not modified ({read.etag})[/dim]")
        return
    _emit(read, as_json=as_json, output=output, render=lambda: build_resource_panel(read.resource))


def _package_descriptor(
    name: str,
    description: str,
    parent: str,
    package_type: PackageType,
    software_component: str,
    transport_layer: str,
    application_component: str | None,
    responsible: str | None = None,
) -> ResourceDescriptor:
    return ResourceDescriptor(
        object_type=ObjectType.PACKAGE,
        name=name,
        parent=parent,
        description=description,
        responsible=responsible,
        package_type=package_type,
        software_component=software_component,
        transport_layer=transport_layer,
        application_component=application_component,
    )


@package_app.command("validate")
def package_validate(
    name: str = typer.Argument(...),
    description: str = typer.Option(..., "--description", "-d"),
    parent: str = typer.Option(LOCAL_PACKAGE, "--parent"),
    package_type: PackageType = typer.Option(PackageType.DEVELOPMENT, "--type"),
    software_component: str = typer.Option("LOCAL", "--swcomp"),
    transport_layer: str = typer.Option("", "--transport-layer"),
    application_component: str | None = typer.Option(None, "--appcomp"),
    check_mode: CheckMode = typer.Option(CheckMode.BASIC, "--check-mode"),
    as_json: bool = JsonOption,
) -> None:
    """Pre-flight validation only; nothing is created."""

    descriptor = _package_descriptor(
        name, description, parent, package_type, software_component, transport_layer, application_component
    )
    result = _execute(lambda c: c.validate(descriptor, check_mode=check_mode))
    _emit(result, as_json=as_json, render=lambda: build_validation_table(result))
    if not result.success:
        raise typer.Exit(code=1)


@package_app.command("create")
def package_create(
    name: str = typer.Argument(...),
    description: str = typer.Option(..., "--description", "-d"),
    parent: str = typer.Option(LOCAL_PACKAGE, "--parent"),
    package_type: PackageType = typer.Option(PackageType.DEVELOPMENT, "--type"),
    software_component: str = typer.Option("LOCAL", "--swcomp"),
    transport_layer: str = typer.Option("", "--transport-layer", help="Empty for a local ($TMP) package."),
    application_component: str | None = typer.Option(None, "--appcomp"),
    responsible: str | None = typer.Option(None, "--responsible"),
    transport_request: str | None = typer.Option(None, "--transport", help="Transport request (corrNr)."),
    check_mode: CheckMode = typer.Option(CheckMode.BASIC, "--check-mode"),
    as_json: bool = JsonOption,
) -> None:
    """Validate, create and verify a package."""

    descriptor = _package_descriptor(
        name,
        description,
        parent,
        package_type,
        software_component,
        transport_layer,
        application_component,
        responsible,
    )
    outcome = _execute(
        lambda c: c.create_package(descriptor, transport_request=transport_request, check_mode=check_mode)
    )
    if as_json:
        _emit(outcome, as_json=True)
    else:
        if outcome.validation is not None and outcome.validation.messages:
            _console.print(build_validation_table(outcome.validation))
        _console.print(build_outcome_panel(outcome))
    if not outcome.succeeded:
        raise typer.Exit(code=1)


@package_app.command("search")
def package_search(
    pattern: str = typer.Argument(..., help="Name pattern, e.g. Z*."),
    max_results: int = typer.Option(50, "--max", min=1),
    as_json: bool = JsonOption,
    output: Path | None = OutputOption,
) -> None:
    """Quick search for packages."""

    results = _execute(lambda c: c.readers.search(pattern, object_type=ObjectType.PACKAGE, max_results=max_results))
    _emit(results, as_json=as_json, output=output, render=lambda: build_search_table(results))


@package_app.command("properties")
def package_properties(name: str = typer.Argument(...), as_json: bool = JsonOption) -> None:
    """Object properties of a package."""

    properties = _execute(lambda c: c.readers.package_properties(name))
    _emit(properties, as_json=as_json, render=lambda: build_properties_table(name.upper(), properties))


# ------------------------------------------------------------------- valuehelp


@valuehelp_app.command("transport-layers")
def valuehelp_transport_layers(name: str = typer.Option("*", "--name"), as_json: bool = JsonOption) -> None:
    items = _execute(lambda c: c.readers.transport_layers(name))
    _emit(items, as_json=as_json, render=lambda: build_named_items_table("Transport layers", items))


@valuehelp_app.command("software-components")
def valuehelp_software_components(name: str = typer.Option("*", "--name"), as_json: bool = JsonOption) -> None:
    items = _execute(lambda c: c.readers.software_components(name))
    _emit(items, as_json=as_json, render=lambda: build_named_items_table("Software components", items))


@valuehelp_app.command("translation-relevances")
def valuehelp_translation_relevances(
    max_item_count: int = typer.Option(50, "--max", min=1),
    as_json: bool = JsonOption,
) -> None:
    items = _execute(lambda c: c.readers.translation_relevances(max_item_count))
    _emit(items, as_json=as_json, render=lambda: build_named_items_table("Translation relevances", items))


# ---------------------------------------------------------------------- object


@object_app.command("create")
def object_create(
    object_type: str = typer.Argument(..., help="program or class."),
    name: str = typer.Argument(...),
    description: str = typer.Option(..., "--description", "-d"),
    parent: str = typer.Option(LOCAL_PACKAGE, "--parent"),
    transport_layer: str = typer.Option("", "--transport-layer"),
    responsible: str | None = typer.Option(None, "--responsible"),
    source_file: Path | None = typer.Option(None, "--source-file", help="Upload this source after creation."),
    transport_request: str | None = typer.Option(None, "--transport"),
    as_json: bool = JsonOption,
) -> None:
    """Validate, create, optionally write source, and verify an object."""

    kind = _object_type(object_type)
    if not kind.has_source:
        raise typer.BadParameter("use `adtctl package create` for packages")
    source = _read_source_file(source_file) if source_file else None
    descriptor = ResourceDescriptor(
        object_type=kind,
        name=name,
        parent=parent,
        description=description,
        responsible=responsible,
        transport_layer=transport_layer,
    )
    outcome = _execute(lambda c: c.create_object(descriptor, source=source, transport_request=transport_request))
    if as_json:
        _emit(outcome, as_json=True)
    else:
        if outcome.validation is not None and outcome.validation.messages:
            _console.print(build_validation_table(outcome.validation))
        _console.print(build_outcome_panel(outcome))
    if not outcome.succeeded:
        raise typer.Exit(code=1)


@object_app.command("read-source")
def object_read_source(object_type: str = typer.Argument(...), name: str = typer.Argument(...)) -> None:
    kind = _object_type(object_type)
    source = _execute(lambda c: c.readers.read_source(kind, name))
    typer.echo(source)


@object_app.command("write-source")
def object_write_source(
    object_type: str = typer.Argument(...),
    name: str = typer.Argument(...),
    source_file: Path = typer.Option(..., "--source-file"),
    transport_request: str | None = typer.Option(None, "--transport"),
) -> None:
    """Lock, write `source/main` and unlock an existing object."""

    kind = _object_type(object_type)
    source = _read_source_file(source_file)
    handle = _execute(lambda c: c.write_source(kind, name, source, transport_request=transport_request))
    _console.print(f"[green]Source written:[/green] {handle.resource}")


@object_app.command("lock-test")
def object_lock_test(object_type: str = typer.Argument(...), name: str = typer.Argument(...)) -> None:
    """Acquire and release an edit lock (checks that nobody else holds it)."""

    kind = _object_type(object_type)

    async def _lock_cycle(client: AdtClient) -> str:
        handle = await client.lock(kind, name)
        await client.unlock(handle)
        return f"{handle.resource} transport={handle.transport or '-'} local={handle.is_local}"

    _console.print(f"[green]Lock OK:[/green] {_execute(_lock_cycle)}")


# --------------------------------------------------------------------- runtime


@runtime_app.command("dumps")
def runtime_dumps(
    query: str | None = typer.Option(None, "--query", help="Raw $query expression."),
    top: int | None = typer.Option(None, "--top", min=1),
    skip: int | None = typer.Option(None, "--skip", min=0),
    inline_count: bool = typer.Option(False, "--count", help="Request the total count."),
    since: str | None = typer.Option(None, "--since", help="YYYYMMDDHHMMSS (UTC)."),
    responsible: str | None = typer.Option(None, "--responsible"),
    user: str | None = typer.Option(None, "--user"),
    as_json: bool = JsonOption,
    output: Path | None = OutputOption,
) -> None:
    """List runtime dumps."""

    since_value = None
    if since:
        try:
            since_value = parse_timestamp(since)
        except ValueError as exc:
            raise typer.BadParameter(str(exc)) from exc
    feed = _execute(
        lambda c: c.readers.dumps(
            query=query,
            top=top,
            skip=skip,
            inline_count=inline_count,
            since=since_value,
            responsible=responsible,
            user=user,
        )
    )
    _emit(feed, as_json=as_json, output=output, render=lambda: build_dumps_table(feed))


@runtime_app.command("dump")
def runtime_dump(dump_id: str = typer.Argument(...)) -> None:
    typer.echo(_execute(lambda c: c.readers.dump(dump_id)))


@runtime_app.command("messages")
def runtime_messages(as_json: bool = JsonOption) -> None:
    feed = _execute(lambda c: c.readers.system_messages())
    _emit(feed, as_json=as_json, render=lambda: build_system_messages_table(feed))


@runtime_app.command("discovery")
def runtime_discovery(as_json: bool = JsonOption) -> None:
    collections = _execute(lambda c: c.readers.discovery())
    _emit(collections, as_json=as_json, render=lambda: build_discovery_table(collections))


def run() -> None:
    app()


if __name__ == "__main__":
    run()

# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Command line entry point for querying and checking a Hack workspace."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Final

import typer
from rich import box
from rich.table import Table

from .client import HackClient
from .config import ConfigError, HackConfig, load_config
from .coverage import summarize_coverage
from .duplicates import find_duplicate_definitions, write_duplicates_csv
from .errors import SessionStartError
from .logging import Reporter, configure_logging
from .models import OpenDocument
from .provision import activate
from .session import InMemoryDiagnosticCollection, TypecheckSession
from .translate import DiagnosticEntry

EXIT_FINDINGS: Final[int] = 2

app = typer.Typer(help="Query and typecheck a Hack workspace across several hh_client backends.", no_args_is_help=True)

WorkspaceOption = Annotated[
    Path | None,
    typer.Option("--workspace", "-w", help="Workspace root; defaults to HACK_WORKSPACE or the current directory."),
]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Log backend calls to stderr.")]
FileArgument = Annotated[Path, typer.Argument(exists=True, dir_okay=False, readable=True, help="Hack source file.")]
LineArgument = Annotated[int, typer.Argument(min=1, help="1-indexed line.")]
ColumnArgument = Annotated[int, typer.Argument(min=1, help="1-indexed column.")]


@dataclass(slots=True)
class CliContext:
    """Configuration and client shared by one command invocation."""

    config: HackConfig
    client: HackClient
    reporter: Reporter


def _prepare(workspace: Path | None, verbose: bool) -> CliContext:
    configure_logging(verbose=verbose)
    reporter = Reporter()
    try:
        config = load_config(workspace.resolve() if workspace is not None else None)
    except ConfigError as exc:
        reporter.fail(f"Configuration invalid: {exc}")
        raise typer.Exit(code=1) from exc
    return CliContext(config=config, client=HackClient.from_config(config), reporter=reporter)


def _run[T](ctx: CliContext, work: Callable[[], Awaitable[T]]) -> T:
    """Activate the backend, then run ``work`` on the same event loop."""

    async def _main() -> T:
        await activate(ctx.config, ctx.client)
        return await work()

    try:
        return asyncio.run(_main())
    except SessionStartError as exc:
        ctx.reporter.fail(str(exc))
        raise typer.Exit(code=1) from exc


def _diagnostic_table(title: str, diagnostics: Sequence[DiagnosticEntry]) -> Table:
    table = Table(title=title, box=box.SIMPLE, expand=True)
    table.add_column("Location", style="bold", no_wrap=True)
    table.add_column("Severity")
    table.add_column("Code", justify="right")
    table.add_column("Message", overflow="fold")
    for diagnostic in diagnostics:
        start = diagnostic.range.start
        table.add_row(
            f"{start.line + 1}:{start.character + 1}",
            diagnostic.severity.value,
            "" if diagnostic.code is None else str(diagnostic.code),
            diagnostic.message,
        )
    return table


@app.command()
def check(
    workspace: WorkspaceOption = None,
    soft: Annotated[
        Path | None,
        typer.Option("--soft", exists=True, dir_okay=False, help="Also warn about unreferenced functions in this file."),
    ] = None,
    verbose: VerboseOption = False,
) -> None:
    """Typecheck the workspace and print the merged diagnostics."""

    ctx = _prepare(workspace, verbose)
    primary = InMemoryDiagnosticCollection("hack_typecheck")
    secondary = InMemoryDiagnosticCollection("hack_soft")
    session = TypecheckSession.from_config(ctx.config, ctx.client, primary, secondary)
    document = OpenDocument(path=str(soft.resolve()), text=soft.read_text(encoding="utf-8")) if soft else None

    _run(ctx, lambda: session.run(document))

    for path, entries in primary.snapshot().items():
        ctx.reporter.console.print(_diagnostic_table(path, entries))
    soft_entries = secondary.snapshot()
    if soft_entries:
        ctx.reporter.section("Unreferenced functions")
    for path, entries in soft_entries.items():
        ctx.reporter.console.print(_diagnostic_table(path, entries))

    if session.last_result is None:
        ctx.reporter.warn("No backend produced a usable check result.")
        raise typer.Exit(code=1)
    if len(primary):
        ctx.reporter.fail(f"{len(primary)} type error(s) in {len(primary.snapshot())} file(s).")
        raise typer.Exit(code=EXIT_FINDINGS)
    ctx.reporter.ok("No type errors.")


@app.command("type-at-pos")
def type_at_pos(
    file: FileArgument,
    line: LineArgument,
    column: ColumnArgument,
    workspace: WorkspaceOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Print the type of the expression at a position."""

    ctx = _prepare(workspace, verbose)
    found = _run(ctx, lambda: ctx.client.type_at_pos(str(file.resolve()), line, column))
    if found is None:
        ctx.reporter.warn("No type information available.")
        raise typer.Exit(code=1)
    typer.echo(found)


@app.command()
def outline(file: FileArgument, workspace: WorkspaceOption = None, verbose: VerboseOption = False) -> None:
    """List the symbols declared in a file."""

    ctx = _prepare(workspace, verbose)
    symbols = _run(ctx, lambda: ctx.client.outline(file.read_text(encoding="utf-8"))) or []
    table = Table(title=str(file), box=box.SIMPLE)
    table.add_column("Kind")
    table.add_column("Name", style="bold")
    table.add_column("Line", justify="right")
    for symbol in symbols:
        table.add_row(symbol.kind, symbol.name, str(symbol.position.line))
    ctx.reporter.console.print(table)


@app.command()
def search(query: str, workspace: WorkspaceOption = None, verbose: VerboseOption = False) -> None:
    """Search workspace symbols by name."""

    ctx = _prepare(workspace, verbose)
    results = _run(ctx, lambda: ctx.client.search(query)) or []
    table = Table(title=f"Results for {query!r}", box=box.SIMPLE)
    table.add_column("Name", style="bold")
    table.add_column("Location")
    table.add_column("Description", overflow="fold")
    for result in results:
        table.add_row(result.name, f"{result.filename}:{result.line}", result.desc)
    ctx.reporter.console.print(table)


@app.command()
def definition(
    file: FileArgument,
    line: LineArgument,
    column: ColumnArgument,
    workspace: WorkspaceOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Print where the symbol at a position is defined."""

    ctx = _prepare(workspace, verbose)
    text = file.read_text(encoding="utf-8")
    results = _run(ctx, lambda: ctx.client.ide_get_definition(text, line, column)) or []
    if not results:
        ctx.reporter.warn("No definition found.")
        raise typer.Exit(code=1)
    for result in results:
        target = result.definition_pos or result.pos
        typer.echo(f"{result.name}\t{target.filename or file}:{target.line}:{target.char_start}")


@app.command()
def refs(
    file: FileArgument,
    line: LineArgument,
    column: ColumnArgument,
    workspace: WorkspaceOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Print every reference to the symbol at a position."""

    ctx = _prepare(workspace, verbose)
    text = file.read_text(encoding="utf-8")
    results = _run(ctx, lambda: ctx.client.ide_find_refs(text, line, column)) or []
    if not results:
        ctx.reporter.warn("No references found.")
        raise typer.Exit(code=1)
    for result in results:
        typer.echo(f"{result.filename}:{result.line}:{result.char_start}\t{result.name}")


@app.command()
def coverage(file: FileArgument, workspace: WorkspaceOption = None, verbose: VerboseOption = False) -> None:
    """Report how much of a file the typechecker fully checks."""

    ctx = _prepare(workspace, verbose)
    segments = _run(ctx, lambda: ctx.client.color(str(file.resolve())))
    if segments is None:
        ctx.reporter.warn("No coverage information available.")
        raise typer.Exit(code=1)
    report = summarize_coverage(segments)
    for color, span in report.uncovered:
        typer.echo(f"{file}:{span.start.line + 1}:{span.start.character + 1}\t{color}")
    ctx.reporter.info(f"{report.percent:.1f}% checked")


@app.command("format")
def format_file(
    file: FileArgument,
    start: Annotated[int | None, typer.Option(min=0, help="First byte offset; whole file when omitted.")] = None,
    end: Annotated[int | None, typer.Option(min=0, help="Last byte offset; end of file when omitted.")] = None,
    workspace: WorkspaceOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Print a file reformatted by the typechecker's formatter."""

    ctx = _prepare(workspace, verbose)
    text = file.read_text(encoding="utf-8")
    first = start if start is not None else 0
    last = end if end is not None else len(text.encode("utf-8"))
    response = _run(ctx, lambda: ctx.client.format(text, first, last))
    if response is None or response.internal_error or response.error_message:
        ctx.reporter.fail(response.error_message if response and response.error_message else "Formatting failed.")
        raise typer.Exit(code=1)
    typer.echo(response.result, nl=False)


@app.command()
def dupes(
    output: Annotated[Path, typer.Argument(dir_okay=False, help="CSV file the report is appended to.")],
    workspace: WorkspaceOption = None,
    verbose: VerboseOption = False,
) -> None:
    """Write a CSV report of symbols defined more than once."""

    ctx = _prepare(workspace, verbose)
    duplicates = _run(ctx, lambda: find_duplicate_definitions(ctx.client))
    write_duplicates_csv(output, duplicates)
    ctx.reporter.ok(f"{len(duplicates)} duplicated symbol(s) written to {output}")


@app.command()
def version(workspace: WorkspaceOption = None, verbose: VerboseOption = False) -> None:
    """Start the backend and print the version it reports."""

    ctx = _prepare(workspace, verbose)
    try:
        activation = asyncio.run(activate(ctx.config, ctx.client))
    except SessionStartError as exc:
        ctx.reporter.fail(str(exc))
        raise typer.Exit(code=1) from exc
    typer.echo(f"container={activation.container} api_version={activation.version.api_version}")


def main() -> None:
    """Console script entry point."""

    app()


__all__ = ["app", "main"]

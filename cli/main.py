"""CLI entry point — Typer app for brokerimport commands.

Usage:
    brokerimport parse statement.pdf another.pdf
    brokerimport parse statement.pdf --format json
    brokerimport brokers
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

app = typer.Typer(
    name="brokerimport",
    help="Broker statement import — classify documents and extract activities.",
    no_args_is_help=True,
)

console = Console()

_PARSE_PATHS = typer.Argument(..., help="Statement files to parse (PDF or CSV)")


class OutputFormat(str, Enum):
    """Output format options."""

    table = "table"
    json = "json"


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.callback()
def main(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Log extraction details.",
    ),
) -> None:
    """Configure logging for every command."""
    from brokerimport.config import load_settings

    settings = load_settings()
    _configure_logging("DEBUG" if verbose else settings.logging.level)


@app.command()
def parse(
    paths: Annotated[list[Path], _PARSE_PATHS],
    output_format: OutputFormat = typer.Option(
        OutputFormat.table, "--format", "-f", help="Output format.",
    ),
) -> None:
    """Parse statements and print the extracted activities."""
    from brokerimport.config import load_settings
    from brokerimport.parser import parse_file

    settings = load_settings()
    results = []
    for path in paths:
        try:
            results.append(parse_file(path, settings=settings))
        except (FileNotFoundError, ValueError) as e:
            console.print(f"[red]Error:[/] {e}")
            raise typer.Exit(code=1)

    if output_format is OutputFormat.json:
        payload = [
            {
                "file": r.file,
                "status": int(r.status),
                "successful": r.successful,
                "activities": (
                    [a.to_dict() for a in r.activities] if r.activities is not None else None
                ),
            }
            for r in results
        ]
        print(json.dumps(payload, indent=2, ensure_ascii=False))
    else:
        for r in results:
            _print_result(r)

    if not all(r.successful for r in results):
        raise typer.Exit(code=1)


def _print_result(result) -> None:
    from brokerimport.helpers import format_german_num

    colour = "green" if result.successful else "red"
    console.print(
        f"\n[bold {colour}]{result.file}[/] — status {int(result.status)} "
        f"({result.status.name})",
    )
    for w in result.warnings:
        console.print(f"  [yellow]Warning:[/] {w}")
    if not result.activities:
        return

    table = Table()
    table.add_column("Date", style="cyan")
    table.add_column("Type")
    table.add_column("Company")
    table.add_column("ISIN")
    table.add_column("Shares", justify="right")
    table.add_column("Amount", justify="right")
    table.add_column("Fee", justify="right")
    table.add_column("Tax", justify="right")

    for a in result.activities:
        table.add_row(
            a.date.isoformat(),
            str(a.type),
            a.company or "",
            a.isin or "",
            format_german_num(a.shares, 3) if a.shares is not None else "",
            format_german_num(a.amount),
            format_german_num(a.fee),
            format_german_num(a.tax),
        )

    console.print(table)


@app.command()
def brokers() -> None:
    """Show registered broker handlers and their identification markers."""
    from brokerimport.registry import get_parsers

    table = Table(title="Registered Brokers")
    table.add_column("Broker", style="cyan")
    table.add_column("File types")
    table.add_column("Markers")
    table.add_column("Excluded")

    for parser in get_parsers():
        table.add_row(
            parser.name(),
            ", ".join(sorted(parser.extensions)),
            ", ".join(parser.identification_markers),
            ", ".join(parser.excluded_markers),
        )

    console.print(table)


if __name__ == "__main__":
    app()

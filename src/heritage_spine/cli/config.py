"""
CLI: ``heritage-spine config`` — settings inspection.
"""

from __future__ import annotations

import typer
from rich.table import Table

from heritage_spine.cli.utils import console
from heritage_spine.core.settings import get_settings

app = typer.Typer(no_args_is_help=True)


@app.command("show")
def show_config(
    format: str = typer.Option("table", "--format", "-f", help="Output format: table, json, env"),
) -> None:
    """Show the resolved settings."""
    settings = get_settings()

    if format == "json":
        console.print_json(settings.model_dump_json())
        return

    if format == "env":
        for key, value in sorted(settings.model_dump().items()):
            console.print(f"HERITAGE_{key.upper()}={value}")
        return

    console.print(f"[bold]Output mode:[/bold] {settings.output_mode}")
    console.print(f"[bold]Output dir:[/bold] {settings.resolved_output_dir}")

    table = Table()
    table.add_column("Setting")
    table.add_column("Value")
    for key, value in sorted(settings.model_dump().items()):
        table.add_row(key, str(value))
    console.print(table)

"""
CLI utility helpers: consoles, logging setup and error reporting.
"""

from __future__ import annotations

from typing import NoReturn

import typer
from rich.console import Console

from heritage_spine.core.errors import PublishError
from heritage_spine.core.logging import configure_logging
from heritage_spine.core.settings import PublishSettings

console = Console()
err_console = Console(stderr=True)


def setup_logging(settings: PublishSettings) -> None:
    configure_logging(level=settings.log_level, json_format=settings.json_logs)


def fail(error: PublishError) -> NoReturn:
    """Print a pipeline error to stderr and exit non-zero."""
    err_console.print(
        f"[bold red]Error[/bold red] ({error.__class__.__name__}): {error.message}"
    )
    context = error.context.to_dict()
    if context:
        for key, value in context.items():
            err_console.print(f"  [dim]{key}[/dim]: {value}")
    raise typer.Exit(code=1)


def print_counts(title: str, counts: dict[str, object]) -> None:
    """Render a summary as key-value pairs."""
    console.print(f"[bold]{title}[/bold]")
    for key, value in counts.items():
        console.print(f"  [cyan]{key}[/cyan]: {value}")

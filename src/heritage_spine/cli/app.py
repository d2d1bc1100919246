"""
Root Typer application for the heritage-spine CLI.

::

    heritage-spine etl FILE [PREFIX]      pre-index one business-data file
    heritage-spine index                  build search, graphs and site output
    heritage-spine config show            inspect resolved settings

Every ``PublishError`` is reported as ``Error (<Type>): message`` on stderr
with exit code 1.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from typer import Typer

from heritage_spine import __version__
from heritage_spine.cli.utils import err_console, fail, print_counts, setup_logging
from heritage_spine.core.errors import PublishError
from heritage_spine.core.progress import RichProgress
from heritage_spine.core.settings import get_settings
from heritage_spine.publishing.context import RunContext
from heritage_spine.publishing.extract import run_preindex
from heritage_spine.publishing.publish import run_reindex

app = Typer(
    name="heritage-spine",
    help="heritage-spine — extract, permission-filter and publish heritage assets.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"heritage-spine {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """heritage-spine CLI — pre-index business data and publish a static site."""


# ── Pipeline commands ────────────────────────────────────────────────────


@app.command("etl")
def etl(
    file: str = typer.Argument(..., help="Business-data file; '%' expands to numbered files"),
    prefix: str | None = typer.Argument(None, help="Slug prefix (overrides the source's)"),
    include_private: bool = typer.Option(
        False, "--include-private", help="Non-public build: skip permission filtering"
    ),
    tui: bool = typer.Option(False, "--tui", help="Show live progress bars"),
) -> None:
    """Pre-index a business-data file into metadata lists and resource documents."""
    settings = get_settings(include_private=include_private)
    setup_logging(settings)
    progress = RichProgress(console=err_console) if tui else None

    try:
        context = RunContext.create(settings, progress=progress)
        result = asyncio.run(run_preindex(context, file, prefix))
    except PublishError as e:
        fail(e)
    finally:
        if progress is not None:
            progress.finish()

    print_counts(
        "Pre-index complete",
        {
            "assets": len(result.metadata),
            "associated": len(result.associated),
            "skipped": result.skipped,
            "registries": len(context.registries),
        },
    )


@app.command("index")
def index(
    files: list[Path] | None = typer.Option(  # noqa: UP007
        None, "--file", "-f", help="Metadata list (.pi); repeat for several. Default: all"
    ),
    definitions: Path | None = typer.Option(  # noqa: UP007
        None, "--definitions", "-d", help="Directory holding graphs/ (default: prebuild/)"
    ),
    site: Path | None = typer.Option(  # noqa: UP007
        None, "--site", "-s", help="Output directory (default: OUTPUT_DIR or ./public)"
    ),
    include_private: bool = typer.Option(
        False, "--include-private", help="Non-public build: publish every model"
    ),
    chunked: bool = typer.Option(
        False, "--chunked", help="Write chunked business data instead of spatial files"
    ),
) -> None:
    """Build the search index, published graphs and mode-specific output."""
    overrides: dict[str, object] = {"include_private": include_private}
    if site is not None:
        overrides["output_dir"] = site
    if chunked:
        overrides["for_arches"] = True
    settings = get_settings(**overrides)
    setup_logging(settings)

    try:
        context = RunContext.create(settings)
        report = asyncio.run(run_reindex(context, files or None, definitions))
    except PublishError as e:
        fail(e)

    counts: dict[str, object] = {
        "mode": settings.output_mode,
        "assets": report.assets,
        "records": report.records,
        "models": ", ".join(report.models) or "-",
        "collections": report.collections,
    }
    if settings.for_arches:
        counts["chunk files"] = len(report.chunk_files)
        counts["missing branches"] = len(report.missing_branches)
    else:
        counts["located assets"] = report.locations
        counts["registries"] = len(report.registry_index)
    print_counts("Publish complete", counts)


# ── Sub-command registration ─────────────────────────────────────────────

from heritage_spine.cli.config import app as config_app  # noqa: E402

app.add_typer(config_app, name="config", help="Inspect settings")


if __name__ == "__main__":
    app()

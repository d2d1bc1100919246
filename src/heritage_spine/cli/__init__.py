"""
CLI layer for heritage-spine.

A Typer application whose commands delegate to the pipeline entry points in
:mod:`heritage_spine.publishing`.  This package only handles terminal
transport: argument parsing, settings overrides and coloured output.

Entry point::

    heritage-spine --help
"""

from heritage_spine.cli.app import app

__all__ = ["app"]

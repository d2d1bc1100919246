"""
Shared pytest fixtures for heritage-spine tests.

This module provides:
- Settings cache isolation (autouse)
- A temporary project directory built by ``_support.project``
- Settings and run contexts rooted at that project

Usage:
    @pytest.mark.asyncio
    async def test_something(project_context):
        result = await run_preindex(project_context, project_context.base_dir / ASSETS_FILE)
"""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
import structlog

from _support.project import build_project
from heritage_spine.core.settings import PublishSettings, clear_settings_cache
from heritage_spine.publishing.context import RunContext


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark end-to-end pipeline tests as integration, everything else as unit."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def clean_settings_cache(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Fresh settings and logging for every test; no inherited pipeline env vars."""
    for name in ("OUTPUT_DIR", "FOR_ARCHES", "HERITAGE_OUTPUT_DIR", "HERITAGE_FOR_ARCHES"):
        monkeypatch.delenv(name, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()
    structlog.reset_defaults()


# =============================================================================
# Project fixtures
# =============================================================================


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A complete prebuild/ layout with two assets and one registry."""
    return build_project(tmp_path)


@pytest.fixture
def settings(project_dir: Path) -> PublishSettings:
    return PublishSettings(base_dir=project_dir, log_format="console")


@pytest.fixture
def project_context(settings: PublishSettings) -> RunContext:
    return RunContext.create(settings)

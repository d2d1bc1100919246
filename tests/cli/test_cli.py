"""Tests for the heritage-spine CLI."""

from pathlib import Path

import pytest
from typer.testing import CliRunner

from _support.project import ASSETS_FILE
from heritage_spine import __version__
from heritage_spine.cli import app

runner = CliRunner()


@pytest.fixture
def env(project_dir: Path) -> dict[str, str]:
    return {"HERITAGE_BASE_DIR": str(project_dir), "HERITAGE_LOG_FORMAT": "console"}


def run_etl(project_dir: Path, env: dict[str, str], *args: str):
    return runner.invoke(app, ["etl", str(project_dir / ASSETS_FILE), *args], env=env)


class TestRoot:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"heritage-spine {__version__}" in result.output

    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert "etl" in result.output
        assert "index" in result.output


class TestEtl:
    def test_preindexes_file(self, project_dir, env):
        result = run_etl(project_dir, env)
        assert result.exit_code == 0, result.output
        assert "Pre-index complete" in result.output
        assert "assets: 2" in result.output
        assert (project_dir / "prebuild" / "preindex" / "assets.json.pi").exists()

    def test_non_json_file_fails(self, project_dir, env):
        result = runner.invoke(app, ["etl", str(project_dir / "assets.csv")], env=env)
        assert result.exit_code == 1
        assert "Error (InvalidInputError)" in result.output

    def test_prefix_argument(self, project_dir, env):
        result = run_etl(project_dir, env, "ni-")
        assert result.exit_code == 0, result.output
        assert "ni-old-mill" in (project_dir / "prebuild" / "preindex" / "assets.json.pi").read_text()


class TestIndex:
    def test_spatial_site(self, project_dir, env):
        assert run_etl(project_dir, env).exit_code == 0
        result = runner.invoke(app, ["index"], env=env)
        assert result.exit_code == 0, result.output
        assert "Publish complete" in result.output
        assert "mode: spatial" in result.output
        assert (project_dir / "public" / "flatbush.bin").exists()

    def test_chunked_site(self, project_dir, env, tmp_path):
        site = tmp_path / "site"
        assert run_etl(project_dir, env).exit_code == 0
        result = runner.invoke(app, ["index", "--chunked", "--site", str(site)], env=env)
        assert result.exit_code == 0, result.output
        assert "mode: chunked" in result.output
        assert "chunk files: 1" in result.output
        assert (site / "definitions" / "business_data" / "HeritageAsset_0.json").exists()


class TestConfigShow:
    def test_json(self, project_dir, env):
        result = runner.invoke(app, ["config", "show", "--format", "json"], env=env)
        assert result.exit_code == 0
        assert '"for_arches": false' in result.output

    def test_env(self, project_dir, env):
        result = runner.invoke(app, ["config", "show", "--format", "env"], env=env)
        assert "HERITAGE_FOR_ARCHES=False" in result.output
        assert "HERITAGE_LOG_FORMAT=console" in result.output

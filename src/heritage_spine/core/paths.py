"""
Directory layout for a publishing project and path-escape guards.

A project keeps its inputs under ``<base>/prebuild`` and writes the site to an
output directory (``<base>/public`` unless overridden).  Every file name the
pipeline derives from data (slugs, registry names, graph file names) goes
through :func:`safe_join_path` so a crafted title can never write outside its
target directory.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from heritage_spine.core.errors import PathTraversalError


@dataclass(frozen=True)
class PathConfig:
    """Input-side layout rooted at ``prebuild/``."""

    prebuild_dir: Path
    graphs_dir: Path
    resource_models_dir: Path
    branches_dir: Path
    reference_data_dir: Path
    collections_dir: Path
    source_business_data_dir: Path
    preindex_dir: Path
    points_dir: Path

    @classmethod
    def for_base(cls, base_dir: Path | str = ".") -> PathConfig:
        prebuild = Path(base_dir) / "prebuild"
        graphs = prebuild / "graphs"
        reference = prebuild / "reference_data"
        return cls(
            prebuild_dir=prebuild,
            graphs_dir=graphs,
            resource_models_dir=graphs / "resource_models",
            branches_dir=graphs / "branches",
            reference_data_dir=reference,
            collections_dir=reference / "collections",
            source_business_data_dir=prebuild / "business_data",
            preindex_dir=prebuild / "preindex",
            points_dir=prebuild / "fgb",
        )

    @property
    def registry_table_file(self) -> Path:
        return self.preindex_dir / "registries.json"


@dataclass(frozen=True)
class OutputPaths:
    """Output-side layout of the published site."""

    output_dir: Path
    definitions_dir: Path
    graphs_dir: Path
    resource_models_dir: Path
    branches_dir: Path
    reference_data_dir: Path
    collections_dir: Path
    business_data_dir: Path
    fgb_dir: Path
    search_dir: Path

    @classmethod
    def for_output(cls, output_dir: Path | str) -> OutputPaths:
        output = Path(output_dir)
        definitions = output / "definitions"
        graphs = definitions / "graphs"
        reference = definitions / "reference_data"
        return cls(
            output_dir=output,
            definitions_dir=definitions,
            graphs_dir=graphs,
            resource_models_dir=graphs / "resource_models",
            branches_dir=graphs / "branches",
            reference_data_dir=reference,
            collections_dir=reference / "collections",
            business_data_dir=definitions / "business_data",
            fgb_dir=output / "fgb",
            search_dir=output / "pagefind",
        )


def validate_path_within_base(file_path: str | Path, base_dir: str | Path) -> Path:
    """Resolve *file_path* against *base_dir* and reject anything outside it."""
    resolved_base = Path(base_dir).resolve()
    resolved = (resolved_base / file_path).resolve()
    if resolved != resolved_base and resolved_base not in resolved.parents:
        raise PathTraversalError(str(file_path), str(base_dir))
    return resolved


def safe_join_path(base_dir: str | Path, *segments: str) -> Path:
    """Join *segments* under *base_dir*, raising :class:`PathTraversalError` on escape."""
    return validate_path_within_base(Path(*segments), base_dir)


__all__ = [
    "PathConfig",
    "OutputPaths",
    "validate_path_within_base",
    "safe_join_path",
]

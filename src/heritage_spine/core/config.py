"""
Project configuration files under ``prebuild/``.

Three JSON files describe a dataset:

``prebuild.json``
    Sources of business data, dotted field paths for geometry/location,
    configured search filters, permission-file location.
``graphs.json``
    ``models``: graph id → :class:`ModelEntry` (definition name and the
    business-data files populating it).
``permissions.json``
    Model class name → ``true`` / ``false`` / ``{field group alias: bool |
    predicate name}``.

Keys keep the camelCase used on disk; models accept either spelling.

Examples:
    >>> project = ProjectConfig.load(".")
    >>> project.prebuild.geometry_path
    'location_data.geometry.geospatial_coordinates'
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from heritage_spine.core.errors import MissingConfigError
from heritage_spine.core.jsonio import read_json_file
from heritage_spine.core.paths import PathConfig

DEFAULT_GEOMETRY_PATH = "location_data.geometry.geospatial_coordinates"

PermissionValue = Union[bool, str]
PermissionPolicy = dict[str, Union[bool, dict[str, PermissionValue]]]


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class PrebuildSource(_CamelModel):
    """One family of business-data files."""

    resources: str
    public: bool = True
    slug_prefix: str = Field(default="", alias="slugPrefix")
    search_for: list[str] = Field(default_factory=list, alias="searchFor")
    dependencies: list[str] = Field(default_factory=list)
    registries: list[str] = Field(default_factory=list)

    def matches(self, filename: str | Path) -> bool:
        return re.search(self.resources, str(filename)) is not None


class FilterConfig(_CamelModel):
    path: str
    type: Literal["array", "string"] = "string"


class PrebuildPaths(_CamelModel):
    geometry: str = DEFAULT_GEOMETRY_PATH
    location: str | None = None
    registries: str | None = None


class PrebuildConfiguration(_CamelModel):
    custom_datatypes: dict[str, str] = Field(default_factory=dict, alias="customDatatypes")
    sources: list[PrebuildSource] = Field(default_factory=list)
    paths: PrebuildPaths = Field(default_factory=PrebuildPaths)
    filters: dict[str, FilterConfig] = Field(default_factory=dict)
    permissions_file: str | None = Field(default=None, alias="permissionsFile")

    @property
    def geometry_path(self) -> str:
        return self.paths.geometry

    @property
    def location_path(self) -> str | None:
        return self.paths.location

    def sources_for_graph(self, graph_id: str) -> list[PrebuildSource]:
        return [source for source in self.sources if graph_id in source.search_for]


class ModelEntry(_CamelModel):
    """Definition display name plus the business-data files that populate it."""

    name: str
    resources: list[str] = Field(default_factory=list)


class GraphConfiguration(_CamelModel):
    models: dict[str, ModelEntry] = Field(default_factory=dict)


class ProjectConfig(BaseModel):
    """All three project files, loaded together."""

    prebuild: PrebuildConfiguration
    graphs: GraphConfiguration
    permissions: PermissionPolicy

    @classmethod
    def load(cls, base_dir: str | Path = ".") -> ProjectConfig:
        paths = PathConfig.for_base(base_dir)
        prebuild_file = paths.prebuild_dir / "prebuild.json"
        graphs_file = paths.prebuild_dir / "graphs.json"

        if not prebuild_file.exists():
            raise MissingConfigError(
                "prebuild.json", f"You need to set up {prebuild_file} first"
            )
        if not graphs_file.exists():
            raise MissingConfigError(
                "graphs.json", f"You need to set up {graphs_file} first"
            )

        prebuild = PrebuildConfiguration.model_validate(read_json_file(prebuild_file))
        graphs = GraphConfiguration.model_validate(read_json_file(graphs_file))

        permissions_file = (
            Path(base_dir) / prebuild.permissions_file
            if prebuild.permissions_file
            else paths.prebuild_dir / "permissions.json"
        )
        if not permissions_file.exists():
            raise MissingConfigError(
                "permissions.json", f"Permission policy not found at {permissions_file}"
            )
        permissions = read_json_file(permissions_file)

        return cls(prebuild=prebuild, graphs=graphs, permissions=permissions)


__all__ = [
    "DEFAULT_GEOMETRY_PATH",
    "PermissionPolicy",
    "PermissionValue",
    "PrebuildSource",
    "FilterConfig",
    "PrebuildPaths",
    "PrebuildConfiguration",
    "ModelEntry",
    "GraphConfiguration",
    "ProjectConfig",
]

"""
File-backed graph client.

Reads graph definitions from ``prebuild/graphs/resource_models`` and resources
from business-data files (``{"business_data": {"resources": [...]}}``), keeps
every resource it has streamed in an in-process cache, and prunes tiles by
nodegroup permission when a resource is wrapped.

Manifesto:
    The pipeline must run end to end without the production graph engine:
    in tests, in CI and for small datasets.  This client implements the
    :class:`~heritage_spine.core.protocols.GraphClient` contract over plain
    files and nothing more.

Resource document shape::

    {
      "resourceinstance": {"resourceinstanceid": "...", "graph_id": "...",
                           "name": "...", "descriptors": {"en": {"name": "..."}}},
      "tiles": [{"tileid": "...", "nodegroup_id": "...", "parenttile_id": null,
                 "data": {"<nodeid>": <value>}}]
    }

Tags:
    adapter, graph-client, file-backed, testing, heritage-spine
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import AsyncIterator, Callable, Iterable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

from heritage_spine.core.config import ProjectConfig
from heritage_spine.core.errors import LookupFailureError
from heritage_spine.core.jsonio import aread_json_file
from heritage_spine.core.logging import get_logger
from heritage_spine.core.paths import PathConfig
from heritage_spine.core.protocols import PermittedNodegroups
from heritage_spine.publishing.accessors import get_path
from heritage_spine.publishing.graphs import load_graph_file, localized, model_class_name
from heritage_spine.publishing.sources import files_for_regex

if TYPE_CHECKING:
    from heritage_spine.publishing.context import RunContext

__all__ = ["StaticGraphClient", "StaticModel", "StaticResource", "display_value"]

logger = get_logger(__name__)

# Datatypes whose stored values this client knows how to render.  Values of any
# other datatype pass through unchanged unless prebuild.json maps it to one of
# these (``customDatatypes``).
KNOWN_DATATYPES = frozenset(
    {
        "boolean", "concept", "concept-list", "date", "domain-value",
        "domain-value-list", "edtf", "file-list", "geojson-feature-collection",
        "node-value", "non-localized-string", "number", "resource-instance",
        "resource-instance-list", "semantic", "string", "url",
    }
)
REFERENCE_DATATYPES = frozenset({"resource-instance", "resource-instance-list"})


def display_value(value: Any, language: str = "en") -> Any:
    """Collapse a localized string (``{"en": {"value": "..."}}``) to plain text."""
    if (
        isinstance(value, Mapping)
        and value
        and all(isinstance(v, Mapping) and "value" in v for v in value.values())
    ):
        entry = value.get(language) or next(iter(value.values()))
        return entry["value"]
    return value


class StaticModel:
    """A loaded graph plus the nodegroup permissions applied to it."""

    def __init__(self, client: StaticGraphClient, graph: dict[str, Any], include_private: bool):
        self._client = client
        self.graph = graph
        self._default_allow = include_private
        self._permitted: dict[str, Any] = {}
        self._custom_datatypes: dict[str, str] = dict(client.custom_datatypes) if client else {}

        self._nodes = list(graph.get("nodes") or [])
        self._nodegroups = {ng["nodegroupid"]: ng for ng in graph.get("nodegroups") or []}
        self._nodes_by_id = {node.get("nodeid"): node for node in self._nodes}
        self._ng_alias = {
            ng_id: self._nodes_by_id[ng_id].get("alias")
            for ng_id in self._nodegroups
            if ng_id in self._nodes_by_id
        }

    @property
    def graph_id(self) -> str:
        return self.graph.get("graphid", "")

    @property
    def model_class_name(self) -> str:
        return model_class_name(self.graph)

    def set_permitted_nodegroups(self, permitted: PermittedNodegroups) -> None:
        self._permitted = dict(permitted)

    def set_default_allow_all_nodegroups(self, allow: bool) -> None:
        self._default_allow = allow

    def get_node_objects_by_alias(self) -> dict[str, dict[str, Any]]:
        return {node["alias"]: node for node in self._nodes if node.get("alias") is not None}

    async def find(self, resource_id: str, lazy: bool = False) -> StaticResource:
        raw = self._client.cached(resource_id)
        if raw is None:
            raise LookupFailureError(
                f"Resource {resource_id} is not in any loaded business-data file"
            ).with_context(resource_id=resource_id, graph_id=self.graph_id)
        graph_id = raw.get("resourceinstance", {}).get("graph_id")
        if graph_id != self.graph_id:
            raise LookupFailureError(
                f"Resource {resource_id} belongs to graph {graph_id}, not {self.graph_id}"
            ).with_context(resource_id=resource_id, graph_id=self.graph_id)
        return StaticResource(self, raw, self._client.language)

    # ── Datatypes ────────────────────────────────────────────────

    def datatype_of(self, node: Mapping[str, Any]) -> str | None:
        datatype = node.get("datatype")
        return self._custom_datatypes.get(datatype, datatype)

    def render(self, node: Mapping[str, Any], value: Any, language: str) -> Any:
        datatype = self.datatype_of(node)
        if datatype is not None and datatype not in KNOWN_DATATYPES:
            return value
        return display_value(value, language)

    def reference_ids(self, tiles: Iterable[Mapping[str, Any]]) -> list[str]:
        """Resource ids held by resource-instance nodes of *tiles*, first seen first."""
        ids: list[str] = []
        for tile in tiles:
            for node_id, value in (tile.get("data") or {}).items():
                node = self._nodes_by_id.get(node_id)
                if node is None or self.datatype_of(node) not in REFERENCE_DATATYPES:
                    continue
                for item in value if isinstance(value, list) else [value]:
                    resource_id = item.get("resourceId") if isinstance(item, Mapping) else item
                    if isinstance(resource_id, str) and resource_id:
                        ids.append(resource_id)
        return list(dict.fromkeys(ids))

    # ── Tile permissions ─────────────────────────────────────────

    def _tile_allowed(self, tile: Mapping[str, Any]) -> bool:
        alias = self._ng_alias.get(tile.get("nodegroup_id"))
        entry = self._permitted.get(alias) if alias is not None else None
        if entry is None:
            return self._default_allow
        if isinstance(entry, bool):
            return entry
        return bool(entry(tile))

    def prune_tiles(self, tiles: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
        """Permitted tiles whose parent tiles are permitted too."""
        tiles = [dict(t) for t in tiles]
        all_ids = {t.get("tileid") for t in tiles}
        kept = [t for t in tiles if self._tile_allowed(t)]
        while True:
            kept_ids = {t.get("tileid") for t in kept}
            remaining = [
                t
                for t in kept
                if t.get("parenttile_id") is None
                or t["parenttile_id"] in kept_ids
                or t["parenttile_id"] not in all_ids
            ]
            if len(remaining) == len(kept):
                return remaining
            kept = remaining

    def tree(self, tiles: list[dict[str, Any]], language: str) -> dict[str, Any]:
        """Alias-keyed tree of tile values."""
        nodes_by_group: dict[str, list[dict[str, Any]]] = {}
        for node in self._nodes:
            nodes_by_group.setdefault(node.get("nodegroup_id"), []).append(node)
        tile_ids = {t.get("tileid") for t in tiles}
        children: dict[str | None, list[dict[str, Any]]] = {}
        for tile in tiles:
            parent = tile.get("parenttile_id")
            children.setdefault(parent if parent in tile_ids else None, []).append(tile)

        def tile_value(tile: dict[str, Any]) -> Any:
            ng_id = tile.get("nodegroup_id")
            data = tile.get("data") or {}
            group_nodes = nodes_by_group.get(ng_id, [])
            if ng_id in data and len(group_nodes) <= 1:
                return self.render(self._nodes_by_id.get(ng_id) or {}, data[ng_id], language)
            value: dict[str, Any] = {}
            for node in group_nodes:
                node_id = node.get("nodeid")
                if node_id != ng_id and node_id in data:
                    value[node["alias"]] = self.render(node, data[node_id], language)
            for child in children.get(tile.get("tileid"), []):
                place(value, child)
            return value

        def place(target: dict[str, Any], tile: dict[str, Any]) -> None:
            ng_id = tile.get("nodegroup_id")
            alias = self._ng_alias.get(ng_id)
            if alias is None:
                return
            value = tile_value(tile)
            if (self._nodegroups.get(ng_id) or {}).get("cardinality") == "n":
                target.setdefault(alias, []).append(value)
            else:
                target[alias] = value

        root: dict[str, Any] = {}
        for tile in children.get(None, []):
            # A nested group's tile without its parent tile still sits under
            # its parent groups' aliases.
            target = root
            for ancestor in self._ancestors(tile.get("nodegroup_id")):
                alias = self._ng_alias.get(ancestor)
                if alias is None:
                    continue
                existing = target.get(alias)
                if isinstance(existing, list) and existing and isinstance(existing[-1], dict):
                    target = existing[-1]
                elif isinstance(existing, dict):
                    target = existing
                else:
                    target = target.setdefault(alias, {})
            place(target, tile)
        return root

    def _ancestors(self, nodegroup_id: str | None) -> list[str]:
        """Parent nodegroup ids, outermost first."""
        chain: list[str] = []
        parent = (self._nodegroups.get(nodegroup_id) or {}).get("parentnodegroup_id")
        while parent and parent not in chain:
            chain.append(parent)
            parent = (self._nodegroups.get(parent) or {}).get("parentnodegroup_id")
        return list(reversed(chain))


class StaticResource:
    """A resource wrapped by its model; tiles pruned on construction."""

    def __init__(self, model: StaticModel, raw: dict[str, Any], language: str = "en"):
        self._model = model
        self._raw = raw
        self._language = language
        self._tiles = model.prune_tiles(raw.get("tiles") or [])
        self._tree: dict[str, Any] | None = None

    @property
    def _instance(self) -> dict[str, Any]:
        return self._raw.get("resourceinstance") or {}

    @property
    def id(self) -> str:
        return self._instance.get("resourceinstanceid", "")

    @property
    def graph_id(self) -> str:
        return self._instance.get("graph_id", "")

    @property
    def model_class_name(self) -> str:
        return self._model.model_class_name

    async def get_name(self) -> str | None:
        descriptors = self._instance.get("descriptors") or {}
        described = (descriptors.get(self._language) or {}).get("name")
        name = described or self._instance.get("name")
        return localized(name, self._language) if name else None

    async def for_json(self, detailed: bool = True) -> dict[str, Any]:
        if self._tree is None:
            self._tree = self._model.tree(self._tiles, self._language)
        return copy.deepcopy(self._tree)

    async def try_get(self, path: str) -> Any | None:
        if self._tree is None:
            self._tree = self._model.tree(self._tiles, self._language)
        return get_path(self._tree, path)

    async def to_static(self) -> dict[str, Any]:
        static = {k: copy.deepcopy(v) for k, v in self._raw.items() if k != "tiles"}
        static["tiles"] = copy.deepcopy(self._tiles)
        return static

    async def related(self) -> list[StaticResource]:
        client = self._model._client
        if client is None:
            return []
        found: list[StaticResource] = []
        for resource_id in self._model.reference_ids(self._tiles):
            if resource_id == self.id:
                continue
            resource = client.wrap_cached(resource_id)
            if resource is None:
                logger.debug("static_client.related_not_loaded", resource_id=self.id, related_id=resource_id)
                continue
            found.append(resource)
        return found

    def __repr__(self) -> str:
        return f"StaticResource({self.model_class_name}, {self.id!r})"


class StaticGraphClient:
    """Graph client over JSON files on disk.

    Example::

        client = StaticGraphClient.from_paths(PathConfig.for_base("."), project)
        await client.load_graph(graph_id, include_private=False)
        async for resource in client.load_all(graph_id):
            ...
    """

    def __init__(
        self,
        graph_files: Mapping[str, Path],
        resource_files: Callable[[str], Iterable[Path]],
        *,
        language: str = "en",
        custom_datatypes: Mapping[str, str] | None = None,
    ) -> None:
        self._graph_files = dict(graph_files)
        self._resource_files = resource_files
        self.language = language
        self.custom_datatypes: dict[str, str] = dict(custom_datatypes or {})
        self._graphs: dict[str, dict[str, Any]] = {}
        self._models: dict[str, StaticModel] = {}
        self._resources: dict[str, dict[str, Any]] = {}
        self._file_cache: dict[Path, list[dict[str, Any]]] = {}

    @classmethod
    def from_paths(
        cls,
        paths: PathConfig,
        project: ProjectConfig,
        resource_files: Iterable[str | Path] | None = None,
        *,
        base_dir: str | Path | None = None,
        language: str = "en",
        custom_datatypes: Mapping[str, str] | None = None,
    ) -> StaticGraphClient:
        """Client for a project layout.

        A graph's resources come from every source whose ``searchFor`` names
        it, plus the explicitly given *resource_files*.
        """
        root = Path(base_dir) if base_dir is not None else paths.prebuild_dir.parent
        graph_files = {}
        for graph_id, entry in project.graphs.models.items():
            name = entry.name if entry.name.endswith(".json") else f"{entry.name}.json"
            graph_files[graph_id] = paths.resource_models_dir / name
        explicit = [Path(f) for f in resource_files or []]

        def files_for(graph_id: str) -> list[Path]:
            files: list[Path] = []
            for source in project.prebuild.sources_for_graph(graph_id):
                files.extend(
                    files_for_regex(paths.source_business_data_dir, source.resources, root)
                )
            files.extend(explicit)
            return list(dict.fromkeys(files))

        return cls(
            graph_files,
            files_for,
            language=language,
            custom_datatypes=project.prebuild.custom_datatypes if custom_datatypes is None else custom_datatypes,
        )

    @classmethod
    def for_run(
        cls, context: RunContext, resource_files: Iterable[str | Path] | None = None
    ) -> StaticGraphClient:
        """Settings factory: a client for *context*'s project."""
        return cls.from_paths(
            context.paths,
            context.project,
            resource_files,
            base_dir=context.base_dir,
            language=context.settings.default_language,
        )

    # ── Graphs ───────────────────────────────────────────────────

    async def _graph_id_for(self, model_id: str) -> str:
        if model_id in self._graph_files:
            return model_id
        for graph_id in self._graph_files:
            graph = await self._read_graph(graph_id)
            if model_class_name(graph) == model_id:
                return graph_id
        raise LookupFailureError(
            f"Unknown model {model_id}; is it in prebuild/graphs.json?"
        ).with_context(graph_id=model_id)

    async def _read_graph(self, graph_id: str) -> dict[str, Any]:
        if graph_id not in self._graphs:
            path = self._graph_files[graph_id]
            if not path.exists():
                raise LookupFailureError(
                    f"Graph file {path} for {graph_id} does not exist"
                ).with_context(graph_id=graph_id, path=str(path))
            info = await load_graph_file(path)
            self._graphs[graph_id] = info.graph
        return self._graphs[graph_id]

    async def load_graph(self, model_id: str, include_private: bool) -> None:
        graph_id = await self._graph_id_for(model_id)
        if graph_id not in self._models:
            graph = await self._read_graph(graph_id)
            self._models[graph_id] = StaticModel(self, graph, include_private)
            logger.debug("static_client.graph_loaded", graph_id=graph_id)

    async def get(self, model_id: str, include_private: bool) -> StaticModel:
        graph_id = await self._graph_id_for(model_id)
        if graph_id not in self._models:
            await self.load_graph(graph_id, include_private)
        return self._models[graph_id]

    # ── Resources ────────────────────────────────────────────────

    def cached(self, resource_id: str) -> dict[str, Any] | None:
        return self._resources.get(resource_id)

    def wrap_cached(self, resource_id: str) -> StaticResource | None:
        """A cached resource wrapped by its loaded model, if both exist."""
        raw = self._resources.get(resource_id)
        if raw is None:
            return None
        model = self._models.get((raw.get("resourceinstance") or {}).get("graph_id"))
        if model is None:
            return None
        return StaticResource(model, raw, self.language)

    async def _read_resources(self, path: Path) -> list[dict[str, Any]]:
        if path not in self._file_cache:
            data = await aread_json_file(path)
            self._file_cache[path] = list(
                ((data or {}).get("business_data") or {}).get("resources") or []
            )
        return self._file_cache[path]

    async def load_all(self, model_id: str) -> AsyncIterator[StaticResource]:
        graph_id = await self._graph_id_for(model_id)
        model = await self.get(graph_id, include_private=False)
        files = await asyncio.to_thread(lambda: list(self._resource_files(graph_id)))
        for path in files:
            for raw in await self._read_resources(path):
                instance = raw.get("resourceinstance") or {}
                if instance.get("graph_id") != graph_id:
                    continue
                self._resources[instance.get("resourceinstanceid")] = raw
                yield StaticResource(model, raw, self.language)

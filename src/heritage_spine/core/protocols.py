"""
Contracts for the external collaborators the pipeline drives.

The resource graph engine, the full-text search indexer and the spatial codecs
are separate systems.  The pipeline depends only on the shapes below; the
reference implementations live in :mod:`heritage_spine.adapters` and any
object with the same methods can replace them (settings name the factory to
use).

Architecture:
    ::

        GraphClient ──get()──▶ ModelHandle ──find()──▶ ResourceHandle
             │                     │                      ├── get_name()
             │ load_graph()        │ set_permitted_...    ├── try_get(path)
             │ load_all()  (warms the resource cache)     ├── for_json()
                                                          ├── to_static()
                                                          └── related()

        SearchIndexer ──create_index()──▶ SearchIndex
                                           ├── add_custom_record() -> hash
                                           ├── get_index_catalogue()
                                           └── write_files()

        SpatialCodec          serialize() / reindex()
        SpatialIndexBuilder   build(points) -> bytes

Guardrails:
    ❌ DON'T: call ``ModelHandle.find`` before permissions are applied
    ✅ DO: go through :class:`~heritage_spine.publishing.loader.ResourceLoader`

Tags:
    protocol, contracts, graph-client, search, spatial, heritage-spine
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable, Mapping
from typing import Any, Protocol, runtime_checkable

# A nodegroup visibility check evaluated by the graph client per tile.
CheckPermission = Callable[[Any], bool]
PermittedNodegroups = Mapping[str, "bool | CheckPermission"]


# ---------------------------------------------------------------------------
# Resource graph client
# ---------------------------------------------------------------------------


@runtime_checkable
class ResourceView(Protocol):
    """Typed field access over a resource, hiding the model's own shape."""

    async def try_get(self, path: str) -> Any | None:
        """Value at dotted *path*, or ``None`` when any segment is absent."""
        ...


@runtime_checkable
class ResourceHandle(ResourceView, Protocol):
    """A materialized resource instance."""

    @property
    def id(self) -> str:
        ...

    @property
    def graph_id(self) -> str:
        ...

    @property
    def model_class_name(self) -> str:
        ...

    async def get_name(self) -> str | None:
        ...

    async def for_json(self, detailed: bool = True) -> dict[str, Any]:
        """Plain tree of the permitted field values."""
        ...

    async def to_static(self) -> dict[str, Any]:
        """The stored resource document (``resourceinstance`` + tiles), pruned."""
        ...

    async def related(self) -> list[ResourceHandle]:
        """Resources linked from permitted fields, wrapped by their own models.

        Targets whose model is not loaded, or that are not in the cache, are
        left out.
        """
        ...


@runtime_checkable
class ModelHandle(Protocol):
    """A loaded graph definition and its resource-level permission state."""

    @property
    def model_class_name(self) -> str:
        ...

    @property
    def graph_id(self) -> str:
        ...

    def set_permitted_nodegroups(self, permitted: PermittedNodegroups) -> None:
        ...

    def set_default_allow_all_nodegroups(self, allow: bool) -> None:
        ...

    def get_node_objects_by_alias(self) -> Mapping[str, Mapping[str, Any]]:
        ...

    async def find(self, resource_id: str, lazy: bool = False) -> ResourceHandle:
        ...


@runtime_checkable
class GraphClient(Protocol):
    """Entry point to the resource graph engine and its resource cache."""

    async def load_graph(self, model_id: str, include_private: bool) -> None:
        ...

    async def get(self, model_id: str, include_private: bool) -> ModelHandle:
        ...

    def load_all(self, model_id: str) -> AsyncIterator[ResourceHandle]:
        ...


# ---------------------------------------------------------------------------
# Search indexer
# ---------------------------------------------------------------------------


@runtime_checkable
class SearchIndex(Protocol):
    async def add_custom_record(
        self,
        *,
        url: str,
        content: str,
        language: str,
        filters: Mapping[str, list[str]],
        meta: Mapping[str, str],
    ) -> str:
        """Add a record and return its content-addressed hash."""
        ...

    async def get_index_catalogue(self) -> list[tuple[str, str]]:
        """``(hash, record JSON)`` pairs for every record added."""
        ...

    async def write_files(self, output_path: str) -> None:
        ...


@runtime_checkable
class SearchIndexer(Protocol):
    async def create_index(self) -> SearchIndex:
        ...


# ---------------------------------------------------------------------------
# Spatial codec / index builder
# ---------------------------------------------------------------------------


@runtime_checkable
class SpatialCodec(Protocol):
    def serialize(self, feature_collection: Mapping[str, Any]) -> bytes:
        ...

    def reindex(self, data: bytes, name: str, description: str | None = None) -> bytes:
        """Return a spatially sorted copy of *data*."""
        ...


@runtime_checkable
class SpatialIndexBuilder(Protocol):
    def build(self, points: list[tuple[float, float]]) -> bytes:
        ...


PredicateFactory = Callable[[ModelHandle, str], "Awaitable[CheckPermission] | CheckPermission"]


__all__ = [
    "CheckPermission",
    "PermittedNodegroups",
    "PredicateFactory",
    "ResourceView",
    "ResourceHandle",
    "ModelHandle",
    "GraphClient",
    "SearchIndex",
    "SearchIndexer",
    "SpatialCodec",
    "SpatialIndexBuilder",
]

"""Resource Loader — permission-ordered model loading and batched resolution.

WHY
───
A resource's tiles are pruned by its model's nodegroup permissions at the
moment the resource is created.  If a resource is materialized before
permissions are applied it keeps fields it should not, or loses fields it
should keep, and nothing downstream can tell.  Loading therefore runs in three
strict phases, each completed for every model before the next starts.

ARCHITECTURE
────────────
::

    begin(ids) ──▶ Unloaded
                     │ load_graphs()
                     ▼
                 GraphsLoaded
                     │ apply_permissions()
                     ▼
                 PermissionsApplied
                     │ materialize()        (drain load_all: warms the cache)
                     ▼
                 ResourcesMaterialized
                     │ resolve(refs)        (batches of 50, gather fail-fast)
                     ▼
                 [ResourceHandle, ...]

Each step takes the previous step's :class:`PhaseToken` and returns the next.
Tokens can only be minted by the loader that checks them, so a step cannot be
skipped or reordered: doing so raises :class:`PhaseOrderError`.

Example::

    loader = ResourceLoader(client, gate, include_private=False)
    ready = await loader.prepare(list(project.graphs.models))
    refs = await loader.resources_from_file("prebuild/business_data/mills.json")
    handles = await loader.resolve(ready, refs)
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from heritage_spine.core.errors import (
    InvalidInputError,
    LookupFailureError,
    PhaseOrderError,
    PublishError,
)
from heritage_spine.core.jsonio import aread_json_file
from heritage_spine.core.logging import get_logger
from heritage_spine.core.progress import LogProgress, ProgressReporter
from heritage_spine.core.protocols import GraphClient, ModelHandle, ResourceHandle
from heritage_spine.publishing.batching import gather_batches
from heritage_spine.publishing.models import ResourceRef
from heritage_spine.publishing.permissions import PermissionGate

logger = get_logger(__name__)

MISSING_RESOURCE_HINT = (
    "Could not load a resource, perhaps the graph is not in prebuild/graphs.json "
    "or a dependency is missing in prebuild/prebuild.json?"
)


class LoaderPhase(str, Enum):
    UNLOADED = "unloaded"
    GRAPHS_LOADED = "graphs_loaded"
    PERMISSIONS_APPLIED = "permissions_applied"
    RESOURCES_MATERIALIZED = "resources_materialized"


_MINT = object()


@dataclass(frozen=True)
class PhaseToken:
    """Proof that a loader phase completed for a set of models."""

    phase: LoaderPhase
    model_ids: tuple[str, ...]
    issuer: object = field(repr=False, compare=False)
    _mint: object = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self._mint is not _MINT:
            raise PhaseOrderError("Phase tokens are issued by ResourceLoader only")


class ResourceLoader:
    """Drives a :class:`GraphClient` through the loading phases."""

    def __init__(
        self,
        client: GraphClient,
        gate: PermissionGate,
        *,
        include_private: bool = False,
        progress: ProgressReporter | None = None,
        batch_size: int = 50,
    ) -> None:
        self.client = client
        self.gate = gate
        self.include_private = include_private
        self.progress = progress or LogProgress()
        self.batch_size = batch_size
        self._identity = object()
        self._models: dict[str, ModelHandle] = {}

    # ── Tokens ───────────────────────────────────────────────────

    def _mint(self, phase: LoaderPhase, model_ids: Iterable[str]) -> PhaseToken:
        return PhaseToken(phase, tuple(model_ids), self._identity, _MINT)

    def _check(self, token: PhaseToken, expected: LoaderPhase) -> None:
        if not isinstance(token, PhaseToken) or token.issuer is not self._identity:
            raise PhaseOrderError("Phase token was not issued by this loader")
        if token.phase is not expected:
            raise PhaseOrderError(
                f"Expected a {expected.value} token, got {token.phase.value}"
            ).with_context(phase=token.phase.value)

    def begin(self, model_ids: Iterable[str]) -> PhaseToken:
        return self._mint(LoaderPhase.UNLOADED, dict.fromkeys(model_ids))

    # ── Phases ───────────────────────────────────────────────────

    async def load_graphs(self, token: PhaseToken) -> PhaseToken:
        self._check(token, LoaderPhase.UNLOADED)
        total = len(token.model_ids)
        for i, model_id in enumerate(token.model_ids):
            self.progress.log("loader.graph_loading", model=model_id)
            self.progress.progress("graph-loading", "Loading graphs", i + 1, total)
            await self.client.load_graph(model_id, self.include_private)
        return self._mint(LoaderPhase.GRAPHS_LOADED, token.model_ids)

    async def apply_permissions(self, token: PhaseToken) -> PhaseToken:
        self._check(token, LoaderPhase.GRAPHS_LOADED)
        for model_id in token.model_ids:
            model = await self.client.get(model_id, self.include_private)
            self.progress.log("loader.permissions_applying", model=model.model_class_name)
            await self.gate.apply(model)
            self._models[model_id] = model
            self._models[model.graph_id] = model
        return self._mint(LoaderPhase.PERMISSIONS_APPLIED, token.model_ids)

    async def materialize(self, token: PhaseToken) -> PhaseToken:
        self._check(token, LoaderPhase.PERMISSIONS_APPLIED)
        for model_id in token.model_ids:
            await self._drain(model_id)
        return self._mint(LoaderPhase.RESOURCES_MATERIALIZED, token.model_ids)

    async def prepare(self, model_ids: Iterable[str]) -> PhaseToken:
        """All three phases for *model_ids*."""
        token = await self.load_graphs(self.begin(model_ids))
        token = await self.apply_permissions(token)
        return await self.materialize(token)

    async def _drain(self, model_id: str, keep: bool = False) -> list[ResourceHandle]:
        progress_id = f"resource-loading-{model_id}"
        label = f"Loading {model_id} resources"
        kept: list[ResourceHandle] = []
        n = 0
        try:
            async for resource in self.client.load_all(model_id):
                n += 1
                if keep:
                    kept.append(resource)
                if n % 100 == 0:
                    self.progress.progress(progress_id, label, n, n + 1)
        except PublishError:
            self.progress.log(MISSING_RESOURCE_HINT)
            raise
        except Exception as e:
            self.progress.log(MISSING_RESOURCE_HINT)
            raise LookupFailureError(
                f"Failed to materialize resources for {model_id}: {e}", cause=e
            ).with_context(graph_id=model_id) from e
        self.progress.progress(progress_id, label, n, n)
        self.progress.log("loader.resources_loaded", model=model_id, count=n)
        return kept

    # ── Resolution ───────────────────────────────────────────────

    def model(self, token: PhaseToken, graph_id: str) -> ModelHandle:
        self._check(token, LoaderPhase.RESOURCES_MATERIALIZED)
        model = self._models.get(graph_id)
        if model is None:
            raise LookupFailureError(
                f"Graph {graph_id} was not loaded. {MISSING_RESOURCE_HINT}"
            ).with_context(graph_id=graph_id)
        return model

    async def resolve(
        self, token: PhaseToken, refs: Sequence[ResourceRef]
    ) -> list[ResourceHandle]:
        """Look up every reference, *batch_size* at a time.

        Raises:
            LookupFailureError: on the first lookup that fails; no partial
                result is returned.
        """
        self._check(token, LoaderPhase.RESOURCES_MATERIALIZED)
        models = {ref.graph_id: self.model(token, ref.graph_id) for ref in refs}

        async def find(ref: ResourceRef) -> ResourceHandle:
            try:
                return await models[ref.graph_id].find(ref.resource_id, lazy=False)
            except LookupFailureError:
                raise
            except Exception as e:
                raise LookupFailureError(
                    f"Could not resolve resource {ref.resource_id}: {e}", cause=e
                ).with_context(resource_id=ref.resource_id, graph_id=ref.graph_id) from e

        total = len(refs)
        handles: list[ResourceHandle] = []
        async for _, batch in gather_batches(refs, self.batch_size, find):
            handles.extend(batch)
            self.progress.progress("resolve", "Resolving resources", len(handles), total)

        logger.info("loader.resolved", count=len(handles))
        return handles

    # ── Inputs ───────────────────────────────────────────────────

    @staticmethod
    async def resources_from_file(path: str | Path) -> list[ResourceRef]:
        """References for every resource listed in a business-data file."""
        data = await aread_json_file(path)
        try:
            resources = data["business_data"]["resources"]
        except (KeyError, TypeError) as e:
            raise InvalidInputError(
                f"{path} has no business_data.resources list", cause=e
            ).with_context(source_file=str(path)) from e

        refs = []
        for resource in resources:
            instance = resource.get("resourceinstance") or {}
            refs.append(
                ResourceRef(
                    graph_id=instance.get("graph_id", ""),
                    resource_id=instance.get("resourceinstanceid", ""),
                )
            )
        return refs

    async def load_registries(self, registry_model: str = "Registry") -> dict[str, str]:
        """``{registry resource id: primary name}`` for every registry resource.

        Goes through the same phases as any other model; a registry model the
        client does not know yields no registries.
        """
        try:
            token = await self.load_graphs(self.begin([registry_model]))
        except LookupFailureError:
            logger.warning("loader.registry_model_missing", model=registry_model)
            return {}
        await self.apply_permissions(token)
        registries: dict[str, str] = {}
        for registry in await self._drain(registry_model, keep=True):
            name = _primary_name(await registry.try_get("names"))
            if name is None:
                logger.warning("loader.registry_without_primary_name", resource_id=registry.id)
                continue
            registries[registry.id] = name
        logger.info("loader.registries_loaded", count=len(registries))
        return registries


def _primary_name(names: Any) -> str | None:
    if isinstance(names, Mapping):
        names = [names]
    for entry in names or []:
        if not isinstance(entry, Mapping):
            continue
        if str(entry.get("name_use_type")) == "Primary" and entry.get("name") is not None:
            return str(entry["name"])
    return None


__all__ = ["LoaderPhase", "PhaseToken", "ResourceLoader", "MISSING_RESOURCE_HINT"]

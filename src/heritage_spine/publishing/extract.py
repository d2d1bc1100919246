"""Batch Extraction Driver — the pre-index phase.

WHY
───
One business-data file can hold tens of thousands of resources.  Extraction
of each is I/O bound (tree building, document writes), so members of a batch
run concurrently; batches run one after another so memory stays bounded and
the slug counter and Registry Table are only ever touched by one batch.

ARCHITECTURE
────────────
::

    run_preindex(context, "prebuild/business_data/mills.json", prefix)
      │
      ├── source_files()           % expansion, matching source, dependencies
      ├── ResourceLoader           registries, then graphs → permissions → cache
      ├── resolve(refs)            handles for every resource in the file(s)
      └── ExtractionDriver.run()
            ├── batch of 10 ── gather(process_asset) ──▶ Asset | None
            │                     ├── soft-delete check (primary model)
            │                     ├── MetadataExtractor.get_meta (over for_json tree)
            │                     ├── registries (source + path)
            │                     ├── __cache of linked resources
            │                     └── definitions/business_data/{slug}.json
            └── write
                  prebuild/preindex/{file}.pi          indexed assets
                  prebuild/preindex/{file}.pi.assoc    associated assets
                  prebuild/fgb/{registry}---{stem}.json   points
                  prebuild/preindex/registries.json    Registry Table
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from heritage_spine.adapters import resolve_callable_ref
from heritage_spine.core.config import PrebuildSource
from heritage_spine.core.jsonio import awrite_json_file, awrite_text
from heritage_spine.core.logging import LogContext, get_logger
from heritage_spine.core.paths import safe_join_path
from heritage_spine.core.protocols import ResourceHandle
from heritage_spine.publishing.accessors import TreeView
from heritage_spine.publishing.batching import batch_count, iter_batches
from heritage_spine.publishing.context import RunContext
from heritage_spine.publishing.extractor import MetadataExtractor
from heritage_spine.publishing.loader import ResourceLoader
from heritage_spine.publishing.models import Asset, ResourceRef
from heritage_spine.publishing.permissions import PermissionGate
from heritage_spine.publishing.registry import RegistryTable
from heritage_spine.publishing.search import is_visible
from heritage_spine.publishing.slugs import slugify
from heritage_spine.publishing.sources import expand_numbered, source_files

logger = get_logger(__name__)

DEFAULT_STEM = "ix"


@dataclass
class ExtractionResult:
    """What one pre-index run produced."""

    metadata: list[Asset] = field(default_factory=list)
    associated: list[Asset] = field(default_factory=list)
    points: dict[str, list[list[float]]] = field(default_factory=dict)
    skipped: int = 0
    files: list[Path] = field(default_factory=list)


def preindex_names(resource_file: str | Path | None) -> tuple[str, str]:
    """``(basename, stem)`` used to name a run's intermediate files."""
    if resource_file is None:
        return DEFAULT_STEM, DEFAULT_STEM
    name = Path(resource_file).name
    stem = name[: -len(".json")] if name.endswith(".json") else Path(name).stem
    return name, stem


class ExtractionDriver:
    """Runs metadata extraction over resolved handles in bounded batches."""

    def __init__(
        self,
        context: RunContext,
        extractor: MetadataExtractor | None = None,
        *,
        registry_names: Mapping[str, str] | None = None,
    ) -> None:
        self.context = context
        self.settings = context.settings
        self.extractor = extractor or MetadataExtractor(context.project.prebuild, context.slugs)
        self.registry_names = dict(registry_names or {})
        self._soft_delete_warned = False

    def should_index(self, asset: Asset) -> bool:
        """Whether *asset* goes to the metadata list (else: associated list).

        Assets of the models named in ``associated_models`` (by class name or
        graph id) are associated, not indexed.
        """
        associated = set(self.settings.associated_models)
        return asset.type not in associated and asset.meta.graphid not in associated

    async def is_soft_deleted(self, handle: ResourceHandle) -> bool:
        if handle.model_class_name != self.settings.primary_model:
            if not self._soft_delete_warned:
                logger.warning(
                    "extract.no_soft_deletion",
                    model=handle.model_class_name,
                    detail="assuming all present",
                )
                self._soft_delete_warned = True
            return False
        return bool(await handle.try_get(self.settings.soft_delete_field))

    async def registries_for(
        self, handle: ResourceHandle, source: PrebuildSource | None
    ) -> list[str]:
        """Registry names from the source entry plus the configured path."""
        names = list(source.registries) if source is not None else []
        path = self.context.project.prebuild.paths.registries
        if path:
            value = await handle.try_get(path)
            items = value if isinstance(value, list) else ([value] if value else [])
            for item in items:
                registry_id = item.get("resourceId") if isinstance(item, Mapping) else str(item)
                name = self.registry_names.get(registry_id)
                if name is None:
                    logger.warning(
                        "extract.unknown_registry", resource_id=handle.id, registry_id=registry_id
                    )
                    continue
                names.append(name)
        return list(dict.fromkeys(names))

    async def process_asset(
        self,
        handle: ResourceHandle,
        prefix: str | None = None,
        source: PrebuildSource | None = None,
    ) -> Asset | None:
        """Extract, tag and write one resource; ``None`` when soft-deleted."""
        if await self.is_soft_deleted(handle):
            logger.debug("extract.soft_deleted", resource_id=handle.id)
            return None

        view = TreeView(await handle.for_json())
        asset = await self.extractor.get_meta(
            handle,
            view,
            prefix,
            self.context.include_private,
            public=source is None or source.public,
        )

        registries = [
            name
            for name in await self.registries_for(handle, source)
            if self.context.registries.observe(name) is not None
        ]
        asset.meta.set_list("registries", registries)

        document: dict[str, Any] = await handle.to_static()
        document["__scopes"] = asset.meta.get_list("scopes")
        cache = await self.related_cache(handle, prefix)
        if cache:
            document["__cache"] = cache
        document["metadata"] = asset.meta.to_dict()
        target = safe_join_path(self.context.output.business_data_dir, f"{asset.slug}.json")
        await awrite_json_file(target, document)
        return asset

    async def related_cache(
        self, handle: ResourceHandle, prefix: str | None = None
    ) -> dict[str, dict[str, Any]]:
        """Title, slug, location and type of each visible resource *handle* links to.

        Slugs here are not reserved; a linked asset gets its own slug when it
        is extracted.
        """
        include_private = self.context.include_private

        async def describe(related: ResourceHandle) -> Asset:
            return await self.extractor.get_meta(
                related,
                TreeView(await related.for_json()),
                prefix,
                include_private,
                reserve_slug=False,
            )

        linked = await handle.related()
        described = await asyncio.gather(*(describe(related) for related in linked))
        cache: dict[str, dict[str, Any]] = {}
        for related, record in zip(linked, described):
            if not is_visible(record, include_private, self.settings.public_models):
                logger.debug("extract.related_hidden", resource_id=handle.id, related_id=related.id)
                continue
            cache[related.id] = {
                "title": record.meta.title,
                "slug": record.slug,
                "location": record.meta.location,
                "type": record.type,
            }
        return cache

    async def run(
        self,
        handles: Sequence[ResourceHandle],
        resource_file: str | Path | None = None,
        prefix: str | None = None,
        source: PrebuildSource | None = None,
    ) -> ExtractionResult:
        n = self.settings.extract_batch_size
        total = len(handles)
        result = ExtractionResult()
        logger.info("extract.start", total=total, batches=batch_count(total, n))

        for b, batch in enumerate(iter_batches(handles, n)):
            self.context.progress.progress("batch-processing", "Processing assets", b * n, total)
            assets = await asyncio.gather(
                *(self.process_asset(handle, prefix, source) for handle in batch)
            )
            for asset in assets:
                if asset is None:
                    result.skipped += 1
                    continue
                location = asset.location
                if location is not None:
                    for registry in asset.registries:
                        result.points.setdefault(registry, []).append(location)
                if self.should_index(asset):
                    result.metadata.append(asset)
                else:
                    result.associated.append(asset)
            await asyncio.sleep(0)

        self.context.progress.progress("batch-processing", "Processing assets", total, total)
        result.files = await self.write(result, resource_file)
        logger.info(
            "extract.complete",
            indexed=len(result.metadata),
            associated=len(result.associated),
            skipped=result.skipped,
            registries=len(result.points),
        )
        return result

    async def write(
        self, result: ExtractionResult, resource_file: str | Path | None
    ) -> list[Path]:
        paths = self.context.paths
        name, stem = preindex_names(resource_file)
        written: list[Path] = []

        if result.metadata:
            target = safe_join_path(paths.preindex_dir, f"{name}.pi")
            written.append(
                await awrite_json_file(target, [asset.to_dict() for asset in result.metadata])
            )
        if result.associated:
            target = safe_join_path(paths.preindex_dir, f"{name}.pi.assoc")
            written.append(
                await awrite_json_file(target, [asset.to_dict() for asset in result.associated])
            )
        for registry, points in result.points.items():
            if not points:
                continue
            target = safe_join_path(paths.points_dir, f"{slugify(registry)}---{stem}.json")
            written.append(await awrite_text(target, json.dumps(points)))

        written.append(self.context.registries.save(paths.registry_table_file))
        return written


def build_gate(context: RunContext) -> PermissionGate:
    """Permission gate for *context*, with predicates named in settings."""
    predicates = {
        name: resolve_callable_ref(ref)
        for name, ref in context.settings.permission_predicates.items()
    }
    return PermissionGate(
        context.project.permissions,
        include_private=context.include_private,
        predicates=predicates,
    )


async def run_preindex(
    context: RunContext,
    resource_file: str | Path,
    prefix: str | None = None,
) -> ExtractionResult:
    """Pre-index one business-data file (or ``%`` family of files)."""
    paths = context.paths
    files, source = source_files(
        resource_file,
        context.project.prebuild.sources,
        paths.source_business_data_dir,
        context.base_dir,
    )
    primary_files = expand_numbered(resource_file)
    if prefix is None and source is not None and source.slug_prefix:
        prefix = source.slug_prefix

    async with LogContext(run_id=context.run_id, phase="preindex", source_file=str(resource_file)):
        context.progress.log("preindex.start", file=str(resource_file), files=len(files))
        if context.include_private:
            context.progress.log("preindex.non_public_build")

        if paths.registry_table_file.exists() and not len(context.registries):
            context.registries = RegistryTable.load(paths.registry_table_file)

        client = resolve_callable_ref(context.settings.graph_client_factory)(context, files)
        loader = ResourceLoader(
            client,
            build_gate(context),
            include_private=context.include_private,
            progress=context.progress,
            batch_size=context.settings.resolve_batch_size,
        )

        registry_names = await loader.load_registries(context.settings.registry_model)
        ready = await loader.prepare(list(context.project.graphs.models))

        refs: list[ResourceRef] = []
        for path in primary_files:
            refs.extend(await loader.resources_from_file(path))
        handles = await loader.resolve(ready, refs)
        context.progress.log("preindex.loaded", assets=len(handles))

        driver = ExtractionDriver(context, registry_names=registry_names)
        return await driver.run(handles, resource_file, prefix, source)


__all__ = [
    "ExtractionResult",
    "ExtractionDriver",
    "preindex_names",
    "build_gate",
    "run_preindex",
]

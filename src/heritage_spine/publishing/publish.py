"""Publish Orchestrator — the reindex phase.

ARCHITECTURE
────────────
::

    PublishOrchestrator.run(files, definitions_dir)
      1. build_search_index       metadata lists → records → {slug: hash}
      2. get_locations            location + bitmask + hash per asset
      3. load definitions         resource models (+ branches when chunked)
      4. process_graphs           allow-list, prune, write, branch ids
      5. _all.json                graph summaries
      6. copy_reference_data      all (private) / referenced (public)
      7. resource indexes         _{graphId}.json
      8. chunked:  {Model}_{n}.json            spatial: fgb/, flatbush.*
      9. missing branches         reported, not fatal

The Registry Table is replayed from ``prebuild/preindex/registries.json``
before step 1 so bitmasks match those computed while pre-indexing.  If the
file is absent the table is rebuilt from records in load order.

Example::

    context = RunContext.create(get_settings(for_arches=True))
    report = await run_reindex(context)
    print(report.records, report.chunk_files)
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from heritage_spine.adapters import resolve_callable_ref
from heritage_spine.core.logging import LogContext, get_logger
from heritage_spine.core.protocols import SearchIndexer, SpatialCodec, SpatialIndexBuilder
from heritage_spine.publishing.chunks import write_chunked_business_data, write_resource_indexes
from heritage_spine.publishing.context import RunContext
from heritage_spine.publishing.definitions import (
    copy_reference_data,
    process_graphs,
    write_graph_summary,
)
from heritage_spine.publishing.extract import build_gate
from heritage_spine.publishing.graphs import load_graphs_from_definitions
from heritage_spine.publishing.locations import get_locations
from heritage_spine.publishing.registry import RegistryTable
from heritage_spine.publishing.search import build_search_index
from heritage_spine.publishing.spatial import write_spatial_output

logger = get_logger(__name__)


@dataclass
class PublishReport:
    """Counts from one reindex run."""

    assets: int = 0
    records: int = 0
    locations: int = 0
    models: list[str] = field(default_factory=list)
    collections: int = 0
    resource_indexes: int = 0
    chunk_files: list[Path] = field(default_factory=list)
    registry_index: dict[str, int] = field(default_factory=dict)
    missing_branches: list[str] = field(default_factory=list)


class PublishOrchestrator:
    """Runs the reindex steps against pluggable collaborators."""

    def __init__(
        self,
        context: RunContext,
        *,
        indexer: SearchIndexer,
        codec: SpatialCodec,
        index_builder: SpatialIndexBuilder,
    ) -> None:
        self.context = context
        self.settings = context.settings
        self.indexer = indexer
        self.codec = codec
        self.index_builder = index_builder

    @classmethod
    def from_settings(cls, context: RunContext) -> PublishOrchestrator:
        settings = context.settings
        return cls(
            context,
            indexer=resolve_callable_ref(settings.search_indexer_factory)(),
            codec=resolve_callable_ref(settings.spatial_codec_factory)(),
            index_builder=resolve_callable_ref(settings.spatial_index_factory)(),
        )

    def _replay_registries(self) -> None:
        table_file = self.context.paths.registry_table_file
        if table_file.exists():
            self.context.registries = RegistryTable.load(table_file)
            logger.info("publish.registries_replayed", registries=len(self.context.registries))
        else:
            logger.warning(
                "publish.registry_table_missing",
                path=str(table_file),
                detail="rebuilding from records in load order; bitmasks may differ from pre-index",
            )

    async def run(
        self,
        files: Iterable[str | Path] | None = None,
        definitions_dir: str | Path | None = None,
    ) -> PublishReport:
        context = self.context
        settings = self.settings
        include_private = context.include_private
        chunked = settings.output_mode == "chunked"
        report = PublishReport()

        self._replay_registries()

        # 1-2. Search index and spatial entries
        search = await build_search_index(context, self.indexer, files)
        report.assets = len(search.assets)
        report.records = len(search.hashes)
        if not search.assets:
            logger.warning("publish.no_asset_metadata")
        locations = (
            await get_locations(
                search.index,
                search.assets,
                context.registries,
                include_private=include_private,
                public_models=settings.public_models,
                language=settings.default_language,
            )
            if search.assets
            else []
        )
        report.locations = len(locations)

        # 3-5. Graph definitions
        definitions = Path(definitions_dir) if definitions_dir else context.paths.prebuild_dir
        graphs = await load_graphs_from_definitions(
            definitions / "graphs" / "resource_models",
            definitions / "graphs" / "branches" if chunked else None,
        )
        published = await process_graphs(
            graphs,
            build_gate(context),
            context.output,
            include_private=include_private,
            public_models=settings.public_models,
        )
        report.models = [info.model_class_name for info in published.models]
        await write_graph_summary(published, context.output)

        # 6. Reference data
        report.collections = await copy_reference_data(
            published,
            context.paths.collections_dir,
            context.output,
            include_private=include_private,
            for_arches=settings.for_arches,
        )

        # 7. Resource indexes
        summaries = await write_resource_indexes(
            context, search.assets, (info.graph_id for info in published.models)
        )
        report.resource_indexes = len(summaries)

        # 8-9. Mode-specific output
        if chunked:
            report.chunk_files = await write_chunked_business_data(
                context, search.assets, published.model_names
            )
            report.missing_branches = published.missing_branches
            if report.missing_branches:
                logger.warning("publish.branches_missing", publication_ids=report.missing_branches)
        else:
            report.registry_index = await write_spatial_output(
                context, locations, self.codec, self.index_builder
            )

        logger.info(
            "publish.complete",
            assets=report.assets,
            records=report.records,
            models=len(report.models),
            mode=settings.output_mode,
        )
        return report


async def run_reindex(
    context: RunContext,
    files: Iterable[str | Path] | None = None,
    definitions_dir: str | Path | None = None,
) -> PublishReport:
    """Reindex with the collaborators named in settings."""
    async with LogContext(run_id=context.run_id, phase="reindex"):
        return await PublishOrchestrator.from_settings(context).run(files, definitions_dir)


__all__ = ["PublishReport", "PublishOrchestrator", "run_reindex"]

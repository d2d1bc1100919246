"""
Search index construction from metadata lists.

Every asset of a visible model type becomes one custom record::

    url      /asset/?slug=<slug>
    content  the asset's text content
    filters  {"tags": registries, "designations": designations, <filter>: values}
    meta     the asset's flat metadata

The indexer returns a hash per record; the reindex phase joins those hashes
onto spatial entries by slug.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from heritage_spine.core.jsonio import aread_json_file
from heritage_spine.core.logging import get_logger
from heritage_spine.core.protocols import SearchIndex, SearchIndexer
from heritage_spine.publishing.context import RunContext
from heritage_spine.publishing.models import Asset

logger = get_logger(__name__)

METADATA_SUFFIX = ".pi"


def asset_url(slug: str) -> str:
    return f"/asset/?slug={slug}"


def metadata_files(preindex_dir: Path) -> list[Path]:
    """All metadata lists (``*.pi``, not ``*.pi.assoc``) in name order."""
    if not preindex_dir.is_dir():
        return []
    return sorted(p for p in preindex_dir.iterdir() if p.name.endswith(METADATA_SUFFIX))


async def load_metadata(files: Iterable[str | Path]) -> list[Asset]:
    assets: list[Asset] = []
    for path in files:
        records = await aread_json_file(path)
        assets.extend(Asset.from_dict(record) for record in records)
    return assets


def is_visible(asset: Asset, include_private: bool, public_models: Iterable[str]) -> bool:
    return include_private or asset.type in set(public_models)


@dataclass
class SearchBuild:
    index: SearchIndex
    assets: list[Asset]
    hashes: dict[str, str] = field(default_factory=dict)


async def build_search_index(
    context: RunContext,
    indexer: SearchIndexer,
    files: Iterable[str | Path] | None = None,
) -> SearchBuild:
    """Index every visible asset from *files* (default: all metadata lists)."""
    settings = context.settings
    chosen = list(files) if files is not None else metadata_files(context.paths.preindex_dir)
    logger.info("search.loading", files=len(chosen) if files is not None else "all")

    index = await indexer.create_index()
    assets = await load_metadata(chosen)
    filter_names = list(context.project.prebuild.filters)

    hashes: dict[str, str] = {}
    for asset in assets:
        if not is_visible(asset, context.include_private, settings.public_models):
            continue
        registries = asset.registries
        for registry in registries:
            context.registries.observe(registry)
        filters = {
            "tags": registries,
            "designations": asset.meta.get_list("designations"),
        }
        for name in filter_names:
            filters[name] = asset.meta.get_list(name)
        hashes[asset.slug] = await index.add_custom_record(
            url=asset_url(asset.slug),
            content=asset.content,
            language=settings.default_language,
            filters=filters,
            meta=asset.meta.to_dict(),
        )

    logger.info("search.indexed", records=len(hashes), loaded=len(assets))
    await index.write_files(str(context.output.search_dir))
    return SearchBuild(index=index, assets=assets, hashes=hashes)


__all__ = [
    "asset_url",
    "metadata_files",
    "load_metadata",
    "is_visible",
    "SearchBuild",
    "build_search_index",
]

"""
Spatial entries: location + registry bitmask + search hash per asset.

The search index is the authority for record hashes, so slugs are mapped to
hashes from its catalogue rather than from the values returned while adding.
Assets without a usable ``[x, y]`` location are left out.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from heritage_spine.core.jsonio import safe_json_parse
from heritage_spine.core.logging import get_logger
from heritage_spine.core.protocols import SearchIndex
from heritage_spine.publishing.models import Asset, IndexEntry
from heritage_spine.publishing.registry import RegistryTable
from heritage_spine.publishing.search import asset_url, is_visible

logger = get_logger(__name__)

Feature = dict[str, Any]


async def catalogue_hashes(index: SearchIndex) -> dict[str, str]:
    """``{slug: hash}`` for every catalogued record that carries a slug."""
    hashes: dict[str, str] = {}
    for record_hash, entry in await index.get_index_catalogue():
        record = safe_json_parse(entry, f"search entry with hash {record_hash}")
        slug = (record.get("meta") or {}).get("slug")
        if slug:
            hashes[slug] = record_hash
    return hashes


async def get_locations(
    index: SearchIndex,
    assets: Iterable[Asset],
    registries: RegistryTable,
    *,
    include_private: bool = False,
    public_models: Iterable[str] = (),
    language: str = "en",
) -> list[tuple[IndexEntry, Feature]]:
    hashes = await catalogue_hashes(index)
    public_models = list(public_models)
    entries: list[tuple[IndexEntry, Feature]] = []
    invalid = 0

    for asset in assets:
        if not asset.meta.location or not is_visible(asset, include_private, public_models):
            continue
        loc = asset.location
        if loc is None:
            invalid += 1
            continue
        asset_registries = asset.registries
        regcode = registries.encode(asset_registries)
        record_hash = hashes.get(asset.slug, "")
        feature: Feature = {
            "id": record_hash,
            "type": "Feature",
            "properties": {
                "url": asset_url(asset.slug),
                "content": asset.content,
                "language": language,
                "regcode": regcode,
                "filters": {
                    "tags": asset_registries,
                    "designations": asset.meta.get_list("designations"),
                },
                "meta": asset.meta.to_dict(),
            },
            "geometry": {"type": "Point", "coordinates": loc},
        }
        entries.append((IndexEntry(loc=(loc[0], loc[1]), hash=record_hash, regcode=regcode), feature))

    if invalid:
        logger.warning("locations.invalid_points_skipped", count=invalid)
    logger.info("locations.built", count=len(entries))
    return entries


__all__ = ["Feature", "catalogue_hashes", "get_locations"]

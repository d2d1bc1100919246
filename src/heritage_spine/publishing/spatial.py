"""
Spatial output for the map client.

::

    prebuild/fgb/<registry>---<stem>.json   (point lists, one per source file)
                    │ group by registry
                    ▼
    <out>/fgb/<registry>.fgb     one MultiPoint feature {registry, regcode}
    <out>/fgb/index.json         {registry: regcode}
    <out>/fgb/<layer>-wo-index.fgb   every located asset, input order
    <out>/fgb/<layer>.fgb            same, spatially re-indexed
    <out>/flatbush.bin           nearest-neighbour index over the same points
    <out>/flatbush.json          [[hash, regcode], ...] parallel to the index
"""

from __future__ import annotations

import json
from pathlib import Path

from heritage_spine.core.jsonio import aread_json_file, awrite_bytes, awrite_text
from heritage_spine.core.logging import get_logger
from heritage_spine.core.paths import safe_join_path
from heritage_spine.core.protocols import SpatialCodec, SpatialIndexBuilder
from heritage_spine.publishing.context import RunContext
from heritage_spine.publishing.locations import Feature
from heritage_spine.publishing.models import IndexEntry

logger = get_logger(__name__)

REGISTRY_SEPARATOR = "---"


def group_point_files(points_dir: Path) -> dict[str, list[Path]]:
    """Point list files grouped by the registry slug in their name."""
    groups: dict[str, list[Path]] = {}
    if not points_dir.is_dir():
        return groups
    for path in sorted(points_dir.iterdir()):
        if not path.name.endswith(".json"):
            continue
        registry = path.name.split(REGISTRY_SEPARATOR)[0]
        groups.setdefault(registry, []).append(path)
    return groups


async def write_registry_layers(
    context: RunContext, codec: SpatialCodec
) -> dict[str, int]:
    """One feature file per registry plus ``index.json``; returns the index."""
    fgb_dir = context.output.fgb_dir
    index: dict[str, int] = {}

    for registry, files in group_point_files(context.paths.points_dir).items():
        if registry not in context.registries:
            logger.warning("spatial.registry_not_in_table", registry=registry)
        regcode = context.registries.encode([registry])
        index[registry] = regcode

        points: list[list[float]] = []
        for path in files:
            points.extend(await aread_json_file(path))

        collection = {
            "type": "FeatureCollection",
            "features": [
                {
                    "type": "Feature",
                    "properties": {"registry": registry, "regcode": regcode},
                    "geometry": {"type": "MultiPoint", "coordinates": points},
                }
            ],
        }
        await awrite_bytes(safe_join_path(fgb_dir, f"{registry}.fgb"), codec.serialize(collection))
        logger.debug("spatial.registry_written", registry=registry, points=len(points))

    await awrite_text(fgb_dir / "index.json", json.dumps(index))
    return index


async def write_asset_layers(
    context: RunContext,
    locations: list[tuple[IndexEntry, Feature]],
    codec: SpatialCodec,
    index_builder: SpatialIndexBuilder,
) -> None:
    """The all-asset feature files and the nearest-neighbour index."""
    output = context.output
    layer = context.settings.spatial_layer_name
    entries = [entry for entry, _ in locations]
    collection = {"type": "FeatureCollection", "features": [feature for _, feature in locations]}

    plain = codec.serialize(collection)
    await awrite_bytes(safe_join_path(output.fgb_dir, f"{layer}-wo-index.fgb"), plain)
    await awrite_bytes(
        safe_join_path(output.fgb_dir, f"{layer}.fgb"),
        codec.reindex(plain, layer, f"All published {layer}"),
    )

    for name in ("flatbush.bin", "flatbush.json"):
        (output.output_dir / name).unlink(missing_ok=True)
    await awrite_bytes(
        output.output_dir / "flatbush.bin",
        index_builder.build([entry.loc for entry in entries]),
    )
    await awrite_text(
        output.output_dir / "flatbush.json",
        json.dumps([[entry.hash, entry.regcode] for entry in entries]),
    )
    logger.info("spatial.indexed", assets=len(entries))


async def write_spatial_output(
    context: RunContext,
    locations: list[tuple[IndexEntry, Feature]],
    codec: SpatialCodec,
    index_builder: SpatialIndexBuilder,
) -> dict[str, int]:
    index = await write_registry_layers(context, codec)
    await write_asset_layers(context, locations, codec, index_builder)
    return index


__all__ = [
    "group_point_files",
    "write_registry_layers",
    "write_asset_layers",
    "write_spatial_output",
]

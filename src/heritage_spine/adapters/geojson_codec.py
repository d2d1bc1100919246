"""
GeoJSON spatial codec and a Hilbert-sorted point index.

:class:`GeoJsonCodec` stores feature collections as UTF-8 GeoJSON; its
``reindex`` returns a copy with features sorted along a Hilbert curve so that
nearby features sit near each other in the file.

:class:`SortedPointIndexBuilder` packs points into a flat binary index::

    offset  size      field
    0       4         magic  b"HSPI"
    4       1         version (1)
    5       4         point count N          (little-endian uint32)
    9       32        bbox minx miny maxx maxy (float64)
    41      N * 20    x, y (float64), input position (uint32), in Hilbert order

The input position maps each packed point back to the caller's parallel
arrays (``flatbush.json`` holds ``[hash, regcode]`` in input order).

Tags:
    adapter, spatial, geojson, hilbert, heritage-spine
"""

from __future__ import annotations

import json
import struct
from collections.abc import Mapping, Sequence
from typing import Any

from heritage_spine.core.jsonio import safe_json_parse

__all__ = ["GeoJsonCodec", "SortedPointIndexBuilder", "hilbert_index", "read_point_index"]

HILBERT_MAX = (1 << 16) - 1
INDEX_MAGIC = b"HSPI"
INDEX_VERSION = 1
_HEADER = struct.Struct("<4sBI4d")
_RECORD = struct.Struct("<ddI")


def hilbert_index(x: int, y: int, order: int = 16) -> int:
    """Distance of integer cell (x, y) along a Hilbert curve of side 2**order."""
    n = 1 << order
    d = 0
    s = n >> 1
    while s > 0:
        rx = 1 if x & s else 0
        ry = 1 if y & s else 0
        d += s * s * ((3 * rx) ^ ry)
        if ry == 0:
            if rx == 1:
                x = n - 1 - x
                y = n - 1 - y
            x, y = y, x
        s >>= 1
    return d


def _bbox(points: Sequence[Sequence[float]]) -> tuple[float, float, float, float]:
    xs = [p[0] for p in points]
    ys = [p[1] for p in points]
    return min(xs), min(ys), max(xs), max(ys)


def _hilbert_keys(points: Sequence[Sequence[float]]) -> list[int]:
    minx, miny, maxx, maxy = _bbox(points)
    width = (maxx - minx) or 1.0
    height = (maxy - miny) or 1.0
    return [
        hilbert_index(
            int(HILBERT_MAX * (p[0] - minx) / width),
            int(HILBERT_MAX * (p[1] - miny) / height),
        )
        for p in points
    ]


def _anchor(geometry: Mapping[str, Any] | None) -> list[float] | None:
    """A representative coordinate of *geometry* for sorting."""
    coordinates: Any = (geometry or {}).get("coordinates")
    while (
        isinstance(coordinates, list)
        and coordinates
        and isinstance(coordinates[0], list)
    ):
        coordinates = coordinates[0]
    if isinstance(coordinates, list) and len(coordinates) >= 2:
        return [float(coordinates[0]), float(coordinates[1])]
    return None


class GeoJsonCodec:
    """Feature collections as GeoJSON bytes."""

    def serialize(self, feature_collection: Mapping[str, Any]) -> bytes:
        return json.dumps(feature_collection, ensure_ascii=False).encode("utf-8")

    def reindex(self, data: bytes, name: str, description: str | None = None) -> bytes:
        collection = safe_json_parse(data, f"feature collection {name}")
        features = list(collection.get("features") or [])

        anchored = [(feature, _anchor(feature.get("geometry"))) for feature in features]
        located = [(f, a) for f, a in anchored if a is not None]
        unlocated = [f for f, a in anchored if a is None]
        if located:
            keys = _hilbert_keys([a for _, a in located])
            order = sorted(range(len(located)), key=keys.__getitem__)
            features = [located[i][0] for i in order] + unlocated

        result = dict(collection)
        result["name"] = name
        if description is not None:
            result["description"] = description
        result["features"] = features
        return self.serialize(result)


class SortedPointIndexBuilder:
    """Packs points in Hilbert order for nearest-neighbour lookups."""

    def build(self, points: list[tuple[float, float]]) -> bytes:
        if not points:
            return _HEADER.pack(INDEX_MAGIC, INDEX_VERSION, 0, 0.0, 0.0, 0.0, 0.0)
        keys = _hilbert_keys(points)
        order = sorted(range(len(points)), key=keys.__getitem__)
        minx, miny, maxx, maxy = _bbox(points)
        parts = [_HEADER.pack(INDEX_MAGIC, INDEX_VERSION, len(points), minx, miny, maxx, maxy)]
        for i in order:
            x, y = points[i]
            parts.append(_RECORD.pack(float(x), float(y), i))
        return b"".join(parts)


def read_point_index(data: bytes) -> list[tuple[float, float, int]]:
    """Unpack an index built by :class:`SortedPointIndexBuilder`."""
    magic, version, count, *_ = _HEADER.unpack_from(data, 0)
    if magic != INDEX_MAGIC or version != INDEX_VERSION:
        raise ValueError("Not a point index")
    return [
        _RECORD.unpack_from(data, _HEADER.size + n * _RECORD.size) for n in range(count)
    ]

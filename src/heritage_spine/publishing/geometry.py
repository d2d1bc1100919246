"""
Geometry reduction: a GeoJSON value to the single point an asset is mapped at.

Rules:
    - FeatureCollection whose first feature is a Polygon/MultiPolygon: the
      unweighted mean of every vertex of ``coordinates[0]`` (flattened one
      level further for multi-polygons), returned as a Point; a polygon with
      no usable vertices reduces to ``None``.
    - Any other FeatureCollection: the first feature's geometry unchanged.
    - A bare geometry object or coordinate list: unchanged.

The mean of vertices is not an area centroid; it is what the map marker uses.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from heritage_spine.core.logging import get_logger

logger = get_logger(__name__)

Point = list[float]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def is_point(value: Any) -> bool:
    """True for a 2-number coordinate pair."""
    return _is_sequence(value) and len(value) == 2 and all(_is_number(v) for v in value)


def polygon_centroid(coordinates: Any) -> Point | None:
    """Mean of the vertices in ``coordinates[0]``, or ``None`` if there are none.

    For a Polygon ``coordinates[0]`` is the outer ring; for a MultiPolygon it
    is the first polygon, whose rings are flattened into one vertex list.

    >>> polygon_centroid([[[0, 0], [2, 0], [2, 2], [0, 2]]])
    [1.0, 1.0]
    """
    if not _is_sequence(coordinates) or not coordinates or not _is_sequence(coordinates[0]):
        return None
    vertices = list(coordinates[0])
    if vertices and not is_point(vertices[0]):
        vertices = [
            vertex for ring in vertices if _is_sequence(ring) for vertex in ring
        ]
    if not vertices or not all(is_point(v) for v in vertices):
        return None
    xs = [float(v[0]) for v in vertices]
    ys = [float(v[1]) for v in vertices]
    return [sum(xs) / len(xs), sum(ys) / len(ys)]


def reduce_geometry(value: Any) -> Any:
    """Reduce a FeatureCollection to its representative geometry.

    ``None`` when the collection has no usable first geometry.
    """
    if not isinstance(value, Mapping) or value.get("type") != "FeatureCollection":
        return value

    features = value.get("features") or []
    if not features or not isinstance(features[0], Mapping):
        return None
    geometry = features[0].get("geometry")
    if not isinstance(geometry, Mapping):
        return None
    if geometry.get("type") in ("Polygon", "MultiPolygon"):
        centroid = polygon_centroid(geometry.get("coordinates"))
        if centroid is None:
            logger.debug("geometry.empty_polygon", geometry_type=geometry.get("type"))
            return None
        return {"type": "Point", "coordinates": centroid}
    return geometry.get("coordinates")


def coordinates_of(value: Any) -> Any:
    """Coordinates of a geometry object, or *value* itself if already raw."""
    if isinstance(value, Mapping):
        return value.get("coordinates")
    return value


def to_location(value: Any) -> Point | None:
    """Single ``[x, y]`` location from a (reduced or raw) geometry, if any."""
    coordinates = coordinates_of(reduce_geometry(value))
    if is_point(coordinates):
        return [float(coordinates[0]), float(coordinates[1])]
    return None


__all__ = [
    "Point",
    "is_point",
    "polygon_centroid",
    "reduce_geometry",
    "coordinates_of",
    "to_location",
]

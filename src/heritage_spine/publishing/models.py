"""
Records passed between the pre-index and reindex phases.

An :class:`Asset` is what extraction produces for one resource.  Its
:class:`AssetMetadata` is the flat, string-valued projection the search index
stores as record metadata, so list-valued facets (registries, designations,
scopes, configured filters) are kept as serialized JSON lists::

    {
      "meta": {
        "resourceinstanceid": "a1b2c3d4-...",
        "graphid": "076f9381-...",
        "title": "Old Mill",
        "slug": "old-mill-a1b2c3",
        "location": "[-5.9, 54.6]",
        "scopes": "[]",
        "registries": "[\\"historic-monuments\\"]",
        "designations": "[]"
      },
      "content": "Old Mill",
      "slug": "old-mill-a1b2c3",
      "type": "HeritageAsset"
    }

Metadata lists (``preindex/*.pi``) are JSON arrays of these records.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from heritage_spine.core.jsonio import safe_json_parse
from heritage_spine.publishing.geometry import is_point

_CORE_FIELDS = (
    "resourceinstanceid",
    "graphid",
    "title",
    "slug",
    "geometry",
    "location",
    "scopes",
    "registries",
    "designations",
)


@dataclass
class AssetMetadata:
    """Flat string facets of one asset."""

    resourceinstanceid: str
    graphid: str
    title: str
    slug: str
    geometry: str | None = None
    location: str | None = None
    scopes: str = "[]"
    registries: str = "[]"
    designations: str = "[]"
    extra: dict[str, str] = field(default_factory=dict)

    def get_list(self, name: str) -> list[Any]:
        """Parse a serialized list facet; absent facets are empty."""
        raw = getattr(self, name, None) if name in _CORE_FIELDS else self.extra.get(name)
        if not raw:
            return []
        value = safe_json_parse(raw, f"asset {self.slug} {name}")
        return value if isinstance(value, list) else [value]

    def set_list(self, name: str, values: list[Any]) -> None:
        raw = json.dumps(list(values), ensure_ascii=False)
        if name in _CORE_FIELDS:
            setattr(self, name, raw)
        else:
            self.extra[name] = raw

    @property
    def point(self) -> list[float] | None:
        """Location as ``[x, y]``; anything else reads as absent."""
        if not self.location:
            return None
        value = safe_json_parse(self.location, f"asset {self.slug} location")
        return value if is_point(value) else None

    def to_dict(self) -> dict[str, str]:
        data = {
            "resourceinstanceid": self.resourceinstanceid,
            "graphid": self.graphid,
            "title": self.title,
            "slug": self.slug,
        }
        if self.geometry is not None:
            data["geometry"] = self.geometry
        if self.location is not None:
            data["location"] = self.location
        data["scopes"] = self.scopes
        data["registries"] = self.registries
        data["designations"] = self.designations
        data.update(self.extra)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AssetMetadata:
        return cls(
            resourceinstanceid=data.get("resourceinstanceid", ""),
            graphid=data.get("graphid", ""),
            title=data.get("title", ""),
            slug=data.get("slug", ""),
            geometry=data.get("geometry"),
            location=data.get("location"),
            scopes=data.get("scopes") or "[]",
            registries=data.get("registries") or "[]",
            designations=data.get("designations") or "[]",
            extra={k: v for k, v in data.items() if k not in _CORE_FIELDS},
        )


@dataclass
class Asset:
    """Extraction result for one resource."""

    meta: AssetMetadata
    content: str
    slug: str
    type: str

    @property
    def resource_id(self) -> str:
        return self.meta.resourceinstanceid

    @property
    def graph_id(self) -> str:
        return self.meta.graphid

    @property
    def location(self) -> list[float] | None:
        return self.meta.point

    @property
    def registries(self) -> list[str]:
        return self.meta.get_list("registries")

    def to_dict(self) -> dict[str, Any]:
        return {
            "meta": self.meta.to_dict(),
            "content": self.content,
            "slug": self.slug,
            "type": self.type,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Asset:
        meta = AssetMetadata.from_dict(data.get("meta") or {})
        return cls(
            meta=meta,
            content=data.get("content", ""),
            slug=data.get("slug") or meta.slug,
            type=data.get("type", ""),
        )


@dataclass(frozen=True)
class IndexEntry:
    """One point of the nearest-neighbour index."""

    loc: tuple[float, float]
    hash: str
    regcode: int


@dataclass(frozen=True)
class ResourceRef:
    """A resource named by a business-data file."""

    graph_id: str
    resource_id: str


__all__ = ["AssetMetadata", "Asset", "IndexEntry", "ResourceRef"]

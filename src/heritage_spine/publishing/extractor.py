"""
Metadata extraction: one materialized resource → one :class:`Asset`.

Steps, in order:

1. model type from the resource's model class name
2. title from the name accessor, ``"(unknown)"`` when absent
3. geometry at the configured dotted path; location at its own path, falling
   back to the geometry; polygons reduced to a vertex-mean point
4. slug from title + identifier + optional prefix
5. registries start empty, content is the title
6. configured filters resolved by dotted path into serialized lists

Missing geometry, location or title only produce warnings.  A title that
cannot be slugged falls back to the placeholder title; everything else
propagates and fails the asset.
"""

from __future__ import annotations

import json
from typing import Any

from heritage_spine.core.config import PrebuildConfiguration
from heritage_spine.core.errors import InvalidInputError
from heritage_spine.core.logging import get_logger
from heritage_spine.core.protocols import ResourceHandle, ResourceView
from heritage_spine.publishing.geometry import to_location
from heritage_spine.publishing.models import Asset, AssetMetadata
from heritage_spine.publishing.slugs import SlugGenerator

logger = get_logger(__name__)

UNKNOWN_TITLE = "(unknown)"


def _dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


class MetadataExtractor:
    """Builds :class:`Asset` records using the project's configured paths."""

    def __init__(self, config: PrebuildConfiguration, slugs: SlugGenerator) -> None:
        self.config = config
        self.slugs = slugs

    async def get_meta(
        self,
        resource: ResourceHandle,
        view: ResourceView | None = None,
        prefix: str | None = None,
        include_private: bool = False,
        *,
        public: bool = True,
        reserve_slug: bool = True,
    ) -> Asset:
        """Extract the asset record for *resource*.

        *view* is the field accessor to read paths from; it defaults to the
        resource itself.  Scopes are ``["public"]`` only for a public build of
        a public source.  With *reserve_slug* off the slug is the plain base and
        the run's slug counter is untouched, for records describing another
        asset's links.
        """
        view = view or resource
        model_type = resource.model_class_name

        title = await resource.get_name()
        if not title:
            logger.warning("asset.no_title", resource_id=resource.id, model=model_type)
            title = UNKNOWN_TITLE

        geometry = await view.try_get(self.config.geometry_path)
        if geometry is None:
            logger.warning(
                "asset.no_geometry",
                resource_id=resource.id,
                path=self.config.geometry_path,
            )

        raw_location = None
        if self.config.location_path:
            raw_location = await view.try_get(self.config.location_path)
        if raw_location is None:
            raw_location = geometry

        location = to_location(raw_location) if raw_location is not None else None
        if raw_location is None:
            logger.warning("asset.no_location", resource_id=resource.id)
        elif location is None:
            logger.warning(
                "asset.unusable_location",
                resource_id=resource.id,
                kind=type(raw_location).__name__,
            )

        slug = self._slug(title, resource.id, prefix, reserve_slug)

        meta = AssetMetadata(
            resourceinstanceid=resource.id,
            graphid=resource.graph_id,
            title=title,
            slug=slug,
            geometry=_dumps(geometry) if geometry is not None else None,
            location=_dumps(location) if location is not None else None,
            scopes=_dumps(["public"] if public and not include_private else []),
        )

        for name, filter_config in self.config.filters.items():
            raw = await view.try_get(filter_config.path)
            if filter_config.type == "array":
                if isinstance(raw, list):
                    values = raw
                else:
                    values = [raw] if raw else []
            else:
                values = [raw] if raw else []
            meta.set_list(name, values)

        return Asset(meta=meta, content=title, slug=slug, type=model_type)

    def _slug(self, title: str, resource_id: str, prefix: str | None, reserve: bool = True) -> str:
        make = self.slugs.to_slug if reserve else self.slugs.preview
        try:
            return make(title, resource_id, prefix)
        except InvalidInputError:
            if title == UNKNOWN_TITLE or not resource_id:
                raise
            logger.warning("asset.unsluggable_title", resource_id=resource_id, title=title)
            return make(UNKNOWN_TITLE, resource_id, prefix)


__all__ = ["UNKNOWN_TITLE", "MetadataExtractor"]

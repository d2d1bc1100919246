"""
Runtime settings for the publishing pipeline.

:class:`PublishSettings` is the single validated source of truth for knobs
that change between runs (output directory, batch sizes, public/private
build) as opposed to the project files under ``prebuild/`` that describe the
dataset itself (see :mod:`heritage_spine.core.config`).

All fields can be set via ``HERITAGE_*`` environment variables or a ``.env``
file.  Two legacy variable names are honoured: ``OUTPUT_DIR`` and
``FOR_ARCHES`` (chunked business-data output instead of spatial output).

Examples:
    >>> settings = get_settings()
    >>> settings.chunk_size_chars
    10000000
    >>> settings.output_mode
    'spatial'

Tags:
    settings, configuration, pydantic, environment, heritage-spine
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PUBLIC_MODELS = [
    "HeritageAsset",
    "Person",
    "Organization",
    "Event",
]


class PublishSettings(BaseSettings):
    """Pipeline configuration resolved from the environment."""

    model_config = SettingsConfigDict(
        env_prefix="HERITAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ── Paths ────────────────────────────────────────────────────
    base_dir: Path = Field(default=Path("."), description="Project root holding prebuild/")
    output_dir: Path | None = Field(
        default=None,
        validation_alias=AliasChoices("HERITAGE_OUTPUT_DIR", "OUTPUT_DIR", "output_dir"),
        description="Site output directory (defaults to <base_dir>/public)",
    )

    # ── Build mode ───────────────────────────────────────────────
    include_private: bool = False
    for_arches: bool = Field(
        default=False,
        validation_alias=AliasChoices("HERITAGE_FOR_ARCHES", "FOR_ARCHES", "for_arches"),
        description="Write chunked business data and branches instead of spatial files",
    )
    public_models: list[str] = Field(default_factory=lambda: list(DEFAULT_PUBLIC_MODELS))

    # ── Batching ─────────────────────────────────────────────────
    resolve_batch_size: int = Field(default=50, ge=1)
    extract_batch_size: int = Field(default=10, ge=1)
    chunk_size_chars: int = Field(default=10_000_000, ge=1)

    # ── Assets ───────────────────────────────────────────────────
    max_slug_length: int = Field(default=100, ge=1)
    default_language: str = "en"
    primary_model: str = "HeritageAsset"
    soft_delete_field: str = "soft_deleted"
    registry_model: str = "Registry"
    associated_models: list[str] = Field(
        default_factory=list,
        description="Model class names or graph ids whose assets go to the associated list, not the search index",
    )
    spatial_layer_name: str = Field(default="assets", description="Base name of the all-assets feature file")

    # ── Collaborators (``module:attribute`` factories) ───────────
    graph_client_factory: str = "heritage_spine.adapters.static_client:StaticGraphClient.for_run"
    search_indexer_factory: str = "heritage_spine.adapters.json_search:JsonSearchIndexer"
    spatial_codec_factory: str = "heritage_spine.adapters.geojson_codec:GeoJsonCodec"
    spatial_index_factory: str = "heritage_spine.adapters.geojson_codec:SortedPointIndexBuilder"
    permission_predicates: dict[str, str] = Field(
        default_factory=dict,
        description="Predicate name -> 'module:qualname' factory for permission entries",
    )

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: Literal["json", "console", "auto"] = "auto"

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

    @property
    def output_mode(self) -> str:
        """``"chunked"`` when publishing Arches-style business data, else ``"spatial"``."""
        return "chunked" if self.for_arches else "spatial"

    @property
    def resolved_output_dir(self) -> Path:
        return self.output_dir if self.output_dir is not None else self.base_dir / "public"

    @property
    def json_logs(self) -> bool | None:
        if self.log_format == "auto":
            return None
        return self.log_format == "json"


_settings_cache: dict[str, PublishSettings] = {}


def get_settings(**overrides) -> PublishSettings:
    """Return cached settings; keyword overrides build (and cache) a variant."""
    cache_key = repr(sorted(overrides.items()))
    if cache_key not in _settings_cache:
        _settings_cache[cache_key] = PublishSettings(**overrides)
    return _settings_cache[cache_key]


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()


__all__ = [
    "DEFAULT_PUBLIC_MODELS",
    "PublishSettings",
    "get_settings",
    "clear_settings_cache",
]

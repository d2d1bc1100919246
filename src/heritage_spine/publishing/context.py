"""
Per-invocation state shared by every pipeline stage.

The slug counter and the Registry Table are mutated as assets are processed.
They live on a :class:`RunContext` built once per process invocation and
passed explicitly to each stage, never in module globals.  Batches are
processed strictly one after another, which is what makes unsynchronized
mutation safe.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from pathlib import Path

from heritage_spine.core.config import ProjectConfig
from heritage_spine.core.paths import OutputPaths, PathConfig
from heritage_spine.core.progress import LogProgress, ProgressReporter
from heritage_spine.core.settings import PublishSettings
from heritage_spine.publishing.registry import RegistryTable
from heritage_spine.publishing.slugs import SlugGenerator


@dataclass
class RunContext:
    """
    .. code-block:: text

        RunContext
        ├── .settings       → PublishSettings
        ├── .project        → prebuild.json / graphs.json / permissions.json
        ├── .registries     → RegistryTable (bit positions)
        ├── .slugs          → SlugGenerator (per-run counter)
        ├── .progress       → ProgressReporter
        ├── .paths / .output → directory layout
        └── .run_id
    """

    settings: PublishSettings
    project: ProjectConfig
    registries: RegistryTable = field(default_factory=RegistryTable)
    slugs: SlugGenerator | None = None
    progress: ProgressReporter = field(default_factory=LogProgress)
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

    def __post_init__(self) -> None:
        if self.slugs is None:
            self.slugs = SlugGenerator(self.settings.max_slug_length)

    @classmethod
    def create(
        cls,
        settings: PublishSettings,
        project: ProjectConfig | None = None,
        *,
        progress: ProgressReporter | None = None,
        registries: RegistryTable | None = None,
    ) -> RunContext:
        return cls(
            settings=settings,
            project=project or ProjectConfig.load(settings.base_dir),
            registries=registries if registries is not None else RegistryTable(),
            progress=progress or LogProgress(),
        )

    @property
    def include_private(self) -> bool:
        return self.settings.include_private

    @property
    def paths(self) -> PathConfig:
        return PathConfig.for_base(self.settings.base_dir)

    @property
    def output(self) -> OutputPaths:
        return OutputPaths.for_output(self.settings.resolved_output_dir)

    @property
    def base_dir(self) -> Path:
        return Path(self.settings.base_dir)


__all__ = ["RunContext"]

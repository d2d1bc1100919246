"""
Published graph definitions and reference data.

Public builds only export models on the allow-list, pruned to the field
groups the permission policy makes visible, and only the branches those
models were built from.  Private builds export everything.

Guardrails:
    ❌ DON'T: treat the reference-data filter as access control; collections
       are copied whole.
    ✅ DO: keep private values out of resources through the permission policy.
"""

from __future__ import annotations

import asyncio
import shutil
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from heritage_spine.core.jsonio import aread_json_file, awrite_json_file
from heritage_spine.core.logging import get_logger
from heritage_spine.core.paths import OutputPaths, safe_join_path
from heritage_spine.publishing.graphs import (
    GraphInfo,
    branch_publication_ids,
    build_graph_metadata,
    collection_ids,
    prune_graph,
)
from heritage_spine.publishing.permissions import PermissionGate

logger = get_logger(__name__)


@dataclass
class PublishedGraphs:
    """Graphs that made it into the output."""

    models: list[GraphInfo] = field(default_factory=list)
    pruned: dict[str, dict[str, Any]] = field(default_factory=dict)
    branches: set[str] = field(default_factory=set)
    branches_found: set[str] = field(default_factory=set)
    all_meta: dict[str, dict[str, Any]] = field(default_factory=lambda: {"models": {}})

    @property
    def model_names(self) -> dict[str, str]:
        return {info.graph_id: info.model_class_name for info in self.models}

    @property
    def missing_branches(self) -> list[str]:
        return sorted(self.branches - self.branches_found)


async def reset_dir(path: Path) -> None:
    def _reset() -> None:
        shutil.rmtree(path, ignore_errors=True)
        path.mkdir(parents=True, exist_ok=True)

    await asyncio.to_thread(_reset)


async def process_graphs(
    graphs: Iterable[GraphInfo],
    gate: PermissionGate,
    output: OutputPaths,
    *,
    include_private: bool,
    public_models: Iterable[str],
) -> PublishedGraphs:
    """Filter, prune and write graph definitions.

    Models must come before branches: a branch is only published when an
    accepted model references its publication id.
    """
    allowed = set(public_models)
    result = PublishedGraphs()
    targets = {"models": output.resource_models_dir, "branches": output.branches_dir}
    for target in targets.values():
        await reset_dir(target)

    for info in graphs:
        class_name = info.model_class_name
        if info.type not in targets:
            raise ValueError(f"Unknown graph type: {info.type}")

        if not include_private:
            if info.type == "models":
                if class_name not in allowed:
                    logger.debug("definitions.model_not_public", model=class_name)
                    continue
            else:
                publication_id = info.publication_id
                if not publication_id:
                    logger.warning("definitions.branch_without_publication", file=info.filename)
                if publication_id not in result.branches:
                    continue
                result.branches_found.add(publication_id)
        else:
            logger.warning(
                "definitions.non_public_build", graph_type=info.type, model=class_name
            )

        if info.type == "models":
            pruned = gate.prune_definition(info.graph, class_name)
            if pruned is None:
                logger.warning("definitions.no_visible_groups", model=class_name)
                continue
        else:
            pruned = prune_graph(info.graph, None)

        target = safe_join_path(targets[info.type], info.filename)
        await awrite_json_file(target, {"graph": [pruned], "__scope": ["public"]})
        logger.info("definitions.written", model=class_name, file=info.filename)

        if info.type == "models":
            result.models.append(info)
            result.pruned[info.graph_id] = pruned
            result.all_meta["models"][info.graph_id] = build_graph_metadata(pruned)
        result.branches.update(branch_publication_ids(info.graph))

    return result


async def write_graph_summary(published: PublishedGraphs, output: OutputPaths) -> Path:
    return await awrite_json_file(output.graphs_dir / "_all.json", published.all_meta)


async def copy_reference_data(
    published: PublishedGraphs,
    collections_dir: Path,
    output: OutputPaths,
    *,
    include_private: bool,
    for_arches: bool = False,
) -> int:
    """Copy collections; returns how many were copied.

    For the graph engine target a collection's ``__source`` names the SKOS
    XML it was exported from, relative to *collections_dir*.  Those files are
    copied to ``reference_data/{collections,concepts}/`` and ``__source``
    is rewritten to their base names.
    """
    await reset_dir(output.reference_data_dir)
    await reset_dir(output.collections_dir)

    if include_private and not for_arches:
        logger.warning("reference_data.copy_all", detail="non-public build includes unused collections")
        if not collections_dir.is_dir():
            return 0
        await asyncio.to_thread(
            shutil.copytree, collections_dir, output.collections_dir, dirs_exist_ok=True
        )
        return sum(1 for _ in output.collections_dir.glob("*.json"))

    wanted: set[str] = set()
    for pruned in published.pruned.values():
        wanted.update(collection_ids(pruned))

    xml_files: dict[str, set[str]] = {"collections": set(), "concepts": set()}
    copied = 0
    for collection_id in sorted(wanted):
        source = safe_join_path(collections_dir, f"{collection_id}.json")
        if not source.exists():
            logger.warning("reference_data.collection_missing", collection=collection_id)
            continue
        collection = await aread_json_file(source)
        if for_arches and isinstance(collection, dict) and collection.get("__source"):
            collection["__source"] = _rebase_xml_source(collection["__source"], xml_files)
        await awrite_json_file(safe_join_path(output.collections_dir, f"{collection_id}.json"), collection)
        copied += 1

    for kind, names in xml_files.items():
        for name in sorted(names):
            await _copy_xml(collections_dir, name, output.reference_data_dir / kind)

    logger.warning(
        "reference_data.referenced_only",
        collections=copied,
        xml_files=sum(len(names) for names in xml_files.values()),
        detail=(
            "non-public graph engine build: only referenced collections are included"
            if include_private
            else "only referenced collections are included; this is not a security boundary"
        ),
    )
    return copied


def _rebase_xml_source(xml_source: Any, xml_files: dict[str, set[str]]) -> Any:
    """Record the XML files named by *xml_source* and return it with base names."""
    if not isinstance(xml_source, dict):
        return xml_source
    rebased = dict(xml_source)
    collection = xml_source.get("collection")
    if isinstance(collection, str) and collection:
        xml_files["collections"].add(collection)
        rebased["collection"] = Path(collection).name
    concepts = [c for c in xml_source.get("concepts") or [] if isinstance(c, str) and c]
    xml_files["concepts"].update(concepts)
    rebased["concepts"] = [Path(c).name for c in concepts]
    return rebased


async def _copy_xml(collections_dir: Path, name: str, target_dir: Path) -> None:
    source = safe_join_path(collections_dir, name)
    if not source.exists():
        logger.info("reference_data.xml_missing", file=name, detail="assuming it is in an upstream repository")
        return
    target_dir.mkdir(parents=True, exist_ok=True)
    await asyncio.to_thread(shutil.copyfile, source, target_dir / Path(name).name)


__all__ = [
    "PublishedGraphs",
    "process_graphs",
    "write_graph_summary",
    "copy_reference_data",
]

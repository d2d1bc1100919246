"""
Chunked business-data output and per-graph resource indexes.

Resource documents written during pre-indexing are regrouped per model into
files of roughly ``chunk_size_chars`` characters::

    definitions/business_data/HeritageAsset_0.json
    definitions/business_data/HeritageAsset_1.json
    definitions/business_data/_<graphId>.json        (name + id summary)

A document's chunk is ``floor(running total / budget)`` where the running
total includes the document itself, so with a budget of 100 three documents of
40 characters land in chunks 0, 0 and 1.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from heritage_spine.core.jsonio import aread_json_file, aread_text, awrite_json_file, safe_json_parse
from heritage_spine.core.logging import get_logger
from heritage_spine.core.paths import safe_join_path
from heritage_spine.publishing.batching import gather_batches
from heritage_spine.publishing.context import RunContext
from heritage_spine.publishing.models import Asset

logger = get_logger(__name__)


class ChunkAccumulator:
    """Per-graph running character totals."""

    def __init__(self, budget: int) -> None:
        if budget < 1:
            raise ValueError(f"chunk budget must be positive, got {budget}")
        self.budget = budget
        self._totals: dict[str, int] = {}

    def add(self, graph_id: str, length: int) -> int:
        """Account for a document of *length* characters; return its chunk."""
        total = self._totals.get(graph_id, 0) + length
        self._totals[graph_id] = total
        return total // self.budget

    def total(self, graph_id: str) -> int:
        return self._totals.get(graph_id, 0)


def _document_path(context: RunContext, asset: Asset) -> Path:
    return safe_join_path(context.output.business_data_dir, f"{asset.slug}.json")


async def write_resource_indexes(
    context: RunContext,
    assets: Iterable[Asset],
    model_graph_ids: Iterable[str],
) -> dict[str, list[dict[str, str]]]:
    """Write ``_{graphId}.json`` with name/id pairs for every published model."""
    wanted = set(model_graph_ids)
    summaries: dict[str, list[dict[str, str]]] = {}

    for asset in assets:
        path = _document_path(context, asset)
        if not path.exists():
            continue
        graph_id = asset.graph_id
        if not graph_id:
            document = await aread_json_file(path)
            graph_id = (document.get("resourceinstance") or {}).get("graph_id", "")
        if graph_id not in wanted:
            continue
        summaries.setdefault(graph_id, []).append(
            {"name": asset.meta.title or "", "resourceinstanceid": asset.resource_id}
        )

    for graph_id, resources in summaries.items():
        target = safe_join_path(context.output.business_data_dir, f"_{graph_id}.json")
        await awrite_json_file(target, {"business_data": {"resources": resources}})

    logger.info("chunks.resource_indexes_written", graphs=len(summaries))
    return summaries


async def write_chunked_business_data(
    context: RunContext,
    assets: list[Asset],
    model_names: Mapping[str, str],
) -> list[Path]:
    """Regroup resource documents into per-model chunk files."""
    accumulator = ChunkAccumulator(context.settings.chunk_size_chars)

    async def read(asset: Asset) -> tuple[int, dict[str, Any] | None]:
        path = _document_path(context, asset)
        if not path.exists():
            logger.warning("chunks.missing_resource_file", path=str(path), slug=asset.slug)
            return 0, None
        content = await aread_text(path)
        return len(content), safe_json_parse(content, f"file: {path}")

    chunks: dict[tuple[str, int], list[dict[str, Any]]] = {}
    async for _, batch in gather_batches(assets, context.settings.resolve_batch_size, read):
        for length, document in batch:
            if document is None:
                continue
            graph_id = (document.get("resourceinstance") or {}).get("graph_id", "")
            chunk = accumulator.add(graph_id, length)
            chunks.setdefault((graph_id, chunk), []).append(document)

    written: list[Path] = []
    for (graph_id, chunk), resources in chunks.items():
        model_name = model_names.get(graph_id)
        if not model_name:
            logger.warning("chunks.unknown_model", graph_id=graph_id, resources=len(resources))
            continue
        target = safe_join_path(context.output.business_data_dir, f"{model_name}_{chunk}.json")
        written.append(
            await awrite_json_file(target, {"business_data": {"resources": resources}}, indent=None)
        )

    logger.info("chunks.written", files=len(written))
    return written


__all__ = ["ChunkAccumulator", "write_resource_indexes", "write_chunked_business_data"]

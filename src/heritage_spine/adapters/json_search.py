"""
In-memory search indexer that writes its records as JSON.

Records are keyed by a content hash (``{language}_{7 hex chars}``), so an
unchanged record keeps its key between runs.  ``write_files`` produces::

    <output>/catalogue.json   {hash: record}
    <output>/filters.json     {filter: {value: [hash, ...]}}

Tags:
    adapter, search, in-memory, testing, heritage-spine
"""

from __future__ import annotations

import json
import shutil
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from heritage_spine.core.hashing import compute_json_hash
from heritage_spine.core.jsonio import awrite_json_file
from heritage_spine.core.logging import get_logger

__all__ = ["JsonSearchIndex", "JsonSearchIndexer"]

logger = get_logger(__name__)

HASH_LENGTH = 7


class JsonSearchIndex:
    """Collects custom records in insertion order."""

    def __init__(self) -> None:
        self._records: dict[str, dict[str, Any]] = {}

    async def add_custom_record(
        self,
        *,
        url: str,
        content: str,
        language: str,
        filters: Mapping[str, list[str]],
        meta: Mapping[str, str],
    ) -> str:
        record = {
            "url": url,
            "content": content,
            "language": language,
            "filters": {name: list(values) for name, values in filters.items()},
            "meta": dict(meta),
        }
        record_hash = f"{language}_{compute_json_hash(record, length=HASH_LENGTH)}"
        self._records[record_hash] = record
        return record_hash

    async def get_index_catalogue(self) -> list[tuple[str, str]]:
        return [
            (record_hash, json.dumps(record, ensure_ascii=False))
            for record_hash, record in self._records.items()
        ]

    async def write_files(self, output_path: str) -> None:
        output = Path(output_path)
        if output.exists():
            shutil.rmtree(output)

        filters: dict[str, dict[str, list[str]]] = {}
        for record_hash, record in self._records.items():
            for name, values in record["filters"].items():
                for value in values:
                    filters.setdefault(name, {}).setdefault(str(value), []).append(record_hash)

        await awrite_json_file(output / "catalogue.json", self._records)
        await awrite_json_file(output / "filters.json", filters)
        logger.info("json_search.written", path=str(output), records=len(self._records))

    def __len__(self) -> int:
        return len(self._records)


class JsonSearchIndexer:
    async def create_index(self) -> JsonSearchIndex:
        return JsonSearchIndex()

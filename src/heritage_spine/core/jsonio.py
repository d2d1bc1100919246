"""
JSON file helpers with error context.

Reads and writes happen on worker threads (``asyncio.to_thread``) so that the
single event loop stays free to drive the graph client and progress display
while large business-data files are parsed.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

from heritage_spine.core.errors import ParseError, PublishError


def safe_json_parse(text: str | bytes, context: str) -> Any:
    """Parse JSON, naming *context* in the error if it fails."""
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"Failed to parse JSON in {context}: {e}", cause=e) from e


def read_json_file(file_path: str | Path) -> Any:
    path = Path(file_path)
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise PublishError(f"File not found: {path}", cause=e).with_context(path=str(path)) from e
    return safe_json_parse(content, f"file: {path}")


async def aread_json_file(file_path: str | Path) -> Any:
    return await asyncio.to_thread(read_json_file, file_path)


async def aread_text(file_path: str | Path) -> str:
    return await asyncio.to_thread(Path(file_path).read_text, encoding="utf-8")


def dump_json(data: Any, *, indent: int | None = 2) -> str:
    """Serialize the way every intermediate and output file is written."""
    return json.dumps(data, indent=indent, ensure_ascii=False)


def write_json_file(file_path: str | Path, data: Any, *, indent: int | None = 2) -> Path:
    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dump_json(data, indent=indent), encoding="utf-8")
    return path


async def awrite_json_file(file_path: str | Path, data: Any, *, indent: int | None = 2) -> Path:
    return await asyncio.to_thread(write_json_file, file_path, data, indent=indent)


async def awrite_text(file_path: str | Path, text: str) -> Path:
    def _write() -> Path:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    return await asyncio.to_thread(_write)


async def awrite_bytes(file_path: str | Path, data: bytes) -> Path:
    def _write() -> Path:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path

    return await asyncio.to_thread(_write)


__all__ = [
    "safe_json_parse",
    "read_json_file",
    "aread_json_file",
    "aread_text",
    "dump_json",
    "write_json_file",
    "awrite_json_file",
    "awrite_text",
    "awrite_bytes",
]

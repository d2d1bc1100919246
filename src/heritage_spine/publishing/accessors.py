"""
Dotted-path field access over plain JSON trees.

``TreeView(tree).try_get("location_data.geometry.geospatial_coordinates")``
walks mappings by key and lists by integer index; any absent segment yields
``None`` instead of raising.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any


def split_path(path: str) -> list[str]:
    """``".a.b"`` and ``"a.b"`` both give ``["a", "b"]``."""
    return [segment for segment in path.split(".") if segment]


def get_path(tree: Any, path: str) -> Any | None:
    current = tree
    for segment in split_path(path):
        if isinstance(current, Mapping):
            current = current.get(segment)
        elif isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
            try:
                current = current[int(segment)]
            except (ValueError, IndexError):
                return None
        else:
            return None
        if current is None:
            return None
    return current


class TreeView:
    """:class:`~heritage_spine.core.protocols.ResourceView` over a JSON tree."""

    def __init__(self, tree: Any) -> None:
        self.tree = tree

    async def try_get(self, path: str) -> Any | None:
        return get_path(self.tree, path)

    def __repr__(self) -> str:
        return f"TreeView({type(self.tree).__name__})"


__all__ = ["split_path", "get_path", "TreeView"]

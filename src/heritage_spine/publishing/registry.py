"""
Registry Table and bitmask encoding.

Each registry an asset belongs to is a bit in a compact integer mask used to
filter the spatial index client-side.  A registry's bit is its position in the
run's :class:`RegistryTable`::

    table = ["historic-monuments", "listed-buildings", "gardens"]
    encode(["historic-monuments", "gardens"])  ==  0b101  ==  5

The pre-index phase and the reindex phase each compute masks, so both must see
the same table in the same order.  The pre-index phase persists the table
(``prebuild/preindex/registries.json``) and the reindex phase loads it before
observing anything new; see DESIGN.md for the open question this leaves.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from heritage_spine.core.errors import InvalidInputError
from heritage_spine.core.jsonio import read_json_file, write_json_file
from heritage_spine.core.logging import get_logger
from heritage_spine.publishing.slugs import slugify

logger = get_logger(__name__)


class RegistryTable:
    """Ordered registry names; the bit position of a name is its index."""

    def __init__(self, names: Iterable[str] = ()) -> None:
        self._names: list[str] = []
        self._positions: dict[str, int] = {}
        for name in names:
            self.observe(name)

    @staticmethod
    def normalize(name: str) -> str:
        return slugify(name)

    def observe(self, name: str) -> int | None:
        """Insert *name* if unseen and return its bit position.

        A name with no sluggable characters is skipped with a warning and
        gets no position.
        """
        try:
            key = self.normalize(name)
        except InvalidInputError:
            logger.warning("registry.unusable_name", registry=name)
            return None
        position = self._positions.get(key)
        if position is None:
            position = len(self._names)
            self._names.append(key)
            self._positions[key] = position
            logger.debug("registry.observed", registry=key, position=position)
        return position

    def position(self, name: str) -> int | None:
        try:
            key = self.normalize(name)
        except InvalidInputError:
            return None
        return self._positions.get(key)

    def encode(self, names: Iterable[str]) -> int:
        """OR of ``2**position`` over *names*; unknown names contribute 0.

        Never inserts: callers observe new registries before encoding.
        """
        mask = 0
        for name in names:
            position = self.position(name)
            if position is not None:
                mask |= 1 << position
        return mask

    @property
    def names(self) -> list[str]:
        return list(self._names)

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.position(name) is not None

    # ── Persistence ──────────────────────────────────────────────

    def save(self, path: str | Path) -> Path:
        return write_json_file(path, self._names)

    @classmethod
    def load(cls, path: str | Path) -> RegistryTable:
        names = read_json_file(path)
        if not isinstance(names, list):
            raise InvalidInputError(f"Registry table {path} is not a JSON list", value=names)
        return cls(names)

    @classmethod
    def load_or_empty(cls, path: str | Path) -> RegistryTable:
        if Path(path).exists():
            return cls.load(path)
        return cls()


__all__ = ["RegistryTable"]

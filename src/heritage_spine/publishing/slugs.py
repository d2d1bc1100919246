"""
URL-safe slugs for published assets.

A slug is the published file name and URL key of an asset, so it must be
stable for a given (title, identifier) and unique within one run::

    "Old Mill", "a1b2c3d4-..."  →  old-mill-a1b2c3
    "Old Mill", "a1b2c3ff-..."  →  old-mill-a1b2c3-1   (same base, second use)

The generator is per-run state and lives on the
:class:`~heritage_spine.publishing.context.RunContext`.  Two runs publishing
into the same site must coordinate slugs themselves.
"""

from __future__ import annotations

import re
import unicodedata

from heritage_spine.core.errors import InvalidInputError

MAX_SLUG_LENGTH = 100
ID_PREFIX_LENGTH = 6

_SEPARATORS = re.compile(r"[\s_]+")
_DISALLOWED = re.compile(r"[^a-z0-9-]")
_HYPHEN_RUNS = re.compile(r"-+")


def slugify(name: str, max_length: int = MAX_SLUG_LENGTH) -> str:
    """Normalize *name* to a lowercase, hyphenated, alphanumeric token.

    Raises:
        InvalidInputError: if *name* is not a string or normalizes to nothing.
    """
    if not name or not isinstance(name, str):
        raise InvalidInputError(f"Invalid slug input: {name!r}", value=name)

    decomposed = unicodedata.normalize("NFKD", name)
    ascii_only = "".join(c for c in decomposed if not unicodedata.combining(c))

    slug = ascii_only.lower().strip()
    slug = _SEPARATORS.sub("-", slug)
    slug = _DISALLOWED.sub("", slug)
    slug = _HYPHEN_RUNS.sub("-", slug)
    slug = slug.strip("-")[:max_length].rstrip("-")

    if not slug:
        raise InvalidInputError(
            f"Slugification resulted in empty string for input: {name!r}", value=name
        )
    return slug


class SlugGenerator:
    """Collision-free slug source for one pipeline run."""

    def __init__(self, max_length: int = MAX_SLUG_LENGTH) -> None:
        self.max_length = max_length
        self._counters: dict[str, int] = {}
        self._issued: set[str] = set()

    def to_slug(self, title: str, entity_id: str | None, prefix: str | None = None) -> str:
        """Slug for *title*, disambiguated by the first characters of *entity_id*.

        The first request for a base returns the base itself; each later
        request for the same base returns ``base-N`` with N counting from 1.

        Raises:
            InvalidInputError: empty normalized title or missing identifier.
        """
        base = self.preview(title, entity_id, prefix)
        slug = base
        count = self._counters.get(base)
        if count is not None or slug in self._issued:
            count = count or 0
            while True:
                count += 1
                slug = f"{base}-{count}"
                if slug not in self._issued:
                    break
        self._counters[base] = count or 0
        self._issued.add(slug)
        return slug

    def preview(self, title: str, entity_id: str | None, prefix: str | None = None) -> str:
        """The undisambiguated slug for *title*; issues nothing.

        Raises:
            InvalidInputError: empty normalized title or missing identifier.
        """
        if not entity_id:
            raise InvalidInputError(f"Missing identifier for slug of {title!r}", value=entity_id)

        base = f"{slugify(title, self.max_length)}-{str(entity_id)[:ID_PREFIX_LENGTH]}"
        if prefix:
            base = f"{prefix}{base}"
        return base

    def reset(self) -> None:
        self._counters.clear()
        self._issued.clear()

    def __len__(self) -> int:
        return len(self._issued)


__all__ = ["MAX_SLUG_LENGTH", "slugify", "SlugGenerator"]

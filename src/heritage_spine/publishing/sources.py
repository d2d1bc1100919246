"""
Business-data source files: pattern expansion and ``prebuild.json`` matching.

``prebuild/business_data/assets-%.json`` names the numbered files
``assets-0.json``, ``assets-1.json``, ... up to the first gap.

Source entries' ``resources`` and ``dependencies`` are regular expressions
over paths relative to the project root, e.g.
``prebuild/business_data/registries.*\\.json``.
"""

from __future__ import annotations

import os
import re
from pathlib import Path

from heritage_spine.core.config import PrebuildSource
from heritage_spine.core.errors import InvalidInputError, PathTraversalError
from heritage_spine.core.logging import get_logger
from heritage_spine.core.paths import validate_path_within_base

logger = get_logger(__name__)

NUMBERED_PLACEHOLDER = "%"


def check_resource_file(resource_file: str | Path) -> Path:
    """Only ``.json`` business-data files can be pre-indexed."""
    path = Path(os.path.normpath(str(resource_file)))
    if not path.name.endswith(".json"):
        raise InvalidInputError(
            f"Tried to run with a non .json file: {resource_file}", value=str(resource_file)
        )
    return path


def expand_numbered(resource_file: str | Path) -> list[Path]:
    """Existing files named by a ``%`` pattern, or the file itself."""
    pattern = str(resource_file)
    if NUMBERED_PLACEHOLDER not in pattern:
        return [Path(pattern)]

    files = []
    i = 0
    while True:
        candidate = Path(pattern.replace(NUMBERED_PLACEHOLDER, str(i), 1))
        if not candidate.exists():
            break
        files.append(candidate)
        i += 1
    return files


def match_source(
    sources: list[PrebuildSource], resource_file: str | Path
) -> PrebuildSource | None:
    """First source whose pattern matches; later matches are ignored."""
    matched: PrebuildSource | None = None
    for source in sources:
        if not source.matches(resource_file):
            continue
        if matched is not None:
            logger.warning(
                "sources.multiple_matches",
                file=str(resource_file),
                taken=matched.resources,
                ignored=source.resources,
            )
            continue
        logger.info("sources.matched", file=str(resource_file), source=source.resources)
        matched = source
    return matched


def files_for_regex(directory: str | Path, regex: str, base_dir: str | Path = ".") -> list[Path]:
    """Files under *directory* whose project-relative path matches *regex*.

    Paths are matched relative to *base_dir* (the project root), so patterns
    read ``prebuild/business_data/...``.  The pattern must start with the
    directory it searches; anything else is reported and matches nothing.
    """
    rel_dir = os.path.normpath(os.path.relpath(str(directory), str(base_dir)))
    if not regex.startswith(rel_dir):
        logger.warning("sources.pattern_outside_dir", directory=rel_dir, pattern=regex)
        return []
    if not Path(directory).is_dir():
        return []

    compiled = re.compile(regex)
    found: list[Path] = []
    for root, dirs, files in os.walk(str(directory)):
        dirs.sort()
        for name in sorted(files):
            entry = os.path.join(root, name)
            if not compiled.search(os.path.relpath(entry, str(base_dir))):
                continue
            try:
                validate_path_within_base(os.path.relpath(entry, str(directory)), directory)
            except PathTraversalError:
                logger.warning("sources.outside_dir", file=entry, directory=rel_dir)
                continue
            found.append(Path(entry))
    return found


def source_files(
    resource_file: str | Path,
    sources: list[PrebuildSource],
    business_data_dir: str | Path,
    base_dir: str | Path = ".",
) -> tuple[list[Path], PrebuildSource | None]:
    """The files to load for *resource_file*: its expansion plus dependencies."""
    path = check_resource_file(resource_file)
    files = expand_numbered(path)
    source = match_source(sources, path)
    if source is not None:
        for dependency in source.dependencies:
            for match in files_for_regex(business_data_dir, dependency, base_dir):
                logger.info("sources.dependency_added", file=str(match))
                files.append(match)
    return files, source


__all__ = [
    "check_resource_file",
    "expand_numbered",
    "match_source",
    "files_for_regex",
    "source_files",
]

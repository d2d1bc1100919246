"""
Deterministic content hashing.

Search records are addressed by a hash of their content so that re-running the
reindex phase over unchanged metadata yields the same record keys, and the
nearest-neighbour index (which stores hashes, not records) stays valid.

Examples:
    >>> compute_hash("en", "/asset/?slug=old-mill-a1b2c3") == compute_hash(
    ...     "en", "/asset/?slug=old-mill-a1b2c3")
    True
    >>> len(compute_hash("a", length=12))
    12

Tags:
    hashing, idempotency, heritage-spine
"""

import hashlib
import json
from typing import Any


def compute_hash(*values: Any, length: int = 32) -> str:
    """SHA-256 over the ``|``-joined string forms of *values*, truncated.

    Order matters: ``compute_hash("a", "b") != compute_hash("b", "a")``.
    """
    content = "|".join(str(v) for v in values)
    return hashlib.sha256(content.encode()).hexdigest()[:length]


def compute_json_hash(data: Any, length: int = 32) -> str:
    """Hash of *data*'s canonical JSON form (sorted keys)."""
    return compute_hash(json.dumps(data, sort_keys=True, ensure_ascii=False), length=length)


__all__ = ["compute_hash", "compute_json_hash"]

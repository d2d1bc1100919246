"""
Reference implementations of the collaborator contracts, and the resolver
that turns a settings factory string into an instance.

Settings name collaborators as ``'module:qualname'`` references, e.g.
``heritage_spine.adapters.json_search:JsonSearchIndexer``; production
deployments point them at their own classes.
"""

from __future__ import annotations

import importlib
from collections.abc import Callable
from typing import Any

from heritage_spine.core.errors import ConfigError


def resolve_callable_ref(ref: str) -> Callable[..., Any]:
    """Import and return the callable identified by ``'module:qualname'``.

    Raises:
        ConfigError: malformed reference, missing module or attribute, or a
            non-callable target.
    """
    module_path, _, attr_path = ref.partition(":")
    if not attr_path:
        raise ConfigError(f"Invalid factory reference (missing ':'): {ref!r}")
    try:
        obj: Any = importlib.import_module(module_path)
        for part in attr_path.split("."):
            obj = getattr(obj, part)
    except (ImportError, AttributeError) as e:
        raise ConfigError(f"Cannot resolve factory {ref!r}: {e}", cause=e) from e
    if not callable(obj):
        raise ConfigError(f"{ref!r} resolved to non-callable: {type(obj)}")
    return obj


__all__ = ["resolve_callable_ref"]

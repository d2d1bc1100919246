"""
Heritage Spine - extract, permission-filter and publish heritage assets.

Subpackages:
- heritage_spine.core: settings, errors, logging, paths, JSON I/O
- heritage_spine.publishing: pre-index and reindex pipeline stages
- heritage_spine.adapters: graph client, search indexer and spatial codecs
- heritage_spine.cli: the ``heritage-spine`` command
"""

__version__ = "0.1.0"

from heritage_spine.core.errors import PublishError
from heritage_spine.core.settings import PublishSettings, get_settings
from heritage_spine.publishing.context import RunContext
from heritage_spine.publishing.extract import run_preindex
from heritage_spine.publishing.publish import run_reindex

__all__ = [
    "__version__",
    "PublishError",
    "PublishSettings",
    "RunContext",
    "get_settings",
    "run_preindex",
    "run_reindex",
]

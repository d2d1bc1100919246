"""Heritage Spine Core -- pipeline-agnostic primitives.

Architecture::

    settings.py    PublishSettings (pydantic-settings, HERITAGE_* env)
    config.py      prebuild.json / graphs.json / permissions.json models
    paths.py       Source and output directory layout, safe_join_path
    errors.py      PublishError hierarchy with fluent context
    logging.py     structlog configuration and LogContext
    jsonio.py      Async JSON/text I/O with located parse errors
    hashing.py     Deterministic content hashes
    progress.py    Progress reporters (log lines or Rich bars)
    protocols.py   Collaborator protocols (graph client, search, spatial)

Nothing here imports :mod:`heritage_spine.publishing`.
"""

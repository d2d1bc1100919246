"""
Graph definition files: loading, validation, summaries and schema pruning.

A graph definition file holds ``{"graph": [<one graph>]}``.  The graph lists
its ``nodes``, ``nodegroups``, ``edges``, ``cards`` and
``cards_x_nodes_x_widgets``.  A nodegroup's alias is the alias of the node
whose ``nodeid`` equals the ``nodegroupid``; permission policies are keyed by
these aliases.
"""

from __future__ import annotations

import copy
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from heritage_spine.core.errors import MalformedGraphError
from heritage_spine.core.jsonio import aread_json_file
from heritage_spine.core.logging import get_logger

logger = get_logger(__name__)

SUMMARY_COUNTED = (
    "cards",
    "cards_x_nodes_x_widgets",
    "edges",
    "functions_x_graphs",
    "nodegroups",
    "nodes",
)
SUMMARY_COPIED = (
    "author",
    "color",
    "config",
    "deploymentdate",
    "deploymentfile",
    "description",
    "graphid",
    "iconclass",
    "is_editable",
    "isresource",
    "jsonldcontext",
    "name",
    "ontology_id",
    "resource_2_resource_constraints",
    "slug",
    "subtitle",
    "template_id",
)


@dataclass
class GraphInfo:
    """A graph definition read from disk."""

    type: str  # "models" or "branches"
    filepath: Path
    graph: dict[str, Any]

    @property
    def filename(self) -> str:
        return self.filepath.name

    @property
    def graph_id(self) -> str:
        return self.graph.get("graphid", "")

    @property
    def model_class_name(self) -> str:
        return model_class_name(self.graph)

    @property
    def publication_id(self) -> str | None:
        publication = self.graph.get("publication") or {}
        return publication.get("publicationid")


def localized(value: Any, language: str = "en") -> str:
    """Plain string from a possibly language-keyed value."""
    if isinstance(value, Mapping):
        if language in value:
            return str(value[language])
        return str(next(iter(value.values()), ""))
    return "" if value is None else str(value)


def model_class_name(graph: Mapping[str, Any]) -> str:
    """``"Heritage Asset"`` → ``"HeritageAsset"``."""
    name = localized(graph.get("name"))
    words = [w for w in re.split(r"[^0-9A-Za-z]+", name) if w]
    return "".join(w[0].upper() + w[1:] for w in words)


def nodegroup_aliases(graph: Mapping[str, Any]) -> dict[str, str]:
    """Map nodegroup id → alias."""
    nodes_by_id = {node.get("nodeid"): node for node in graph.get("nodes") or []}
    aliases: dict[str, str] = {}
    for nodegroup in graph.get("nodegroups") or []:
        ng_id = nodegroup.get("nodegroupid")
        node = nodes_by_id.get(ng_id)
        if node is not None and node.get("alias") is not None:
            aliases[ng_id] = node["alias"]
    return aliases


def prune_graph(graph: Mapping[str, Any], visible_aliases: Iterable[str] | None) -> dict[str, Any]:
    """Deep copy of *graph* keeping only the visible field groups.

    ``None`` keeps everything.  A nodegroup nested under a hidden nodegroup is
    hidden too.  Nodes without a nodegroup (the root) are always kept.
    """
    pruned = copy.deepcopy(dict(graph))
    if visible_aliases is None:
        return pruned

    visible = set(visible_aliases)
    aliases = nodegroup_aliases(graph)
    parents = {
        ng.get("nodegroupid"): ng.get("parentnodegroup_id")
        for ng in graph.get("nodegroups") or []
    }

    def is_visible(ng_id: str | None, seen: frozenset = frozenset()) -> bool:
        if ng_id is None:
            return True
        if ng_id in seen or aliases.get(ng_id) not in visible:
            return False
        return is_visible(parents.get(ng_id), seen | {ng_id})

    kept_groups = {ng_id for ng_id in parents if is_visible(ng_id)}

    pruned["nodegroups"] = [
        ng for ng in pruned.get("nodegroups") or [] if ng.get("nodegroupid") in kept_groups
    ]
    pruned["nodes"] = [
        node
        for node in pruned.get("nodes") or []
        if node.get("nodegroup_id") is None or node.get("nodegroup_id") in kept_groups
    ]
    kept_nodes = {node.get("nodeid") for node in pruned["nodes"]}
    pruned["edges"] = [
        edge
        for edge in pruned.get("edges") or []
        if edge.get("domainnode_id") in kept_nodes and edge.get("rangenode_id") in kept_nodes
    ]
    pruned["cards"] = [
        card for card in pruned.get("cards") or [] if card.get("nodegroup_id") in kept_groups
    ]
    kept_cards = {card.get("cardid") for card in pruned["cards"]}
    pruned["cards_x_nodes_x_widgets"] = [
        row
        for row in pruned.get("cards_x_nodes_x_widgets") or []
        if row.get("node_id") in kept_nodes and row.get("card_id", None) in kept_cards | {None}
    ]

    removed = len(graph.get("nodegroups") or []) - len(pruned["nodegroups"])
    if removed:
        logger.debug(
            "graph.pruned",
            graph=model_class_name(graph),
            nodegroups_removed=removed,
        )
    return pruned


def branch_publication_ids(graph: Mapping[str, Any]) -> set[str]:
    """Publication ids of the branches this graph's nodes were built from."""
    return {
        node["sourcebranchpublication_id"]
        for node in graph.get("nodes") or []
        if node.get("sourcebranchpublication_id")
    }


def collection_ids(graph: Mapping[str, Any]) -> set[str]:
    """Reference-data collections referenced by this graph's nodes."""
    collections = set()
    for node in graph.get("nodes") or []:
        config = node.get("config") or {}
        collection = config.get("rdmCollection")
        if collection:
            collections.add(collection)
    return collections


def build_graph_metadata(graph: Mapping[str, Any]) -> dict[str, Any]:
    """Summary of *graph*: scalar properties plus element counts, no structure."""
    meta: dict[str, Any] = {key: graph.get(key) for key in SUMMARY_COPIED}
    for key in SUMMARY_COUNTED:
        meta[key] = len(graph.get(key) or [])
    meta["relatable_resource_model_ids"] = graph.get("relatable_resource_model_ids") or []
    version = graph.get("version")
    meta["version"] = str(version) if version is not None else None
    return meta


async def load_graph_file(file_path: Path, graph_type: str = "models") -> GraphInfo:
    """Read one definition file; it must hold exactly one graph element."""
    data = await aread_json_file(file_path)
    graphs = data.get("graph") if isinstance(data, Mapping) else None
    if not isinstance(graphs, list):
        raise MalformedGraphError(
            f"Invalid graph file {file_path}: missing or invalid 'graph' array"
        ).with_context(path=str(file_path))
    if len(graphs) != 1:
        raise MalformedGraphError(
            f"Invalid graph file {file_path}: expected exactly 1 graph element, found {len(graphs)}"
        ).with_context(path=str(file_path))
    return GraphInfo(type=graph_type, filepath=file_path, graph=graphs[0])


async def load_graphs_from_definitions(
    resource_models_dir: Path,
    branches_dir: Path | None = None,
) -> list[GraphInfo]:
    """All model definitions, then (if given) all branch definitions.

    Files starting with ``_`` are summaries, not definitions, and are skipped.
    """
    locations: list[tuple[str, Path]] = [("models", resource_models_dir)]
    if branches_dir is not None:
        locations.append(("branches", branches_dir))

    graphs: list[GraphInfo] = []
    for graph_type, location in locations:
        if not location.is_dir():
            raise MalformedGraphError(
                f"Graph directory {location} does not exist"
            ).with_context(path=str(location))
        for file_path in sorted(location.iterdir()):
            if not file_path.name.endswith("json") or file_path.name.startswith("_"):
                continue
            graphs.append(await load_graph_file(file_path, graph_type))
    return graphs


__all__ = [
    "GraphInfo",
    "localized",
    "model_class_name",
    "nodegroup_aliases",
    "prune_graph",
    "branch_publication_ids",
    "collection_ids",
    "build_graph_metadata",
    "load_graph_file",
    "load_graphs_from_definitions",
]

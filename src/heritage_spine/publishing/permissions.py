"""
Permission Gate: which field groups (nodegroups) of a model are published.

Policy shape (``prebuild/permissions.json``)::

    {
      "HeritageAsset": {"": true, "names": true, "location_data": true,
                        "designations": "in_public_collection"},
      "Person": true,
      "Registry": false
    }

Resolution for a model class:

==========================  =========================================
policy entry                decision
==========================  =========================================
any, private build          ``ALL``
absent or ``false``         ``NONE`` (callers skip exporting the model)
``true``                    ``ALL``
mapping                     alias → bool, or alias → named predicate
==========================  =========================================

Named predicates are resolved lazily, once per model, the first time the
model's permissions are requested, and cached for the rest of the run.

Ordering contract:
    Permissions must be applied to a model before any of its resources is
    materialized.  :class:`~heritage_spine.publishing.loader.ResourceLoader`
    enforces this with phase tokens; the gate itself only computes and
    applies decisions.
"""

from __future__ import annotations

import inspect
from collections.abc import Mapping
from enum import Enum
from typing import Any, Union

from heritage_spine.core.config import PermissionPolicy
from heritage_spine.core.errors import MissingConfigError
from heritage_spine.core.logging import get_logger
from heritage_spine.core.protocols import CheckPermission, ModelHandle, PredicateFactory
from heritage_spine.publishing.graphs import prune_graph

logger = get_logger(__name__)


class Visibility(str, Enum):
    ALL = "ALL"
    NONE = "NONE"


Decision = Union[Visibility, dict[str, Union[bool, CheckPermission]]]


class PermissionGate:
    """Resolves and applies the permission policy for one run."""

    def __init__(
        self,
        policy: PermissionPolicy | None = None,
        *,
        include_private: bool = False,
        predicates: Mapping[str, PredicateFactory] | None = None,
    ) -> None:
        self.policy: PermissionPolicy = dict(policy or {})
        self.include_private = include_private
        self._predicates: dict[str, PredicateFactory] = dict(predicates or {})
        self._resolved: dict[str, dict[str, bool | CheckPermission]] = {}

    def register_predicate(self, name: str, factory: PredicateFactory) -> None:
        """Register *factory* for policy entries that name *name*.

        The factory receives the model handle and the field group alias and
        returns (or resolves to) the per-tile check the graph client applies.
        """
        self._predicates[name] = factory

    def policy_for(self, model_class_name: str) -> Any:
        return self.policy.get(model_class_name, False)

    def is_exported(self, model_class_name: str) -> bool:
        return self.include_private or self.policy_for(model_class_name) is not False

    async def permitted_groups(
        self, model_class_name: str, model: ModelHandle | None = None
    ) -> Decision:
        if self.include_private:
            return Visibility.ALL

        entry = self.policy_for(model_class_name)
        if entry is False or entry is None:
            return Visibility.NONE
        if entry is True:
            return Visibility.ALL

        cached = self._resolved.get(model_class_name)
        if cached is not None:
            return dict(cached)

        resolved: dict[str, bool | CheckPermission] = {}
        for alias, value in entry.items():
            if isinstance(value, bool):
                resolved[alias] = value
                continue
            factory = self._predicates.get(value)
            if factory is None:
                raise MissingConfigError(
                    f"permission predicate {value}",
                    f"Permission predicate {value!r} for {model_class_name}.{alias} is not registered",
                )
            check = factory(model, alias)
            if inspect.isawaitable(check):
                check = await check
            resolved[alias] = check
            logger.debug(
                "permissions.predicate_resolved",
                model=model_class_name,
                alias=alias,
                predicate=value,
            )

        self._resolved[model_class_name] = resolved
        return dict(resolved)

    async def apply(self, model: ModelHandle, model_class_name: str | None = None) -> Decision:
        """Set *model*'s nodegroup permissions from the policy."""
        class_name = model_class_name or model.model_class_name
        decision = await self.permitted_groups(class_name, model)

        if decision is Visibility.ALL:
            model.set_default_allow_all_nodegroups(True)
        elif decision is Visibility.NONE:
            model.set_default_allow_all_nodegroups(False)
            model.set_permitted_nodegroups({})
        else:
            model.set_default_allow_all_nodegroups(False)
            model.set_permitted_nodegroups(decision)

        logger.debug(
            "permissions.applied",
            model=class_name,
            decision=decision.value if isinstance(decision, Visibility) else sorted(decision),
        )
        return decision

    def prune_definition(
        self, graph: Mapping[str, Any], model_class_name: str
    ) -> dict[str, Any] | None:
        """Copy of *graph* limited to visible field groups, or ``None`` if none are.

        Predicate-controlled groups stay in the schema: whether a value is
        shown is decided per tile, but the field itself exists publicly.
        """
        if self.include_private:
            return prune_graph(graph, None)
        entry = self.policy_for(model_class_name)
        if entry is False or entry is None:
            return None
        if entry is True:
            return prune_graph(graph, None)
        visible = {alias for alias, allowed in entry.items() if allowed is not False}
        return prune_graph(graph, visible)


__all__ = ["Visibility", "Decision", "PermissionGate"]

"""
Progress and status rollup over the WBS tree.

The tree is Objective -> (child Objectives, Deliverables, Activities),
Deliverable -> Activities and Activity -> sub-Activities. Parents are
computed in post-order from their children; leaves keep their own values.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ..models import Activity, Entity
from ..store.store import EntityStore
from .wbs import activity_sort_key

logger = logging.getLogger(__name__)

ROLLUP_KINDS = ("objective", "deliverable", "activity")


@dataclass(frozen=True)
class NodeRollup:
    id: str
    kind: str
    progress: float
    status: str
    children: tuple[str, ...] = ()

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "progress": self.progress,
            "status": self.status,
            "children": list(self.children),
        }


@dataclass(frozen=True)
class AggregatedView:
    """Rolled-up progress and status for every Objective, Deliverable and Activity."""

    nodes: dict[str, NodeRollup]

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self.nodes

    def get(self, entity_id: str) -> NodeRollup | None:
        return self.nodes.get(entity_id)

    def progress(self, entity_id: str) -> float:
        node = self.nodes.get(entity_id)
        return node.progress if node else 0.0

    def status(self, entity_id: str) -> str | None:
        node = self.nodes.get(entity_id)
        return node.status if node else None

    def to_dict(self) -> dict[str, Any]:
        return {node_id: self.nodes[node_id].to_dict() for node_id in sorted(self.nodes)}


def leaf_progress(entity: Entity) -> float:
    progress = getattr(entity, "progress", None)
    if progress is None:
        if isinstance(entity, Activity) and entity.is_done:
            return 100.0
        return 0.0
    return float(min(max(progress, 0.0), 100.0))


def rollup_status(statuses: list[str]) -> str:
    if any(s == "blocked" for s in statuses):
        return "blocked"
    if any(s == "active" for s in statuses):
        return "active"
    if statuses and all(s == "done" for s in statuses):
        return "done"
    return "draft"


def weighted_mean(values: list[float], weights: list[float]) -> float:
    """Weighted mean; all-zero (or negative-sum) weights fall back to equal weights."""
    if not values:
        return 0.0
    total = sum(weights)
    if total <= 0:
        return sum(values) / len(values)
    return sum(v * w for v, w in zip(values, weights)) / total


def _child_weight(entity: Entity) -> float:
    weight = getattr(entity, "weight", None)
    return 1.0 if weight is None else float(weight)


def _ordered_children(store: EntityStore, entity_id: str) -> list[Entity]:
    children = [store.require(child_id) for child_id in store.children_of(entity_id)]
    children = [c for c in children if c.kind in ROLLUP_KINDS]
    # Objectives, then deliverables, then activities in WBS order
    return sorted(
        children,
        key=lambda c: (ROLLUP_KINDS.index(c.kind), activity_sort_key(c) if isinstance(c, Activity) else (0, (), c.id)),
    )


def _rollup(entity: Entity, child_rollups: list[tuple[Entity, NodeRollup]]) -> NodeRollup:
    if child_rollups:
        progress = weighted_mean(
            [r.progress for _, r in child_rollups],
            [_child_weight(c) for c, _ in child_rollups],
        )
        status = rollup_status([r.status for _, r in child_rollups])
    else:
        progress = leaf_progress(entity)
        status = getattr(entity, "status", "draft") or "draft"
    return NodeRollup(
        id=entity.id,
        kind=entity.kind,
        progress=progress,
        status=status,
        children=tuple(c.id for c, _ in child_rollups),
    )


def _compute(store: EntityStore) -> AggregatedView:
    nodes: dict[str, NodeRollup] = {}
    visiting: set[str] = set()

    # Post-order walk with an explicit stack; deep hierarchies must not recurse
    for kind in ROLLUP_KINDS:
        for root in store.all(kind):
            if root.id in nodes:
                continue
            visiting.add(root.id)
            root_children = _ordered_children(store, root.id)
            stack = [(root, root_children, iter(root_children))]
            while stack:
                entity, children, pending = stack[-1]
                for child in pending:
                    if child.id in nodes or child.id in visiting:
                        # A child still being visited is a parent cycle; the validator reports it
                        continue
                    visiting.add(child.id)
                    grandchildren = _ordered_children(store, child.id)
                    stack.append((child, grandchildren, iter(grandchildren)))
                    break
                else:
                    stack.pop()
                    nodes[entity.id] = _rollup(entity, [(c, nodes[c.id]) for c in children if c.id in nodes])
                    visiting.discard(entity.id)

    logger.debug("Aggregated %d WBS node(s)", len(nodes))
    return AggregatedView(nodes=nodes)


def aggregate(store: EntityStore) -> AggregatedView:
    """Roll up progress and status. Memoised until the store's next write."""
    return store.cached("aggregate", lambda: _compute(store))

"""In-memory entity store with typed lookup tables."""

from __future__ import annotations

import copy
import json
import logging
from collections import defaultdict
from typing import Any, Callable, Iterable, Iterator, TypeVar

from ..errors import EntityNotFound, ValidationError
from ..models import (
    Activity,
    Actor,
    Assumption,
    Consideration,
    Constraint,
    Decision,
    Deliverable,
    Entity,
    Objective,
    Problem,
    Quality,
    Risk,
    Subsystem,
    UseCase,
    Vision,
    kind_for_id,
)
from .codec import entities_from_dict, store_to_dict
from .relations import OWNER_KINDS, OwnerRef, hierarchy_relations, iter_references, iter_targets

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EntityStore:
    """
    Collection of project entities keyed by id.

    The store owns its records. Writers replace whole records with ``put`` and
    every write bumps ``version``; derived data computed through ``cached`` is
    dropped on the next write. Mutation paths never edit a live store that
    readers may hold: they work on ``copy()`` and swap the reference.
    """

    def __init__(self, entities: Iterable[Entity] = ()):
        self._entities: dict[str, Entity] = {}
        self._cache: dict[str, Any] = {}
        self.version = 0
        for entity in entities:
            self._entities[entity.id] = entity

    # --- basic access -------------------------------------------------------

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._entities

    def __len__(self) -> int:
        return len(self._entities)

    def __iter__(self) -> Iterator[Entity]:
        return iter(self.all())

    def get(self, entity_id: str | None) -> Entity | None:
        if not entity_id:
            return None
        return self._entities.get(entity_id)

    def require(self, entity_id: str) -> Entity:
        entity = self.get(entity_id)
        if entity is None:
            raise EntityNotFound(entity_id)
        return entity

    def kind_of(self, entity_id: str | None) -> str | None:
        entity = self.get(entity_id)
        return entity.kind if entity is not None else None

    def all(self, kind: str | None = None) -> list[Entity]:
        """All entities (optionally of one kind) sorted by id."""
        return list(self.cached(f"all:{kind}", lambda: sorted(
            (e for e in self._entities.values() if kind is None or e.kind == kind),
            key=lambda e: e.id,
        )))

    def ids(self) -> list[str]:
        return [e.id for e in self.all()]

    # --- typed views --------------------------------------------------------

    @property
    def vision(self) -> Vision | None:
        visions = self.all("vision")
        return visions[0] if visions else None  # type: ignore[return-value]

    @property
    def objectives(self) -> list[Objective]:
        return self.all("objective")  # type: ignore[return-value]

    @property
    def deliverables(self) -> list[Deliverable]:
        return self.all("deliverable")  # type: ignore[return-value]

    @property
    def activities(self) -> list[Activity]:
        return self.all("activity")  # type: ignore[return-value]

    @property
    def problems(self) -> list[Problem]:
        return self.all("problem")  # type: ignore[return-value]

    @property
    def risks(self) -> list[Risk]:
        return self.all("risk")  # type: ignore[return-value]

    @property
    def assumptions(self) -> list[Assumption]:
        return self.all("assumption")  # type: ignore[return-value]

    @property
    def constraints(self) -> list[Constraint]:
        return self.all("constraint")  # type: ignore[return-value]

    @property
    def qualities(self) -> list[Quality]:
        return self.all("quality")  # type: ignore[return-value]

    @property
    def considerations(self) -> list[Consideration]:
        return self.all("consideration")  # type: ignore[return-value]

    @property
    def decisions(self) -> list[Decision]:
        return self.all("decision")  # type: ignore[return-value]

    @property
    def subsystems(self) -> list[Subsystem]:
        return self.all("subsystem")  # type: ignore[return-value]

    @property
    def actors(self) -> list[Actor]:
        return self.all("actor")  # type: ignore[return-value]

    @property
    def usecases(self) -> list[UseCase]:
        return self.all("usecase")  # type: ignore[return-value]

    # --- writes -------------------------------------------------------------

    def put(self, entity: Entity) -> None:
        """Insert or replace a whole record."""
        if not entity.id:
            raise ValidationError(f"{entity.kind} record is missing an id")
        expected = kind_for_id(entity.id)
        if expected is not None and expected != entity.kind:
            raise ValidationError(
                f"Id {entity.id} has the prefix of a {expected}, not a {entity.kind}"
            )
        self._entities[entity.id] = entity
        self._touch()

    def remove(self, entity_id: str) -> Entity:
        entity = self._entities.pop(entity_id, None)
        if entity is None:
            raise EntityNotFound(entity_id)
        self._touch()
        return entity

    def _touch(self) -> None:
        self.version += 1
        self._cache.clear()

    # --- derived data -------------------------------------------------------

    def cached(self, key: str, factory: Callable[[], T]) -> T:
        """Memoise ``factory()`` until the next write."""
        if key not in self._cache:
            self._cache[key] = factory()
        return self._cache[key]

    def children_of(self, entity_id: str) -> list[str]:
        """Ids of entities whose hierarchy link (parent_id/objective_id) names ``entity_id``."""
        return list(self.cached("children", self._build_children_index).get(entity_id, []))

    def _build_children_index(self) -> dict[str, list[str]]:
        index: dict[str, list[str]] = defaultdict(list)
        descriptors = hierarchy_relations()
        for entity in self.all():
            for descriptor in descriptors:
                if descriptor.kind != entity.kind:
                    continue
                for target in iter_targets(entity, descriptor):
                    index[target].append(entity.id)
        return dict(index)

    def references_to(self, entity_id: str) -> list[tuple[str, str]]:
        """(source_id, field) pairs for every reference pointing at ``entity_id``."""
        index = self.cached("references", self._build_reference_index)
        return list(index.get(entity_id, []))

    def _build_reference_index(self) -> dict[str, list[tuple[str, str]]]:
        index: dict[str, list[tuple[str, str]]] = defaultdict(list)
        for entity in self.all():
            for descriptor, target in iter_references(entity):
                index[target].append((entity.id, descriptor.field))
        return dict(index)

    def owner_of(self, activity: Activity) -> OwnerRef | None:
        """Resolve an Activity's parent to a tagged OwnerRef, or None if absent/invalid."""
        kind = self.kind_of(activity.parent_id)
        if kind not in OWNER_KINDS:
            return None
        return OwnerRef(kind=kind, id=activity.parent_id)  # type: ignore[arg-type]

    # --- copies and serialization --------------------------------------------

    def copy(self) -> "EntityStore":
        """Deep copy; the copy continues the version sequence."""
        clone = EntityStore(copy.deepcopy(list(self._entities.values())))
        clone.version = self.version
        return clone

    def to_dict(self) -> dict[str, list[dict[str, Any]]]:
        return store_to_dict(list(self._entities.values()))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EntityStore":
        store = cls(entities_from_dict(data))
        logger.debug("Loaded store with %d entities", len(store))
        return store

    def to_json(self) -> str:
        """Canonical JSON (sorted keys, compact) of the store content."""
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))

    def content_equals(self, other: "EntityStore") -> bool:
        return self.to_dict() == other.to_dict()

"""Data models for project entities."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Literal

# Work status shared by Objectives, Deliverables and Activities
Status = Literal["draft", "active", "blocked", "done"]
STATUSES = ("draft", "active", "blocked", "done")

Priority = Literal["high", "medium", "low"]
PRIORITIES = ("high", "medium", "low")

Severity = Literal["low", "medium", "high", "critical"]
SEVERITIES = ("low", "medium", "high", "critical")

Probability = Literal["low", "medium", "high"]
PROBABILITIES = ("low", "medium", "high")

# Risk impact shares the severity scale
IMPACTS = SEVERITIES

ActorType = Literal["human", "system", "time", "device", "external"]
ACTOR_TYPES = ("human", "system", "time", "device", "external")

UseCaseRelationType = Literal["include", "extend", "generalize"]
USE_CASE_RELATION_TYPES = ("include", "extend", "generalize")

ActorRole = Literal["primary", "secondary"]
ACTOR_ROLES = ("primary", "secondary")

PROBABILITY_WEIGHTS = {"low": 1, "medium": 2, "high": 3}
IMPACT_WEIGHTS = {"low": 1, "medium": 2, "high": 3, "critical": 4}


def risk_score(probability: str, impact: str) -> int:
    """Return probability x impact using the fixed weight tables.

    Unknown levels count as the lowest weight.
    """
    return PROBABILITY_WEIGHTS.get(probability, 1) * IMPACT_WEIGHTS.get(impact, 1)


def score_level(score: int) -> str:
    if score >= 8:
        return "critical"
    if score >= 6:
        return "high"
    if score >= 3:
        return "medium"
    return "low"


@dataclass
class Entity:
    """Fields shared by every project record."""

    id: str
    title: str = ""
    description: str = ""
    created_at: str = ""
    updated_at: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    kind: ClassVar[str] = "entity"
    prefix: ClassVar[str] = ""


@dataclass
class Vision(Entity):
    statement: str = ""
    success_criteria: list[str] = field(default_factory=list)

    kind: ClassVar[str] = "vision"
    prefix: ClassVar[str] = "vision"


@dataclass
class Objective(Entity):
    status: str = "draft"
    progress: float | None = None  # 0-100
    deadline: str | None = None
    weight: float | None = None
    parent_id: str | None = None

    kind: ClassVar[str] = "objective"
    prefix: ClassVar[str] = "obj"


@dataclass
class Deliverable(Entity):
    status: str = "draft"
    progress: float | None = None
    format: str = ""
    weight: float | None = None
    objective_id: str | None = None

    kind: ClassVar[str] = "deliverable"
    prefix: ClassVar[str] = "del"


@dataclass
class Activity(Entity):
    """A unit of work in the WBS.

    ``parent_id`` may name an Activity, Deliverable or Objective; the kind is
    resolved through the owner allow-list in ``zeus.store.relations``.
    """

    status: str = "draft"
    priority: str = "medium"
    wbs_path: str = ""
    depends_on: list[str] = field(default_factory=list)
    parent_id: str | None = None
    progress: float | None = None
    duration: float | None = None  # days
    estimate_hours: float | None = None
    weight: float | None = None
    due_date: str | None = None
    assignee: str = ""

    kind: ClassVar[str] = "activity"
    prefix: ClassVar[str] = "act"

    @property
    def is_done(self) -> bool:
        return self.status == "done"


@dataclass
class Problem(Entity):
    severity: str = "medium"
    resolved: bool = False
    relates_to: str | None = None

    kind: ClassVar[str] = "problem"
    prefix: ClassVar[str] = "prob"


@dataclass
class Risk(Entity):
    probability: str = "low"
    impact: str = "low"
    score: int = 0
    mitigated: bool = False
    relates_to: str | None = None
    mitigated_by: str | None = None

    kind: ClassVar[str] = "risk"
    prefix: ClassVar[str] = "risk"

    def __post_init__(self) -> None:
        self.score = risk_score(self.probability, self.impact)

    @property
    def score_level(self) -> str:
        return score_level(self.score)


@dataclass
class Assumption(Entity):
    validated: bool = False
    relates_to: str | None = None

    kind: ClassVar[str] = "assumption"
    prefix: ClassVar[str] = "assum"


@dataclass
class Constraint(Entity):
    category: str = ""
    non_negotiable: bool = False
    applies_to: str | None = None  # None = global
    superseded_by: str | None = None

    kind: ClassVar[str] = "constraint"
    prefix: ClassVar[str] = "const"


@dataclass
class QualityMetric:
    name: str
    target: str = ""
    unit: str = ""


@dataclass
class Quality(Entity):
    metrics: list[QualityMetric] = field(default_factory=list)
    objective_id: str | None = None

    kind: ClassVar[str] = "quality"
    prefix: ClassVar[str] = "qual"


@dataclass
class ConsiderationOption:
    id: str
    title: str = ""


@dataclass
class Consideration(Entity):
    options: list[ConsiderationOption] = field(default_factory=list)
    objective_id: str | None = None
    decision_id: str | None = None

    kind: ClassVar[str] = "consideration"
    prefix: ClassVar[str] = "con"


@dataclass
class Decision(Entity):
    selected_option_id: str = ""
    rationale: str = ""
    consideration_id: str | None = None

    kind: ClassVar[str] = "decision"
    prefix: ClassVar[str] = "dec"


@dataclass
class Subsystem(Entity):
    name: str = ""

    kind: ClassVar[str] = "subsystem"
    prefix: ClassVar[str] = "sub"


@dataclass
class Actor(Entity):
    type: str = "human"

    kind: ClassVar[str] = "actor"
    prefix: ClassVar[str] = "actor"


@dataclass
class UseCaseActor:
    actor_id: str
    role: str = "primary"


@dataclass
class UseCaseRelation:
    type: str
    target_id: str


@dataclass
class UseCase(Entity):
    actors: list[UseCaseActor] = field(default_factory=list)
    relations: list[UseCaseRelation] = field(default_factory=list)
    objective_id: str | None = None
    subsystem_id: str | None = None

    kind: ClassVar[str] = "usecase"
    prefix: ClassVar[str] = "uc"


# Registry: kind -> class, in the order entities are listed and serialized
ENTITY_TYPES: dict[str, type[Entity]] = {
    cls.kind: cls
    for cls in (
        Vision,
        Objective,
        Deliverable,
        Activity,
        Problem,
        Risk,
        Assumption,
        Constraint,
        Quality,
        Consideration,
        Decision,
        Subsystem,
        Actor,
        UseCase,
    )
}

KIND_BY_PREFIX: dict[str, str] = {cls.prefix: kind for kind, cls in ENTITY_TYPES.items()}

# Nested record types inside list fields
NESTED_TYPES: dict[tuple[str, str], type] = {
    ("quality", "metrics"): QualityMetric,
    ("consideration", "options"): ConsiderationOption,
    ("usecase", "actors"): UseCaseActor,
    ("usecase", "relations"): UseCaseRelation,
}


def kind_for_id(entity_id: str) -> str | None:
    """Infer an entity kind from the id prefix (``obj-...`` -> ``objective``)."""
    prefix, sep, _ = (entity_id or "").partition("-")
    if not sep:
        return None
    return KIND_BY_PREFIX.get(prefix)

"""Plain-data <-> entity conversion."""

from __future__ import annotations

from dataclasses import asdict, fields
from typing import Any

from ..errors import ValidationError
from ..models import (
    ACTOR_ROLES,
    ACTOR_TYPES,
    ENTITY_TYPES,
    IMPACTS,
    NESTED_TYPES,
    PRIORITIES,
    PROBABILITIES,
    SEVERITIES,
    STATUSES,
    USE_CASE_RELATION_TYPES,
    Entity,
)
from ..util import parse_timestamp

# Allowed values per (kind, field); nested records use "kind.list_field"
FIELD_CHOICES: dict[tuple[str, str], tuple[str, ...]] = {
    ("objective", "status"): STATUSES,
    ("deliverable", "status"): STATUSES,
    ("activity", "status"): STATUSES,
    ("activity", "priority"): PRIORITIES,
    ("problem", "severity"): SEVERITIES,
    ("risk", "probability"): PROBABILITIES,
    ("risk", "impact"): IMPACTS,
    ("actor", "type"): ACTOR_TYPES,
    ("usecase.actors", "role"): ACTOR_ROLES,
    ("usecase.relations", "type"): USE_CASE_RELATION_TYPES,
}

PERCENT_FIELDS = frozenset({"progress"})
NON_NEGATIVE_FIELDS = frozenset({"duration", "estimate_hours", "weight"})
DATE_FIELDS = frozenset({"deadline", "due_date"})

_TYPE_NAMES = {
    "str": "a string",
    "float": "a number",
    "int": "an integer",
    "bool": "true or false",
    "list[str]": "a list of strings",
}


def _is_number(value: Any) -> bool:
    # bool is an int subclass
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _matches(annotation: str, value: Any) -> bool:
    """Check ``value`` against a dataclass field annotation (a string under postponed evaluation)."""
    base = annotation.removesuffix(" | None")
    if value is None:
        return base != annotation
    if base == "str":
        return isinstance(value, str)
    if base == "float":
        return _is_number(value)
    if base == "int":
        return _is_number(value) and isinstance(value, int)
    if base == "bool":
        return isinstance(value, bool)
    if base == "list[str]":
        return isinstance(value, list) and all(isinstance(v, str) for v in value)
    if base.startswith("list["):
        return isinstance(value, list)
    if base.startswith("dict["):
        return isinstance(value, dict)
    return True


def _describe(annotation: str) -> str:
    base = annotation.removesuffix(" | None")
    if base.startswith("dict["):
        name = "a mapping"
    else:
        name = _TYPE_NAMES.get(base, "a list" if base.startswith("list[") else base)
    return name if base == annotation else f"{name} or empty"


def _plain_data_problem(value: Any) -> str | None:
    """Describe the first part of ``value`` that does not survive a JSON round trip."""
    stack = [value]
    while stack:
        current = stack.pop()
        if isinstance(current, dict):
            for key, item in current.items():
                if not isinstance(key, str):
                    return f"keys must be strings, got {key!r}"
                stack.append(item)
        elif isinstance(current, list):
            stack.extend(current)
        elif current is not None and not isinstance(current, (str, int, float, bool)):
            return f"unsupported value {current!r}"
    return None


def _check_record(label: str, choices_key: str, record: Any) -> None:
    for f in fields(record):
        value = getattr(record, f.name)
        if not _matches(f.type, value):
            raise ValidationError(f"{label}: {f.name} must be {_describe(f.type)}, got {value!r}")
        choices = FIELD_CHOICES.get((choices_key, f.name))
        if choices and value not in choices:
            raise ValidationError(f"{label}: {f.name} must be one of {', '.join(choices)}, got {value!r}")


def check_entity(entity: Entity) -> None:
    """Reject values of the wrong type, outside their enum or out of range.

    Raises ValidationError naming the entity and field.
    """
    label = f"{entity.kind} {entity.id}"
    _check_record(label, entity.kind, entity)

    for f in fields(entity):
        value = getattr(entity, f.name)
        if value is None:
            continue
        if f.name in PERCENT_FIELDS and not 0 <= value <= 100:
            raise ValidationError(f"{label}: {f.name} must be between 0 and 100, got {value!r}")
        if f.name in NON_NEGATIVE_FIELDS and value < 0:
            raise ValidationError(f"{label}: {f.name} must not be negative, got {value!r}")
        if f.name in DATE_FIELDS and value and parse_timestamp(value) is None:
            raise ValidationError(f"{label}: {f.name} must be an ISO date (YYYY-MM-DD), got {value!r}")

    problem = _plain_data_problem(entity.metadata)
    if problem:
        raise ValidationError(f"{label}: metadata {problem}")

    for (nested_kind, field_name), _ in NESTED_TYPES.items():
        if nested_kind != entity.kind:
            continue
        for item in getattr(entity, field_name):
            _check_record(f"{label} {field_name}", f"{nested_kind}.{field_name}", item)


def entity_to_dict(entity: Entity) -> dict[str, Any]:
    """Convert an entity to a JSON/YAML-ready dict (nested records included)."""
    return asdict(entity)


def entity_from_dict(kind: str, data: dict[str, Any]) -> Entity:
    """Build and check an entity of ``kind`` from plain data.

    Unknown keys are rejected so typos in hand-edited files surface early.
    """
    cls = ENTITY_TYPES.get(kind)
    if cls is None:
        raise ValidationError(f"Unknown entity kind: {kind}")
    if not isinstance(data, dict):
        raise ValidationError(f"{kind} record must be a mapping")

    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValidationError(f"{kind} {data.get('id', '?')}: unknown field(s) {', '.join(unknown)}")
    if not data.get("id"):
        raise ValidationError(f"{kind} record is missing an id")

    values = dict(data)
    for list_field in ("depends_on", "success_criteria"):
        if list_field in values and values[list_field] is None:
            values[list_field] = []
    if "metadata" in values and values["metadata"] is None:
        values["metadata"] = {}

    try:
        for (nested_kind, field_name), nested_cls in NESTED_TYPES.items():
            if nested_kind != kind or field_name not in values:
                continue
            items = values[field_name] or []
            if not isinstance(items, list):
                raise ValidationError(f"{kind} {data['id']}: {field_name} must be a list")
            values[field_name] = [
                item if isinstance(item, nested_cls) else nested_cls(**item) for item in items
            ]
        entity = cls(**values)
    except TypeError as e:
        raise ValidationError(f"{kind} {data.get('id')}: {e}") from e

    check_entity(entity)
    return entity


def store_to_dict(entities: list[Entity]) -> dict[str, list[dict[str, Any]]]:
    """Group entities by kind in registry order, each group sorted by id."""
    grouped: dict[str, list[dict[str, Any]]] = {}
    for kind in ENTITY_TYPES:
        records = sorted((e for e in entities if e.kind == kind), key=lambda e: e.id)
        if records:
            grouped[kind] = [entity_to_dict(e) for e in records]
    return grouped


def entities_from_dict(data: dict[str, Any]) -> list[Entity]:
    """Inverse of store_to_dict."""
    entities: list[Entity] = []
    for kind, records in (data or {}).items():
        if kind not in ENTITY_TYPES:
            raise ValidationError(f"Unknown entity kind: {kind}")
        for record in records or []:
            entities.append(entity_from_dict(kind, record))
    return entities

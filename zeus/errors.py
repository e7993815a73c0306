"""
Error types raised by the project engine.

Every error derives from ZeusError so callers (the CLI in particular) can
catch the whole family in one place. Lookup failures also derive from
KeyError so they behave like missing mapping keys.
"""

from __future__ import annotations

from typing import Sequence


class ZeusError(Exception):
    """Base class for all engine errors."""


class ValidationError(ZeusError):
    """A structural invariant was violated. Never auto-recovered."""


class CycleError(ZeusError):
    """A cycle was found in a graph that must be acyclic."""

    def __init__(self, path: Sequence[str], entity_kind: str = "activity"):
        self.path = list(path)
        self.entity_kind = entity_kind
        super().__init__(f"{entity_kind} cycle detected: {' -> '.join(self.path)}")


class InvalidStateTransition(ZeusError):
    """approve/reject on an item that is no longer pending."""

    def __init__(self, item_id: str, current: str, action: str):
        self.item_id = item_id
        self.current = current
        self.action = action
        super().__init__(f"Cannot {action} {item_id}: item is {current}, expected pending")


class EntityReferenceError(ZeusError):
    """An id in a relation field does not resolve to an entity of an allowed kind."""

    def __init__(self, source_id: str, field: str, target_id: str, required: bool = True):
        self.source_id = source_id
        self.field = field
        self.target_id = target_id
        self.required = required
        kind = "required" if required else "optional"
        if target_id:
            message = f"{source_id}.{field} references unknown entity {target_id} ({kind})"
        else:
            message = f"{source_id}.{field} is empty ({kind})"
        super().__init__(message)


class EntityNotFound(ZeusError, KeyError):
    """No entity with the given id exists in the store."""

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(entity_id)

    def __str__(self) -> str:
        return f"Entity not found: {self.entity_id}"


class ItemNotFound(ZeusError, KeyError):
    """No approval item with the given id exists."""

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(item_id)

    def __str__(self) -> str:
        return f"Item not found: {self.item_id}"


class SnapshotNotFound(ZeusError, KeyError):
    """No snapshot with the given version exists."""

    def __init__(self, version: int):
        self.version = version
        super().__init__(version)

    def __str__(self) -> str:
        return f"Snapshot not found: version {self.version}"


class ConfigError(ZeusError):
    """A settings file is malformed."""

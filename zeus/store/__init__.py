"""Entity store, relation table and dependency graph."""

from .graph import DependencyGraph
from .relations import RELATIONS, OwnerRef, RelationDescriptor, relations_for
from .store import EntityStore

__all__ = [
    "DependencyGraph",
    "EntityStore",
    "OwnerRef",
    "RELATIONS",
    "RelationDescriptor",
    "relations_for",
]

"""Approval queue, store mutations and snapshot history."""

from .history import Snapshot, SnapshotHistory
from .manager import ApplyOutcome, ApprovalManager, approval_level
from .mutations import (
    AddDependency,
    CreateEntity,
    DeleteEntity,
    Mutation,
    UpdateEntity,
    apply_mutation,
    preview_mutation,
)
from .state import ItemState

__all__ = [
    "AddDependency",
    "ApplyOutcome",
    "ApprovalManager",
    "CreateEntity",
    "DeleteEntity",
    "ItemState",
    "Mutation",
    "Snapshot",
    "SnapshotHistory",
    "UpdateEntity",
    "apply_mutation",
    "approval_level",
    "preview_mutation",
]

"""zeus - project graph and analysis engine."""

__version__ = "0.1.0"

from .analysis import (
    AggregatedView,
    Schedule,
    Suggestion,
    aggregate,
    analyze_bottlenecks,
    analyze_dependencies,
    generate_suggestions,
)
from .approval import ApplyOutcome, ApprovalManager, Mutation, Snapshot, SnapshotHistory
from .config import Settings, load_settings
from .doctor import DiagnosisResult, Finding, FixResult, diagnose, fix, validate
from .errors import (
    ConfigError,
    CycleError,
    EntityNotFound,
    EntityReferenceError,
    InvalidStateTransition,
    ItemNotFound,
    SnapshotNotFound,
    ValidationError,
    ZeusError,
)
from .store import EntityStore

__all__ = [
    "__version__",
    "AggregatedView",
    "ApplyOutcome",
    "ApprovalManager",
    "ConfigError",
    "CycleError",
    "DiagnosisResult",
    "EntityNotFound",
    "EntityReferenceError",
    "EntityStore",
    "Finding",
    "FixResult",
    "InvalidStateTransition",
    "ItemNotFound",
    "Mutation",
    "Schedule",
    "Settings",
    "Snapshot",
    "SnapshotHistory",
    "SnapshotNotFound",
    "Suggestion",
    "ValidationError",
    "ZeusError",
    "aggregate",
    "analyze_bottlenecks",
    "analyze_dependencies",
    "diagnose",
    "fix",
    "generate_suggestions",
    "load_settings",
    "validate",
]

"""Derived views: rollups, scheduling, suggestions, bottlenecks and health."""

from .aggregate import AggregatedView, NodeRollup, aggregate
from .bottleneck import Bottleneck, BottleneckAnalysis, analyze_bottlenecks
from .coverage import CoverageAnalysis, CoverageIssue, analyze_coverage
from .critical_path import NodeSchedule, Schedule, activity_duration, analyze_dependencies
from .health import ProjectHealth, project_health
from .predict import Prediction, predict
from .stale import StaleAnalysis, StaleEntity, analyze_stale
from .suggestions import Suggestion, generate_suggestions
from .wbs import assign_wbs_codes, compare_wbs_codes

__all__ = [
    "AggregatedView",
    "Bottleneck",
    "BottleneckAnalysis",
    "CoverageAnalysis",
    "CoverageIssue",
    "NodeRollup",
    "NodeSchedule",
    "Prediction",
    "ProjectHealth",
    "Schedule",
    "StaleAnalysis",
    "StaleEntity",
    "Suggestion",
    "activity_duration",
    "aggregate",
    "analyze_bottlenecks",
    "analyze_coverage",
    "analyze_dependencies",
    "analyze_stale",
    "assign_wbs_codes",
    "compare_wbs_codes",
    "generate_suggestions",
    "predict",
    "project_health",
]

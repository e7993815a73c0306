"""Integrity validation ("doctor") and automatic repair."""

from .fixer import AutoFixer, FixAction, FixPlan, FixResult, fix
from .validator import DiagnosisResult, Finding, IntegrityValidator, diagnose, validate

__all__ = [
    "AutoFixer",
    "DiagnosisResult",
    "Finding",
    "FixAction",
    "FixPlan",
    "FixResult",
    "IntegrityValidator",
    "diagnose",
    "fix",
    "validate",
]

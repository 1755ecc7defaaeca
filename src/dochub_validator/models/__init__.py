"""Data models for dochub-validator."""

from .report import (
    Diagnostic,
    DiagnosticKind,
    ManifestInfo,
    ReportStats,
    RuleItem,
    RuleResult,
    ValidationReport,
)

__all__ = [
    "Diagnostic",
    "DiagnosticKind",
    "ManifestInfo",
    "ReportStats",
    "RuleItem",
    "RuleResult",
    "ValidationReport",
]

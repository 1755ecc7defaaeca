"""Load-time diagnostics collection for dochub-validator."""

from .collector import DiagnosticsCollector

__all__ = [
    "DiagnosticsCollector",
]

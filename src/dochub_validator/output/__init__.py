"""Report rendering for dochub-validator."""

from .formatter import ReportFormat, format_json, format_report, format_text

__all__ = [
    "ReportFormat",
    "format_json",
    "format_report",
    "format_text",
]

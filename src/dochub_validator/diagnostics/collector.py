"""Session-scoped collection of load-time diagnostics.

Collects fetch, parse and structural problems found while resolving a manifest.
Entries are keyed by the locator they concern, so repeated failures at the same
locator collapse into one entry.
"""

import logging

from dochub_validator.models.report import Diagnostic, DiagnosticKind

logger = logging.getLogger(__name__)


class DiagnosticsCollector:
    """Collects load diagnostics during a single validation session."""

    def __init__(self):
        self._entries: dict[str, Diagnostic] = {}

    def report(
        self,
        locator: str,
        message: str,
        kind: DiagnosticKind,
        correction: str | None = None,
        cause: str | None = None,
    ) -> Diagnostic:
        """Record a diagnostic for ``locator``.

        Inserting twice for the same locator is a no-op: the first entry is kept
        and returned.

        Args:
            locator: Locator the problem concerns
            message: Human readable description
            kind: Diagnostic kind
            correction: Optional hint on how to fix the problem
            cause: Optional underlying cause

        Returns:
            The stored diagnostic
        """
        entry = Diagnostic.for_locator(locator, message, kind, correction, cause)

        existing = self._entries.get(entry.id)
        if existing is not None:
            logger.debug(f"Diagnostic for {locator} already recorded, ignoring: {message}")
            return existing

        self._entries[entry.id] = entry
        logger.warning(f"{entry.title}: {message} ({locator})")
        return entry

    def entries(self) -> list[Diagnostic]:
        """Return collected diagnostics in insertion order."""
        return list(self._entries.values())

    def get(self, diagnostic_id: str) -> Diagnostic | None:
        return self._entries.get(diagnostic_id)

    def has_errors(self) -> bool:
        """Check if any diagnostics have been collected."""
        return len(self._entries) > 0

    def count_by_kind(self) -> dict[str, int]:
        """Get diagnostic counts by kind."""
        counts = {kind.value: 0 for kind in DiagnosticKind}

        for entry in self._entries.values():
            counts[DiagnosticKind(entry.kind).value] += 1

        return counts

    def clear(self) -> None:
        """Drop all collected diagnostics."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, diagnostic_id: object) -> bool:
        return diagnostic_id in self._entries

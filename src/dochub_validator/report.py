"""Result aggregation: merges load diagnostics and rule results into a report."""

import logging
import traceback
from collections.abc import Iterable

from dochub_validator.models.report import (
    Diagnostic,
    ManifestInfo,
    ReportStats,
    RuleResult,
    ValidationReport,
)

logger = logging.getLogger(__name__)

CRITICAL_ERROR_ID = "critical-error"


def aggregate(
    diagnostics: Iterable[Diagnostic],
    results: Iterable[RuleResult],
    manifest: ManifestInfo,
    warnings: Iterable[str] = (),
) -> ValidationReport:
    """Build the validation report.

    Results without items and without an error passed and are not listed as
    problems. Results with a diagnostic-tagged id never count as validation
    errors and never fail the report.
    """
    diagnostics = list(diagnostics)
    results = list(results)

    failing = [r for r in results if r.has_issues and not r.is_diagnostic]
    problems: list[RuleResult] = [*diagnostics, *(r for r in results if r.is_problem)]

    report = ValidationReport(
        success=len(failing) == 0,
        manifest=manifest,
        problems=problems,
        stats=ReportStats(
            total_issues=len(problems),
            loading_errors=len(diagnostics),
            validation_errors=len(failing),
        ),
        warnings=list(warnings),
    )

    logger.info(
        f"Validation complete: {len(failing)} failing rule(s), {len(diagnostics)} loading error(s)"
    )
    return report


def critical_report(error: BaseException, manifest: ManifestInfo, verbose: bool = False) -> ValidationReport:
    """Build the degenerate report for a run that failed as a whole."""
    stack = None
    if verbose:
        stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))

    return ValidationReport(
        success=False,
        manifest=manifest.model_copy(update={"loaded": False}),
        problems=[
            RuleResult(
                id=CRITICAL_ERROR_ID,
                title="Critical Error",
                error=str(error) or type(error).__name__,
                stack=stack,
            )
        ],
        stats=ReportStats(total_issues=1, loading_errors=1, validation_errors=0),
    )

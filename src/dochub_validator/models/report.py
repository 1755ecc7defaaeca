"""Models for rule results, load diagnostics and the validation report."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny

from dochub_validator.locators import diagnostic_id, is_diagnostic_id


class DiagnosticKind(str, Enum):
    """Kinds of load-time problems."""
    FETCH = "fetch"            # Locator not found, transport error, timeout
    PARSE = "parse"            # Malformed fragment content
    STRUCTURE = "structure"    # Required section missing after merge
    AWAITED = "awaited"        # Deferred reference never settled


class RuleItem(BaseModel):
    """A single issue reported by a rule."""
    uid: str
    title: str
    location: str = ""
    description: str | None = None
    correction: str | None = None
    cause: str | None = None

    model_config = ConfigDict(frozen=True)


class RuleResult(BaseModel):
    """Outcome of evaluating one rule: zero or more items, or an error."""
    id: str
    title: str
    items: list[RuleItem] = Field(default_factory=list)
    error: str | None = None
    stack: str | None = None

    @property
    def is_diagnostic(self) -> bool:
        """Check if this result is a load diagnostic rather than a rule outcome."""
        return is_diagnostic_id(self.id)

    @property
    def has_issues(self) -> bool:
        """Check if the rule reported at least one item."""
        return len(self.items) > 0

    @property
    def is_problem(self) -> bool:
        """Check if the result deserves a place in the report's problem list."""
        return self.has_issues or self.error is not None


class Diagnostic(RuleResult):
    """A load-time problem keyed by the locator it happened at."""
    kind: DiagnosticKind
    locator: str

    model_config = ConfigDict(use_enum_values=True)

    @property
    def message(self) -> str:
        return self.items[0].title if self.items else self.title

    @classmethod
    def for_locator(
        cls,
        locator: str,
        message: str,
        kind: DiagnosticKind,
        correction: str | None = None,
        cause: str | None = None,
    ) -> "Diagnostic":
        """Build the diagnostic entry for a failure at ``locator``."""
        entry_id = diagnostic_id(locator)
        return cls(
            id=entry_id,
            title=_KIND_TITLES[kind],
            kind=kind,
            locator=locator,
            items=[
                RuleItem(
                    uid=entry_id,
                    title=message,
                    location=locator,
                    correction=correction,
                    cause=cause,
                )
            ],
        )


_KIND_TITLES = {
    DiagnosticKind.FETCH: "Failed to load fragment",
    DiagnosticKind.PARSE: "Malformed fragment",
    DiagnosticKind.STRUCTURE: "Missing manifest section",
    DiagnosticKind.AWAITED: "Unsettled import",
}


class ManifestInfo(BaseModel):
    """Where the validated manifest came from."""
    loaded: bool
    path: str
    workspace: str


class ReportStats(BaseModel):
    """Counters summarizing a validation report."""
    total_issues: int = Field(alias="totalIssues", default=0)
    loading_errors: int = Field(alias="loadingErrors", default=0)
    validation_errors: int = Field(alias="validationErrors", default=0)

    model_config = ConfigDict(populate_by_name=True)


class ValidationReport(BaseModel):
    """Result of one validation run; the sole data contract of the core."""
    success: bool
    manifest: ManifestInfo
    problems: list[SerializeAsAny[RuleResult]] = Field(default_factory=list)
    stats: ReportStats = Field(default_factory=ReportStats)
    warnings: list[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    @property
    def exit_code(self) -> int:
        """Exit code for CI: 0 = passed, 1 = rule issues, 2 = loading problems."""
        if self.success:
            return 0
        return 2 if self.stats.loading_errors > 0 else 1

    @property
    def real_problems(self) -> list[RuleResult]:
        """Rule results with items, excluding load diagnostics."""
        return [p for p in self.problems if p.has_issues and not p.is_diagnostic]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

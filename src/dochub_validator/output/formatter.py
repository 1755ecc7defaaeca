"""Rendering of validation reports as console text or JSON."""

import io
import json
from enum import Enum

from rich.console import Console
from rich.markup import escape

from dochub_validator.models.report import ValidationReport

RULE = "=" * 50


class ReportFormat(str, Enum):
    TEXT = "text"
    JSON = "json"


def format_report(
    report: ValidationReport,
    fmt: ReportFormat | str = ReportFormat.TEXT,
    color: bool = True,
    verbose: bool = False,
    pretty: bool = True,
) -> str:
    """Render ``report`` in the requested format.

    Raises:
        ValueError: If the format is unknown
    """
    fmt = ReportFormat(str(fmt).lower())
    if fmt == ReportFormat.JSON:
        return format_json(report, pretty=pretty)
    return format_text(report, color=color, verbose=verbose)


def format_json(report: ValidationReport, pretty: bool = True) -> str:
    """Render the report as JSON."""
    data = report.to_dict()
    output = {
        "success": data["success"],
        "manifest": data["manifest"],
        "stats": data["stats"],
        "problems": [
            {
                "id": problem.get("id"),
                "title": problem.get("title"),
                "error": problem.get("error"),
                "items": problem.get("items", []),
            }
            for problem in data["problems"]
        ],
    }
    if report.warnings:
        output["warnings"] = report.warnings

    return json.dumps(output, indent=2 if pretty else None, ensure_ascii=False)


def format_text(report: ValidationReport, color: bool = True, verbose: bool = False) -> str:
    """Render the report as human-readable text.

    Load diagnostics and passing rules are left out; only rules that reported
    items are listed.
    """
    buffer = io.StringIO()
    console = Console(
        file=buffer,
        force_terminal=color,
        no_color=not color,
        highlight=False,
        width=120,
        soft_wrap=True,
    )

    console.print()
    console.print("[bold]DocHub Architecture Validation[/bold]")
    console.print(f"[dim]{RULE}[/dim]")
    console.print()

    manifest = report.manifest
    if manifest.loaded:
        console.print("[green]✓[/green] Manifest loaded successfully")
        console.print(f"[dim]  Workspace: {escape(manifest.workspace)}[/dim]")
        console.print(f"[dim]  Root: {escape(manifest.path)}[/dim]")
    else:
        console.print("[red]✗[/red] Failed to load manifest")
        console.print(f"[dim]  Path: {escape(manifest.path)}[/dim]")
        for problem in report.problems:
            if problem.error:
                console.print(f"[red]  ✗ {escape(problem.error)}[/red]")
                if verbose and problem.stack:
                    console.print(f"[dim]{escape(_indent(problem.stack, 4))}[/dim]")
    console.print()

    if report.stats.validation_errors > 0:
        console.print("[bold]Summary:[/bold]")
        console.print(f"  Validation issues: {report.stats.validation_errors}")
        if verbose and report.stats.loading_errors:
            console.print(f"  Loading errors: {report.stats.loading_errors}")
        console.print()

    real_problems = report.real_problems
    if real_problems:
        console.print(f"[bold red]Found {len(real_problems)} validation issue(s):[/bold red]")
        console.print()

        for index, problem in enumerate(real_problems):
            console.print(
                f"[yellow]\\[{escape(problem.id)}][/yellow] "
                f"[bold]{escape(problem.title or 'Untitled validator')}[/bold]"
            )
            if problem.error:
                console.print(f"[red]  ✗ {escape(problem.error)}[/red]")

            for item in problem.items:
                console.print(f"[red]  ✗ {escape(item.title or 'Issue')}[/red]")
                if item.location:
                    console.print(f"[dim]    Location: {escape(item.location)}[/dim]")
                if item.description and verbose:
                    console.print(f"[dim]    Description: {escape(item.description)}[/dim]")
                if item.correction:
                    console.print(f"[cyan]    Fix: {escape(item.correction)}[/cyan]")
                if item.cause:
                    console.print(f"[dim]    Cause: {escape(item.cause)}[/dim]")

            if index < len(real_problems) - 1:
                console.print()
        console.print()

    if verbose:
        for warning in report.warnings:
            console.print(f"[yellow]⚠ {escape(warning)}[/yellow]")

    console.print(f"[dim]{RULE}[/dim]")
    if report.success:
        console.print("[bold green]✓ Validation PASSED[/bold green]")
    else:
        console.print("[bold red]✗ Validation FAILED[/bold red]")
    console.print()

    return buffer.getvalue()


def _indent(text: str, spaces: int) -> str:
    pad = " " * spaces
    return "\n".join(pad + line for line in text.splitlines())

"""CLI interface for dochub-validator using Typer framework."""

import logging
import os
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from dochub_validator import __description__, __version__
from dochub_validator.config import LogLevel, apply_environment, load_config
from dochub_validator.output import ReportFormat, format_report
from dochub_validator.pipeline import ManifestInputError, validate_manifest

EXIT_PASSED = 0
EXIT_FAILED = 1
EXIT_ERROR = 2

EPILOG = """
Exit codes: 0 - validation passed, 1 - architecture issues found,
2 - loading/parsing errors or fatal error.

Environment variables: VUE_APP_DOCHUB_ROOT_MANIFEST, VUE_APP_DOCHUB_ROLES_MODEL,
VUE_APP_DOCHUB_ROLES.
"""

app = typer.Typer(
    name="dochub-validate",
    help=__description__,
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool) -> None:
    """Show version information and exit."""
    if value:
        console.print(f"dochub-validate version {__version__}")
        raise typer.Exit()


LOG_LEVELS = {
    LogLevel.ERROR: logging.ERROR,
    LogLevel.WARN: logging.WARNING,
    LogLevel.INFO: logging.INFO,
    LogLevel.DEBUG: logging.DEBUG,
}


def _setup_logging(level: str, verbose: bool, color: bool) -> None:
    """Route library logging to stderr at the configured level (debug when verbose)."""
    handler = RichHandler(
        console=Console(stderr=True, no_color=not color),
        show_path=False,
        rich_tracebacks=verbose,
    )
    logging.basicConfig(
        level=logging.DEBUG if verbose else LOG_LEVELS[LogLevel(level)],
        format="%(message)s",
        handlers=[handler],
        force=True,
    )


@app.command(epilog=EPILOG)
def main(
    workspace: Annotated[
        Path,
        typer.Option("--workspace", "-w", help="Workspace directory containing manifests")
    ] = Path("."),
    root: Annotated[
        Optional[str],
        typer.Option("--root", "-r", help="Root manifest file name (default: dochub.yaml)")
    ] = None,
    format: Annotated[
        str,
        typer.Option("--format", "-f", help="Output format: text, json")
    ] = "text",
    no_color: Annotated[
        bool,
        typer.Option("--no-color", help="Disable colored output")
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose output")
    ] = False,
    pretty: Annotated[
        bool,
        typer.Option("--pretty/--compact", help="Pretty print JSON output (only for JSON format)")
    ] = True,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Write output to file instead of stdout")
    ] = None,
    config: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Configuration file path (default: search for .dochub-validate.json)")
    ] = None,
    version: Annotated[
        bool,
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version and exit")
    ] = False,
) -> None:
    """Validate DocHub architecture manifests."""
    valid_formats = [f.value for f in ReportFormat]
    if format.lower() not in valid_formats:
        err_console.print(
            f"[red]Error:[/red] Invalid format \"{format}\". Must be one of: {', '.join(valid_formats)}"
        )
        raise typer.Exit(EXIT_ERROR)

    try:
        validator_config = apply_environment(load_config(config), os.environ)
    except ValueError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(EXIT_ERROR)

    _setup_logging(validator_config.logging.level, verbose, color=not no_color)

    if verbose:
        err_console.print("Starting validation...")
        err_console.print(f"Workspace: {workspace}")
        err_console.print(f"Root manifest: {root or validator_config.loader.root_manifest}")

    try:
        report = validate_manifest(workspace, root, config=validator_config, verbose=verbose)
    except (ManifestInputError, ValueError) as e:
        err_console.print(f"[red]Fatal error:[/red] {e}")
        raise typer.Exit(EXIT_ERROR)

    rendered = format_report(
        report, format, color=not no_color and output is None, verbose=verbose, pretty=pretty
    )

    if output:
        output.write_text(rendered, encoding="utf-8")
        if verbose:
            err_console.print(f"Output written to: {output}")
    else:
        typer.echo(rendered)

    raise typer.Exit(report.exit_code)


def run() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    run()

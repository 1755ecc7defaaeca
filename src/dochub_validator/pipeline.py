"""Validation pipeline: load, process, evaluate and aggregate one manifest.

Typical usage::

    report = validate_manifest("path/to/workspace")
    if not report.success:
        ...

Input errors (missing workspace or root manifest, unknown built-in rules) are
raised before a session starts. Everything after that is reported through the
returned :class:`ValidationReport`; the pipeline itself never raises.
"""

import asyncio
import inspect
import logging
from collections.abc import Mapping
from pathlib import Path

from dochub_validator.config import ValidatorConfig, create_default_config
from dochub_validator.dataset import RoleDefinitionError, RoleScope, build_dataset, load_role_scope
from dochub_validator.entities import process_entities
from dochub_validator.loader.fetchers import FetchError, Fetcher
from dochub_validator.loader.resolver import ImportResolver
from dochub_validator.locators import resolve_locator, scheme_of
from dochub_validator.models.report import DiagnosticKind, ManifestInfo, ValidationReport
from dochub_validator.report import aggregate, critical_report
from dochub_validator.session import Session
from dochub_validator.validation import (
    RuleDescriptor,
    RuleEvaluator,
    ValidatorEngine,
    collect_rules,
    create_builtin_rules,
    read_suppressed,
)

logger = logging.getLogger(__name__)


class ManifestInputError(FileNotFoundError):
    """The workspace or root manifest handed to the pipeline does not exist."""


class WorkspaceNotFoundError(ManifestInputError):
    pass


class RootManifestNotFoundError(ManifestInputError):
    pass


def validate_manifest(
    workspace: str | Path = ".",
    root_manifest: str | None = None,
    **kwargs,
) -> ValidationReport:
    """Synchronous wrapper around :func:`validate_manifest_async`."""
    return asyncio.run(validate_manifest_async(workspace, root_manifest, **kwargs))


async def validate_manifest_async(
    workspace: str | Path = ".",
    root_manifest: str | None = None,
    *,
    config: ValidatorConfig | None = None,
    verbose: bool = False,
    evaluator: RuleEvaluator | None = None,
    fetchers: Mapping[str, Fetcher] | None = None,
    builtin_rules: list[RuleDescriptor] | None = None,
) -> ValidationReport:
    """Validate the manifest rooted at ``root_manifest`` inside ``workspace``.

    Args:
        workspace: Workspace directory containing the manifests
        root_manifest: Root manifest path relative to the workspace
                       (default: ``loader.rootManifest`` from the config)
        config: Validator configuration (default: zero-config defaults)
        verbose: Include stack traces and engine warnings in the report
        evaluator: Rule evaluation capability for the engine
        fetchers: Scheme -> fetcher mapping overriding the defaults
        builtin_rules: Built-in rule descriptors overriding the registry

    Returns:
        ValidationReport

    Raises:
        WorkspaceNotFoundError: If the workspace directory does not exist
        RootManifestNotFoundError: If the root manifest does not exist
        ValueError: If the configuration enables unknown built-in rules
    """
    config = config or create_default_config()
    if root_manifest:
        config = config.model_copy(
            update={"loader": config.loader.model_copy(update={"root_manifest": root_manifest})}
        )

    workspace_dir = Path(workspace).resolve()
    manifest_path = (workspace_dir / config.loader.root_manifest).resolve()

    if not workspace_dir.is_dir():
        raise WorkspaceNotFoundError(f"Workspace directory not found: {workspace_dir}")
    if not manifest_path.is_file():
        raise RootManifestNotFoundError(f"Root manifest not found: {manifest_path}")

    if builtin_rules is None:
        builtin_rules = create_builtin_rules(config.engine.builtin_rules)

    info = ManifestInfo(loaded=True, path=str(manifest_path), workspace=str(workspace_dir))
    logger.info(f"Validating {manifest_path}")

    try:
        session = Session(workspace_dir, config)
        resolver = ImportResolver(session, fetchers)
        manifest = await resolver.resolve()
        logger.info(f"Loaded {len(session.store)} fragment(s), {len(session.diagnostics)} diagnostic(s)")

        index = process_entities(manifest)

        scope = None
        if config.roles.enabled:
            scope = await _load_role_scope(session, resolver, config)

        dataset = build_dataset(manifest, index, config.roles.role_id, scope)
        rules = collect_rules(manifest, builtin_rules)

        engine = ValidatorEngine(
            evaluator,
            timeout=config.engine.timeout,
            order=config.engine.order,
            suppressed=read_suppressed(manifest),
        )
        run = await engine.run(rules, dataset)

        warnings = []
        if run.timed_out and verbose:
            warnings.append(
                f"Only {len(run.results)}/{len(rules)} validators completed before timeout "
                f"(abandoned: {', '.join(run.outstanding)})"
            )

        return aggregate(session.diagnostics.entries(), run.results, info, warnings)

    except Exception as e:
        logger.error(f"Validation failed: {e}", exc_info=verbose)
        return critical_report(e, info, verbose)


async def _load_role_scope(session: Session, resolver: ImportResolver,
                           config: ValidatorConfig) -> RoleScope | None:
    """Fetch and read the role definition; problems become diagnostics."""
    uri = config.roles.uri
    if not uri:
        session.diagnostics.report(
            "roles:", "Roles mode is enabled but no role definition is configured",
            DiagnosticKind.FETCH,
        )
        return None

    locator = resolve_locator(uri, resolver.root)
    fetcher = resolver.fetchers.get(scheme_of(locator) or "")

    try:
        if fetcher is None:
            raise FetchError(locator, "Unsupported locator scheme")
        text = fetcher.fetch(locator)
        if inspect.isawaitable(text):
            text = await asyncio.wait_for(text, timeout=config.loader.fetch_timeout)
        return load_role_scope(text, config.roles.role_id)
    except FetchError as e:
        session.diagnostics.report(locator, e.reason, DiagnosticKind.FETCH)
    except asyncio.TimeoutError:
        session.diagnostics.report(locator, "Timed out", DiagnosticKind.FETCH)
    except RoleDefinitionError as e:
        session.diagnostics.report(locator, str(e), DiagnosticKind.PARSE)
    except Exception as e:
        session.diagnostics.report(
            locator, f"Fetch failed ({type(e).__name__}: {e})", DiagnosticKind.FETCH
        )
    return None

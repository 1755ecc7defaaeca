"""Import resolution: builds the merged manifest from the root locator.

The resolver walks ``imports`` depth first. Each fragment is merged before its
own imports are followed. References served by a deferred (async) fetcher are
scheduled as tasks and settled in :meth:`ImportResolver.check_awaited`. Fetch
and parse failures become diagnostics; the walk carries on without the branch.
"""

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from dochub_validator.loader.fetchers import (
    FetchError,
    Fetcher,
    FileFetcher,
    FragmentParseError,
    create_default_fetchers,
    is_deferred,
    parse_fragment,
)
from dochub_validator.loader.merge import deep_merge
from dochub_validator.locators import ROOT_LOCATOR, resolve_locator, scheme_of
from dochub_validator.models.report import DiagnosticKind
from dochub_validator.session import Session

logger = logging.getLogger(__name__)

IMPORTS_KEY = "imports"


@dataclass
class AwaitedReference:
    """A deferred fetch that has been scheduled but not merged yet."""
    locator: str
    task: asyncio.Task
    deadline: float


class ImportResolver:
    """Resolves a root locator and its imports into one merged manifest."""

    def __init__(self, session: Session, fetchers: Mapping[str, Fetcher] | None = None):
        """Initialize resolver.

        Args:
            session: Session owning the document store and the diagnostics
            fetchers: Scheme -> fetcher mapping; defaults to file + http(s)
        """
        self.session = session
        loader_config = session.config.loader

        if fetchers is None:
            fetchers = create_default_fetchers(
                session.workspace, loader_config.root_manifest, loader_config.fetch_timeout
            )
        self.fetchers = dict(fetchers)
        self.fetch_timeout = loader_config.fetch_timeout

        self._manifest: dict[str, Any] = {}
        self._in_flight: set[str] = set()
        self._awaited: dict[str, AwaitedReference] = {}
        self._failed: set[str] = set()
        self._root: str | None = None

    @property
    def manifest(self) -> dict[str, Any]:
        return self._manifest

    @property
    def root(self) -> str:
        """Canonical locator of the root fragment."""
        return self._root or self._canonical(ROOT_LOCATOR)

    @property
    def awaited(self) -> list[str]:
        """Locators of awaited references that are not settled yet."""
        return list(self._awaited)

    async def resolve(self, root: str = ROOT_LOCATOR) -> dict[str, Any]:
        """Run a complete load: start, import, settle, check and stop.

        Returns:
            The merged manifest (best effort when some imports failed)
        """
        self.start_load()
        try:
            await self.import_locator(root)
            await self.check_awaited()
            self.check_loaded()
        finally:
            self.stop_load()
        return self._manifest

    def start_load(self) -> None:
        """Start a fresh load, discarding any state of a previous one."""
        self.session.start()
        self._manifest = {}
        self._in_flight.clear()
        self._awaited.clear()
        self._failed.clear()
        self._root = None

    async def import_locator(self, locator: str, base: str | None = None) -> None:
        """Import ``locator`` (resolved against ``base``) and everything it imports."""
        self.session.require_loading()

        locator = self._canonical(locator if base is None else resolve_locator(locator, base))
        if self._root is None:
            self._root = locator

        if self._is_known(locator):
            logger.debug(f"Skipping {locator}: already merged, in flight or failed")
            return

        fetcher = self.fetchers.get(scheme_of(locator) or "")
        if fetcher is None:
            self._fail(locator, "Unsupported locator scheme", DiagnosticKind.FETCH)
            return

        if is_deferred(fetcher):
            self._defer(locator, fetcher)
            return

        self._in_flight.add(locator)
        try:
            try:
                text = fetcher.fetch(locator)
            except FetchError as e:
                self._fail(locator, e.reason, DiagnosticKind.FETCH)
                return
            except Exception as e:
                self._fail(locator, f"Fetch failed ({type(e).__name__}: {e})", DiagnosticKind.FETCH)
                return

            await self._merge_and_walk(locator, text)
        finally:
            self._in_flight.discard(locator)

    async def check_awaited(self) -> None:
        """Settle awaited references until none are left.

        References are settled in the order they were created. Each gets until
        its own deadline (creation time + fetch timeout); settling one may add
        new awaited references, which are settled in a following round.
        """
        self.session.require_loading()
        loop = asyncio.get_running_loop()

        while self._awaited:
            pending = list(self._awaited.values())
            logger.debug(f"Settling {len(pending)} awaited reference(s)")

            for ref in pending:
                remaining = max(0.0, ref.deadline - loop.time())
                try:
                    text = await asyncio.wait_for(ref.task, timeout=remaining)
                except asyncio.TimeoutError:
                    del self._awaited[ref.locator]
                    self._fail(ref.locator, f"Timed out after {self.fetch_timeout:g}s",
                               DiagnosticKind.FETCH)
                    continue
                except FetchError as e:
                    del self._awaited[ref.locator]
                    self._fail(ref.locator, e.reason, DiagnosticKind.FETCH)
                    continue
                except Exception as e:
                    del self._awaited[ref.locator]
                    self._fail(ref.locator, f"Fetch failed ({type(e).__name__}: {e})",
                               DiagnosticKind.FETCH)
                    continue

                del self._awaited[ref.locator]
                self._in_flight.add(ref.locator)
                try:
                    await self._merge_and_walk(ref.locator, text)
                finally:
                    self._in_flight.discard(ref.locator)

    def check_loaded(self) -> None:
        """Record advisory diagnostics for required sections missing after merge."""
        root = self.root

        for section in self.session.config.loader.required_sections:
            if not self._manifest.get(section):
                self.session.diagnostics.report(
                    f"{root}#/{section}",
                    f"Required section '{section}' is missing or empty",
                    DiagnosticKind.STRUCTURE,
                    correction=f"Declare at least one entry under '{section}'",
                )

    def stop_load(self) -> None:
        """Close the load; anything still awaited becomes a diagnostic."""
        for ref in list(self._awaited.values()):
            ref.task.cancel()
            self.session.diagnostics.report(
                ref.locator,
                "Import was still pending when loading finished",
                DiagnosticKind.AWAITED,
            )
        self._awaited.clear()
        self._in_flight.clear()
        self.session.close()

    def _canonical(self, locator: str) -> str:
        if locator == ROOT_LOCATOR:
            fetcher = self.fetchers.get("file")
            if isinstance(fetcher, FileFetcher):
                return fetcher.root_locator
        return locator

    def _is_known(self, locator: str) -> bool:
        return (
            locator in self.session.store
            or locator in self._in_flight
            or locator in self._awaited
            or locator in self._failed
        )

    def _defer(self, locator: str, fetcher: Fetcher) -> None:
        loop = asyncio.get_running_loop()
        task = loop.create_task(fetcher.fetch(locator), name=f"fetch:{locator}")
        self._awaited[locator] = AwaitedReference(
            locator=locator, task=task, deadline=loop.time() + self.fetch_timeout
        )
        logger.debug(f"Deferred fetch of {locator}")

    def _fail(self, locator: str, message: str, kind: DiagnosticKind) -> None:
        self._failed.add(locator)
        self.session.diagnostics.report(locator, message, kind)

    async def _merge_and_walk(self, locator: str, text: str) -> None:
        try:
            fragment = parse_fragment(locator, text)
        except FragmentParseError as e:
            self._fail(locator, e.reason, DiagnosticKind.PARSE)
            return

        references = fragment.get(IMPORTS_KEY) or []
        if isinstance(references, str):
            references = [references]
        elif not isinstance(references, list):
            self.session.diagnostics.report(
                f"{locator}#/{IMPORTS_KEY}",
                f"'{IMPORTS_KEY}' must be a list of references",
                DiagnosticKind.PARSE,
            )
            references = []

        self.session.store.add(locator, fragment)
        content = {k: v for k, v in fragment.items() if k != IMPORTS_KEY}
        deep_merge(self._manifest, content)

        children = [
            self._canonical(resolve_locator(str(ref), locator))
            for ref in references
            if ref is not None and str(ref).strip()
        ]
        self.session.store.add_imports(locator, children)
        logger.debug(f"Merged {locator} ({len(children)} import(s))")

        for child in children:
            await self.import_locator(child)

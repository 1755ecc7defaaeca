"""Fragment sources and fragment parsing.

A fetcher turns a locator into text. Synchronous fetchers (local files) are
walked inline; fetchers whose ``fetch`` is a coroutine function are deferred and
their references become awaited references settled at the end of the load.
"""

import inspect
import json
import logging
from pathlib import Path
from typing import Any, Protocol

import httpx
import yaml

from dochub_validator.locators import ROOT_LOCATOR, normalize_path, split_locator

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """A fragment could not be fetched."""

    def __init__(self, locator: str, reason: str):
        self.locator = locator
        self.reason = reason
        super().__init__(f"{reason}: {locator}")


class FragmentParseError(Exception):
    """A fragment was fetched but its content is malformed."""

    def __init__(self, locator: str, reason: str):
        self.locator = locator
        self.reason = reason
        super().__init__(f"{reason}: {locator}")


class Fetcher(Protocol):
    """Anything with ``fetch(locator) -> str`` (sync or async)."""

    def fetch(self, locator: str) -> Any: ...


def is_deferred(fetcher: Fetcher) -> bool:
    """Check if a fetcher produces its content asynchronously."""
    return inspect.iscoroutinefunction(fetcher.fetch)


class FileFetcher:
    """Reads ``file:///`` locators relative to the workspace directory."""

    def __init__(self, workspace: Path, root_manifest: str = "dochub.yaml"):
        self.workspace = Path(workspace).resolve()
        self.root_manifest = normalize_path(root_manifest).lstrip("/")

    @property
    def root_locator(self) -> str:
        """Canonical locator of the root manifest."""
        return f"file:///{self.root_manifest}"

    def to_path(self, locator: str) -> Path:
        """Map a ``file:///`` locator to a path inside the workspace.

        Raises:
            FetchError: If the path is unusable or leaves the workspace
        """
        if locator == ROOT_LOCATOR:
            locator = self.root_locator

        _, rel_path = split_locator(locator)
        if "\0" in rel_path:
            raise FetchError(locator, "Invalid path")
        try:
            path = (self.workspace / rel_path.lstrip("/")).resolve()
        except (ValueError, OSError):
            raise FetchError(locator, "Invalid path")

        if not path.is_relative_to(self.workspace):
            raise FetchError(locator, "Reference points outside the workspace")

        return path

    def fetch(self, locator: str) -> str:
        path = self.to_path(locator)

        if not path.is_file():
            raise FetchError(locator, "File not found")

        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise FetchError(locator, f"Failed to read file ({e})")


class HttpFetcher:
    """Fetches ``http(s)://`` locators with httpx."""

    def __init__(self, timeout: float = 30.0, transport: httpx.AsyncBaseTransport | None = None):
        self.timeout = timeout
        self.transport = transport

    async def fetch(self, locator: str) -> str:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport, follow_redirects=True
            ) as client:
                response = await client.get(locator)
                response.raise_for_status()
                return response.text
        except httpx.HTTPStatusError as e:
            raise FetchError(locator, f"HTTP {e.response.status_code}")
        except httpx.HTTPError as e:
            raise FetchError(locator, f"Transport error ({type(e).__name__})")


def create_default_fetchers(workspace: Path, root_manifest: str,
                            fetch_timeout: float) -> dict[str, Fetcher]:
    """Create the scheme -> fetcher mapping used when none is injected."""
    http = HttpFetcher(timeout=fetch_timeout)
    return {
        "file": FileFetcher(workspace, root_manifest),
        "http": http,
        "https": http,
    }


def parse_fragment(locator: str, text: str) -> dict[str, Any]:
    """Parse fragment text into a mapping.

    ``.json`` locators are parsed as JSON, everything else as YAML. An empty
    document is an empty mapping.

    Raises:
        FragmentParseError: On syntax errors or a non-mapping document root
    """
    try:
        if locator.lower().endswith(".json"):
            data = json.loads(text) if text.strip() else None
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise FragmentParseError(locator, f"Syntax error ({_first_line(e)})")

    if data is None:
        return {}

    if not isinstance(data, dict):
        raise FragmentParseError(
            locator, f"Fragment root must be a mapping, got {type(data).__name__}"
        )

    return data


def _first_line(error: Exception) -> str:
    return str(error).strip().splitlines()[0] if str(error).strip() else type(error).__name__

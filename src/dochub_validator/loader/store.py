"""Document store holding the raw fragments loaded during one session."""

import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


class DocumentStoreError(Exception):
    """Raised on invalid store operations."""


@dataclass
class DocumentStore:
    """Append-only mapping of locator to parsed fragment.

    Attributes:
        fragments: Parsed fragments keyed by locator, in load order
        imports: Import graph (locator -> resolved child locators)
        origins: Entity path (``/components/foo``) -> first locator declaring it
    """
    fragments: dict[str, Any] = field(default_factory=dict)
    imports: dict[str, list[str]] = field(default_factory=dict)
    origins: dict[str, str] = field(default_factory=dict)

    def add(self, locator: str, fragment: dict[str, Any]) -> None:
        """Insert a fragment; each locator can be stored once per session."""
        if locator in self.fragments:
            raise DocumentStoreError(f"Fragment already loaded: {locator}")

        self.fragments[locator] = fragment
        logger.debug(f"Stored fragment {locator}")

        for section, value in fragment.items():
            if section == "imports" or not isinstance(value, dict):
                continue
            for key in value:
                self.origins.setdefault(f"/{section}/{key}", locator)

    def add_imports(self, locator: str, children: list[str]) -> None:
        self.imports[locator] = list(children)

    def get(self, locator: str) -> dict[str, Any] | None:
        return self.fragments.get(locator)

    def locators(self) -> list[str]:
        return list(self.fragments)

    def origin_of(self, path: str) -> str | None:
        """Locator of the fragment that first declared an entity path."""
        return self.origins.get(path)

    def clear(self) -> None:
        """Drop all state; used when a new session starts."""
        self.fragments.clear()
        self.imports.clear()
        self.origins.clear()

    def __contains__(self, locator: object) -> bool:
        return locator in self.fragments

    def __len__(self) -> int:
        return len(self.fragments)

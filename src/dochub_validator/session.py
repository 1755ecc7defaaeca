"""Validation session: the state owned by one validation run."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from dochub_validator.config import ValidatorConfig, create_default_config
from dochub_validator.diagnostics import DiagnosticsCollector
from dochub_validator.loader.store import DocumentStore

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    CLOSED = "closed"


class SessionStateError(Exception):
    """Raised when a load operation runs outside an open session."""


@dataclass
class Session:
    """Document store, diagnostics and lifecycle state of a single run.

    A new session is constructed per validation run, so nothing leaks between
    runs and separate sessions can live side by side in one process.
    """
    workspace: Path
    config: ValidatorConfig = field(default_factory=create_default_config)
    store: DocumentStore = field(default_factory=DocumentStore)
    diagnostics: DiagnosticsCollector = field(default_factory=DiagnosticsCollector)
    state: SessionState = SessionState.IDLE

    def start(self) -> None:
        """Clear the store and the collector and open the session for loading."""
        self.store.clear()
        self.diagnostics.clear()
        self.state = SessionState.LOADING
        logger.debug(f"Session started for workspace {self.workspace}")

    def close(self) -> None:
        self.state = SessionState.CLOSED
        logger.debug(
            f"Session closed: {len(self.store)} fragments, {len(self.diagnostics)} diagnostics"
        )

    def require_loading(self) -> None:
        if self.state != SessionState.LOADING:
            raise SessionStateError(
                f"Session is {self.state.value}; call start_load() before importing"
            )

    @property
    def is_loading(self) -> bool:
        return self.state == SessionState.LOADING

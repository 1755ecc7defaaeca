"""Shared fixtures for dochub-validator tests."""

import json
from pathlib import Path

import pytest
import yaml

from dochub_validator.config import ValidatorConfig
from dochub_validator.dataset import build_dataset
from dochub_validator.entities import process_entities
from dochub_validator.session import Session


@pytest.fixture
def write_workspace(tmp_path):
    """Return a helper writing ``{relative path: content}`` into a workspace.

    Mapping content is dumped as YAML (or JSON for ``.json`` files), strings are
    written verbatim.
    """
    def _write(files: dict, root: Path | None = None) -> Path:
        workspace = root or tmp_path / "workspace"
        workspace.mkdir(parents=True, exist_ok=True)
        for rel_path, content in files.items():
            path = workspace / rel_path
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, str):
                path.write_text(content, encoding="utf-8")
            elif rel_path.endswith(".json"):
                path.write_text(json.dumps(content), encoding="utf-8")
            else:
                path.write_text(yaml.safe_dump(content, sort_keys=False), encoding="utf-8")
        return workspace

    return _write


@pytest.fixture
def make_session(tmp_path):
    """Return a helper creating a session for a workspace."""
    def _make(workspace: Path | None = None, config: ValidatorConfig | None = None) -> Session:
        return Session(workspace or tmp_path, config or ValidatorConfig())

    return _make


@pytest.fixture
def make_dataset():
    """Return a helper building a dataset view straight from a manifest dict."""
    def _make(manifest: dict, **kwargs):
        return build_dataset(manifest, process_entities(manifest), **kwargs)

    return _make

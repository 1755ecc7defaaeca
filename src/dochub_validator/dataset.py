"""Read-only dataset view handed to rule evaluation."""

import copy
import fnmatch
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

import yaml

from dochub_validator.entities import ENTITY_SECTIONS, EntityIndex

logger = logging.getLogger(__name__)


class RoleDefinitionError(Exception):
    """The role definition document is invalid or lacks the requested role."""


@dataclass(frozen=True)
class RoleScope:
    """Entity visibility of a role, as fnmatch patterns over entity paths."""
    include: tuple[str, ...] = ("*",)
    exclude: tuple[str, ...] = ()

    def allows(self, path: str) -> bool:
        """Check if an entity path such as ``/components/shop.api`` is visible."""
        if not any(fnmatch.fnmatchcase(path, pattern) for pattern in self.include):
            return False
        return not any(fnmatch.fnmatchcase(path, pattern) for pattern in self.exclude)


def load_role_scope(definition: str | Mapping[str, Any], role_id: str) -> RoleScope:
    """Read the scope of ``role_id`` from a role definition document.

    The document looks like ``{roles: {<id>: {include: [...], exclude: [...]}}}``.

    Args:
        definition: Document text (YAML or JSON) or an already parsed mapping
        role_id: Active role

    Returns:
        RoleScope for the role

    Raises:
        RoleDefinitionError: If the document is malformed or the role is unknown
    """
    if isinstance(definition, str):
        try:
            definition = yaml.safe_load(definition) or {}
        except yaml.YAMLError as e:
            raise RoleDefinitionError(f"Invalid role definition: {e}")

    roles = definition.get("roles") if isinstance(definition, Mapping) else None
    if not isinstance(roles, Mapping):
        raise RoleDefinitionError("Role definition must contain a 'roles' mapping")

    role = roles.get(role_id)
    if role is None:
        raise RoleDefinitionError(f"Role not defined: {role_id}")
    if not isinstance(role, Mapping):
        raise RoleDefinitionError(f"Role '{role_id}' must be a mapping")

    include = _patterns(role, "include", role_id, default=("*",))
    exclude = _patterns(role, "exclude", role_id, default=())
    return RoleScope(include=include, exclude=exclude)


def _patterns(role: Mapping[str, Any], key: str, role_id: str,
              default: tuple[str, ...]) -> tuple[str, ...]:
    """Read a pattern list; a single string is a one-pattern list."""
    if key not in role:
        return default

    value = role[key]
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, list) or not all(isinstance(p, str) for p in value):
        raise RoleDefinitionError(
            f"Role '{role_id}': '{key}' must be a pattern or a list of patterns"
        )
    return tuple(value)


def freeze(value: Any) -> Any:
    """Return a deep read-only copy: mappings become proxies, lists become tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(item) for item in value)
    return value


def thaw(value: Any) -> Any:
    """Inverse of :func:`freeze`, producing plain dicts and lists."""
    if isinstance(value, Mapping):
        return {key: thaw(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [thaw(item) for item in value]
    return copy.copy(value)


class DatasetView:
    """Query root exposed to rules.

    The view never changes after construction and is safe to share between
    concurrently evaluated rules.
    """

    def __init__(self, manifest: Mapping[str, Any], index: EntityIndex,
                 role_id: str = "default", scope: RoleScope | None = None):
        self._manifest = freeze(manifest)
        self._index = index
        self._role_id = role_id
        self._scope = scope

    @property
    def manifest(self) -> Mapping[str, Any]:
        return self._manifest

    @property
    def index(self) -> EntityIndex:
        return self._index

    @property
    def role_id(self) -> str:
        return self._role_id

    @property
    def functions(self) -> Mapping[str, Any]:
        """Custom functions declared by the manifest for expression evaluators."""
        return self._manifest.get("functions") or MappingProxyType({})

    def is_visible(self, path: str) -> bool:
        """Check whether an entity path (or a path below one) is visible to the role."""
        if self._scope is None:
            return True
        parts = [p for p in path.split("/") if p]
        if len(parts) < 2 or parts[0] not in ENTITY_SECTIONS:
            return True
        return self._scope.allows(f"/{parts[0]}/{parts[1]}")

    def section(self, name: str) -> Any:
        return self._manifest.get(name)

    def entities(self, kind: str) -> Mapping[str, Any]:
        """Entities of a section keyed by id; non-mapping entries are omitted."""
        raw = self._manifest.get(kind)
        if not isinstance(raw, Mapping):
            return MappingProxyType({})
        return MappingProxyType({
            str(entity_id): (definition if definition is not None else MappingProxyType({}))
            for entity_id, definition in raw.items()
            if definition is None or isinstance(definition, Mapping)
        })

    def get(self, pointer: str, default: Any = None) -> Any:
        """Resolve a JSON-pointer style path such as ``/components/shop/title``."""
        node: Any = self._manifest
        for part in [p for p in pointer.split("/") if p]:
            part = part.replace("~1", "/").replace("~0", "~")
            if isinstance(node, Mapping):
                if part not in node:
                    return default
                node = node[part]
            elif isinstance(node, tuple) and part.isdigit() and int(part) < len(node):
                node = node[int(part)]
            else:
                return default
        return node

    def to_dict(self) -> dict[str, Any]:
        """Plain deep copy of the visible manifest for external evaluators."""
        return thaw(self._manifest)


def build_dataset(manifest: Mapping[str, Any], index: EntityIndex,
                  role_id: str = "default", scope: RoleScope | None = None) -> DatasetView:
    """Project the merged manifest into the dataset view for ``role_id``.

    With a role scope, entities the role cannot see are removed from their
    sections; everything else is passed through unchanged.
    """
    if scope is None:
        return DatasetView(manifest, index, role_id)

    visible: dict[str, Any] = dict(manifest)
    hidden = 0
    for section in ENTITY_SECTIONS:
        entries = manifest.get(section)
        if not isinstance(entries, Mapping):
            continue
        kept = {key: value for key, value in entries.items() if scope.allows(f"/{section}/{key}")}
        hidden += len(entries) - len(kept)
        visible[section] = kept

    logger.debug(f"Role '{role_id}' hides {hidden} entities")
    return DatasetView(visible, index, role_id, scope)

"""Entity post-processing: derived indexes over the merged manifest.

Runs once after loading finished and before any rule is evaluated. The result is
a pure function of the merged manifest.
"""

import fnmatch
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

ENTITY_SECTIONS = ("components", "contexts", "aspects")


class EntityProcessingError(Exception):
    """The merged manifest is structurally unusable for rule evaluation."""


@dataclass(frozen=True)
class UndefinedReference:
    """A reference to an entity that is not declared anywhere."""
    location: str   # Path of the referencing field, e.g. /contexts/main/components
    kind: str       # Section the target should live in
    target: str     # Referenced id


@dataclass(frozen=True)
class EntityIndex:
    """Secondary structures derived from the merged manifest.

    Attributes:
        entities: Section -> sorted entity ids
        component_contexts: Component id -> ids of contexts that include it
        aspect_components: Aspect id -> ids of components implementing it
        backlinks: Component id -> ids of components linking to it
        undefined_references: References to undeclared entities
        malformed: Paths of entity entries that are not mappings
    """
    entities: dict[str, tuple[str, ...]] = field(default_factory=dict)
    component_contexts: dict[str, tuple[str, ...]] = field(default_factory=dict)
    aspect_components: dict[str, tuple[str, ...]] = field(default_factory=dict)
    backlinks: dict[str, tuple[str, ...]] = field(default_factory=dict)
    undefined_references: tuple[UndefinedReference, ...] = ()
    malformed: tuple[str, ...] = ()

    def ids(self, section: str) -> tuple[str, ...]:
        return self.entities.get(section, ())


def process_entities(manifest: Mapping[str, Any]) -> EntityIndex:
    """Compute the entity index for a merged manifest.

    Args:
        manifest: Merged manifest

    Returns:
        EntityIndex

    Raises:
        EntityProcessingError: If an entity section is not a mapping
    """
    sections: dict[str, dict[str, Mapping[str, Any]]] = {}
    malformed: list[str] = []

    for section in ENTITY_SECTIONS:
        raw = manifest.get(section)
        if raw is None:
            sections[section] = {}
            continue
        if not isinstance(raw, Mapping):
            raise EntityProcessingError(
                f"Section '{section}' must be a mapping of id to definition, "
                f"got {type(raw).__name__}"
            )

        entries: dict[str, Mapping[str, Any]] = {}
        for entity_id, definition in raw.items():
            entity_id = str(entity_id)
            if definition is None:
                entries[entity_id] = {}
            elif isinstance(definition, Mapping):
                entries[entity_id] = definition
            else:
                malformed.append(f"/{section}/{entity_id}")
                entries[entity_id] = {}
        sections[section] = entries

    components = sections["components"]
    contexts = sections["contexts"]
    aspects = sections["aspects"]
    undefined: list[UndefinedReference] = []

    component_contexts: dict[str, set[str]] = {cid: set() for cid in components}
    for context_id, context in contexts.items():
        for pattern in _as_list(context.get("components")):
            pattern = str(pattern)
            if _is_pattern(pattern):
                matched = fnmatch.filter(components, pattern)
            else:
                matched = [pattern] if pattern in components else []
                if not matched:
                    undefined.append(UndefinedReference(
                        f"/contexts/{context_id}/components", "components", pattern
                    ))
            for component_id in matched:
                component_contexts[component_id].add(context_id)

    aspect_components: dict[str, set[str]] = {aid: set() for aid in aspects}
    backlinks: dict[str, set[str]] = {cid: set() for cid in components}
    for component_id, component in components.items():
        for aspect_id in _as_list(component.get("aspects")):
            aspect_id = str(aspect_id)
            if aspect_id in aspects:
                aspect_components[aspect_id].add(component_id)
            else:
                undefined.append(UndefinedReference(
                    f"/components/{component_id}/aspects", "aspects", aspect_id
                ))

        for index, link in enumerate(_as_list(component.get("links"))):
            target = link.get("id") if isinstance(link, Mapping) else link
            if target is None:
                continue
            target = str(target)
            if target in components:
                backlinks[target].add(component_id)
            else:
                undefined.append(UndefinedReference(
                    f"/components/{component_id}/links/{index}", "components", target
                ))

    index = EntityIndex(
        entities={section: tuple(sorted(entries)) for section, entries in sections.items()},
        component_contexts=_freeze(component_contexts),
        aspect_components=_freeze(aspect_components),
        backlinks=_freeze(backlinks),
        undefined_references=tuple(undefined),
        malformed=tuple(malformed),
    )

    counts = ", ".join(f"{len(ids)} {section}" for section, ids in index.entities.items())
    logger.debug(f"Processed entities: {counts}")
    return index


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _is_pattern(value: str) -> bool:
    return any(ch in value for ch in "*?[")


def _freeze(mapping: dict[str, set[str]]) -> dict[str, tuple[str, ...]]:
    return {key: tuple(sorted(values)) for key, values in mapping.items()}

"""Built-in validation rules supplied by the hosting environment.

Each rule checks one aspect of the merged manifest through the dataset view.
"""

import logging
import re
from collections.abc import Iterable

from dochub_validator.dataset import DatasetView
from dochub_validator.entities import ENTITY_SECTIONS
from dochub_validator.models.report import RuleItem
from .framework import RuleDescriptor, ValidationRule

logger = logging.getLogger(__name__)

# kebab-case segments, optionally namespaced with dots: "shop", "shop.order-api"
ENTITY_ID_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*(?:\.[a-z0-9]+(?:-[a-z0-9]+)*)*$")


class EntityIdNamingRule(ValidationRule):
    """Validate that entity ids follow the kebab-case naming convention."""

    @property
    def id(self) -> str:
        return "entity-id-naming"

    @property
    def title(self) -> str:
        return "Entity ids must be kebab-case"

    def check(self, dataset: DatasetView) -> list[RuleItem]:
        items = []
        for section in ENTITY_SECTIONS:
            for entity_id in dataset.entities(section):
                if not ENTITY_ID_PATTERN.fullmatch(entity_id):
                    items.append(self.item(
                        f"/{section}/{entity_id}",
                        f"Invalid id '{entity_id}'",
                        description="Ids are lower-case words joined by '-', optionally "
                                    "namespaced with '.'",
                        correction=f"Rename to '{_to_kebab(entity_id)}'",
                    ))
        return items


class ComponentDescriptionRule(ValidationRule):
    """Validate that every component carries a description."""

    @property
    def id(self) -> str:
        return "component-description"

    @property
    def title(self) -> str:
        return "Components must have a description"

    def check(self, dataset: DatasetView) -> list[RuleItem]:
        items = []
        for component_id, component in dataset.entities("components").items():
            description = component.get("description")
            if not isinstance(description, str) or not description.strip():
                items.append(self.item(
                    f"/components/{component_id}",
                    f"Component '{component_id}' has no description",
                    correction="Add a 'description' field",
                ))
        return items


class UndefinedReferenceRule(ValidationRule):
    """Validate that contexts, aspects and links point at declared entities."""

    @property
    def id(self) -> str:
        return "undefined-references"

    @property
    def title(self) -> str:
        return "References must point at declared entities"

    def check(self, dataset: DatasetView) -> list[RuleItem]:
        items = []
        for ref in dataset.index.undefined_references:
            if not dataset.is_visible(ref.location):
                continue
            items.append(RuleItem(
                uid=f"{self.id}:{ref.location}:{ref.target}",
                title=f"Unknown {ref.kind[:-1]} '{ref.target}'",
                location=ref.location,
                correction=f"Declare '{ref.target}' under '{ref.kind}' or fix the reference",
            ))
        return items


class EntityStructureRule(ValidationRule):
    """Validate that entity entries are mappings."""

    @property
    def id(self) -> str:
        return "entity-structure"

    @property
    def title(self) -> str:
        return "Entity definitions must be mappings"

    def check(self, dataset: DatasetView) -> list[RuleItem]:
        return [
            self.item(path, f"Entry at {path} is not a mapping")
            for path in dataset.index.malformed
            if dataset.is_visible(path)
        ]


BUILTIN_RULES: dict[str, type[ValidationRule]] = {
    rule.id: type(rule)
    for rule in (
        EntityIdNamingRule(),
        ComponentDescriptionRule(),
        UndefinedReferenceRule(),
        EntityStructureRule(),
    )
}


def create_builtin_rules(enabled: Iterable[str] | None = None) -> list[RuleDescriptor]:
    """Create descriptors for the enabled built-in rules.

    Args:
        enabled: Rule ids to enable; None enables every registered rule

    Raises:
        ValueError: If an id is not a registered built-in rule
    """
    if enabled is None:
        enabled = list(BUILTIN_RULES)

    rules = []
    for rule_id in enabled:
        rule_cls = BUILTIN_RULES.get(rule_id)
        if rule_cls is None:
            raise ValueError(
                f"Unknown built-in rule '{rule_id}'. Available: {', '.join(sorted(BUILTIN_RULES))}"
            )
        rules.append(RuleDescriptor.from_rule(rule_cls()))

    logger.debug(f"Enabled {len(rules)} built-in rules")
    return rules


def _to_kebab(value: str) -> str:
    value = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "-", value)
    value = re.sub(r"[^a-zA-Z0-9.]+", "-", value)
    return value.strip("-").lower()

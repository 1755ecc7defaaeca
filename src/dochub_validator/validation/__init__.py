"""Validation layer for dochub-validator.

Built-in rules and manifest-declared custom rules are evaluated concurrently by
the validator engine against a read-only dataset view.
"""

from .framework import (
    DefaultRuleEvaluator,
    EngineRun,
    RuleDescriptor,
    RuleEvaluationError,
    RuleEvaluator,
    RuleOrigin,
    ValidationRule,
    ValidatorEngine,
    collect_rules,
    read_suppressed,
)
from .rules import (
    BUILTIN_RULES,
    ComponentDescriptionRule,
    EntityIdNamingRule,
    EntityStructureRule,
    UndefinedReferenceRule,
    create_builtin_rules,
)

__all__ = [
    "DefaultRuleEvaluator",
    "EngineRun",
    "RuleDescriptor",
    "RuleEvaluationError",
    "RuleEvaluator",
    "RuleOrigin",
    "ValidationRule",
    "ValidatorEngine",
    "collect_rules",
    "read_suppressed",
    "BUILTIN_RULES",
    "ComponentDescriptionRule",
    "EntityIdNamingRule",
    "EntityStructureRule",
    "UndefinedReferenceRule",
    "create_builtin_rules",
]

"""Core validation framework: rule descriptors, evaluators and the engine.

Every rule runs as its own asyncio task. A failing rule produces a result with
``error`` set and never affects the others; the engine stops waiting once all
rules reported or the overall timeout elapsed, whichever comes first.
"""

import asyncio
import inspect
import logging
import threading
import traceback
from abc import ABC, abstractmethod
from collections.abc import Callable, Collection, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from pydantic import ValidationError

from dochub_validator.config import RuleOrder
from dochub_validator.dataset import DatasetView
from dochub_validator.models.report import RuleItem, RuleResult

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class RuleOrigin(str, Enum):
    BUILTIN = "builtin"
    CUSTOM = "custom"


class RuleEvaluationError(Exception):
    """A rule could not be evaluated."""


class ValidationRule(ABC):
    """Base class for built-in rules."""

    @property
    @abstractmethod
    def id(self) -> str:
        """Rule id for identification."""
        pass

    @property
    @abstractmethod
    def title(self) -> str:
        pass

    @abstractmethod
    def check(self, dataset: DatasetView) -> list[RuleItem]:
        """Execute the rule.

        Args:
            dataset: Read-only view of the merged manifest

        Returns:
            Issues found; empty when the manifest complies
        """
        pass

    def item(self, location: str, title: str, **details: Any) -> RuleItem:
        """Build an item with a uid derived from the rule id and location."""
        return RuleItem(uid=f"{self.id}:{location}", title=title, location=location, **details)


@dataclass(frozen=True)
class RuleDescriptor:
    """A named check: a built-in rule object or an expression for an evaluator."""
    id: str
    title: str
    expression: Any
    origin: RuleOrigin = RuleOrigin.CUSTOM

    @classmethod
    def from_rule(cls, rule: ValidationRule) -> "RuleDescriptor":
        return cls(id=rule.id, title=rule.title, expression=rule, origin=RuleOrigin.BUILTIN)


class RuleEvaluator(Protocol):
    """Capability evaluating one rule; ``evaluate`` may be sync or async."""

    def evaluate(self, rule: RuleDescriptor, dataset: DatasetView) -> Any: ...


ExpressionEvaluator = Callable[[str, DatasetView], Any]


class DefaultRuleEvaluator:
    """Runs built-in rules directly and hands expressions to an injected evaluator."""

    def __init__(self, expression_evaluator: ExpressionEvaluator | None = None):
        self.expression_evaluator = expression_evaluator

    def evaluate(self, rule: RuleDescriptor, dataset: DatasetView) -> Any:
        expression = rule.expression

        if isinstance(expression, ValidationRule):
            return expression.check(dataset)

        if expression is None or (isinstance(expression, str) and not expression.strip()):
            raise RuleEvaluationError(f"Rule {rule.id} has no source expression")

        if callable(expression):
            return expression(dataset)

        if self.expression_evaluator is None:
            raise RuleEvaluationError(
                f"Rule {rule.id}: no expression evaluator configured for custom rules"
            )
        return self.expression_evaluator(str(expression), dataset)


def normalize_items(rule: RuleDescriptor, raw: Any) -> list[RuleItem]:
    """Convert evaluator output into rule items.

    Accepts None, a single item or an iterable of items, where an item is a
    :class:`RuleItem` or a mapping with the same fields.

    Raises:
        RuleEvaluationError: If the output cannot be interpreted
    """
    if raw is None:
        return []
    if isinstance(raw, (RuleItem, Mapping)):
        raw = [raw]
    elif isinstance(raw, (str, bytes)) or not isinstance(raw, Iterable):
        raise RuleEvaluationError(
            f"Rule {rule.id} returned {type(raw).__name__}, expected a list of items"
        )

    items: list[RuleItem] = []
    for entry in raw:
        if isinstance(entry, RuleItem):
            items.append(entry)
            continue
        if not isinstance(entry, Mapping):
            raise RuleEvaluationError(
                f"Rule {rule.id} returned an item of type {type(entry).__name__}"
            )

        data = {key: value for key, value in entry.items() if value is not None}
        location = str(data.get("location", ""))
        data["location"] = location
        data.setdefault("uid", f"{rule.id}:{location}")
        data.setdefault("title", rule.title)
        try:
            items.append(RuleItem.model_validate(
                {key: str(data[key]) for key in RuleItem.model_fields if key in data}
            ))
        except ValidationError as e:
            raise RuleEvaluationError(f"Rule {rule.id} returned an invalid item: {e}")

    return items


@dataclass
class EngineRun:
    """Outcome of one engine run.

    Attributes:
        results: Completed rule results
        outstanding: Ids of rules abandoned at the timeout
        timed_out: Whether the overall ceiling was reached
    """
    results: list[RuleResult] = field(default_factory=list)
    outstanding: list[str] = field(default_factory=list)
    timed_out: bool = False


class ValidatorEngine:
    """Evaluates rules concurrently with per-rule isolation and a global timeout."""

    def __init__(
        self,
        evaluator: RuleEvaluator | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        order: RuleOrder | str = RuleOrder.ID,
        suppressed: Collection[str] = (),
    ):
        """Initialize engine.

        Args:
            evaluator: Rule evaluation capability (default: DefaultRuleEvaluator)
            timeout: Seconds to wait for all rules before giving up on the rest
            order: Sort results by rule id or keep completion order
            suppressed: Item uids to drop from results (manifest exceptions)
        """
        self.evaluator = evaluator or DefaultRuleEvaluator()
        self.timeout = timeout
        self.order = RuleOrder(order)
        self.suppressed = frozenset(suppressed)

    async def run_all(self, rules: Iterable[RuleDescriptor], dataset: DatasetView) -> list[RuleResult]:
        """Evaluate all rules and return the completed results."""
        run = await self.run(rules, dataset)
        return run.results

    async def run(
        self,
        rules: Iterable[RuleDescriptor],
        dataset: DatasetView,
        on_complete: Callable[[RuleResult], None] | None = None,
    ) -> EngineRun:
        """Evaluate all rules concurrently.

        Args:
            rules: Rules to evaluate
            dataset: Read-only evaluation context
            on_complete: Called once per completed rule, success or failure

        Returns:
            EngineRun with results and abandoned rule ids
        """
        rules = list(rules)
        if not rules:
            logger.info("No validators defined, skipping validation")
            return EngineRun()

        logger.info(f"Running {len(rules)} validators")
        completed: list[RuleResult] = []

        def complete(result: RuleResult) -> None:
            completed.append(result)
            logger.debug(
                f"Validator [{result.id}] completed: {len(result.items)} issues found"
                + (f" (error: {result.error})" if result.error else "")
            )
            if on_complete is not None:
                on_complete(result)

        tasks = {
            asyncio.create_task(self._evaluate(rule, dataset, complete), name=f"rule:{rule.id}"): rule
            for rule in rules
        }

        _, pending = await asyncio.wait(tasks, timeout=self.timeout)

        outstanding: list[str] = []
        if pending:
            for task in pending:
                task.cancel()
                outstanding.append(tasks[task].id)
            await asyncio.gather(*pending, return_exceptions=True)
            outstanding.sort()
            logger.warning(
                f"Only {len(completed)}/{len(rules)} validators completed before the "
                f"{self.timeout:g}s timeout; abandoned: {', '.join(outstanding)}"
            )

        results = list(completed)
        if self.order == RuleOrder.ID:
            results.sort(key=lambda r: r.id)

        return EngineRun(results=results, outstanding=outstanding, timed_out=bool(pending))

    async def _evaluate(
        self,
        rule: RuleDescriptor,
        dataset: DatasetView,
        complete: Callable[[RuleResult], None],
    ) -> None:
        try:
            if inspect.iscoroutinefunction(self.evaluator.evaluate):
                raw = await self.evaluator.evaluate(rule, dataset)
            else:
                raw = await _run_detached(self.evaluator.evaluate, rule, dataset)
            if inspect.isawaitable(raw):
                raw = await raw

            items = [item for item in normalize_items(rule, raw) if item.uid not in self.suppressed]
            result = RuleResult(id=rule.id, title=rule.title, items=items)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Validator [{rule.id}] failed: {e}")
            result = RuleResult(
                id=rule.id,
                title=rule.title,
                error=str(e) or type(e).__name__,
                stack=traceback.format_exc(),
            )

        complete(result)


def _run_detached(func: Callable[..., Any], *args: Any) -> "asyncio.Future[Any]":
    """Run a blocking call on a daemon thread and await it from the loop.

    The thread is not joined: a call that never returns is abandoned with its
    task instead of holding up the engine or interpreter shutdown.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future[Any] = loop.create_future()

    def settle(value: Any, error: BaseException | None) -> None:
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(value)

    def target() -> None:
        try:
            value, error = func(*args), None
        except Exception as e:
            value, error = None, e
        try:
            loop.call_soon_threadsafe(settle, value, error)
        except RuntimeError:
            logger.debug(f"Event loop closed before {getattr(func, '__name__', func)} returned")

    threading.Thread(target=target, name="rule-evaluator", daemon=True).start()
    return future


def collect_rules(manifest: Mapping[str, Any], builtin: Iterable[RuleDescriptor] = ()) -> list[RuleDescriptor]:
    """Combine built-in rules with custom rules declared in the manifest.

    Custom rules live under ``rules.validators.<id> = {title, source}``; a custom
    rule replaces a built-in rule with the same id.
    """
    rules = {rule.id: rule for rule in builtin}

    rules_section = manifest.get("rules")
    validators = rules_section.get("validators") if isinstance(rules_section, Mapping) else None
    if isinstance(validators, Mapping):
        for rule_id, definition in validators.items():
            rule_id = str(rule_id)
            if isinstance(definition, Mapping):
                title = str(definition.get("title") or rule_id)
                source = definition.get("source")
            else:
                title, source = rule_id, None
            if rule_id in rules:
                logger.info(f"Custom validator [{rule_id}] overrides the built-in rule")
            rules[rule_id] = RuleDescriptor(id=rule_id, title=title, expression=source)

    return list(rules.values())


def read_suppressed(manifest: Mapping[str, Any]) -> set[str]:
    """Item uids excepted by the manifest under ``rules.exceptions``."""
    rules_section = manifest.get("rules")
    exceptions = rules_section.get("exceptions") if isinstance(rules_section, Mapping) else None
    if isinstance(exceptions, Mapping):
        return {str(uid) for uid in exceptions}
    if isinstance(exceptions, list):
        return {str(uid) for uid in exceptions}
    return set()

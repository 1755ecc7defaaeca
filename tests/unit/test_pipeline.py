"""Tests for the validation pipeline."""

import asyncio

import pytest

from dochub_validator.config import ValidatorConfig
from dochub_validator.loader.fetchers import FileFetcher
from dochub_validator.models.report import DiagnosticKind
from dochub_validator.pipeline import (
    RootManifestNotFoundError,
    WorkspaceNotFoundError,
    validate_manifest,
    validate_manifest_async,
)
from dochub_validator.validation import RuleDescriptor


class StaticRemoteFetcher:

    def __init__(self, documents):
        self.documents = documents

    async def fetch(self, locator):
        return self.documents[locator]


class TestInputErrors:
    """Input problems are raised before a session starts."""

    def test_missing_workspace(self, tmp_path):
        with pytest.raises(WorkspaceNotFoundError):
            validate_manifest(tmp_path / "absent")

    def test_missing_root_manifest(self, tmp_path):
        with pytest.raises(RootManifestNotFoundError):
            validate_manifest(tmp_path)

    def test_unknown_builtin_rule(self, write_workspace):
        workspace = write_workspace({"dochub.yaml": {"components": {"web": {}}}})
        config = ValidatorConfig(engine={"builtinRules": ["nope"]})

        with pytest.raises(ValueError, match="Unknown built-in rule"):
            validate_manifest(workspace, config=config)


class TestCustomRules:
    """Rules declared in the manifest under rules.validators."""

    MANIFEST = {
        "components": {"web": {"description": "Web"}, "db": {"description": "DB"}},
        "rules": {"validators": {"needs-owner": {"title": "Components need an owner", "source": "owner"}}},
    }

    def test_custom_rule_with_expression_evaluator(self, write_workspace):
        workspace = write_workspace({"dochub.yaml": self.MANIFEST})

        class OwnerEvaluator:
            def evaluate(self, rule, dataset):
                if rule.expression != "owner":
                    return rule.expression.check(dataset)
                return [
                    {"location": f"/components/{cid}", "title": f"'{cid}' has no owner"}
                    for cid, component in dataset.entities("components").items()
                    if "owner" not in component
                ]

        report = validate_manifest(workspace, evaluator=OwnerEvaluator())

        assert report.success is False
        problem = report.real_problems[0]
        assert problem.id == "needs-owner"
        assert problem.title == "Components need an owner"
        assert sorted(item.location for item in problem.items) == ["/components/db", "/components/web"]

    def test_custom_rule_without_evaluator_is_isolated(self, write_workspace):
        workspace = write_workspace({"dochub.yaml": self.MANIFEST})

        report = validate_manifest(workspace)

        assert report.success is True
        errored = [p for p in report.problems if p.error]
        assert [p.id for p in errored] == ["needs-owner"]
        assert report.stats.validation_errors == 0


class TestEngineTimeout:

    def test_timeout_warning_only_when_verbose(self, write_workspace):
        workspace = write_workspace({"dochub.yaml": {"components": {"web": {"description": "Web"}}}})

        class SlowEvaluator:
            async def evaluate(self, rule, dataset):
                await asyncio.sleep(30)

        config = ValidatorConfig(engine={"timeout": 0.1})
        rules = [RuleDescriptor(id="slow", title="Slow", expression=None)]

        quiet = validate_manifest(workspace, config=config, evaluator=SlowEvaluator(), builtin_rules=rules)
        verbose = validate_manifest(
            workspace, config=config, evaluator=SlowEvaluator(), builtin_rules=rules, verbose=True
        )

        assert quiet.success is True
        assert quiet.warnings == []
        assert len(verbose.warnings) == 1
        assert "slow" in verbose.warnings[0]


class TestRoleScopes:
    """Roles mode restricts the entities rules can see."""

    FILES = {
        "dochub.yaml": {
            "components": {
                "shop-web": {"description": "Web"},
                "LegacyCrm": {"description": "CRM"},
            },
        },
        "roles.yaml": {
            "roles": {"shop": {"include": ["/components/shop-*"]}},
        },
    }

    def test_role_hides_entities(self, write_workspace):
        workspace = write_workspace(self.FILES)
        config = ValidatorConfig(roles={"enabled": True, "uri": "roles.yaml", "roleId": "shop"})

        assert validate_manifest(workspace).success is False
        assert validate_manifest(workspace, config=config).success is True

    def test_unknown_role_is_a_diagnostic(self, write_workspace):
        workspace = write_workspace(self.FILES)
        config = ValidatorConfig(roles={"enabled": True, "uri": "roles.yaml", "roleId": "auditor"})

        report = validate_manifest(workspace, config=config)

        assert report.stats.loading_errors == 1
        assert report.problems[0].kind == DiagnosticKind.PARSE
        assert report.stats.validation_errors == 1

    def test_malformed_role_patterns_are_a_diagnostic(self, write_workspace):
        workspace = write_workspace({**self.FILES, "roles.yaml": "roles:\n  shop:\n    include:\n"})
        config = ValidatorConfig(roles={"enabled": True, "uri": "roles.yaml", "roleId": "shop"})

        report = validate_manifest(workspace, config=config)

        assert report.manifest.loaded is True
        assert report.problems[0].kind == DiagnosticKind.PARSE
        assert report.stats.loading_errors == 1
        assert report.stats.validation_errors == 1

    def test_missing_role_document(self, write_workspace):
        workspace = write_workspace(self.FILES)
        config = ValidatorConfig(roles={"enabled": True, "uri": "nowhere.yaml", "roleId": "shop"})

        report = validate_manifest(workspace, config=config)

        assert report.problems[0].kind == DiagnosticKind.FETCH
        assert report.exit_code == 2


class TestInjectedFetchers:

    @pytest.mark.asyncio
    async def test_remote_import(self, write_workspace):
        workspace = write_workspace({
            "dochub.yaml": {"imports": ["https://example.org/shared.yaml"]},
        })
        fetchers = {
            "file": FileFetcher(workspace),
            "https": StaticRemoteFetcher({
                "https://example.org/shared.yaml": "components:\n  shared:\n    description: Shared\n",
            }),
        }

        report = await validate_manifest_async(workspace, fetchers=fetchers)

        assert report.success is True
        assert report.stats.total_issues == 0

    @pytest.mark.asyncio
    async def test_separate_runs_do_not_share_state(self, write_workspace, tmp_path):
        good = write_workspace({"dochub.yaml": {"components": {"web": {"description": "Web"}}}})
        bad = write_workspace(
            {"dochub.yaml": {"imports": ["gone.yaml"], "components": {"Bad": {"description": "x"}}}},
            root=tmp_path / "other",
        )

        good_report, bad_report = await asyncio.gather(
            validate_manifest_async(good), validate_manifest_async(bad)
        )

        assert good_report.stats.total_issues == 0
        assert bad_report.stats.loading_errors == 1
        assert bad_report.stats.validation_errors == 1

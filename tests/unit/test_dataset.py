"""Tests for the dataset view and role scopes."""

import pytest

from dochub_validator.dataset import (
    RoleDefinitionError,
    RoleScope,
    load_role_scope,
)

ROLES_YAML = """
roles:
  default: {}
  shop-team:
    include: ["/components/shop.*", "/contexts/*"]
    exclude: ["/components/shop.internal*"]
"""


@pytest.fixture
def manifest():
    return {
        "components": {
            "shop.web": {"title": "Web", "links": [{"id": "shop.api"}]},
            "shop.api": {"title": "API"},
            "shop.internal-tool": {"title": "Tool"},
            "crm": {"title": "CRM"},
            "broken": "not a mapping",
        },
        "contexts": {"main": {"components": ["shop.*"]}},
        "functions": {"upper": "x => x.toUpperCase()"},
    }


class TestRoleScope:

    def test_default_allows_everything(self):
        assert RoleScope().allows("/components/anything")

    def test_include_and_exclude(self):
        scope = load_role_scope(ROLES_YAML, "shop-team")

        assert scope.allows("/components/shop.web")
        assert scope.allows("/contexts/main")
        assert not scope.allows("/components/crm")
        assert not scope.allows("/components/shop.internal-tool")

    def test_role_without_patterns(self):
        assert load_role_scope(ROLES_YAML, "default") == RoleScope()

    def test_mapping_definition(self):
        scope = load_role_scope({"roles": {"ops": {"exclude": ["/aspects/*"]}}}, "ops")

        assert scope.include == ("*",)
        assert not scope.allows("/aspects/security")

    def test_unknown_role(self):
        with pytest.raises(RoleDefinitionError, match="Role not defined: auditor"):
            load_role_scope(ROLES_YAML, "auditor")

    def test_single_pattern_string(self):
        scope = load_role_scope("roles:\n  team:\n    include: /components/*\n", "team")

        assert scope.include == ("/components/*",)
        assert scope.allows("/components/web")
        assert not scope.allows("/contexts/main")

    @pytest.mark.parametrize("patterns", ["include:", "exclude:", "include: 5", "exclude: {a: b}", "include: [1, x]"])
    def test_malformed_patterns(self, patterns):
        with pytest.raises(RoleDefinitionError, match="must be a pattern or a list of patterns"):
            load_role_scope(f"roles:\n  team:\n    {patterns}\n", "team")

    @pytest.mark.parametrize("definition", ["[1, 2]", "roles: [a]", "roles: {x: 1", ""])
    def test_invalid_definition(self, definition):
        with pytest.raises(RoleDefinitionError):
            load_role_scope(definition, "x")


class TestDatasetView:

    def test_unscoped_view(self, manifest, make_dataset):
        dataset = make_dataset(manifest)

        assert dataset.role_id == "default"
        assert set(dataset.entities("components")) == {"shop.web", "shop.api", "shop.internal-tool", "crm"}
        assert dataset.is_visible("/components/crm/title")
        assert dataset.index.ids("components")[0] == "broken"

    def test_view_is_read_only(self, manifest, make_dataset):
        dataset = make_dataset(manifest)

        with pytest.raises(TypeError):
            dataset.manifest["components"]["new"] = {}
        assert isinstance(dataset.get("/components/shop.web/links"), tuple)

    def test_view_does_not_alias_input(self, manifest, make_dataset):
        dataset = make_dataset(manifest)

        manifest["components"]["shop.web"]["title"] = "Changed"

        assert dataset.get("/components/shop.web/title") == "Web"

    def test_get_pointer(self, manifest, make_dataset):
        dataset = make_dataset(manifest)

        assert dataset.get("/components/shop.web/links/0/id") == "shop.api"
        assert dataset.get("/components/shop.web/links/5/id") is None
        assert dataset.get("/components/missing", "fallback") == "fallback"
        assert dataset.get("/")["contexts"]["main"]["components"] == ("shop.*",)

    def test_functions(self, manifest, make_dataset):
        assert "upper" in make_dataset(manifest).functions
        assert make_dataset({}).functions == {}

    def test_role_scope_hides_entities(self, manifest, make_dataset):
        scope = load_role_scope(ROLES_YAML, "shop-team")

        dataset = make_dataset(manifest, role_id="shop-team", scope=scope)

        assert dataset.role_id == "shop-team"
        assert set(dataset.entities("components")) == {"shop.web", "shop.api"}
        assert set(dataset.entities("contexts")) == {"main"}
        assert not dataset.is_visible("/components/crm")
        assert dataset.is_visible("/components/shop.web/title")
        assert dataset.is_visible("/functions/upper")
        assert dataset.section("functions") is not None

    def test_to_dict_gives_plain_copy(self, manifest, make_dataset):
        data = make_dataset(manifest).to_dict()

        assert data["contexts"] == {"main": {"components": ["shop.*"]}}
        data["components"]["crm"]["title"] = "Changed"
        assert manifest["components"]["crm"]["title"] == "CRM"

"""Tests for locator resolution helpers."""

import pytest

from dochub_validator.locators import (
    ROOT_LOCATOR,
    diagnostic_id,
    is_diagnostic_id,
    normalize_path,
    resolve_locator,
    scheme_of,
)


class TestResolveLocator:
    """Test resolution of references against their fragment."""

    @pytest.mark.parametrize("reference,base,expected", [
        ("components.yaml", "file:///dochub.yaml", "file:///components.yaml"),
        ("parts/a.yaml", "file:///arch/root.yaml", "file:///arch/parts/a.yaml"),
        ("../shared.yaml", "file:///arch/parts/a.yaml", "file:///arch/shared.yaml"),
        ("./a/../b.yaml", "file:///root.yaml", "file:///b.yaml"),
        ("/top.yaml", "file:///arch/parts/a.yaml", "file:///top.yaml"),
        ("parts\\win.yaml", "file:///root.yaml", "file:///parts/win.yaml"),
        ("b.yaml", "https://example.org/arch/a.yaml", "https://example.org/arch/b.yaml"),
        ("https://example.org/x.yaml", "file:///root.yaml", "https://example.org/x.yaml"),
        ("file:///x/../b.yaml", "file:///root.yaml", "file:///b.yaml"),
        ("file:///./arch//parts/a.yaml", "file:///root.yaml", "file:///arch/parts/a.yaml"),
        ("file:///$root$", "file:///arch/a.yaml", "file:///$root$"),
        ("components.yaml", ROOT_LOCATOR, "file:///components.yaml"),
    ])
    def test_resolution(self, reference, base, expected):
        assert resolve_locator(reference, base) == expected

    def test_equivalent_references_resolve_equal(self):
        base = "file:///arch/root.yaml"
        assert resolve_locator("x/../y.yaml", base) == resolve_locator("y.yaml", base)
        assert resolve_locator("file:///arch/x/../y.yaml", base) == resolve_locator("y.yaml", base)


class TestLocatorHelpers:

    def test_scheme_of(self):
        assert scheme_of("file:///a.yaml") == "file"
        assert scheme_of("HTTPS://example.org/a.yaml") == "https"
        assert scheme_of("relative/a.yaml") is None

    def test_normalize_path(self):
        assert normalize_path("a\\b\\c.yaml") == "a/b/c.yaml"
        assert normalize_path("") == ""

    def test_diagnostic_id_is_stable_and_tagged(self):
        first = diagnostic_id("file:///missing.yaml")
        assert first == diagnostic_id("file:///missing.yaml")
        assert first != diagnostic_id("file:///other.yaml")
        assert first.startswith("$error.")
        assert is_diagnostic_id(first)

    def test_is_diagnostic_id(self):
        assert not is_diagnostic_id("entity-id-naming")
        assert not is_diagnostic_id(None)
        assert not is_diagnostic_id("")

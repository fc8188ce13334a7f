"""Tests for version parsing, comparison and bundle identity extraction."""

from __future__ import annotations

import pytest

from bundlelock.core.versioning import (
    compare_versions,
    extract_base_id,
    extract_bundle_identity,
    has_version_suffix,
    is_same_bundle_identity,
    is_update_available,
    is_valid_semver,
    matches,
    parse_version,
    sort_versions_descending,
)
from bundlelock.core.versioning.semver import clean, coerce
from bundlelock.exceptions import VersionError


# ===========================================================================
# Parsing
# ===========================================================================


class TestCleanAndCoerce:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("1.2.3", "1.2.3"),
            (" v1.2.3 ", "1.2.3"),
            ("=1.2.3-beta.1+build.5", "1.2.3-beta.1"),
            ("1.2", None),
            ("latest", None),
        ],
    )
    def test_clean(self, raw: str, expected: str | None) -> None:
        assert clean(raw) == expected

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("v2", "2.0.0"),
            ("release-1.4", "1.4.0"),
            ("1.2.3.4", "1.2.3"),
            ("latest", None),
        ],
    )
    def test_coerce(self, raw: str, expected: str | None) -> None:
        assert coerce(raw) == expected

    def test_parse_version_prefers_clean(self) -> None:
        assert parse_version("v1.0.0-rc.1") == "1.0.0-rc.1"
        assert parse_version("version 3") == "3.0.0"
        assert parse_version("") is None
        assert parse_version("abc") is None

    def test_is_valid_semver(self) -> None:
        assert is_valid_semver("1.0.0")
        assert is_valid_semver("v2")
        assert not is_valid_semver("nightly")


# ===========================================================================
# Comparison
# ===========================================================================


class TestCompareVersions:
    @pytest.mark.parametrize(
        ("a", "b", "expected"),
        [
            ("1.0.0", "2.0.0", -1),
            ("2.0.0", "1.0.0", 1),
            ("1.0.0", "v1.0.0", 0),
            ("1.10.0", "1.9.0", 1),
            ("1.0.0-alpha", "1.0.0", -1),
            ("1.0.0-alpha.2", "1.0.0-alpha.10", -1),
            ("1.0.0-alpha.beta", "1.0.0-alpha.1", 1),
            ("1.0.0+build.1", "1.0.0+build.2", 0),
            ("v2", "1.9.9", 1),
        ],
    )
    def test_precedence(self, a: str, b: str, expected: int) -> None:
        assert compare_versions(a, b) == expected

    def test_string_fallback(self) -> None:
        assert compare_versions("beta", "alpha") == 1

    @pytest.mark.parametrize("bad", ["", "1" * 101])
    def test_rejects_empty_and_long(self, bad: str) -> None:
        with pytest.raises(VersionError):
            compare_versions(bad, "1.0.0")

    def test_version_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            compare_versions("", "")

    def test_is_update_available(self) -> None:
        assert is_update_available("1.0.0", "1.0.1")
        assert not is_update_available("1.0.1", "1.0.1")
        assert not is_update_available("2.0.0", "1.0.0")

    def test_sort_descending_drops_invalid(self) -> None:
        assert sort_versions_descending(["1.0.0", "nightly", "2.0.0", "1.5.0-rc.1"]) == [
            "2.0.0", "1.5.0-rc.1", "1.0.0",
        ]


# ===========================================================================
# Identity
# ===========================================================================


class TestBundleIdentity:
    @pytest.mark.parametrize(
        ("bundle_id", "expected"),
        [
            ("acme-tool-v1.0.0", "acme-tool"),
            ("acme-tool-2.3.4", "acme-tool"),
            ("acme-tool-v1.0.0-beta.1", "acme-tool"),
            ("acme-tool", "acme-tool"),
        ],
    )
    def test_github_strips_version_suffix(self, bundle_id: str, expected: str) -> None:
        assert extract_bundle_identity(bundle_id, "github") == expected

    @pytest.mark.parametrize("source_type", ["gitlab", "http", "local", "awesome-copilot"])
    def test_other_sources_unchanged(self, source_type: str) -> None:
        assert extract_bundle_identity("acme-tool-v1.0.0", source_type) == "acme-tool-v1.0.0"

    def test_overlong_id_rejected(self) -> None:
        with pytest.raises(VersionError):
            extract_bundle_identity("a" * 201, "github")

    def test_same_identity_and_matches(self) -> None:
        assert is_same_bundle_identity("x-v1.0.0", "github", "x-v2.0.0", "github")
        assert matches("x-v1.0.0", "x-v2.0.0", "github")
        assert not matches("x-v1.0.0", "x-v2.0.0", "gitlab")
        assert matches("x", "x", "local")

    def test_base_id_helpers(self) -> None:
        assert extract_base_id("tools-v1.2.3") == "tools"
        assert has_version_suffix("tools-1.2.3")
        assert not has_version_suffix("tools")

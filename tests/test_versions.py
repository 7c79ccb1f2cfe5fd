"""Tests for release version parsing and ordering."""

import pytest

from phpbuild.versions import Version, sort_versions, tag_for_version, version_from_tag


class TestVersion:
    def test_parse(self):
        assert Version.parse("5.4.0") == Version(5, 4, 0)
        assert Version.parse("7.0.0RC1").suffix == "RC1"

    @pytest.mark.parametrize("value", ["5.4", "5.4.x", "php-5.4.0", ""])
    def test_parse_rejects(self, value):
        with pytest.raises(ValueError):
            Version.parse(value)

    def test_prerelease_sorts_before_final(self):
        order = ["7.0.0", "7.0.0RC1", "7.0.0alpha1", "7.0.0beta2"]
        assert sort_versions(order) == ["7.0.0alpha1", "7.0.0beta2", "7.0.0RC1", "7.0.0"]


class TestTags:
    def test_version_from_tag(self):
        assert version_from_tag("php-5.4.0") == "5.4.0"
        assert version_from_tag("php-5.4.0-rc") is None
        assert version_from_tag("v5.4.0") is None

    def test_tag_for_version(self):
        assert tag_for_version("5.4.0") == "php-5.4.0"


def test_sort_versions_numeric_and_deduplicated():
    assert sort_versions(["5.10.0", "5.9.1", "5.9.1", "junk"]) == ["5.9.1", "5.10.0"]

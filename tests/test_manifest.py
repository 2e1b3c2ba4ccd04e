"""Tests for package.json dependency extraction."""

import json

import pytest

from depversions.errors import MalformedInputError
from depversions.manifest import (
    clean_version,
    find_dependency_line,
    install_command,
    parse_manifest,
)

MANIFEST = json.dumps(
    {
        "name": "demo",
        "dependencies": {"lodash": "^4.17.20", "react": "~18.2.0"},
        "devDependencies": {"jest": "29.7.0", "lodash": "^4.17.21"},
    },
    indent=2,
)


class TestCleanVersion:
    """Tests for clean_version."""

    @pytest.mark.parametrize(
        "declared,expected",
        [("^1.2.3", "1.2.3"), ("~1.2.3", "1.2.3"), ("1.2.3", "1.2.3"), (" ^1.0.0 ", "1.0.0"), (">=1.0.0", ">=1.0.0")],
    )
    def test_strips_leading_operators(self, declared, expected):
        assert clean_version(declared) == expected


class TestParseManifest:
    """Tests for parse_manifest."""

    def test_merges_sections(self):
        """devDependencies override dependencies of the same name."""
        deps = {d.name: d for d in parse_manifest(MANIFEST)}
        assert set(deps) == {"lodash", "react", "jest"}
        assert deps["lodash"].declared_range == "^4.17.21"
        assert deps["lodash"].clean_version == "4.17.21"
        assert deps["react"].clean_version == "18.2.0"

    def test_lines(self):
        """Each dependency records the line it is declared on."""
        deps = {d.name: d for d in parse_manifest(MANIFEST)}
        lines = MANIFEST.splitlines()
        assert '"react": "~18.2.0"' in lines[deps["react"].line]
        assert '"lodash": "^4.17.21"' in lines[deps["lodash"].line]

    def test_empty_manifest(self):
        assert parse_manifest("{}") == []

    def test_invalid_json(self):
        with pytest.raises(MalformedInputError):
            parse_manifest("invalid json {")

    def test_non_object_root(self):
        with pytest.raises(MalformedInputError):
            parse_manifest("[]")

    def test_non_object_section(self):
        with pytest.raises(MalformedInputError):
            parse_manifest('{"dependencies": ["lodash"]}')

    def test_non_string_range_skipped(self):
        deps = parse_manifest('{"dependencies": {"a": "1.0.0", "b": 2}}')
        assert [d.name for d in deps] == ["a"]


class TestHelpers:
    """Tests for line lookup and install commands."""

    def test_find_dependency_line_missing(self):
        assert find_dependency_line('{"a": "1"}', "b", "1") is None

    def test_install_command(self):
        assert install_command("@types/node", "20.1.0") == "npm install @types/node@20.1.0"

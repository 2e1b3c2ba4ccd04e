"""Tests for version filtering and latest-version resolution."""

import asyncio

import pytest

from depversions.errors import CancellationError, PermanentFetchError
from depversions.pipeline.cancel import CancelToken
from depversions.versioning.models import PrereleasePolicy, RegistryMetadata, VersionInfo
from depversions.versioning.resolver import (
    VersionResolver,
    compute_version_info,
    filter_candidates,
    is_channel_allowed,
)
from depversions.versioning.semver import comparison_baseline, parse_version

PUBLISHED = frozenset({
    "1.0.0",
    "1.2.0",
    "1.2.3",
    "1.2.4",
    "1.2.10",
    "1.3.0",
    "1.10.1",
    "1.10.0",
    "2.0.0",
    "2.1.0",
    "3.0.0-rc.1",
    "3.0.0-beta.2",
    "3.0.0-alpha.1",
    "3.0.0-dev.5",
    "3.0.0-next.1",
    "1.2.11-beta.1",
    "1.11.0rc1",
    "0.9.0",
    "not-a-version",
})


class _FakeFetcher:
    """Registry fetcher returning canned metadata."""

    def __init__(self, metadata=None, error=None):
        self.metadata = metadata
        self.error = error
        self.calls = []

    async def fetch_registry_metadata(self, package_name):
        self.calls.append(package_name)
        if self.error is not None:
            raise self.error
        return self.metadata


class TestPrereleaseFiltering:
    """Tests for pre-release channel filtering."""

    def test_all_flags_false_excludes_prereleases(self):
        """With no channels allowed, markers and dash suffixes are dropped even when newer."""
        kept = {raw for raw, _ in filter_candidates(PUBLISHED, parse_version("1.2.3"), PrereleasePolicy())}
        assert kept == {"1.2.3", "1.2.4", "1.2.10", "1.3.0", "1.10.0", "1.10.1", "2.0.0", "2.1.0"}

    @pytest.mark.parametrize(
        "version",
        ["3.0.0-rc.1", "3.0.0-beta.2", "3.0.0-alpha.1", "3.0.0-dev.5", "3.0.0-next.1", "1.11.0rc1"],
    )
    def test_default_policy_rejects(self, version):
        assert not is_channel_allowed(version, PrereleasePolicy())

    def test_allowed_channel_is_kept(self):
        """An allowed channel survives; other dash qualifiers still do not."""
        policy = PrereleasePolicy(allow_beta=True)
        assert is_channel_allowed("3.0.0-beta.2", policy)
        assert not is_channel_allowed("3.0.0-rc.1", policy)
        assert not is_channel_allowed("3.0.0-next.1", policy)

    def test_release_candidate_channel(self):
        policy = PrereleasePolicy(allow_release_candidate=True)
        kept = {raw for raw, _ in filter_candidates(PUBLISHED, parse_version("2.0.0"), policy)}
        assert kept == {"2.0.0", "2.1.0", "3.0.0-rc.1"}

    def test_versions_below_current_are_dropped(self):
        """Candidates use semantic ordering, not lexical ordering."""
        kept = {raw for raw, _ in filter_candidates(["1.9.0", "1.10.0", "1.2.0"], parse_version("1.9.0"), PrereleasePolicy())}
        assert kept == {"1.9.0", "1.10.0"}


class TestComputeVersionInfo:
    """Tests for compute_version_info."""

    def test_well_formed_current(self):
        """Minor picks the highest minor/patch in the major line, patch the highest patch."""
        info = compute_version_info("1.2.3", RegistryMetadata("2.1.0", PUBLISHED))
        assert info == VersionInfo(latest_major="2.1.0", latest_minor="1.10.1", latest_patch="1.2.10")

    def test_latest_tag_taken_as_published(self):
        """latest_major is the registry's latest tag even when the policy would filter it."""
        info = compute_version_info("2.1.0", RegistryMetadata("3.0.0-rc.1", PUBLISHED))
        assert info.latest_major == "3.0.0-rc.1"
        assert info.latest_minor == "2.1.0"

    def test_fallback_to_current(self):
        """With nothing newer in the line, minor and patch fall back to current."""
        info = compute_version_info("2.1.0", RegistryMetadata("2.1.0", frozenset({"1.0.0"})))
        assert info == VersionInfo("2.1.0", "2.1.0", "2.1.0")

    def test_invalid_latest_tag_falls_back(self):
        """A latest tag that is not semver is replaced by the current version."""
        info = compute_version_info("1.0.0", RegistryMetadata("latest-ish", frozenset({"1.0.1"})))
        assert info.latest_major == "1.0.0"
        assert info.latest_patch == "1.0.1"

    def test_malformed_current_uses_numeric_prefix(self):
        """A partial current version compares by its numeric components."""
        info = compute_version_info("1.2", RegistryMetadata("2.1.0", PUBLISHED))
        assert info.latest_minor == "1.10.1"
        assert info.latest_patch == "1.2.10"
        assert info.latest_major == "2.1.0"

    def test_unparseable_current_compares_as_zero(self):
        """A current version without numbers keeps its raw value as fallback."""
        info = compute_version_info("latest", RegistryMetadata("2.1.0", PUBLISHED))
        assert info.latest_minor == "0.9.0"
        assert info.latest_patch == "latest"

    def test_policy_enables_prerelease_patch(self):
        """Allowed channels feed the patch computation."""
        info = compute_version_info(
            "1.2.10",
            RegistryMetadata("2.1.0", PUBLISHED),
            PrereleasePolicy(allow_beta=True),
        )
        assert info.latest_patch == "1.2.11-beta.1"

    def test_baseline_helpers(self):
        assert str(comparison_baseline("1.2.x")) == "1.2.0"
        assert str(comparison_baseline("garbage")) == "0.0.0"
        assert parse_version("1.2") is None


class TestVersionResolver:
    """Tests for VersionResolver.resolve."""

    def test_resolve_uses_fetcher(self):
        fetcher = _FakeFetcher(RegistryMetadata("2.0.0", frozenset({"1.2.3", "1.2.9", "1.5.0", "2.0.0"})))
        resolver = VersionResolver(fetcher)
        info = asyncio.run(resolver.resolve("lodash", "1.2.3"))
        assert fetcher.calls == ["lodash"]
        assert info == VersionInfo("2.0.0", "1.5.0", "1.2.9")

    def test_fetch_errors_propagate(self):
        """Fetch failures are not swallowed."""
        resolver = VersionResolver(_FakeFetcher(error=PermanentFetchError("gone", status=404)))
        with pytest.raises(PermanentFetchError):
            asyncio.run(resolver.resolve("missing", "1.0.0"))

    def test_cancelled_token_discards_response(self):
        """A token cancelled before the call stops the lookup."""
        fetcher = _FakeFetcher(RegistryMetadata("1.0.0", frozenset({"1.0.0"})))
        resolver = VersionResolver(fetcher)

        async def _run():
            token = CancelToken()
            token.cancel()
            await resolver.resolve("lodash", "1.0.0", cancel_token=token)

        with pytest.raises(CancellationError):
            asyncio.run(_run())
        assert fetcher.calls == []

"""Latest-version resolution for a dependency against registry metadata."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable, List, Optional, Tuple

import semantic_version

from ..common.logging_utils import extra_context, is_debug_enabled
from ..constants import Constants
from .models import PrereleasePolicy, RegistryMetadata, VersionInfo
from .semver import comparison_baseline, parse_version

if TYPE_CHECKING:
    from ..pipeline.cancel import CancelToken
    from ..registry.base import RegistryFetcher

logger = logging.getLogger(__name__)


def _channel_rules(policy: PrereleasePolicy) -> Tuple[Tuple[str, bool], ...]:
    return (
        (Constants.MARKER_RELEASE_CANDIDATE, policy.allow_release_candidate),
        (Constants.MARKER_BETA, policy.allow_beta),
        (Constants.MARKER_ALPHA, policy.allow_alpha),
        (Constants.MARKER_DEV, policy.allow_dev),
    )


def is_channel_allowed(version: str, policy: PrereleasePolicy) -> bool:
    """Return False when ``version`` carries a pre-release marker the policy excludes.

    Markers are matched as plain substrings, so ``1.0.0-rc.1`` and
    ``1.0.0rc1`` are both release candidates.
    """
    rules = _channel_rules(policy)
    if any(marker in version and not allowed for marker, allowed in rules):
        return False
    if "-" not in version:
        return True
    # Dash-qualified versions survive only through an explicitly allowed channel
    suffix = version.split("-", 1)[1]
    return any(marker in suffix for marker, allowed in rules if allowed)


def filter_candidates(
    versions: Iterable[str],
    current: semantic_version.Version,
    policy: PrereleasePolicy,
) -> List[Tuple[str, semantic_version.Version]]:
    """Keep published versions eligible as upgrade targets.

    Args:
        versions: Published version strings.
        current: Comparison baseline of the current version.
        policy: Allowed pre-release channels.

    Returns:
        (raw string, parsed version) pairs, not below ``current``.
    """
    eligible = []
    for raw in versions:
        if not is_channel_allowed(raw, policy):
            continue
        parsed = parse_version(raw)
        if parsed is None:
            continue
        if parsed < current:
            continue
        eligible.append((raw, parsed))
    return eligible


def _highest(candidates: List[Tuple[str, semantic_version.Version]]) -> Optional[str]:
    if not candidates:
        return None
    return max(candidates, key=lambda pair: pair[1])[0]


def compute_version_info(
    current_version: str,
    metadata: RegistryMetadata,
    policy: Optional[PrereleasePolicy] = None,
) -> VersionInfo:
    """Compute latest major/minor/patch targets for ``current_version``.

    ``latest_major`` is the registry's ``latest`` dist-tag taken as published,
    without applying the pre-release policy. The minor and patch targets come
    from the filtered candidate set. Each field falls back to
    ``current_version`` when nothing qualifies.
    """
    policy = policy or PrereleasePolicy()
    baseline = comparison_baseline(current_version)
    candidates = filter_candidates(metadata.published_versions, baseline, policy)

    same_major = [c for c in candidates if c[1].major == baseline.major]
    same_minor = [c for c in same_major if c[1].minor == baseline.minor]

    latest_major = metadata.latest_tag
    if parse_version(latest_major) is None:
        logger.warning(
            "Registry latest tag %r is not a semantic version; using current %s",
            latest_major,
            current_version,
            extra=extra_context(event="resolve", component="resolver", outcome="invalid_latest_tag"),
        )
        latest_major = current_version

    info = VersionInfo(
        latest_major=latest_major,
        latest_minor=_highest(same_major) or current_version,
        latest_patch=_highest(same_minor) or current_version,
    )
    if is_debug_enabled(logger):
        logger.debug(
            "Resolved version info",
            extra=extra_context(
                event="resolve",
                component="resolver",
                outcome="success",
                current=current_version,
                published=len(metadata.published_versions),
                eligible=len(candidates),
                latest_major=info.latest_major,
                latest_minor=info.latest_minor,
                latest_patch=info.latest_patch,
            ),
        )
    return info


class VersionResolver:
    """Fetches registry metadata and turns it into a ``VersionInfo``."""

    def __init__(self, fetcher: "RegistryFetcher", policy: Optional[PrereleasePolicy] = None):
        """Initialize the resolver.

        Args:
            fetcher: Registry fetch capability.
            policy: Default pre-release policy for ``resolve`` calls.
        """
        self._fetcher = fetcher
        self._policy = policy or PrereleasePolicy()

    @property
    def policy(self) -> PrereleasePolicy:
        return self._policy

    async def resolve(
        self,
        package_name: str,
        current_version: str,
        policy: Optional[PrereleasePolicy] = None,
        cancel_token: Optional["CancelToken"] = None,
    ) -> VersionInfo:
        """Resolve latest versions of ``package_name``.

        Fetch errors propagate unchanged so the request queue can classify
        them for retry. When ``cancel_token`` fires while the fetch is in
        flight the late response is discarded with ``CancellationError``.
        """
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        metadata = await self._fetcher.fetch_registry_metadata(package_name)
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        return compute_version_info(current_version, metadata, policy or self._policy)

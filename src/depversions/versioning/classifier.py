"""Upgrade tier classification."""

from __future__ import annotations

from typing import Iterable, List, Tuple

from .models import Upgrade, UpgradeTier, VersionInfo
from .semver import parse_version


def classify(current_version: str, info: VersionInfo) -> Tuple[Upgrade, ...]:
    """Return the upgrade announcements for ``current_version``, ordered major, minor, patch.

    The three checks are independent, so a dependency can announce a patch
    within its line alongside a major jump. Invalid inputs produce no
    announcements (unknown, not up to date); this function never raises.
    """
    current = parse_version(current_version)
    major = parse_version(info.latest_major)
    minor = parse_version(info.latest_minor)
    patch = parse_version(info.latest_patch)
    if current is None or major is None or minor is None or patch is None:
        return ()

    if current >= major:
        return ()

    upgrades: List[Upgrade] = []
    if major.major > current.major:
        upgrades.append(Upgrade(UpgradeTier.MAJOR, info.latest_major))
    if minor.major == current.major and minor.minor > current.minor:
        upgrades.append(Upgrade(UpgradeTier.MINOR, info.latest_minor))
    if (
        patch.major == current.major
        and patch.minor == current.minor
        and patch.patch > current.patch
    ):
        upgrades.append(Upgrade(UpgradeTier.PATCH, info.latest_patch))
    return tuple(upgrades)


def summarize(upgrades: Iterable[Upgrade]) -> UpgradeTier:
    """Highest tier among ``upgrades``, or ``UpgradeTier.NONE``."""
    return max((u.tier for u in upgrades), key=lambda tier: tier.value, default=UpgradeTier.NONE)

"""Data models for version resolution and upgrade classification."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional, Tuple


class UpgradeTier(Enum):
    """Classification of an available upgrade relative to a current version."""
    NONE = 0
    PATCH = 1
    MINOR = 2
    MAJOR = 3


@dataclass(frozen=True)
class Dependency:
    """A dependency as declared in a manifest for one resolution pass."""
    name: str
    declared_range: str
    clean_version: str
    line: Optional[int] = None  # 0-based manifest line, when known


@dataclass(frozen=True)
class PrereleasePolicy:
    """Which pre-release channels may be suggested as upgrades."""
    allow_release_candidate: bool = False
    allow_beta: bool = False
    allow_alpha: bool = False
    allow_dev: bool = False


@dataclass(frozen=True)
class RegistryMetadata:
    """Registry answer for a package: the ``latest`` dist-tag and all versions."""
    latest_tag: str
    published_versions: FrozenSet[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class VersionInfo:
    """Latest versions at three granularities for one dependency."""
    latest_major: str
    latest_minor: str
    latest_patch: str


@dataclass(frozen=True)
class Upgrade:
    """A single upgrade announcement."""
    tier: UpgradeTier
    target_version: str


@dataclass(frozen=True)
class DependencyResult:
    """Outcome of resolving one dependency within a pass."""
    scope: str
    dependency: Dependency
    upgrades: Tuple[Upgrade, ...] = ()
    info: Optional[VersionInfo] = None
    error: Optional[BaseException] = None
    from_cache: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class PassResult:
    """Ordered results of a resolution pass, in dependency order."""
    scope: str
    results: Tuple[DependencyResult, ...] = ()
    cancelled: bool = False

    @property
    def failures(self) -> Tuple[DependencyResult, ...]:
        return tuple(r for r in self.results if not r.ok)

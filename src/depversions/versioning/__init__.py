"""Version models, resolution and upgrade classification."""

from .models import (
    Dependency,
    DependencyResult,
    PassResult,
    PrereleasePolicy,
    RegistryMetadata,
    Upgrade,
    UpgradeTier,
    VersionInfo,
)
from .classifier import classify, summarize
from .resolver import VersionResolver, compute_version_info, filter_candidates

__all__ = [
    "Dependency",
    "DependencyResult",
    "PassResult",
    "PrereleasePolicy",
    "RegistryMetadata",
    "Upgrade",
    "UpgradeTier",
    "VersionInfo",
    "classify",
    "summarize",
    "VersionResolver",
    "compute_version_info",
    "filter_candidates",
]

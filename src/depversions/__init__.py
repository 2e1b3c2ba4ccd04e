"""depversions: latest major/minor/patch upgrades for npm dependencies.

The package is built around a versioned fetch pipeline: a bounded,
retrying request queue, a scope-keyed TTL cache and a per-scope
orchestrator turning registry metadata into upgrade announcements.
"""

from .config import Settings, load_settings
from .errors import (
    CancellationError,
    DepVersionsError,
    FetchError,
    MalformedInputError,
    PermanentFetchError,
    TransientFetchError,
)
from .pipeline import CancelToken, FetchOrchestrator, RequestQueue, VersionCache
from .registry import NpmRegistryClient
from .versioning import (
    Dependency,
    DependencyResult,
    PassResult,
    PrereleasePolicy,
    Upgrade,
    UpgradeTier,
    VersionInfo,
    VersionResolver,
    classify,
)

__all__ = [
    "Settings",
    "load_settings",
    "CancellationError",
    "DepVersionsError",
    "FetchError",
    "MalformedInputError",
    "PermanentFetchError",
    "TransientFetchError",
    "CancelToken",
    "FetchOrchestrator",
    "RequestQueue",
    "VersionCache",
    "NpmRegistryClient",
    "Dependency",
    "DependencyResult",
    "PassResult",
    "PrereleasePolicy",
    "Upgrade",
    "UpgradeTier",
    "VersionInfo",
    "VersionResolver",
    "classify",
]

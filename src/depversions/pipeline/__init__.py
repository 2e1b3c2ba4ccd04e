"""Versioned fetch pipeline: request queue, version cache and orchestrator."""

from .cache import CacheEntry, VersionCache, content_fingerprint
from .cancel import CancelToken
from .orchestrator import FetchOrchestrator, ScopeState
from .request_queue import RequestQueue, is_transient_error

__all__ = [
    "CacheEntry",
    "VersionCache",
    "content_fingerprint",
    "CancelToken",
    "FetchOrchestrator",
    "ScopeState",
    "RequestQueue",
    "is_transient_error",
]

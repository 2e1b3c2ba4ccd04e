"""Registry fetch capability consumed by the version resolver."""

from __future__ import annotations

from typing import Protocol

from ..versioning.models import RegistryMetadata


class RegistryFetcher(Protocol):
    """Anything able to fetch package metadata from a registry.

    Implementations raise ``TransientFetchError`` for rate limiting and
    network failures and ``PermanentFetchError`` for everything else.
    """

    async def fetch_registry_metadata(self, package_name: str) -> RegistryMetadata:
        ...

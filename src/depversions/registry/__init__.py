"""Registry clients implementing the metadata fetch capability."""

from .base import RegistryFetcher
from .npm import NpmRegistryClient

__all__ = ["RegistryFetcher", "NpmRegistryClient"]

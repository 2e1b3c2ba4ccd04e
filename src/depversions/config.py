"""Runtime configuration for the fetch pipeline.

Settings are resolved in priority order (highest first):
  1. CLI arguments           (``Settings.from_args``)
  2. YAML config file        (``load_settings``; optional ``depversions:`` section)
  3. Defaults from ``Constants``
"""

from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import yaml

from .constants import Constants
from .versioning.models import PrereleasePolicy

logger = logging.getLogger(__name__)

# Setting names used by the editor extension this tool grew out of
_ALIASES = {
    "enableCodeLens": "enabled",
    "enableReleaseCandidateUpgrades": "allow_release_candidate",
    "enableBetaUpgrades": "allow_beta",
    "enableAlphaUpgrades": "allow_alpha",
    "enableDevUpgrades": "allow_dev",
}


@dataclass
class Settings:
    """Configuration consumed by the orchestrator, queue, cache and registry client."""

    enabled: bool = True
    allow_release_candidate: bool = False
    allow_beta: bool = False
    allow_alpha: bool = False
    allow_dev: bool = False
    max_concurrent: int = Constants.QUEUE_MAX_CONCURRENT
    max_retries: int = Constants.QUEUE_MAX_RETRIES
    base_retry_delay_ms: int = Constants.QUEUE_BASE_RETRY_DELAY_MS
    cache_ttl_ms: int = Constants.CACHE_TTL_MS
    cleanup_interval_ms: int = Constants.CACHE_CLEANUP_INTERVAL_MS
    refresh_debounce_ms: int = Constants.REFRESH_DEBOUNCE_MS
    registry_url: str = Constants.REGISTRY_URL_NPM
    request_timeout: int = Constants.REQUEST_TIMEOUT

    def __post_init__(self) -> None:
        if self.max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        for name in (
            "max_retries",
            "base_retry_delay_ms",
            "cache_ttl_ms",
            "refresh_debounce_ms",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")
        if self.cleanup_interval_ms <= 0:
            raise ValueError("cleanup_interval_ms must be positive")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")

    def prerelease_policy(self) -> PrereleasePolicy:
        return PrereleasePolicy(
            allow_release_candidate=self.allow_release_candidate,
            allow_beta=self.allow_beta,
            allow_alpha=self.allow_alpha,
            allow_dev=self.allow_dev,
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], base: Optional["Settings"] = None) -> "Settings":
        """Build settings from a mapping, layered over ``base``.

        Unknown keys are logged and ignored.
        """
        known = {f.name for f in dataclasses.fields(cls)}
        overrides: Dict[str, Any] = {}
        for key, value in data.items():
            name = _ALIASES.get(key, key)
            if name not in known:
                logger.warning("Ignoring unknown setting: %s", key)
                continue
            overrides[name] = value
        return dataclasses.replace(base or cls(), **overrides)

    @classmethod
    def from_args(cls, args: Any, base: Optional["Settings"] = None) -> "Settings":
        """Apply CLI overrides on top of ``base``.

        Args:
            args: Parsed CLI arguments namespace.
            base: Settings loaded from file, or defaults.

        Returns:
            Settings instance.
        """
        mapping = {
            "allow_release_candidate": getattr(args, "ALLOW_RC", None),
            "allow_beta": getattr(args, "ALLOW_BETA", None),
            "allow_alpha": getattr(args, "ALLOW_ALPHA", None),
            "allow_dev": getattr(args, "ALLOW_DEV", None),
            "max_concurrent": getattr(args, "MAX_CONCURRENT", None),
            "max_retries": getattr(args, "MAX_RETRIES", None),
            "base_retry_delay_ms": getattr(args, "RETRY_DELAY_MS", None),
            "registry_url": getattr(args, "REGISTRY_URL", None),
            "request_timeout": getattr(args, "TIMEOUT", None),
        }
        return cls.from_mapping(
            {k: v for k, v in mapping.items() if v is not None}, base=base
        )


def load_settings(config_path: Optional[str]) -> Settings:
    """Load settings from a YAML file.

    A missing path yields defaults. If the document has a ``depversions``
    section only that section is read.

    Raises:
        ValueError: The file is not a mapping or holds invalid values.
    """
    if not config_path:
        return Settings()
    if not os.path.isfile(config_path):
        logger.warning("Config file not found: %s", config_path)
        return Settings()

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping")
    section = data.get(Constants.CONFIG_SECTION, data)
    if not isinstance(section, dict):
        raise ValueError(f"'{Constants.CONFIG_SECTION}' section must be a mapping")
    return Settings.from_mapping(section)

"""Semantic version parsing helpers on top of ``semantic_version``."""

from __future__ import annotations

from typing import Optional

import semantic_version

ZERO = semantic_version.Version("0.0.0")


def parse_version(value: Optional[str]) -> Optional[semantic_version.Version]:
    """Parse a strict semantic version, returning None when invalid."""
    if not value:
        return None
    try:
        return semantic_version.Version(value)
    except ValueError:
        return None


def comparison_baseline(value: str) -> semantic_version.Version:
    """Return the version ``value`` compares as.

    Valid versions compare as themselves. Otherwise the leading numeric
    components are kept (``"1.2"`` -> ``1.2.0``, ``"1.2.x"`` -> ``1.2.0``) and
    anything without a numeric prefix compares as ``0.0.0``.
    """
    parsed = parse_version(value)
    if parsed is not None:
        return parsed
    try:
        coerced = semantic_version.Version.coerce(value.strip())
    except ValueError:
        return ZERO
    return semantic_version.Version(f"{coerced.major}.{coerced.minor}.{coerced.patch}")

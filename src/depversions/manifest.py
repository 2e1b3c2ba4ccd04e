"""package.json dependency extraction."""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional

from .constants import Constants
from .errors import MalformedInputError
from .versioning.models import Dependency

logger = logging.getLogger(__name__)

_LEADING_OPERATORS = re.compile(r"^[" + re.escape(Constants.RANGE_OPERATORS) + r"]+")


def clean_version(declared_range: str) -> str:
    """Strip leading ``^``/``~`` range operators from a declared range."""
    return _LEADING_OPERATORS.sub("", declared_range.strip())


def find_dependency_line(text: str, name: str, declared_range: str) -> Optional[int]:
    """Return the 0-based line declaring ``"name": "range"``, or None."""
    needle = re.compile(
        r'"' + re.escape(name) + r'"\s*:\s*"' + re.escape(declared_range) + r'"'
    )
    for index, line in enumerate(text.splitlines()):
        if needle.search(line):
            return index
    return None


def _section(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise MalformedInputError(f"'{key}' must be an object")
    return value


def parse_manifest(text: str) -> List[Dependency]:
    """Extract dependencies and devDependencies from package.json text.

    A name present in both sections takes its devDependencies range.

    Raises:
        MalformedInputError: Invalid JSON or malformed dependency sections.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedInputError(f"Invalid {Constants.PACKAGE_JSON_FILE}: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedInputError(f"{Constants.PACKAGE_JSON_FILE} must be a JSON object")

    merged: Dict[str, Any] = {}
    merged.update(_section(data, "dependencies"))
    merged.update(_section(data, "devDependencies"))

    dependencies = []
    for name, declared in merged.items():
        if not isinstance(declared, str):
            logger.warning("Skipping %s: version range is not a string", name)
            continue
        dependencies.append(
            Dependency(
                name=name,
                declared_range=declared,
                clean_version=clean_version(declared),
                line=find_dependency_line(text, name, declared),
            )
        )
    return dependencies


def install_command(package_name: str, version: str) -> str:
    """Shell command installing ``package_name`` at ``version``; never executed here."""
    return f"npm install {package_name}@{version}"

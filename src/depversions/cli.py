"""Command line entry point: report available upgrades for a package.json."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional

import yaml

from .common.logging_utils import configure_logging
from .config import Settings, load_settings
from .constants import Constants, ExitCodes
from .errors import MalformedInputError, TransientFetchError
from .manifest import install_command, parse_manifest
from .pipeline.cache import content_fingerprint
from .pipeline.orchestrator import FetchOrchestrator
from .registry.npm import NpmRegistryClient
from .versioning.models import DependencyResult, PassResult, UpgradeTier

logger = logging.getLogger(__name__)

_TIER_LABELS = {
    UpgradeTier.MAJOR: "Major",
    UpgradeTier.MINOR: "Minor",
    UpgradeTier.PATCH: "Patch",
}


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parses the arguments passed to the program."""
    parser = argparse.ArgumentParser(
        prog="depversions",
        description="Show available major/minor/patch upgrades of npm dependencies",
    )
    subparsers = parser.add_subparsers(dest="COMMAND", required=True)

    check = subparsers.add_parser("check", help="Check a package.json for upgrades")
    check.add_argument("manifest",
                       nargs="?",
                       default=Constants.PACKAGE_JSON_FILE,
                       help="Path to package.json (default: ./package.json)")
    check.add_argument("-f", "--format",
                       dest="OUTPUT_FORMAT",
                       choices=["text", "json"],
                       default="text",
                       type=str.lower,
                       help="Output format (default: text)")
    check.add_argument("--commands",
                       dest="PRINT_COMMANDS",
                       action="store_true",
                       help="Print the npm install command for each upgrade")
    check.add_argument("-c", "--config",
                       dest="CONFIG",
                       help="YAML configuration file")
    check.add_argument("--allow-rc", dest="ALLOW_RC", action="store_true", default=None,
                       help="Suggest release candidate versions")
    check.add_argument("--allow-beta", dest="ALLOW_BETA", action="store_true", default=None,
                       help="Suggest beta versions")
    check.add_argument("--allow-alpha", dest="ALLOW_ALPHA", action="store_true", default=None,
                       help="Suggest alpha versions")
    check.add_argument("--allow-dev", dest="ALLOW_DEV", action="store_true", default=None,
                       help="Suggest dev versions")
    check.add_argument("--max-concurrent", dest="MAX_CONCURRENT", type=int,
                       help=f"Concurrent registry requests (default: {Constants.QUEUE_MAX_CONCURRENT})")
    check.add_argument("--max-retries", dest="MAX_RETRIES", type=int,
                       help=f"Retries for transient failures (default: {Constants.QUEUE_MAX_RETRIES})")
    check.add_argument("--retry-delay-ms", dest="RETRY_DELAY_MS", type=int,
                       help=f"Base retry delay in ms (default: {Constants.QUEUE_BASE_RETRY_DELAY_MS})")
    check.add_argument("--registry", dest="REGISTRY_URL",
                       help=f"Registry base URL (default: {Constants.REGISTRY_URL_NPM})")
    check.add_argument("--timeout", dest="TIMEOUT", type=int,
                       help=f"Request timeout in seconds (default: {Constants.REQUEST_TIMEOUT})")
    check.add_argument("--loglevel",
                       dest="LOG_LEVEL",
                       choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                       type=str.upper,
                       help="Set the logging level")
    check.add_argument("--logfile",
                       dest="LOG_FILE",
                       help="Also write logs to this file")
    return parser.parse_args(argv)


def _setup_logging(args: argparse.Namespace) -> None:
    configure_logging(getattr(args, "LOG_LEVEL", None))
    log_file = getattr(args, "LOG_FILE", None)
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        )
        logging.getLogger().addHandler(file_handler)
        logger.info("Logging to file: %s", log_file)


def result_to_dict(result: DependencyResult) -> Dict[str, Any]:
    """Serializable view of a dependency result."""
    dep = result.dependency
    return {
        "name": dep.name,
        "declared": dep.declared_range,
        "current": dep.clean_version,
        "line": dep.line,
        "upgrades": [
            {"tier": u.tier.name.lower(), "version": u.target_version} for u in result.upgrades
        ],
        "error": str(result.error) if result.error is not None else None,
    }


def format_result(result: DependencyResult, with_commands: bool = False) -> List[str]:
    """Human readable lines for one dependency."""
    dep = result.dependency
    head = f"{dep.name} {dep.declared_range}"
    if result.error is not None:
        return [f"{head}: error: {result.error}"]
    if not result.upgrades:
        if result.info is not None and result.info.latest_major == dep.clean_version:
            return [f"{head}: Up to date"]
        return [f"{head}: no upgrade available"]
    lines = [head]
    for upgrade in result.upgrades:
        lines.append(
            f"  {_TIER_LABELS[upgrade.tier]} upgrade available: {upgrade.target_version}"
        )
        if with_commands:
            lines.append(f"    {install_command(dep.name, upgrade.target_version)}")
    return lines


def exit_code_for(result: PassResult) -> ExitCodes:
    failures = result.failures
    if not failures:
        return ExitCodes.SUCCESS
    if len(failures) == len(result.results) and all(
        isinstance(r.error, TransientFetchError) for r in failures
    ):
        return ExitCodes.CONNECTION_ERROR
    return ExitCodes.EXIT_WARNINGS


async def run_check(settings: Settings, manifest_path: str, text: str) -> PassResult:
    """Resolve every dependency of the manifest ``text``."""
    async with NpmRegistryClient(settings.registry_url, settings.request_timeout) as client:
        async with FetchOrchestrator(client, settings) as orchestrator:
            return await orchestrator.resolve(
                manifest_path,
                parse_manifest(text),
                fingerprint=content_fingerprint(0, text),
            )


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entrypoint."""
    args = parse_args(argv)
    _setup_logging(args)

    try:
        settings = Settings.from_args(args, base=load_settings(args.CONFIG))
    except (ValueError, TypeError, yaml.YAMLError) as exc:
        logger.error("Invalid configuration: %s", exc)
        return ExitCodes.FILE_ERROR.value

    try:
        with open(args.manifest, "r", encoding="utf-8") as fh:
            text = fh.read()
        parse_manifest(text)
    except OSError as exc:
        logger.error("Cannot read %s: %s", args.manifest, exc)
        return ExitCodes.FILE_ERROR.value
    except MalformedInputError as exc:
        logger.error("%s", exc)
        return ExitCodes.FILE_ERROR.value

    result = asyncio.run(run_check(settings, args.manifest, text))

    if args.OUTPUT_FORMAT == "json":
        json.dump([result_to_dict(r) for r in result.results], sys.stdout, indent=2)
        sys.stdout.write("\n")
    else:
        for dep_result in result.results:
            for line in format_result(dep_result, with_commands=args.PRINT_COMMANDS):
                sys.stdout.write(line + "\n")
    return exit_code_for(result).value


if __name__ == "__main__":
    sys.exit(main())

"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONNECTION_ERROR = 2
    EXIT_WARNINGS = 3


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    REGISTRY_URL_NPM = "https://registry.npmjs.org/"
    PACKAGE_JSON_FILE = "package.json"
    LOG_FORMAT = "[%(levelname)s] %(message)s"
    ENV_LOG_LEVEL = "DEPVERSIONS_LOG_LEVEL"
    CONFIG_SECTION = "depversions"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for registry requests
    USER_AGENT = "depversions/0.1"

    # Request queue tuning
    QUEUE_MAX_CONCURRENT = 5
    QUEUE_MAX_RETRIES = 3
    QUEUE_BASE_RETRY_DELAY_MS = 1000

    # Version cache
    CACHE_TTL_MS = 5 * 60 * 1000
    CACHE_CLEANUP_INTERVAL_MS = 60 * 1000
    CACHE_KEY_SEPARATOR = "@"

    # Debounced "results changed" notification per scope
    REFRESH_DEBOUNCE_MS = 200

    # Pre-release channel markers, checked as substrings of a version string
    MARKER_RELEASE_CANDIDATE = "rc"
    MARKER_BETA = "beta"
    MARKER_ALPHA = "alpha"
    MARKER_DEV = "dev"

    # Range operators stripped from a declared range
    RANGE_OPERATORS = "^~"

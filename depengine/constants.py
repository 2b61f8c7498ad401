"""
Centralized constants for depengine.

This module defines immutable configuration values used across depengine,
including registry settings, manifest layout, engine names, and logging
formats. All values are intended to be treated as read-only.
"""

from typing import Final, Sequence

# ---------------------------------------------------------------------------
# Project metadata
# ---------------------------------------------------------------------------

#: HTTP User-Agent template used for outbound requests.
USER_AGENT_TEMPLATE: Final[str] = "depengine/{version}"

# ---------------------------------------------------------------------------
# Registry endpoints
# ---------------------------------------------------------------------------

#: Registry used when neither the CLI, the config file, the environment nor
#: an ``.npmrc`` names one.
DEFAULT_REGISTRY: Final[str] = "https://registry.npmjs.org/"

#: Environment variables consulted for the registry URL, in order.
REGISTRY_ENV_VARS: Final[Sequence[str]] = ("NPM_CONFIG_REGISTRY", "npm_config_registry")

#: Name of the npm user/project configuration file.
NPMRC_FILENAME: Final[str] = ".npmrc"

#: Accept header asking for abbreviated ("corgi") package documents, which
#: still carry the per-version ``engines`` field.
REGISTRY_ACCEPT_HEADER: Final[str] = (
    "application/vnd.npm.install-v1+json; q=1.0, application/json; q=0.8, */*"
)

# ---------------------------------------------------------------------------
# HTTP configuration
# ---------------------------------------------------------------------------

#: Default per-request timeout in seconds.
DEFAULT_TIMEOUT: Final[int] = 15

#: Maximum number of retries for failed HTTP requests.
DEFAULT_MAX_RETRIES: Final[int] = 2

#: Number of registry fetches allowed in flight at once (1 = sequential).
DEFAULT_CONCURRENCY: Final[int] = 1

# ---------------------------------------------------------------------------
# Manifest layout
# ---------------------------------------------------------------------------

#: File name of the project manifest.
MANIFEST_FILENAME: Final[str] = "package.json"

#: Lock file removed before a clean re-install.
LOCKFILE_FILENAME: Final[str] = "package-lock.json"

#: Directory holding installed dependencies.
NODE_MODULES_DIRNAME: Final[str] = "node_modules"

#: Dependency groups that may be audited, in report order.
KNOWN_DEPENDENCY_GROUPS: Final[Sequence[str]] = (
    "dependencies",
    "devDependencies",
    "peerDependencies",
    "optionalDependencies",
)

#: Groups audited when nothing narrower is requested.
DEFAULT_DEPENDENCY_GROUPS: Final[Sequence[str]] = (
    "dependencies",
    "devDependencies",
    "peerDependencies",
)

#: Group audited by ``--dev-only``.
DEV_DEPENDENCY_GROUP: Final[str] = "devDependencies"

# ---------------------------------------------------------------------------
# Engines
# ---------------------------------------------------------------------------

#: Runtimes whose minimum versions are tracked.
TRACKED_ENGINES: Final[Sequence[str]] = ("node", "npm")

#: Sentinel meaning "no engine constraint, anything matches".
WILDCARD: Final[str] = "*"

# ---------------------------------------------------------------------------
# Configuration defaults
# ---------------------------------------------------------------------------

DEFAULT_ALLOW_PRE_RELEASE: Final[bool] = False
DEFAULT_EXACT: Final[bool] = False
DEFAULT_AUTO_INSTALL: Final[bool] = True

# ---------------------------------------------------------------------------
# Security constraints
# ---------------------------------------------------------------------------

#: Maximum allowed file size (in bytes) when reading manifests.
MAX_FILE_SIZE: Final[int] = 10 * 1024 * 1024  # 10 MB

# ---------------------------------------------------------------------------
# Logging configuration
# ---------------------------------------------------------------------------

#: Timestamp format for verbose logging.
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

#: Default log format (non-verbose).
LOG_DEFAULT_FORMAT: Final[str] = "%(levelname)s: %(message)s"

#: Verbose log format including timestamp and logger name.
LOG_VERBOSE_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

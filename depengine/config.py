"""Configuration file loader for depengine.

Handles discovery, loading, parsing, and validation of configuration files.
Supports two formats:

- ``depengine.toml``: settings under ``[depengine]`` table
- ``pyproject.toml``: settings under ``[tool.depengine]`` table

Discovery order:

1. Explicit path from ``--config`` or ``DEPENGINE_CONFIG``
2. ``depengine.toml`` in current directory
3. ``pyproject.toml`` with ``[tool.depengine]`` section

Configuration precedence: defaults < config file < CLI args.

Typical usage::

    config = load_config()  # Auto-discover
    config = load_config(Path("custom.toml"))  # Explicit path

Example (``depengine.toml``)::

    [depengine]
    registry = "https://registry.npmmirror.com/"
    exact = false
    groups = ["dependencies", "devDependencies"]
    concurrency = 4
"""

from __future__ import annotations


import tomli as tomllib
from pathlib import Path
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field

from depengine.exceptions import ConfigError
from depengine.utils.logger import get_logger
from depengine.constants import (
    DEFAULT_ALLOW_PRE_RELEASE,
    DEFAULT_AUTO_INSTALL,
    DEFAULT_CONCURRENCY,
    DEFAULT_DEPENDENCY_GROUPS,
    DEFAULT_EXACT,
    DEFAULT_TIMEOUT,
    KNOWN_DEPENDENCY_GROUPS,
)

logger = get_logger("config")

CONFIG_FILENAME = "depengine.toml"
PYPROJECT_FILENAME = "pyproject.toml"
SECTION_NAME = "depengine"


@dataclass
class DepEngineConfig:
    """Parsed and validated depengine configuration.

    Contains settings from ``depengine.toml`` or ``pyproject.toml``.
    All fields have defaults, so empty config files are valid.

    Attributes:
        registry: Registry URL; ``None`` falls back to the environment and
            ``.npmrc`` lookup.
        allow_pre_release: Consider pre-release versions.
        exact: Pin updated dependencies to exact versions.
        groups: Dependency groups to audit.
        timeout: Per-request timeout in seconds.
        concurrency: Registry fetches allowed in flight.
        auto_install: Re-install dependencies after ``update`` writes
            ``package.json``.
        source_path: Path to loaded config file, or ``None`` if using defaults.
    """

    registry: Optional[str] = None
    allow_pre_release: bool = DEFAULT_ALLOW_PRE_RELEASE
    exact: bool = DEFAULT_EXACT
    groups: List[str] = field(default_factory=lambda: list(DEFAULT_DEPENDENCY_GROUPS))
    timeout: int = DEFAULT_TIMEOUT
    concurrency: int = DEFAULT_CONCURRENCY
    auto_install: bool = DEFAULT_AUTO_INSTALL

    # Metadata (not a user-facing option)
    source_path: Optional[Path] = field(default=None, repr=False)

    def to_log_dict(self) -> Dict[str, Any]:
        """Return configuration as dictionary for debug logging.

        Excludes ``source_path`` metadata.
        """
        return {
            "registry": self.registry,
            "allow_pre_release": self.allow_pre_release,
            "exact": self.exact,
            "groups": list(self.groups),
            "timeout": self.timeout,
            "concurrency": self.concurrency,
            "auto_install": self.auto_install,
        }


def discover_config_file(explicit_path: Optional[Path] = None) -> Optional[Path]:
    """Find the configuration file to load.

    Search order:

    1. ``explicit_path`` (from ``--config`` or ``DEPENGINE_CONFIG``)
    2. ``depengine.toml`` in current directory
    3. ``pyproject.toml`` with ``[tool.depengine]`` section in current directory

    Args:
        explicit_path: Explicit config path. If provided, must exist.

    Returns:
        Resolved path to config file, or ``None`` if not found.

    Raises:
        ConfigError: Explicit path provided but does not exist.
    """
    if explicit_path is not None:
        resolved = explicit_path.resolve()
        if not resolved.is_file():
            raise ConfigError(
                f"Configuration file not found: {explicit_path}",
                config_path=str(explicit_path),
            )
        logger.debug("Using explicit config: %s", resolved)
        return resolved

    cwd = Path.cwd()

    depengine_toml = cwd / CONFIG_FILENAME
    if depengine_toml.is_file():
        logger.debug("Found %s: %s", CONFIG_FILENAME, depengine_toml)
        return depengine_toml

    pyproject_toml = cwd / PYPROJECT_FILENAME
    if pyproject_toml.is_file() and _pyproject_has_section(pyproject_toml):
        logger.debug("Found [tool.%s] in pyproject.toml: %s", SECTION_NAME, pyproject_toml)
        return pyproject_toml

    logger.debug("No configuration file found")
    return None


def _pyproject_has_section(path: Path) -> bool:
    """Check if pyproject.toml contains a ``[tool.depengine]`` section.

    An unreadable or invalid pyproject.toml is not ours to report on, so
    it simply does not count as a config file.
    """
    try:
        raw = _read_toml(path)
    except ConfigError as exc:
        logger.debug("Ignoring %s: %s", path, exc)
        return False
    tool = raw.get("tool", {})
    return isinstance(tool, dict) and SECTION_NAME in tool


def load_config(config_path: Optional[Path] = None) -> DepEngineConfig:
    """Load and validate depengine configuration.

    Args:
        config_path: Explicit path to config file. If ``None``, uses
            auto-discovery (see :func:`discover_config_file`).

    Returns:
        Validated :class:`DepEngineConfig` with values from file or defaults.

    Raises:
        ConfigError: File cannot be parsed, has unknown keys, or invalid values.
    """
    resolved = discover_config_file(config_path)

    if resolved is None:
        logger.debug("No config file found, using defaults")
        return DepEngineConfig()

    logger.info("Loading configuration from %s", resolved)
    raw = _read_toml(resolved)

    if resolved.name == PYPROJECT_FILENAME:
        section = raw.get("tool", {}).get(SECTION_NAME, {})
    else:
        section = raw.get(SECTION_NAME, {})

    if not section:
        logger.debug("Config file found but no %s section, using defaults", SECTION_NAME)
        return DepEngineConfig(source_path=resolved)

    if not isinstance(section, dict):
        raise ConfigError(
            f"[{SECTION_NAME}] must be a table",
            config_path=str(resolved),
        )

    config = _parse_section(section, config_path=str(resolved))
    config.source_path = resolved

    logger.debug("Loaded configuration: %s", config.to_log_dict())
    return config


def _read_toml(path: Path) -> Dict[str, Any]:
    """Read and parse a TOML file.

    Raises:
        ConfigError: File cannot be read or is not valid TOML.
    """
    try:
        with open(path, "rb") as fh:
            return tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(
            f"Invalid TOML in {path.name}: {exc}",
            config_path=str(path),
        ) from exc
    except OSError as exc:
        raise ConfigError(
            f"Cannot read configuration file {path}: {exc}",
            config_path=str(path),
        ) from exc


_BOOL_OPTIONS = ("allow_pre_release", "exact", "auto_install")
_POSITIVE_INT_OPTIONS = ("timeout", "concurrency")
_KNOWN_OPTIONS = frozenset(("registry", "groups", *_BOOL_OPTIONS, *_POSITIVE_INT_OPTIONS))


def _parse_section(
    section: Dict[str, Any],
    *,
    config_path: str,
) -> DepEngineConfig:
    """Parse and validate a ``[depengine]`` or ``[tool.depengine]`` table.

    Rejects unknown keys and type mismatches.

    Raises:
        ConfigError: Unknown keys or incorrect types (e.g., string for boolean).
    """
    config = DepEngineConfig()

    unknown = set(section.keys()) - _KNOWN_OPTIONS
    if unknown:
        raise ConfigError(
            f"Unknown configuration keys: {', '.join(sorted(unknown))}",
            config_path=config_path,
        )

    if "registry" in section:
        val = section["registry"]
        if not isinstance(val, str) or not val.strip():
            raise ConfigError(
                f"registry must be a non-empty string, got {type(val).__name__}",
                config_path=config_path,
                option="registry",
            )
        config.registry = val.strip()

    for option in _BOOL_OPTIONS:
        if option not in section:
            continue
        val = section[option]
        if not isinstance(val, bool):
            raise ConfigError(
                f"{option} must be a boolean, got {type(val).__name__}",
                config_path=config_path,
                option=option,
            )
        setattr(config, option, val)

    for option in _POSITIVE_INT_OPTIONS:
        if option not in section:
            continue
        val = section[option]
        # bool is an int subclass
        if isinstance(val, bool) or not isinstance(val, int) or val < 1:
            raise ConfigError(
                f"{option} must be a positive integer, got {val!r}",
                config_path=config_path,
                option=option,
            )
        setattr(config, option, val)

    if "groups" in section:
        config.groups = _parse_groups(section["groups"], config_path=config_path)

    return config


def _parse_groups(value: Any, *, config_path: str) -> List[str]:
    if not isinstance(value, list) or not value:
        raise ConfigError(
            "groups must be a non-empty list of dependency group names",
            config_path=config_path,
            option="groups",
        )

    groups: List[str] = []
    for item in value:
        if item not in KNOWN_DEPENDENCY_GROUPS:
            raise ConfigError(
                f"Unknown dependency group {item!r}; expected one of "
                f"{', '.join(KNOWN_DEPENDENCY_GROUPS)}",
                config_path=config_path,
                option="groups",
            )
        if item not in groups:
            groups.append(item)
    return groups

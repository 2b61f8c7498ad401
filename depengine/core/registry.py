"""npm registry metadata source for depengine.

Fetches a package document from the registry once per run and turns it
into a :class:`~depengine.models.dependency.PackageMetadata`: every
published version with its own ``engines`` declaration and pre-release
flag, plus the version tagged ``latest``.

Typical usage::

    from depengine.utils.http import HTTPClient
    from depengine.core.registry import RegistryClient, resolve_registry_url

    async with HTTPClient() as client:
        registry = RegistryClient(client, resolve_registry_url("."))
        meta = await registry.get_metadata("left-pad")
        print(meta.latest)
"""

from __future__ import annotations

import os
import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional

from depengine.constants import (
    DEFAULT_REGISTRY,
    NPMRC_FILENAME,
    REGISTRY_ACCEPT_HEADER,
    REGISTRY_ENV_VARS,
)
from depengine.core.semver import is_prerelease
from depengine.exceptions import NetworkError, RegistryError
from depengine.models.dependency import PackageMetadata, PublishedVersion
from depengine.models.engines import EngineRequirement
from depengine.utils.http import HTTPClient
from depengine.utils.logger import get_logger

logger = get_logger("registry")

__all__ = ["RegistryClient", "resolve_registry_url", "escape_package_name"]


class RegistryClient:
    """Per-run cache of npm registry package metadata.

    Each package name triggers at most one request.  A semaphore bounds
    the number of fetches in flight, and the cache is checked again inside
    it so concurrent requests for the same name share one round-trip.

    Args:
        http_client: A configured :class:`HTTPClient` (owns the connection
            pool).
        registry_url: Base URL of the registry; a trailing slash is added
            when missing.
        concurrent_limit: Maximum number of fetches in flight at once.

    Example::

        async with HTTPClient() as client:
            registry = RegistryClient(client, "https://registry.npmjs.org")
            meta = await registry.get_metadata("@babel/core")
            [v.version for v in meta.versions][:3]
    """

    def __init__(
        self,
        http_client: HTTPClient,
        registry_url: str = DEFAULT_REGISTRY,
        concurrent_limit: int = 10,
    ) -> None:
        self.http_client = http_client
        self.registry_url = normalize_registry_url(registry_url)
        self._semaphore = asyncio.Semaphore(max(1, concurrent_limit))
        self._cache: Dict[str, PackageMetadata] = {}

    def package_url(self, name: str) -> str:
        return f"{self.registry_url}{escape_package_name(name)}"

    async def get_metadata(self, name: str) -> PackageMetadata:
        """Fetch (or return cached) metadata for *name*.

        Raises:
            RegistryError: The package could not be fetched or the
                registry answered with something that is not a package
                document.  ``reason`` classifies the failure.
        """
        if name in self._cache:
            return self._cache[name]

        async with self._semaphore:
            if name in self._cache:
                return self._cache[name]

            url = self.package_url(name)
            logger.debug("Fetching %s", url)
            try:
                document = await self.http_client.get_json(
                    url, headers={"Accept": REGISTRY_ACCEPT_HEADER}
                )
            except NetworkError as exc:
                raise RegistryError.from_network_error(exc, name) from exc

            metadata = parse_package_document(name, document)
            self._cache[name] = metadata
            return metadata


def parse_package_document(name: str, document: Dict[str, Any]) -> PackageMetadata:
    """Convert a registry package document into :class:`PackageMetadata`.

    Raises:
        RegistryError: ``reason="invalid"`` when ``versions`` is missing or
            not an object.
    """
    versions = document.get("versions")
    if not isinstance(versions, dict):
        raise RegistryError(
            f"Registry document for '{name}' has no versions",
            package_name=name,
            reason="invalid",
        )

    published: List[PublishedVersion] = []
    for version, manifest in versions.items():
        engines = manifest.get("engines") if isinstance(manifest, dict) else None
        published.append(
            PublishedVersion(
                version=version,
                engines=EngineRequirement.from_raw(engines),
                prerelease=is_prerelease(version),
            )
        )

    dist_tags = document.get("dist-tags")
    latest = dist_tags.get("latest", "") if isinstance(dist_tags, dict) else ""

    return PackageMetadata(
        name=name,
        latest=latest if isinstance(latest, str) else "",
        versions=published,
    )


def escape_package_name(name: str) -> str:
    """Escape a package name for use as a registry path segment.

    Example::

        >>> escape_package_name("@types/node")
        '@types%2fnode'
    """
    if name.startswith("@"):
        return name.replace("/", "%2f", 1)
    return name


def normalize_registry_url(url: str) -> str:
    return f"{url.strip().rstrip('/')}/"


def resolve_registry_url(
    directory: Optional[os.PathLike] = None,
    explicit: Optional[str] = None,
) -> str:
    """Pick the registry URL the way npm does.

    Resolution order:

    1. *explicit* (``--registry`` or the config file).
    2. ``NPM_CONFIG_REGISTRY`` / ``npm_config_registry``.
    3. ``registry=`` in the project's ``.npmrc``.
    4. ``registry=`` in ``~/.npmrc``.
    5. The public npm registry.

    Returns:
        The registry URL, always with a trailing slash.
    """
    if explicit:
        return normalize_registry_url(explicit)

    for var in REGISTRY_ENV_VARS:
        value = os.environ.get(var)
        if value:
            return normalize_registry_url(value)

    candidates: List[Path] = []
    if directory is not None:
        candidates.append(Path(directory) / NPMRC_FILENAME)
    candidates.append(Path.home() / NPMRC_FILENAME)

    for npmrc in candidates:
        value = _read_npmrc_registry(npmrc)
        if value:
            logger.debug("Using registry %s from %s", value, npmrc)
            return normalize_registry_url(value)

    return DEFAULT_REGISTRY


def _read_npmrc_registry(path: Path) -> Optional[str]:
    """Return the unscoped ``registry`` value from an ``.npmrc`` file."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError:
        return None

    registry: Optional[str] = None
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line[0] in "#;":
            continue
        key, sep, value = line.partition("=")
        if not sep or key.strip() != "registry":
            continue
        value = os.path.expandvars(value.strip().strip("\"'"))
        if value:
            # Later assignments override earlier ones
            registry = value
    return registry

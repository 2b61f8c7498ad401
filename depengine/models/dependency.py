"""
Dependency and registry data models for depengine.

This module defines the manifest-side view of dependencies (named groups
of declared ranges) and the registry-side view of a package (its published
versions and their engine requirements).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple, Union

from depengine.constants import WILDCARD
from depengine.models.engines import EngineRequirement


@dataclass
class DependencyGroup:
    """A named dependency category such as ``devDependencies``.

    Attributes:
        name: Manifest key of the group.
        dependencies: Dependency name → declared range, in manifest order.
    """

    name: str
    dependencies: Dict[str, str] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.dependencies)

    def __iter__(self) -> Iterator[Tuple[str, str]]:
        return iter(self.dependencies.items())


@dataclass(frozen=True)
class PublishedVersion:
    """One version of one package as recorded by the registry.

    Attributes:
        version: Version string.
        engines: The version's own ``engines`` declaration.
        prerelease: Whether the version carries pre-release identifiers.
    """

    version: str
    engines: EngineRequirement = field(default_factory=EngineRequirement)
    prerelease: bool = False


@dataclass(frozen=True)
class PackageMetadata:
    """Registry answer for a single package.

    Attributes:
        name: Package name.
        latest: Version tagged ``latest``, or ``""`` when untagged.
        versions: Published versions in registry listing order.
    """

    name: str
    latest: str = ""
    versions: List[PublishedVersion] = field(default_factory=list)

    @classmethod
    def empty(cls, name: str) -> "PackageMetadata":
        """Metadata standing in for a package whose fetch failed."""
        return cls(name=name)


@dataclass(frozen=True)
class InstalledPackage:
    """The locally installed copy of a dependency, if any."""

    version: str = ""
    engines: EngineRequirement = field(default_factory=EngineRequirement)

    @property
    def is_installed(self) -> bool:
        return bool(self.version)


@dataclass(frozen=True)
class ResolvedVersion:
    """Outcome of scanning a package's versions for engine compatibility.

    ``version`` is ``""`` when nothing matched and the wildcard sentinel when
    the newest match declares no engines at all; ``engines`` follows suit
    (``None`` / wildcard / the match's :class:`EngineRequirement`).
    """

    version: str = ""
    engines: Union[EngineRequirement, str, None] = None

    @classmethod
    def miss(cls) -> "ResolvedVersion":
        return cls()

    @classmethod
    def wildcard(cls) -> "ResolvedVersion":
        return cls(version=WILDCARD, engines=WILDCARD)

    @property
    def found(self) -> bool:
        return bool(self.version)

    @property
    def is_wildcard(self) -> bool:
        return self.version == WILDCARD


def describe_engines(engines: Union[EngineRequirement, str, None]) -> str:
    """Render an engines value (requirement, sentinel or ``None``) for display."""
    if engines is None:
        return ""
    if isinstance(engines, str):
        return engines
    return engines.describe()


def engines_to_json(
    engines: Union[EngineRequirement, str, None],
) -> Optional[Union[Dict[str, str], str]]:
    if engines is None or isinstance(engines, str):
        return engines
    return engines.to_dict()

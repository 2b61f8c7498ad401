"""
Engine requirement data models for depengine.

This module defines the two-runtime engine requirement carried by a
project and by every published package version, and the project profile
that derives concrete minimum engine versions from the project's own
declaration.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from depengine.constants import TRACKED_ENGINES
from depengine.core.semver import min_version


@dataclass(frozen=True)
class EngineRequirement:
    """Minimum runtime constraints declared under ``engines``.

    Either field may be ``None``, meaning that runtime is unconstrained.
    The same structure holds concrete minimum versions once a project's
    ranges have been resolved (see :class:`ProjectProfile`).

    Attributes:
        node: Range (or version) for Node.js.
        npm: Range (or version) for npm.
    """

    node: Optional[str] = None
    npm: Optional[str] = None

    @classmethod
    def from_raw(cls, value: Any) -> "EngineRequirement":
        """Build a requirement from a raw ``engines`` value.

        Only a mapping contributes; the legacy array form, plain strings
        and non-string runtime values are ignored.

        Example::

            >>> EngineRequirement.from_raw({"node": ">=14", "yarn": "1.x"})
            EngineRequirement(node='>=14', npm=None)
            >>> EngineRequirement.from_raw(["node >=0.6"]).is_empty()
            True
        """
        if not isinstance(value, dict):
            return cls()

        fields: Dict[str, Optional[str]] = {}
        for runtime in TRACKED_ENGINES:
            raw = value.get(runtime)
            fields[runtime] = raw if isinstance(raw, str) and raw.strip() else None
        return cls(**fields)

    def get(self, runtime: str) -> Optional[str]:
        return getattr(self, runtime, None) if runtime in TRACKED_ENGINES else None

    def is_empty(self) -> bool:
        return not self.node and not self.npm

    def to_dict(self) -> Dict[str, str]:
        """Return only the runtimes that carry a value."""
        result: Dict[str, str] = {}
        for runtime in TRACKED_ENGINES:
            value = self.get(runtime)
            if value:
                result[runtime] = value
        return result

    def describe(self) -> str:
        """Return a compact one-line description, ``"*"`` when empty."""
        if self.is_empty():
            return "*"
        return ", ".join(f"{runtime} {value}" for runtime, value in self.to_dict().items())


@dataclass(frozen=True)
class ProjectProfile:
    """Engine expectations of the project being audited.

    Attributes:
        engines: The project's ``engines`` block as declared.
        min_engines: Lowest concrete version admitted by each declared
            runtime range, or ``None`` when no usable range is declared.
    """

    engines: EngineRequirement
    min_engines: Optional[EngineRequirement] = None

    @classmethod
    def from_engines(cls, engines: EngineRequirement) -> "ProjectProfile":
        """Derive minimum engine versions from *engines*.

        A runtime whose range is malformed or admits nothing contributes no
        minimum.

        Example::

            >>> profile = ProjectProfile.from_engines(EngineRequirement(node="^14.17"))
            >>> profile.min_engines
            EngineRequirement(node='14.17.0', npm=None)
        """
        minimums: Dict[str, Optional[str]] = {}
        for runtime in TRACKED_ENGINES:
            declared = engines.get(runtime)
            floor = min_version(declared) if declared else None
            minimums[runtime] = str(floor) if floor is not None else None

        resolved = EngineRequirement(**minimums)
        return cls(
            engines=engines,
            min_engines=None if resolved.is_empty() else resolved,
        )

    @property
    def has_engine_minimums(self) -> bool:
        return self.min_engines is not None

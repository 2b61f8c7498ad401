"""Engine compatibility matching for depengine.

A published version is compatible with a project when every runtime the
project has a minimum for, and the version declares a range for, admits
that minimum.  Missing information on either side never fails a version.
Pre-release versions are rejected up front unless explicitly allowed.
"""

from __future__ import annotations

from typing import Optional

from depengine.constants import TRACKED_ENGINES
from depengine.core.semver import is_prerelease, satisfies
from depengine.models.engines import EngineRequirement


class EngineMatcher:
    """Decide whether a candidate version runs on the project's engines.

    Args:
        min_engines: The project's minimum engine versions.  ``None`` means
            the project has no expectations, so every stable version passes.
        allow_pre_release: Accept pre-release candidates and let engine
            ranges match pre-release minimums.

    Example::

        >>> matcher = EngineMatcher(EngineRequirement(node="14.0.0"))
        >>> matcher.matches(EngineRequirement(node=">=12"), "1.2.0")
        True
        >>> matcher.matches(EngineRequirement(node=">=16"), "1.5.0")
        False
    """

    def __init__(
        self,
        min_engines: Optional[EngineRequirement],
        allow_pre_release: bool = False,
    ) -> None:
        self.min_engines = min_engines or EngineRequirement()
        self.allow_pre_release = allow_pre_release

    def matches(
        self,
        engines: Optional[EngineRequirement],
        version: str,
        prerelease: Optional[bool] = None,
    ) -> bool:
        """Return ``True`` if *version* with *engines* is acceptable.

        Args:
            engines: The candidate's own engine requirement, if any.
            version: The candidate version string.
            prerelease: Pre-computed pre-release flag; derived from
                *version* when omitted.
        """
        if prerelease is None:
            prerelease = is_prerelease(version)
        if prerelease and not self.allow_pre_release:
            return False

        if engines is None or engines.is_empty():
            return True

        for runtime in TRACKED_ENGINES:
            minimum = self.min_engines.get(runtime)
            required = engines.get(runtime)
            if not minimum or not required:
                continue
            if not satisfies(minimum, required, include_prerelease=self.allow_pre_release):
                return False

        return True

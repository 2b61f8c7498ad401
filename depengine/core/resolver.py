"""Newest-compatible version resolution for depengine.

Walks a package's published versions from newest to oldest and stops at
the first one the :class:`EngineMatcher` accepts.  The first hit wins:
the goal is the most recent release that still runs on the project's
engines, not an optimum over some other metric.
"""

from __future__ import annotations

from typing import Iterable, List, Tuple

from depengine.core.engine_matcher import EngineMatcher
from depengine.core.semver import SemVer, parse_version
from depengine.models.dependency import PublishedVersion, ResolvedVersion
from depengine.utils.logger import get_logger

logger = get_logger("resolver")


class VersionResolver:
    """Find the newest published version compatible with the project.

    Args:
        matcher: Engine matcher configured with the project's minimums.
    """

    def __init__(self, matcher: EngineMatcher) -> None:
        self.matcher = matcher

    def resolve(self, versions: Iterable[PublishedVersion]) -> ResolvedVersion:
        """Return the newest version accepted by the matcher.

        Versions that do not parse as semver are skipped.  Equal versions
        keep their listing order.  When the winning version declares no
        engines at all, both outputs are the wildcard sentinel.  When no
        version matches, an empty result is returned; ``latest`` is never
        used as a fallback.
        """
        for published in self.sort_newest_first(versions):
            if not self.matcher.matches(
                published.engines,
                published.version,
                prerelease=published.prerelease,
            ):
                continue

            if published.engines.is_empty():
                logger.debug("%s declares no engines; any version fits", published.version)
                return ResolvedVersion.wildcard()

            return ResolvedVersion(version=published.version, engines=published.engines)

        return ResolvedVersion.miss()

    @staticmethod
    def sort_newest_first(versions: Iterable[PublishedVersion]) -> List[PublishedVersion]:
        parsed: List[Tuple[SemVer, PublishedVersion]] = []
        for published in versions:
            semver = parse_version(published.version)
            if semver is None:
                logger.debug("Skipping unparseable version %r", published.version)
                continue
            parsed.append((semver, published))

        # sort() is stable, so ties keep the registry's listing order
        parsed.sort(key=lambda item: item[0], reverse=True)
        return [published for _, published in parsed]

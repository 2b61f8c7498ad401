from __future__ import annotations

from typing import List, Optional

import pytest

from depengine.constants import WILDCARD
from depengine.core.engine_matcher import EngineMatcher
from depengine.core.resolver import VersionResolver
from depengine.models.dependency import PublishedVersion
from depengine.models.engines import EngineRequirement


def _published(version: str, node: Optional[str] = None) -> PublishedVersion:
    return PublishedVersion(
        version=version,
        engines=EngineRequirement(node=node),
        prerelease="-" in version,
    )


@pytest.fixture
def resolver() -> VersionResolver:
    """Resolver for a project requiring ``node >=14.0.0``."""
    return VersionResolver(EngineMatcher(EngineRequirement(node="14.0.0")))


@pytest.mark.unit
class TestVersionResolver:
    """Tests for VersionResolver.resolve."""

    def test_newest_compatible_wins(self, resolver: VersionResolver) -> None:
        """Test the canonical scenario picks 1.2.0.

        ``1.5.0`` needs node 16, ``1.2.0`` runs on node 12+, so the newest
        release compatible with node 14 is ``1.2.0``.
        """
        versions = [
            _published("1.0.0"),
            _published("1.2.0", ">=12"),
            _published("1.5.0", ">=16"),
        ]

        result = resolver.resolve(versions)

        assert result.version == "1.2.0"
        assert result.engines == EngineRequirement(node=">=12")
        assert result.found is True

    def test_listing_order_does_not_matter(self, resolver: VersionResolver) -> None:
        """Test versions are sorted by precedence, not registry order."""
        versions = [
            _published("1.5.0", ">=16"),
            _published("1.10.0", ">=12"),
            _published("1.9.0", ">=12"),
        ]

        assert resolver.resolve(versions).version == "1.10.0"

    def test_wildcard_when_match_has_no_engines(self, resolver: VersionResolver) -> None:
        """Test an engine-less winner yields the wildcard sentinel twice."""
        versions = [_published("2.0.0"), _published("1.0.0", ">=12")]

        result = resolver.resolve(versions)

        assert result.version == WILDCARD
        assert result.engines == WILDCARD
        assert result.is_wildcard is True

    def test_no_match_is_empty(self, resolver: VersionResolver) -> None:
        """Test no compatible version yields an empty result.

        ``latest`` is never used as a fallback.
        """
        versions = [_published("3.0.0", ">=16"), _published("2.0.0", ">=18")]

        result = resolver.resolve(versions)

        assert result.version == ""
        assert result.engines is None
        assert result.found is False

    def test_empty_version_list(self, resolver: VersionResolver) -> None:
        """Test a package with no versions resolves to nothing."""
        assert resolver.resolve([]).found is False

    def test_prerelease_skipped(self, resolver: VersionResolver) -> None:
        """Test pre-releases are passed over unless allowed."""
        versions = [_published("2.0.0-beta.1", ">=12"), _published("1.9.0", ">=12")]

        assert resolver.resolve(versions).version == "1.9.0"

    def test_prerelease_allowed(self) -> None:
        """Test allow_pre_release lets a newer pre-release win."""
        matcher = EngineMatcher(EngineRequirement(node="14.0.0"), allow_pre_release=True)
        versions = [_published("2.0.0-beta.1", ">=12"), _published("1.9.0", ">=12")]

        assert VersionResolver(matcher).resolve(versions).version == "2.0.0-beta.1"


@pytest.mark.unit
class TestSortNewestFirst:
    """Tests for VersionResolver.sort_newest_first."""

    def test_drops_unparseable_versions(self) -> None:
        """Test versions that are not semver are skipped silently."""
        versions = [_published("1.0.0"), _published("banana"), _published("0.1")]

        ordered = VersionResolver.sort_newest_first(versions)

        assert [v.version for v in ordered] == ["1.0.0"]

    def test_stable_for_equal_precedence(self) -> None:
        """Test ties keep their listing order.

        ``1.0.0`` and ``1.0.0+build`` have equal precedence.
        """
        first = _published("1.0.0", ">=10")
        second = _published("1.0.0+build", ">=12")

        ordered: List[PublishedVersion] = VersionResolver.sort_newest_first([first, second])

        assert ordered == [first, second]

    def test_release_above_prerelease(self) -> None:
        """Test a release sorts above its own pre-releases."""
        versions = [_published("2.0.0-rc.1"), _published("2.0.0"), _published("1.9.9")]

        ordered = VersionResolver.sort_newest_first(versions)

        assert [v.version for v in ordered] == ["2.0.0", "2.0.0-rc.1", "1.9.9"]

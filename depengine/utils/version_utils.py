"""
Version comparison utilities for depengine.

This module provides helpers for classifying version changes using the
npm flavour of semantic versioning.
"""

from __future__ import annotations

from typing import Optional

from depengine.core.semver import SemVer, parse_version


def get_update_type(
    current_version: Optional[str],
    target_version: Optional[str],
) -> str:
    """Determine the semantic update type between two versions.

    Args:
        current_version: Currently installed version, or ``None``/``""`` if
            not installed.
        target_version: Target version to compare against.

    Returns:
        One of:
            - ``"new"``        : No current version exists
            - ``"same"``       : Versions are identical
            - ``"downgrade"``  : Target version is lower than current
            - ``"major"``      : Major version change
            - ``"minor"``      : Minor version change
            - ``"patch"``      : Patch-level change
            - ``"prerelease"`` : Only pre-release identifiers differ
            - ``"unknown"``    : Invalid or unsupported version comparison

    Examples:
        >>> get_update_type("1.0.0", "2.0.0")
        'major'
        >>> get_update_type(None, "1.0.0")
        'new'
        >>> get_update_type("1.2.3", "1.2.3")
        'same'
    """
    if not current_version and not target_version:
        return "unknown"

    if not current_version:
        return "new"

    if not target_version:
        return "unknown"

    current = parse_version(current_version)
    target = parse_version(target_version)
    if current is None or target is None:
        return "unknown"

    if target == current:
        return "same"

    if target < current:
        return "downgrade"

    return _classify_upgrade(current, target)


def _classify_upgrade(current: SemVer, target: SemVer) -> str:
    """Classify an upgrade between two valid versions."""
    if current.major != target.major:
        return "major"

    if current.minor != target.minor:
        return "minor"

    if current.patch != target.patch:
        return "patch"

    # Pre-release to release, or between pre-releases
    return "prerelease"

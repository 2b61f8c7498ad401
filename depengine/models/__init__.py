"""
Unified data model exports for depengine.

This module re-exports all core data models to provide a stable and
convenient public API. Users can import models directly from
``depengine.models`` instead of individual submodules.

Example:
    >>> from depengine.models import EngineRequirement, ResolutionResult
"""

from __future__ import annotations

from depengine.models.engines import EngineRequirement, ProjectProfile
from depengine.models.dependency import (
    DependencyGroup,
    InstalledPackage,
    PackageMetadata,
    PublishedVersion,
    ResolvedVersion,
)
from depengine.models.report import AuditReport, ResolutionResult, UpdateDecision

__all__ = [
    "EngineRequirement",
    "ProjectProfile",
    "DependencyGroup",
    "InstalledPackage",
    "PackageMetadata",
    "PublishedVersion",
    "ResolvedVersion",
    "AuditReport",
    "ResolutionResult",
    "UpdateDecision",
]

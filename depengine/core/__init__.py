"""
Core functionality exports for depengine.

This module provides convenient access to the core subsystems of depengine.
Importing from here keeps user-facing imports clean and stable:

    from depengine.core import EngineAuditor, Manifest

``semver`` is imported first: the data models depend on it, and the
remaining core modules depend on the data models.
"""

from __future__ import annotations

from depengine.core import semver
from depengine.core.engine_matcher import EngineMatcher
from depengine.core.resolver import VersionResolver
from depengine.core.reconciler import RangeReconciler
from depengine.core.manifest import Manifest
from depengine.core.installed import InstalledPackageInspector
from depengine.core.registry import RegistryClient, resolve_registry_url
from depengine.core.auditor import AuditOptions, EngineAuditor

__all__ = [
    "semver",
    "EngineMatcher",
    "VersionResolver",
    "RangeReconciler",
    "Manifest",
    "InstalledPackageInspector",
    "RegistryClient",
    "resolve_registry_url",
    "AuditOptions",
    "EngineAuditor",
]

"""
depengine: engine-aware dependency auditing for Node.js projects

depengine reads a project's ``package.json``, takes the minimum Node.js and
npm versions the project declares in ``engines``, and finds, for every
dependency, the newest published release that still runs on those engines.
It can then rewrite the declared version ranges so they never admit a release
the project's runtime cannot support.

Features include:
    • npm-compatible semver range algebra
    • Newest-compatible version resolution against registry metadata
    • Range-preserving or exact-pin manifest updates
    • Rich terminal reports and JSON output
"""

from __future__ import annotations

from depengine.__version__ import __version__

# ---------------------------------------------------------------------------
# Package Metadata
# ---------------------------------------------------------------------------

__author__ = "depengine Contributors"
__license__ = "Apache-2.0"
__description__ = "Check package.json dependencies against the project's engine requirements."

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

from depengine.core import (
    EngineAuditor,
    EngineMatcher,
    Manifest,
    RangeReconciler,
    VersionResolver,
)

__all__ = [
    "__version__",
    "EngineAuditor",
    "EngineMatcher",
    "Manifest",
    "RangeReconciler",
    "VersionResolver",
]

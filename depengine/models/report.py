"""
Audit result data models for depengine.

This module defines the per-dependency resolution record, the update
decision computed from it, and the aggregated report returned by an audit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from depengine.constants import WILDCARD
from depengine.exceptions import RegistryError
from depengine.models.dependency import engines_to_json
from depengine.models.engines import EngineRequirement


@dataclass(frozen=True)
class UpdateDecision:
    """Whether a declared range should change, and to what.

    Attributes:
        needed: ``True`` when the declared range admits versions beyond
            the newest engine-compatible release.
        new_range: Range to write; ``None`` when no update is needed.
    """

    needed: bool = False
    new_range: Optional[str] = None

    @classmethod
    def none(cls) -> "UpdateDecision":
        return cls()

    def rewrites(self, declared: str) -> bool:
        """Whether applying the decision would change *declared*.

        A satisfied version in a gap between alternatives (``1.x || 3.x``
        around 2.5.0) is flagged as needed but keeps the declared text.
        """
        return self.needed and self.new_range is not None and self.new_range != declared


@dataclass(frozen=True)
class ResolutionResult:
    """Everything learned about one dependency during an audit.

    Attributes:
        name: Dependency name.
        group: Dependency group the declaration lives in.
        declared_range: Range as written in the manifest.
        installed: Locally installed version, ``""`` if not installed.
        installed_engines: Engines declared by the installed copy.
        latest: Version tagged ``latest`` on the registry.
        satisfied: Newest engine-compatible version, ``""`` when none was
            found, or ``"*"`` when it declares no engines.
        satisfied_engines: Engines of the satisfied version.
        error: Fetch failure for this dependency, if any.
    """

    name: str
    group: str
    declared_range: str
    installed: str = ""
    installed_engines: EngineRequirement = field(default_factory=EngineRequirement)
    latest: str = ""
    satisfied: str = ""
    satisfied_engines: Union[EngineRequirement, str, None] = None
    error: Optional[RegistryError] = None

    @property
    def fetch_failed(self) -> bool:
        return self.error is not None

    @property
    def unresolved(self) -> bool:
        """No compatible version exists (as opposed to "could not check")."""
        return self.error is None and not self.satisfied

    @property
    def is_wildcard(self) -> bool:
        return self.satisfied == WILDCARD

    def to_json(self, decision: Optional[UpdateDecision] = None) -> Dict[str, Any]:
        """Return a JSON-serializable representation."""
        entry: Dict[str, Any] = {
            "name": self.name,
            "group": self.group,
            "declared": self.declared_range,
            "installed": self.installed or None,
            "installed_engines": self.installed_engines.to_dict() or None,
            "latest": self.latest or None,
            "satisfied": self.satisfied or None,
            "satisfied_engines": engines_to_json(self.satisfied_engines),
        }
        if decision is not None:
            entry["update"] = (
                decision.new_range if decision.rewrites(self.declared_range) else None
            )
        if self.error is not None:
            entry["error"] = {"reason": self.error.reason, "message": self.error.message}
        return entry


@dataclass
class AuditReport:
    """Aggregated outcome of one audit run.

    Attributes:
        applicable: ``False`` when the audit was skipped.
        reason: Why the audit was skipped.
        min_engines: Minimum engine versions the audit checked against.
        entries: ``(result, decision)`` pairs in manifest order.
        errors: Fetch errors, one per failed dependency.
        cancelled: Whether the run was cancelled before completing.
    """

    applicable: bool = True
    reason: str = ""
    min_engines: Optional[EngineRequirement] = None
    entries: List[Tuple[ResolutionResult, UpdateDecision]] = field(default_factory=list)
    errors: List[RegistryError] = field(default_factory=list)
    cancelled: bool = False

    @classmethod
    def not_applicable(cls, reason: str) -> "AuditReport":
        return cls(applicable=False, reason=reason)

    @property
    def results(self) -> List[ResolutionResult]:
        return [result for result, _ in self.entries]

    def updates(self) -> List[Tuple[ResolutionResult, UpdateDecision]]:
        """Entries whose declared range would be rewritten."""
        return [
            (result, decision)
            for result, decision in self.entries
            if decision.rewrites(result.declared_range)
        ]

    def failures(self) -> List[ResolutionResult]:
        return [result for result, _ in self.entries if result.fetch_failed]

    def misses(self) -> List[ResolutionResult]:
        return [result for result, _ in self.entries if result.unresolved]

    def to_json(self) -> Dict[str, Any]:
        return {
            "applicable": self.applicable,
            "reason": self.reason or None,
            "min_engines": self.min_engines.to_dict() if self.min_engines else None,
            "cancelled": self.cancelled,
            "dependencies": [
                result.to_json(decision) for result, decision in self.entries
            ],
        }

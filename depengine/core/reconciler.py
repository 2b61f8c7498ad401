"""Declared-range reconciliation for depengine.

Given what a dependency declares, what is installed and the newest
engine-compatible version, the reconciler answers two questions: does the
declaration need to change, and if so what should it become.  Both
answers are pure functions of their inputs.

The policy never moves a dependency across a major or minor boundary on
its own.  When a range is rewritten it keeps its existing floor and gains
an explicit ceiling at the compatible version; when the declaration is
unusable it is rebuilt around the installed version's compatibility tier,
unless the caller asked for exact pins.
"""

from __future__ import annotations

from depengine.constants import WILDCARD
from depengine.core.semver import (
    compare,
    is_valid_range,
    is_valid_version,
    is_wildcard_range,
    intersects,
    major,
    min_version,
    minor,
    parse_version,
    satisfies,
    with_upper_bound,
)
from depengine.models.report import UpdateDecision


class RangeReconciler:
    """Decide whether and how a declared range should be rewritten.

    Args:
        exact: Pin to bare versions instead of preserving ranges.

    Example::

        >>> reconciler = RangeReconciler()
        >>> reconciler.decide("^1.0.0", satisfied="1.2.0", latest="1.5.0")
        UpdateDecision(needed=True, new_range='^1.0.0 <=1.2.0')
        >>> reconciler.decide("*", satisfied="5.0.0", latest="6.0.0").new_range
        '<=5.0.0'
    """

    def __init__(self, exact: bool = False) -> None:
        self.exact = exact

    def is_updatable(self, declared: str, satisfied: str, latest: str) -> bool:
        """Return ``True`` when *declared* should be rewritten.

        Nothing is proposed without a concrete compatible version.  A
        missing or malformed declaration is always stale.  A valid one is
        stale when it admits something newer than *satisfied*, except that
        range mode leaves it alone once *satisfied* is already the latest
        release.
        """
        if not satisfied or satisfied == WILDCARD:
            return False

        if not declared or not declared.strip() or not is_valid_range(declared):
            return True

        return intersects(declared, f">{satisfied}") and (self.exact or latest != satisfied)

    def get_updated_range(self, declared: str, satisfied: str, installed: str = "") -> str:
        """Compute the range to write in place of *declared*.

        Only meaningful when :meth:`is_updatable` returned ``True``.
        """
        if declared and declared.strip() and is_valid_range(declared):
            return self._reconcile_valid(declared, satisfied)
        return self._rebuild(satisfied, installed)

    def decide(
        self,
        declared: str,
        satisfied: str,
        latest: str,
        installed: str = "",
    ) -> UpdateDecision:
        """Run the updatability gate and, if it passes, compute the new range."""
        if not self.is_updatable(declared, satisfied, latest):
            return UpdateDecision.none()
        return UpdateDecision(
            needed=True,
            new_range=self.get_updated_range(declared, satisfied, installed),
        )

    def _reconcile_valid(self, declared: str, satisfied: str) -> str:
        floor = min_version(declared)
        satisfied_version = parse_version(satisfied)

        # Compatible ceiling sits below the range's floor: collapse to it.
        if floor is not None and satisfied_version is not None and satisfied_version < floor:
            return satisfied

        if satisfies(satisfied, declared, include_prerelease=True):
            if self.exact or satisfied == declared.strip():
                return satisfied
            if is_wildcard_range(declared):
                return f"<={satisfied}"
            return with_upper_bound(declared, satisfied)

        # Gaps between alternatives (``1.x || 3.x`` around 2.5.0) land here.
        return declared

    def _rebuild(self, satisfied: str, installed: str) -> str:
        if not installed or not is_valid_version(installed):
            return satisfied if self.exact else f"<={satisfied}"

        if compare(installed, satisfied) >= 0:
            return satisfied

        if self.exact:
            return installed

        installed_version = parse_version(installed)
        if major(installed) < major(satisfied):
            return f"^{installed_version}"
        if minor(installed) < minor(satisfied):
            return f"~{installed_version}"
        return satisfied

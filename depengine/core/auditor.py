"""Engine compatibility audit for a project's dependencies.

:class:`EngineAuditor` ties the pieces together.  For every dependency in
the configured groups it fetches the published versions, picks the newest
one compatible with the project's engine minimums, looks at the installed
copy, and asks the reconciler whether the declared range should change.

Auditing and applying are separate steps: :meth:`EngineAuditor.audit`
returns an :class:`~depengine.models.report.AuditReport` without touching
the manifest, and :meth:`EngineAuditor.apply` writes the decided ranges
into the in-memory manifest afterwards.

Example::

    async with HTTPClient() as client:
        auditor = EngineAuditor(
            manifest,
            RegistryClient(client, registry_url),
            InstalledPackageInspector(project_dir),
        )
        report = await auditor.audit()
        auditor.apply(report)
        manifest.save()
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple

from depengine.constants import DEFAULT_CONCURRENCY, DEFAULT_DEPENDENCY_GROUPS
from depengine.core.engine_matcher import EngineMatcher
from depengine.core.manifest import Manifest
from depengine.core.reconciler import RangeReconciler
from depengine.core.resolver import VersionResolver
from depengine.exceptions import NetworkError, RegistryError
from depengine.models.dependency import InstalledPackage, PackageMetadata
from depengine.models.report import AuditReport, ResolutionResult
from depengine.utils.logger import get_logger

#: Called with a dependency name each time its fetch finishes.
ProgressCallback = Callable[[str], None]

_Fetched = Tuple[PackageMetadata, Optional[RegistryError]]

NO_ENGINES_REASON = "There is no expectation for engines in project."
NO_DEPENDENCIES_REASON = "There is no dependency declared in project."


@dataclass(frozen=True)
class AuditOptions:
    """Knobs controlling one audit run.

    Attributes:
        allow_pre_release: Consider pre-release versions.
        exact: Pin updated declarations to bare versions.
        groups: Dependency groups to audit, in report order.
        concurrency: Registry fetches allowed in flight; ``1`` is sequential.
    """

    allow_pre_release: bool = False
    exact: bool = False
    groups: Tuple[str, ...] = tuple(DEFAULT_DEPENDENCY_GROUPS)
    concurrency: int = DEFAULT_CONCURRENCY


class EngineAuditor:
    """Audit a manifest's dependencies against its engine minimums.

    Args:
        manifest: The project manifest.
        registry: Metadata source exposing
            ``async get_metadata(name) -> PackageMetadata`` and raising
            :class:`~depengine.exceptions.NetworkError` (or its subclass
            :class:`~depengine.exceptions.RegistryError`) on failure.
        inspector: Installed-package inspector exposing
            ``inspect(name) -> InstalledPackage``; ``None`` treats every
            dependency as not installed.
        options: Audit options.
        logger: Logger for progress and diagnostics.
    """

    def __init__(
        self,
        manifest: Manifest,
        registry: Any,
        inspector: Any = None,
        options: Optional[AuditOptions] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.manifest = manifest
        self.registry = registry
        self.inspector = inspector
        self.options = options or AuditOptions()
        self.logger = logger or get_logger("auditor")

        self.profile = manifest.profile()
        self.matcher = EngineMatcher(
            self.profile.min_engines,
            allow_pre_release=self.options.allow_pre_release,
        )
        self.resolver = VersionResolver(self.matcher)
        self.reconciler = RangeReconciler(exact=self.options.exact)

    # ------------------------------------------------------------------
    # Applicability
    # ------------------------------------------------------------------

    def verifiable(self) -> bool:
        """Return ``False`` when auditing would produce vacuous results."""
        return self._skip_reason() is None

    def _skip_reason(self) -> Optional[str]:
        if not self.profile.has_engine_minimums:
            return NO_ENGINES_REASON
        if not self.manifest.dependency_count(self.options.groups):
            return NO_DEPENDENCIES_REASON
        return None

    # ------------------------------------------------------------------
    # Decide
    # ------------------------------------------------------------------

    async def audit(
        self,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AuditReport:
        """Audit every dependency in the configured groups.

        Per-dependency fetch failures are recorded on that dependency's
        result and never abort the run.  Setting *cancel_event* stops new
        fetches, abandons in-flight ones, and marks every dependency left
        unfetched with a ``cancelled`` error.

        Args:
            progress: Called with each dependency name as its fetch ends.
            cancel_event: Cancellation signal.

        Returns:
            The report, with entries in manifest order.
        """
        reason = self._skip_reason()
        if reason is not None:
            self.logger.info(reason)
            return AuditReport.not_applicable(reason)

        min_engines = self.profile.min_engines
        assert min_engines is not None
        for runtime in ("node", "npm"):
            self.logger.info(
                "Expected min version for %s is: %s",
                runtime,
                min_engines.get(runtime) or "*",
            )

        jobs = [
            (group.name, name, declared)
            for group in self.manifest.groups(self.options.groups)
            for name, declared in group
        ]
        fetched = await self._fetch_all([name for _, name, _ in jobs], progress, cancel_event)

        report = AuditReport(min_engines=min_engines)
        for (group, name, declared), (metadata, error) in zip(jobs, fetched):
            result = self._resolve(group, name, declared, metadata, error)
            decision = self.reconciler.decide(
                declared,
                result.satisfied,
                result.latest,
                result.installed,
            )
            report.entries.append((result, decision))
            if error is not None:
                report.errors.append(error)
                if error.reason == "cancelled":
                    report.cancelled = True

        self._log_errors(report)
        return report

    def _resolve(
        self,
        group: str,
        name: str,
        declared: str,
        metadata: PackageMetadata,
        error: Optional[RegistryError],
    ) -> ResolutionResult:
        resolved = self.resolver.resolve(metadata.versions)
        installed = self.inspector.inspect(name) if self.inspector is not None else InstalledPackage()

        if not resolved.found and error is None:
            self.logger.debug("No published version of %s fits the project engines", name)

        return ResolutionResult(
            name=name,
            group=group,
            declared_range=declared,
            installed=installed.version,
            installed_engines=installed.engines,
            latest=metadata.latest,
            satisfied=resolved.version,
            satisfied_engines=resolved.engines,
            error=error,
        )

    async def _fetch_all(
        self,
        names: Sequence[str],
        progress: Optional[ProgressCallback],
        cancel_event: Optional[asyncio.Event],
    ) -> List[_Fetched]:
        self.logger.info("Fetching metadata for %d dependencies", len(names))

        def done(name: str) -> None:
            if progress is not None:
                progress(name)

        if self.options.concurrency <= 1:
            results: List[_Fetched] = []
            for name in names:
                results.append(await self._fetch_one(name, cancel_event))
                done(name)
            return results

        semaphore = asyncio.Semaphore(self.options.concurrency)

        async def bounded(name: str) -> _Fetched:
            async with semaphore:
                fetched = await self._fetch_one(name, cancel_event)
            done(name)
            return fetched

        # gather keeps input order regardless of completion order
        return list(await asyncio.gather(*(bounded(name) for name in names)))

    async def _fetch_one(self, name: str, cancel_event: Optional[asyncio.Event]) -> _Fetched:
        if cancel_event is not None and cancel_event.is_set():
            return PackageMetadata.empty(name), RegistryError.cancelled(name)

        try:
            metadata = await _unless_cancelled(self.registry.get_metadata(name), cancel_event)
        except NetworkError as exc:
            error = RegistryError.from_network_error(exc, name)
            self.logger.debug("Fetching %s failed: %s", name, error)
            return PackageMetadata.empty(name), error

        if metadata is None:
            return PackageMetadata.empty(name), RegistryError.cancelled(name)
        return metadata, None

    def _log_errors(self, report: AuditReport) -> None:
        if not report.errors:
            self.logger.info("Successfully fetched metadata.")
            return
        self.logger.warning("Can not fetch metadata for these packages:")
        for error in report.errors:
            self.logger.warning("  %s: %s", error.package_name, error.message)

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    def apply(self, report: AuditReport) -> int:
        """Write the report's decided ranges into the in-memory manifest.

        Returns:
            Number of declarations that changed.
        """
        changed = 0
        for result, decision in report.updates():
            assert decision.new_range is not None
            if self.manifest.set_range(result.group, result.name, decision.new_range):
                self.logger.debug(
                    "%s: %s -> %s",
                    result.name,
                    result.declared_range,
                    decision.new_range,
                )
                changed += 1
        return changed


async def _unless_cancelled(
    awaitable: Awaitable[PackageMetadata],
    cancel_event: Optional[asyncio.Event],
) -> Optional[PackageMetadata]:
    """Await *awaitable*, or return ``None`` if *cancel_event* fires first."""
    if cancel_event is None:
        return await awaitable

    fetch = asyncio.ensure_future(awaitable)
    cancelled = asyncio.ensure_future(cancel_event.wait())
    await asyncio.wait({fetch, cancelled}, return_when=asyncio.FIRST_COMPLETED)

    if fetch.done():
        cancelled.cancel()
        return fetch.result()

    fetch.cancel()
    # Let the abandoned fetch unwind before reporting the cancellation
    await asyncio.wait({fetch})
    return None

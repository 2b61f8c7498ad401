from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from depengine.core.auditor import (
    NO_DEPENDENCIES_REASON,
    NO_ENGINES_REASON,
    AuditOptions,
    EngineAuditor,
)
from depengine.core.manifest import Manifest
from depengine.exceptions import NetworkError, RegistryError
from depengine.models.dependency import InstalledPackage, PackageMetadata, PublishedVersion
from depengine.models.engines import EngineRequirement
from depengine.models.report import AuditReport


def _metadata(name: str, latest: str, versions: Dict[str, Optional[str]]) -> PackageMetadata:
    return PackageMetadata(
        name=name,
        latest=latest,
        versions=[
            PublishedVersion(version=v, engines=EngineRequirement(node=node), prerelease="-" in v)
            for v, node in versions.items()
        ],
    )


CATALOG: Dict[str, PackageMetadata] = {
    "lib": _metadata("lib", "1.5.0", {"1.0.0": None, "1.2.0": ">=12", "1.5.0": ">=16"}),
    "tool": _metadata("tool", "3.0.0", {"2.0.0": ">=10", "3.0.0": ">=12"}),
    "any": _metadata("any", "2.0.0", {"1.0.0": ">=12", "2.0.0": None}),
    "modern": _metadata("modern", "9.0.0", {"9.0.0": ">=18"}),
}


class FakeRegistry:
    """Registry double serving CATALOG and recording call order."""

    def __init__(self, catalog: Dict[str, PackageMetadata], failures: Optional[Dict[str, NetworkError]] = None) -> None:
        self.catalog = catalog
        self.failures = failures or {}
        self.calls: List[str] = []

    async def get_metadata(self, name: str) -> PackageMetadata:
        self.calls.append(name)
        if name in self.failures:
            raise self.failures[name]
        return self.catalog[name]


def _manifest(engines: Optional[Dict[str, str]] = None, **groups: Dict[str, str]) -> Manifest:
    data: Dict[str, Any] = {"name": "demo"}
    if engines is not None:
        data["engines"] = engines
    data.update(groups)
    return Manifest(data)


@pytest.fixture
def manifest() -> Manifest:
    """Project requiring node >=14 with three dependencies."""
    return _manifest(
        {"node": ">=14.0.0"},
        dependencies={"lib": "^1.0.0", "tool": ""},
        devDependencies={"any": "*"},
    )


@pytest.fixture
def inspector() -> MagicMock:
    """Inspector reporting tool@2.0.0 as installed."""
    mock = MagicMock()
    mock.inspect.side_effect = lambda name: (
        InstalledPackage(version="2.0.0") if name == "tool" else InstalledPackage()
    )
    return mock


@pytest.mark.unit
class TestApplicability:
    """Tests for verifiable() and skipped audits."""

    @pytest.mark.asyncio
    async def test_no_engines_makes_no_network_calls(self) -> None:
        """Test a project without engines is skipped with zero fetches."""
        registry = MagicMock()
        registry.get_metadata = AsyncMock()
        auditor = EngineAuditor(_manifest(None, dependencies={"lib": "^1.0.0"}), registry)

        report = await auditor.audit()

        assert auditor.verifiable() is False
        assert report.applicable is False
        assert report.reason == NO_ENGINES_REASON
        assert report.entries == []
        registry.get_metadata.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_dependencies(self) -> None:
        """Test a project without dependencies in the audited groups is skipped."""
        registry = FakeRegistry(CATALOG)
        auditor = EngineAuditor(
            _manifest({"node": ">=14"}, dependencies={"lib": "^1.0.0"}),
            registry,
            options=AuditOptions(groups=("devDependencies",)),
        )

        report = await auditor.audit()

        assert report.applicable is False
        assert report.reason == NO_DEPENDENCIES_REASON
        assert registry.calls == []

    def test_verifiable(self, manifest: Manifest) -> None:
        """Test a project with engines and dependencies is verifiable."""
        assert EngineAuditor(manifest, FakeRegistry(CATALOG)).verifiable() is True


@pytest.mark.unit
class TestAudit:
    """Tests for EngineAuditor.audit."""

    @pytest.mark.asyncio
    async def test_scenario(self, manifest: Manifest, inspector: MagicMock) -> None:
        """Test resolutions and decisions for each dependency.

        ``lib`` is capped at 1.2.0, ``tool`` has an empty declaration and
        installed 2.0.0 a major behind 3.0.0, and ``any`` resolves to the
        wildcard so it is never updated.
        """
        auditor = EngineAuditor(manifest, FakeRegistry(CATALOG), inspector)

        report = await auditor.audit()

        assert report.applicable is True
        assert report.min_engines == EngineRequirement(node="14.0.0")
        by_name = {result.name: (result, decision) for result, decision in report.entries}

        lib, lib_decision = by_name["lib"]
        assert lib.satisfied == "1.2.0"
        assert lib.latest == "1.5.0"
        assert lib_decision.new_range == "^1.0.0 <=1.2.0"

        tool, tool_decision = by_name["tool"]
        assert tool.satisfied == "3.0.0"
        assert tool.installed == "2.0.0"
        assert tool_decision.new_range == "^2.0.0"

        any_result, any_decision = by_name["any"]
        assert any_result.is_wildcard is True
        assert any_decision.needed is False

        assert report.errors == []

    @pytest.mark.asyncio
    async def test_manifest_order_and_groups(self, manifest: Manifest) -> None:
        """Test entries follow group order, then declaration order."""
        registry = FakeRegistry(CATALOG)

        report = await EngineAuditor(manifest, registry).audit()

        assert [(r.group, r.name) for r in report.results] == [
            ("dependencies", "lib"),
            ("dependencies", "tool"),
            ("devDependencies", "any"),
        ]
        assert registry.calls == ["lib", "tool", "any"]

    @pytest.mark.asyncio
    async def test_audit_does_not_touch_manifest(self, manifest: Manifest) -> None:
        """Test auditing decides without applying."""
        await EngineAuditor(manifest, FakeRegistry(CATALOG)).audit()

        assert manifest.is_dirty is False
        assert manifest.data["dependencies"]["lib"] == "^1.0.0"

    @pytest.mark.asyncio
    async def test_fetch_error_recorded_and_run_continues(self, manifest: Manifest) -> None:
        """Test a failed fetch is attached to its dependency only."""
        failure = NetworkError("Request timed out", url="https://r/lib", reason="timeout")
        registry = FakeRegistry(CATALOG, failures={"lib": failure})

        report = await EngineAuditor(manifest, registry).audit()

        lib = report.results[0]
        assert lib.fetch_failed is True
        assert lib.error is not None
        assert lib.error.reason == "timeout"
        assert lib.error.package_name == "lib"
        assert lib.satisfied == ""
        assert [r.name for r in report.failures()] == ["lib"]
        assert len(report.errors) == 1
        # the other dependencies still resolved
        assert report.results[1].satisfied == "3.0.0"
        assert report.cancelled is False

    @pytest.mark.asyncio
    async def test_miss_is_not_an_error(self) -> None:
        """Test no compatible version is reported as a miss."""
        auditor = EngineAuditor(
            _manifest({"node": ">=14"}, dependencies={"modern": "^9.0.0"}),
            FakeRegistry(CATALOG),
        )

        report = await auditor.audit()

        assert [r.name for r in report.misses()] == ["modern"]
        assert report.errors == []
        assert report.updates() == []

    @pytest.mark.asyncio
    async def test_progress_called_per_dependency(self, manifest: Manifest) -> None:
        """Test the progress callback fires once per fetch."""
        seen: List[str] = []

        await EngineAuditor(manifest, FakeRegistry(CATALOG)).audit(progress=seen.append)

        assert seen == ["lib", "tool", "any"]

    @pytest.mark.asyncio
    async def test_exact_mode(self, manifest: Manifest, inspector: MagicMock) -> None:
        """Test exact mode pins bare versions."""
        auditor = EngineAuditor(
            manifest, FakeRegistry(CATALOG), inspector, AuditOptions(exact=True)
        )

        report = await auditor.audit()

        assert [d.new_range for _, d in report.updates()] == ["1.2.0", "2.0.0"]

    @pytest.mark.asyncio
    async def test_injected_logger(self, manifest: Manifest) -> None:
        """Test the auditor logs through the logger it was given."""
        logger = MagicMock(spec=logging.Logger)

        await EngineAuditor(manifest, FakeRegistry(CATALOG), logger=logger).audit()

        messages = [call.args[0] for call in logger.info.call_args_list]
        assert "Expected min version for %s is: %s" in messages
        assert "Successfully fetched metadata." in messages


@pytest.mark.unit
class TestConcurrency:
    """Tests for bounded concurrent fetching."""

    @pytest.mark.asyncio
    async def test_order_kept_when_fetches_finish_out_of_order(self, manifest: Manifest) -> None:
        """Test results stay in manifest order with concurrency > 1.

        The first dependency is the slowest, so completion order differs
        from manifest order.
        """
        delays = {"lib": 0.05, "tool": 0.01, "any": 0.0}
        completed: List[str] = []

        class SlowRegistry(FakeRegistry):
            async def get_metadata(self, name: str) -> PackageMetadata:
                await asyncio.sleep(delays[name])
                completed.append(name)
                return self.catalog[name]

        report = await EngineAuditor(
            manifest, SlowRegistry(CATALOG), options=AuditOptions(concurrency=3)
        ).audit()

        assert completed == ["any", "tool", "lib"]
        assert [r.name for r in report.results] == ["lib", "tool", "any"]

    @pytest.mark.asyncio
    async def test_concurrency_bound(self, manifest: Manifest) -> None:
        """Test no more than ``concurrency`` fetches are in flight."""
        in_flight = 0
        peak = 0

        class CountingRegistry(FakeRegistry):
            async def get_metadata(self, name: str) -> PackageMetadata:
                nonlocal in_flight, peak
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.01)
                in_flight -= 1
                return self.catalog[name]

        await EngineAuditor(
            manifest, CountingRegistry(CATALOG), options=AuditOptions(concurrency=2)
        ).audit()

        assert peak == 2


@pytest.mark.unit
class TestCancellation:
    """Tests for cancel_event handling."""

    @pytest.mark.asyncio
    async def test_cancel_before_start(self, manifest: Manifest) -> None:
        """Test a pre-set event issues no fetches and marks everything cancelled."""
        registry = FakeRegistry(CATALOG)
        cancel = asyncio.Event()
        cancel.set()

        report = await EngineAuditor(manifest, registry).audit(cancel_event=cancel)

        assert registry.calls == []
        assert report.cancelled is True
        assert [e.reason for e in report.errors] == ["cancelled"] * 3
        assert all(r.fetch_failed for r in report.results)

    @pytest.mark.asyncio
    async def test_cancel_mid_run(self, manifest: Manifest) -> None:
        """Test cancelling during a fetch abandons it and skips the rest.

        The first fetch completes, the second hangs until cancellation,
        and the third is never issued.
        """
        cancel = asyncio.Event()
        started: List[str] = []

        class HangingRegistry(FakeRegistry):
            async def get_metadata(self, name: str) -> PackageMetadata:
                started.append(name)
                if name == "tool":
                    cancel.set()
                    await asyncio.sleep(10)
                return self.catalog[name]

        report = await EngineAuditor(manifest, HangingRegistry(CATALOG)).audit(cancel_event=cancel)

        assert started == ["lib", "tool"]
        assert report.results[0].satisfied == "1.2.0"
        assert report.results[1].error is not None
        assert report.results[1].error.reason == "cancelled"
        assert report.results[2].error is not None
        assert report.results[2].error.reason == "cancelled"
        assert report.cancelled is True


@pytest.mark.unit
class TestApply:
    """Tests for EngineAuditor.apply."""

    @pytest.mark.asyncio
    async def test_apply_writes_ranges(self, manifest: Manifest, inspector: MagicMock) -> None:
        """Test apply writes decided ranges into the manifest."""
        auditor = EngineAuditor(manifest, FakeRegistry(CATALOG), inspector)
        report = await auditor.audit()

        changed = auditor.apply(report)

        assert changed == 2
        assert manifest.data["dependencies"]["lib"] == "^1.0.0 <=1.2.0"
        assert manifest.data["dependencies"]["tool"] == "^2.0.0"
        assert manifest.data["devDependencies"]["any"] == "*"

    @pytest.mark.asyncio
    async def test_apply_twice_changes_nothing(self, manifest: Manifest, inspector: MagicMock) -> None:
        """Test re-auditing an applied manifest proposes no updates."""
        auditor = EngineAuditor(manifest, FakeRegistry(CATALOG), inspector)
        auditor.apply(await auditor.audit())

        second = await EngineAuditor(manifest, FakeRegistry(CATALOG), inspector).audit()

        assert second.updates() == []

    def test_apply_empty_report(self, manifest: Manifest) -> None:
        """Test applying a report without updates changes nothing."""
        auditor = EngineAuditor(manifest, FakeRegistry(CATALOG))

        assert auditor.apply(AuditReport(min_engines=EngineRequirement(node="14.0.0"))) == 0
        assert manifest.is_dirty is False


@pytest.mark.unit
class TestRegistryErrorPassThrough:
    """Tests for errors already carrying the package name."""

    @pytest.mark.asyncio
    async def test_registry_error_kept(self, manifest: Manifest) -> None:
        """Test a RegistryError for the same package is recorded unchanged."""
        failure = RegistryError("gone", package_name="lib", reason="not_found")
        registry = FakeRegistry(CATALOG, failures={"lib": failure})

        report = await EngineAuditor(manifest, registry).audit()

        assert report.errors[0] is failure

from __future__ import annotations

import json

import pytest

from depengine.exceptions import RegistryError
from depengine.models.engines import EngineRequirement
from depengine.models.report import AuditReport, ResolutionResult, UpdateDecision


@pytest.fixture
def report() -> AuditReport:
    """Report with one update, one fetch failure, one miss and one OK entry."""
    failure = RegistryError("Resource not found", package_name="ghost", reason="not_found")
    return AuditReport(
        min_engines=EngineRequirement(node="14.0.0"),
        entries=[
            (
                ResolutionResult(
                    name="chalk",
                    group="dependencies",
                    declared_range="^4.0.0",
                    installed="4.1.0",
                    latest="5.3.0",
                    satisfied="4.1.2",
                    satisfied_engines=EngineRequirement(node=">=10"),
                ),
                UpdateDecision(needed=True, new_range="^4.0.0 <=4.1.2"),
            ),
            (
                ResolutionResult(name="ghost", group="dependencies", declared_range="^1.0.0", error=failure),
                UpdateDecision.none(),
            ),
            (
                ResolutionResult(name="modern", group="devDependencies", declared_range="^9.0.0", latest="9.1.0"),
                UpdateDecision.none(),
            ),
            (
                ResolutionResult(
                    name="tiny",
                    group="devDependencies",
                    declared_range="*",
                    satisfied="*",
                    satisfied_engines="*",
                ),
                UpdateDecision.none(),
            ),
        ],
        errors=[failure],
    )


@pytest.mark.unit
class TestResolutionResult:
    """Tests for ResolutionResult state properties."""

    def test_fetch_failed_is_not_unresolved(self) -> None:
        """Test a fetch failure is distinct from "nothing compatible exists"."""
        result = ResolutionResult(
            name="x",
            group="dependencies",
            declared_range="*",
            error=RegistryError.cancelled("x"),
        )

        assert result.fetch_failed is True
        assert result.unresolved is False

    def test_unresolved(self) -> None:
        """Test an empty satisfied version without error is a miss."""
        result = ResolutionResult(name="x", group="dependencies", declared_range="*")

        assert result.unresolved is True
        assert result.fetch_failed is False

    def test_to_json_with_error(self) -> None:
        """Test the JSON form carries the error reason and message."""
        result = ResolutionResult(
            name="x",
            group="dependencies",
            declared_range="^1.0.0",
            error=RegistryError("Request timed out", package_name="x", reason="timeout"),
        )

        entry = result.to_json(UpdateDecision.none())

        assert entry["error"] == {"reason": "timeout", "message": "Request timed out"}
        assert entry["update"] is None
        assert entry["installed"] is None
        assert entry["installed_engines"] is None


@pytest.mark.unit
class TestAuditReport:
    """Tests for AuditReport views and serialization."""

    def test_updates(self, report: AuditReport) -> None:
        """Test updates() only returns entries needing a new range."""
        updates = report.updates()

        assert [result.name for result, _ in updates] == ["chalk"]

    def test_updates_skip_unchanged_range(self) -> None:
        """Test a decision that keeps the declared text is not an update.

        2.5.0 sits between the alternatives of ``1.x || 3.x``, so the
        range is flagged but cannot be rewritten.
        """
        gap = ResolutionResult(
            name="gap",
            group="dependencies",
            declared_range="1.x || 3.x",
            latest="3.1.0",
            satisfied="2.5.0",
        )
        decision = UpdateDecision(needed=True, new_range="1.x || 3.x")
        report = AuditReport(entries=[(gap, decision)])

        assert report.updates() == []
        assert report.to_json()["dependencies"][0]["update"] is None

    def test_failures_and_misses_are_separate(self, report: AuditReport) -> None:
        """Test fetch failures and resolution misses are listed apart."""
        assert [r.name for r in report.failures()] == ["ghost"]
        assert [r.name for r in report.misses()] == ["modern"]

    def test_results_keep_order(self, report: AuditReport) -> None:
        """Test results follow manifest order."""
        assert [r.name for r in report.results] == ["chalk", "ghost", "modern", "tiny"]

    def test_not_applicable(self) -> None:
        """Test the skipped-audit report."""
        skipped = AuditReport.not_applicable("There is no expectation for engines in project.")

        assert skipped.applicable is False
        assert skipped.entries == []
        assert skipped.to_json()["min_engines"] is None

    def test_to_json_is_serializable(self, report: AuditReport) -> None:
        """Test the report round-trips through json.dumps."""
        data = json.loads(json.dumps(report.to_json()))

        assert data["applicable"] is True
        assert data["min_engines"] == {"node": "14.0.0"}
        assert data["dependencies"][0]["update"] == "^4.0.0 <=4.1.2"
        assert data["dependencies"][0]["satisfied_engines"] == {"node": ">=10"}
        assert data["dependencies"][1]["error"]["reason"] == "not_found"
        assert data["dependencies"][3]["satisfied_engines"] == "*"


@pytest.mark.unit
class TestUpdateDecision:
    """Tests for UpdateDecision.rewrites."""

    @pytest.mark.parametrize(
        "decision,declared,expected",
        [
            (UpdateDecision(needed=True, new_range="^4.0.0 <=4.1.2"), "^4.0.0", True),
            (UpdateDecision(needed=True, new_range="1.x || 3.x"), "1.x || 3.x", False),
            (UpdateDecision(needed=True, new_range=None), "^4.0.0", False),
            (UpdateDecision.none(), "^4.0.0", False),
        ],
    )
    def test_rewrites(self, decision: UpdateDecision, declared: str, expected: bool) -> None:
        """Test only decisions that change the declared text count as rewrites."""
        assert decision.rewrites(declared) is expected

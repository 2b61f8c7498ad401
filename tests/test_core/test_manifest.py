from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

import pytest

from depengine.core.manifest import Manifest
from depengine.exceptions import ManifestError
from depengine.models.engines import EngineRequirement


def _write_manifest(directory: Path, data: Dict[str, Any]) -> Path:
    path = directory / "package.json"
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """Project directory with a typical package.json."""
    _write_manifest(
        tmp_path,
        {
            "name": "demo",
            "engines": {"node": ">=14.0.0"},
            "dependencies": {"zod": "^3.0.0", "chalk": "^4.0.0"},
            "devDependencies": {"eslint": "^8.0.0"},
            "optionalDependencies": {"fsevents": "^2.0.0"},
        },
    )
    return tmp_path


@pytest.mark.unit
class TestManifestLoad:
    """Tests for Manifest.load."""

    def test_load_from_directory(self, project: Path) -> None:
        """Test a project directory resolves to its package.json."""
        manifest = Manifest.load(project)

        assert manifest.name == "demo"
        assert manifest.path == project / "package.json"

    def test_load_from_file(self, project: Path) -> None:
        """Test an explicit file path is accepted as well."""
        manifest = Manifest.load(project / "package.json")

        assert manifest.engines == EngineRequirement(node=">=14.0.0")

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test a directory without package.json raises ManifestError."""
        with pytest.raises(ManifestError) as exc_info:
            Manifest.load(tmp_path)

        assert "Cannot read package.json" in str(exc_info.value)
        assert exc_info.value.file_path == str(tmp_path / "package.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        """Test malformed JSON raises ManifestError with its position."""
        (tmp_path / "package.json").write_text('{"name": ', encoding="utf-8")

        with pytest.raises(ManifestError) as exc_info:
            Manifest.load(tmp_path)

        assert "not valid JSON" in str(exc_info.value)

    def test_non_object_document(self, tmp_path: Path) -> None:
        """Test a JSON array at the top level is rejected."""
        (tmp_path / "package.json").write_text("[]", encoding="utf-8")

        with pytest.raises(ManifestError, match="JSON object"):
            Manifest.load(tmp_path)


@pytest.mark.unit
class TestManifestQueries:
    """Tests for engines, groups and counts."""

    def test_profile(self, project: Path) -> None:
        """Test the profile carries the project's minimum engine versions."""
        profile = Manifest.load(project).profile()

        assert profile.min_engines == EngineRequirement(node="14.0.0")

    def test_default_groups(self, project: Path) -> None:
        """Test the default groups are returned in order, missing ones empty."""
        groups = Manifest.load(project).groups()

        assert [g.name for g in groups] == ["dependencies", "devDependencies", "peerDependencies"]
        assert list(groups[0]) == [("zod", "^3.0.0"), ("chalk", "^4.0.0")]
        assert len(groups[2]) == 0

    def test_selected_groups(self, project: Path) -> None:
        """Test explicitly named groups, including optionalDependencies."""
        groups = Manifest.load(project).groups(["optionalDependencies"])

        assert list(groups[0]) == [("fsevents", "^2.0.0")]

    def test_non_string_range_becomes_empty(self) -> None:
        """Test a non-string declaration is kept with an empty range."""
        manifest = Manifest({"dependencies": {"weird": {"version": "1"}}})

        assert list(manifest.groups(["dependencies"])[0]) == [("weird", "")]

    def test_non_object_group_is_empty(self) -> None:
        """Test a group that is not an object yields no dependencies."""
        manifest = Manifest({"dependencies": ["a", "b"]})

        assert manifest.dependency_count(["dependencies"]) == 0

    def test_dependency_count(self, project: Path) -> None:
        """Test counts across the selected groups."""
        manifest = Manifest.load(project)

        assert manifest.dependency_count() == 3
        assert manifest.dependency_count(["devDependencies"]) == 1


@pytest.mark.unit
class TestManifestMutation:
    """Tests for set_range and change tracking."""

    def test_set_range(self, project: Path) -> None:
        """Test a changed range is stored and tracked."""
        manifest = Manifest.load(project)

        assert manifest.set_range("dependencies", "chalk", "^4.0.0 <=4.1.2") is True
        assert manifest.data["dependencies"]["chalk"] == "^4.0.0 <=4.1.2"
        assert manifest.is_dirty is True
        assert manifest.changes == {"dependencies": {"chalk": "^4.0.0 <=4.1.2"}}

    def test_set_same_range(self, project: Path) -> None:
        """Test writing the current range is a no-op."""
        manifest = Manifest.load(project)

        assert manifest.set_range("dependencies", "chalk", "^4.0.0") is False
        assert manifest.is_dirty is False

    def test_set_undeclared_raises(self, project: Path) -> None:
        """Test only declared dependencies can be rewritten."""
        manifest = Manifest.load(project)

        with pytest.raises(KeyError):
            manifest.set_range("devDependencies", "chalk", "1.0.0")


@pytest.mark.unit
class TestManifestWrite:
    """Tests for dumps and save."""

    def test_dumps_normalizes_group_order(self) -> None:
        """Test dependency groups are sorted; other keys keep their order."""
        manifest = Manifest({"name": "x", "scripts": {"b": "1", "a": "2"}, "dependencies": {"zod": "1", "axios": "2"}})

        text = manifest.dumps()

        assert text.endswith("}\n")
        assert list(json.loads(text)["dependencies"]) == ["axios", "zod"]
        assert list(json.loads(text)["scripts"]) == ["b", "a"]
        # the in-memory document is untouched
        assert list(manifest.data["dependencies"]) == ["zod", "axios"]

    def test_dumps_without_normalize(self) -> None:
        """Test normalize=False keeps insertion order."""
        manifest = Manifest({"dependencies": {"zod": "1", "axios": "2"}})

        assert list(json.loads(manifest.dumps(normalize=False))["dependencies"]) == ["zod", "axios"]

    def test_dumps_two_space_indent_and_unicode(self) -> None:
        """Test the serialization format matches npm's."""
        manifest = Manifest({"description": "café"})

        assert manifest.dumps() == '{\n  "description": "café"\n}\n'

    def test_save_round_trip(self, project: Path) -> None:
        """Test a saved manifest reloads with the new ranges."""
        manifest = Manifest.load(project)
        manifest.set_range("devDependencies", "eslint", "7.32.0")

        backup = manifest.save()

        assert backup is None
        assert manifest.is_dirty is False
        assert Manifest.load(project).data["devDependencies"]["eslint"] == "7.32.0"

    def test_save_with_backup(self, project: Path) -> None:
        """Test backup=True keeps a timestamped copy of the old file."""
        original = (project / "package.json").read_text(encoding="utf-8")
        manifest = Manifest.load(project)
        manifest.set_range("dependencies", "zod", "<=3.22.4")

        backup = manifest.save(backup=True)

        assert backup is not None
        assert backup.exists()
        assert backup.read_text(encoding="utf-8") == original
        assert backup.name.startswith("package.") and backup.name.endswith(".backup.json")

    def test_save_without_path(self) -> None:
        """Test an in-memory manifest needs a destination."""
        with pytest.raises(ManifestError):
            Manifest({}).save()

    def test_save_to_other_path(self, project: Path, tmp_path: Path) -> None:
        """Test saving elsewhere updates the manifest path."""
        manifest = Manifest.load(project)
        target = tmp_path / "out" / "package.json"

        manifest.save(target)

        assert target.is_file()
        assert manifest.path == target

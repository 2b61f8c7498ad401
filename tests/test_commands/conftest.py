from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Generator, Optional
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from depengine.models.dependency import PackageMetadata, PublishedVersion
from depengine.models.engines import EngineRequirement
from depengine.utils.console import reconfigure_console
from depengine.utils.logger import disable_logging


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
    "any": _metadata("any", "2.0.0", {"1.0.0": ">=12", "2.0.0": None}),
    "gap": _metadata("gap", "3.1.0", {"1.4.0": ">=12", "2.5.0": ">=12", "3.1.0": ">=16"}),
}


def _write_package_json(directory: Path, data: Dict[str, Any]) -> Path:
    path = directory / "package.json"
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    return path


@pytest.fixture(autouse=True)
def isolated_cli(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Wide, colorless output and no leftover logging handlers between runs."""
    monkeypatch.setenv("COLUMNS", "240")
    monkeypatch.setenv("NO_COLOR", "")
    monkeypatch.delenv("DEPENGINE_CONFIG", raising=False)
    monkeypatch.delenv("DEPENGINE_COLOR", raising=False)
    yield
    disable_logging()
    reconfigure_console()


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """A node >=14 project with one outdated range and one wildcard.

    ``lib@^1.0.0`` admits 1.5.0 (node >=16), so it should be capped at
    1.2.0; ``any`` resolves to a release without engines.
    """
    _write_package_json(
        tmp_path,
        {
            "name": "demo",
            "engines": {"node": ">=14.0.0"},
            "dependencies": {"lib": "^1.0.0"},
            "devDependencies": {"any": "*"},
        },
    )
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def gap_project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """A project whose only flagged range cannot be rewritten.

    ``gap@1.x || 3.x`` resolves to 2.5.0, which falls between the two
    alternatives.  Keys are deliberately unsorted so a save would show.
    """
    (tmp_path / "package.json").write_text(
        '{"name": "demo", "engines": {"node": ">=14"}, '
        '"dependencies": {"lib": "1.2.0", "gap": "1.x || 3.x"}}',
        encoding="utf-8",
    )
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def registry() -> Generator[MagicMock, None, None]:
    """Replace the registry client used by the commands with CATALOG."""
    fake = MagicMock()
    fake.get_metadata = AsyncMock(side_effect=CATALOG.__getitem__)
    with patch("depengine.commands.common.RegistryClient", return_value=fake):
        yield fake

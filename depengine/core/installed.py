"""Installed-package lookup for depengine.

Finds the copy of a dependency Node would load from a project directory
by walking up through ``node_modules`` folders, and reports its version
and ``engines`` declaration.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Iterator, Union

from depengine.constants import MANIFEST_FILENAME, NODE_MODULES_DIRNAME
from depengine.models.dependency import InstalledPackage
from depengine.models.engines import EngineRequirement
from depengine.utils.logger import get_logger

logger = get_logger("installed")


class InstalledPackageInspector:
    """Resolve installed dependencies relative to a base directory.

    Lookups are cached per name for the lifetime of the inspector.

    Args:
        base_dir: Directory resolution starts from, usually the project root.
    """

    def __init__(self, base_dir: Union[str, Path]) -> None:
        self.base_dir = Path(base_dir).resolve()
        self._cache: Dict[str, InstalledPackage] = {}

    def inspect(self, name: str) -> InstalledPackage:
        """Return the installed version and engines of *name*.

        Returns an empty :class:`InstalledPackage` when nothing is installed
        or the installed ``package.json`` cannot be read.
        """
        if name in self._cache:
            return self._cache[name]

        result = InstalledPackage()
        for candidate in self._candidates(name):
            if not candidate.is_file():
                continue
            result = _read_installed(candidate)
            break

        self._cache[name] = result
        return result

    def _candidates(self, name: str) -> Iterator[Path]:
        for directory in (self.base_dir, *self.base_dir.parents):
            if directory.name == NODE_MODULES_DIRNAME:
                continue
            yield directory / NODE_MODULES_DIRNAME / name / MANIFEST_FILENAME


def _read_installed(path: Path) -> InstalledPackage:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.debug("Ignoring unreadable %s: %s", path, exc)
        return InstalledPackage()

    if not isinstance(data, dict):
        return InstalledPackage()

    version = data.get("version")
    return InstalledPackage(
        version=version if isinstance(version, str) else "",
        engines=EngineRequirement.from_raw(data.get("engines")),
    )

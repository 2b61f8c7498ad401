"""``package.json`` handling for depengine.

:class:`Manifest` wraps the parsed document of a project's manifest.  It
exposes the project's ``engines`` block and its dependency groups, lets
the auditor rewrite individual declared ranges in memory, and writes the
result back atomically.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from depengine.constants import DEFAULT_DEPENDENCY_GROUPS, KNOWN_DEPENDENCY_GROUPS, MANIFEST_FILENAME
from depengine.exceptions import FileOperationError, ManifestError
from depengine.models.dependency import DependencyGroup
from depengine.models.engines import EngineRequirement, ProjectProfile
from depengine.utils.filesystem import safe_read_file, safe_write_file
from depengine.utils.logger import get_logger

logger = get_logger("manifest")

PathLike = Union[str, Path]


class Manifest:
    """In-memory view of a project's ``package.json``.

    Args:
        data: Parsed manifest document.
        path: Location the document was read from and will be saved to.

    Example::

        >>> manifest = Manifest.load("path/to/project")
        >>> manifest.engines
        EngineRequirement(node='>=14.0.0', npm=None)
        >>> [group.name for group in manifest.groups()]
        ['dependencies', 'devDependencies', 'peerDependencies']
    """

    def __init__(self, data: Dict[str, Any], path: Optional[Path] = None) -> None:
        self.data = data
        self.path = path
        self._changed: Dict[str, Dict[str, str]] = {}

    @classmethod
    def load(cls, location: PathLike) -> "Manifest":
        """Read ``package.json`` from a project directory or a file path.

        Raises:
            ManifestError: The file is missing, unreadable, not valid JSON,
                or not a JSON object.
        """
        path = Path(location)
        if path.is_dir():
            path = path / MANIFEST_FILENAME

        try:
            text = safe_read_file(path)
        except FileOperationError as exc:
            raise ManifestError(
                f"Cannot read {MANIFEST_FILENAME}: {exc.message}",
                file_path=str(path),
            ) from exc

        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ManifestError(
                f"{MANIFEST_FILENAME} is not valid JSON: {exc.msg} "
                f"(line {exc.lineno}, column {exc.colno})",
                file_path=str(path),
            ) from exc

        if not isinstance(data, dict):
            raise ManifestError(
                f"{MANIFEST_FILENAME} must contain a JSON object",
                file_path=str(path),
            )

        logger.debug("Loaded manifest %s", path)
        return cls(data, path=path)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        value = self.data.get("name")
        return value if isinstance(value, str) else ""

    @property
    def engines(self) -> EngineRequirement:
        return EngineRequirement.from_raw(self.data.get("engines"))

    def profile(self) -> ProjectProfile:
        """Build the project's engine profile from its ``engines`` block."""
        return ProjectProfile.from_engines(self.engines)

    def groups(self, names: Optional[Iterable[str]] = None) -> List[DependencyGroup]:
        """Return the requested dependency groups in the order given.

        A group that is absent or not an object yields an empty group.
        Entries whose declared range is not a string are kept with an
        empty range, which the reconciler treats as malformed.
        """
        result: List[DependencyGroup] = []
        for name in names if names is not None else DEFAULT_DEPENDENCY_GROUPS:
            raw = self.data.get(name)
            dependencies: Dict[str, str] = {}
            if isinstance(raw, dict):
                for dep_name, declared in raw.items():
                    dependencies[dep_name] = declared if isinstance(declared, str) else ""
            result.append(DependencyGroup(name=name, dependencies=dependencies))
        return result

    def dependency_count(self, names: Optional[Iterable[str]] = None) -> int:
        return sum(len(group) for group in self.groups(names))

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def set_range(self, group: str, name: str, new_range: str) -> bool:
        """Replace the declared range of *name* in *group*.

        Returns:
            ``True`` if the stored range changed.

        Raises:
            KeyError: *name* is not declared in *group*.
        """
        raw = self.data.get(group)
        if not isinstance(raw, dict) or name not in raw:
            raise KeyError(f"{name} is not declared in {group}")

        if raw[name] == new_range:
            return False

        raw[name] = new_range
        self._changed.setdefault(group, {})[name] = new_range
        return True

    @property
    def is_dirty(self) -> bool:
        return bool(self._changed)

    @property
    def changes(self) -> Dict[str, Dict[str, str]]:
        """Ranges rewritten since load, grouped by dependency group."""
        return {group: dict(entries) for group, entries in self._changed.items()}

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def dumps(self, *, normalize: bool = True) -> str:
        """Serialize the document as written to disk.

        Two-space indentation with a trailing newline.  With *normalize*,
        the entries of every dependency group are sorted by name.
        """
        data = self.data
        if normalize:
            data = dict(data)
            for group in KNOWN_DEPENDENCY_GROUPS:
                raw = data.get(group)
                if isinstance(raw, dict):
                    data[group] = {key: raw[key] for key in sorted(raw)}
        return json.dumps(data, indent=2, ensure_ascii=False) + "\n"

    def save(
        self,
        path: Optional[PathLike] = None,
        *,
        backup: bool = False,
        normalize: bool = True,
    ) -> Optional[Path]:
        """Write the manifest back to disk atomically.

        Args:
            path: Destination; defaults to the path it was loaded from.
            backup: Keep a timestamped copy of the previous file.
            normalize: Sort dependency group entries (see :meth:`dumps`).

        Returns:
            Path of the backup, if one was created.
        """
        target = Path(path) if path is not None else self.path
        if target is None:
            raise ManifestError("Manifest has no path to save to")

        backup_path = safe_write_file(target, self.dumps(normalize=normalize), create_backup=backup)
        self.path = target
        self._changed.clear()
        logger.info("Wrote %s", target)
        return backup_path

"""
Dependency re-installation for depengine.

After ``package.json`` has been rewritten, the installed tree and lock
file no longer match it.  :func:`reinstall_dependencies` removes both and
runs a clean ``npm install`` in the project directory.
"""

from __future__ import annotations

import os
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Union

from depengine.constants import LOCKFILE_FILENAME, NODE_MODULES_DIRNAME
from depengine.exceptions import InstallError
from depengine.utils.filesystem import remove_path
from depengine.utils.logger import get_logger

logger = get_logger("installer")


def npm_command() -> str:
    """Return the npm executable name for this platform."""
    return "npm.cmd" if os.name == "nt" else "npm"


def clear_installation(project_dir: Union[str, Path]) -> List[Path]:
    """Remove ``node_modules`` and ``package-lock.json`` from *project_dir*.

    Returns:
        The paths that were actually removed.
    """
    root = Path(project_dir)
    removed: List[Path] = []
    for name in (NODE_MODULES_DIRNAME, LOCKFILE_FILENAME):
        target = root / name
        logger.info("Deleting %s", target)
        if remove_path(target):
            removed.append(target)
    return removed


def reinstall_dependencies(
    project_dir: Union[str, Path],
    *,
    npm: Optional[str] = None,
) -> None:
    """Clear the installed tree and run ``npm install``.

    npm's own output goes straight to the terminal.

    Args:
        project_dir: Directory containing ``package.json``.
        npm: npm executable to run; located on ``PATH`` when omitted.

    Raises:
        InstallError: npm cannot be found, cannot be started, or exits
            with a non-zero status.
        FileOperationError: The old installation cannot be removed.
    """
    executable = npm or shutil.which(npm_command())
    if not executable:
        raise InstallError(
            "npm was not found on PATH; run 'npm install' manually",
            command="npm install",
        )

    clear_installation(project_dir)

    command = [executable, "install"]
    logger.info("Running %s in %s", " ".join(command), project_dir)
    try:
        result = subprocess.run(command, cwd=str(project_dir), check=False)
    except OSError as exc:
        raise InstallError(
            f"Could not start npm: {exc}",
            command=" ".join(command),
        ) from exc

    if result.returncode != 0:
        raise InstallError(
            f"npm install failed with exit code {result.returncode}",
            command=" ".join(command),
            returncode=result.returncode,
        )

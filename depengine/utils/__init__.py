"""
Utility helpers for depengine.

This package provides reusable utilities used across depengine, including:

- Console output helpers (Rich-based)
- Logging configuration and retrieval
- Filesystem safety helpers
- Async HTTP client utilities
- Version comparison helpers
- npm re-installation

Only symbols listed in ``__all__`` are considered part of the public API.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Filesystem utilities
# ---------------------------------------------------------------------------

from depengine.utils.filesystem import (
    create_timestamped_backup,
    remove_path,
    safe_read_file,
    safe_write_file,
)

# ---------------------------------------------------------------------------
# Logging utilities
# ---------------------------------------------------------------------------

from depengine.utils.logger import (
    disable_logging,
    get_logger,
    setup_logging,
)

# ---------------------------------------------------------------------------
# Console utilities
# ---------------------------------------------------------------------------

from depengine.utils.console import (
    colorize_update_type,
    confirm,
    fetch_progress,
    get_raw_console,
    print_error,
    print_info,
    print_success,
    print_table,
    print_warning,
    reconfigure_console,
)

# ---------------------------------------------------------------------------
# HTTP utilities
# ---------------------------------------------------------------------------

from depengine.utils.http import HTTPClient

# ---------------------------------------------------------------------------
# Version utilities
# ---------------------------------------------------------------------------

from depengine.utils.version_utils import get_update_type

# ---------------------------------------------------------------------------
# Installer
# ---------------------------------------------------------------------------

from depengine.utils.installer import clear_installation, reinstall_dependencies

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

__all__ = [
    # Console
    "confirm",
    "fetch_progress",
    "print_error",
    "print_info",
    "print_table",
    "print_success",
    "print_warning",
    "get_raw_console",
    "reconfigure_console",
    "colorize_update_type",
    # Logging
    "get_logger",
    "setup_logging",
    "disable_logging",
    # Filesystem
    "safe_read_file",
    "safe_write_file",
    "remove_path",
    "create_timestamped_backup",
    # HTTP
    "HTTPClient",
    # Version utilities
    "get_update_type",
    # Installer
    "clear_installation",
    "reinstall_dependencies",
]

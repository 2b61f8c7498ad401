"""
Executable module for depengine.

Running:
    python -m depengine

is equivalent to:
    depengine

This module simply forwards execution to the CLI entrypoint defined in
`depengine.cli`.
"""

from __future__ import annotations

import sys


def main() -> int:
    """
    Main entrypoint when executing `python -m depengine`.

    Returns:
        Exit code returned by the CLI.
    """
    try:
        # Import lazily so dependencies are only loaded during CLI use
        from depengine.cli import main as cli_main
    except ImportError as exc:
        sys.stderr.write("depengine CLI could not be loaded.\n")
        sys.stderr.write(f"Python version : {sys.version}\n")
        sys.stderr.write(f"ImportError: {exc}\n")
        return 1

    return cli_main()


if __name__ == "__main__":
    sys.exit(main())

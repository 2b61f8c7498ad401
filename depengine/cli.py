"""
Command-line interface for depengine.

This module provides the main CLI entry point and handles global options,
configuration loading, and command registration.
"""

from __future__ import annotations

import os
import sys
import logging
from pathlib import Path
from typing import Optional

import click

from depengine.config import load_config
from depengine.__version__ import __version__
from depengine.context import DepEngineContext
from depengine.exceptions import ConfigError, DepEngineError
from depengine.utils.logger import get_logger, setup_logging
from depengine.utils.console import print_error, print_warning, reconfigure_console
from depengine.commands.check import check
from depengine.commands.update import update

logger = get_logger("cli")


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration file.",
    envvar="DEPENGINE_CONFIG",
)
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Increase verbosity (can be repeated: -v, -vv).",
)
@click.option(
    "--color/--no-color",
    default=True,
    help="Enable or disable colored output.",
    envvar="DEPENGINE_COLOR",
)
@click.version_option(
    version=__version__,
    prog_name="depengine",
    message="%(prog)s %(version)s",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Optional[Path],
    verbose: int,
    color: bool,
) -> None:
    """depengine: keep package.json ranges within your engines.

    \b
    Available commands:
      depengine check              Report engine-compatible versions
      depengine update             Rewrite package.json and re-install

    \b
    Examples:
      depengine check
      depengine check --update --exact
      depengine -v update --dry-run

    Use ``depengine COMMAND --help`` for command-specific options.
    """
    _configure_logging(verbose, color)

    try:
        loaded_config = load_config(config)
    except ConfigError as exc:
        print_error(str(exc))
        raise SystemExit(1) from exc

    depengine_ctx = DepEngineContext()
    depengine_ctx.config_path = config or loaded_config.source_path
    depengine_ctx.color = color
    depengine_ctx.verbose = verbose
    depengine_ctx.config = loaded_config
    ctx.obj = depengine_ctx

    # Respect NO_COLOR for downstream libraries
    if color:
        os.environ.pop("NO_COLOR", None)
        reconfigure_console()
    else:
        os.environ["NO_COLOR"] = "1"
        reconfigure_console(color=False)

    logger.debug("depengine v%s", __version__)
    logger.debug("Config path: %s", depengine_ctx.config_path)
    if loaded_config.source_path:
        logger.debug("Loaded configuration: %s", loaded_config.to_log_dict())
    logger.debug("Verbosity: %s | Color: %s", verbose, color)


def _configure_logging(verbose: int, color: bool = True) -> None:
    """Configure logging level based on verbosity flags."""
    if verbose <= 0:
        level = logging.WARNING
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    setup_logging(level=level, verbose=verbose > 1, use_color=color)
    logger.debug("Logging initialized at %s level", logging.getLevelName(level))


cli.add_command(check)
cli.add_command(update)


def main() -> int:
    """Main entry point for the depengine CLI.

    Returns:
        Exit code:
            0   Success
            1   Setup failure, unhandled or application error
            2   Usage error (Click)
            130 Interrupted by user (Ctrl+C)
    """
    try:
        cli(standalone_mode=False)
        return 0

    except click.exceptions.Abort:
        print_warning("\nOperation cancelled by user")
        return 130

    except click.ClickException as exc:
        exc.show()
        return exc.exit_code

    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else 1

    except DepEngineError as exc:
        print_error(str(exc))
        logger.debug(
            "DepEngineError details: %s",
            exc.details or "<none>",
            exc_info=True,
        )
        return 1

    except KeyboardInterrupt:
        print_warning("\nOperation cancelled by user")
        return 130

    except Exception as exc:
        print_error(f"Unexpected error: {exc}")
        logger.exception("Unhandled exception in CLI")
        return 1


if __name__ == "__main__":
    sys.exit(main())

"""Check command implementation for depengine.

Audits the dependencies declared in ``package.json`` against the minimum
Node.js and npm versions the project declares under ``engines``, and
reports, for each dependency, the newest published release that still
runs on them.

Typical usage::

    # Report only
    $ depengine check

    # Another project, a private registry, machine-readable output
    $ depengine check -d ../web -r https://npm.example.com --format json

    # Rewrite package.json with engine-safe ranges
    $ depengine check --update
"""

from __future__ import annotations

import sys
import click

from depengine.core import Manifest
from depengine.exceptions import DepEngineError
from depengine.context import pass_context, DepEngineContext
from depengine.commands.common import (
    audit_options,
    build_settings,
    render_engines_header,
    render_json,
    render_problems,
    render_report_table,
    run_audit,
)
from depengine.utils import (
    get_logger,
    print_error,
    print_info,
    print_success,
    print_warning,
)

logger = get_logger("commands.check")


@click.command()
@audit_options
@click.option(
    "--update",
    "-u",
    "write",
    is_flag=True,
    help="Write the updated ranges back to package.json.",
)
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@pass_context
def check(ctx: DepEngineContext, write: bool, output_format: str, **audit_flags) -> None:
    """Check dependencies against the project's engine requirements.

    Reads ``engines`` from package.json, derives the minimum node and npm
    versions, and finds for every dependency the newest published version
    whose own ``engines`` accept them.  Declared ranges that admit newer,
    incompatible releases are reported with the range they should become.

    Exits:
        0 when the audit ran (whatever it found), 1 if package.json or the
        configuration could not be read.
    """
    try:
        _check(ctx, write, output_format.lower(), audit_flags)
    except DepEngineError as e:
        print_error(f"{e}")
        sys.exit(1)


def _check(ctx: DepEngineContext, write: bool, output_format: str, audit_flags: dict) -> None:
    settings = build_settings(ctx.config, **audit_flags)
    as_json = output_format == "json"
    human = not settings.quiet and not as_json

    manifest = Manifest.load(settings.project_dir)
    auditor, report = run_audit(settings, manifest, show_progress=human)

    if not report.applicable:
        if as_json:
            render_json(report)
        elif human:
            print_warning(report.reason)
        return

    if as_json:
        render_json(report)
    elif human:
        render_engines_header(report)
        render_report_table(report)
        render_problems(report)

    pending = len(report.updates())
    if not pending:
        if human:
            print_info("No changes!")
        return

    if not write:
        if human:
            print_warning(
                f"{pending} dependency range(s) admit versions the project engines "
                "cannot run; use --update to rewrite package.json"
            )
        return

    changed = auditor.apply(report)
    if not manifest.is_dirty:
        if human:
            print_info("No changes!")
        return

    manifest.save()
    logger.info("Updated %d range(s) in %s", changed, manifest.path)
    if human:
        print_success("Successfully updated package.json")

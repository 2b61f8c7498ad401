"""Update command implementation for depengine.

Runs the same audit as ``check``, shows the planned range changes,
rewrites ``package.json`` after confirmation, and re-installs the
dependencies so ``node_modules`` matches the new ranges.

Typical usage::

    # Preview changes
    $ depengine update --dry-run

    # Pin exact versions, keep a backup, skip the prompt
    $ depengine update --exact --backup -y

    # Rewrite package.json but leave node_modules alone
    $ depengine update --no-install
"""

from __future__ import annotations

import sys
from typing import List, Tuple

import click

from depengine.core import Manifest
from depengine.exceptions import DepEngineError
from depengine.models import ResolutionResult
from depengine.context import pass_context, DepEngineContext
from depengine.commands.common import (
    audit_options,
    build_settings,
    render_problems,
    run_audit,
    update_rows,
)
from depengine.utils import (
    colorize_update_type,
    confirm,
    get_logger,
    get_update_type,
    print_info,
    print_success,
    print_table,
    print_warning,
    print_error,
    reinstall_dependencies,
)

logger = get_logger("commands.update")


@click.command()
@audit_options
@click.option(
    "--dry-run",
    is_flag=True,
    help="Preview changes without applying them.",
)
@click.option(
    "--yes",
    "-y",
    is_flag=True,
    help="Skip confirmation prompt.",
)
@click.option(
    "--backup",
    is_flag=True,
    help="Create backup file before updating.",
)
@click.option(
    "--no-install",
    "-t",
    is_flag=True,
    help="Do not re-install dependencies after updating package.json.",
)
@pass_context
def update(
    ctx: DepEngineContext,
    dry_run: bool,
    yes: bool,
    backup: bool,
    no_install: bool,
    **audit_flags,
) -> None:
    """Rewrite package.json so no range admits an engine-incompatible release.

    After writing, ``node_modules`` and ``package-lock.json`` are removed
    and ``npm install`` is run, unless ``--no-install`` is given or
    ``auto_install = false`` is configured.

    Exits:
        0 if updates were applied or none were needed, 1 if an error
        occurred.
    """
    try:
        _update(ctx, dry_run, yes, backup, no_install, audit_flags)
    except DepEngineError as e:
        print_error(f"{e}")
        sys.exit(1)


def _update(
    ctx: DepEngineContext,
    dry_run: bool,
    skip_confirm: bool,
    backup: bool,
    no_install: bool,
    audit_flags: dict,
) -> None:
    settings = build_settings(ctx.config, **audit_flags)
    human = not settings.quiet

    manifest = Manifest.load(settings.project_dir)
    auditor, report = run_audit(settings, manifest, show_progress=human)

    if not report.applicable:
        if human:
            print_warning(report.reason)
        return

    if human:
        render_problems(report)

    updates = update_rows(report)
    if not updates:
        if human:
            print_success("All dependency ranges already fit the project engines")
        return

    if human or dry_run:
        _display_update_plan(updates, dry_run)

    if dry_run:
        print_warning("\nDry run mode - no changes applied")
        return

    if not skip_confirm and not confirm(f"Update {len(updates)} dependency range(s)?", default=True):
        logger.info("Update cancelled by user")
        return

    changed = auditor.apply(report)
    if not manifest.is_dirty:
        if human:
            print_success("All dependency ranges already fit the project engines")
        return

    backup_path = manifest.save(backup=backup)
    if backup_path is not None:
        logger.info("Created backup: %s", backup_path)
    if human:
        print_success(f"Successfully updated {changed} range(s) in package.json")

    if no_install or not ctx.config.auto_install:
        if human:
            print_info("You should run npm install to update the dependencies.")
        return

    if human:
        print_info("Auto installing after update...")
    reinstall_dependencies(settings.project_dir)
    if human:
        print_success("Successfully installed.")


def _display_update_plan(updates: List[Tuple[ResolutionResult, str]], dry_run: bool) -> None:
    """Display planned range changes as a Rich-formatted table.

    Example output::

        ┏━━━━━━━━━━━━┳━━━━━━━━━━━━━━━━━┳━━━━━━━━━━┳━━━━━━━━━━━━━━━━━━┳━━━━━━━━┓
        ┃ Dependency ┃ Group           ┃ Current  ┃ New Range        ┃ Change ┃
        ┡━━━━━━━━━━━━╇━━━━━━━━━━━━━━━━━╇━━━━━━━━━━╇━━━━━━━━━━━━━━━━━━╇━━━━━━━━┩
        │ chalk      │ dependencies    │ ^4.0.0   │ ^4.0.0 <=4.1.2   │ range  │
        │ eslint     │ devDependencies │ ^8.0.0   │ 7.32.0           │ downgr │
        └────────────┴─────────────────┴──────────┴──────────────────┴────────┘
    """
    title = "Update Plan (Dry Run)" if dry_run else "Update Plan"

    data = []
    for result, new_range in updates:
        change = get_update_type(result.installed, result.satisfied)
        if change in ("same", "unknown", "new"):
            change = "range"
        data.append(
            {
                "Dependency": result.name,
                "Group": result.group,
                "Current": result.declared_range or "not specified",
                "New Range": f"[bold green]{new_range}[/bold green]",
                "Change": colorize_update_type(change),
            }
        )

    column_styles = {
        "Dependency": {"style": "bold cyan", "no_wrap": True},
        "Group": {"style": "dim", "no_wrap": True},
        "Current": {"justify": "left", "style": "dim"},
        "New Range": {"justify": "left"},
        "Change": {"justify": "center"},
    }

    print_table(data, title=title, column_styles=column_styles, show_row_lines=True)

"""Pieces shared by the ``check`` and ``update`` commands.

Both commands accept the same audit options, merge them with the loaded
configuration the same way, run the same audit, and render the same
report table.
"""

from __future__ import annotations

import json
import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import click

from depengine.config import DepEngineConfig
from depengine.constants import DEV_DEPENDENCY_GROUP, KNOWN_DEPENDENCY_GROUPS
from depengine.core import (
    AuditOptions,
    EngineAuditor,
    InstalledPackageInspector,
    Manifest,
    RegistryClient,
    resolve_registry_url,
)
from depengine.models import AuditReport, ResolutionResult, UpdateDecision
from depengine.models.dependency import describe_engines
from depengine.utils import (
    HTTPClient,
    fetch_progress,
    get_logger,
    get_raw_console,
    print_table,
)

logger = get_logger("commands")


@dataclass(frozen=True)
class AuditSettings:
    """Effective settings for one command run (config merged with flags)."""

    project_dir: Path
    registry: str
    options: AuditOptions
    timeout: int
    quiet: bool


def audit_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Attach the audit options shared by every command."""
    decorators = [
        click.option(
            "--cwd",
            "-d",
            "cwd",
            type=click.Path(exists=True, file_okay=False, path_type=Path),
            default=".",
            show_default=True,
            help="Project directory containing package.json.",
        ),
        click.option(
            "--registry",
            "-r",
            default=None,
            help="Registry URL (default: config, npm_config_registry, .npmrc, npmjs.org).",
        ),
        click.option(
            "--allow-pre-release",
            "-p",
            is_flag=True,
            help="Also match pre-release versions.",
        ),
        click.option(
            "--exact",
            "-e",
            is_flag=True,
            help="Pin updated dependencies to exact versions instead of ranges.",
        ),
        click.option(
            "--dev-only",
            "-D",
            is_flag=True,
            help="Only audit devDependencies.",
        ),
        click.option(
            "--group",
            "-g",
            "groups",
            multiple=True,
            type=click.Choice(list(KNOWN_DEPENDENCY_GROUPS)),
            help="Dependency group to audit (can be repeated).",
        ),
        click.option(
            "--concurrency",
            type=click.IntRange(min=1),
            default=None,
            help="Number of registry requests in flight (default: 1).",
        ),
        click.option(
            "--quiet",
            "-q",
            is_flag=True,
            help="Suppress progress and report output.",
        ),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


def build_settings(
    config: DepEngineConfig,
    *,
    cwd: Path,
    registry: Optional[str],
    allow_pre_release: bool,
    exact: bool,
    dev_only: bool,
    groups: Tuple[str, ...],
    concurrency: Optional[int],
    quiet: bool,
) -> AuditSettings:
    """Merge command-line flags over the loaded configuration."""
    project_dir = cwd.resolve()

    if dev_only:
        selected: Tuple[str, ...] = (DEV_DEPENDENCY_GROUP,)
    elif groups:
        selected = tuple(dict.fromkeys(groups))
    else:
        selected = tuple(config.groups)

    options = AuditOptions(
        allow_pre_release=allow_pre_release or config.allow_pre_release,
        exact=exact or config.exact,
        groups=selected,
        concurrency=concurrency or config.concurrency,
    )
    return AuditSettings(
        project_dir=project_dir,
        registry=resolve_registry_url(project_dir, registry or config.registry),
        options=options,
        timeout=config.timeout,
        quiet=quiet,
    )


def run_audit(
    settings: AuditSettings,
    manifest: Manifest,
    *,
    show_progress: bool,
) -> Tuple[EngineAuditor, AuditReport]:
    """Run the audit to completion on a fresh event loop."""
    return asyncio.run(_audit_async(settings, manifest, show_progress=show_progress))


async def _audit_async(
    settings: AuditSettings,
    manifest: Manifest,
    *,
    show_progress: bool,
) -> Tuple[EngineAuditor, AuditReport]:
    logger.info("Fetching metadata from %s", settings.registry)

    async with HTTPClient(timeout=settings.timeout) as http:
        registry = RegistryClient(
            http,
            settings.registry,
            concurrent_limit=settings.options.concurrency,
        )
        auditor = EngineAuditor(
            manifest,
            registry,
            InstalledPackageInspector(settings.project_dir),
            settings.options,
            logger=get_logger("auditor"),
        )

        total = manifest.dependency_count(settings.options.groups) if auditor.verifiable() else 0
        with fetch_progress(total, enabled=show_progress) as advance:
            report = await auditor.audit(progress=advance)

    return auditor, report


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def render_engines_header(report: AuditReport) -> None:
    console = get_raw_console()
    min_engines = report.min_engines
    for runtime in ("node", "npm"):
        value = min_engines.get(runtime) if min_engines else None
        console.print(
            f"Expected [info]min version[/info] for [info]{runtime}[/info] is: "
            f"[info]{value or '*'}[/info]"
        )


def render_report_table(report: AuditReport) -> None:
    """Render every audited dependency as a Rich table.

    Status indicators:

    - ``✓ OK`` (green): declared range already fits the engines.
    - ``⬆ UPDATE`` (yellow): declared range admits incompatible releases.
    - ``* ANY`` (cyan): newest compatible release declares no engines.
    - ``⚠ NO MATCH`` (red): no published version fits the engines.
    - ``✗ ERROR`` (red): metadata could not be fetched.
    """
    data = [_report_row(result, decision) for result, decision in report.entries]

    column_styles: Dict[str, Dict[str, Any]] = {
        "Status": {"justify": "center", "no_wrap": True, "width": 10},
        "Group": {"style": "dim", "no_wrap": True},
        "Dependency": {"style": "bold cyan", "no_wrap": True},
        "Declared": {"justify": "left"},
        "Installed": {"justify": "center", "style": "dim"},
        "Installed Engines": {"justify": "left", "style": "dim"},
        "Latest": {"justify": "center", "style": "dim"},
        "Satisfied": {"justify": "center", "style": "bold green"},
        "Satisfied Engines": {"justify": "left"},
        "Update To": {"justify": "left"},
    }

    print_table(
        data,
        title="Engine Compatibility",
        column_styles=column_styles,
        show_row_lines=True,
    )


def _report_row(result: ResolutionResult, decision: UpdateDecision) -> Dict[str, str]:
    return {
        "Status": _status(result, decision),
        "Group": result.group,
        "Dependency": result.name,
        "Declared": result.declared_range or "[dim]<none>[/dim]",
        "Installed": result.installed or "[red]not installed[/red]",
        "Installed Engines": (
            describe_engines(result.installed_engines) if result.installed else "-"
        ),
        "Latest": result.latest or "-",
        "Satisfied": result.satisfied or "-",
        "Satisfied Engines": describe_engines(result.satisfied_engines) or "-",
        "Update To": (
            f"[yellow]{decision.new_range}[/yellow]"
            if decision.rewrites(result.declared_range)
            else "[dim]-[/dim]"
        ),
    }


def _status(result: ResolutionResult, decision: UpdateDecision) -> str:
    if result.fetch_failed:
        return "[red]✗ ERROR[/red]"
    if result.unresolved:
        return "[red]⚠ NO MATCH[/red]"
    if decision.rewrites(result.declared_range):
        return "[yellow]⬆ UPDATE[/yellow]"
    if result.is_wildcard:
        return "[cyan]* ANY[/cyan]"
    return "[green]✓ OK[/green]"


def render_problems(report: AuditReport) -> None:
    """List fetch failures and resolution misses separately."""
    console = get_raw_console()

    failures = report.failures()
    if failures:
        console.print("\n[error]Can not fetch metadata for these packages:[/error]")
        for result in failures:
            assert result.error is not None
            console.print(f"  [info]{result.name}[/info] [error]{result.error.message}[/error]")

    misses = report.misses()
    if misses:
        console.print("\n[warning]No published version fits the project engines:[/warning]")
        for result in misses:
            console.print(f"  [info]{result.name}[/info]")


def render_json(report: AuditReport) -> None:
    click.echo(json.dumps(report.to_json(), indent=2))


def update_rows(report: AuditReport) -> List[Tuple[ResolutionResult, str]]:
    """``(result, new_range)`` pairs for every entry needing an update."""
    rows: List[Tuple[ResolutionResult, str]] = []
    for result, decision in report.updates():
        assert decision.new_range is not None
        rows.append((result, decision.new_range))
    return rows

"""CLI entry point for lazy-modules."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from lazy_modules.changes import DetectionMode
from lazy_modules.config import Settings, load_settings
from lazy_modules.errors import LazyModulesError, ReleaseError
from lazy_modules.git import GitRunner
from lazy_modules.models import ReleaseOutcome
from lazy_modules.pipeline import (
    ChangeDetector,
    Detection,
    release_changed_modules,
    release_module,
    write_affected_file,
)
from lazy_modules.report import build_report
from lazy_modules.shell import fatal, step
from lazy_modules.workspace import Workspace


class Context:
    """Per-invocation state shared by the subcommands."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def settings(self, **overrides: object) -> Settings:
        return load_settings(self.root).with_overrides(**overrides)

    def components(self, settings: Settings) -> tuple[Workspace, GitRunner]:
        return Workspace(self.root, settings), GitRunner(self.root)


pass_context = click.make_pass_decorator(Context)


def _print_outcome(outcome: ReleaseOutcome) -> None:
    mark = "✓" if outcome.success else "✗"
    click.echo(f"{mark} {outcome.module} {outcome.version or ''}".rstrip())
    if outcome.tag:
        suffix = "" if outcome.success else f" ({outcome.tag_state.value})"
        click.echo(f"  tag:    {outcome.tag}{suffix}")
    if outcome.branch:
        suffix = "" if outcome.success else f" ({outcome.branch_state.value})"
        click.echo(f"  branch: {outcome.branch}{suffix}")
    if outcome.error:
        click.echo(f"  error:  {outcome.error}")


def _report(
    ctx: Context, settings: Settings, mode: DetectionMode, header: str, write: bool, output_file: str | None
) -> Detection:
    workspace, runner = ctx.components(settings)
    detection = ChangeDetector(workspace, settings, runner).detect(mode)
    click.echo(build_report(header, detection.impact, detection.modules))
    if write:
        path = write_affected_file(ctx.root / (output_file or settings.output_file), detection.impact)
        click.echo(f"\n✓ Wrote affected modules to {path.relative_to(ctx.root)}")
    return detection


@click.group()
@click.version_option(package_name="lazy-modules")
@click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Repository root (defaults to the current directory).",
)
@click.option("-v", "--verbose", is_flag=True, help="Log debug details.")
@click.pass_context
def cli(ctx: click.Context, root: Path | None, verbose: bool) -> None:
    """Detect changed modules in a monorepo and release them independently."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = Context((root or Path.cwd()).resolve())


@cli.command()
@click.option("--base-branch", default=None, help="Branch to compare against.")
@click.option(
    "--include-untracked/--no-include-untracked",
    default=None,
    help="Count untracked files as changes.",
)
@click.option("--write", is_flag=True, help="Also write the affected module list.")
@click.option("--output-file", default=None, help="Path of the affected module list.")
@pass_context
def changed(
    ctx: Context,
    base_branch: str | None,
    include_untracked: bool | None,
    write: bool,
    output_file: str | None,
) -> None:
    """Report modules affected by changes on this branch and in the working tree."""
    try:
        settings = ctx.settings(base_branch=base_branch, include_untracked=include_untracked)
        _report(ctx, settings, DetectionMode.WORKING_TREE, "Changed modules:", write, output_file)
    except LazyModulesError as exc:
        fatal(str(exc))


@cli.command("changed-from-ref")
@click.option(
    "--commit-ref",
    envvar="LAZY_MODULES_COMMIT_REF",
    default=None,
    help="Commit to compare HEAD against.",
)
@click.option("--write", is_flag=True, help="Also write the affected module list.")
@click.option("--output-file", default=None, help="Path of the affected module list.")
@pass_context
def changed_from_ref(
    ctx: Context, commit_ref: str | None, write: bool, output_file: str | None
) -> None:
    """Report modules affected by commits between a ref and HEAD."""
    try:
        settings = ctx.settings(commit_ref=commit_ref)
        header = f"Changed modules (since {settings.commit_ref}):"
        _report(ctx, settings, DetectionMode.FROM_REF, header, write, output_file)
    except LazyModulesError as exc:
        fatal(str(exc))


@cli.command()
@click.argument("module")
@click.option(
    "--scope",
    envvar="LAZY_MODULES_RELEASE_SCOPE",
    default=None,
    help="Bump scope: major or minor on a primary branch, patch on a version line.",
)
@pass_context
def release(ctx: Context, module: str, scope: str | None) -> None:
    """Tag, branch and push the next version of MODULE."""
    try:
        settings = ctx.settings()
        workspace, runner = ctx.components(settings)
        step(f"Releasing {module}")
        outcome = release_module(module, workspace, settings, runner, scope)
    except ReleaseError as exc:
        _print_outcome(exc.outcome)
        fatal(str(exc))
    except LazyModulesError as exc:
        fatal(str(exc))
    else:
        _print_outcome(outcome)


@cli.command("release-changed")
@click.option(
    "--commit-ref",
    envvar="LAZY_MODULES_COMMIT_REF",
    default=None,
    help="Commit to compare HEAD against.",
)
@click.option(
    "--scope",
    envvar="LAZY_MODULES_RELEASE_SCOPE",
    default=None,
    help="Bump scope applied to every released module.",
)
@click.option(
    "--continue/--fail-fast",
    "continue_on_failure",
    default=True,
    show_default=True,
    help="Keep releasing other modules after one fails.",
)
@pass_context
def release_changed(
    ctx: Context, commit_ref: str | None, scope: str | None, continue_on_failure: bool
) -> None:
    """Release every affected module that has opted in."""
    try:
        settings = ctx.settings(commit_ref=commit_ref)
        workspace, runner = ctx.components(settings)
        step(f"Releasing modules changed since {settings.commit_ref}")
        summary = release_changed_modules(
            workspace, settings, runner, scope=scope, continue_on_failure=continue_on_failure
        )
    except LazyModulesError as exc:
        fatal(str(exc))
        return

    if not summary.outcomes and not summary.not_enabled:
        click.echo("No modules to release.")
    for outcome in summary.outcomes:
        _print_outcome(outcome)
    if summary.not_enabled:
        click.echo(f"Not enabled for release: {', '.join(summary.not_enabled)}")
    if summary.skipped:
        click.echo(f"Skipped after failure: {', '.join(summary.skipped)}")
    if summary.failed:
        fatal(f"{len(summary.failed)} module(s) failed to release")

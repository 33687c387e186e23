"""Orchestration: detect → report → release.

This module wires the components together:
1. Discover all modules in the workspace
2. Collect changed files (working tree or fixed ref)
3. Map files to the modules that own them
4. Propagate impact through the dependency graph
5. Release each affected, opted-in module, dependencies first
6. Run post-release hooks for releases that committed

Detection runs once per :class:`ChangeDetector` and is shared by every
caller, including callers on other threads.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path

from .changes import ChangeSetCollector, DetectionMode
from .config import Settings
from .errors import HookError, ReleaseError
from .git import GitReleaseExecutor, GitRunner
from .graph import ModuleGraph, build_order
from .latch import OnceLatch
from .mapping import apply_module_excludes, attach_changes, map_changed_files
from .models import ROOT_MODULE, ChangeSet, ImpactResult, ModuleInfo, ReleaseOutcome, ReleaseSummary
from .release import ReleaseTransaction
from .scanner import VersionLedgerScanner
from .shell import run
from .workspace import Workspace

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Detection:
    """Everything one detection run computed."""

    mode: DetectionMode
    changes: ChangeSet
    modules: dict[str, ModuleInfo]
    graph: ModuleGraph
    impact: ImpactResult


class ChangeDetector:
    """Compute change impact once per mode, however many callers ask.

    Args:
        workspace: Build metadata provider.
        settings: Loaded configuration (with invocation overrides applied).
        runner: Git runner bound to the repository root.
    """

    def __init__(self, workspace: Workspace, settings: Settings, runner: GitRunner) -> None:
        self.workspace = workspace
        self.settings = settings
        self.runner = runner
        self._lock = threading.Lock()
        self._latches: dict[DetectionMode, OnceLatch[Detection]] = {}

    def detect(self, mode: DetectionMode) -> Detection:
        """Return the detection result for ``mode``, computing it on first use.

        If the computing call raised, every caller gets the same exception.
        """
        with self._lock:
            latch = self._latches.setdefault(mode, OnceLatch())
        return latch.get_or_compute(lambda: self._compute(mode))

    def _collect(self, mode: DetectionMode) -> ChangeSet:
        collector = ChangeSetCollector(self.runner, self.settings.remote)
        if mode is DetectionMode.WORKING_TREE:
            return collector.from_working_tree(
                self.settings.base_branch,
                include_untracked=self.settings.include_untracked,
                exclude_patterns=self.settings.exclude_patterns,
            )
        return collector.from_ref(
            self.settings.commit_ref, exclude_patterns=self.settings.exclude_patterns
        )

    def _compute(self, mode: DetectionMode) -> Detection:
        modules = self.workspace.discover()
        changes = self._collect(mode)
        logger.info("Changed files: %d", len(changes))

        owned = map_changed_files(modules, changes)
        owned = apply_module_excludes(owned, modules, self.settings)
        modules = attach_changes(modules, owned)

        graph = ModuleGraph(modules.values())
        impact = graph.impact()
        for module_id in impact.directly_changed:
            logger.info("%s: %d changed file(s)", module_id, len(impact.changed_files[module_id]))
        for module_id, via in impact.affected_via.items():
            logger.info("%s: affected via %s", module_id, ", ".join(via))
        return Detection(mode, changes, graph.modules, graph, impact)


def affected_ids(impact: ImpactResult) -> list[str]:
    """Affected module ids as written to the list file (root module excluded)."""
    return [m for m in impact.affected if m != ROOT_MODULE]


def write_affected_file(path: Path, impact: ImpactResult) -> Path:
    """Write one affected module id per line; an empty file means nothing changed."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("".join(f"{module_id}\n" for module_id in affected_ids(impact)))
    return path


def run_post_release(workspace: Workspace, settings: Settings, outcome: ReleaseOutcome) -> None:
    """Run the module's post-release command, if it has one.

    The command runs in the module directory with LAZY_MODULES_MODULE,
    LAZY_MODULES_VERSION and LAZY_MODULES_TAG set.

    Raises:
        HookError: If the command cannot start or exits non-zero.
    """
    command = settings.module(outcome.module).post_release
    if not command:
        return
    env = {
        "LAZY_MODULES_MODULE": outcome.module,
        "LAZY_MODULES_VERSION": outcome.version or "",
        "LAZY_MODULES_TAG": outcome.tag or "",
    }
    display = " ".join(command)
    logger.info("Running post-release command for %s: %s", outcome.module, display)
    try:
        result = run(*command, cwd=workspace.module_dir(outcome.module), env=env, check=False)
    except OSError as exc:
        raise HookError(
            f"Post-release command `{display}` for {outcome.module} could not start: {exc}"
        ) from exc
    if result.returncode != 0:
        raise HookError(
            f"Post-release command `{display}` for {outcome.module} "
            f"failed with exit code {result.returncode}"
        )


def _transaction(
    module_id: str,
    workspace: Workspace,
    settings: Settings,
    runner: GitRunner,
    scope: str | None,
) -> ReleaseTransaction:
    workspace.module(module_id)
    return ReleaseTransaction(
        module_id,
        workspace,
        settings,
        VersionLedgerScanner(runner, settings.remote),
        GitReleaseExecutor(runner, settings.remote),
        scope_override=scope,
    )


def release_module(
    module_id: str,
    workspace: Workspace,
    settings: Settings,
    runner: GitRunner,
    scope: str | None = None,
) -> ReleaseOutcome:
    """Release one module and run its post-release hook.

    Raises:
        ConfigError: The module does not exist.
        ReleaseAborted: A precondition failed.
        ReleaseFailed: A mutation failed (see the outcome for remaining refs).
        HookError: The release was published but its hook failed.
    """
    outcome = _transaction(module_id, workspace, settings, runner, scope).run()
    run_post_release(workspace, settings, outcome)
    return outcome


def _attempt(
    module_id: str,
    workspace: Workspace,
    settings: Settings,
    runner: GitRunner,
    scope: str | None,
) -> ReleaseOutcome:
    """Release one module, turning every expected failure into its outcome."""
    try:
        outcome = _transaction(module_id, workspace, settings, runner, scope).run()
    except ReleaseError as exc:
        logger.error("%s", exc)
        return exc.outcome
    try:
        run_post_release(workspace, settings, outcome)
    except HookError as exc:
        # The release itself stays published; only the hook is reported
        logger.error("%s", exc)
        return outcome.model_copy(update={"success": False, "error": str(exc)})
    return outcome


def release_changed_modules(
    workspace: Workspace,
    settings: Settings,
    runner: GitRunner,
    scope: str | None = None,
    continue_on_failure: bool = True,
    detector: ChangeDetector | None = None,
) -> ReleaseSummary:
    """Release every affected, opted-in module, dependencies first.

    Detection uses the fixed-ref mode. With ``continue_on_failure`` every
    module is attempted and failures are collected; otherwise the modules
    after the first failure are listed as skipped. Affected modules that
    have not opted in are listed as not enabled (the root module is left
    out of that list).
    """
    detection = (detector or ChangeDetector(workspace, settings, runner)).detect(
        DetectionMode.FROM_REF
    )
    summary = ReleaseSummary()
    enabled: list[str] = []
    for module_id in detection.impact.affected:
        if settings.module(module_id).enabled:
            enabled.append(module_id)
        elif module_id != ROOT_MODULE:
            summary.not_enabled.append(module_id)

    order = build_order(detection.graph, enabled)
    for index, module_id in enumerate(order):
        outcome = _attempt(module_id, workspace, settings, runner, scope)
        summary.outcomes.append(outcome)
        if not outcome.success and not continue_on_failure:
            summary.skipped.extend(order[index + 1 :])
            break
    return summary

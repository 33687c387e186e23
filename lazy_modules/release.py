"""Per-module release transaction.

A release runs a fixed sequence of gates, then mutations:

1. opt-in            5. version computation     9. create tag
2. clean tree        6. tag collision (local)  10. create version-line branch
3. branch validation 7. build output present   11. push tag
4. scope resolution  8. set working version    12. push branch

A failing gate aborts with nothing mutated (:class:`ReleaseAborted`). The
mutations run as a saga: a failing mutation rolls back the ones before it
and raises :class:`ReleaseFailed`. A pushed tag cannot be rolled back, so a
failed branch push leaves the tag on the remote and says so. After the saga
commits, the version is written to the module's version marker file.
"""

from __future__ import annotations

import logging
import re

import semver

from .config import Settings
from .errors import GitCommandError, ReleaseAborted, ReleaseFailed
from .git import DETACHED_HEAD, GitReleaseExecutor
from .models import RefState, ReleaseOutcome
from .saga import RollbackReport, Saga
from .scanner import VersionLedgerScanner
from .tags import (
    derive_project_prefix,
    format_release_branch,
    format_tag,
    is_release_branch,
    parse_version_line_from_branch,
    release_branch_prefix,
)
from .versions import Scope, format_version, next_version
from .workspace import Workspace

logger = logging.getLogger(__name__)

_CREATE_TAG = "create tag"
_CREATE_BRANCH = "create branch"
_PUSH_TAG = "push tag"


def resolve_scope(on_version_line: bool, override: str | None, primary_scope: str) -> Scope:
    """Pick the bump scope for a release.

    On a version-line branch the scope is always PATCH; an override is only
    accepted if it is "patch". On a primary branch an override must be
    "major" or "minor", otherwise the configured primary scope applies.

    Raises:
        ValueError: For an unknown scope, or one not allowed on this branch.
    """
    parsed: Scope | None = None
    if override is not None:
        parsed = Scope.from_string(override)
        if parsed is None:
            raise ValueError(
                f"Invalid release scope value: '{override}'. Must be one of: major, minor, patch"
            )

    if on_version_line:
        if parsed is not None and parsed is not Scope.PATCH:
            raise ValueError(
                f"Cannot use scope '{override}' on a release branch. "
                "Patch releases only: omit the scope or use 'patch'."
            )
        return Scope.PATCH

    if parsed is not None:
        if parsed is Scope.PATCH:
            raise ValueError(
                "Cannot use scope 'patch' on a primary branch. "
                "Use 'minor' or 'major', or release from a version-line branch."
            )
        return parsed

    configured = Scope.from_string(primary_scope)
    if configured is None or configured is Scope.PATCH:
        raise ValueError(
            f"Invalid primary-branch-scope in [tool.lazy-modules]: '{primary_scope}'. "
            "Must be one of: major, minor"
        )
    return configured


class ReleaseTransaction:
    """Release one module: compute its next version, tag, branch and push.

    Args:
        module_id: Module to release.
        workspace: Build metadata provider.
        settings: Loaded configuration.
        scanner: Released-version lookup.
        executor: Git ref mutations.
        scope_override: Scope requested at invocation time, if any.
    """

    def __init__(
        self,
        module_id: str,
        workspace: Workspace,
        settings: Settings,
        scanner: VersionLedgerScanner,
        executor: GitReleaseExecutor,
        scope_override: str | None = None,
    ) -> None:
        self.module_id = module_id
        self.workspace = workspace
        self.settings = settings
        self.module_settings = settings.module(module_id)
        self.scanner = scanner
        self.executor = executor
        self.scope_override = scope_override or None
        self.project_prefix = self.module_settings.tag_prefix or derive_project_prefix(module_id)
        self._previous_version: str | None = None

    def run(self) -> ReleaseOutcome:
        """Execute the release.

        Returns:
            The successful outcome.

        Raises:
            ReleaseAborted: A precondition failed; nothing was changed.
            ReleaseFailed: A mutation failed; see ``exc.outcome`` for what remains.
        """
        outcome = ReleaseOutcome(module=self.module_id)
        global_prefix = self.settings.global_tag_prefix

        if not self.module_settings.enabled:
            self._abort(
                outcome,
                f"Release is not enabled for {self.module_id}. Set enabled = true in "
                f'[tool.lazy-modules.modules."{self.module_id}"] to opt in.',
            )

        if not self.project_prefix:
            self._abort(
                outcome,
                f"Module {self.module_id} has no derivable tag prefix. Set tag-prefix in "
                f'[tool.lazy-modules.modules."{self.module_id}"].',
            )

        if self.executor.is_dirty():
            self._abort(
                outcome,
                f"Cannot release {self.module_id} with uncommitted changes. "
                "Commit or stash all changes before releasing.",
            )

        branch = self.executor.current_branch()
        on_version_line = self._validate_branch(outcome, branch)

        try:
            scope = resolve_scope(
                on_version_line, self.scope_override, self.settings.primary_branch_scope
            )
        except ValueError as exc:
            self._abort(outcome, str(exc))

        version = self._next_version(branch, on_version_line, scope)
        tag = format_tag(global_prefix, self.project_prefix, version)
        version_text = format_version(version)
        outcome.version = version_text
        outcome.tag = tag

        if self.scanner.tag_exists(tag):
            self._abort(
                outcome,
                f"Tag '{tag}' already exists locally. This version has already been "
                "released, or a previous attempt left the tag behind.",
            )

        if not self.workspace.has_build_output(self.module_id):
            self._abort(
                outcome,
                f"{self.module_id} must be built before releasing: run "
                f"`{self.workspace.build_command(self.module_id)}` first.",
            )

        release_branch = None if on_version_line else format_release_branch(self.project_prefix, version)
        outcome.branch = release_branch
        logger.info("Releasing %s as version %s", self.module_id, version_text)

        self._publish(outcome, version_text, tag, release_branch)

        outcome.success = True
        outcome.tag_state = RefState.LOCAL_AND_REMOTE
        if release_branch is not None:
            outcome.branch_state = RefState.LOCAL_AND_REMOTE

        try:
            marker = self.workspace.write_version_marker(self.module_id, version_text)
        except OSError as exc:
            outcome.success = False
            outcome.irreversible = True
            outcome.error = (
                f"Released {tag}, but the version marker could not be written: {exc}"
            )
            raise ReleaseFailed(outcome.error, outcome) from exc
        logger.info("Wrote release version to %s", marker)
        return outcome

    def _abort(self, outcome: ReleaseOutcome, message: str) -> None:
        outcome.error = message
        raise ReleaseAborted(message, outcome)

    def _validate_branch(self, outcome: ReleaseOutcome, branch: str) -> bool:
        """Check the release origin; returns True for this module's version line."""
        if branch == DETACHED_HEAD:
            self._abort(
                outcome,
                "Cannot release from a detached HEAD state. Check out a branch before releasing.",
            )

        if is_release_branch(branch) and release_branch_prefix(branch) == self.project_prefix:
            return True

        # Another module's version line is only a valid origin through the patterns
        patterns = self.settings.release_branch_patterns
        if not any(re.fullmatch(pattern, branch) for pattern in patterns):
            self._abort(
                outcome,
                f"Cannot release from branch '{branch}'. Releases must be made from a "
                f"version-line branch (release/{self.project_prefix}/v<major>.<minor>.x) or a "
                f"branch matching: {', '.join(patterns) or '<none configured>'}",
            )
        return False

    def _next_version(self, branch: str, on_version_line: bool, scope: Scope) -> semver.Version:
        global_prefix = self.settings.global_tag_prefix
        if on_version_line:
            major, minor = parse_version_line_from_branch(branch)
            # An empty line still starts at 0.1.0, like a first release
            latest = self.scanner.latest_version_in_line(
                global_prefix, self.project_prefix, major, minor
            )
        else:
            latest = self.scanner.latest_version(global_prefix, self.project_prefix)
        return next_version(latest, scope)

    def _assign_working_version(self, version: str) -> None:
        self._previous_version = self.workspace.set_working_version(self.module_id, version)

    def _restore_working_version(self) -> None:
        self.workspace.set_working_version(self.module_id, self._previous_version)

    def _publish(
        self, outcome: ReleaseOutcome, version: str, tag: str, branch: str | None
    ) -> None:
        """Run the mutation steps, rolling back on the first failure."""
        saga = Saga()
        try:
            saga.run(
                "set working version",
                lambda: self._assign_working_version(version),
                self._restore_working_version,
            )
            saga.run(
                _CREATE_TAG,
                lambda: self.executor.create_tag_locally(tag),
                lambda: self.executor.delete_local_tag(tag),
            )
            if branch is not None:
                saga.run(
                    _CREATE_BRANCH,
                    lambda: self.executor.create_branch_locally(branch),
                    lambda: self.executor.delete_local_branch(branch),
                )
            saga.run(_PUSH_TAG, lambda: self.executor.push_tag(tag), irreversible=True)
            if branch is not None:
                saga.run("push branch", lambda: self.executor.push_branch(branch))
        except GitCommandError as exc:
            committed = set(saga.committed)
            report = saga.rollback()
            self._record_rollback(outcome, committed, report)
            outcome.error = self._failure_message(exc, tag, branch, report)
            raise ReleaseFailed(outcome.error, outcome) from exc

    def _record_rollback(
        self, outcome: ReleaseOutcome, committed: set[str], report: RollbackReport
    ) -> None:
        failed = {name for name, _ in report.failed}
        tag_local = _CREATE_TAG in committed and _CREATE_TAG in failed
        tag_remote = _PUSH_TAG in committed
        outcome.tag_state = _ref_state(tag_local, tag_remote)
        branch_local = _CREATE_BRANCH in committed and _CREATE_BRANCH in failed
        outcome.branch_state = _ref_state(branch_local, False)
        outcome.irreversible = bool(report.irreversible)

    def _failure_message(
        self, exc: GitCommandError, tag: str, branch: str | None, report: RollbackReport
    ) -> str:
        parts = [f"Release of {self.module_id} failed: {exc}."]
        if _PUSH_TAG in report.irreversible:
            parts.append(
                f"Tag '{tag}' was already pushed to {self.executor.remote} and cannot be "
                "rolled back automatically; delete it on the remote or finish the release "
                f"by pushing branch '{branch}'."
            )
        if report.compensated:
            parts.append(f"Rolled back: {', '.join(report.compensated)}.")
        if report.failed:
            details = "; ".join(f"{name}: {error}" for name, error in report.failed)
            parts.append(f"Rollback incomplete: {details}.")
        return " ".join(parts)


def _ref_state(local: bool, remote: bool) -> RefState:
    if local and remote:
        return RefState.LOCAL_AND_REMOTE
    if remote:
        return RefState.REMOTE
    if local:
        return RefState.LOCAL
    return RefState.ABSENT

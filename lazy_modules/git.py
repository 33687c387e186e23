"""Git command execution.

:class:`GitRunner` is the only place that spawns git. It never raises:
callers get a :class:`CommandResult` and decide whether a failure matters.
Read-only queries treat failure as an empty result; the mutating operations
on :class:`GitReleaseExecutor` turn failure into :class:`GitCommandError`.
"""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path

from .errors import GitCommandError
from .models import CommandResult

logger = logging.getLogger(__name__)

DETACHED_HEAD = "HEAD"


class GitRunner:
    """Run git commands inside one working directory."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def execute(self, *args: str) -> CommandResult:
        """Run ``git <args>`` and capture combined stdout/stderr.

        Blank output lines are dropped. A non-zero exit is logged as a warning
        and reported through ``success=False``; it is never raised.
        """
        command = " ".join(("git", *args))
        # Never block on a credential prompt; a push without credentials fails instead.
        env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}
        try:
            proc = subprocess.run(
                ["git", *args],
                cwd=self.root,
                env=env,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                encoding="utf-8",
                errors="replace",
            )
        except OSError as exc:
            logger.error("Could not start git command: %s (%s)", command, exc)
            return CommandResult(success=False, exit_code=-1, error_output=str(exc))

        lines = [line for line in proc.stdout.splitlines() if line.strip()]
        if proc.returncode == 0:
            return CommandResult(success=True, output=lines, exit_code=0)

        error_output = "\n".join(lines)
        logger.warning("Git command failed with exit code %d: %s", proc.returncode, command)
        if error_output:
            logger.warning("Error output: %s", error_output)
        return CommandResult(
            success=False, exit_code=proc.returncode, error_output=error_output
        )

    def output(self, *args: str) -> list[str]:
        """Return the output lines of a read-only query, or [] if it failed."""
        result = self.execute(*args)
        return result.output if result.success else []

    def check(self, message: str, *args: str) -> list[str]:
        """Run a command that must succeed.

        Raises:
            GitCommandError: With ``message`` and the captured output.
        """
        result = self.execute(*args)
        if not result.success:
            raise GitCommandError(message, args, result.exit_code, result.error_output)
        return result.output


class GitReleaseExecutor:
    """Local and remote ref mutations used by a release transaction.

    Args:
        runner: Runner bound to the repository root.
        remote: Name of the remote releases are pushed to.
    """

    def __init__(self, runner: GitRunner, remote: str = "origin") -> None:
        self.runner = runner
        self.remote = remote

    def is_dirty(self) -> bool:
        """True if the tree has staged, unstaged or untracked changes.

        A failing status query counts as dirty so that a release never
        proceeds on an unknown tree.
        """
        result = self.runner.execute("status", "--porcelain")
        if not result.success:
            return True
        return bool(result.output)

    def current_branch(self) -> str:
        """Name of the checked-out branch, or "HEAD" when detached."""
        lines = self.runner.output("rev-parse", "--abbrev-ref", "HEAD")
        return lines[0].strip() if lines else DETACHED_HEAD

    def create_tag_locally(self, tag: str) -> None:
        self.runner.check(f"Failed to create local tag '{tag}'", "tag", tag)
        logger.info("Created local tag %s", tag)

    def create_branch_locally(self, branch: str) -> None:
        self.runner.check(f"Failed to create local branch '{branch}'", "branch", branch)
        logger.info("Created local branch %s", branch)

    def push_tag(self, tag: str) -> None:
        self.runner.check(
            f"Failed to push tag '{tag}' to {self.remote}",
            "push",
            self.remote,
            f"refs/tags/{tag}",
        )
        logger.info("Pushed tag %s to %s", tag, self.remote)

    def push_branch(self, branch: str) -> None:
        self.runner.check(
            f"Failed to push branch '{branch}' to {self.remote}",
            "push",
            self.remote,
            f"refs/heads/{branch}:refs/heads/{branch}",
        )
        logger.info("Pushed branch %s to %s", branch, self.remote)

    def delete_local_tag(self, tag: str) -> None:
        self.runner.check(f"Failed to delete local tag '{tag}'", "tag", "-d", tag)
        logger.info("Deleted local tag %s", tag)

    def delete_local_branch(self, branch: str) -> None:
        """Force-delete a local branch; a branch that does not exist is ignored."""
        if not self.runner.output("branch", "--list", branch):
            return
        self.runner.check(
            f"Failed to delete local branch '{branch}'", "branch", "-D", branch
        )
        logger.info("Deleted local branch %s", branch)

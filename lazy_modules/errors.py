"""Exceptions raised by lazy-modules.

Read-only git queries never raise (see :class:`lazy_modules.git.GitRunner`);
everything else that can go wrong surfaces as one of these, and the CLI turns
any :class:`LazyModulesError` into a single error line and exit code 1.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import ReleaseOutcome


class LazyModulesError(Exception):
    """Base class for all expected failures."""


class ConfigError(LazyModulesError):
    """Invalid configuration, or a module that does not exist."""


class GitCommandError(LazyModulesError):
    """A mutating git command exited non-zero.

    Attributes:
        command: The git arguments that were run (without the leading "git").
        exit_code: Process exit code, -1 if the process could not be started.
        output: Captured combined stdout/stderr.
    """

    def __init__(self, message: str, command: tuple[str, ...], exit_code: int, output: str) -> None:
        super().__init__(message)
        self.command = command
        self.exit_code = exit_code
        self.output = output

    def __str__(self) -> str:
        base = super().__str__()
        if self.output:
            return f"{base} (exit {self.exit_code}): {self.output}"
        return f"{base} (exit {self.exit_code})"


class ReleaseError(LazyModulesError):
    """A release transaction did not complete.

    Attributes:
        outcome: Terminal record of the attempt, including where the tag and
            branch exist after any rollback.
    """

    def __init__(self, message: str, outcome: ReleaseOutcome) -> None:
        super().__init__(message)
        self.outcome = outcome


class ReleaseAborted(ReleaseError):
    """A precondition failed before anything was mutated."""


class ReleaseFailed(ReleaseError):
    """A mutation step failed after local state was created.

    Local artifacts have been rolled back on a best-effort basis. When
    ``outcome.irreversible`` is set, a remote ref was already published and
    remains in place.
    """


class HookError(LazyModulesError):
    """A post-release command failed after the release was published."""

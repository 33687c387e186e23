"""Changed-file collection.

Two modes:

- working tree: committed changes since the merge base with a base branch,
  plus staged changes, plus (optionally) untracked files;
- fixed ref: committed changes between a commit reference and HEAD only.

All git calls here are read-only. A failing query contributes nothing and
is logged by the runner; an unresolvable base branch yields an empty set.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from enum import Enum

from .git import GitRunner
from .models import ChangeSet

logger = logging.getLogger(__name__)

# Print non-ASCII paths verbatim instead of as quoted octal escapes.
_NO_QUOTEPATH = ("-c", "core.quotepath=off")


class DetectionMode(str, Enum):
    WORKING_TREE = "working-tree"
    FROM_REF = "from-ref"


class BaseBranchResolver:
    """Resolve a base branch name to a ref that exists.

    Preference order:
    1. A name that already denotes a remote ref ("origin/main") is used as-is.
    2. The remote-tracking ref "origin/<base>".
    3. The local branch "<base>".

    Returns None when no candidate exists so callers can degrade gracefully.
    """

    def __init__(self, runner: GitRunner, remote: str = "origin") -> None:
        self.runner = runner
        self.remote = remote

    def resolve(self, base_branch: str) -> str | None:
        if base_branch.startswith(f"{self.remote}/"):
            return base_branch if self._ref_exists(base_branch) else None
        remote_ref = f"{self.remote}/{base_branch}"
        if self._ref_exists(remote_ref):
            return remote_ref
        if self._ref_exists(base_branch):
            return base_branch
        return None

    def _ref_exists(self, ref: str) -> bool:
        return self.runner.execute("rev-parse", "--verify", "--quiet", ref).success


def filter_excluded(files: Iterable[str], patterns: Iterable[str]) -> list[str]:
    """Drop paths fully matching any of the regex patterns."""
    compiled = [re.compile(p) for p in patterns]
    if not compiled:
        return list(files)
    kept: list[str] = []
    for path in files:
        if any(rx.fullmatch(path) for rx in compiled):
            logger.debug("Excluded %s", path)
            continue
        kept.append(path)
    return kept


class ChangeSetCollector:
    """Collect changed file paths from git."""

    def __init__(self, runner: GitRunner, remote: str = "origin") -> None:
        self.runner = runner
        self.resolver = BaseBranchResolver(runner, remote)

    def from_working_tree(
        self,
        base_branch: str,
        include_untracked: bool = True,
        exclude_patterns: Iterable[str] = (),
    ) -> ChangeSet:
        """Changes on this branch and in the index, plus untracked files."""
        base = self.resolver.resolve(base_branch)
        if base is None:
            logger.warning(
                "Base branch '%s' not found locally or on %s; no changes detected",
                base_branch,
                self.resolver.remote,
            )
            return ChangeSet()
        logger.info("Comparing against %s", base)

        committed = self.runner.output(*_NO_QUOTEPATH, "diff", "--name-only", f"{base}...HEAD")
        staged = self.runner.output(*_NO_QUOTEPATH, "diff", "--name-only", "--cached")
        untracked: list[str] = []
        if include_untracked:
            untracked = self.runner.output(
                *_NO_QUOTEPATH, "ls-files", "--others", "--exclude-standard"
            )
        merged = ChangeSet.from_lines(committed, staged, untracked)
        return ChangeSet.from_lines(filter_excluded(merged.files, exclude_patterns))

    def from_ref(self, commit_ref: str, exclude_patterns: Iterable[str] = ()) -> ChangeSet:
        """Committed changes between ``commit_ref`` and HEAD."""
        logger.info("Comparing %s..HEAD", commit_ref)
        lines = self.runner.output(*_NO_QUOTEPATH, "diff", "--name-only", commit_ref, "HEAD")
        return ChangeSet.from_lines(filter_excluded(lines, exclude_patterns))

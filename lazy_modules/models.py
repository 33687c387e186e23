"""Data models for lazy-modules.

These Pydantic models represent the core data structures passed between
change detection and the release transaction. They are rebuilt from git and
workspace state on every invocation; nothing here is persisted.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

ROOT_MODULE = ":"


class ModuleInfo(BaseModel):
    """A module of the multi-module source tree.

    Attributes:
        id: Hierarchical identifier, e.g. ":services:auth". The root module is ":".
        path: Directory relative to the repository root ("" for the root module).
        deps: Direct dependency identifiers, ordered and without duplicates.
        changed_files: Repository-relative paths directly owned by this module
            that changed in the current detection run.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    path: str
    deps: tuple[str, ...] = ()
    changed_files: tuple[str, ...] = ()

    @property
    def is_root(self) -> bool:
        return self.id == ROOT_MODULE

    @property
    def has_direct_changes(self) -> bool:
        return bool(self.changed_files)


class ChangeSet(BaseModel):
    """Deduplicated set of VCS-relative file paths considered modified."""

    model_config = ConfigDict(frozen=True)

    files: tuple[str, ...] = ()

    @classmethod
    def from_lines(cls, *sources: Iterable[str]) -> ChangeSet:
        """Merge raw git output lines into a ChangeSet, dropping blanks."""
        seen: set[str] = set()
        for source in sources:
            for line in source:
                path = line.strip()
                if path:
                    seen.add(path)
        return cls(files=tuple(sorted(seen)))

    def __len__(self) -> int:
        return len(self.files)

    def __contains__(self, path: object) -> bool:
        return path in self.files


class CommandResult(BaseModel):
    """Outcome of one git invocation.

    Attributes:
        success: True when the process exited 0.
        output: Non-blank lines of combined stdout/stderr (empty on failure).
        exit_code: Process exit code, -1 if it could not be started.
        error_output: Combined output of a failed command, for diagnostics.
    """

    success: bool
    output: list[str] = Field(default_factory=list)
    exit_code: int = 0
    error_output: str = ""


class ImpactResult(BaseModel):
    """Which modules a change set affects, and why.

    Attributes:
        affected: Sorted ids of directly or transitively affected modules.
        directly_changed: Sorted ids of modules owning at least one changed path.
        affected_via: For each transitively affected module, its direct
            dependencies that are themselves affected (sorted).
        changed_files: Changed paths per directly changed module.
    """

    affected: list[str] = Field(default_factory=list)
    directly_changed: list[str] = Field(default_factory=list)
    affected_via: dict[str, list[str]] = Field(default_factory=dict)
    changed_files: dict[str, list[str]] = Field(default_factory=dict)

    def is_affected(self, module_id: str) -> bool:
        return module_id in self.affected

    @property
    def transitively_affected(self) -> list[str]:
        direct = set(self.directly_changed)
        return [m for m in self.affected if m not in direct]


class RefState(str, Enum):
    """Where a tag or branch exists after a release attempt."""

    ABSENT = "absent"
    LOCAL = "local"
    REMOTE = "remote"
    LOCAL_AND_REMOTE = "local+remote"


class ReleaseOutcome(BaseModel):
    """Terminal record of one module's release attempt.

    Attributes:
        module: Module identifier.
        version: Computed version, None if the attempt aborted before computing it.
        tag: Tag name for the computed version.
        branch: Version-line branch created by this attempt, if any.
        success: True when every step committed.
        error: Human-readable failure message.
        tag_state: Where the tag exists after the attempt (and any rollback).
        branch_state: Where the created branch exists after the attempt.
        irreversible: True when a remote ref was published and could not be
            rolled back automatically.
    """

    module: str
    version: str | None = None
    tag: str | None = None
    branch: str | None = None
    success: bool = False
    error: str | None = None
    tag_state: RefState = RefState.ABSENT
    branch_state: RefState = RefState.ABSENT
    irreversible: bool = False


class ReleaseSummary(BaseModel):
    """Result of releasing every opted-in affected module.

    Attributes:
        outcomes: One outcome per attempted module, in release order.
        not_enabled: Affected modules that have not opted in to releases.
        skipped: Opted-in modules not attempted because an earlier one failed.
    """

    outcomes: list[ReleaseOutcome] = Field(default_factory=list)
    not_enabled: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)

    @property
    def released(self) -> list[ReleaseOutcome]:
        return [o for o in self.outcomes if o.success]

    @property
    def failed(self) -> list[ReleaseOutcome]:
        return [o for o in self.outcomes if not o.success]

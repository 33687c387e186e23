"""Shared test fixtures."""

from __future__ import annotations

import fnmatch
from pathlib import Path

import pytest

from lazy_modules.config import Settings, load_settings
from lazy_modules.git import GitRunner
from lazy_modules.models import CommandResult
from lazy_modules.workspace import Workspace

ROOT_PYPROJECT = """\
[project]
name = "monorepo"
version = "0.0.0"

[tool.uv.workspace]
members = ["libs/*", "services/*"]

[tool.lazy-modules]
exclude-patterns = [".*\\\\.md"]

[tool.lazy-modules.modules.":services:app"]
enabled = true
tag-prefix = "app"

[tool.lazy-modules.modules.":libs:core"]
enabled = true
"""

MEMBERS = {
    "libs/core": '[project]\nname = "core"\nversion = "0.1.0"\ndependencies = ["requests>=2"]\n',
    "services/app": '[project]\nname = "app"\nversion = "0.1.0"\ndependencies = ["Core>=0.1"]\n',
    "services/auth": (
        '[project]\nname = "auth"\nversion = "0.1.0"\n'
        'dependencies = ["click"]\n\n[dependency-groups]\ndev = ["core"]\n'
    ),
}


class FakeGit(GitRunner):
    """In-memory stand-in for a repository and its origin.

    Understands the commands lazy-modules issues. Any command whose leading
    arguments match an entry of ``failures`` exits 1 instead.
    """

    def __init__(self, root: Path) -> None:
        super().__init__(root)
        self.branch = "main"
        self.dirty: list[str] = []
        self.refs: set[str] = {"origin/main", "main"}
        self.local_tags: set[str] = set()
        self.local_branches: set[str] = {"main"}
        self.remote_tags: set[str] = set()
        self.remote_branches: set[str] = {"main"}
        self.diffs: dict[tuple[str, ...], list[str]] = {}
        self.failures: list[tuple[str, ...]] = []
        self.calls: list[tuple[str, ...]] = []

    def fail(self, *prefix: str) -> None:
        self.failures.append(prefix)

    def execute(self, *args: str) -> CommandResult:
        self.calls.append(args)
        for prefix in self.failures:
            if args[: len(prefix)] == prefix:
                return CommandResult(success=False, exit_code=1, error_output="fatal: simulated")
        return self._dispatch(args)

    def _dispatch(self, args: tuple[str, ...]) -> CommandResult:
        if args[:2] == ("-c", "core.quotepath=off"):
            return CommandResult(success=True, output=list(self.diffs.get(args[2:], [])))
        command, rest = args[0], args[1:]
        if args == ("status", "--porcelain"):
            return CommandResult(success=True, output=list(self.dirty))
        if args == ("rev-parse", "--abbrev-ref", "HEAD"):
            return CommandResult(success=True, output=[self.branch])
        if args[:3] == ("rev-parse", "--verify", "--quiet"):
            exists = args[3] in self.refs
            return CommandResult(success=exists, exit_code=0 if exists else 1)
        if command == "tag":
            if rest[0] == "--list":
                return CommandResult(success=True, output=[rest[1]] if rest[1] in self.local_tags else [])
            if rest[0] == "-d":
                return self._remove(self.local_tags, rest[1])
            return self._add(self.local_tags, rest[0])
        if command == "branch":
            if rest[0] == "--list":
                found = rest[1] in self.local_branches
                return CommandResult(success=True, output=[f"  {rest[1]}"] if found else [])
            if rest[0] == "-D":
                return self._remove(self.local_branches, rest[1])
            return self._add(self.local_branches, rest[0])
        if command == "push":
            refspec = rest[1]
            if refspec.startswith("refs/tags/"):
                self.remote_tags.add(refspec[len("refs/tags/") :])
            else:
                self.remote_branches.add(refspec.split(":")[0][len("refs/heads/") :])
            return CommandResult(success=True)
        if args[:3] == ("ls-remote", "--tags", "--refs"):
            pattern = args[4]
            lines = [
                f"0123abcd\trefs/tags/{t}"
                for t in sorted(self.remote_tags)
                if fnmatch.fnmatchcase(f"refs/tags/{t}", pattern)
            ]
            return CommandResult(success=True, output=lines)
        raise AssertionError(f"unexpected git command: {args}")

    @staticmethod
    def _add(refs: set[str], name: str) -> CommandResult:
        if name in refs:
            return CommandResult(success=False, exit_code=128, error_output=f"fatal: '{name}' already exists")
        refs.add(name)
        return CommandResult(success=True)

    @staticmethod
    def _remove(refs: set[str], name: str) -> CommandResult:
        if name not in refs:
            return CommandResult(success=False, exit_code=1, error_output=f"error: '{name}' not found")
        refs.discard(name)
        return CommandResult(success=True)


def write_repo(root: Path, pyproject: str = ROOT_PYPROJECT, members: dict[str, str] = MEMBERS) -> None:
    (root / "pyproject.toml").write_text(pyproject)
    for rel_path, content in members.items():
        member = root / rel_path
        member.mkdir(parents=True)
        (member / "pyproject.toml").write_text(content)


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    """A uv workspace: libs/core, services/app → core, services/auth → core."""
    write_repo(tmp_path)
    return tmp_path


@pytest.fixture
def settings(repo: Path) -> Settings:
    return load_settings(repo)


@pytest.fixture
def workspace(repo: Path, settings: Settings) -> Workspace:
    return Workspace(repo, settings)


@pytest.fixture
def fake_git(repo: Path) -> FakeGit:
    return FakeGit(repo)


@pytest.fixture
def built(repo: Path) -> Path:
    """Give every member a non-empty dist/ directory."""
    for rel_path in MEMBERS:
        dist = repo / rel_path / "dist"
        dist.mkdir()
        (dist / "artifact.whl").write_text("")
    return repo

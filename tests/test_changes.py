"""Tests for lazy_modules.changes."""

from __future__ import annotations

from conftest import FakeGit
from lazy_modules.changes import BaseBranchResolver, ChangeSetCollector, filter_excluded
from lazy_modules.models import ChangeSet

COMMITTED = ("diff", "--name-only", "origin/main...HEAD")
STAGED = ("diff", "--name-only", "--cached")
UNTRACKED = ("ls-files", "--others", "--exclude-standard")


class TestBaseBranchResolver:
    def test_prefers_remote_tracking_ref(self, fake_git: FakeGit) -> None:
        assert BaseBranchResolver(fake_git).resolve("main") == "origin/main"

    def test_falls_back_to_local_branch(self, fake_git: FakeGit) -> None:
        fake_git.refs = {"main"}
        assert BaseBranchResolver(fake_git).resolve("main") == "main"

    def test_remote_ref_used_as_is(self, fake_git: FakeGit) -> None:
        fake_git.refs = {"origin/develop"}
        assert BaseBranchResolver(fake_git).resolve("origin/develop") == "origin/develop"

    def test_unresolvable(self, fake_git: FakeGit) -> None:
        fake_git.refs = set()
        assert BaseBranchResolver(fake_git).resolve("main") is None


class TestFilterExcluded:
    def test_full_match_only(self) -> None:
        files = ["README.md", "docs/guide.md", "src/md.py"]
        assert filter_excluded(files, [".*\\.md"]) == ["src/md.py"]

    def test_partial_match_is_kept(self) -> None:
        """Patterns must match the whole path."""
        assert filter_excluded(["src/generated/x.py"], ["generated"]) == ["src/generated/x.py"]

    def test_no_patterns(self) -> None:
        assert filter_excluded(["a", "b"], []) == ["a", "b"]


class TestFromWorkingTree:
    def test_unions_committed_staged_untracked(self, fake_git: FakeGit) -> None:
        fake_git.diffs[COMMITTED] = ["libs/core/a.py", "services/app/b.py"]
        fake_git.diffs[STAGED] = ["libs/core/a.py", "libs/core/c.py"]
        fake_git.diffs[UNTRACKED] = ["new.txt", "  "]
        changes = ChangeSetCollector(fake_git).from_working_tree("main")
        assert changes.files == ("libs/core/a.py", "libs/core/c.py", "new.txt", "services/app/b.py")

    def test_untracked_excluded_when_disabled(self, fake_git: FakeGit) -> None:
        fake_git.diffs[UNTRACKED] = ["new.txt"]
        changes = ChangeSetCollector(fake_git).from_working_tree("main", include_untracked=False)
        assert len(changes) == 0
        assert ("-c", "core.quotepath=off", *UNTRACKED) not in fake_git.calls

    def test_applies_excludes(self, fake_git: FakeGit) -> None:
        fake_git.diffs[COMMITTED] = ["README.md", "libs/core/a.py"]
        changes = ChangeSetCollector(fake_git).from_working_tree("main", exclude_patterns=[".*\\.md"])
        assert changes.files == ("libs/core/a.py",)

    def test_unresolvable_base_is_empty(self, fake_git: FakeGit) -> None:
        fake_git.refs = set()
        fake_git.diffs[STAGED] = ["libs/core/a.py"]
        assert ChangeSetCollector(fake_git).from_working_tree("main") == ChangeSet()

    def test_failed_query_contributes_nothing(self, fake_git: FakeGit) -> None:
        fake_git.diffs[STAGED] = ["libs/core/a.py"]
        fake_git.fail("-c", "core.quotepath=off", *COMMITTED)
        changes = ChangeSetCollector(fake_git).from_working_tree("main")
        assert changes.files == ("libs/core/a.py",)


class TestFromRef:
    def test_two_sided_diff_only(self, fake_git: FakeGit) -> None:
        fake_git.diffs[("diff", "--name-only", "abc123", "HEAD")] = ["services/app/b.py", ""]
        fake_git.diffs[STAGED] = ["libs/core/a.py"]
        changes = ChangeSetCollector(fake_git).from_ref("abc123")
        assert changes.files == ("services/app/b.py",)
        assert ("-c", "core.quotepath=off", *STAGED) not in fake_git.calls

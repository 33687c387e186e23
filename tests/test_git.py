"""Tests for lazy_modules.git."""

from __future__ import annotations

import subprocess
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from lazy_modules.errors import GitCommandError
from lazy_modules.git import GitReleaseExecutor, GitRunner


def _completed(returncode: int, stdout: str) -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(["git"], returncode, stdout=stdout)


class TestGitRunner:
    @patch("lazy_modules.git.subprocess.run")
    def test_blank_lines_dropped(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = _completed(0, "a.py\n\n  \nb.py\n")
        result = GitRunner(tmp_path).execute("diff", "--name-only")
        assert result.success
        assert result.output == ["a.py", "b.py"]
        args, kwargs = mock_run.call_args
        assert args[0] == ["git", "diff", "--name-only"]
        assert kwargs["cwd"] == tmp_path
        assert kwargs["env"]["GIT_TERMINAL_PROMPT"] == "0"

    @patch("lazy_modules.git.subprocess.run")
    def test_failure_never_raises(
        self, mock_run: MagicMock, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        mock_run.return_value = _completed(128, "fatal: bad revision\n")
        result = GitRunner(tmp_path).execute("diff", "nope")
        assert not result.success
        assert result.exit_code == 128
        assert result.output == []
        assert result.error_output == "fatal: bad revision"
        assert "exit code 128" in caplog.text

    @patch("lazy_modules.git.subprocess.run", side_effect=FileNotFoundError("git"))
    def test_missing_binary(self, mock_run: MagicMock, tmp_path: Path) -> None:
        result = GitRunner(tmp_path).execute("status")
        assert not result.success
        assert result.exit_code == -1

    @patch("lazy_modules.git.subprocess.run")
    def test_output_empty_on_failure(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = _completed(1, "error\n")
        assert GitRunner(tmp_path).output("tag", "--list") == []

    @patch("lazy_modules.git.subprocess.run")
    def test_check_raises(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = _completed(1, "rejected\n")
        with pytest.raises(GitCommandError) as exc_info:
            GitRunner(tmp_path).check("Failed to push", "push", "origin", "x")
        assert exc_info.value.command == ("push", "origin", "x")
        assert exc_info.value.exit_code == 1
        assert str(exc_info.value) == "Failed to push (exit 1): rejected"


@pytest.fixture
def mock_run() -> Iterator[MagicMock]:
    with patch("lazy_modules.git.subprocess.run") as mocked:
        mocked.return_value = _completed(0, "")
        yield mocked


@pytest.fixture
def executor(tmp_path: Path) -> GitReleaseExecutor:
    return GitReleaseExecutor(GitRunner(tmp_path), remote="upstream")


class TestGitReleaseExecutor:
    def test_clean_tree(self, executor: GitReleaseExecutor, mock_run: MagicMock) -> None:
        assert not executor.is_dirty()

    def test_dirty_tree(self, executor: GitReleaseExecutor, mock_run: MagicMock) -> None:
        mock_run.return_value = _completed(0, "?? new.py\n")
        assert executor.is_dirty()

    def test_failed_status_counts_as_dirty(self, executor: GitReleaseExecutor, mock_run: MagicMock) -> None:
        mock_run.return_value = _completed(128, "fatal: not a git repository\n")
        assert executor.is_dirty()

    def test_current_branch(self, executor: GitReleaseExecutor, mock_run: MagicMock) -> None:
        mock_run.return_value = _completed(0, "release/app/v0.1.x\n")
        assert executor.current_branch() == "release/app/v0.1.x"

    def test_push_tag_refspec(self, executor: GitReleaseExecutor, mock_run: MagicMock) -> None:
        executor.push_tag("release/app/v0.1.0")
        assert mock_run.call_args[0][0] == ["git", "push", "upstream", "refs/tags/release/app/v0.1.0"]

    def test_push_branch_refspec(self, executor: GitReleaseExecutor, mock_run: MagicMock) -> None:
        executor.push_branch("release/app/v0.1.x")
        assert mock_run.call_args[0][0] == [
            "git",
            "push",
            "upstream",
            "refs/heads/release/app/v0.1.x:refs/heads/release/app/v0.1.x",
        ]

    def test_delete_missing_branch_is_noop(self, executor: GitReleaseExecutor, mock_run: MagicMock) -> None:
        executor.delete_local_branch("release/app/v0.1.x")
        assert mock_run.call_count == 1

    def test_create_tag_failure_raises(self, executor: GitReleaseExecutor, mock_run: MagicMock) -> None:
        mock_run.return_value = _completed(128, "fatal: tag exists\n")
        with pytest.raises(GitCommandError, match="Failed to create local tag"):
            executor.create_tag_locally("release/app/v0.1.0")

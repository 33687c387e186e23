"""Tests for lazy_modules.saga."""

from __future__ import annotations

import pytest

from lazy_modules.errors import GitCommandError
from lazy_modules.saga import Saga


def _boom() -> None:
    raise GitCommandError("push failed", ("push",), 1, "rejected")


class TestSaga:
    def test_failed_action_not_recorded(self) -> None:
        saga = Saga()
        saga.run("first", lambda: None)
        with pytest.raises(GitCommandError):
            saga.run("second", _boom, lambda: None)
        assert saga.committed == ["first"]

    def test_rollback_reverse_order(self) -> None:
        undone: list[str] = []
        saga = Saga()
        saga.run("a", lambda: None, lambda: undone.append("a"))
        saga.run("b", lambda: None, lambda: undone.append("b"))
        saga.run("c", lambda: None)
        report = saga.rollback()
        assert undone == ["b", "a"]
        assert report.compensated == ["b", "a"]
        assert report.complete
        assert saga.committed == []

    def test_irreversible_step_reported(self) -> None:
        undone: list[str] = []
        saga = Saga()
        saga.run("tag", lambda: None, lambda: undone.append("tag"))
        saga.run("push", lambda: None, irreversible=True)
        report = saga.rollback()
        assert report.irreversible == ["push"]
        assert undone == ["tag"]
        assert not report.complete

    def test_failing_compensation_does_not_stop_rollback(self) -> None:
        undone: list[str] = []
        saga = Saga()
        saga.run("a", lambda: None, lambda: undone.append("a"))
        saga.run("b", lambda: None, _boom)
        report = saga.rollback()
        assert undone == ["a"]
        assert report.failed == [("b", "push failed (exit 1): rejected")]
        assert report.compensated == ["a"]

"""Tests for lazy_modules.latch."""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from lazy_modules.latch import OnceLatch


class TestOnceLatch:
    def test_single_claim(self) -> None:
        latch: OnceLatch[int] = OnceLatch()
        assert latch.claim()
        assert not latch.claim()

    def test_concurrent_callers_compute_once(self) -> None:
        latch: OnceLatch[str] = OnceLatch()
        calls: list[int] = []
        barrier = threading.Barrier(8)

        def compute() -> str:
            calls.append(1)
            time.sleep(0.05)
            return "result"

        def worker() -> str:
            barrier.wait()
            return latch.get_or_compute(compute)

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = [f.result() for f in [pool.submit(worker) for _ in range(8)]]

        assert calls == [1]
        assert results == ["result"] * 8
        assert latch.is_published

    def test_waiters_receive_error(self) -> None:
        latch: OnceLatch[str] = OnceLatch()
        started = threading.Event()

        def compute() -> str:
            started.set()
            time.sleep(0.05)
            raise RuntimeError("detection failed")

        errors: list[BaseException] = []

        def waiter() -> None:
            started.wait()
            try:
                latch.get_or_compute(lambda: "unused")
            except RuntimeError as exc:
                errors.append(exc)

        thread = threading.Thread(target=waiter)
        thread.start()
        with pytest.raises(RuntimeError, match="detection failed"):
            latch.get_or_compute(compute)
        thread.join()
        assert [str(e) for e in errors] == ["detection failed"]

    def test_later_callers_get_published_value(self) -> None:
        latch: OnceLatch[int] = OnceLatch()
        assert latch.get_or_compute(lambda: 1) == 1
        assert latch.get_or_compute(lambda: 2) == 1

    def test_wait_timeout(self) -> None:
        latch: OnceLatch[int] = OnceLatch()
        with pytest.raises(TimeoutError):
            latch.wait(timeout=0.01)

"""Single-assignment result shared between threads.

Change detection may be triggered from several threads at once. The first
caller claims the latch and computes; every other caller blocks until the
result (or the exception) is published and then receives the same thing.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Generic, TypeVar

T = TypeVar("T")


class OnceLatch(Generic[T]):
    """A value computed at most once, visible to all waiters once published."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._claimed = False
        self._published = threading.Event()
        self._value: T | None = None
        self._error: BaseException | None = None

    @property
    def is_published(self) -> bool:
        return self._published.is_set()

    def claim(self) -> bool:
        """Atomically claim the computation; True for exactly one caller."""
        with self._lock:
            if self._claimed:
                return False
            self._claimed = True
            return True

    def publish(self, value: T) -> None:
        self._value = value
        self._published.set()

    def fail(self, error: BaseException) -> None:
        self._error = error
        self._published.set()

    def wait(self, timeout: float | None = None) -> T:
        """Block until published; re-raise the computing caller's exception.

        Raises:
            TimeoutError: If nothing was published within ``timeout`` seconds.
        """
        if not self._published.wait(timeout):
            raise TimeoutError("Timed out waiting for a result to be published")
        if self._error is not None:
            raise self._error
        return self._value  # type: ignore[return-value]

    def get_or_compute(self, compute: Callable[[], T]) -> T:
        """Run ``compute`` if this caller wins the claim, else wait for the winner."""
        if not self.claim():
            return self.wait()
        try:
            value = compute()
        except BaseException as exc:
            self.fail(exc)
            raise
        self.publish(value)
        return value

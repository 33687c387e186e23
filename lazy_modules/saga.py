"""Forward steps paired with compensating actions.

A release mutates git state in several places that share no transaction.
Each forward step is recorded once it succeeds together with the action
that undoes it; on failure the recorded compensations run in reverse.
Steps whose effect cannot be undone (a ref already pushed to the remote)
are recorded as irreversible and reported instead of compensated.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from .errors import LazyModulesError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SagaStep:
    name: str
    compensate: Callable[[], None] | None = None
    irreversible: bool = False


@dataclass(slots=True)
class RollbackReport:
    """What a rollback could and could not undo.

    Attributes:
        compensated: Names of steps successfully undone, in undo order.
        irreversible: Names of committed steps that cannot be undone.
        failed: (step name, error message) for compensations that raised.
    """

    compensated: list[str] = field(default_factory=list)
    irreversible: list[str] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.irreversible and not self.failed


class Saga:
    """Ordered list of committed steps with their compensations."""

    def __init__(self) -> None:
        self._committed: list[SagaStep] = []

    @property
    def committed(self) -> list[str]:
        return [s.name for s in self._committed]

    def run(
        self,
        name: str,
        action: Callable[[], None],
        compensate: Callable[[], None] | None = None,
        *,
        irreversible: bool = False,
    ) -> None:
        """Run ``action``; record the step only if it returns normally."""
        action()
        self._committed.append(SagaStep(name, compensate, irreversible))

    def rollback(self) -> RollbackReport:
        """Undo committed steps in reverse order, best effort.

        A compensation that raises does not stop the rollback; the remaining
        steps are still attempted and the failure is reported.
        """
        report = RollbackReport()
        for saga_step in reversed(self._committed):
            if saga_step.irreversible:
                logger.error("Cannot roll back '%s' automatically", saga_step.name)
                report.irreversible.append(saga_step.name)
                continue
            if saga_step.compensate is None:
                continue
            try:
                saga_step.compensate()
            except LazyModulesError as exc:
                logger.error("Rollback of '%s' failed: %s", saga_step.name, exc)
                report.failed.append((saga_step.name, str(exc)))
            else:
                report.compensated.append(saga_step.name)
        self._committed.clear()
        return report

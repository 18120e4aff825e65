"""Compensating-write sequences for mutations that span more than one row.

The persistence port only guarantees per-row atomicity, so a mutation that
touches two rows is declared up front as an ordered list of steps, each with
the write that undoes it. When a step fails, the steps that already
completed are compensated in reverse order and the original error is raised.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from leave_tracker.exceptions import CompensationError

logger = logging.getLogger(__name__)


@dataclass
class SagaStep:
    name: str
    action: Callable[[], Awaitable[Any]]
    compensate: Callable[[Any], Awaitable[Any]] | None = None


@dataclass
class Saga:
    """Ordered dependent writes with a declared rollback order."""

    name: str
    steps: list[SagaStep] = field(default_factory=list)

    def step(
        self,
        name: str,
        action: Callable[[], Awaitable[Any]],
        compensate: Callable[[Any], Awaitable[Any]] | None = None,
    ) -> Saga:
        """Append a step; ``compensate`` receives the step's result."""
        self.steps.append(SagaStep(name=name, action=action, compensate=compensate))
        return self

    async def run(self) -> list[Any]:
        """Execute every step, returning their results in order."""
        completed: list[tuple[SagaStep, Any]] = []
        for saga_step in self.steps:
            try:
                result = await saga_step.action()
            except Exception:
                logger.warning(
                    "Saga %s failed at step %s; compensating %d completed step(s)",
                    self.name,
                    saga_step.name,
                    len(completed),
                )
                await self._compensate(completed)
                raise
            completed.append((saga_step, result))
        return [result for _, result in completed]

    async def _compensate(self, completed: list[tuple[SagaStep, Any]]) -> None:
        for saga_step, result in reversed(completed):
            if saga_step.compensate is None:
                continue
            try:
                await saga_step.compensate(result)
            except Exception as exc:
                logger.critical(
                    "Saga %s could not compensate step %s; manual reconciliation required",
                    self.name,
                    saga_step.name,
                    exc_info=True,
                )
                msg = f"Saga {self.name} left step {saga_step.name} uncompensated"
                raise CompensationError(msg, step=saga_step.name) from exc
            logger.info("Saga %s compensated step %s", self.name, saga_step.name)

"""Minimal saga runner: ordered steps with reverse-order compensation."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

StepAction = Callable[[dict[str, Any]], Awaitable[Any]]
Compensation = Callable[[dict[str, Any], Any], Awaitable[None]]


class StepFailed(Exception):
    """Raised by a step to fail the workflow and trigger compensation."""

    def __init__(self, step: str, message: str, *, reason: str | None = None, code: int | None = None) -> None:
        super().__init__(message)
        self.step = step
        self.message = message
        self.reason = reason
        self.code = code


@dataclass
class SagaStep:
    """
    One step of a saga.

    action receives the shared context and returns the step output,
    which is stored in the context under the step name. compensate
    receives the context and that output when a later step fails.
    """

    name: str
    action: StepAction
    compensate: Compensation | None = None


@dataclass
class SagaResult:
    """Outcome of a saga run."""

    context: dict[str, Any]
    completed: list[str] = field(default_factory=list)
    failed_step: str | None = None
    error: Exception | None = None
    compensated: list[str] = field(default_factory=list)
    compensation_errors: dict[str, str] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.failed_step is None


class Saga:
    """
    Runs steps in order; on StepFailed, compensates completed steps in reverse.

    Compensations are best-effort: a compensation that raises is logged
    and recorded, never retried, and does not stop the remaining ones.
    Exceptions other than StepFailed are programming or caller errors;
    they still trigger compensation and are then re-raised.
    """

    def __init__(self, name: str, steps: list[SagaStep]) -> None:
        self.name = name
        self.steps = steps

    async def run(self, context: dict[str, Any]) -> SagaResult:
        result = SagaResult(context=context)
        done: list[SagaStep] = []

        for step in self.steps:
            try:
                context[step.name] = await step.action(context)
            except StepFailed as e:
                logger.error(f"Saga {self.name}: step {step.name} failed: {e.message}")
                result.failed_step = step.name
                result.error = e
                await self._compensate(done, context, result)
                return result
            except Exception as e:
                logger.error(f"Saga {self.name}: step {step.name} raised {type(e).__name__}: {e}")
                result.failed_step = step.name
                result.error = e
                await self._compensate(done, context, result)
                raise

            done.append(step)
            result.completed.append(step.name)

        return result

    async def _compensate(
        self,
        done: list[SagaStep],
        context: dict[str, Any],
        result: SagaResult,
    ) -> None:
        for step in reversed(done):
            if step.compensate is None:
                continue
            try:
                await step.compensate(context, context.get(step.name))
                result.compensated.append(step.name)
                logger.info(f"Saga {self.name}: compensated step {step.name}")
            except Exception as e:
                result.compensation_errors[step.name] = str(e)
                logger.error(f"Saga {self.name}: compensation for {step.name} failed: {e}")

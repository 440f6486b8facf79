"""
Workflow step descriptors and the executor that classifies their failures
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional
from workflows.errors import ErrorCategory, handle_step_error
import logging

logger = logging.getLogger(__name__)

StepHandler = Callable[..., Awaitable[Any]]


@dataclass(frozen=True)
class StepContext:
    """Per-invocation data supplied by the runtime"""
    attempt: int = 1


@dataclass(frozen=True)
class WorkflowStep:
    """
    One unit of retry within a pipeline.

    Attributes:
        name: Step name used in logs
        handler: Coroutine function doing the work
        category: Dependency the step talks to; selects the classification rules
        max_retries: Retries allowed after the first attempt
        context: Pipeline tag prefixed to classified error messages
    """
    name: str
    handler: StepHandler
    category: ErrorCategory
    max_retries: int = 0
    context: Optional[str] = None


class StepExecutor:
    """
    Run a step once and turn any failure into RetryableError or FatalError.

    The executor never sleeps or loops; acting on the backoff hint belongs
    to the runtime that invoked it.
    """

    async def run(
        self,
        step: WorkflowStep,
        *args,
        context: Optional[StepContext] = None,
        **kwargs
    ) -> Any:
        context = context or StepContext()
        logger.debug(f"Running step {step.name} (attempt {context.attempt})")

        try:
            return await step.handler(*args, **kwargs)
        except Exception as e:
            handle_step_error(e, step.category, context.attempt, step.context)

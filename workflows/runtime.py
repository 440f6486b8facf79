"""
In-process step runtime.

Pipelines normally run under a durable workflow runtime that re-invokes
failed steps. When they run from the CLI or the scheduler this adapter
plays that role: it re-runs a step that raised ``RetryableError`` after
the hinted backoff, up to the step's ``max_retries``.
"""

import asyncio
import re
from typing import Any, Awaitable, Callable, Optional
from core.exceptions import RetryableError, RetryAfter
from workflows.steps import StepContext, StepExecutor, WorkflowStep
import logging

logger = logging.getLogger(__name__)

_DURATION = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)\s*$")
_UNIT_SECONDS = {"ms": 0.001, "s": 1, "m": 60, "h": 3600}


def retry_after_seconds(retry_after: RetryAfter) -> float:
    """
    Convert a backoff hint to seconds.

    >>> retry_after_seconds(1500)
    1.5
    >>> retry_after_seconds("1m")
    60.0
    """
    if isinstance(retry_after, (int, float)):
        return retry_after / 1000

    match = _DURATION.match(str(retry_after))
    if not match:
        raise ValueError(f"Invalid retry_after value: {retry_after!r}")

    value, unit = match.groups()
    return float(value) * _UNIT_SECONDS[unit]


class LocalStepRuntime:
    """Run steps with retries, sleeping between attempts"""

    def __init__(
        self,
        executor: Optional[StepExecutor] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self.executor = executor or StepExecutor()
        self.sleep = sleep

    async def run(self, step: WorkflowStep, *args, **kwargs) -> Any:
        attempt = 1
        while True:
            try:
                return await self.executor.run(
                    step, *args, context=StepContext(attempt=attempt), **kwargs
                )
            except RetryableError as e:
                if attempt > step.max_retries:
                    logger.error(f"Step {step.name} failed after {attempt} attempt(s): {e.message}")
                    raise

                delay = retry_after_seconds(e.retry_after)
                logger.warning(f"Retrying step {step.name} in {delay:.1f}s (attempt {attempt + 1})")
                await self.sleep(delay)
                attempt += 1

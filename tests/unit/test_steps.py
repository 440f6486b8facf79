"""
Unit tests for the step executor and the in-process runtime
"""

import pytest
from unittest.mock import AsyncMock
from core.exceptions import FatalError, FetchError, RetryableError
from workflows.errors import ErrorCategory
from workflows.runtime import LocalStepRuntime, retry_after_seconds
from workflows.steps import StepContext, StepExecutor, WorkflowStep


def step(handler, max_retries=3, category=ErrorCategory.UPSTREAM_SOURCE):
    return WorkflowStep("test-step", handler, category, max_retries=max_retries, context="TEST")


class TestStepExecutor:

    @pytest.mark.asyncio
    async def test_returns_handler_result(self):
        handler = AsyncMock(return_value=42)

        result = await StepExecutor().run(step(handler), "a", key="b")

        assert result == 42
        handler.assert_awaited_once_with("a", key="b")

    @pytest.mark.asyncio
    async def test_uses_attempt_from_context(self):
        handler = AsyncMock(side_effect=ConnectionError("ECONNRESET"))

        with pytest.raises(RetryableError) as exc_info:
            await StepExecutor().run(step(handler), context=StepContext(attempt=3))

        assert exc_info.value.retry_after == 9000

    @pytest.mark.asyncio
    async def test_fatal_error_raised(self):
        handler = AsyncMock(side_effect=FetchError("https://example.com/a.zip", 403))

        with pytest.raises(FatalError):
            await StepExecutor().run(step(handler))

        handler.assert_awaited_once()


class TestLocalStepRuntime:

    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        sleep = AsyncMock()
        handler = AsyncMock(side_effect=[ConnectionError("ECONNRESET"), ConnectionError("ECONNRESET"), "ok"])

        result = await LocalStepRuntime(sleep=sleep).run(step(handler))

        assert result == "ok"
        assert handler.await_count == 3
        assert [call.args[0] for call in sleep.await_args_list] == [1.0, 4.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        sleep = AsyncMock()
        handler = AsyncMock(side_effect=ConnectionError("ECONNRESET"))

        with pytest.raises(RetryableError):
            await LocalStepRuntime(sleep=sleep).run(step(handler, max_retries=2))

        assert handler.await_count == 3
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_fatal_stops_immediately(self):
        sleep = AsyncMock()
        handler = AsyncMock(side_effect=FetchError("https://example.com/a.zip", 401))

        with pytest.raises(FatalError):
            await LocalStepRuntime(sleep=sleep).run(step(handler))

        assert handler.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_duration_hint(self):
        sleep = AsyncMock()
        handler = AsyncMock(side_effect=[FetchError("https://example.com/a.zip", 429), "ok"])

        await LocalStepRuntime(sleep=sleep).run(step(handler))

        sleep.assert_awaited_once_with(30.0)


@pytest.mark.parametrize("hint, seconds", [
    (1000, 1.0),
    (250, 0.25),
    ("30s", 30.0),
    ("1m", 60.0),
    ("500ms", 0.5),
])
def test_retry_after_seconds(hint, seconds):
    assert retry_after_seconds(hint) == seconds


def test_retry_after_rejects_garbage():
    with pytest.raises(ValueError):
        retry_after_seconds("soon")

from unittest.mock import AsyncMock, call

import pytest

from frameperfect.exceptions import (
    PaymentRequiredError,
    ProviderError,
    RateLimitedError,
)
from frameperfect.services.retry import RetryPolicy


class TestRetryPolicy:
    @pytest.mark.asyncio
    async def test_retries_rate_limits_then_succeeds(self, retry: RetryPolicy, sleep: AsyncMock):
        fn = AsyncMock(side_effect=[RateLimitedError("429"), RateLimitedError("429"), "ok"])

        result = await retry.call(fn)

        assert result == "ok"
        assert fn.await_count == 3
        assert sleep.await_args_list == [call(1.0), call(2.0)]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, retry: RetryPolicy, sleep: AsyncMock):
        fn = AsyncMock(side_effect=RateLimitedError("429"))

        with pytest.raises(RateLimitedError):
            await retry.call(fn)

        assert fn.await_count == 3
        assert sleep.await_args_list == [call(1.0), call(2.0)]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [PaymentRequiredError("402"), ProviderError("500"), ValueError("bad")],
    )
    async def test_other_errors_are_not_retried(self, retry: RetryPolicy, sleep: AsyncMock, error):
        fn = AsyncMock(side_effect=error)

        with pytest.raises(type(error)):
            await retry.call(fn)

        assert fn.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_success_on_first_attempt_does_not_sleep(self, retry: RetryPolicy, sleep: AsyncMock):
        fn = AsyncMock(return_value=42)
        assert await retry.call(fn) == 42
        sleep.assert_not_awaited()

    def test_delay_doubles(self):
        policy = RetryPolicy(initial_delay=0.5)
        assert [policy.delay_for(k) for k in (1, 2, 3)] == [0.5, 1.0, 2.0]

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)

    def test_from_settings(self, settings):
        policy = RetryPolicy.from_settings(settings)
        assert policy.max_attempts == 3
        assert policy.initial_delay == settings.ai_retry_delay

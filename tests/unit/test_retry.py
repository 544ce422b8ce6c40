import asyncio

import pytest

from authcore.application.retry import call_with_retry
from authcore.domain.errors import DependencyUnavailable
from authcore.domain.policy import RetryPolicy


async def test_transient_failure_is_retried():
    calls = []

    async def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise DependencyUnavailable("blip")
        return "ok"

    result = await call_with_retry(
        flaky, policy=RetryPolicy(attempts=3, base=0.0), timeout=1.0, what="flaky"
    )

    assert result == "ok"
    assert len(calls) == 3


async def test_exhausted_retries_raise_dependency_unavailable():
    async def slow():
        await asyncio.sleep(1)

    with pytest.raises(DependencyUnavailable, match="retries exhausted"):
        await call_with_retry(
            slow, policy=RetryPolicy(attempts=2, base=0.0), timeout=0.01, what="slow"
        )


async def test_other_errors_are_not_retried():
    calls = []

    async def broken():
        calls.append(1)
        raise LookupError("bug")

    with pytest.raises(LookupError):
        await call_with_retry(
            broken, policy=RetryPolicy(attempts=3, base=0.0), timeout=1.0, what="broken"
        )
    assert len(calls) == 1


def test_backoff_is_exponential_and_capped():
    policy = RetryPolicy(attempts=5, base=0.1, max_delay=0.3)

    assert [policy.compute_delay(i) for i in range(4)] == pytest.approx([0.1, 0.2, 0.3, 0.3])

from __future__ import annotations

import pytest

from dm_service.application.exceptions import TransientIOError, ValidationError
from dm_service.client.retry import RetryPolicy


class Flaky:
    def __init__(self, failures: list[Exception]) -> None:
        self.failures = failures
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return "ok"


def test_delay_is_exponential_and_capped():
    policy = RetryPolicy(attempts=5, base_delay=0.5, max_delay=3.0)
    assert [policy.delay_for(i) for i in range(4)] == [0.5, 1.0, 2.0, 3.0]


@pytest.mark.asyncio
async def test_retries_transient_errors():
    delays: list[float] = []

    async def sleep(d):
        delays.append(d)

    op = Flaky([TransientIOError("blip"), TransientIOError("blip")])
    assert await RetryPolicy(attempts=3).run(op, sleep=sleep) == "ok"
    assert op.calls == 3
    assert delays == [0.5, 1.0]


@pytest.mark.asyncio
async def test_gives_up_after_attempts():
    async def sleep(_):
        return None

    op = Flaky([TransientIOError("down")] * 5)
    with pytest.raises(TransientIOError):
        await RetryPolicy(attempts=2).run(op, sleep=sleep)
    assert op.calls == 2


@pytest.mark.asyncio
async def test_does_not_retry_permanent_errors():
    async def sleep(_):
        raise AssertionError("should not sleep")

    op = Flaky([ValidationError("bad")])
    with pytest.raises(ValidationError):
        await RetryPolicy().run(op, sleep=sleep)
    assert op.calls == 1

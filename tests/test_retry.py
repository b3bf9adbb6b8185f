import pytest

from memory_ai.errors import InitializationError, NetworkError
from memory_ai.retry import with_retry


class Flaky:
    def __init__(self, errors, result="ok"):
        self.errors = list(errors)
        self.calls = 0
        self.result = result

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


@pytest.mark.asyncio
async def test_non_recoverable_called_once():
    fn = Flaky([InitializationError("engine")] * 3)
    with pytest.raises(InitializationError):
        await with_retry(fn, delay=0)
    assert fn.calls == 1


@pytest.mark.asyncio
async def test_recoverable_retried_until_success():
    fn = Flaky([NetworkError("a"), NetworkError("b")], result=42)
    attempts = []

    result = await with_retry(fn, delay=0, on_retry=lambda n, e: attempts.append(n))

    assert result == 42
    assert fn.calls == 3
    assert attempts == [1, 2]


@pytest.mark.asyncio
async def test_exhausted_attempts_propagate_last_error():
    last = NetworkError("third")
    fn = Flaky([NetworkError("first"), NetworkError("second"), last])

    with pytest.raises(NetworkError) as exc_info:
        await with_retry(fn, max_attempts=3, delay=0)
    assert exc_info.value is last
    assert fn.calls == 3


@pytest.mark.asyncio
async def test_should_retry_override():
    fn = Flaky([ValueError("x"), ValueError("y")])
    assert await with_retry(fn, delay=0, should_retry=lambda e: isinstance(e, ValueError)) == "ok"

    fn = Flaky([NetworkError("x")])
    with pytest.raises(NetworkError):
        await with_retry(fn, delay=0, should_retry=lambda e: False)
    assert fn.calls == 1


@pytest.mark.asyncio
async def test_backoff_delays(monkeypatch):
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    monkeypatch.setattr("memory_ai.retry.asyncio.sleep", fake_sleep)
    fn = Flaky([NetworkError("x")] * 4)

    await with_retry(fn, max_attempts=5, delay=1.0, backoff_multiplier=3.0, max_delay=5.0)
    assert sleeps == [1.0, 3.0, 5.0, 5.0]


@pytest.mark.asyncio
async def test_async_on_retry_is_awaited():
    seen = []

    async def on_retry(attempt, error):
        seen.append(str(error))

    await with_retry(Flaky([NetworkError("blip")]), delay=0, on_retry=on_retry)
    assert seen == ["Network error: blip"]


@pytest.mark.asyncio
async def test_max_attempts_validated():
    with pytest.raises(ValueError):
        await with_retry(Flaky([]), max_attempts=0)

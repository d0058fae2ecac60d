import pytest

from shared.utils.retry import retry_async


@pytest.mark.asyncio
async def test_retry_until_success():
    attempts = []

    async def connect():
        attempts.append(1)
        if len(attempts) < 3:
            raise ConnectionError("not yet")
        return "connected"

    retried = []
    result = await retry_async(
        connect,
        retries=5,
        base_delay=0,
        on_retry=lambda attempt, exc, sleep_for: retried.append(attempt),
    )

    assert result == "connected"
    assert retried == [1, 2]


@pytest.mark.asyncio
async def test_retry_gives_up():
    async def connect():
        raise ConnectionError("down")

    with pytest.raises(ConnectionError):
        await retry_async(connect, retries=2, base_delay=0)


@pytest.mark.asyncio
async def test_non_matching_errors_are_not_retried():
    calls = []

    async def connect():
        calls.append(1)
        raise KeyError("config")

    with pytest.raises(KeyError):
        await retry_async(connect, retries=3, base_delay=0, retry_on=(ConnectionError,))
    assert calls == [1]

import asyncio

import pytest

from gate import CompletionToken, SpecTimeout


def test_token_fired_before_wait_returns_immediately():
    token = CompletionToken()
    token()

    asyncio.run(token.wait(0.01))

    assert token.fired
    assert token.calls == 1


def test_token_releases_waiter_when_invoked_later():
    async def scenario():
        token = CompletionToken()
        asyncio.get_running_loop().call_later(0.01, token)
        await token.wait(1.0)
        return token

    token = asyncio.run(scenario())
    assert token.fired
    assert token.error is None


def test_token_never_invoked_times_out():
    token = CompletionToken("done callback of 'x'")

    with pytest.raises(SpecTimeout) as excinfo:
        asyncio.run(token.wait(0.02))

    assert token.expired
    assert "done callback of 'x'" in str(excinfo.value)
    assert excinfo.value.timeout == 0.02


def test_late_and_repeated_invocations_are_ignored():
    async def scenario():
        token = CompletionToken()
        with pytest.raises(SpecTimeout):
            await token.wait(0.01)
        token()
        token()
        return token

    token = asyncio.run(scenario())
    assert token.calls == 2
    assert not token.fired


def test_repeated_invocation_resumes_once():
    resumed = []

    async def scenario():
        token = CompletionToken()
        loop = asyncio.get_running_loop()
        loop.call_soon(token)
        loop.call_soon(token)
        await token.wait(1.0)
        resumed.append(True)
        await asyncio.sleep(0.01)
        return token

    token = asyncio.run(scenario())
    assert resumed == [True]
    assert token.calls == 2


def test_fail_records_error_and_releases():
    async def scenario():
        token = CompletionToken()
        asyncio.get_running_loop().call_soon(token.fail, "feed exploded")
        await token.wait(1.0)
        return token

    token = asyncio.run(scenario())
    assert token.fired
    assert token.error == "feed exploded"


def test_token_invoked_from_worker_thread():
    async def scenario():
        token = CompletionToken()
        loop = asyncio.get_running_loop()
        waiter = asyncio.ensure_future(token.wait(1.0))
        await asyncio.sleep(0)
        await loop.run_in_executor(None, token)
        await waiter
        return token

    assert asyncio.run(scenario()).fired


def test_second_waiter_is_rejected():
    async def scenario():
        token = CompletionToken()
        first = asyncio.ensure_future(token.wait(1.0))
        await asyncio.sleep(0)
        with pytest.raises(RuntimeError):
            await token.wait(1.0)
        token()
        await first

    asyncio.run(scenario())

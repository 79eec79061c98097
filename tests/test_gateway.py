import asyncio

import pytest

from agent_wallet.core.gateway import BoundedRequestGateway, _describe
from agent_wallet.errors import RequestTimedOut, UserRejected
from fakes import FakeTransport

REQUEST = {"method": "personal_sign", "params": ["0x68656c6c6f", "0x1"]}


def test_returns_wallet_answer():
    transport = FakeTransport(response="0xsig")
    gateway = BoundedRequestGateway(transport)
    assert asyncio.run(gateway.send("topic", "eip155:1", REQUEST)) == "0xsig"
    assert transport.requests == [("topic", "eip155:1", REQUEST)]


def test_wallet_error_becomes_rejection():
    gateway = BoundedRequestGateway(FakeTransport(error=RuntimeError("User rejected the request")))
    with pytest.raises(UserRejected, match="User rejected the request"):
        asyncio.run(gateway.send("topic", "eip155:1", REQUEST))


def test_timeout_with_liveness_notifications():
    statuses = []
    gateway = BoundedRequestGateway(
        FakeTransport(delay=5),
        poll_interval=0.02,
        timeout=0.15,
        on_waiting=statuses.append,
    )
    with pytest.raises(RequestTimedOut, match="0.15 seconds"):
        asyncio.run(gateway.send("topic", "eip155:1", REQUEST))

    assert statuses, "expected at least one liveness notification"
    for status in statuses:
        assert status["waiting"] is True
        assert status["timeout"] == 150
        assert 0 < status["elapsed"] < 150


def test_no_liveness_after_answer():
    statuses = []
    gateway = BoundedRequestGateway(
        FakeTransport(response="ok", delay=0.01),
        poll_interval=0.05,
        timeout=1,
        on_waiting=statuses.append,
    )

    async def run():
        result = await gateway.send("topic", "eip155:1", REQUEST)
        await asyncio.sleep(0.12)
        return result

    assert asyncio.run(run()) == "ok"
    assert statuses == []


def test_per_call_timeout_message_in_minutes():
    gateway = BoundedRequestGateway(FakeTransport(delay=1), timeout=300)
    with pytest.raises(RequestTimedOut) as exc_info:
        asyncio.run(gateway.send("topic", "eip155:1", REQUEST, timeout=0.01))
    assert "user did not respond" in exc_info.value.message


def test_timeout_describes_minutes():
    assert _describe(300) == "5 minutes"
    assert _describe(60) == "1 minute"
    assert _describe(2.5) == "2.5 seconds"


def test_no_liveness_after_timeout():
    statuses = []
    poll_interval = 0.02
    gateway = BoundedRequestGateway(
        FakeTransport(delay=5),
        poll_interval=poll_interval,
        timeout=0.1,
        on_waiting=statuses.append,
    )

    async def run():
        with pytest.raises(RequestTimedOut):
            await gateway.send("topic", "eip155:1", REQUEST)
        emitted = len(statuses)
        await asyncio.sleep(3 * poll_interval)
        return emitted

    emitted = asyncio.run(run())
    assert emitted > 0
    assert len(statuses) == emitted

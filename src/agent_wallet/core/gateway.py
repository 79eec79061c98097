"""Bounded wallet requests: a signing call raced against a deadline.

While the user is deciding, a liveness notification is emitted every poll
interval so that whoever drives the agent can tell the call is still alive.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Callable, Optional

from agent_wallet.core.transport import SigningTransport
from agent_wallet.errors import RequestTimedOut, UserRejected, WalletError

logger = logging.getLogger("agent_wallet.core.gateway")

DEFAULT_POLL_INTERVAL = 10.0
DEFAULT_TIMEOUT = 300.0

WaitingCallback = Callable[[dict[str, Any]], None]


def _describe(seconds: float) -> str:
    if seconds >= 60 and seconds % 60 == 0:
        minutes = int(seconds // 60)
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    return f"{seconds:g} seconds"


def _discard_late_result(task: asyncio.Future) -> None:
    # The wallet may still answer after we gave up; that answer is ignored.
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug(f"Ignoring late failure of abandoned request: {exc}")
    else:
        logger.debug("Ignoring late response of abandoned request")


class BoundedRequestGateway:
    """Sends requests to the wallet with a timeout and periodic status.

    Parameters
    ----------
    transport:
        The remote signing transport.
    poll_interval:
        Seconds between liveness notifications.
    timeout:
        Seconds before a pending request is given up on.
    on_waiting:
        Called with ``{"waiting": True, "elapsed": ms, "timeout": ms}`` at
        each poll interval. Purely observational.
    """

    def __init__(
        self,
        transport: SigningTransport,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: float = DEFAULT_TIMEOUT,
        on_waiting: Optional[WaitingCallback] = None,
    ) -> None:
        self.transport = transport
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.on_waiting = on_waiting

    async def _report_liveness(self, started: float, poll_interval: float, timeout: float) -> None:
        loop = asyncio.get_running_loop()
        while True:
            await asyncio.sleep(poll_interval)
            elapsed = loop.time() - started
            if elapsed >= timeout:
                return
            if self.on_waiting is not None:
                try:
                    self.on_waiting(
                        {"waiting": True, "elapsed": int(elapsed * 1000), "timeout": int(timeout * 1000)}
                    )
                except Exception as e:
                    logger.error(f"Waiting callback error: {e}")

    async def send(
        self,
        topic: str,
        chain_id: str,
        request: dict[str, Any],
        *,
        poll_interval: Optional[float] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """Issue *request* and return the wallet's answer.

        Raises :class:`RequestTimedOut` if no answer arrives within the
        timeout, or :class:`UserRejected` if the wallet (or transport)
        reports an error. The first of the two to happen wins.
        """
        poll_interval = self.poll_interval if poll_interval is None else poll_interval
        timeout = self.timeout if timeout is None else timeout

        loop = asyncio.get_running_loop()
        started = loop.time()
        pending = asyncio.ensure_future(self.transport.request(topic, chain_id, request))
        ticker = asyncio.create_task(self._report_liveness(started, poll_interval, timeout))
        try:
            done, _ = await asyncio.wait({pending}, timeout=timeout)
        finally:
            ticker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await ticker

        if pending not in done:
            pending.add_done_callback(_discard_late_result)
            logger.info(f"Request {request.get('method')} on {chain_id} timed out after {timeout}s")
            raise RequestTimedOut(
                f"Request timed out after {_describe(timeout)} -- user did not respond",
                method=request.get("method"),
            )

        try:
            return pending.result()
        except WalletError:
            raise
        except Exception as exc:
            raise UserRejected(str(exc) or exc.__class__.__name__, method=request.get("method")) from exc

"""In-memory stand-ins for the signing transport and the Solana RPC."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional

from solders.hash import Hash

from agent_wallet.core.transport import ApprovedSession, PairingProposal

EVM_ADDRESS = "0x" + "ab" * 20
RECIPIENT = "0x" + "cd" * 20
TOPIC = "a" * 64


class FakeTransport:
    """Answers every request with ``response`` (or raises ``error``).

    ``response`` may also be a callable ``request -> answer``. ``delay``
    keeps the request pending for that many seconds first.
    """

    def __init__(
        self,
        response: Any = "0xabc123",
        error: Optional[Exception] = None,
        delay: float = 0.0,
        approved: Optional[ApprovedSession] = None,
        dead_topics: tuple[str, ...] = (),
    ) -> None:
        self.response = response
        self.error = error
        self.delay = delay
        self.approved = approved
        self.dead_topics = set(dead_topics)
        self.requests: list[tuple[str, str, dict]] = []
        self.connected_with: Optional[dict] = None
        self.closed = False

    async def connect(self, required_namespaces):
        self.connected_with = required_namespaces

        async def _approval() -> ApprovedSession:
            return self.approved

        return PairingProposal(uri="wc:test@2?relay-protocol=irn", approval=_approval)

    async def request(self, topic: str, chain_id: str, request: dict) -> Any:
        self.requests.append((topic, chain_id, request))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if callable(self.response):
            return self.response(request)
        return self.response

    async def ping(self, topic: str) -> None:
        if topic in self.dead_topics:
            raise ConnectionError("peer unreachable")

    async def close(self) -> None:
        self.closed = True


def build_transport(config) -> FakeTransport:
    """Transport factory usable from ``transport.factory`` in config.yaml."""
    return FakeTransport(response="0xfeedface")


class FakeSolanaRpc:
    """Scripted Solana RPC. Set ``*_error`` attributes to make a call fail."""

    def __init__(
        self,
        fees: Optional[list[int]] = None,
        account_info: Optional[dict] = None,
        blockhash: Optional[str] = None,
    ) -> None:
        self.fees = [] if fees is None else fees
        self.account_info = account_info
        self.blockhash = blockhash or str(Hash.default())
        self.fee_error: Optional[Exception] = None
        self.account_error: Optional[Exception] = None
        self.blockhash_error: Optional[Exception] = None
        self.probed: list[str] = []

    async def __aenter__(self) -> FakeSolanaRpc:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None

    async def get_latest_blockhash(self) -> str:
        if self.blockhash_error is not None:
            raise self.blockhash_error
        return self.blockhash

    async def get_account_info(self, pubkey: str) -> Optional[dict]:
        self.probed.append(pubkey)
        if self.account_error is not None:
            raise self.account_error
        return self.account_info

    async def get_recent_prioritization_fees(self) -> list[int]:
        if self.fee_error is not None:
            raise self.fee_error
        return list(self.fees)

    async def get_balance(self, pubkey: str) -> int:
        return 0

    async def get_token_account_balance(self, pubkey: str) -> int:
        return 0


def rpc_factory(rpc: FakeSolanaRpc) -> Callable[[str], FakeSolanaRpc]:
    return lambda rpc_url: rpc

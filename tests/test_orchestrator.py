import asyncio

import pytest
from solders.pubkey import Pubkey

from agent_wallet.core.gateway import BoundedRequestGateway
from agent_wallet.core.orchestrator import TransactionOrchestrator, TransferResult
from agent_wallet.storage.models import Session
from agent_wallet.wallet.chains import SOLANA_MAINNET
from agent_wallet.wallet.resolver import AddressResolver
from fakes import EVM_ADDRESS, RECIPIENT, TOPIC, FakeSolanaRpc, FakeTransport, rpc_factory

SOLANA_RECIPIENT = str(Pubkey.new_unique())


def _orchestrator(store, transport=None, lookup=None, solana=None, timeout=300.0):
    gateway = BoundedRequestGateway(transport, timeout=timeout) if transport is not None else None
    return TransactionOrchestrator(
        store,
        gateway,
        resolver=AddressResolver(lookup=lookup),
        solana_rpc=rpc_factory(solana or FakeSolanaRpc()),
    )


def _send(orchestrator, **kwargs) -> TransferResult:
    kwargs.setdefault("topic", TOPIC)
    return asyncio.run(orchestrator.send_transfer(**kwargs))


class TestSent:
    def test_native_eth(self, store, session):
        transport = FakeTransport(response="0xhash")
        result = _send(_orchestrator(store, transport), to=RECIPIENT, amount="0.01")

        assert result.ok
        assert result.to_dict() == {
            "status": "sent",
            "txHash": "0xhash",
            "chain": "eip155:1",
            "from": EVM_ADDRESS,
            "to": RECIPIENT,
            "amount": "0.01",
            "token": "ETH",
        }
        _, chain_id, request = transport.requests[0]
        assert chain_id == "eip155:1"
        assert request["method"] == "eth_sendTransaction"
        assert request["params"][0]["value"] == hex(10**16)

    def test_token_on_base(self, store, session):
        transport = FakeTransport(response="0xhash")
        result = _send(
            _orchestrator(store, transport),
            to=RECIPIENT,
            amount="5",
            chain_id="eip155:8453",
            token="usdc",
        )
        assert result.status == "sent"
        assert result.token == "USDC"
        _, chain_id, request = transport.requests[0]
        assert chain_id == "eip155:8453"
        tx = request["params"][0]
        assert tx["to"] == "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
        assert tx["data"].startswith("0xa9059cbb")

    def test_ens_recipient(self, store, session):
        async def lookup(name):
            return RECIPIENT if name == "vitalik.eth" else None

        result = _send(
            _orchestrator(store, FakeTransport(), lookup=lookup), to="vitalik.eth", amount="1"
        )
        assert result.status == "sent"
        assert result.to == RECIPIENT
        assert result.to_dict()["ens"] == "vitalik.eth"

    def test_solana_with_explorer_link(self, store, session, solana_address, solana_recipient):
        transport = FakeTransport(response={"signature": "5abcSig"})
        result = _send(
            _orchestrator(store, transport, solana=FakeSolanaRpc(fees=[5])),
            to=solana_recipient,
            amount="0.1",
            chain_id=SOLANA_MAINNET,
        )
        assert result.status == "sent"
        assert result.tx_hash == "5abcSig"
        assert result.explorer == "https://solscan.io/tx/5abcSig"
        assert result.from_address == solana_address
        _, chain_id, request = transport.requests[0]
        assert chain_id == SOLANA_MAINNET
        assert request["method"] == "solana_signAndSendTransaction"
        assert isinstance(request["params"]["transaction"], str)


class TestRejected:
    def test_wallet_declines(self, store, session):
        result = _send(
            _orchestrator(store, FakeTransport(error=RuntimeError("User rejected"))),
            to=RECIPIENT,
            amount="1",
        )
        assert result.status == "rejected"
        assert "User rejected" in result.error
        assert result.tx_hash is None

    def test_timeout(self, store, session):
        result = _send(
            _orchestrator(store, FakeTransport(delay=5), timeout=0.05), to=RECIPIENT, amount="1"
        )
        assert result.status == "rejected"
        assert "timed out" in result.error


class TestError:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"to": RECIPIENT, "amount": "1", "token": "DOGE"},
            {"to": RECIPIENT, "amount": "1", "token": "WBTC", "chain_id": "eip155:8453"},
            {"to": RECIPIENT, "amount": "1", "chain_id": "eip155:999999"},
            {"to": RECIPIENT, "amount": "-1"},
            {"to": RECIPIENT, "amount": "lots"},
            {"to": "0x1234", "amount": "1"},
            {"to": "", "amount": "1"},
            {"to": RECIPIENT, "amount": "1", "chain_id": "eip155:10"},
            {"to": "not-a-pubkey", "amount": "1", "chain_id": SOLANA_MAINNET},
            {"to": RECIPIENT, "amount": "1", "topic": "unknown-topic"},
            {"to": SOLANA_RECIPIENT, "amount": "20000000000", "chain_id": SOLANA_MAINNET},
            {"to": SOLANA_RECIPIENT, "amount": "20000000000000", "chain_id": SOLANA_MAINNET, "token": "USDC"},
        ],
    )
    def test_nothing_reaches_the_wallet(self, store, session, kwargs):
        transport = FakeTransport()
        result = _send(_orchestrator(store, transport), **kwargs)
        assert result.status == "error"
        assert result.error
        assert transport.requests == []

    def test_no_transport(self, store, session):
        result = _send(_orchestrator(store, None), to=RECIPIENT, amount="1")
        assert result.status == "error"

    def test_unresolvable_name(self, store, session):
        async def lookup(name):
            return None

        transport = FakeTransport()
        result = _send(_orchestrator(store, transport, lookup=lookup), to="nobody.eth", amount="1")
        assert result.status == "error"
        assert "nobody.eth" in result.error
        assert transport.requests == []

    def test_blockhash_failure_is_an_error(self, store, session, solana_recipient):
        rpc = FakeSolanaRpc()
        rpc.blockhash_error = RuntimeError("down")
        transport = FakeTransport()
        result = _send(
            _orchestrator(store, transport, solana=rpc),
            to=solana_recipient,
            amount="1",
            chain_id=SOLANA_MAINNET,
        )
        assert result.status == "error"
        assert transport.requests == []

    def test_missing_solana_account(self, store, solana_recipient):
        store.save(TOPIC, Session(accounts=[f"eip155:1:{EVM_ADDRESS}"]))
        result = _send(
            _orchestrator(store, FakeTransport()),
            to=solana_recipient,
            amount="1",
            chain_id=SOLANA_MAINNET,
        )
        assert result.status == "error"
        assert result.error == "No Solana account found"

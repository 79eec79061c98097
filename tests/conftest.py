"""Shared fixtures for the Agent Wallet test suite."""

from __future__ import annotations

import pytest
from solders.pubkey import Pubkey

from agent_wallet.storage.models import Session
from agent_wallet.storage.sessions import SessionStore
from agent_wallet.wallet.chains import SOLANA_MAINNET
from fakes import EVM_ADDRESS, TOPIC


@pytest.fixture
def solana_address() -> str:
    return str(Pubkey.new_unique())


@pytest.fixture
def solana_recipient() -> str:
    return str(Pubkey.new_unique())


@pytest.fixture
def store(tmp_path) -> SessionStore:
    return SessionStore(tmp_path / "sessions.json")


@pytest.fixture
def session(store, solana_address) -> Session:
    """A saved session with an Ethereum, a Base and a Solana account."""
    s = Session(
        accounts=[
            f"eip155:1:{EVM_ADDRESS}",
            f"eip155:8453:{EVM_ADDRESS}",
            f"{SOLANA_MAINNET}:{solana_address}",
        ],
        chains=["eip155:1", "eip155:8453", SOLANA_MAINNET],
        peer_name="Test Wallet",
    )
    return store.save(TOPIC, s)

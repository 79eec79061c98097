from decimal import Decimal

import pytest

from agent_wallet.errors import UnsupportedToken
from agent_wallet.wallet.accounts import parse
from agent_wallet.wallet.chains import get_chain
from agent_wallet.wallet.evm import TRANSFER_SELECTOR, build_evm_transfer, encode_transfer_call
from agent_wallet.wallet.transfers import TransferIntent
from fakes import EVM_ADDRESS, RECIPIENT


def _intent(amount: str, symbol=None, chain_id="eip155:1") -> TransferIntent:
    return TransferIntent(
        from_account=parse(f"{chain_id}:{EVM_ADDRESS}"),
        recipient=RECIPIENT,
        chain=get_chain(chain_id),
        amount=Decimal(amount),
        symbol=symbol,
    )


def test_selector():
    assert TRANSFER_SELECTOR.hex() == "a9059cbb"


def test_native_transfer_has_value_and_no_data():
    encoded = build_evm_transfer(_intent("0.01"))
    tx = encoded.to_tx()
    assert tx == {"from": EVM_ADDRESS, "to": RECIPIENT, "value": hex(10**16)}
    assert encoded.token == "ETH"
    assert encoded.to_request() == {"method": "eth_sendTransaction", "params": [tx]}


def test_native_symbol_given_explicitly():
    encoded = build_evm_transfer(_intent("1", symbol="POL", chain_id="eip155:137"))
    assert encoded.data is None
    assert encoded.value == 10**18
    assert encoded.token == "POL"


def test_erc20_transfer_calldata():
    encoded = build_evm_transfer(_intent("5", symbol="USDC"))
    tx = encoded.to_tx()
    assert tx["to"] == "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
    assert "value" not in tx

    data = tx["data"]
    assert data.startswith("0xa9059cbb")
    body = data[10:]
    assert body[:64] == "0" * 24 + "cd" * 20
    assert int(body[64:], 16) == 5_000_000
    assert len(bytes.fromhex(data[2:])) == 68
    assert encoded.raw_amount == 5_000_000
    assert encoded.recipient == RECIPIENT


def test_erc20_uses_token_decimals():
    encoded = build_evm_transfer(_intent("0.5", symbol="WBTC", chain_id="eip155:42161"))
    assert int(encoded.data[-64:], 16) == 50_000_000


def test_token_without_contract_on_chain():
    with pytest.raises(UnsupportedToken):
        build_evm_transfer(_intent("1", symbol="WBTC", chain_id="eip155:8453"))


def test_encode_transfer_call_rejects_bad_input():
    with pytest.raises(ValueError):
        encode_transfer_call("0x1234", 1)
    with pytest.raises(ValueError):
        encode_transfer_call(RECIPIENT, 2**256)


@pytest.mark.parametrize("raw_amount", [0, 1, 5_000_000, 2**256 - 1])
def test_transfer_call_is_always_68_bytes(raw_amount):
    data = encode_transfer_call(RECIPIENT, raw_amount)
    payload = bytes.fromhex(data[2:])
    assert len(payload) == 4 + 32 + 32
    assert int.from_bytes(payload[36:], "big") == raw_amount

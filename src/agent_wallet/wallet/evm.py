"""EVM transfer encoding: native value transfers and ERC-20 ``transfer`` calls."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from eth_abi import encode
from eth_abi.exceptions import EncodingError
from web3 import Web3

from agent_wallet.errors import UnsupportedToken
from agent_wallet.wallet import tokens
from agent_wallet.wallet.transfers import TransferIntent

logger = logging.getLogger("agent_wallet.wallet.evm")

TRANSFER_SIGNATURE = "transfer(address,uint256)"
TRANSFER_SELECTOR = bytes(Web3.keccak(text=TRANSFER_SIGNATURE)[:4])  # 0xa9059cbb


@dataclass(frozen=True)
class EvmTransfer:
    """A transaction object ready for ``eth_sendTransaction``."""

    chain_id: str
    from_address: str
    to: str  # recipient for native transfers, token contract otherwise
    value: int = 0
    data: Optional[str] = None
    recipient: str = ""
    token: str = "ETH"
    raw_amount: int = 0

    @property
    def method(self) -> str:
        return "eth_sendTransaction"

    def to_tx(self) -> dict[str, str]:
        tx = {"from": self.from_address, "to": self.to}
        if self.data is not None:
            tx["data"] = self.data
        else:
            tx["value"] = hex(self.value)
        return tx

    def to_request(self) -> dict[str, Any]:
        return {"method": self.method, "params": [self.to_tx()]}


def encode_transfer_call(recipient: str, raw_amount: int) -> str:
    """Return ``0x``-prefixed calldata for ``transfer(recipient, raw_amount)``.

    Always 4 + 32 + 32 bytes. Raises ``ValueError`` for an invalid address
    or an amount that does not fit in a uint256.
    """
    if not Web3.is_address(recipient):
        raise ValueError(f"Invalid EVM address: {recipient}")
    try:
        args = encode(["address", "uint256"], [Web3.to_checksum_address(recipient), raw_amount])
    except (EncodingError, OverflowError) as exc:
        raise ValueError(f"Amount out of range for uint256: {raw_amount}") from exc
    return "0x" + (TRANSFER_SELECTOR + args).hex()


def build_evm_transfer(intent: TransferIntent) -> EvmTransfer:
    """Encode *intent* as a native or ERC-20 transfer.

    Raises :class:`UnsupportedToken` if the symbol has no contract on the
    intent's chain.
    """
    chain = intent.chain
    sender = intent.from_account.address

    if intent.is_native:
        value = tokens.to_raw(intent.amount, chain.native_decimals)
        return EvmTransfer(
            chain_id=chain.chain_id,
            from_address=sender,
            to=intent.recipient,
            value=value,
            recipient=intent.recipient,
            token=chain.native_symbol,
            raw_amount=value,
        )

    contract = tokens.address_for(intent.symbol, chain.chain_id)
    if contract is None:
        raise UnsupportedToken(
            f"Token {intent.symbol} not supported on {chain.chain_id}",
            token=intent.symbol,
            chain=chain.chain_id,
        )
    raw_amount = tokens.to_raw(intent.amount, tokens.decimals_for(intent.symbol))
    data = encode_transfer_call(intent.recipient, raw_amount)
    logger.debug(f"ERC-20 transfer {intent.symbol} raw={raw_amount} via {contract}")
    return EvmTransfer(
        chain_id=chain.chain_id,
        from_address=sender,
        to=contract,
        data=data,
        recipient=intent.recipient,
        token=intent.symbol,
        raw_amount=raw_amount,
    )

"""Solana JSON-RPC access and transfer encoding.

Transfers are compiled into a single v0 (versioned) transaction message,
which is what wallets expect for ``solana_signAndSendTransaction``. The
transaction is left unsigned: the wallet fills in the fee payer signature.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Sequence

import httpx
from solders.compute_budget import set_compute_unit_price
from solders.hash import Hash
from solders.instruction import Instruction
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import TransferParams, transfer
from solders.transaction import VersionedTransaction
from spl.token.instructions import TransferParams as SplTransferParams
from spl.token.instructions import (
    create_associated_token_account,
    get_associated_token_address,
)
from spl.token.instructions import transfer as spl_transfer
from spl.token.constants import TOKEN_PROGRAM_ID

from agent_wallet.errors import ChainQueryFailed, UnsupportedToken
from agent_wallet.wallet import tokens
from agent_wallet.wallet.transfers import TransferIntent

logger = logging.getLogger("agent_wallet.wallet.solana")

DEFAULT_COMMITMENT = "confirmed"
RPC_TIMEOUT = 30
U64_MAX = 2**64 - 1


# ---------------------------------------------------------------------------
# RPC
# ---------------------------------------------------------------------------


class SolanaRpcClient(Protocol):
    async def get_latest_blockhash(self) -> str: ...

    async def get_account_info(self, pubkey: str) -> Optional[dict]: ...

    async def get_recent_prioritization_fees(self) -> list[int]: ...

    async def get_balance(self, pubkey: str) -> int: ...

    async def get_token_account_balance(self, pubkey: str) -> int: ...


class SolanaRpc:
    """Minimal async JSON-RPC client for a Solana cluster.

    Every failure (transport error, HTTP error, JSON-RPC error object) is
    raised as :class:`ChainQueryFailed`.
    """

    def __init__(
        self,
        rpc_url: str,
        commitment: str = DEFAULT_COMMITMENT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.commitment = commitment
        self._client = client
        self._owns_client = client is None
        self._request_id = 0

    async def __aenter__(self) -> SolanaRpc:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def call(self, method: str, params: list[Any] | None = None) -> Any:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=RPC_TIMEOUT)
        self._request_id += 1
        body = {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params or []}
        try:
            resp = await self._client.post(self.rpc_url, json=body)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise ChainQueryFailed(f"Solana RPC {method} failed: {exc}", method=method) from exc
        if "error" in data:
            error = data["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            raise ChainQueryFailed(f"Solana RPC {method} failed: {message}", method=method)
        return data.get("result")

    async def get_latest_blockhash(self) -> str:
        result = await self.call("getLatestBlockhash", [{"commitment": self.commitment}])
        return result["value"]["blockhash"]

    async def get_account_info(self, pubkey: str) -> Optional[dict]:
        result = await self.call(
            "getAccountInfo", [pubkey, {"encoding": "base64", "commitment": self.commitment}]
        )
        return result.get("value")

    async def get_recent_prioritization_fees(self) -> list[int]:
        result = await self.call("getRecentPrioritizationFees", [])
        return [int(entry["prioritizationFee"]) for entry in result or []]

    async def get_balance(self, pubkey: str) -> int:
        result = await self.call("getBalance", [pubkey, {"commitment": self.commitment}])
        return int(result["value"])

    async def get_token_account_balance(self, pubkey: str) -> int:
        result = await self.call(
            "getTokenAccountBalance", [pubkey, {"commitment": self.commitment}]
        )
        return int(result["value"]["amount"])


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SolanaTransfer:
    """A compiled, unsigned v0 transaction and what it does."""

    chain_id: str
    from_address: str
    recipient: str
    token: str
    raw_amount: int
    instructions: tuple[Instruction, ...]
    transaction: VersionedTransaction
    priority_fee: Optional[int] = None
    creates_recipient_account: bool = False

    @property
    def method(self) -> str:
        return "solana_signAndSendTransaction"

    def serialize(self) -> str:
        """Base64 wire encoding of the unsigned transaction."""
        return base64.b64encode(bytes(self.transaction)).decode("ascii")

    def to_request(self) -> dict[str, Any]:
        return {"method": self.method, "params": {"transaction": self.serialize()}}


def median_fee(fees: Sequence[int]) -> Optional[int]:
    """Median of the positive fees; the lower middle one for an even count."""
    positive = sorted(f for f in fees if f > 0)
    if not positive:
        return None
    return positive[(len(positive) - 1) // 2]


async def fetch_priority_fee(rpc: SolanaRpcClient) -> Optional[int]:
    """Best-effort median prioritization fee in micro-lamports per CU.

    Returns ``None`` on any failure; the transfer proceeds without a fee hint.
    """
    try:
        fees = await rpc.get_recent_prioritization_fees()
    except Exception as exc:
        logger.warning(f"Skipping priority fee, fee lookup failed: {exc}")
        return None
    return median_fee(fees)


async def _recipient_account_missing(rpc: SolanaRpcClient, ata: Pubkey) -> bool:
    # Only an explicit "no such account" answer triggers account creation.
    try:
        info = await rpc.get_account_info(str(ata))
    except Exception as exc:
        logger.warning(f"Associated account probe for {ata} failed, assuming it exists: {exc}")
        return False
    return info is None


def _check_u64(raw_amount: int) -> None:
    # Lamports and SPL token amounts are u64 on-chain.
    if raw_amount > U64_MAX:
        raise ValueError(f"Amount out of range for u64: {raw_amount}")


def compile_transaction(
    payer: Pubkey, instructions: Sequence[Instruction], blockhash: str
) -> VersionedTransaction:
    message = MessageV0.try_compile(payer, list(instructions), [], Hash.from_string(blockhash))
    signatures = [Signature.default()] * message.header.num_required_signatures
    return VersionedTransaction.populate(message, signatures)


async def build_solana_transfer(intent: TransferIntent, rpc: SolanaRpcClient) -> SolanaTransfer:
    """Encode *intent* as a SOL or SPL token transfer.

    Raises :class:`UnsupportedToken` for a symbol without a mint on the
    chain, ``ValueError`` for an amount that does not fit in a u64, and
    :class:`ChainQueryFailed` if the block hash cannot be fetched.
    """
    chain = intent.chain
    from_pubkey = Pubkey.from_string(intent.from_account.address)
    to_pubkey = Pubkey.from_string(intent.recipient)

    instructions: list[Instruction] = []
    creates_account = False

    if intent.is_native:
        raw_amount = tokens.to_raw(intent.amount, chain.native_decimals)
        _check_u64(raw_amount)
        instructions.append(
            transfer(TransferParams(from_pubkey=from_pubkey, to_pubkey=to_pubkey, lamports=raw_amount))
        )
    else:
        mint = tokens.address_for(intent.symbol, chain.chain_id)
        if mint is None:
            raise UnsupportedToken(
                f"Token {intent.symbol} not supported on {chain.chain_id}",
                token=intent.symbol,
                chain=chain.chain_id,
            )
        mint_pubkey = Pubkey.from_string(mint)
        raw_amount = tokens.to_raw(intent.amount, tokens.decimals_for(intent.symbol))
        _check_u64(raw_amount)
        from_ata = get_associated_token_address(from_pubkey, mint_pubkey)
        to_ata = get_associated_token_address(to_pubkey, mint_pubkey)

        if await _recipient_account_missing(rpc, to_ata):
            creates_account = True
            instructions.append(
                create_associated_token_account(payer=from_pubkey, owner=to_pubkey, mint=mint_pubkey)
            )
        instructions.append(
            spl_transfer(
                SplTransferParams(
                    program_id=TOKEN_PROGRAM_ID,
                    source=from_ata,
                    dest=to_ata,
                    owner=from_pubkey,
                    amount=raw_amount,
                )
            )
        )

    fee = await fetch_priority_fee(rpc)
    if fee is not None:
        instructions.insert(0, set_compute_unit_price(fee))

    try:
        blockhash = await rpc.get_latest_blockhash()
    except ChainQueryFailed:
        raise
    except Exception as exc:
        raise ChainQueryFailed(f"Could not fetch latest blockhash: {exc}") from exc

    return SolanaTransfer(
        chain_id=chain.chain_id,
        from_address=intent.from_account.address,
        recipient=intent.recipient,
        token=intent.token_label,
        raw_amount=raw_amount,
        instructions=tuple(instructions),
        transaction=compile_transaction(from_pubkey, instructions, blockhash),
        priority_fee=fee,
        creates_recipient_account=creates_account,
    )

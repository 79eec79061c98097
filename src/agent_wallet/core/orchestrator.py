"""Transaction orchestrator: turns a transfer intent into a wallet approval request.

Validate -> resolve accounts -> resolve recipient -> encode -> submit -> format.
Anything that fails before submission is reported as ``error``; anything that
fails at or after submission (declined, timed out, transport failure) is
reported as ``rejected``. Neither is raised to the caller.
"""

from __future__ import annotations

import logging
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Optional, Union

from solders.pubkey import Pubkey
from web3 import Web3

from agent_wallet.core.gateway import BoundedRequestGateway
from agent_wallet.errors import (
    MalformedAccountId,
    TransportNotConfigured,
    UnsupportedToken,
    WalletError,
)
from agent_wallet.storage.sessions import SessionStore
from agent_wallet.wallet import accounts, tokens
from agent_wallet.wallet.chains import Chain, get_chain
from agent_wallet.wallet.evm import EvmTransfer, build_evm_transfer
from agent_wallet.wallet.resolver import AddressResolver, ResolvedAddress
from agent_wallet.wallet.solana import SolanaRpc, SolanaTransfer, build_solana_transfer
from agent_wallet.wallet.transfers import TransferIntent

logger = logging.getLogger("agent_wallet.core.orchestrator")

EncodedTransfer = Union[EvmTransfer, SolanaTransfer]
SolanaRpcFactory = Callable[[str], AbstractAsyncContextManager]


@dataclass
class TransferResult:
    """Outcome of one transfer: ``sent``, ``rejected`` or ``error``."""

    status: str
    chain: Optional[str] = None
    tx_hash: Optional[str] = None
    from_address: Optional[str] = None
    to: Optional[str] = None
    amount: Optional[str] = None
    token: Optional[str] = None
    explorer: Optional[str] = None
    name: Optional[str] = None  # the ENS name the recipient was resolved from
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "sent"

    def to_dict(self) -> dict[str, Any]:
        keys = {
            "status": self.status,
            "txHash": self.tx_hash,
            "chain": self.chain,
            "from": self.from_address,
            "to": self.to,
            "ens": self.name,
            "amount": self.amount,
            "token": self.token,
            "explorer": self.explorer,
            "error": self.error,
        }
        return {k: v for k, v in keys.items() if v is not None}


def _tx_id(result: Any) -> str:
    if isinstance(result, str):
        return result
    if isinstance(result, dict) and result.get("signature"):
        return str(result["signature"])
    return str(result)


class TransactionOrchestrator:
    """Coordinates one transfer from intent to wallet approval.

    Parameters
    ----------
    store:
        Session registry the sender account is read from.
    gateway:
        Bounded request gateway to the wallet, or ``None`` when no transport
        is configured (every transfer then fails with ``error``).
    resolver:
        Recipient name resolver for EVM chains.
    rpc_overrides:
        Optional ``chain id -> RPC URL`` map.
    solana_rpc:
        Factory ``rpc_url -> async context manager yielding a Solana RPC
        client``. Defaults to :class:`SolanaRpc`.
    """

    def __init__(
        self,
        store: SessionStore,
        gateway: Optional[BoundedRequestGateway],
        resolver: Optional[AddressResolver] = None,
        rpc_overrides: Optional[dict[str, str]] = None,
        solana_rpc: Optional[SolanaRpcFactory] = None,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.resolver = resolver or AddressResolver()
        self.rpc_overrides = dict(rpc_overrides or {})
        self._solana_rpc = solana_rpc or SolanaRpc

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def send_transfer(
        self,
        topic: str,
        to: str,
        amount: str | Decimal,
        chain_id: Optional[str] = None,
        token: Optional[str] = None,
    ) -> TransferResult:
        """Ask the wallet behind *topic* to send *amount* of *token* to *to*."""
        chain_id = chain_id or "eip155:1"
        try:
            encoded, recipient = await self._prepare(topic, to, amount, chain_id, token)
        except (WalletError, ValueError) as exc:
            message = exc.message if isinstance(exc, WalletError) else str(exc)
            logger.info(f"Transfer on {chain_id} not submitted: {message}")
            return TransferResult(status="error", chain=chain_id, error=message)

        try:
            result = await self.gateway.send(topic, chain_id, encoded.to_request())
        except Exception as exc:
            logger.info(f"Transfer on {chain_id} rejected: {exc}")
            return TransferResult(status="rejected", chain=chain_id, error=str(exc))

        return self._format(encoded, recipient, str(amount), result)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _prepare(
        self,
        topic: str,
        to: str,
        amount: str | Decimal,
        chain_id: str,
        token: Optional[str],
    ) -> tuple[EncodedTransfer, ResolvedAddress]:
        # Validate
        if self.gateway is None:
            raise TransportNotConfigured("No signing transport configured")
        if not to:
            raise ValueError("Recipient (--to) required")
        session = self.store.require(topic)
        chain = get_chain(chain_id)
        human_amount = tokens.parse_amount(amount)
        symbol = token.upper() if token else None
        if symbol and symbol != chain.native_symbol and not tokens.is_chain_asset(symbol, chain_id):
            raise UnsupportedToken(
                f"Token {token} not supported on {chain_id}", token=token, chain=chain_id
            )

        # Resolve accounts
        label = "Solana" if chain.is_solana else "EVM"
        sender = accounts.require(session.accounts, chain_id, label=label)

        # Resolve recipient
        recipient = await self._resolve_recipient(chain, to)

        intent = TransferIntent(
            from_account=sender,
            recipient=recipient.address,
            chain=chain,
            amount=human_amount,
            symbol=symbol,
        )

        # Encode
        return await self._encode(intent), recipient

    async def _resolve_recipient(self, chain: Chain, to: str) -> ResolvedAddress:
        if chain.is_solana:
            try:
                Pubkey.from_string(to)
            except ValueError as exc:
                raise MalformedAccountId(f"Invalid Solana address: {to}", address=to) from exc
            return ResolvedAddress(to, to)

        resolved = await self.resolver.resolve(to)
        if resolved.was_resolved:
            logger.info(f"Recipient {resolved.original} resolved to {resolved.address}")
        if not Web3.is_address(resolved.address):
            raise MalformedAccountId(f"Invalid EVM address: {resolved.address}", address=to)
        return resolved

    async def _encode(self, intent: TransferIntent) -> EncodedTransfer:
        chain = intent.chain
        if chain.is_solana:
            rpc_url = self.rpc_overrides.get(chain.chain_id, chain.rpc_url)
            async with self._solana_rpc(rpc_url) as rpc:
                return await build_solana_transfer(intent, rpc)
        return build_evm_transfer(intent)

    def _format(
        self,
        encoded: EncodedTransfer,
        recipient: ResolvedAddress,
        amount: str,
        result: Any,
    ) -> TransferResult:
        tx_id = _tx_id(result)
        chain = get_chain(encoded.chain_id)
        logger.info(f"Transfer sent on {chain.chain_id}: {tx_id}")
        return TransferResult(
            status="sent",
            chain=chain.chain_id,
            tx_hash=tx_id,
            from_address=encoded.from_address,
            to=recipient.address,
            amount=amount,
            token=encoded.token,
            explorer=chain.tx_url(tx_id) if isinstance(encoded, SolanaTransfer) else None,
            name=recipient.original if recipient.was_resolved else None,
        )

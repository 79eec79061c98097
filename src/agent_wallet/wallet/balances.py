"""Read-only balance queries over public RPC (no wallet interaction).

Errors on individual tokens don't abort the whole query; they are reported
inline next to the token they belong to.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from solders.pubkey import Pubkey
from spl.token.instructions import get_associated_token_address
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3

from agent_wallet.wallet import tokens
from agent_wallet.wallet.chains import Chain, get_chain
from agent_wallet.wallet.solana import SolanaRpc

logger = logging.getLogger("agent_wallet.wallet.balances")

ERC20_BALANCE_ABI = [
    {
        "name": "balanceOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    }
]


def _entry(symbol: str, raw: int, decimals: int) -> dict[str, Any]:
    return {"token": symbol, "balance": tokens.format_amount(raw, decimals), "raw": str(raw)}


class BalanceProvider:
    """Queries native and registered token balances on EVM chains and Solana.

    Parameters
    ----------
    rpc_overrides:
        Optional ``chain id -> RPC URL`` map taking precedence over the
        chain table defaults.
    solana_rpc:
        Factory ``rpc_url -> async context manager yielding a Solana RPC
        client``. Defaults to :class:`SolanaRpc`.
    """

    def __init__(
        self,
        rpc_overrides: dict[str, str] | None = None,
        solana_rpc: Callable[[str], Any] | None = None,
    ) -> None:
        self.rpc_overrides = dict(rpc_overrides or {})
        self._solana_rpc = solana_rpc or SolanaRpc
        self._instances: dict[str, AsyncWeb3] = {}

    def rpc_url(self, chain: Chain) -> str:
        return self.rpc_overrides.get(chain.chain_id, chain.rpc_url)

    def get_web3(self, chain: Chain) -> AsyncWeb3:
        """Return a (cached) AsyncWeb3 instance for the given chain."""
        if chain.chain_id not in self._instances:
            self._instances[chain.chain_id] = AsyncWeb3(AsyncHTTPProvider(self.rpc_url(chain)))
        return self._instances[chain.chain_id]

    async def get_balances(self, address: str, chain_id: str) -> dict[str, Any]:
        """Return ``{chain, address, balances: [...]}`` for one account."""
        chain = get_chain(chain_id)
        if chain.is_solana:
            balances = await self._solana_balances(address, chain)
        else:
            balances = await self._evm_balances(address, chain)
        return {"chain": chain_id, "address": address, "balances": balances}

    async def _evm_balances(self, address: str, chain: Chain) -> list[dict[str, Any]]:
        w3 = self.get_web3(chain)
        owner = Web3.to_checksum_address(address)
        results: list[dict[str, Any]] = []

        try:
            raw = await w3.eth.get_balance(owner)
            results.append(_entry(chain.native_symbol, raw, chain.native_decimals))
        except Exception as e:
            logger.warning(f"Failed to get {chain.native_symbol} balance on {chain.name}: {e}")
            results.append({"token": chain.native_symbol, "error": str(e)})

        for token in tokens.list_for_chain(chain.chain_id):
            try:
                contract = w3.eth.contract(
                    address=Web3.to_checksum_address(token.address_on(chain.chain_id)),
                    abi=ERC20_BALANCE_ABI,
                )
                raw = await contract.functions.balanceOf(owner).call()
                results.append(_entry(token.symbol, raw, token.decimals))
            except Exception as e:
                logger.warning(f"Failed to get {token.symbol} balance on {chain.name}: {e}")
                results.append({"token": token.symbol, "error": str(e)})
        return results

    async def _solana_balances(self, address: str, chain: Chain) -> list[dict[str, Any]]:
        owner = Pubkey.from_string(address)
        results: list[dict[str, Any]] = []

        async with self._solana_rpc(self.rpc_url(chain)) as rpc:
            try:
                lamports = await rpc.get_balance(address)
                results.append(_entry(chain.native_symbol, lamports, chain.native_decimals))
            except Exception as e:
                logger.warning(f"Failed to get SOL balance: {e}")
                results.append({"token": chain.native_symbol, "error": str(e)})

            for token in tokens.list_for_chain(chain.chain_id):
                mint = Pubkey.from_string(token.address_on(chain.chain_id))
                ata = str(get_associated_token_address(owner, mint))
                try:
                    if await rpc.get_account_info(ata) is None:
                        results.append(_entry(token.symbol, 0, token.decimals))
                        continue
                    raw = await rpc.get_token_account_balance(ata)
                    results.append(_entry(token.symbol, raw, token.decimals))
                except Exception as e:
                    logger.warning(f"Failed to get {token.symbol} balance: {e}")
                    results.append({"token": token.symbol, "error": str(e)})
        return results

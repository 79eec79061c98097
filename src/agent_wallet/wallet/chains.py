"""Chain definitions for supported EVM networks and Solana.

Chains are keyed by their CAIP-2 id (``namespace:reference``), which is the
prefix of every account id held in a session.
"""

from __future__ import annotations

from dataclasses import dataclass

from agent_wallet.errors import UnsupportedChain

EVM_NAMESPACE = "eip155"
SOLANA_NAMESPACE = "solana"
SOLANA_MAINNET = "solana:5eykt4UsFv8P8NJdTREpY1vzqKqZKvdp"


@dataclass(frozen=True)
class Chain:
    """A blockchain network reachable through a wallet session."""

    name: str
    namespace: str
    reference: str
    rpc_url: str
    native_symbol: str
    native_decimals: int
    explorer_url: str

    @property
    def chain_id(self) -> str:
        return f"{self.namespace}:{self.reference}"

    @property
    def is_evm(self) -> bool:
        return self.namespace == EVM_NAMESPACE

    @property
    def is_solana(self) -> bool:
        return self.namespace == SOLANA_NAMESPACE

    def tx_url(self, tx_id: str) -> str:
        return f"{self.explorer_url}/tx/{tx_id}"


def _evm(name: str, reference: int, rpc_url: str, native: str, explorer: str) -> Chain:
    return Chain(
        name=name,
        namespace=EVM_NAMESPACE,
        reference=str(reference),
        rpc_url=rpc_url,
        native_symbol=native,
        native_decimals=18,
        explorer_url=explorer,
    )


CHAINS: dict[str, Chain] = {
    chain.chain_id: chain
    for chain in (
        _evm("ethereum", 1, "https://eth.llamarpc.com", "ETH", "https://etherscan.io"),
        _evm("arbitrum", 42161, "https://arb1.arbitrum.io/rpc", "ETH", "https://arbiscan.io"),
        _evm("base", 8453, "https://mainnet.base.org", "ETH", "https://basescan.org"),
        _evm("optimism", 10, "https://mainnet.optimism.io", "ETH", "https://optimistic.etherscan.io"),
        _evm("polygon", 137, "https://polygon-rpc.com", "POL", "https://polygonscan.com"),
        _evm("bsc", 56, "https://bsc-dataseed.binance.org", "BNB", "https://bscscan.com"),
        Chain(
            name="solana",
            namespace=SOLANA_NAMESPACE,
            reference="5eykt4UsFv8P8NJdTREpY1vzqKqZKvdp",
            rpc_url="https://api.mainnet-beta.solana.com",
            native_symbol="SOL",
            native_decimals=9,
            explorer_url="https://solscan.io",
        ),
    )
}

SUPPORTED_NAMESPACES = (EVM_NAMESPACE, SOLANA_NAMESPACE)


def get_chain(chain_id: str) -> Chain:
    """Get a chain by CAIP-2 id. Raises ``UnsupportedChain`` if not found."""
    if chain_id not in CHAINS:
        raise UnsupportedChain(
            f"Unsupported chain '{chain_id}'. Available: {list_chain_ids()}",
            chain=chain_id,
        )
    return CHAINS[chain_id]


def list_chain_ids() -> list[str]:
    """Return the CAIP-2 ids of all supported chains."""
    return list(CHAINS.keys())


def namespace_of(chain_id: str) -> str:
    return chain_id.split(":", 1)[0]

"""Token registry -- static metadata for ERC-20 and SPL tokens.

Decimals are a property of the token symbol, not of the chain: the same
symbol converts amounts the same way on every chain it is registered on.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from types import MappingProxyType
from typing import Mapping

from agent_wallet.wallet.chains import SOLANA_MAINNET

# Used by decimals_for() when a symbol is not registered. Correct for native
# EVM assets and most ERC-20s, wrong for most SPL tokens (6 or 9); Solana
# transfers therefore refuse unregistered symbols instead of relying on it.
DEFAULT_DECIMALS = 18


@dataclass(frozen=True)
class TokenDescriptor:
    symbol: str
    name: str
    decimals: int
    addresses: Mapping[str, str] = field(default_factory=dict)

    def address_on(self, chain_id: str) -> str | None:
        return self.addresses.get(chain_id)


def _token(symbol: str, name: str, decimals: int, addresses: dict[str, str]) -> TokenDescriptor:
    return TokenDescriptor(symbol, name, decimals, MappingProxyType(dict(addresses)))


TOKENS: dict[str, TokenDescriptor] = {
    t.symbol: t
    for t in (
        _token("USDC", "USD Coin", 6, {
            "eip155:1": "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
            "eip155:8453": "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
            "eip155:42161": "0xaf88d065e77c8cC2239327C5EDb3A432268e5831",
            "eip155:10": "0x0b2C639c533813f4Aa9D7837CAf62653d097Ff85",
            "eip155:137": "0x3c499c542cEF5E3811e1192ce70d8cC03d5c3359",
            SOLANA_MAINNET: "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
        }),
        _token("USDT", "Tether USD", 6, {
            "eip155:1": "0xdAC17F958D2ee523a2206206994597C13D831ec7",
            "eip155:10": "0x94b008aA00579c1307B0EF2c499aD98a8ce58e58",
            "eip155:137": "0xc2132D05D31c914a87C6611C10748AEb04B58e8F",
            "eip155:56": "0x55d398326f99059fF775485246999027B3197955",
            SOLANA_MAINNET: "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB",
        }),
        _token("WETH", "Wrapped Ether", 18, {
            "eip155:1": "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
            "eip155:42161": "0x82aF49447D8a07e3bd95BD0d56f35241523fBab1",
            "eip155:8453": "0x4200000000000000000000000000000000000006",
            "eip155:10": "0x4200000000000000000000000000000000000006",
            "eip155:137": "0x7ceB23fD6bC0adD59E62ac25578270cFf1b9f619",
        }),
        _token("DAI", "Dai Stablecoin", 18, {
            "eip155:1": "0x6B175474E89094C44Da98b954EedeAC495271d0F",
            "eip155:42161": "0xDA10009cBd5D07dd0CeCc66161FC93D7c9000da1",
            "eip155:8453": "0x50c5725949A6F0c72E6C4a641F24049A917DB0Cb",
            "eip155:10": "0xDA10009cBd5D07dd0CeCc66161FC93D7c9000da1",
            "eip155:137": "0x8f3Cf7ad23Cd3CaDbD9735AFf958023239c6A063",
        }),
        _token("WBTC", "Wrapped Bitcoin", 8, {
            "eip155:1": "0x2260FAC5E5542a773Aa44fBCfeDf7C193bc2C599",
            "eip155:42161": "0x2f2a2543B76A4166549F7aaB2e75Bef0aefC5B0f",
            "eip155:10": "0x68f180fcCe6836688e9084f035309E29Bf0A2095",
            "eip155:137": "0x1BFD67037B42Cf73acF2047067bd4F2C47D9BfD6",
        }),
    )
}


def address_for(symbol: str, chain_id: str) -> str | None:
    """Return the contract (EVM) or mint (Solana) address, or ``None``."""
    token = TOKENS.get(symbol)
    if token is None:
        return None
    return token.address_on(chain_id)


def decimals_for(symbol: str) -> int:
    """Return the token's decimals, or :data:`DEFAULT_DECIMALS` if unknown."""
    token = TOKENS.get(symbol)
    return token.decimals if token is not None else DEFAULT_DECIMALS


def is_chain_asset(symbol: str, chain_id: str) -> bool:
    """True when *symbol* is a registered token on *chain_id*."""
    return address_for(symbol, chain_id) is not None


def list_for_chain(chain_id: str) -> list[TokenDescriptor]:
    """Return every token registered on *chain_id*, in registry order."""
    return [t for t in TOKENS.values() if chain_id in t.addresses]


# ---------------------------------------------------------------------------
# Amount conversion
# ---------------------------------------------------------------------------

# Enough digits for any uint256 value at any registered scale.
_PRECISION = 100


def parse_amount(amount: str | int | float | Decimal) -> Decimal:
    """Parse a human amount, rejecting negatives and non-numbers."""
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {amount!r}") from exc
    if not value.is_finite() or value < 0:
        raise ValueError(f"Invalid amount: {amount!r}")
    return value


def to_raw(amount: str | int | float | Decimal, decimals: int) -> int:
    """Convert a human amount to base units, rounding to the nearest unit.

    ``to_raw("5", 6) == 5_000_000``; ``to_raw("0.01", 18) == 10**16``.
    """
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        scaled = parse_amount(amount).scaleb(decimals)
        return int(scaled.to_integral_value(rounding=ROUND_HALF_UP))


def from_raw(raw: int, decimals: int) -> Decimal:
    """Convert base units back to a human amount."""
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return Decimal(int(raw)).scaleb(-decimals)


def format_amount(raw: int, decimals: int) -> str:
    """Render base units as a plain decimal string without trailing zeros."""
    value = from_raw(raw, decimals)
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"

from decimal import Decimal

import pytest

from agent_wallet.wallet import tokens
from agent_wallet.wallet.chains import SOLANA_MAINNET


class TestRegistry:
    def test_address_lookup(self):
        assert tokens.address_for("USDC", "eip155:1") == "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
        assert tokens.address_for("USDC", SOLANA_MAINNET) == "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"

    def test_unknown_symbol_or_chain(self):
        assert tokens.address_for("NOPE", "eip155:1") is None
        assert tokens.address_for("WETH", SOLANA_MAINNET) is None
        assert not tokens.is_chain_asset("WBTC", "eip155:8453")

    def test_decimals(self):
        assert tokens.decimals_for("USDC") == 6
        assert tokens.decimals_for("WBTC") == 8
        assert tokens.decimals_for("UNKNOWN") == tokens.DEFAULT_DECIMALS == 18

    def test_list_for_chain(self):
        symbols = [t.symbol for t in tokens.list_for_chain(SOLANA_MAINNET)]
        assert symbols == ["USDC", "USDT"]
        assert tokens.list_for_chain("eip155:999999") == []


class TestConversion:
    def test_to_raw(self):
        assert tokens.to_raw("5", 6) == 5_000_000
        assert tokens.to_raw("0.01", 18) == 10**16
        assert tokens.to_raw("1", 9) == 1_000_000_000

    def test_to_raw_rounds_half_up(self):
        assert tokens.to_raw("0.0000005", 6) == 1
        assert tokens.to_raw("0.0000004", 6) == 0

    def test_to_raw_large_values_are_exact(self):
        amount = "123456789012345678901234567.123456789012345678"
        assert tokens.to_raw(amount, 18) == 123456789012345678901234567123456789012345678

    @pytest.mark.parametrize("decimals", [0, 6, 8, 9, 18])
    def test_from_raw_inverts_to_raw(self, decimals):
        for raw in (0, 1, 999, 10**decimals, 123456789):
            assert tokens.to_raw(tokens.from_raw(raw, decimals), decimals) == raw

    @pytest.mark.parametrize("bad", ["abc", "-1", "", "NaN", "Infinity"])
    def test_parse_amount_rejects(self, bad):
        with pytest.raises(ValueError):
            tokens.parse_amount(bad)

    def test_parse_amount(self):
        assert tokens.parse_amount(" 1.50 ") == Decimal("1.50")

    def test_format_amount(self):
        assert tokens.format_amount(1_500_000, 6) == "1.5"
        assert tokens.format_amount(10**18, 18) == "1"
        assert tokens.format_amount(0, 18) == "0"

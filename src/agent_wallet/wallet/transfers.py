"""The validated input to a chain-specific transfer encoder."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from agent_wallet.wallet.accounts import ChainAccountId
from agent_wallet.wallet.chains import Chain


@dataclass(frozen=True)
class TransferIntent:
    """Send *amount* of *symbol* from *from_account* to *recipient* on *chain*.

    ``recipient`` is already resolved to a chain address. ``symbol`` of
    ``None`` (or the chain's native symbol) means a native transfer.
    """

    from_account: ChainAccountId
    recipient: str
    chain: Chain
    amount: Decimal
    symbol: Optional[str] = None

    @property
    def is_native(self) -> bool:
        return not self.symbol or self.symbol.upper() == self.chain.native_symbol

    @property
    def token_label(self) -> str:
        return self.chain.native_symbol if self.is_native else self.symbol

"""Recipient resolution: ENS names to EVM addresses, everything else passes through."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from web3 import AsyncHTTPProvider, AsyncWeb3

from agent_wallet.errors import NameResolutionFailed
from agent_wallet.wallet.chains import CHAINS

logger = logging.getLogger("agent_wallet.wallet.resolver")

NAME_SUFFIXES = (".eth",)

NameLookup = Callable[[str], Awaitable[Optional[str]]]


@dataclass(frozen=True)
class ResolvedAddress:
    """A recipient as given by the caller and as it will be used on-chain."""

    original: str
    address: str

    @property
    def was_resolved(self) -> bool:
        return self.original != self.address


def is_name(address_or_name: str) -> bool:
    return address_or_name.lower().endswith(NAME_SUFFIXES)


class AddressResolver:
    """Resolves ENS names against Ethereum mainnet.

    Parameters
    ----------
    rpc_url:
        Mainnet RPC endpoint. Defaults to the ``eip155:1`` chain entry.
    lookup:
        Optional coroutine ``name -> address | None`` replacing the web3
        ENS lookup (used by tests and alternative name services).
    """

    def __init__(self, rpc_url: str | None = None, lookup: NameLookup | None = None) -> None:
        self.rpc_url = rpc_url or CHAINS["eip155:1"].rpc_url
        self._lookup = lookup
        self._w3: AsyncWeb3 | None = None

    async def _ens_lookup(self, name: str) -> Optional[str]:
        if self._w3 is None:
            self._w3 = AsyncWeb3(AsyncHTTPProvider(self.rpc_url))
        address = await self._w3.ens.address(name)
        return str(address) if address else None

    async def resolve(self, address_or_name: str) -> ResolvedAddress:
        """Return the on-chain address for *address_or_name*.

        Raises :class:`NameResolutionFailed` if a name has no address or the
        lookup itself fails.
        """
        if not is_name(address_or_name):
            return ResolvedAddress(address_or_name, address_or_name)

        lookup = self._lookup or self._ens_lookup
        try:
            resolved = await lookup(address_or_name)
        except Exception as exc:
            raise NameResolutionFailed(
                f"Could not resolve ENS name: {address_or_name} ({exc})",
                name=address_or_name,
            ) from exc
        if not resolved:
            raise NameResolutionFailed(
                f"Could not resolve ENS name: {address_or_name}", name=address_or_name
            )
        logger.info(f"Resolved {address_or_name} -> {resolved}")
        return ResolvedAddress(address_or_name, resolved)

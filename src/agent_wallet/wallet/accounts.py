"""Account ids held in a wallet session.

A session lists accounts as CAIP-10 strings, ``namespace:reference:address``
(for example ``eip155:1:0xab...`` or ``solana:5eykt...:9xQe...``).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from agent_wallet.errors import MalformedAccountId, NoMatchingAccount


@dataclass(frozen=True)
class ChainAccountId:
    namespace: str
    reference: str
    address: str

    @property
    def chain_id(self) -> str:
        return f"{self.namespace}:{self.reference}"

    def __str__(self) -> str:
        return f"{self.namespace}:{self.reference}:{self.address}"


def parse(account_id: str) -> ChainAccountId:
    """Split an account id into namespace, reference and address.

    The address is everything after the second colon and may itself contain
    colons. Raises :class:`MalformedAccountId` if any part is missing.
    """
    parts = account_id.split(":", 2)
    if len(parts) != 3 or not all(parts):
        raise MalformedAccountId(
            f"Malformed account id: {account_id!r} (expected namespace:reference:address)",
            account=account_id,
        )
    return ChainAccountId(*parts)


def _as_account(account: ChainAccountId | str) -> ChainAccountId:
    return account if isinstance(account, ChainAccountId) else parse(account)


def find(
    accounts: Iterable[ChainAccountId | str],
    chain_hint: Optional[str] = None,
) -> Optional[ChainAccountId]:
    """Pick the account that best matches *chain_hint*.

    No hint returns the first account. A full chain id (``eip155:8453``)
    requires an exact namespace and reference match; a bare namespace
    (``solana``) matches the first account in that namespace.
    """
    parsed = [_as_account(a) for a in accounts]
    if not chain_hint:
        return parsed[0] if parsed else None

    if ":" in chain_hint:
        namespace, reference = chain_hint.split(":", 1)
        for account in parsed:
            if account.namespace == namespace and account.reference == reference:
                return account
        return None

    for account in parsed:
        if account.namespace == chain_hint:
            return account
    return None


def require(
    accounts: Iterable[ChainAccountId | str],
    chain_hint: Optional[str] = None,
    label: str = "matching",
) -> ChainAccountId:
    """Like :func:`find`, but raise :class:`NoMatchingAccount` when nothing matches."""
    account = find(accounts, chain_hint)
    if account is None:
        raise NoMatchingAccount(f"No {label} account found", chain_hint=chain_hint)
    return account


def chain_ids(accounts: Iterable[ChainAccountId | str]) -> list[str]:
    """Distinct chain ids of *accounts*, in first-seen order."""
    seen: dict[str, None] = {}
    for account in accounts:
        seen.setdefault(_as_account(account).chain_id, None)
    return list(seen)


def redact_address(address: str, keep: int = 7) -> str:
    """Shorten the middle of an address: ``0xC36edF4...3db87e8``."""
    if not address:
        return address
    if address.startswith("0x"):
        body = address[2:]
        if len(body) <= keep * 2:
            return address
        return f"0x{body[:keep]}...{body[-keep:]}"
    if len(address) <= keep * 2:
        return address
    return f"{address[:keep]}...{address[-keep:]}"

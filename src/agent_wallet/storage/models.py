"""Pydantic models for the persisted session registry."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from agent_wallet.wallet.accounts import ChainAccountId
from agent_wallet.wallet.accounts import parse as parse_account


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class Session(BaseModel):
    """One paired wallet session, keyed by its topic in the registry.

    Serialized with camelCase keys (``peerName``, ``createdAt``...).
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    accounts: list[str] = Field(default_factory=list)
    chains: Optional[list[str]] = None
    peer_name: str = "Unknown Wallet"
    authenticated: bool = False
    auth_address: Optional[str] = None
    auth_nonce: Optional[str] = None
    auth_signature: Optional[str] = None
    auth_timestamp: Optional[str] = None
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: Optional[str] = None

    @property
    def last_seen(self) -> str:
        return self.updated_at or self.created_at or ""

    def parsed_accounts(self) -> list[ChainAccountId]:
        return [parse_account(a) for a in self.accounts]

    def has_address(self, address: str) -> bool:
        needle = address.lower()
        return any(a.split(":", 2)[-1].lower() == needle for a in self.accounts)

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

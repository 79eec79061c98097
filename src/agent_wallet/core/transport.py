"""The remote signing transport: an opaque request/response channel to the user's wallet.

Agent Wallet does not implement the relay protocol itself. A transport is
any object with the methods of :class:`SigningTransport`; the configured
``transport.factory`` import path tells the CLI how to build one.
"""

from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Protocol

from agent_wallet.errors import TransportNotConfigured

if TYPE_CHECKING:
    from agent_wallet.config import WalletConfig

logger = logging.getLogger("agent_wallet.core.transport")


@dataclass
class ApprovedSession:
    """What the wallet hands back once the user approves a pairing."""

    topic: str
    accounts: list[str]
    peer_name: str = "Unknown Wallet"


@dataclass
class PairingProposal:
    uri: str
    approval: Callable[[], Awaitable[ApprovedSession]]


@dataclass
class NamespaceRequirement:
    chains: list[str]
    methods: list[str]
    events: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, list[str]]:
        return {"chains": self.chains, "methods": self.methods, "events": self.events}


class SigningTransport(Protocol):
    async def connect(
        self, required_namespaces: dict[str, NamespaceRequirement]
    ) -> PairingProposal: ...

    async def request(self, topic: str, chain_id: str, request: dict[str, Any]) -> Any: ...

    async def ping(self, topic: str) -> None: ...

    async def close(self) -> None: ...


def load_transport(config: WalletConfig) -> SigningTransport:
    """Build the transport named by ``config.transport.factory``.

    The factory is ``"package.module:callable"``; it is called with the
    config and must return a :class:`SigningTransport`.
    """
    factory_path = config.transport.factory.strip()
    if not factory_path:
        raise TransportNotConfigured(
            "No signing transport configured. Set transport.factory in config.yaml."
        )
    module_name, _, attr = factory_path.partition(":")
    if not attr:
        raise TransportNotConfigured(
            f"Invalid transport factory '{factory_path}' (expected 'module:callable')"
        )
    try:
        module = importlib.import_module(module_name)
        factory = getattr(module, attr)
    except (ImportError, AttributeError) as exc:
        raise TransportNotConfigured(
            f"Could not load transport factory '{factory_path}': {exc}"
        ) from exc
    logger.debug(f"Using signing transport from {factory_path}")
    return factory(config)

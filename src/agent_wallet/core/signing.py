"""Session-level wallet operations: pairing, message signing, consent auth, health."""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
from pathlib import Path
from typing import Any, Callable, Optional

import base58
from eth_account import Account
from eth_account.messages import encode_defunct

from agent_wallet.core.gateway import BoundedRequestGateway
from agent_wallet.core.transport import NamespaceRequirement, SigningTransport
from agent_wallet.errors import NoMatchingAccount, SessionNotFound, UnsupportedChain
from agent_wallet.storage.models import Session, utc_now_iso
from agent_wallet.storage.sessions import SessionStore
from agent_wallet.wallet import accounts
from agent_wallet.wallet.accounts import redact_address
from agent_wallet.wallet.chains import EVM_NAMESPACE, SOLANA_NAMESPACE, namespace_of

logger = logging.getLogger("agent_wallet.core.signing")

NAMESPACE_METHODS: dict[str, tuple[list[str], list[str]]] = {
    EVM_NAMESPACE: (
        ["personal_sign", "eth_sendTransaction", "eth_signTypedData_v4"],
        ["chainChanged", "accountsChanged"],
    ),
    SOLANA_NAMESPACE: (
        ["solana_signMessage", "solana_signTransaction", "solana_signAndSendTransaction"],
        [],
    ),
}

DEFAULT_PING_TIMEOUT = 15.0


# ---------------------------------------------------------------------------
# Encoding helpers
# ---------------------------------------------------------------------------


def encode_evm_message(message: str) -> str:
    """Hex-encode a UTF-8 message for ``personal_sign``."""
    return "0x" + message.encode("utf-8").hex()


def encode_solana_message(message: str) -> str:
    """Base58-encode a UTF-8 message for ``solana_signMessage``."""
    return base58.b58encode(message.encode("utf-8")).decode("ascii")


def build_auth_message(address: str, nonce: str, timestamp: str) -> str:
    return "\n".join(
        [
            "AgentWallet Authentication",
            "",
            "I authorize this AI agent to request transactions on my behalf.",
            "",
            f"Address: {redact_address(address)}",
            f"Nonce: {nonce}",
            f"Timestamp: {timestamp}",
        ]
    )


def verify_personal_signature(message: str, signature: str, address: str) -> bool:
    """True if *signature* over *message* recovers to *address*."""
    try:
        recovered = Account.recover_message(encode_defunct(text=message), signature=signature)
    except Exception as exc:
        logger.debug(f"Signature recovery failed: {exc}")
        return False
    return recovered.lower() == address.lower()


def required_namespaces(chains: list[str]) -> dict[str, NamespaceRequirement]:
    """Group chain ids by namespace with the methods each namespace needs."""
    grouped: dict[str, NamespaceRequirement] = {}
    for chain_id in chains:
        namespace = namespace_of(chain_id)
        if namespace not in NAMESPACE_METHODS:
            raise UnsupportedChain(f"Unsupported namespace: {namespace}", chain=chain_id)
        if namespace not in grouped:
            methods, events = NAMESPACE_METHODS[namespace]
            grouped[namespace] = NamespaceRequirement(chains=[], methods=list(methods), events=list(events))
        grouped[namespace].chains.append(chain_id)
    return grouped


# ---------------------------------------------------------------------------
# Typed data
# ---------------------------------------------------------------------------


def parse_typed_data(raw: str) -> dict[str, Any]:
    """Parse EIP-712 typed data from a JSON string or an ``@path``."""
    if raw.startswith("@"):
        file_path = raw[1:]
        try:
            data = json.loads(Path(file_path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ValueError(f'Failed to read typed data from file "{file_path}": {exc}') from exc
    else:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValueError("--data must be valid JSON or a @file path") from exc

    if not isinstance(data, dict):
        raise ValueError("Typed data must be a JSON object")
    missing = [k for k in ("domain", "types", "message") if k not in data]
    if missing:
        raise ValueError(f"Typed data missing required field(s): {', '.join(missing)}")
    if not isinstance(data["types"], dict):
        raise ValueError("Typed data 'types' must be an object")
    return data


def infer_primary_type(types: dict[str, Any]) -> str:
    """First type name that is not ``EIP712Domain``."""
    for name in types:
        if name != "EIP712Domain":
            return name
    raise ValueError(
        "Cannot infer primaryType: no types defined besides EIP712Domain -- provide it explicitly"
    )


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


class SessionSigner:
    """Signing and session maintenance against one session registry."""

    def __init__(
        self,
        store: SessionStore,
        transport: SigningTransport,
        gateway: Optional[BoundedRequestGateway] = None,
        ping_timeout: float = DEFAULT_PING_TIMEOUT,
    ) -> None:
        self.store = store
        self.transport = transport
        self.gateway = gateway or BoundedRequestGateway(transport)
        self.ping_timeout = ping_timeout

    async def pair(
        self,
        chains: list[str],
        on_uri: Optional[Callable[[str], None]] = None,
    ) -> dict[str, Any]:
        """Propose a new session and wait for the user to approve it."""
        namespaces = required_namespaces(chains)
        proposal = await self.transport.connect(namespaces)
        if on_uri is not None:
            on_uri(proposal.uri)

        approved = await proposal.approval()
        session = Session(
            accounts=approved.accounts,
            chains=chains,
            peer_name=approved.peer_name,
        )
        self.store.save(approved.topic, session)
        logger.info(f"Paired with {approved.peer_name} ({approved.topic[:12]}...)")
        return {
            "status": "paired",
            "topic": approved.topic,
            "accounts": approved.accounts,
            "peerName": approved.peer_name,
        }

    async def sign_message(
        self, topic: str, message: str, chain_hint: Optional[str] = None
    ) -> dict[str, Any]:
        """Sign *message* with the session's Solana or EVM account."""
        session = self.store.require(topic)
        if chain_hint:
            use_solana = namespace_of(chain_hint) == SOLANA_NAMESPACE
            account = accounts.find(session.accounts, chain_hint)
        else:
            # Prefer EVM when the session holds both.
            account = accounts.find(session.accounts, EVM_NAMESPACE)
            use_solana = account is None
            if use_solana:
                account = accounts.find(session.accounts, SOLANA_NAMESPACE)
        if account is None or account.namespace not in NAMESPACE_METHODS:
            raise NoMatchingAccount("No supported account found", chain_hint=chain_hint)

        if use_solana:
            request = {
                "method": "solana_signMessage",
                "params": {"message": encode_solana_message(message), "pubkey": account.address},
            }
        else:
            request = {
                "method": "personal_sign",
                "params": [encode_evm_message(message), account.address],
            }
        signature = await self.gateway.send(topic, account.chain_id, request)
        return {
            "status": "signed",
            "address": account.address,
            "signature": signature,
            "chain": account.chain_id,
        }

    async def sign_typed_data(
        self, topic: str, raw_data: str, chain_hint: Optional[str] = None
    ) -> dict[str, Any]:
        """Sign EIP-712 typed data (EVM only)."""
        typed = parse_typed_data(raw_data)
        typed.setdefault("primaryType", infer_primary_type(typed["types"]))
        session = self.store.require(topic)
        account = accounts.require(session.accounts, chain_hint or EVM_NAMESPACE, label="EVM")
        if account.namespace != EVM_NAMESPACE:
            raise UnsupportedChain("Typed data signing is EVM only", chain=account.chain_id)

        signature = await self.gateway.send(
            topic,
            account.chain_id,
            {"method": "eth_signTypedData_v4", "params": [account.address, json.dumps(typed)]},
        )
        return {
            "status": "signed",
            "address": account.address,
            "signature": signature,
            "chain": account.chain_id,
            "primaryType": typed["primaryType"],
        }

    async def authenticate(self, topic: str) -> dict[str, Any]:
        """Ask the user to sign a consent message and record it on the session."""
        session = self.store.require(topic)
        account = accounts.require(session.accounts, EVM_NAMESPACE, label="EVM")

        nonce = secrets.token_hex(16)
        timestamp = utc_now_iso()
        message = build_auth_message(account.address, nonce, timestamp)

        signature = await self.gateway.send(
            topic,
            account.chain_id,
            {"method": "personal_sign", "params": [encode_evm_message(message), account.address]},
        )
        signature = str(signature)
        self.store.save(
            topic,
            session.model_copy(
                update={
                    "authenticated": True,
                    "auth_address": account.address,
                    "auth_nonce": nonce,
                    "auth_signature": signature,
                    "auth_timestamp": timestamp,
                }
            ),
        )
        return {
            "status": "authenticated",
            "address": redact_address(account.address),
            "signature": signature,
            "verified": verify_personal_signature(message, signature, account.address),
            "nonce": nonce,
            "message": message,
        }

    async def ping(self, topic: str) -> tuple[bool, Optional[str]]:
        try:
            await asyncio.wait_for(self.transport.ping(topic), timeout=self.ping_timeout)
        except asyncio.TimeoutError:
            return False, "ping timeout"
        except Exception as exc:
            return False, str(exc) or exc.__class__.__name__
        return True, None

    async def check_health(
        self,
        topics: Optional[list[str]] = None,
        clean: bool = False,
        on_ping: Optional[Callable[[str, str], None]] = None,
    ) -> dict[str, Any]:
        """Ping sessions (all when *topics* is ``None``) and optionally drop dead ones."""
        sessions = self.store.load()
        if topics is None:
            topics = list(sessions)
        for topic in topics:
            if topic not in sessions:
                raise SessionNotFound("Session not found", topic=topic)

        results: list[dict[str, Any]] = []
        dead: list[str] = []
        for topic in topics:
            session = sessions[topic]
            if on_ping is not None:
                on_ping(topic, session.peer_name)
            alive, error = await self.ping(topic)
            entry: dict[str, Any] = {
                "topic": topic[:16] + "...",
                "fullTopic": topic,
                "peerName": session.peer_name,
                "accounts": [redact_address(a.split(":", 2)[-1]) for a in session.accounts],
                "alive": alive,
            }
            if error:
                entry["error"] = error
            results.append(entry)
            if not alive:
                dead.append(topic)

        output: dict[str, Any] = {
            "checked": len(results),
            "alive": sum(1 for r in results if r["alive"]),
            "dead": len(dead),
        }
        if clean:
            if dead:
                remaining = {t: s for t, s in sessions.items() if t not in dead}
                self.store.save_all(remaining)
                logger.info(f"Removed {len(dead)} dead session(s)")
            output["cleaned"] = len(dead)
        output["sessions"] = results
        return output

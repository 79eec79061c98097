"""Agent-facing wallet tools.

These tools let an agent inspect the paired wallet, list supported tokens,
check balances, and request transfers. The agent never signs anything: every
transfer is an approval request that the user accepts or declines in their
own wallet.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from agent_wallet.errors import WalletError
from agent_wallet.tools.registry import tool
from agent_wallet.wallet import accounts, tokens

if TYPE_CHECKING:
    from agent_wallet.core.orchestrator import TransactionOrchestrator
    from agent_wallet.storage.sessions import SessionStore
    from agent_wallet.wallet.balances import BalanceProvider

logger = logging.getLogger("agent_wallet.tools.wallet")


@dataclass
class WalletToolContext:
    store: SessionStore
    orchestrator: Optional[TransactionOrchestrator] = None
    balances: Optional[BalanceProvider] = None
    topic: Optional[str] = None  # default session; latest session when unset


# Module-level state, set at runtime by the host agent
_context: WalletToolContext | None = None


def set_wallet_context(context: WalletToolContext | None) -> None:
    """Inject the wallet context (called by the agent runtime on startup)."""
    global _context
    _context = context


def _require_context() -> WalletToolContext:
    if _context is None:
        raise RuntimeError(
            "Wallet not configured. Pair a wallet with 'agent-wallet pair' first."
        )
    return _context


def _default_topic(ctx: WalletToolContext) -> str | None:
    if ctx.topic:
        return ctx.topic
    latest = ctx.store.latest()
    return latest[0] if latest else None


@tool(
    "list_accounts",
    "List the accounts (chain and address) of the paired wallet.",
    {"type": "object", "properties": {}, "required": []},
)
def list_accounts() -> str:
    ctx = _require_context()
    topic = _default_topic(ctx)
    if topic is None:
        return "No paired wallet. Ask the owner to pair one."
    session = ctx.store.get(topic)
    if session is None:
        return f"Session {topic[:12]}... not found."
    lines = [f"Wallet {session.peer_name} accounts:"]
    for account in session.parsed_accounts():
        lines.append(f"  {account.chain_id}: {account.address}")
    return "\n".join(lines)


@tool(
    "list_tokens",
    "List the tokens that can be transferred on a chain.",
    {
        "type": "object",
        "properties": {
            "chain": {
                "type": "string",
                "description": "CAIP-2 chain id, e.g. eip155:1, eip155:8453, solana:5eykt4UsFv8P8NJdTREpY1vzqKqZKvdp",
            }
        },
        "required": [],
    },
)
def list_tokens(chain: str = "eip155:1") -> str:
    found = tokens.list_for_chain(chain)
    if not found:
        return f"No tokens configured for {chain}."
    lines = [f"Tokens on {chain}:"]
    for t in found:
        lines.append(f"  {t.symbol} ({t.name}, {t.decimals} decimals): {t.address_on(chain)}")
    return "\n".join(lines)


@tool(
    "check_balance",
    "Check the paired wallet's native and token balances on a chain.",
    {
        "type": "object",
        "properties": {
            "chain": {
                "type": "string",
                "description": "CAIP-2 chain id. Omit to check every chain the wallet has an account on.",
            }
        },
        "required": [],
    },
)
async def check_balance(chain: str = "") -> str:
    ctx = _require_context()
    if ctx.balances is None:
        return "Balance lookups are not available."
    topic = _default_topic(ctx)
    session = ctx.store.get(topic) if topic else None
    if session is None:
        return "No paired wallet. Ask the owner to pair one."

    chain_list = [chain.strip()] if chain.strip() else accounts.chain_ids(session.accounts)
    lines = ["Wallet balances:"]
    for chain_id in chain_list:
        account = accounts.find(session.accounts, chain_id)
        if account is None:
            lines.append(f"  {chain_id}: no account")
            continue
        try:
            result = await ctx.balances.get_balances(account.address, chain_id)
        except WalletError as e:
            lines.append(f"  {chain_id}: error ({e.message})")
            continue
        for entry in result["balances"]:
            if entry.get("error"):
                lines.append(f"  {chain_id} {entry['token']}: error ({entry['error']})")
            else:
                lines.append(f"  {chain_id} {entry['token']}: {entry['balance']}")
    return "\n".join(lines)


@tool(
    "send_transfer",
    (
        "Request a transfer from the paired wallet. The owner must approve it "
        "in their wallet app; this call waits for the decision (up to 5 minutes)."
    ),
    {
        "type": "object",
        "properties": {
            "to": {
                "type": "string",
                "description": "Recipient address (0x..., base58 for Solana) or ENS name",
            },
            "amount": {
                "type": "string",
                "description": "Human-readable amount, e.g. '5' for 5 USDC or '0.01' for 0.01 ETH",
            },
            "chain": {
                "type": "string",
                "description": "CAIP-2 chain id. Default: eip155:1",
            },
            "token": {
                "type": "string",
                "description": "Token symbol (USDC, USDT, ...). Omit for the native asset.",
            },
        },
        "required": ["to", "amount"],
    },
)
async def send_transfer(to: str, amount: str, chain: str = "eip155:1", token: str = "") -> str:
    ctx = _require_context()
    if ctx.orchestrator is None:
        return "Transfers are not available: no signing transport configured."
    topic = _default_topic(ctx)
    if topic is None:
        return "No paired wallet. Ask the owner to pair one."

    result = await ctx.orchestrator.send_transfer(
        topic=topic,
        to=to,
        amount=amount,
        chain_id=chain.strip() or "eip155:1",
        token=token.strip() or None,
    )
    logger.info(f"send_transfer -> {result.status}")
    return json.dumps(result.to_dict())

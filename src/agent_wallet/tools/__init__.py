"""Agent Wallet tools - functions an agent runtime can expose to its model."""

from agent_wallet.tools import wallet_tools  # noqa: F401
from agent_wallet.tools.registry import ToolRegistry, tool  # noqa: F401

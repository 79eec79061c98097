"""Agent Wallet - let an AI agent request signatures and transfers from a user's wallet.

The agent never holds keys. It pairs with the user's wallet over a remote
signing session, builds transactions for EVM chains and Solana, and asks the
wallet to approve them.
"""

__version__ = "0.3.0"

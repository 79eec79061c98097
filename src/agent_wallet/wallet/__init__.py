"""Chain-level building blocks for Agent Wallet.

Chain and token tables, account-id parsing, recipient resolution, and the
EVM and Solana transfer encoders. Nothing here talks to the user's wallet;
encoders only produce payloads for it to sign.
"""

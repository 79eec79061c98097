"""Agent Wallet storage layer -- JSON session registry and Pydantic models."""

from agent_wallet.storage.models import Session
from agent_wallet.storage.sessions import SessionStore

__all__ = [
    "Session",
    "SessionStore",
]

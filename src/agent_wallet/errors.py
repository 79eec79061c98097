"""Error types raised by Agent Wallet.

Every error carries a short human-readable message and can be rendered as a
JSON-friendly dict for the CLI and the agent tools.
"""

from __future__ import annotations

from typing import Any


class WalletError(Exception):
    """Base class for all Agent Wallet errors."""

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, **self.details}


# ---------------------------------------------------------------------------
# Preconditions (raised before any network call)
# ---------------------------------------------------------------------------


class MalformedAccountId(WalletError):
    """An account id is not of the form ``namespace:reference:address``."""


class NoMatchingAccount(WalletError):
    """The session holds no account for the requested chain."""


class UnsupportedToken(WalletError):
    """The token has no registered address on the requested chain."""


class UnsupportedChain(WalletError):
    """The chain (or its namespace) is not supported."""


class SessionNotFound(WalletError):
    """No saved session matches the given topic or address."""


class TransportNotConfigured(WalletError):
    """No remote signing transport could be created from the config."""


# ---------------------------------------------------------------------------
# Network / remote failures
# ---------------------------------------------------------------------------


class NameResolutionFailed(WalletError):
    """A name-service name has no registered address."""


class ChainQueryFailed(WalletError):
    """A blockchain RPC call failed."""


class RequestTimedOut(WalletError):
    """The wallet did not answer a signing request in time."""


class UserRejected(WalletError):
    """The wallet declined the request."""

"""Configuration system for Agent Wallet.

Loads settings from ``~/.agent-wallet/config.yaml`` (or ``$AGENT_WALLET_HOME``),
supports environment variable expansion, and exposes the directory layout
used by the session registry.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Environment-variable expansion helper
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)\}")


def _expand_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with their environment values.

    If the variable is not set the placeholder is left as-is so that
    validation can catch it later.
    """

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        return os.environ.get(var_name, match.group(0))

    return _ENV_VAR_RE.sub(_replace, value)


def _expand_env_recursive(obj: object) -> object:
    """Walk an arbitrary nested structure and expand env vars in strings."""
    if isinstance(obj, str):
        return _expand_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _expand_env_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_recursive(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# Pydantic v2 models
# ---------------------------------------------------------------------------


class PeerMetadata(BaseModel):
    """Metadata advertised to the wallet when pairing."""

    name: str = "Agent Wallet"
    description: str = "AI Agent Wallet Connection"
    url: str = "https://shiorix.com"
    icons: list[str] = Field(
        default_factory=lambda: ["https://avatars.githubusercontent.com/u/258157775"]
    )


class TransportConfig(BaseModel):
    """How to build the remote signing transport.

    ``factory`` is an import path of the form ``"package.module:callable"``.
    The callable receives the :class:`WalletConfig` and returns an object
    implementing :class:`agent_wallet.core.transport.SigningTransport`.
    """

    factory: str = ""


class GatewayConfig(BaseModel):
    """Bounded request settings for wallet approvals."""

    poll_interval_seconds: float = 10.0
    timeout_seconds: float = 300.0


class WalletConfig(BaseModel):
    """Root configuration object."""

    project_id: str = "${WALLETCONNECT_PROJECT_ID}"
    metadata: PeerMetadata = Field(default_factory=PeerMetadata)
    transport: TransportConfig = Field(default_factory=TransportConfig)
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    ping_timeout_seconds: float = 15.0
    default_chain: str = "eip155:1"
    ens_rpc_url: Optional[str] = None  # Falls back to the eip155:1 RPC
    rpc: dict[str, str] = Field(default_factory=dict)  # chain id -> RPC URL override


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------

HOME_ENV_VAR = "AGENT_WALLET_HOME"


def get_root_dir(base: Path | None = None) -> Path:
    """Return the ``.agent-wallet/`` root directory (no auto-create).

    Parameters
    ----------
    base:
        Explicit root directory. When omitted, ``$AGENT_WALLET_HOME`` is used
        if set, otherwise ``~/.agent-wallet``.
    """
    if base is not None:
        return Path(base)
    env_home = os.environ.get(HOME_ENV_VAR)
    if env_home:
        return Path(env_home)
    return Path.home() / ".agent-wallet"


def get_sessions_path(root: Path | None = None) -> Path:
    """Return the path of the flat session registry file."""
    return get_root_dir(root) / "sessions.json"


def get_config_path(root: Path | None = None) -> Path:
    return get_root_dir(root) / "config.yaml"


def load_config(path: Path) -> WalletConfig:
    """Load and validate the configuration from a YAML file.

    Environment variable placeholders (``${VAR}``) are expanded before
    validation. A missing file yields the defaults.
    """
    if not path.exists():
        return WalletConfig.model_validate(_expand_env_recursive(WalletConfig().model_dump()))
    raw_text = path.read_text(encoding="utf-8")
    raw_data = yaml.safe_load(raw_text) or {}
    merged = WalletConfig().model_dump()
    merged.update(raw_data)
    expanded = _expand_env_recursive(merged)
    return WalletConfig.model_validate(expanded)


def save_config(config: WalletConfig, path: Path) -> None:
    """Serialize a :class:`WalletConfig` to a YAML file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(mode="python", exclude_none=True)
    with open(path, "w", encoding="utf-8") as fh:
        yaml.dump(data, fh, default_flow_style=False, sort_keys=False)

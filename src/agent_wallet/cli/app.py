"""CLI for Agent Wallet - let an agent request signatures and transfers from your wallet."""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, AsyncIterator, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from agent_wallet.errors import (
    MalformedAccountId,
    NoMatchingAccount,
    SessionNotFound,
    TransportNotConfigured,
    UnsupportedChain,
    WalletError,
)

app = typer.Typer(
    name="agent-wallet",
    help="Let an AI agent request signatures and transfers from your own wallet.",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)

_home: Optional[Path] = None

# Failures before anything reaches the wallet; reported as errors, not rejections.
PRECONDITION_ERRORS = (
    MalformedAccountId,
    NoMatchingAccount,
    SessionNotFound,
    TransportNotConfigured,
    UnsupportedChain,
)


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        console.print(f"agent-wallet {version('agent-wallet')}")
        raise typer.Exit()


@app.callback()
def main(
    home: Optional[Path] = typer.Option(
        None,
        "--home",
        help="Directory holding config.yaml and sessions.json",
        envvar="AGENT_WALLET_HOME",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
):
    """Let an AI agent request signatures and transfers from your own wallet."""
    global _home
    _home = home
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _run(coro):
    """Run an async function synchronously."""
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    import concurrent.futures
    with concurrent.futures.ThreadPoolExecutor() as pool:
        return pool.submit(asyncio.run, coro).result()


# ------------------------------------------------------------------
# Wiring helpers
# ------------------------------------------------------------------


def _print_json(data: Any) -> None:
    console.print_json(json.dumps(data, default=str))


def _fail(error: WalletError | str, code: int = 1) -> None:
    payload = error.to_dict() if isinstance(error, WalletError) else {"error": error}
    err_console.print_json(json.dumps(payload, default=str))
    raise typer.Exit(code)


def _load():
    from agent_wallet.config import get_config_path, get_sessions_path, load_config
    from agent_wallet.storage.sessions import SessionStore

    config = load_config(get_config_path(_home))
    return config, SessionStore(get_sessions_path(_home))


def _report_waiting(status: dict) -> None:
    err_console.print_json(json.dumps(status))


@asynccontextmanager
async def _transport(config) -> AsyncIterator[Any]:
    from agent_wallet.core.transport import load_transport

    transport = load_transport(config)
    try:
        yield transport
    finally:
        await transport.close()


def _gateway(config, transport):
    from agent_wallet.core.gateway import BoundedRequestGateway

    return BoundedRequestGateway(
        transport,
        poll_interval=config.gateway.poll_interval_seconds,
        timeout=config.gateway.timeout_seconds,
        on_waiting=_report_waiting,
    )


def _signer(config, store, transport):
    from agent_wallet.core.signing import SessionSigner

    return SessionSigner(
        store,
        transport,
        gateway=_gateway(config, transport),
        ping_timeout=config.ping_timeout_seconds,
    )


def _topic(store, topic: Optional[str], address: Optional[str]) -> str:
    try:
        return store.resolve_topic(topic, address)
    except WalletError as e:
        _fail(e)


# ------------------------------------------------------------------
# Setup
# ------------------------------------------------------------------


@app.command()
def init(
    transport: str = typer.Option("", "--transport", help="Transport factory, 'module:callable'"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing config"),
):
    """Write a starter config.yaml."""
    from agent_wallet.config import WalletConfig, get_config_path, save_config

    path = get_config_path(_home)
    if path.exists() and not force:
        console.print(f"[yellow]Config already exists at {path}.[/yellow] Use --force to overwrite.")
        raise typer.Exit(1)
    config = WalletConfig()
    config.transport.factory = transport
    save_config(config, path)
    console.print(Panel(
        f"[bold green]Config written![/bold green]\n\n"
        f"Path: [cyan]{path}[/cyan]\n\n"
        f"[dim]Set WALLETCONNECT_PROJECT_ID and a transport factory, then run 'agent-wallet pair'.[/dim]",
        title="Agent Wallet",
    ))


@app.command()
def pair(
    chains: str = typer.Option("eip155:1", "--chains", help="Comma-separated chain ids to request"),
):
    """Create a new pairing session and wait for the wallet to approve it."""
    config, store = _load()
    chain_list = [c.strip() for c in chains.split(",") if c.strip()]

    def _show_uri(uri: str) -> None:
        _print_json({"uri": uri, "status": "waiting_for_approval"})

    async def _pair():
        async with _transport(config) as transport:
            return await _signer(config, store, transport).pair(chain_list, on_uri=_show_uri)

    try:
        result = _run(_pair())
    except PRECONDITION_ERRORS as e:
        _fail(e)
    except Exception as e:
        result = {"status": "rejected", "error": str(e)}
    _print_json(result)


# ------------------------------------------------------------------
# Signing
# ------------------------------------------------------------------


@app.command()
def auth(
    topic: Optional[str] = typer.Option(None, "--topic", help="Session topic"),
    address: Optional[str] = typer.Option(None, "--address", help="Select session by wallet address"),
):
    """Send a consent sign request to verify wallet ownership."""
    config, store = _load()
    topic = _topic(store, topic, address)

    async def _auth():
        async with _transport(config) as transport:
            return await _signer(config, store, transport).authenticate(topic)

    try:
        result = _run(_auth())
    except PRECONDITION_ERRORS as e:
        _fail(e)
    except Exception as e:
        result = {"status": "rejected", "error": str(e)}
    _print_json(result)


@app.command()
def sign(
    message: str = typer.Option(..., "--message", "-m", help="Message to sign"),
    topic: Optional[str] = typer.Option(None, "--topic", help="Session topic"),
    address: Optional[str] = typer.Option(None, "--address", help="Select session by wallet address"),
    chain: Optional[str] = typer.Option(None, "--chain", help="Chain id or namespace (eip155, solana)"),
):
    """Sign an arbitrary message (EVM or Solana)."""
    config, store = _load()
    topic = _topic(store, topic, address)

    async def _sign():
        async with _transport(config) as transport:
            return await _signer(config, store, transport).sign_message(topic, message, chain)

    try:
        result = _run(_sign())
    except PRECONDITION_ERRORS as e:
        _fail(e)
    except Exception as e:
        result = {"status": "rejected", "error": str(e)}
    _print_json(result)


@app.command("sign-typed-data")
def sign_typed_data(
    data: str = typer.Option(..., "--data", help="EIP-712 JSON or @path/to/file.json"),
    topic: Optional[str] = typer.Option(None, "--topic", help="Session topic"),
    address: Optional[str] = typer.Option(None, "--address", help="Select session by wallet address"),
    chain: Optional[str] = typer.Option(None, "--chain", help="EVM chain id (default: first EVM account)"),
):
    """Sign EIP-712 typed data (EVM only)."""
    from agent_wallet.core.signing import parse_typed_data

    config, store = _load()
    topic = _topic(store, topic, address)
    try:
        parse_typed_data(data)
    except ValueError as e:
        _fail(str(e))

    async def _sign():
        async with _transport(config) as transport:
            return await _signer(config, store, transport).sign_typed_data(topic, data, chain)

    try:
        result = _run(_sign())
    except PRECONDITION_ERRORS as e:
        _fail(e)
    except Exception as e:
        result = {"status": "rejected", "error": str(e)}
    _print_json(result)


@app.command("send-tx")
def send_tx(
    to: str = typer.Option(..., "--to", "-t", help="Recipient address or ENS name"),
    amount: str = typer.Option(..., "--amount", "-a", help="Amount to send (e.g. 0.01)"),
    topic: Optional[str] = typer.Option(None, "--topic", help="Session topic"),
    address: Optional[str] = typer.Option(None, "--address", help="Select session by wallet address"),
    chain: Optional[str] = typer.Option(None, "--chain", "-c", help="Chain id (default from config)"),
    token: Optional[str] = typer.Option(None, "--token", help="Token symbol, e.g. USDC (default: native)"),
):
    """Send a native or token transfer (EVM or Solana), approved in the wallet."""
    from agent_wallet.core.orchestrator import TransactionOrchestrator
    from agent_wallet.wallet.resolver import AddressResolver

    config, store = _load()
    topic = _topic(store, topic, address)
    chain_id = chain or config.default_chain

    async def _send():
        async with _transport(config) as transport:
            orchestrator = TransactionOrchestrator(
                store,
                _gateway(config, transport),
                resolver=AddressResolver(config.ens_rpc_url or config.rpc.get("eip155:1")),
                rpc_overrides=config.rpc,
            )
            return await orchestrator.send_transfer(topic, to, amount, chain_id, token)

    try:
        result = _run(_send())
    except WalletError as e:
        _fail(e)
    if result.name:
        err_console.print_json(json.dumps({"ens": result.name, "resolved": result.to}))
    _print_json(result.to_dict())
    if result.status == "error":
        raise typer.Exit(1)


# ------------------------------------------------------------------
# Read-only commands
# ------------------------------------------------------------------


@app.command()
def balance(
    topic: Optional[str] = typer.Option(None, "--topic", help="Session topic"),
    address: Optional[str] = typer.Option(None, "--address", help="Wallet address"),
    chain: Optional[str] = typer.Option(None, "--chain", "-c", help="Chain id to check"),
):
    """Check wallet balances via public RPC (no wallet interaction needed)."""
    from agent_wallet.wallet import accounts
    from agent_wallet.wallet.balances import BalanceProvider

    config, store = _load()
    targets: list[tuple[str, str]] = []

    if topic or (address and store.find_by_address(address)):
        session = store.get(_topic(store, topic, address))
        if session is None:
            _fail("Session not found")
        chain_list = [chain] if chain else accounts.chain_ids(session.accounts)
        for chain_id in chain_list:
            account = accounts.find(session.accounts, chain_id)
            if account is not None:
                targets.append((account.address, chain_id))
    elif address:
        targets.append((address, chain or config.default_chain))
    else:
        for session in store.load().values():
            for account in session.parsed_accounts():
                if not chain or account.chain_id == chain:
                    targets.append((account.address, account.chain_id))

    seen: set[str] = set()
    unique = []
    for addr, chain_id in targets:
        key = f"{chain_id}:{addr.lower()}"
        if key not in seen:
            seen.add(key)
            unique.append((addr, chain_id))

    if not unique:
        _print_json({"error": "No accounts found. Use --topic, --address, or ensure sessions exist."})
        return

    async def _balances():
        provider = BalanceProvider(config.rpc)
        results = []
        for addr, chain_id in unique:
            try:
                results.append(await provider.get_balances(addr, chain_id))
            except WalletError as e:
                results.append({"chain": chain_id, "address": addr, "balances": [], "error": e.message})
        return results

    _print_json(_run(_balances()))


@app.command()
def tokens(
    chain: str = typer.Option("eip155:1", "--chain", "-c", help="Chain id"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
):
    """List supported tokens for a chain."""
    from agent_wallet.wallet.tokens import list_for_chain

    found = list_for_chain(chain)
    if as_json:
        _print_json({
            "chain": chain,
            "tokens": [
                {"symbol": t.symbol, "name": t.name, "decimals": t.decimals, "address": t.address_on(chain)}
                for t in found
            ],
        })
        return
    if not found:
        console.print(f"[dim]No tokens configured for {chain}.[/dim]")
        return

    table = Table(title=f"Tokens on {chain}")
    table.add_column("Symbol", style="cyan")
    table.add_column("Name")
    table.add_column("Decimals", justify="right")
    table.add_column("Address", style="dim")
    for t in found:
        table.add_row(t.symbol, t.name, str(t.decimals), t.address_on(chain))
    console.print(table)


@app.command()
def status(
    topic: Optional[str] = typer.Option(None, "--topic", help="Session topic"),
    address: Optional[str] = typer.Option(None, "--address", help="Select session by wallet address"),
):
    """Check whether a session is saved."""
    _, store = _load()
    topic = _topic(store, topic, address)
    session = store.get(topic)
    if session is None:
        _print_json({"status": "not_found", "topic": topic})
        return
    _print_json({"status": "active", **session.to_json_dict()})


@app.command()
def sessions():
    """List all sessions (raw JSON)."""
    _, store = _load()
    _print_json({t: s.to_json_dict() for t, s in store.load().items()})


@app.command("list-sessions")
def list_sessions():
    """List sessions with accounts, peer and date."""
    _, store = _load()
    entries = store.load()
    if not entries:
        console.print("[dim]No saved sessions.[/dim]")
        return

    table = Table(title="Saved Sessions")
    table.add_column("Topic", style="dim")
    table.add_column("Peer")
    table.add_column("Created")
    table.add_column("Accounts", style="cyan")
    for t, s in entries.items():
        try:
            created = datetime.fromisoformat(s.created_at.replace("Z", "+00:00")).strftime("%Y-%m-%d %H:%M")
        except ValueError:
            created = "unknown"
        peer = s.peer_name + (" [green]authenticated[/green]" if s.authenticated else "")
        lines = [f"{a.chain_id} -> {a.address}" for a in s.parsed_accounts()]
        table.add_row(t[:12] + "...", peer, created, "\n".join(lines))
    console.print(table)


@app.command()
def whoami(
    topic: Optional[str] = typer.Option(None, "--topic", help="Session topic"),
    address: Optional[str] = typer.Option(None, "--address", help="Select session by wallet address"),
):
    """Show account info for a session (latest session by default)."""
    _, store = _load()
    if topic or address:
        topic = _topic(store, topic, address)
        session = store.get(topic)
        if session is None:
            _fail(f"Session not found: {topic}")
    else:
        latest = store.latest()
        if latest is None:
            _print_json({"error": "No sessions found"})
            return
        topic, session = latest
    _print_json({
        "topic": topic,
        "peerName": session.peer_name,
        "accounts": session.accounts,
        "authenticated": session.authenticated,
        "createdAt": session.created_at,
    })


@app.command("delete-session")
def delete_session(
    topic: Optional[str] = typer.Option(None, "--topic", help="Session topic"),
    address: Optional[str] = typer.Option(None, "--address", help="Select session by wallet address"),
):
    """Remove a saved session."""
    _, store = _load()
    topic = _topic(store, topic, address)
    removed = store.delete(topic)
    if removed is None:
        _print_json({"status": "not_found", "topic": topic})
        return
    _print_json({
        "status": "deleted",
        "topic": topic,
        "peerName": removed.peer_name,
        "accounts": removed.accounts,
    })


@app.command()
def health(
    topic: Optional[str] = typer.Option(None, "--topic", help="Session topic"),
    address: Optional[str] = typer.Option(None, "--address", help="Select session by wallet address"),
    all_sessions: bool = typer.Option(False, "--all", help="Ping all sessions"),
    clean: bool = typer.Option(False, "--clean", help="Remove dead sessions from storage"),
):
    """Ping session(s) to check liveness."""
    config, store = _load()
    if all_sessions:
        if not store.load():
            _print_json({"status": "no_sessions", "message": "No sessions found"})
            return
        topics = None
    elif topic or address:
        topics = [_topic(store, topic, address)]
    else:
        _fail("--topic, --address, or --all required for health command")

    def _on_ping(t: str, peer: str) -> None:
        err_console.print_json(json.dumps({"pinging": t, "peer": peer}))

    async def _health():
        async with _transport(config) as transport:
            return await _signer(config, store, transport).check_health(
                topics, clean=clean, on_ping=_on_ping
            )

    try:
        result = _run(_health())
    except WalletError as e:
        _fail(e)
    _print_json(result)


if __name__ == "__main__":
    app()

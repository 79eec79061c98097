from agent_wallet.config import (
    WalletConfig,
    get_config_path,
    get_root_dir,
    get_sessions_path,
    load_config,
    save_config,
)


def test_root_dir_precedence(tmp_path, monkeypatch):
    monkeypatch.setenv("AGENT_WALLET_HOME", str(tmp_path / "env"))
    assert get_root_dir() == tmp_path / "env"
    assert get_root_dir(tmp_path / "explicit") == tmp_path / "explicit"
    assert get_sessions_path(tmp_path) == tmp_path / "sessions.json"

    monkeypatch.delenv("AGENT_WALLET_HOME")
    assert get_root_dir().name == ".agent-wallet"


def test_missing_file_gives_defaults(tmp_path):
    config = load_config(tmp_path / "config.yaml")
    assert config.default_chain == "eip155:1"
    assert config.gateway.timeout_seconds == 300
    assert config.gateway.poll_interval_seconds == 10
    assert config.transport.factory == ""


def test_env_expansion_and_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("WALLETCONNECT_PROJECT_ID", "proj-123")
    monkeypatch.setenv("BASE_RPC", "https://base.example")
    path = get_config_path(tmp_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        "default_chain: eip155:8453\n"
        "gateway:\n  timeout_seconds: 60\n"
        "rpc:\n  eip155:8453: ${BASE_RPC}\n"
    )
    config = load_config(path)
    assert config.project_id == "proj-123"
    assert config.default_chain == "eip155:8453"
    assert config.gateway.timeout_seconds == 60
    assert config.rpc == {"eip155:8453": "https://base.example"}


def test_unset_variable_is_left_in_place(tmp_path, monkeypatch):
    monkeypatch.delenv("WALLETCONNECT_PROJECT_ID", raising=False)
    assert load_config(tmp_path / "none.yaml").project_id == "${WALLETCONNECT_PROJECT_ID}"


def test_save_and_reload(tmp_path):
    config = WalletConfig()
    config.transport.factory = "my_relay:build"
    path = tmp_path / "nested" / "config.yaml"
    save_config(config, path)
    assert load_config(path).transport.factory == "my_relay:build"

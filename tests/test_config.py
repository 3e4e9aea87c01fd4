"""Tests for configuration loading and environment overrides."""

import pytest

from evm_wallet_api.config import (
    ServiceConfig,
    apply_env_overrides,
    config_from_env,
    load_config,
    save_config,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in ("RPC_ENDPOINT", "SERVER_PORT", "PRIVATE_KEY"):
        monkeypatch.delenv(var, raising=False)


def test_defaults():
    config = config_from_env({})
    assert config.rpc.default_endpoint == "https://rpc.verylabs.io"
    assert config.server.port == 3000
    assert config.private_key is None
    assert config.fees.max_attempts == 3


def test_env_overrides():
    config = config_from_env(
        {
            "RPC_ENDPOINT": "https://custom-rpc.example.com",
            "SERVER_PORT": "8080",
            "PRIVATE_KEY": "0xabc",
        }
    )
    assert config.rpc.default_endpoint == "https://custom-rpc.example.com"
    assert config.server.port == 8080
    assert config.private_key.get_secret_value() == "0xabc"
    assert "0xabc" not in repr(config)


def test_bad_port_is_ignored(caplog):
    config = config_from_env({"SERVER_PORT": "eighty"})
    assert config.server.port == 3000
    assert "SERVER_PORT" in caplog.text


def test_overrides_do_not_mutate_input():
    base = ServiceConfig()
    apply_env_overrides(base, {"RPC_ENDPOINT": "http://elsewhere:8545"})
    assert base.rpc.default_endpoint == "https://rpc.verylabs.io"


def test_yaml_with_env_expansion(tmp_path, monkeypatch):
    monkeypatch.setenv("NODE_HOST", "10.1.2.3")
    path = tmp_path / "wallet.yaml"
    path.write_text(
        "rpc:\n"
        "  default_endpoint: http://${NODE_HOST}:8545\n"
        "fees:\n"
        "  max_attempts: 5\n"
        "networks:\n"
        "  staging: http://${NODE_HOST}:9545\n"
        "  untouched: http://${NOT_SET_ANYWHERE}:1\n",
        encoding="utf-8",
    )

    config = load_config(path)

    assert config.rpc.default_endpoint == "http://10.1.2.3:8545"
    assert config.fees.max_attempts == 5
    assert config.networks["staging"] == "http://10.1.2.3:9545"
    assert config.networks["untouched"] == "http://${NOT_SET_ANYWHERE}:1"


def test_env_beats_yaml(tmp_path, monkeypatch):
    path = tmp_path / "wallet.yaml"
    path.write_text("server:\n  port: 4000\n", encoding="utf-8")
    monkeypatch.setenv("SERVER_PORT", "5000")
    assert load_config(path).server.port == 5000


def test_save_round_trip_drops_private_key(tmp_path):
    config = config_from_env({"PRIVATE_KEY": "0xsecret"})
    config.networks["dev"] = "http://localhost:8545"
    path = tmp_path / "nested" / "wallet.yaml"

    save_config(config, path)

    assert "secret" not in path.read_text(encoding="utf-8")
    reloaded = load_config(path)
    assert reloaded.networks == {"dev": "http://localhost:8545"}
    assert reloaded.private_key is None

"""Tests for chain detection, fallback prices, and the custom network registry."""

import threading

import pytest

from conftest import FakeProvider
from evm_wallet_api.config import FeeConfig
from evm_wallet_api.errors import NetworkAlreadyRegistered, UnknownNetwork
from evm_wallet_api.wallet.chains import (
    CHAINS,
    DEFAULT_FALLBACK_GAS_PRICE,
    DEFAULT_PRIORITY_FEE_MINIMUM,
    GWEI,
    NetworkRegistry,
    detect_network,
    get_chain,
    is_very_network,
    list_chain_names,
)
from evm_wallet_api.wallet.fees import FeeOracle


@pytest.fixture
def oracle():
    return FeeOracle(FakeProvider())


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://eth-mainnet.infura.io", 30 * GWEI),
        ("https://mainnet.alchemyapi.io", 30 * GWEI),
        ("https://ethereum-mainnet.example.com", 30 * GWEI),
        ("https://polygon-mainnet.infura.io", 35 * GWEI),
        ("https://matic-mainnet.alchemyapi.io", 35 * GWEI),
        ("https://polygon.example.com", 35 * GWEI),
        ("https://bsc-dataseed.binance.org", 8 * GWEI),
        ("https://binance-smart-chain.example.com", 8 * GWEI),
        ("https://arbitrum-mainnet.infura.io", 2 * GWEI),
        ("https://arbitrum.example.com", 2 * GWEI),
        ("https://optimism-mainnet.infura.io", 10_000_000),
        ("https://optimism.example.com", 10_000_000),
        ("https://base-mainnet.g.alchemy.com", 10_000_000),
        ("https://avalanche-mainnet.infura.io", 25 * GWEI),
        ("https://api.avax.network/ext/bc/C/rpc", 25 * GWEI),
        ("https://fantom-mainnet.infura.io", 20 * GWEI),
        ("https://unknown-network.example.com", 25 * GWEI),
    ],
)
def test_fallback_gas_prices(oracle, url, expected):
    assert oracle.fallback_price(url) == expected


def test_specific_networks_win_over_ethereum(oracle):
    assert detect_network("https://polygon-mainnet.infura.io").name == "polygon"
    assert detect_network("https://arbitrum-ethereum-mainnet.infura.io").name == "arbitrum"
    assert oracle.fallback_price("https://arbitrum-ethereum-mainnet.infura.io") == 2 * GWEI


def test_explicit_network_beats_url(oracle):
    assert oracle.fallback_price("https://eth-mainnet.infura.io", CHAINS["bsc"]) == 8 * GWEI


def test_unknown_url_has_no_network(oracle):
    assert detect_network("http://localhost:8545") is None
    assert oracle.fallback_price("http://localhost:8545") == DEFAULT_FALLBACK_GAS_PRICE
    assert oracle.priority_minimum("http://localhost:8545") == DEFAULT_PRIORITY_FEE_MINIMUM


def test_configured_default_applies_only_to_unknown_networks():
    oracle = FeeOracle(FakeProvider(), FeeConfig(default_fallback_price=7 * GWEI))
    assert oracle.fallback_price("http://localhost:8545") == 7 * GWEI
    assert oracle.fallback_price("https://polygon-rpc.com") == 35 * GWEI


def test_very_network_detection():
    assert is_very_network("https://verylabs.io")
    assert is_very_network("https://api.verylabs.io")
    assert is_very_network("https://very.example.com")
    assert not is_very_network("https://ethereum.org")
    assert not is_very_network("https://polygon.technology")
    assert is_very_network("https://rpc.very.network")


@pytest.mark.parametrize(
    "url",
    [
        "https://eth-mainnet.g.alchemy.com/v2/everything",
        "https://delivery-node.example.com",
        "https://every.example.com",
    ],
)
def test_very_requires_a_host_label(url):
    assert not is_very_network(url)


def test_very_has_fixed_fees():
    very = get_chain("VERY")
    assert very.has_fixed_price
    assert very.fixed_gas_price == GWEI
    assert very.fixed_priority_fee == GWEI // 10


def test_get_chain_unknown():
    with pytest.raises(UnknownNetwork):
        get_chain("dogechain")
    assert "ethereum" in list_chain_names()


class TestNetworkRegistry:
    def test_add_get_remove(self):
        registry = NetworkRegistry()
        info = registry.add("  MyNet ", "http://10.0.0.1:8545")
        assert info.name == "mynet"
        assert registry.get("MYNET") == "http://10.0.0.1:8545"
        assert "mynet" in registry
        assert registry.remove("mynet") is True
        assert registry.remove("mynet") is False
        assert registry.get("mynet") is None

    def test_duplicate_rejected(self):
        registry = NetworkRegistry({"dev": "http://localhost:8545"})
        with pytest.raises(NetworkAlreadyRegistered):
            registry.add("DEV", "http://other:8545")
        assert registry.get("dev") == "http://localhost:8545"

    def test_empty_name_rejected(self):
        with pytest.raises(UnknownNetwork):
            NetworkRegistry().add("   ", "http://localhost:8545")

    def test_list_is_sorted(self):
        registry = NetworkRegistry({"zeta": "http://z", "alpha": "http://a"})
        assert [n.name for n in registry.list()] == ["alpha", "zeta"]

    def test_registries_are_isolated(self):
        first = NetworkRegistry()
        second = NetworkRegistry()
        first.add("dev", "http://localhost:8545")
        assert "dev" not in second

    def test_concurrent_adds_register_once(self):
        registry = NetworkRegistry()
        outcomes = []

        def register():
            try:
                registry.add("race", "http://localhost:8545")
                outcomes.append("ok")
            except NetworkAlreadyRegistered:
                outcomes.append("dup")

        threads = [threading.Thread(target=register) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert outcomes.count("ok") == 1
        assert outcomes.count("dup") == 7

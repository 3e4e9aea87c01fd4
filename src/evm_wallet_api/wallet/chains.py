"""Chain definitions and network identity for supported EVM networks."""

from __future__ import annotations

import threading
from dataclasses import dataclass

from pydantic import BaseModel

from evm_wallet_api.errors import NetworkAlreadyRegistered, UnknownNetwork

GWEI = 10**9

DEFAULT_FALLBACK_GAS_PRICE = 25 * GWEI
DEFAULT_PRIORITY_FEE_MINIMUM = 1 * GWEI


@dataclass(frozen=True)
class Chain:
    """An EVM-compatible blockchain network.

    ``aliases`` are the lowercase substrings that identify the network in a
    bare RPC URL. Generic chains are only matched after every specific one.
    """

    name: str
    chain_id: int
    rpc_url: str
    native_symbol: str
    explorer_url: str
    aliases: tuple[str, ...] = ()
    fallback_gas_price: int = DEFAULT_FALLBACK_GAS_PRICE
    priority_fee_minimum: int = DEFAULT_PRIORITY_FEE_MINIMUM
    fixed_gas_price: int | None = None
    fixed_priority_fee: int | None = None
    generic: bool = False

    @property
    def has_fixed_price(self) -> bool:
        return self.fixed_gas_price is not None

    def matches(self, endpoint: str) -> bool:
        url = endpoint.lower()
        return any(alias in url for alias in self.aliases)


# Declared most-specific-first; detection walks this order.
CHAINS: dict[str, Chain] = {
    "very": Chain(
        name="very",
        chain_id=4613,
        rpc_url="https://rpc.verylabs.io",
        native_symbol="VERY",
        explorer_url="https://veryscan.io",
        aliases=("verylabs", "//very.", ".very."),
        fixed_gas_price=1 * GWEI,
        fixed_priority_fee=GWEI // 10,
    ),
    "polygon": Chain(
        name="polygon",
        chain_id=137,
        rpc_url="https://polygon-rpc.com",
        native_symbol="POL",
        explorer_url="https://polygonscan.com",
        aliases=("polygon", "matic"),
        fallback_gas_price=35 * GWEI,
        priority_fee_minimum=30 * GWEI,
    ),
    "arbitrum": Chain(
        name="arbitrum",
        chain_id=42161,
        rpc_url="https://arb1.arbitrum.io/rpc",
        native_symbol="ETH",
        explorer_url="https://arbiscan.io",
        aliases=("arbitrum",),
        fallback_gas_price=2 * GWEI,
        priority_fee_minimum=GWEI // 1000,
    ),
    "optimism": Chain(
        name="optimism",
        chain_id=10,
        rpc_url="https://mainnet.optimism.io",
        native_symbol="ETH",
        explorer_url="https://optimistic.etherscan.io",
        aliases=("optimism",),
        fallback_gas_price=GWEI // 100,
        priority_fee_minimum=GWEI // 1000,
    ),
    "base": Chain(
        name="base",
        chain_id=8453,
        rpc_url="https://mainnet.base.org",
        native_symbol="ETH",
        explorer_url="https://basescan.org",
        aliases=("base-mainnet", "base-sepolia", "mainnet.base.org", "sepolia.base.org"),
        fallback_gas_price=GWEI // 100,
        priority_fee_minimum=GWEI // 1000,
    ),
    "bsc": Chain(
        name="bsc",
        chain_id=56,
        rpc_url="https://bsc-dataseed.binance.org",
        native_symbol="BNB",
        explorer_url="https://bscscan.com",
        aliases=("bsc", "binance"),
        fallback_gas_price=8 * GWEI,
    ),
    "avalanche": Chain(
        name="avalanche",
        chain_id=43114,
        rpc_url="https://api.avax.network/ext/bc/C/rpc",
        native_symbol="AVAX",
        explorer_url="https://snowtrace.io",
        aliases=("avalanche", "avax"),
        fallback_gas_price=25 * GWEI,
    ),
    "fantom": Chain(
        name="fantom",
        chain_id=250,
        rpc_url="https://rpc.ftm.tools",
        native_symbol="FTM",
        explorer_url="https://ftmscan.com",
        aliases=("fantom",),
        fallback_gas_price=20 * GWEI,
    ),
    "ethereum": Chain(
        name="ethereum",
        chain_id=1,
        rpc_url="https://eth.llamarpc.com",
        native_symbol="ETH",
        explorer_url="https://etherscan.io",
        aliases=("ethereum", "eth", "mainnet", "sepolia", "holesky"),
        fallback_gas_price=30 * GWEI,
        generic=True,
    ),
}


def get_chain(name: str) -> Chain:
    """Get a chain by name. Raises ``UnknownNetwork`` if not found."""
    chain = CHAINS.get(name.strip().lower())
    if chain is None:
        raise UnknownNetwork(
            f"Unknown chain '{name}'. Available: {list_chain_names()}",
            network=name,
        )
    return chain


def list_chain_names() -> list[str]:
    """Return the names of all supported chains."""
    return list(CHAINS.keys())


def detect_network(endpoint: str) -> Chain | None:
    """Guess the network behind a bare RPC URL.

    Specific chains are tried before generic ones, so
    ``https://polygon-mainnet.infura.io`` is Polygon, not Ethereum.
    """
    ordered = sorted(CHAINS.values(), key=lambda c: c.generic)
    for chain in ordered:
        if chain.matches(endpoint):
            return chain
    return None


def is_very_network(endpoint: str) -> bool:
    return CHAINS["very"].matches(endpoint)


# ---------------------------------------------------------------------------
# Custom network registry
# ---------------------------------------------------------------------------


class NetworkInfo(BaseModel):
    name: str
    rpc_url: str


class NetworkRegistry:
    """User-registered network names mapped to RPC URLs.

    One registry is owned by each serving context and passed to endpoint
    resolution explicitly. Not persisted.
    """

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._lock = threading.Lock()
        self._networks: dict[str, str] = {}
        for name, url in (initial or {}).items():
            self._networks[_normalize_name(name)] = url

    def add(self, name: str, rpc_url: str) -> NetworkInfo:
        key = _normalize_name(name)
        if not key:
            raise UnknownNetwork("Network name must not be empty", network=name)
        with self._lock:
            if key in self._networks:
                raise NetworkAlreadyRegistered(
                    f"Network '{key}' is already registered", network=key
                )
            self._networks[key] = rpc_url
        return NetworkInfo(name=key, rpc_url=rpc_url)

    def remove(self, name: str) -> bool:
        """Remove a network. Returns ``False`` if it was not registered."""
        with self._lock:
            return self._networks.pop(_normalize_name(name), None) is not None

    def get(self, name: str) -> str | None:
        with self._lock:
            return self._networks.get(_normalize_name(name))

    def list(self) -> list[NetworkInfo]:
        with self._lock:
            items = sorted(self._networks.items())
        return [NetworkInfo(name=name, rpc_url=url) for name, url in items]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get(name) is not None


def _normalize_name(name: str) -> str:
    return name.strip().lower()

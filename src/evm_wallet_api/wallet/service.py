"""High-level wallet service used by the HTTP API and CLI."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from evm_wallet_api.config import ServiceConfig, config_from_env
from evm_wallet_api.errors import UnknownNetwork
from evm_wallet_api.wallet.chains import CHAINS, Chain, NetworkRegistry, detect_network
from evm_wallet_api.wallet.fees import FeeOracle
from evm_wallet_api.wallet.provider import Web3Provider
from evm_wallet_api.wallet.reader import ChainReader
from evm_wallet_api.wallet.transactions import TransactionBuilder

logger = logging.getLogger("evm_wallet_api.wallet.service")


@dataclass(frozen=True)
class ResolvedEndpoint:
    """A concrete RPC URL plus the network identity it was resolved with."""

    url: str
    network: Chain | None


class WalletService:
    """Orchestrates config, network registry, provider, and the wallet core.

    One instance is owned by each serving context (API app, CLI run); its
    registry is not shared with any other instance.
    """

    def __init__(
        self,
        config: ServiceConfig | None = None,
        provider: Any | None = None,
        registry: NetworkRegistry | None = None,
    ) -> None:
        self.config = config or config_from_env()
        self.provider = provider or Web3Provider()
        self.registry = registry or NetworkRegistry(self.config.networks)
        self.fee_oracle = FeeOracle(self.provider, self.config.fees)
        self.transactions = TransactionBuilder(self.provider, self.fee_oracle)
        self.reader = ChainReader(self.provider)

    @property
    def default_endpoint(self) -> str:
        return self.config.rpc.default_endpoint

    def resolve_endpoint(self, network: str | None = None) -> ResolvedEndpoint:
        """Map a caller-supplied network to a concrete endpoint.

        Lookup order: no value (configured default), custom registry name,
        built-in chain name, literal URL. Network identity is only guessed
        from the URL when nothing more explicit is known.
        """
        if network is None or not network.strip():
            url = self.default_endpoint
            return ResolvedEndpoint(url=url, network=detect_network(url))

        name = network.strip()
        custom_url = self.registry.get(name)
        if custom_url is not None:
            return ResolvedEndpoint(url=custom_url, network=detect_network(custom_url))

        chain = CHAINS.get(name.lower())
        if chain is not None:
            return ResolvedEndpoint(url=chain.rpc_url, network=chain)

        if name.lower().startswith(("http://", "https://", "ws://", "wss://")):
            return ResolvedEndpoint(url=name, network=detect_network(name))

        raise UnknownNetwork(
            f"Unknown network '{name}'. Register it first or pass an RPC URL.",
            network=name,
        )

    async def close(self) -> None:
        """Release the provider's open RPC sessions."""
        await self.provider.close()

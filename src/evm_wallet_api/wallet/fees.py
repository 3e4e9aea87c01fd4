"""Gas price and EIP-1559 fee resolution across unreliable RPC endpoints.

The oracle never raises. Transport failures, implausible prices, and missing
priority-fee support all degrade to the per-network fallback table, and each
degradation is logged with the endpoint so it can be diagnosed later.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

from evm_wallet_api.config import FeeConfig
from evm_wallet_api.errors import InvalidAmount
from evm_wallet_api.wallet.chains import Chain, detect_network

logger = logging.getLogger("evm_wallet_api.wallet.fees")


class PriceSource(str, Enum):
    FIXED = "fixed"
    NETWORK = "network"
    FALLBACK = "fallback"


class PrioritySource(str, Enum):
    FIXED = "fixed"
    NETWORK = "network"
    HEURISTIC = "heuristic"


@dataclass(frozen=True)
class FeeQuote:
    """A fully populated fee quote; ``max_fee_per_gas >= max_priority_fee_per_gas``."""

    gas_price: int
    max_fee_per_gas: int
    max_priority_fee_per_gas: int
    source: PriceSource = PriceSource.NETWORK
    priority_source: PrioritySource = PrioritySource.NETWORK

    def to_dict(self) -> dict[str, str]:
        return {
            "gas_price": str(self.gas_price),
            "max_fee_per_gas": str(self.max_fee_per_gas),
            "max_priority_fee_per_gas": str(self.max_priority_fee_per_gas),
            "source": self.source.value,
            "priority_source": self.priority_source.value,
        }


class FeeOracle:
    """Resolves a :class:`FeeQuote` for an RPC endpoint.

    Parameters
    ----------
    provider:
        Anything with a ``client(endpoint, network)`` method returning a
        chain client (see :class:`~evm_wallet_api.wallet.provider.Web3Provider`).
    config:
        Retry and range limits. Defaults to :class:`FeeConfig`.
    sleep:
        Coroutine used for the retry backoff.
    """

    def __init__(
        self,
        provider: Any,
        config: FeeConfig | None = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.provider = provider
        self.config = config or FeeConfig()
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def resolve_fee(self, endpoint: str, network: Chain | None = None) -> FeeQuote:
        chain = network or detect_network(endpoint)

        if chain is not None and chain.has_fixed_price:
            price = chain.fixed_gas_price
            priority = chain.fixed_priority_fee if chain.fixed_priority_fee is not None else 0
            max_fee = price * 2
            return FeeQuote(
                gas_price=price,
                max_fee_per_gas=max_fee,
                max_priority_fee_per_gas=min(priority, max_fee),
                source=PriceSource.FIXED,
                priority_source=PrioritySource.FIXED,
            )

        price, source = await self._legacy_price(endpoint, chain)
        max_fee = price * 2
        priority, priority_source = await self._priority_fee(endpoint, chain, price)
        if priority > max_fee:
            logger.warning(
                f"Priority fee {priority} exceeds max fee {max_fee} on {endpoint}; capping"
            )
            priority = max_fee

        quote = FeeQuote(
            gas_price=price,
            max_fee_per_gas=max_fee,
            max_priority_fee_per_gas=priority,
            source=source,
            priority_source=priority_source,
        )
        logger.debug(f"Fee quote for {endpoint}: {quote}")
        return quote

    async def gas_price(self, endpoint: str, network: Chain | None = None) -> int:
        """The legacy gas price alone, with the same fallbacks as :meth:`resolve_fee`."""
        chain = network or detect_network(endpoint)
        if chain is not None and chain.has_fixed_price:
            return chain.fixed_gas_price
        price, _ = await self._legacy_price(endpoint, chain)
        return price

    async def gas_price_with_margin(
        self, endpoint: str, margin_percent: int, network: Chain | None = None
    ) -> int:
        """The legacy gas price increased by *margin_percent* percent."""
        if margin_percent < 0:
            raise InvalidAmount(
                f"Margin must be non-negative, got {margin_percent}",
                margin_percent=margin_percent,
            )
        price = await self.gas_price(endpoint, network)
        return price * (100 + margin_percent) // 100

    def fallback_price(self, endpoint: str, network: Chain | None = None) -> int:
        chain = network or detect_network(endpoint)
        if chain is None:
            return self.config.default_fallback_price
        return chain.fallback_gas_price

    def priority_minimum(self, endpoint: str, network: Chain | None = None) -> int:
        chain = network or detect_network(endpoint)
        if chain is None:
            return self.config.default_priority_fee_minimum
        return chain.priority_fee_minimum

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _legacy_price(self, endpoint: str, chain: Chain | None) -> tuple[int, PriceSource]:
        cfg = self.config
        for attempt in range(1, cfg.max_attempts + 1):
            try:
                price = await self.provider.client(endpoint, chain).get_gas_price()
            except Exception as exc:
                logger.warning(
                    f"Gas price attempt {attempt}/{cfg.max_attempts} failed on {endpoint}: {exc}"
                )
                if attempt < cfg.max_attempts:
                    await self._sleep(attempt * cfg.backoff_seconds)
                continue

            if cfg.min_gas_price <= price <= cfg.max_gas_price:
                return price, PriceSource.NETWORK

            logger.warning(
                f"Gas price {price} from {endpoint} outside "
                f"[{cfg.min_gas_price}, {cfg.max_gas_price}]; using fallback"
            )
            break

        fallback = self.fallback_price(endpoint, chain)
        logger.warning(f"Using fallback gas price {fallback} for {endpoint}")
        return fallback, PriceSource.FALLBACK

    async def _priority_fee(
        self, endpoint: str, chain: Chain | None, price: int
    ) -> tuple[int, PrioritySource]:
        try:
            suggested = await self.provider.client(endpoint, chain).max_priority_fee()
        except Exception as exc:
            logger.info(f"eth_maxPriorityFeePerGas unavailable on {endpoint}: {exc}")
        else:
            if suggested > 0:
                return suggested, PrioritySource.NETWORK
            logger.info(f"Non-positive priority fee {suggested} from {endpoint}; using heuristic")

        minimum = self.priority_minimum(endpoint, chain)
        return max(price // 10, minimum), PrioritySource.HEURISTIC

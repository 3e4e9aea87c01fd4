"""Async Web3 provider for Ethereum-compatible JSON-RPC endpoints."""

from __future__ import annotations

import logging
from typing import Any

from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import BlockNotFound, TransactionNotFound
from web3.middleware import ExtraDataToPOAMiddleware
from web3.types import RPCEndpoint

from evm_wallet_api.errors import RpcError
from evm_wallet_api.wallet.chains import Chain, detect_network

logger = logging.getLogger("evm_wallet_api.wallet.provider")


class ChainClient:
    """Thin async wrapper around one RPC endpoint.

    Every transport or node failure is re-raised as :class:`RpcError` with the
    endpoint and operation attached. Unknown transactions and receipts return
    ``None``.
    """

    def __init__(self, endpoint: str, w3: AsyncWeb3) -> None:
        self.endpoint = endpoint
        self.w3 = w3

    def _error(self, operation: str, exc: Exception, **context: Any) -> RpcError:
        logger.debug(f"{operation} failed on {self.endpoint}: {exc!r}")
        return RpcError(
            f"{operation} failed on {self.endpoint}: {exc}",
            endpoint=self.endpoint,
            operation=operation,
            **context,
        )

    async def get_balance(self, address: str) -> int:
        try:
            return int(await self.w3.eth.get_balance(Web3.to_checksum_address(address)))
        except Exception as exc:
            raise self._error("eth_getBalance", exc, address=address) from exc

    async def get_gas_price(self) -> int:
        try:
            return int(await self.w3.eth.gas_price)
        except Exception as exc:
            raise self._error("eth_gasPrice", exc) from exc

    async def make_request(self, method: str, params: list[Any] | None = None) -> Any:
        """Raw JSON-RPC passthrough. Returns the ``result`` member."""
        try:
            response = await self.w3.provider.make_request(RPCEndpoint(method), params or [])
        except Exception as exc:
            raise self._error(method, exc) from exc
        if "error" in response:
            raise self._error(method, ValueError(response["error"]))
        return response.get("result")

    async def max_priority_fee(self) -> int:
        result = await self.make_request("eth_maxPriorityFeePerGas")
        if result is None:
            raise self._error("eth_maxPriorityFeePerGas", ValueError("empty result"))
        return int(result, 16) if isinstance(result, str) else int(result)

    async def estimate_gas(self, tx: dict[str, Any]) -> int:
        try:
            return int(await self.w3.eth.estimate_gas(tx))
        except Exception as exc:
            raise self._error("eth_estimateGas", exc, to=tx.get("to")) from exc

    async def call(self, tx: dict[str, Any]) -> bytes:
        try:
            return bytes(await self.w3.eth.call(tx))
        except Exception as exc:
            raise self._error("eth_call", exc, to=tx.get("to")) from exc

    async def get_transaction_count(self, address: str) -> int:
        try:
            return int(
                await self.w3.eth.get_transaction_count(
                    Web3.to_checksum_address(address), "pending"
                )
            )
        except Exception as exc:
            raise self._error("eth_getTransactionCount", exc, address=address) from exc

    async def chain_id(self) -> int:
        try:
            return int(await self.w3.eth.chain_id)
        except Exception as exc:
            raise self._error("eth_chainId", exc) from exc

    async def send_raw_transaction(self, raw_tx: bytes) -> str:
        try:
            tx_hash = await self.w3.eth.send_raw_transaction(raw_tx)
        except Exception as exc:
            raise self._error("eth_sendRawTransaction", exc) from exc
        return Web3.to_hex(tx_hash)

    async def block_number(self) -> int:
        try:
            return int(await self.w3.eth.block_number)
        except Exception as exc:
            raise self._error("eth_blockNumber", exc) from exc

    async def get_block(self, number: int | str, full_transactions: bool = False) -> Any:
        try:
            return await self.w3.eth.get_block(number, full_transactions=full_transactions)
        except BlockNotFound:
            return None
        except Exception as exc:
            raise self._error("eth_getBlockByNumber", exc, block=number) from exc

    async def get_transaction(self, tx_hash: str) -> Any:
        try:
            return await self.w3.eth.get_transaction(tx_hash)
        except TransactionNotFound:
            return None
        except Exception as exc:
            raise self._error("eth_getTransactionByHash", exc, tx_hash=tx_hash) from exc

    async def get_transaction_receipt(self, tx_hash: str) -> Any:
        try:
            return await self.w3.eth.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None
        except Exception as exc:
            raise self._error("eth_getTransactionReceipt", exc, tx_hash=tx_hash) from exc

    async def get_logs(self, filter_params: dict[str, Any]) -> list[Any]:
        try:
            return list(await self.w3.eth.get_logs(filter_params))
        except Exception as exc:
            raise self._error("eth_getLogs", exc) from exc

    async def close(self) -> None:
        await self.w3.provider.disconnect()
        logger.debug(f"Disconnected from {self.endpoint}")


class Web3Provider:
    """Manages async Web3 connections across RPC endpoints."""

    def __init__(self) -> None:
        self._instances: dict[tuple[str, str | None], ChainClient] = {}

    def client(self, endpoint: str, network: Chain | None = None) -> ChainClient:
        """Return a (cached) client for *endpoint* as seen on *network*.

        Clients are keyed by URL and resolved network, since the network
        decides whether POA middleware is injected (everything but Ethereum
        mainnet gets it).
        """
        chain = network or detect_network(endpoint)
        key = (endpoint, chain.name if chain is not None else None)
        if key in self._instances:
            return self._instances[key]

        w3 = AsyncWeb3(AsyncHTTPProvider(endpoint))
        if chain is None or chain.chain_id != 1:
            w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)

        client = ChainClient(endpoint, w3)
        self._instances[key] = client
        return client

    async def close(self) -> None:
        """Disconnect every cached HTTP session and forget the clients."""
        clients = list(self._instances.values())
        self._instances.clear()
        for client in clients:
            await client.close()

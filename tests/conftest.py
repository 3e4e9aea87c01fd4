"""Shared fixtures: an in-memory chain client so no test touches a live node."""

from __future__ import annotations

from typing import Any

import pytest
from web3 import Web3

from evm_wallet_api.config import ServiceConfig
from evm_wallet_api.errors import RpcError
from evm_wallet_api.wallet.service import WalletService

HARDHAT_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
HARDHAT_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
RECIPIENT = "0x742d35cc6634c0532925a3b8d55de0c4a2e6d6b4"
TOKEN = "0x5fbdb2315678afecb367f032d93f642f64180aa3"

GWEI = 10**9


def rpc_failure(operation: str = "eth_call", endpoint: str = "http://fake") -> RpcError:
    return RpcError(f"{operation} failed", endpoint=endpoint, operation=operation)


class FakeChainClient:
    """Scriptable stand-in for :class:`ChainClient`.

    ``gas_prices`` is consumed one entry per call (the last entry repeats);
    any entry that is an exception is raised instead of returned.
    """

    def __init__(self, endpoint: str = "http://fake") -> None:
        self.endpoint = endpoint
        self.gas_prices: list[Any] = [20 * GWEI]
        self.priority_fee: Any = 2 * GWEI
        self.balances: dict[str, int] = {}
        self.default_balance = 10**18
        self.gas_estimate: Any = 21_000
        self.call_results: dict[bytes, Any] = {}
        self.nonce = 7
        self.chain_id_value = 31337
        self.send_result: Any = None
        self.latest_block = 0
        self.blocks: dict[int, Any] = {}
        self.transactions: dict[str, Any] = {}
        self.receipts: dict[str, Any] = {}
        self.logs: list[Any] = []

        self.calls: list[tuple[str, Any]] = []
        self.sent_raw: list[bytes] = []

    @staticmethod
    def _resolve(value: Any) -> Any:
        if isinstance(value, BaseException):
            raise value
        return value

    async def get_balance(self, address: str) -> int:
        self.calls.append(("get_balance", address))
        return self._resolve(self.balances.get(address.lower(), self.default_balance))

    async def get_gas_price(self) -> int:
        self.calls.append(("get_gas_price", None))
        value = self.gas_prices[0] if len(self.gas_prices) == 1 else self.gas_prices.pop(0)
        return self._resolve(value)

    async def max_priority_fee(self) -> int:
        self.calls.append(("max_priority_fee", None))
        return self._resolve(self.priority_fee)

    async def estimate_gas(self, tx: dict[str, Any]) -> int:
        self.calls.append(("estimate_gas", tx))
        return self._resolve(self.gas_estimate)

    async def call(self, tx: dict[str, Any]) -> bytes:
        self.calls.append(("call", tx))
        data = bytes(tx["data"])
        return self._resolve(self.call_results.get(data[:4], b""))

    async def get_transaction_count(self, address: str) -> int:
        self.calls.append(("get_transaction_count", address))
        return self.nonce

    async def chain_id(self) -> int:
        return self.chain_id_value

    async def send_raw_transaction(self, raw_tx: bytes) -> str:
        self.calls.append(("send_raw_transaction", raw_tx))
        self.sent_raw.append(bytes(raw_tx))
        if self.send_result is not None:
            self._resolve(self.send_result)
        return Web3.to_hex(Web3.keccak(raw_tx))

    async def block_number(self) -> int:
        return self.latest_block

    async def get_block(self, number: Any, full_transactions: bool = False) -> Any:
        self.calls.append(("get_block", number))
        return self._resolve(self.blocks.get(number))

    async def get_transaction(self, tx_hash: Any) -> Any:
        return self.transactions.get(_key(tx_hash))

    async def get_transaction_receipt(self, tx_hash: Any) -> Any:
        return self.receipts.get(_key(tx_hash))

    async def get_logs(self, filter_params: dict[str, Any]) -> list[Any]:
        self.calls.append(("get_logs", filter_params))
        return list(self.logs)


def _key(tx_hash: Any) -> str:
    if isinstance(tx_hash, (bytes, bytearray)):
        return Web3.to_hex(tx_hash)
    return str(tx_hash)


class FakeProvider:
    """Hands out one :class:`FakeChainClient` per endpoint."""

    def __init__(self) -> None:
        self.clients: dict[str, FakeChainClient] = {}
        self.requested: list[tuple[str, Any]] = []
        self.closed = False

    def client(self, endpoint: str, network: Any = None) -> FakeChainClient:
        self.requested.append((endpoint, network))
        if endpoint not in self.clients:
            self.clients[endpoint] = FakeChainClient(endpoint)
        return self.clients[endpoint]

    async def close(self) -> None:
        self.closed = True


async def no_sleep(seconds: float) -> None:
    return None


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def service_config() -> ServiceConfig:
    config = ServiceConfig()
    config.rpc.default_endpoint = "http://localhost:8545"
    return config


@pytest.fixture
def service(service_config, provider) -> WalletService:
    svc = WalletService(service_config, provider=provider)
    svc.fee_oracle._sleep = no_sleep
    return svc

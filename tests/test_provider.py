"""Tests for the async RPC wrapper's error mapping and client cache."""

import pytest
from web3.exceptions import BlockNotFound, TransactionNotFound

from conftest import HARDHAT_ADDRESS
from evm_wallet_api.errors import RpcError
from evm_wallet_api.wallet.chains import CHAINS
from evm_wallet_api.wallet.provider import ChainClient, Web3Provider


class StubEth:
    def __init__(self):
        self.fail_with = None

    async def _gas_price(self):
        if self.fail_with:
            raise self.fail_with
        return 7

    @property
    def gas_price(self):
        return self._gas_price()

    async def get_balance(self, address):
        raise ConnectionError("connection refused")

    async def get_transaction(self, tx_hash):
        raise TransactionNotFound(f"Transaction with hash {tx_hash} not found")

    async def get_transaction_receipt(self, tx_hash):
        raise TimeoutError("read timed out")

    async def get_block(self, number, full_transactions=False):
        raise BlockNotFound(f"Block {number} not found")


class StubProvider:
    def __init__(self, response):
        self.response = response
        self.requests = []
        self.disconnected = False

    async def make_request(self, method, params):
        self.requests.append((method, params))
        return self.response

    async def disconnect(self):
        self.disconnected = True


class StubWeb3:
    def __init__(self, response=None):
        self.eth = StubEth()
        self.provider = StubProvider(response or {"result": "0x3b9aca00"})


def _client(response=None):
    return ChainClient("http://stub:8545", StubWeb3(response))


@pytest.mark.asyncio
async def test_successful_call_passes_through():
    assert await _client().get_gas_price() == 7


@pytest.mark.asyncio
async def test_transport_failure_becomes_rpc_error():
    with pytest.raises(RpcError) as exc_info:
        await _client().get_balance(HARDHAT_ADDRESS)
    err = exc_info.value
    assert err.endpoint == "http://stub:8545"
    assert err.operation == "eth_getBalance"
    assert err.context["address"] == HARDHAT_ADDRESS


@pytest.mark.asyncio
async def test_unknown_transaction_is_none():
    assert await _client().get_transaction("0x" + "00" * 32) is None


@pytest.mark.asyncio
async def test_receipt_timeout_is_rpc_error():
    with pytest.raises(RpcError):
        await _client().get_transaction_receipt("0x" + "00" * 32)


@pytest.mark.asyncio
async def test_missing_block_is_none():
    assert await _client().get_block(99) is None


@pytest.mark.asyncio
async def test_priority_fee_via_raw_request():
    client = _client({"result": "0x3b9aca00"})
    assert await client.max_priority_fee() == 10**9
    assert client.w3.provider.requests == [("eth_maxPriorityFeePerGas", [])]


@pytest.mark.asyncio
async def test_raw_request_error_member():
    client = _client({"error": {"code": -32601, "message": "method not found"}})
    with pytest.raises(RpcError) as exc_info:
        await client.max_priority_fee()
    assert exc_info.value.operation == "eth_maxPriorityFeePerGas"


def test_clients_cached_per_endpoint():
    provider = Web3Provider()
    first = provider.client("https://polygon-rpc.com")
    assert provider.client("https://polygon-rpc.com") is first
    assert provider.client(CHAINS["ethereum"].rpc_url, CHAINS["ethereum"]) is not first
    assert first.endpoint == "https://polygon-rpc.com"


def test_clients_cached_per_network():
    provider = Web3Provider()
    url = "https://rpc.verylabs.io"
    detected = provider.client(url)
    named = provider.client(url, CHAINS["polygon"])
    assert named is not detected
    assert provider.client(url, CHAINS["polygon"]) is named
    assert provider.client(url, CHAINS["very"]) is detected


@pytest.mark.asyncio
async def test_close_disconnects_and_clears_cache():
    provider = Web3Provider()
    client = provider.client("https://polygon-rpc.com")
    client.w3 = StubWeb3()

    await provider.close()

    assert client.w3.provider.disconnected
    assert provider.client("https://polygon-rpc.com") is not client

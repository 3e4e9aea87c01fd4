"""FastAPI application exposing the wallet core over HTTP."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from evm_wallet_api import __version__
from evm_wallet_api.api.schemas import (
    AddNetworkRequest,
    AddressResponse,
    AllHistoryRequest,
    BalanceRequest,
    BalanceResponse,
    CurrentBlockResponse,
    EnvInfoResponse,
    Erc20BalanceRequest,
    Erc20EventsRequest,
    GasEstimateResponse,
    GenerateMnemonicRequest,
    MnemonicRequest,
    MnemonicResponse,
    NativeHistoryRequest,
    PrivateKeyRequest,
    SendErc20Request,
    SendNativeRequest,
    TransactionDetailsRequest,
    TransactionDetailsResponse,
    TransactionHistoryResponse,
    TransactionResponse,
    TransferEventsResponse,
    WalletResponse,
)
from evm_wallet_api.config import ServiceConfig
from evm_wallet_api.errors import ErrorKind, InvalidKeyFormat, NotFound, WalletError
from evm_wallet_api.units import ETHER_DECIMALS, format_units, parse_units
from evm_wallet_api.wallet import keys
from evm_wallet_api.wallet.keys import SigningWallet
from evm_wallet_api.wallet.service import WalletService

logger = logging.getLogger("evm_wallet_api.api")

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.INVALID_KEY_FORMAT: 400,
    ErrorKind.INVALID_KEY_ENCODING: 400,
    ErrorKind.INVALID_MNEMONIC: 400,
    ErrorKind.UNSUPPORTED_WORD_COUNT: 400,
    ErrorKind.INVALID_ADDRESS: 400,
    ErrorKind.INVALID_AMOUNT: 400,
    ErrorKind.UNKNOWN_NETWORK: 400,
    ErrorKind.SIGNING_UNAVAILABLE: 400,
    ErrorKind.NETWORK_EXISTS: 409,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INSUFFICIENT_FUNDS: 422,
    ErrorKind.GAS_ESTIMATION_FAILED: 422,
    ErrorKind.SUBMISSION_FAILED: 502,
    ErrorKind.RPC_ERROR: 502,
    ErrorKind.ENTROPY_UNAVAILABLE: 500,
}

router = APIRouter()


def _service(request: Request) -> WalletService:
    return request.app.state.service


def _signing_wallet(service: WalletService, private_key: str | None) -> SigningWallet:
    key = private_key
    if not key and service.config.private_key is not None:
        key = service.config.private_key.get_secret_value()
    if not key:
        raise InvalidKeyFormat("No private key supplied and PRIVATE_KEY is not set")
    return keys.from_private_key(key)


def _wallet_response(wallet: SigningWallet) -> WalletResponse:
    return WalletResponse(**wallet.record.model_dump())


async def _wallet_error_handler(request: Request, exc: WalletError) -> JSONResponse:
    status = STATUS_BY_KIND.get(exc.kind, 500)
    log = logger.warning if status < 500 else logger.error
    log(f"{request.method} {request.url.path} -> {status} {exc.kind.value}: {exc.message}")
    return JSONResponse(status_code=status, content=exc.to_dict())


# ------------------------------------------------------------------
# System
# ------------------------------------------------------------------


@router.get("/health", response_class=PlainTextResponse)
async def health_check():
    return "EVM Wallet API is running!"


@router.get("/env", response_model=EnvInfoResponse)
async def env_info(request: Request):
    service = _service(request)
    return EnvInfoResponse(
        rpc_endpoint=service.default_endpoint,
        private_key_set=service.config.private_key is not None,
        server_port=service.config.server.port,
    )


# ------------------------------------------------------------------
# Wallet creation
# ------------------------------------------------------------------


@router.post("/wallet/create", response_model=WalletResponse)
async def create_wallet():
    return _wallet_response(keys.generate_random())


@router.post("/wallet/getAddress", response_model=AddressResponse)
async def address_from_private_key(body: PrivateKeyRequest):
    return AddressResponse(address=keys.address_from_private_key(body.private_key))


@router.post("/wallet/fromPrivateKey", response_model=WalletResponse)
async def wallet_from_private_key(body: PrivateKeyRequest):
    return _wallet_response(keys.from_private_key(body.private_key))


@router.post("/wallet/generateMnemonic", response_model=MnemonicResponse)
async def generate_mnemonic():
    return MnemonicResponse(mnemonic=keys.generate_mnemonic())


@router.post("/wallet/generateMnemonicCustom", response_model=MnemonicResponse)
async def generate_mnemonic_custom(body: GenerateMnemonicRequest):
    word_count = body.word_count or keys.DEFAULT_WORD_COUNT
    return MnemonicResponse(mnemonic=keys.generate_mnemonic(word_count))


@router.post("/wallet/fromMnemonic", response_model=WalletResponse)
async def wallet_from_mnemonic(body: MnemonicRequest):
    return _wallet_response(keys.from_mnemonic(body.mnemonic))


# ------------------------------------------------------------------
# Transactions
# ------------------------------------------------------------------


@router.post("/transaction/sendNative", response_model=TransactionResponse)
async def send_native(body: SendNativeRequest, request: Request):
    service = _service(request)
    wallet = _signing_wallet(service, body.private_key)
    amount = parse_units(body.amount, ETHER_DECIMALS)
    target = service.resolve_endpoint(body.network)
    tx_hash = await service.transactions.send_native(
        wallet, body.to, amount, target.url, target.network
    )
    return TransactionResponse(hash=tx_hash)


@router.post("/transaction/sendErc20", response_model=TransactionResponse)
async def send_erc20(body: SendErc20Request, request: Request):
    service = _service(request)
    wallet = _signing_wallet(service, body.private_key)
    target = service.resolve_endpoint(body.network)
    decimals = await service.reader.token_decimals(body.token_address, target.url, target.network)
    amount = parse_units(body.amount, decimals)
    tx_hash = await service.transactions.send_token(
        wallet, body.to, amount, body.token_address, target.url, target.network
    )
    return TransactionResponse(hash=tx_hash)


@router.post("/transaction/estimateGas", response_model=GasEstimateResponse)
async def estimate_gas(body: SendNativeRequest, request: Request):
    service = _service(request)
    wallet = _signing_wallet(service, body.private_key)
    amount = parse_units(body.amount, ETHER_DECIMALS)
    target = service.resolve_endpoint(body.network)
    estimate = await service.transactions.estimate_native_transfer_cost(
        wallet, body.to, amount, target.url, target.network
    )
    return GasEstimateResponse(**estimate.to_dict())


@router.post("/transaction/estimateErc20Gas", response_model=GasEstimateResponse)
async def estimate_erc20_gas(body: SendErc20Request, request: Request):
    service = _service(request)
    wallet = _signing_wallet(service, body.private_key)
    target = service.resolve_endpoint(body.network)
    decimals = await service.reader.token_decimals(body.token_address, target.url, target.network)
    amount = parse_units(body.amount, decimals)
    estimate = await service.transactions.estimate_token_transfer_cost(
        wallet, body.to, amount, body.token_address, target.url, target.network
    )
    return GasEstimateResponse(**estimate.to_dict())


@router.post("/transaction/details", response_model=TransactionDetailsResponse)
async def transaction_details(body: TransactionDetailsRequest, request: Request):
    service = _service(request)
    target = service.resolve_endpoint(body.network)
    record = await service.reader.transaction_details(body.tx_hash, target.url, target.network)
    if record is None:
        raise NotFound("Transaction not found", tx_hash=body.tx_hash)
    return TransactionDetailsResponse(transaction=record)


@router.post("/transaction/history", response_model=TransactionHistoryResponse)
async def native_history(body: NativeHistoryRequest, request: Request):
    service = _service(request)
    target = service.resolve_endpoint(body.network)
    records = await service.reader.native_transfers_in_block_range(
        body.address,
        body.from_block,
        body.to_block,
        endpoint=target.url,
        network=target.network,
    )
    return TransactionHistoryResponse(transactions=records)


@router.post("/transaction/history/all", response_model=TransactionHistoryResponse)
async def all_history(body: AllHistoryRequest, request: Request):
    service = _service(request)
    target = service.resolve_endpoint(body.network)
    records = await service.reader.all_native_transfers_in_block_range(
        body.from_block,
        body.to_block,
        endpoint=target.url,
        network=target.network,
    )
    return TransactionHistoryResponse(transactions=records)


# ------------------------------------------------------------------
# Balances, events, blocks, fees
# ------------------------------------------------------------------


@router.post("/balance/native", response_model=BalanceResponse)
async def native_balance(body: BalanceRequest, request: Request):
    service = _service(request)
    target = service.resolve_endpoint(body.network)
    wei = await service.reader.native_balance(body.address, target.url, target.network)
    return BalanceResponse(balance=format_units(wei, ETHER_DECIMALS), raw=str(wei))


@router.post("/balance/erc20", response_model=BalanceResponse)
async def erc20_balance(body: Erc20BalanceRequest, request: Request):
    service = _service(request)
    target = service.resolve_endpoint(body.network)
    raw = await service.reader.token_balance(
        body.address, body.token_address, target.url, target.network
    )
    decimals = await service.reader.token_decimals(body.token_address, target.url, target.network)
    return BalanceResponse(balance=format_units(raw, decimals), raw=str(raw))


@router.post("/events/erc20Transfers", response_model=TransferEventsResponse)
async def erc20_events(body: Erc20EventsRequest, request: Request):
    service = _service(request)
    target = service.resolve_endpoint(body.network)
    events = await service.reader.transfers_in_block_range(
        body.token_address,
        body.from_block,
        body.to_block,
        body.address_filter,
        endpoint=target.url,
        network=target.network,
    )
    return TransferEventsResponse(events=events)


@router.get("/block/current", response_model=CurrentBlockResponse)
async def current_block(request: Request, network: str | None = None):
    service = _service(request)
    target = service.resolve_endpoint(network)
    return CurrentBlockResponse(
        current_block=await service.reader.current_block(target.url, target.network)
    )


@router.get("/fees/quote")
async def fee_quote(request: Request, network: str | None = None):
    service = _service(request)
    target = service.resolve_endpoint(network)
    quote = await service.fee_oracle.resolve_fee(target.url, target.network)
    return {"endpoint": target.url, **quote.to_dict()}


# ------------------------------------------------------------------
# Custom networks
# ------------------------------------------------------------------


@router.get("/networks")
async def list_networks(request: Request):
    return {"networks": [n.model_dump() for n in _service(request).registry.list()]}


@router.post("/networks")
async def add_network(body: AddNetworkRequest, request: Request):
    info = _service(request).registry.add(body.name, body.rpc_url)
    logger.info(f"Network registered: {info.name} -> {info.rpc_url}")
    return info.model_dump()


@router.delete("/networks/{name}")
async def remove_network(name: str, request: Request):
    if not _service(request).registry.remove(name):
        raise NotFound(f"Network '{name}' is not registered", network=name)
    logger.info(f"Network removed: {name}")
    return {"removed": name}


# ------------------------------------------------------------------
# App factory
# ------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(app: FastAPI):
    yield
    await app.state.service.close()
    logger.info("Wallet API Server stopped; RPC sessions closed")


def create_app(service: WalletService | None = None) -> FastAPI:
    """Build the API app around *service* (a fresh one from env by default)."""
    app = FastAPI(title="EVM Wallet API", version=__version__, lifespan=_lifespan)
    app.state.service = service or WalletService()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(WalletError, _wallet_error_handler)
    app.include_router(router)
    return app


def run_server(config: ServiceConfig, host: str | None = None, port: int | None = None) -> None:
    host = host or config.server.host
    port = port or config.server.port
    app = create_app(WalletService(config))
    logger.info(f"Wallet API Server starting on http://{host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level="info")

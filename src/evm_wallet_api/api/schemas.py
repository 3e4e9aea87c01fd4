"""Pydantic request and response bodies for the HTTP API."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from evm_wallet_api.wallet.reader import TransactionRecord, TransferEvent


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class PrivateKeyRequest(BaseModel):
    private_key: str


class MnemonicRequest(BaseModel):
    mnemonic: str


class GenerateMnemonicRequest(BaseModel):
    word_count: Optional[int] = None


class SendNativeRequest(BaseModel):
    to: str
    amount: str = Field(description="Amount in whole native units, e.g. '0.01'")
    private_key: Optional[str] = None  # falls back to the configured key
    network: Optional[str] = None


class SendErc20Request(BaseModel):
    to: str
    amount: str = Field(description="Amount in whole tokens, e.g. '1.5'")
    token_address: str
    private_key: Optional[str] = None
    network: Optional[str] = None


class BalanceRequest(BaseModel):
    address: str
    network: Optional[str] = None


class Erc20BalanceRequest(BaseModel):
    address: str
    token_address: str
    network: Optional[str] = None


class TransactionDetailsRequest(BaseModel):
    tx_hash: str
    network: Optional[str] = None


class NativeHistoryRequest(BaseModel):
    address: str
    from_block: Optional[int] = None
    to_block: Optional[int] = None
    network: Optional[str] = None


class AllHistoryRequest(BaseModel):
    from_block: int
    to_block: Optional[int] = None
    network: Optional[str] = None


class Erc20EventsRequest(BaseModel):
    token_address: str
    from_block: Optional[int] = None
    to_block: Optional[int] = None
    address_filter: Optional[str] = None
    network: Optional[str] = None


class AddNetworkRequest(BaseModel):
    name: str
    rpc_url: str


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class WalletResponse(BaseModel):
    address: str
    private_key: str
    public_key: str
    mnemonic: Optional[str] = None


class AddressResponse(BaseModel):
    address: str


class MnemonicResponse(BaseModel):
    mnemonic: str


class TransactionResponse(BaseModel):
    hash: str
    status: str = "submitted"


class GasEstimateResponse(BaseModel):
    gas_limit: int
    gas_price: str
    total_fee: str


class BalanceResponse(BaseModel):
    balance: str
    raw: str


class TransactionDetailsResponse(BaseModel):
    transaction: TransactionRecord


class TransactionHistoryResponse(BaseModel):
    transactions: list[TransactionRecord]


class TransferEventsResponse(BaseModel):
    events: list[TransferEvent]


class CurrentBlockResponse(BaseModel):
    current_block: int


class EnvInfoResponse(BaseModel):
    rpc_endpoint: str
    private_key_set: bool
    server_port: int

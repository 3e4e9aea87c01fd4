"""Read-only chain queries: balances, receipts, and transfer history."""

from __future__ import annotations

import logging
from typing import Any, Optional

from hexbytes import HexBytes
from pydantic import BaseModel
from web3 import Web3

from evm_wallet_api.wallet.abi import (
    TRANSFER_EVENT_TOPIC,
    address_topic,
    decode_transfer_log,
    decode_uint,
    encode_balance_of,
    encode_decimals,
    to_checksum,
)
from evm_wallet_api.wallet.chains import Chain

logger = logging.getLogger("evm_wallet_api.wallet.reader")

DEFAULT_HISTORY_BLOCKS = 100


class TransactionRecord(BaseModel):
    """A transaction joined with its receipt and block."""

    transaction_hash: str
    block_number: int
    from_address: str
    to_address: str
    amount: str
    gas_used: int
    gas_limit: int
    gas_price: str
    effective_gas_price: str
    transaction_fee: str
    burnt_fees: str
    transaction_index: int
    timestamp: Optional[int] = None
    status: str


class TransferEvent(BaseModel):
    """A decoded ERC20 ``Transfer`` log."""

    transaction_hash: str
    block_number: int
    from_address: str
    to_address: str
    amount: str
    log_index: int


def _hex(value: Any) -> str:
    return Web3.to_hex(HexBytes(value)) if value is not None else ""


def _address(value: Any) -> str:
    # contract creations have no recipient
    if not value:
        return "0x" + "00" * 20
    return Web3.to_checksum_address(value)


def build_record(tx: Any, receipt: Any, block: Any | None) -> TransactionRecord:
    """Normalize a transaction, its receipt, and its block into one record."""
    gas_used = int(receipt["gasUsed"])
    effective_gas_price = int(receipt.get("effectiveGasPrice") or tx.get("gasPrice") or 0)

    base_fee = block.get("baseFeePerGas") if block is not None else None
    burnt_fees = int(base_fee) * gas_used if base_fee is not None else 0

    return TransactionRecord(
        transaction_hash=_hex(tx["hash"]),
        block_number=int(receipt["blockNumber"]),
        from_address=_address(tx["from"]),
        to_address=_address(tx.get("to")),
        amount=str(int(tx["value"])),
        gas_used=gas_used,
        gas_limit=int(tx["gas"]),
        gas_price=str(effective_gas_price),
        effective_gas_price=str(effective_gas_price),
        transaction_fee=str(effective_gas_price * gas_used),
        burnt_fees=str(burnt_fees),
        transaction_index=int(receipt.get("transactionIndex") or 0),
        timestamp=int(block["timestamp"]) if block is not None else None,
        status="success" if int(receipt.get("status", 0)) == 1 else "failed",
    )


class ChainReader:
    """Read-only queries over a provider's chain clients."""

    def __init__(self, provider: Any) -> None:
        self.provider = provider

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------

    async def native_balance(
        self, address: str, endpoint: str, network: Chain | None = None
    ) -> int:
        """Balance in wei."""
        owner = to_checksum(address)
        return await self.provider.client(endpoint, network).get_balance(owner)

    async def token_balance(
        self,
        address: str,
        token_contract: str,
        endpoint: str,
        network: Chain | None = None,
    ) -> int:
        """ERC20 ``balanceOf(address)`` in token base units."""
        token = to_checksum(token_contract, "token_contract")
        data = encode_balance_of(address)
        result = await self.provider.client(endpoint, network).call({"to": token, "data": data})
        return decode_uint(result)

    async def token_decimals(
        self, token_contract: str, endpoint: str, network: Chain | None = None
    ) -> int:
        token = to_checksum(token_contract, "token_contract")
        result = await self.provider.client(endpoint, network).call(
            {"to": token, "data": encode_decimals()}
        )
        return decode_uint(result)

    async def current_block(self, endpoint: str, network: Chain | None = None) -> int:
        return await self.provider.client(endpoint, network).block_number()

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def transaction_details(
        self, tx_hash: str, endpoint: str, network: Chain | None = None
    ) -> TransactionRecord | None:
        """Return the normalized record, or ``None`` if the tx or receipt is unknown."""
        client = self.provider.client(endpoint, network)
        tx = await client.get_transaction(tx_hash)
        if tx is None:
            return None
        receipt = await client.get_transaction_receipt(tx_hash)
        if receipt is None:
            return None
        block = await client.get_block(int(receipt["blockNumber"]))
        return build_record(tx, receipt, block)

    async def transfers_in_block_range(
        self,
        token_contract: str,
        from_block: int | None = None,
        to_block: int | None = None,
        address_filter: str | None = None,
        *,
        endpoint: str,
        network: Chain | None = None,
    ) -> list[TransferEvent]:
        """Decode ERC20 ``Transfer`` logs, optionally only those sent by *address_filter*."""
        topics: list[Any] = [TRANSFER_EVENT_TOPIC]
        if address_filter:
            topics.append(address_topic(address_filter))

        filter_params: dict[str, Any] = {
            "address": to_checksum(token_contract, "token_contract"),
            "topics": topics,
        }
        if from_block is not None:
            filter_params["fromBlock"] = from_block
        if to_block is not None:
            filter_params["toBlock"] = to_block

        logs = await self.provider.client(endpoint, network).get_logs(filter_params)

        events = []
        for log in logs:
            decoded = decode_transfer_log(log)
            if decoded is None:
                continue
            sender, recipient, amount = decoded
            events.append(
                TransferEvent(
                    transaction_hash=_hex(log.get("transactionHash")),
                    block_number=int(log.get("blockNumber") or 0),
                    from_address=sender,
                    to_address=recipient,
                    amount=str(amount),
                    log_index=int(log.get("logIndex") or 0),
                )
            )
        return events

    async def native_transfers_in_block_range(
        self,
        address: str,
        from_block: int | None = None,
        to_block: int | None = None,
        *,
        endpoint: str,
        network: Chain | None = None,
    ) -> list[TransactionRecord]:
        """Value-bearing transactions sent or received by *address*.

        Defaults to the last 100 blocks. This walks every block and every
        transaction in the range, so callers must keep ranges small.
        """
        target = to_checksum(address)
        client = self.provider.client(endpoint, network)
        if from_block is None or to_block is None:
            latest = await client.block_number()
            if from_block is None:
                from_block = max(latest - DEFAULT_HISTORY_BLOCKS, 0)
            if to_block is None:
                to_block = latest

        def matches(tx: Any) -> bool:
            if int(tx["value"]) <= 0:
                return False
            sender = Web3.to_checksum_address(tx["from"])
            recipient = Web3.to_checksum_address(tx["to"]) if tx.get("to") else None
            return target in (sender, recipient)

        return await self._scan(client, from_block, to_block, matches)

    async def all_native_transfers_in_block_range(
        self,
        from_block: int,
        to_block: int | None = None,
        *,
        endpoint: str,
        network: Chain | None = None,
    ) -> list[TransactionRecord]:
        """Every transaction with a receipt in the block range."""
        client = self.provider.client(endpoint, network)
        if to_block is None:
            to_block = await client.block_number()
        return await self._scan(client, from_block, to_block, lambda tx: True)

    async def _scan(
        self, client: Any, from_block: int, to_block: int, matches: Any
    ) -> list[TransactionRecord]:
        logger.debug(f"Scanning blocks {from_block}..{to_block} on {client.endpoint}")
        records: list[TransactionRecord] = []

        for number in range(from_block, to_block + 1):
            block = await client.get_block(number, full_transactions=True)
            if block is None:
                continue

            for tx in block.get("transactions", []):
                if isinstance(tx, (bytes, str)):
                    tx = await client.get_transaction(tx)
                    if tx is None:
                        continue
                if not matches(tx):
                    continue
                receipt = await client.get_transaction_receipt(tx["hash"])
                if receipt is None:
                    logger.debug(f"No receipt for {_hex(tx['hash'])}")
                    continue
                records.append(build_record(tx, receipt, block))

        logger.debug(f"Found {len(records)} transactions")
        return records

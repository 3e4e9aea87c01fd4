"""ERC20 call data and event helpers."""

from __future__ import annotations

from typing import Any

from eth_abi import encode
from hexbytes import HexBytes
from web3 import Web3

from evm_wallet_api.errors import InvalidAddress

TRANSFER_SELECTOR = bytes.fromhex("a9059cbb")  # transfer(address,uint256)
BALANCE_OF_SELECTOR = bytes.fromhex("70a08231")  # balanceOf(address)
DECIMALS_SELECTOR = bytes.fromhex("313ce567")  # decimals()

TRANSFER_EVENT_TOPIC = Web3.to_hex(Web3.keccak(text="Transfer(address,address,uint256)"))


def to_checksum(address: str, field: str = "address") -> str:
    """Normalize an address to EIP-55 form or raise ``InvalidAddress``."""
    if not isinstance(address, str) or not Web3.is_address(address.lower()):
        raise InvalidAddress(f"Invalid {field}: {address!r}", **{field: address})
    return Web3.to_checksum_address(address.lower())


def encode_transfer(to: str, amount: int) -> bytes:
    return TRANSFER_SELECTOR + encode(["address", "uint256"], [to_checksum(to, "to"), amount])


def encode_balance_of(owner: str) -> bytes:
    return BALANCE_OF_SELECTOR + encode(["address"], [to_checksum(owner)])


def encode_decimals() -> bytes:
    return DECIMALS_SELECTOR


def address_topic(address: str) -> str:
    """Left-pad an address to a 32-byte indexed topic."""
    return "0x" + "00" * 12 + to_checksum(address)[2:].lower()


def decode_uint(data: bytes) -> int:
    return int.from_bytes(bytes(data), "big") if data else 0


def decode_transfer_log(log: Any) -> tuple[str, str, int] | None:
    """Return ``(from, to, amount)`` for a Transfer log, or ``None``."""
    topics = [HexBytes(t) for t in log["topics"]]
    if len(topics) < 3:
        return None
    from_address = Web3.to_checksum_address(topics[1][-20:])
    to_address = Web3.to_checksum_address(topics[2][-20:])
    amount = decode_uint(HexBytes(log["data"]))
    return from_address, to_address, amount

"""Key derivation for EVM wallets using eth-account.

Wallets are built per request and never stored. A :class:`KeyRecord` is the
serializable identity; a :class:`SigningWallet` additionally holds the
eth-account signer bound to that identity.
"""

from __future__ import annotations

import os
import string
from dataclasses import dataclass, field
from typing import Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_keys import keys
from mnemonic import Mnemonic
from pydantic import BaseModel

from evm_wallet_api.errors import (
    EntropyError,
    InvalidKeyEncoding,
    InvalidKeyFormat,
    InvalidMnemonic,
    UnsupportedWordCount,
)

SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

# word count -> entropy bits
MNEMONIC_STRENGTHS: dict[int, int] = {
    12: 128,
    15: 160,
    18: 192,
    21: 224,
    24: 256,
}
DEFAULT_WORD_COUNT = 24

_HEX_DIGITS = frozenset(string.hexdigits)
_wordlist = Mnemonic("english")


class KeyRecord(BaseModel):
    """Serializable wallet identity. Carries no signing capability."""

    private_key: str
    public_key: str
    address: str
    mnemonic: Optional[str] = None


@dataclass(frozen=True)
class SigningWallet:
    """A wallet identity bound to its eth-account signer."""

    record: KeyRecord
    signer: LocalAccount = field(repr=False, compare=False)

    @property
    def address(self) -> str:
        return self.record.address

    @property
    def private_key(self) -> str:
        return self.record.private_key

    @property
    def public_key(self) -> str:
        return self.record.public_key

    @property
    def mnemonic(self) -> str | None:
        return self.record.mnemonic

    @classmethod
    def from_record(cls, record: KeyRecord) -> SigningWallet:
        """Re-derive the signer for a deserialized record."""
        wallet = from_private_key(record.private_key)
        if wallet.address != record.address:
            raise InvalidKeyFormat(
                "Record address does not match its private key",
                address=record.address,
            )
        return cls(record=record, signer=wallet.signer)


# ---------------------------------------------------------------------------
# Private keys
# ---------------------------------------------------------------------------


def _parse_private_key(private_key: str) -> bytes:
    """Validate a hex private key and return its 32 raw bytes."""
    trimmed = private_key.strip()
    if trimmed[:2] in ("0x", "0X"):
        trimmed = trimmed[2:]

    if len(trimmed) != 64:
        raise InvalidKeyFormat(
            f"Invalid private key length. Expected 64 characters (32 bytes), got {len(trimmed)}",
            length=len(trimmed),
        )
    if not all(c in _HEX_DIGITS for c in trimmed):
        raise InvalidKeyEncoding("Invalid private key format. Must be hexadecimal")

    raw = bytes.fromhex(trimmed)
    if not 0 < int.from_bytes(raw, "big") < SECP256K1_N:
        raise InvalidKeyFormat("Private key is outside the secp256k1 scalar range")
    return raw


def _wallet_from_bytes(raw: bytes, mnemonic: str | None = None) -> SigningWallet:
    account: LocalAccount = Account.from_key(raw)
    public_point = keys.PrivateKey(raw).public_key.to_bytes()
    record = KeyRecord(
        private_key="0x" + raw.hex(),
        public_key="0x04" + public_point.hex(),
        address=account.address,
        mnemonic=mnemonic,
    )
    return SigningWallet(record=record, signer=account)


def _random_bytes(count: int) -> bytes:
    try:
        return os.urandom(count)
    except NotImplementedError as exc:
        raise EntropyError("System random source is unavailable") from exc


def generate_random() -> SigningWallet:
    """Generate a new wallet from fresh OS entropy."""
    while True:
        raw = _random_bytes(32)
        if 0 < int.from_bytes(raw, "big") < SECP256K1_N:
            return _wallet_from_bytes(raw)


def from_private_key(private_key: str) -> SigningWallet:
    """Build a wallet from a 64-character hex private key (``0x`` optional).

    Raises
    ------
    InvalidKeyFormat
        Wrong length, or not a valid secp256k1 scalar.
    InvalidKeyEncoding
        Non-hexadecimal characters.
    """
    return _wallet_from_bytes(_parse_private_key(private_key))


def address_from_private_key(private_key: str) -> str:
    """Derive only the checksum address. No signer is retained."""
    return Account.from_key(_parse_private_key(private_key)).address


# ---------------------------------------------------------------------------
# Mnemonics
# ---------------------------------------------------------------------------


def generate_mnemonic(word_count: int = DEFAULT_WORD_COUNT) -> str:
    """Generate an English BIP-39 phrase with *word_count* words."""
    strength = MNEMONIC_STRENGTHS.get(word_count)
    if strength is None:
        raise UnsupportedWordCount(
            f"Unsupported word count {word_count}. Only support 12, 15, 18, 21, 24.",
            word_count=word_count,
        )
    return _wordlist.to_mnemonic(_random_bytes(strength // 8))


def from_mnemonic(phrase: str) -> SigningWallet:
    """Build a wallet from a BIP-39 phrase.

    The private key is the first 32 bytes of the BIP-39 seed (empty
    passphrase). There is no BIP-32/BIP-44 path derivation, so addresses
    differ from those other wallet software derives for the same phrase.
    Existing deployed wallets depend on this derivation.
    """
    normalized = " ".join(phrase.split())
    if not normalized or not _wordlist.check(normalized):
        raise InvalidMnemonic("Invalid mnemonic phrase: unknown word or bad checksum")

    seed = Mnemonic.to_seed(normalized, passphrase="")
    raw = seed[:32]
    if not 0 < int.from_bytes(raw, "big") < SECP256K1_N:
        raise InvalidMnemonic("Mnemonic seed does not yield a valid private key")
    return _wallet_from_bytes(raw, mnemonic=normalized)

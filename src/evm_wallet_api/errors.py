"""Error taxonomy for EVM Wallet API.

Every error raised by the core carries an :class:`ErrorKind` and a dict of
structured context so the HTTP and CLI layers can switch on the kind instead
of inspecting message text.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    # input validation
    INVALID_KEY_FORMAT = "invalid_key_format"
    INVALID_KEY_ENCODING = "invalid_key_encoding"
    INVALID_MNEMONIC = "invalid_mnemonic"
    UNSUPPORTED_WORD_COUNT = "unsupported_word_count"
    INVALID_ADDRESS = "invalid_address"
    INVALID_AMOUNT = "invalid_amount"
    UNKNOWN_NETWORK = "unknown_network"
    NETWORK_EXISTS = "network_exists"
    SIGNING_UNAVAILABLE = "signing_unavailable"
    # system
    ENTROPY_UNAVAILABLE = "entropy_unavailable"
    # economic
    INSUFFICIENT_FUNDS = "insufficient_funds"
    GAS_ESTIMATION_FAILED = "gas_estimation_failed"
    # transport
    SUBMISSION_FAILED = "submission_failed"
    RPC_ERROR = "rpc_error"
    # lookup
    NOT_FOUND = "not_found"


class WalletError(Exception):
    """Base class for all errors raised by the wallet core."""

    kind: ErrorKind = ErrorKind.RPC_ERROR

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = context

    def to_dict(self) -> dict[str, Any]:
        """Render the error for a JSON response body."""
        return {
            "error": self.message,
            "kind": self.kind.value,
            "context": {k: _jsonable(v) for k, v in self.context.items()},
        }


def _jsonable(value: Any) -> Any:
    # uint256 values do not survive a round trip through JSON numbers
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------


class InvalidKeyFormat(WalletError):
    kind = ErrorKind.INVALID_KEY_FORMAT


class InvalidKeyEncoding(WalletError):
    kind = ErrorKind.INVALID_KEY_ENCODING


class InvalidMnemonic(WalletError):
    kind = ErrorKind.INVALID_MNEMONIC


class UnsupportedWordCount(WalletError):
    kind = ErrorKind.UNSUPPORTED_WORD_COUNT


class InvalidAddress(WalletError):
    kind = ErrorKind.INVALID_ADDRESS


class InvalidAmount(WalletError):
    kind = ErrorKind.INVALID_AMOUNT


class UnknownNetwork(WalletError):
    kind = ErrorKind.UNKNOWN_NETWORK


class NetworkAlreadyRegistered(WalletError):
    kind = ErrorKind.NETWORK_EXISTS


class SigningUnavailable(WalletError):
    kind = ErrorKind.SIGNING_UNAVAILABLE


# ---------------------------------------------------------------------------
# System
# ---------------------------------------------------------------------------


class EntropyError(WalletError):
    kind = ErrorKind.ENTROPY_UNAVAILABLE


# ---------------------------------------------------------------------------
# Economic
# ---------------------------------------------------------------------------


class InsufficientFunds(WalletError):
    """The sender cannot cover the amount plus the worst-case gas cost."""

    kind = ErrorKind.INSUFFICIENT_FUNDS

    def __init__(
        self,
        balance: int,
        needed: int,
        gas_limit: int,
        gas_price: int,
        **context: Any,
    ) -> None:
        super().__init__(
            f"Insufficient funds: balance {balance} wei, needed {needed} wei "
            f"(gas_limit: {gas_limit}, max_fee: {gas_price})",
            balance=balance,
            needed=needed,
            gas_limit=gas_limit,
            gas_price=gas_price,
            **context,
        )
        self.balance = balance
        self.needed = needed
        self.gas_limit = gas_limit
        self.gas_price = gas_price


class GasEstimationFailed(WalletError):
    kind = ErrorKind.GAS_ESTIMATION_FAILED


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


class RpcError(WalletError):
    """A JSON-RPC call failed (unreachable endpoint, malformed response, revert)."""

    kind = ErrorKind.RPC_ERROR

    def __init__(self, message: str, *, endpoint: str, operation: str, **context: Any) -> None:
        super().__init__(message, endpoint=endpoint, operation=operation, **context)
        self.endpoint = endpoint
        self.operation = operation


class SubmissionFailed(WalletError):
    kind = ErrorKind.SUBMISSION_FAILED


class NotFound(WalletError):
    kind = ErrorKind.NOT_FOUND

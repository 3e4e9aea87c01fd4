"""EVM Wallet API - wallet management and transactions for EVM-compatible chains."""

__version__ = "0.1.0"

"""HTTP API for EVM Wallet API."""

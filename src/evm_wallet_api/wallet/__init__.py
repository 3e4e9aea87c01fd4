"""EVM wallet core for EVM Wallet API.

Deterministic key derivation, gas price resolution with EIP-1559 fee fields,
pre-broadcast fund checks, and native/ERC20 transfer submission over any
Ethereum-compatible JSON-RPC endpoint.
"""

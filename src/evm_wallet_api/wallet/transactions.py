"""Build, sign, and submit native and ERC20 transfers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Union

from evm_wallet_api.errors import (
    GasEstimationFailed,
    InsufficientFunds,
    RpcError,
    SigningUnavailable,
    SubmissionFailed,
)
from evm_wallet_api.units import ensure_uint256
from evm_wallet_api.wallet.abi import encode_transfer, to_checksum
from evm_wallet_api.wallet.chains import Chain, detect_network
from evm_wallet_api.wallet.fees import FeeOracle, FeeQuote
from evm_wallet_api.wallet.keys import KeyRecord, SigningWallet

logger = logging.getLogger("evm_wallet_api.wallet.transactions")

AnyWallet = Union[KeyRecord, SigningWallet]


@dataclass(frozen=True)
class GasEstimate:
    """Worst-case cost of a transfer, priced at ``max_fee_per_gas``."""

    gas_limit: int
    gas_price: int
    total_fee: int
    quote: FeeQuote

    def to_dict(self) -> dict[str, Any]:
        return {
            "gas_limit": self.gas_limit,
            "gas_price": str(self.gas_price),
            "total_fee": str(self.total_fee),
        }


def _require_signer(wallet: AnyWallet) -> SigningWallet:
    if not isinstance(wallet, SigningWallet):
        raise SigningUnavailable(
            "Wallet has no signer; rebuild it from its private key before sending",
            address=wallet.address,
        )
    return wallet


class TransactionBuilder:
    """Estimates, prices, signs, and submits transfers.

    Steps run strictly in order: estimate gas, quote fees, fetch nonce and
    chain id, sign, submit. Nothing is retried here; only fee quoting has a
    retry loop (inside :class:`FeeOracle`).
    """

    def __init__(self, provider: Any, fee_oracle: FeeOracle | None = None) -> None:
        self.provider = provider
        self.fee_oracle = fee_oracle or FeeOracle(provider)

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    async def send_native(
        self,
        wallet: AnyWallet,
        to: str,
        amount_wei: int,
        endpoint: str,
        network: Chain | None = None,
    ) -> str:
        """Send *amount_wei* of the native coin. Returns the transaction hash."""
        signer = _require_signer(wallet)
        to_address = to_checksum(to, "to")
        ensure_uint256(amount_wei, "amount")
        chain = network or detect_network(endpoint)

        tx = {"from": signer.address, "to": to_address, "value": amount_wei}
        return await self._submit(signer, tx, endpoint, chain)

    async def send_token(
        self,
        wallet: AnyWallet,
        to: str,
        amount: int,
        token_contract: str,
        endpoint: str,
        network: Chain | None = None,
    ) -> str:
        """Call ``transfer(to, amount)`` on *token_contract*. Returns the hash."""
        signer = _require_signer(wallet)
        token = to_checksum(token_contract, "token_contract")
        ensure_uint256(amount, "amount")
        chain = network or detect_network(endpoint)

        tx = {
            "from": signer.address,
            "to": token,
            "value": 0,
            "data": encode_transfer(to, amount),
        }
        return await self._submit(signer, tx, endpoint, chain)

    async def _submit(
        self,
        wallet: SigningWallet,
        tx: dict[str, Any],
        endpoint: str,
        chain: Chain | None,
    ) -> str:
        client = self.provider.client(endpoint, chain)

        gas_limit = await self._estimate_gas(client, tx, endpoint)
        quote = await self.fee_oracle.resolve_fee(endpoint, chain)

        nonce = await client.get_transaction_count(wallet.address)
        chain_id = await client.chain_id()

        final_tx = {
            **tx,
            "type": 2,
            "gas": gas_limit,
            "maxFeePerGas": quote.max_fee_per_gas,
            "maxPriorityFeePerGas": quote.max_priority_fee_per_gas,
            "nonce": nonce,
            "chainId": chain_id,
        }
        final_tx.pop("from", None)

        signed = wallet.signer.sign_transaction(final_tx)
        try:
            tx_hash = await client.send_raw_transaction(signed.raw_transaction)
        except RpcError as exc:
            raise SubmissionFailed(
                f"Failed to submit transaction: {exc.message}",
                endpoint=endpoint,
                to=tx["to"],
                nonce=nonce,
            ) from exc

        logger.info(
            f"Submitted tx {tx_hash} from {wallet.address} to {tx['to']} "
            f"(gas={gas_limit}, max_fee={quote.max_fee_per_gas})"
        )
        return tx_hash

    # ------------------------------------------------------------------
    # Estimation
    # ------------------------------------------------------------------

    async def estimate_native_transfer_cost(
        self,
        wallet: AnyWallet,
        to: str,
        amount: int,
        endpoint: str,
        network: Chain | None = None,
    ) -> GasEstimate:
        """Estimate a native transfer and check the sender can afford it.

        Raises ``InsufficientFunds`` if the balance is below
        ``amount + gas_limit * max_fee_per_gas``.
        """
        to_address = to_checksum(to, "to")
        ensure_uint256(amount, "amount")
        tx = {"from": wallet.address, "to": to_address, "value": amount}
        return await self._estimate_cost(wallet, tx, amount, endpoint, network)

    async def estimate_token_transfer_cost(
        self,
        wallet: AnyWallet,
        to: str,
        amount: int,
        token_contract: str,
        endpoint: str,
        network: Chain | None = None,
    ) -> GasEstimate:
        """Estimate an ERC20 transfer and check the sender can pay for gas.

        Token balance sufficiency is the contract's concern and is not checked.
        """
        token = to_checksum(token_contract, "token_contract")
        ensure_uint256(amount, "amount")
        tx = {
            "from": wallet.address,
            "to": token,
            "value": 0,
            "data": encode_transfer(to, amount),
        }
        return await self._estimate_cost(wallet, tx, 0, endpoint, network)

    async def _estimate_cost(
        self,
        wallet: AnyWallet,
        tx: dict[str, Any],
        value: int,
        endpoint: str,
        network: Chain | None,
    ) -> GasEstimate:
        chain = network or detect_network(endpoint)
        client = self.provider.client(endpoint, chain)

        gas_limit = await self._estimate_gas(client, tx, endpoint)
        quote = await self.fee_oracle.resolve_fee(endpoint, chain)
        price = quote.max_fee_per_gas

        max_gas_cost = gas_limit * price
        total_needed = max_gas_cost + value

        balance = await client.get_balance(wallet.address)
        if balance < total_needed:
            raise InsufficientFunds(
                balance=balance,
                needed=total_needed,
                gas_limit=gas_limit,
                gas_price=price,
                amount=value,
                endpoint=endpoint,
            )

        return GasEstimate(
            gas_limit=gas_limit,
            gas_price=price,
            total_fee=max_gas_cost,
            quote=quote,
        )

    async def _estimate_gas(self, client: Any, tx: dict[str, Any], endpoint: str) -> int:
        try:
            gas_limit = await client.estimate_gas(tx)
        except RpcError as exc:
            logger.warning(f"Gas estimation failed on {endpoint}: {exc.message}")
            raise GasEstimationFailed(
                f"Gas estimation failed: {exc.message}",
                endpoint=endpoint,
                to=tx.get("to"),
            ) from exc
        logger.debug(f"Gas limit estimated on {endpoint}: {gas_limit}")
        return gas_limit

"""Web3-backed dispatcher — performs the call as an Ethereum transaction.

The call is first simulated with eth_call to capture its output bytes
(and to fail fast on a revert), then signed locally and broadcast. The
dispatch succeeds when the mined receipt reports status 1.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from delayedjobs.dispatch.dispatcher import DispatchResult

logger = logging.getLogger(__name__)


class Web3Dispatcher:
    """Dispatch calls through a JSON-RPC endpoint with a local key.

    Args:
        rpc_url: Ethereum RPC endpoint URL.
        private_key: Hex-encoded private key of the sending account.
        chain_id: Network chain ID (default: 11155111 = Sepolia).
        gas: Gas limit for each call.
        receipt_timeout: Seconds to wait for the receipt.
        w3: Optional pre-built Web3 instance (overrides rpc_url).
    """

    def __init__(
        self,
        rpc_url: Optional[str],
        private_key: str,
        chain_id: int = 11155111,
        gas: int = 500_000,
        receipt_timeout: int = 300,
        w3: Any = None,
    ) -> None:
        from web3 import Web3, HTTPProvider
        from eth_account import Account

        if w3 is None:
            if not rpc_url:
                raise ValueError("rpc_url is required when no Web3 instance is given")
            w3 = Web3(HTTPProvider(rpc_url))
        self._w3 = w3
        if private_key.startswith("0x"):
            private_key = private_key[2:]
        self._account = Account.from_key(private_key)
        self._chain_id = chain_id
        self._gas = gas
        self._receipt_timeout = receipt_timeout

    @property
    def sender(self) -> str:
        return self._account.address

    def dispatch(self, target: str, value: int, data: bytes) -> DispatchResult:
        call = {
            "from": self._account.address,
            "to": target,
            "value": value,
            "data": data,
        }
        try:
            output = bytes(self._w3.eth.call(call))
        except Exception as e:  # reverts surface as provider-specific exceptions
            logger.warning("Simulation of call to %s reverted: %s", target, e)
            return DispatchResult.failed(f"Simulation reverted: {e}")

        nonce = self._w3.eth.get_transaction_count(self._account.address)
        tx = dict(
            call,
            gas=self._gas,
            gasPrice=self._w3.eth.gas_price,
            nonce=nonce,
            chainId=self._chain_id,
        )
        signed = self._account.sign_transaction(tx)
        tx_hash = self._w3.eth.send_raw_transaction(signed.raw_transaction)
        receipt = self._w3.eth.wait_for_transaction_receipt(
            tx_hash, timeout=self._receipt_timeout
        )
        if receipt["status"] != 1:
            logger.warning("Transaction %s to %s reverted", tx_hash.hex(), target)
            return DispatchResult.failed(f"Transaction {tx_hash.hex()} reverted")

        logger.info("Dispatched call to %s in block %s", target, receipt["blockNumber"])
        return DispatchResult.ok(output)

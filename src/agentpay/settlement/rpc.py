"""
JSON-RPC settlement backend.

Sends native-coin transfers with eth_sendTransaction from an account the node
manages, then polls for the receipt.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from agentpay.core.exceptions import CollaboratorError, SettlementError
from agentpay.core.logging import get_logger
from agentpay.core.rpc import to_hex
from agentpay.settlement.base import SettlementBackend

if TYPE_CHECKING:
    from agentpay.core.rpc import JsonRpcClient
    from agentpay.core.types import TransactionData

logger = get_logger("settlement.rpc")

Sleep = Callable[[float], Awaitable[None]]


class JsonRpcSettlement(SettlementBackend):
    """Settles against an Ethereum-compatible node."""

    name = "rpc_settlement"

    def __init__(
        self,
        rpc: JsonRpcClient,
        sender: str | None = None,
        poll_interval: float = 1.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """
        Args:
            rpc: JSON-RPC client for the node
            sender: Sending account (defaults to the node's first account)
            poll_interval: Seconds between receipt polls
            sleep: Awaitable sleep used between polls
        """
        self._rpc = rpc
        self._sender = sender
        self._poll_interval = poll_interval
        self._sleep = sleep

    async def close(self) -> None:
        await self._rpc.close()

    async def _resolve_sender(self) -> str:
        if self._sender:
            return self._sender
        try:
            accounts = await self._rpc.call("eth_accounts")
        except CollaboratorError as e:
            raise SettlementError(f"Could not list node accounts: {e}") from e
        if not accounts:
            raise SettlementError("Node manages no accounts to send from")
        self._sender = accounts[0]
        return self._sender

    async def _wait_for_receipt(self, tx_hash: str) -> dict[str, Any]:
        while True:
            try:
                receipt = await self._rpc.call("eth_getTransactionReceipt", [tx_hash])
            except CollaboratorError as e:
                raise SettlementError(f"Receipt lookup failed: {e}", reference=tx_hash) from e
            if receipt:
                return receipt
            await self._sleep(self._poll_interval)

    async def submit(self, tx: TransactionData) -> str:
        if not tx.token.is_native():
            raise SettlementError(f"Only native transfers are supported, not {tx.token.value}")

        sender = await self._resolve_sender()
        params: dict[str, str] = {
            "from": sender,
            "to": tx.destination,
            "value": to_hex(tx.value_minor_units),
            "gas": to_hex(tx.gas_limit),
            "gasPrice": to_hex(tx.fee_rate),
        }
        if tx.payload:
            params["data"] = "0x" + tx.payload.hex()

        try:
            tx_hash = await self._rpc.call("eth_sendTransaction", [params], retry=False)
        except CollaboratorError as e:
            raise SettlementError(f"Transaction rejected: {e}") from e
        if not tx_hash:
            raise SettlementError("Node returned no transaction hash")

        logger.info(f"Transaction sent: {tx_hash}")
        receipt = await self._wait_for_receipt(tx_hash)

        if receipt.get("status") == "0x0":
            raise SettlementError("Transaction reverted", reference=tx_hash)

        logger.info(f"Transaction confirmed in block {receipt.get('blockNumber')}: {tx_hash}")
        return tx_hash

"""
Fee estimation for outgoing transactions.

The builder only records and forwards what a FeeModel returns; the one place
fee numbers are made up locally is `fallback_fee_estimate`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from agentpay.core.exceptions import CollaboratorError
from agentpay.core.logging import get_logger
from agentpay.core.rpc import from_hex, to_hex
from agentpay.core.types import MarketSnapshot, PaymentRequest, Provenance, Token
from agentpay.utils.units import gwei_to_wei, to_minor_units

if TYPE_CHECKING:
    from agentpay.core.rpc import JsonRpcClient

logger = get_logger("transactions.fees")

# Gas limits by transfer kind (in gas units)
NATIVE_TRANSFER_GAS = 21_000
TOKEN_TRANSFER_GAS = 65_000

# Fee rate assumed when no live data is available (gwei)
DEFAULT_FEE_RATE_GWEI = Decimal("20")


@dataclass(frozen=True)
class FeeEstimate:
    """Gas limit and per-unit fee rate (minor units of the native coin)."""

    gas_limit: int
    fee_rate: int
    source: Provenance

    @property
    def total(self) -> int:
        return self.gas_limit * self.fee_rate


def default_gas_limit(token: Token) -> int:
    """Gas needed for a plain transfer of `token`."""
    return NATIVE_TRANSFER_GAS if token.is_native() else TOKEN_TRANSFER_GAS


def fallback_fee_estimate(request: PaymentRequest, snapshot: MarketSnapshot | None) -> FeeEstimate:
    """
    Documented fallback.

    Gas limit: 21000 for native transfers, 65000 for token transfers.
    Fee rate: the feed's fee rate when the snapshot came from the feed,
    otherwise 20 gwei.
    """
    if snapshot is not None and snapshot.source == Provenance.FEED:
        fee_rate_gwei = snapshot.fee_rate
    else:
        fee_rate_gwei = DEFAULT_FEE_RATE_GWEI
    return FeeEstimate(
        gas_limit=default_gas_limit(request.token),
        fee_rate=gwei_to_wei(fee_rate_gwei),
        source=Provenance.FALLBACK,
    )


class FeeModel(ABC):
    """External fee estimator."""

    name: str = "fee_model"

    @abstractmethod
    async def estimate(self, request: PaymentRequest, snapshot: MarketSnapshot | None) -> FeeEstimate:
        """
        Estimate gas and fee rate for a request.

        Raises:
            CollaboratorError: If no estimate can be produced
        """
        ...

    async def close(self) -> None:
        return None


class SnapshotFeeModel(FeeModel):
    """Offline fee model: the documented fallback, always available."""

    name = "snapshot_fee_model"

    async def estimate(self, request: PaymentRequest, snapshot: MarketSnapshot | None) -> FeeEstimate:
        return fallback_fee_estimate(request, snapshot)


class JsonRpcFeeModel(FeeModel):
    """Fee estimate from a node: eth_estimateGas + eth_gasPrice."""

    name = "rpc_fee_model"

    def __init__(self, rpc: JsonRpcClient, sender: str | None = None) -> None:
        self._rpc = rpc
        self._sender = sender

    async def close(self) -> None:
        await self._rpc.close()

    async def estimate(self, request: PaymentRequest, snapshot: MarketSnapshot | None) -> FeeEstimate:
        if not request.token.is_native():
            raise CollaboratorError(
                f"Node estimation only covers native transfers, not {request.token.value}",
                self.name,
            )

        call: dict[str, str] = {
            "to": request.recipient,
            "value": to_hex(to_minor_units(request.amount, request.token)),
        }
        if self._sender:
            call["from"] = self._sender

        gas_limit = from_hex(await self._rpc.call("eth_estimateGas", [call]))
        fee_rate = from_hex(await self._rpc.call("eth_gasPrice"))
        if gas_limit <= 0 or fee_rate <= 0:
            raise CollaboratorError("Node returned an empty fee estimate", self.name)

        logger.debug(f"Node fee estimate: {gas_limit} gas at {fee_rate} wei")
        return FeeEstimate(gas_limit=gas_limit, fee_rate=fee_rate, source=Provenance.FEE_MODEL)

"""Settlement backends."""

from agentpay.settlement.base import SettlementBackend
from agentpay.settlement.rpc import JsonRpcSettlement
from agentpay.settlement.simulated import SimulatedSettlement

__all__ = ["SettlementBackend", "JsonRpcSettlement", "SimulatedSettlement"]

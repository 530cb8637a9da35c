"""Transaction building and fee estimation."""

from agentpay.transactions.builder import TransactionBuilder, risk_mitigation_for
from agentpay.transactions.fees import (
    FeeEstimate,
    FeeModel,
    JsonRpcFeeModel,
    SnapshotFeeModel,
    fallback_fee_estimate,
)

__all__ = [
    "TransactionBuilder",
    "risk_mitigation_for",
    "FeeEstimate",
    "FeeModel",
    "JsonRpcFeeModel",
    "SnapshotFeeModel",
    "fallback_fee_estimate",
]

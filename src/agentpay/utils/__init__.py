"""Utility functions for AgentPay."""

from agentpay.utils.units import (
    from_minor_units,
    gwei_to_wei,
    to_decimal,
    to_minor_units,
    wei_to_gwei,
)

__all__ = [
    # Unit conversion
    "from_minor_units",
    "gwei_to_wei",
    "to_decimal",
    "to_minor_units",
    "wei_to_gwei",
]

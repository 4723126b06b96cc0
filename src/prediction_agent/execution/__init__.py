"""
Execution Layer - The Order Execution Gate.

This module provides:
    - RiskGate / GateConfig: Balance, position and market checks before submission
    - InFlightRegistry / Lease: One unresolved order per token
    - ExchangeClient: Protocol, with CLOB (live) and paper implementations
    - Reconciler: Resolves orders whose outcome was unknown at submission
    - OrderOutcome / OrderIntent / OrderResult / ExchangeReport: Data types
"""
from .exchange import (
    ClobExchangeClient,
    ExchangeClient,
    ExchangeError,
    OrderRejectedError,
    PaperExchangeClient,
)
from .gate import GateConfig, RiskGate
from .in_flight import InFlightRegistry, Lease
from .models import (
    ExchangeOrderStatus,
    ExchangeReport,
    OrderIntent,
    OrderOutcome,
    OrderResult,
)
from .reconciler import ReconcileReport, Reconciler

__all__ = [
    # Gate
    "RiskGate",
    "GateConfig",
    # In-flight
    "InFlightRegistry",
    "Lease",
    # Exchange
    "ExchangeClient",
    "ClobExchangeClient",
    "PaperExchangeClient",
    "ExchangeError",
    "OrderRejectedError",
    # Reconciliation
    "Reconciler",
    "ReconcileReport",
    # Models
    "OrderOutcome",
    "OrderIntent",
    "OrderResult",
    "ExchangeReport",
    "ExchangeOrderStatus",
]

"""
Strategy filters - Pre-evaluation rejection logic.

Filters run before a strategy scores a snapshot. If they reject,
the snapshot contributes no signal.
"""
from .snapshot_filters import (
    MAX_TRADABLE_PRICE,
    MIN_TRADABLE_PRICE,
    apply_snapshot_filters,
    check_liquidity,
    check_resolution_window,
    check_tradable_price,
)

__all__ = [
    "apply_snapshot_filters",
    "check_liquidity",
    "check_resolution_window",
    "check_tradable_price",
    "MIN_TRADABLE_PRICE",
    "MAX_TRADABLE_PRICE",
]

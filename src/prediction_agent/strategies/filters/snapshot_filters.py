"""
Pre-evaluation filters for market snapshots.

Strategies call these before scoring a snapshot. A snapshot that fails
a filter is skipped silently; filters never raise.

All checks return a (passes, reason) tuple so callers can log why a
market was skipped.
"""
from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from ..protocol import MarketSnapshot

# Prices at the bounds mean the market is effectively resolved
MIN_TRADABLE_PRICE = Decimal("0.001")
MAX_TRADABLE_PRICE = Decimal("0.999")


def check_tradable_price(price: Decimal) -> tuple[bool, str]:
    """Reject prices pinned at 0 or 1."""
    if price < MIN_TRADABLE_PRICE or price > MAX_TRADABLE_PRICE:
        return False, f"Price {price} outside tradable range"
    return True, ""


def check_resolution_window(
    hours_to_resolution: float,
    min_hours: float = 0.0,
    max_hours: Optional[float] = None,
) -> tuple[bool, str]:
    """
    Check the market resolves inside [min_hours, max_hours].

    Args:
        hours_to_resolution: Hours until the market resolves
        min_hours: Lower bound (inclusive)
        max_hours: Upper bound (inclusive), None for unbounded
    """
    if hours_to_resolution < min_hours:
        return False, f"Resolves in {hours_to_resolution:.1f}h (min {min_hours}h)"
    if max_hours is not None and hours_to_resolution > max_hours:
        return False, f"Resolves in {hours_to_resolution:.1f}h (max {max_hours}h)"
    return True, ""


def check_liquidity(
    liquidity: Decimal, min_liquidity: Decimal = Decimal("0")
) -> tuple[bool, str]:
    """Check the market has at least min_liquidity on the book."""
    if liquidity < min_liquidity:
        return False, f"Liquidity {liquidity} < {min_liquidity}"
    return True, ""


def apply_snapshot_filters(
    snapshot: "MarketSnapshot",
    min_liquidity: Decimal = Decimal("0"),
) -> tuple[bool, str]:
    """
    Apply the common filters to a snapshot.

    Filter order:
    1. Already resolved (no time left)
    2. Tradable price
    3. Liquidity floor

    Returns:
        (should_skip, reason) tuple
    """
    if snapshot.seconds_to_resolution <= 0:
        return True, "Market already resolved"

    passes, reason = check_tradable_price(snapshot.price)
    if not passes:
        return True, reason

    passes, reason = check_liquidity(snapshot.liquidity, min_liquidity)
    if not passes:
        return True, reason

    return False, ""

from __future__ import annotations

import math
from typing import Mapping, Sequence

from .models import Outcome, Position

PLATFORM_FEE = 0.035


def implied_odds(outcome: Outcome, pool: Mapping[Outcome, float]) -> float:
    """Pool-volume share of ``outcome`` in percent; an empty pool splits evenly."""
    total = sum(pool.values())
    if total <= 0:
        return 100 / len(pool)
    return pool[outcome] / total * 100


def pool_odds(outcome: Outcome, pool: Mapping[Outcome, float], fee: float = PLATFORM_FEE) -> float:
    """Parimutuel return on ``outcome`` in percent of stake, after the fee."""
    total = sum(pool.values())
    if total <= 0 or pool[outcome] <= 0:
        return 0.0
    return total * (1 - fee) / pool[outcome] * 100


def calculate_shares(amount: float, entry_odds: float, fee: float = PLATFORM_FEE) -> float:
    """Shares bought for ``amount`` at ``entry_odds`` (a 0-1 decimal).

    The fee is taken once, here. Non-positive or non-finite odds buy nothing.
    """
    if not math.isfinite(entry_odds) or entry_odds <= 0:
        return 0.0
    return amount * (1 - fee) / entry_odds


def total_shares(positions: Sequence[Position]) -> float:
    return sum(position.shares for position in positions)


def total_amount_paid(positions: Sequence[Position]) -> float:
    return sum(position.amount_paid for position in positions)


def potential_payout(positions: Sequence[Position]) -> float:
    # Each share settles at $1 when its outcome wins.
    return total_shares(positions)


def position_value(positions: Sequence[Position], current_odds: float) -> float:
    """Mark-to-market value at ``current_odds`` percent."""
    if not positions:
        return 0.0
    return total_shares(positions) * (current_odds / 100)


def unrealized_pnl(positions: Sequence[Position], current_odds: float) -> float:
    paid = total_amount_paid(positions)
    if paid == 0:
        return 0.0
    return position_value(positions, current_odds) - paid


def pool_contribution(positions: Sequence[Position]) -> float:
    """Fee-adjusted dollars these positions put into the pool."""
    return sum(position.shares * position.entry_odds for position in positions)

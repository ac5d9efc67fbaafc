from __future__ import annotations

import itertools
import logging
import math
import random
import time
from collections import deque
from typing import Deque, Dict, List, Optional, Sequence

from .models import ActivityFeedItem, GameConfig, Outcome, Position, PriceHistoryPoint, PricingModel, TrueOdds, empty_book
from .pricing import (
    calculate_shares,
    implied_odds,
    pool_contribution,
    pool_odds,
    potential_payout,
    position_value,
    total_amount_paid,
    total_shares,
    unrealized_pnl,
)

LOGGER = logging.getLogger("odds_engine")

ADJECTIVES = ("Lucky", "Smart", "Bold", "Quick", "Wise", "Sharp", "Slick", "Hot", "Cool", "Big")
NOUNS = ("Trader", "Shark", "Wolf", "Bull", "Bear", "Whale", "Fish", "Cat", "Dog", "Fox")
SYSTEM_USERNAME = "MARKET"


def generate_username(rng: random.Random) -> str:
    return f"{rng.choice(ADJECTIVES)}{rng.choice(NOUNS)}{rng.randrange(99)}"


class Market:
    """Pool, crowd liquidity and the human book for a single round.

    ``crowd_bets`` only ever holds synthetic volume; the human share of
    ``pool`` is recomputed from positions whenever the pool is rebuilt.
    """

    def __init__(self, outcomes: Sequence[Outcome], config: GameConfig, rng: random.Random) -> None:
        self.outcomes = tuple(outcomes)
        self.config = config
        self.rng = rng
        self.pool: Dict[Outcome, float] = {outcome: 0.0 for outcome in self.outcomes}
        self.crowd_bets: Dict[Outcome, float] = {outcome: 0.0 for outcome in self.outcomes}
        self.positions: Dict[Outcome, List[Position]] = empty_book(self.outcomes)
        self.activity_feed: Deque[ActivityFeedItem] = deque(maxlen=config.max_activity_feed)
        self.price_history: Deque[PriceHistoryPoint] = deque(maxlen=config.max_price_history)
        self._feed_ids = itertools.count(1)

    def seed_pool(self, odds: TrueOdds) -> None:
        base = self.config.initial_pool_base
        for outcome in self.outcomes:
            spread = 20 if outcome == Outcome.PUSH else 50
            value = round(base * odds[outcome] / 100 + (self.rng.random() - 0.5) * spread)
            self.pool[outcome] = float(max(0, value))
        self.crowd_bets = dict(self.pool)

    def price(self, outcome: Outcome, odds: TrueOdds) -> float:
        """Trading price of ``outcome`` in percent under the configured pricing model."""
        if self.config.pricing_model == PricingModel.POOL_IMPLIED:
            return implied_odds(outcome, self.pool)
        return odds[outcome]

    # Feed & history --------------------------------------------------

    def add_feed_item(
        self,
        username: str,
        kind: str,
        label: str,
        amount: float,
        is_you: bool = False,
        is_system: bool = False,
        is_sell: bool = False,
    ) -> ActivityFeedItem:
        item = ActivityFeedItem(
            id=next(self._feed_ids),
            username=username,
            kind=kind,
            label=label,
            amount=amount,
            is_you=is_you,
            is_system=is_system,
            is_sell=is_sell,
        )
        self.activity_feed.appendleft(item)
        return item

    def record_price_point(self, odds: TrueOdds, now: Optional[float] = None) -> PriceHistoryPoint:
        point = PriceHistoryPoint(time=time.time() if now is None else now, odds=odds.as_dict())
        self.price_history.append(point)
        return point

    # Human book --------------------------------------------------

    def has_positions(self) -> bool:
        return any(self.positions[outcome] for outcome in self.outcomes)

    def buy(self, outcome: Outcome, amount: float, entry_odds: float) -> Position:
        fee = self.config.platform_fee
        position = Position(
            amount_paid=amount,
            shares=calculate_shares(amount, entry_odds, fee),
            entry_odds=entry_odds,
        )
        self.positions[outcome].append(position)
        self.pool[outcome] += amount * (1 - fee)
        self.add_feed_item("YOU", outcome.value, outcome.label, amount, is_you=True)
        return position

    def sell(self, outcome: Outcome, price: float) -> float:
        """Cash out every share of ``outcome`` at ``price`` (0-1)."""
        positions = self.positions[outcome]
        if not positions:
            raise ValueError(f"No position on {outcome.value}")
        cash_out = total_shares(positions) * price
        self.pool[outcome] = max(0.0, self.pool[outcome] - cash_out)
        self.positions[outcome] = []
        self.add_feed_item("YOU", outcome.value, outcome.label, round(cash_out, 2), is_you=True, is_sell=True)
        return cash_out

    def total_paid(self) -> float:
        return sum(total_amount_paid(self.positions[outcome]) for outcome in self.outcomes)

    def human_contribution(self) -> Dict[Outcome, float]:
        return {outcome: pool_contribution(self.positions[outcome]) for outcome in self.outcomes}

    # Crowd --------------------------------------------------

    def simulate_crowd_bet(self, odds: TrueOdds) -> ActivityFeedItem:
        """Place one synthetic bet roughly in line with ``odds``."""
        config = self.config
        weights = {}
        for outcome in self.outcomes:
            floor = 1 if outcome == Outcome.PUSH else 5
            noise = (self.rng.random() - 0.5) * config.crowd_bet_noise
            weights[outcome] = max(floor, odds[outcome] + noise)
        total = sum(weights.values())

        pick = self.rng.random()
        chosen = self.outcomes[-1]
        cumulative = 0.0
        for outcome in self.outcomes:
            cumulative += weights[outcome] / total
            if pick < cumulative:
                chosen = outcome
                break

        span = config.crowd_bet_max - config.crowd_bet_min
        amount = math.floor(self.rng.random() ** 1.5 * span) + config.crowd_bet_min
        self.pool[chosen] += amount
        self.crowd_bets[chosen] += amount
        return self.add_feed_item(generate_username(self.rng), chosen.value, chosen.label, amount)

    def rebalance(self, odds: TrueOdds, previous: TrueOdds) -> bool:
        """Pull crowd liquidity toward ``odds`` after a large move. Returns True if it fired."""
        config = self.config
        if odds.max_shift(previous) <= config.rebalance_threshold:
            return False

        crowd_total = sum(self.crowd_bets.values())
        even = 1 / len(self.outcomes)
        human = self.human_contribution()
        for outcome in self.outcomes:
            current = self.crowd_bets[outcome] / crowd_total if crowd_total > 0 else even
            target = odds[outcome] / 100
            moved = crowd_total * (current + (target - current) * config.rebalance_factor)
            self.crowd_bets[outcome] = max(config.rebalance_floor, moved)
            self.pool[outcome] = self.crowd_bets[outcome] + human[outcome]

        LOGGER.debug("Market rebalanced (shift %.1f)", odds.max_shift(previous))
        self.add_feed_item(SYSTEM_USERNAME, "rebalance", "SHIFT", 0, is_system=True)
        return True

    # Views --------------------------------------------------

    def position_summary(self, outcome: Outcome, price_percent: float) -> Dict[str, object]:
        positions = self.positions[outcome]
        return {
            "positions": [position.as_dict() for position in positions],
            "amount_paid": total_amount_paid(positions),
            "shares": total_shares(positions),
            "value": position_value(positions, price_percent),
            "potential_payout": potential_payout(positions),
            "unrealized_pnl": unrealized_pnl(positions, price_percent),
        }

    def snapshot(self, odds: TrueOdds) -> Dict[str, object]:
        return {
            "pool": {outcome.value: value for outcome, value in self.pool.items()},
            "crowd_bets": {outcome.value: value for outcome, value in self.crowd_bets.items()},
            "pool_odds": {
                outcome.value: pool_odds(outcome, self.pool, self.config.platform_fee) for outcome in self.outcomes
            },
            "implied_odds": {outcome.value: implied_odds(outcome, self.pool) for outcome in self.outcomes},
            "prices": {outcome.value: self.price(outcome, odds) for outcome in self.outcomes},
            "positions": {
                outcome.value: self.position_summary(outcome, self.price(outcome, odds)) for outcome in self.outcomes
            },
            "price_history": [{"time": point.time, **point.odds} for point in self.price_history],
            "activity_feed": [
                {
                    "id": item.id,
                    "username": item.username,
                    "type": item.kind,
                    "label": item.label,
                    "amount": item.amount,
                    "is_you": item.is_you,
                    "is_system": item.is_system,
                    "is_sell": item.is_sell,
                }
                for item in self.activity_feed
            ],
        }

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from .cards import cards_to_labels
from .models import GameConfig, Outcome, Phase, Position, RoundHistoryItem, TrueOdds
from .market import Market
from .odds import OddsRequest, compute_odds, pre_deal_odds
from .pricing import potential_payout
from .variants import Table, get_variant

LOGGER = logging.getLogger("odds_engine")

# GameEngine is the only writer of round and session state. It never sleeps
# or schedules anything; hosts call advance_phase/apply_odds/tick on their own
# clocks and read snapshot() back.


@dataclass
class RoundContext:
    # Everything that is thrown away by next_round().
    table: Table
    market: Market
    true_odds: TrueOdds
    timer: int
    selected_bet_amount: float
    phase: Phase = Phase.PRE_DEAL
    history: List[TrueOdds] = field(default_factory=list)
    result: Optional[Outcome] = None
    profit: Optional[float] = None
    countdown_started: bool = False
    auto_advance: bool = False
    pending_key: Optional[int] = None


class GameEngine:
    """Phase-sequenced prediction market over one card game variant."""

    def __init__(self, config: Optional[GameConfig] = None, rng: Optional[random.Random] = None) -> None:
        self.config = config or GameConfig()
        self.variant = get_variant(self.config.variant)
        self.rng = rng or random.Random()
        self.round_number = 1
        self.balance = self.config.initial_balance
        self.lifetime_volume = 0.0
        self.round_history: List[RoundHistoryItem] = []
        self.odds_key = 0
        self.round: Optional[RoundContext] = None

    @property
    def outcomes(self):
        return self.variant.outcomes

    # Round lifecycle --------------------------------------------------

    def start_round(self) -> RoundContext:
        self.odds_key += 1
        odds = pre_deal_odds(self.variant.name, self.config.pre_deal_simulations)
        market = Market(self.outcomes, self.config, self.rng)
        market.seed_pool(odds)
        self.round = RoundContext(
            table=self.variant.new_table(self.rng, self.config),
            market=market,
            true_odds=odds,
            timer=self.config.prediction_window,
            selected_bet_amount=self.config.default_bet_amount,
            history=[odds],
        )
        market.record_price_point(odds)
        LOGGER.info("Round %s started (%s)", self.round_number, self.variant.name)
        return self.round

    def next_round(self) -> RoundContext:
        self.round_number += 1
        return self.start_round()

    def _require_round(self) -> RoundContext:
        if self.round is None:
            raise RuntimeError("No round in progress")
        return self.round

    def advance_phase(self) -> Optional[OddsRequest]:
        """Deal the next phase. Returns the odds request to run, or None if the round resolved."""
        ctx = self._require_round()
        if ctx.phase == Phase.RESOLUTION:
            raise RuntimeError("Round already resolved")

        transition = self.variant.advance(ctx.table, ctx.phase)
        self.odds_key += 1
        LOGGER.debug("Round %s: %s -> %s", self.round_number, ctx.phase.value, transition.phase.value)
        ctx.phase = transition.phase
        ctx.auto_advance = False
        ctx.countdown_started = False
        ctx.timer = 0

        if transition.winner is not None:
            ctx.pending_key = None
            self._resolve(transition.winner)
            return None

        ctx.pending_key = self.odds_key
        return self.variant.odds_request(ctx.table, ctx.phase, self.config, self.odds_key)

    def abandon_odds(self, key: int) -> bool:
        """Give up on a failed odds request so the round can keep moving on the last known odds."""
        ctx = self.round
        if ctx is None or ctx.pending_key != key:
            return False
        LOGGER.warning("Odds request %s abandoned at %s", key, ctx.phase.value)
        ctx.pending_key = None
        ctx.countdown_started = False
        ctx.timer = self.config.prediction_window
        return True

    def auto_advance_delay_ms(self) -> int:
        ctx = self._require_round()
        if ctx.phase in self.variant.reveal_phases:
            return self.config.card_deal_delay_ms
        return self.config.certainty_advance_ms

    def apply_odds(self, key: int, odds: TrueOdds) -> bool:
        """Install freshly computed odds. Results for an older deal are dropped."""
        ctx = self.round
        if ctx is None or key != self.odds_key or ctx.pending_key != key:
            LOGGER.debug("Dropping stale odds result (key %s, current %s)", key, self.odds_key)
            return False

        previous = ctx.true_odds
        ctx.true_odds = odds
        ctx.history.append(odds)
        ctx.pending_key = None
        ctx.market.record_price_point(odds)
        ctx.market.rebalance(odds, previous)

        ctx.countdown_started = False
        if odds.is_certain:
            ctx.timer = 0
            ctx.auto_advance = True
            LOGGER.info("Outcome certain at %s: %s", ctx.phase.value, odds.certain_outcome().value)
        else:
            ctx.timer = self.config.prediction_window
        return True

    def step(self) -> Optional[TrueOdds]:
        """Advance and compute odds inline. Convenience for scripts and tests."""
        request = self.advance_phase()
        if request is None:
            return None
        odds = compute_odds(request, rng=self.rng)
        self.apply_odds(request.key, odds)
        return odds

    def tick(self) -> bool:
        """One second of countdown. Returns True when the timer reaches zero."""
        ctx = self.round
        if ctx is None or ctx.phase == Phase.RESOLUTION or ctx.pending_key is not None:
            return False
        if ctx.timer <= 0:
            return False
        running = (
            not self.config.countdown_requires_bet
            or ctx.countdown_started
            or ctx.market.has_positions()
        )
        if not running:
            return False
        ctx.countdown_started = True
        ctx.timer = max(0, ctx.timer - 1)
        return ctx.timer == 0

    def _resolve(self, winner: Outcome) -> None:
        ctx = self._require_round()
        ctx.phase = Phase.RESOLUTION
        ctx.result = winner
        ctx.true_odds = TrueOdds.certain(winner, self.outcomes)
        ctx.history.append(ctx.true_odds)
        ctx.market.record_price_point(ctx.true_odds)

        payout = potential_payout(ctx.market.positions[winner])
        ctx.profit = payout - ctx.market.total_paid()
        self.balance += payout
        description = self.variant.describe(ctx.table, winner)
        self.round_history.append(RoundHistoryItem(self.round_number, winner, description))
        LOGGER.info(
            "Round %s resolved: %s (%s), payout %.2f, profit %.2f",
            self.round_number,
            winner.value,
            description,
            payout,
            ctx.profit,
        )

    # Locks --------------------------------------------------

    def is_market_locked(self) -> bool:
        ctx = self.round
        if ctx is None or ctx.phase == Phase.RESOLUTION:
            return True
        if ctx.true_odds.is_certain:
            return True
        return self.variant.market_blocked(ctx.table)

    def bets_locked(self) -> bool:
        """Final-seconds lock on new bets while the window closes."""
        ctx = self.round
        if ctx is None or ctx.phase == Phase.RESOLUTION:
            return False
        return ctx.timer <= self.config.bet_lock_seconds

    # Trading --------------------------------------------------

    def _outcome(self, outcome: Union[Outcome, str]) -> Outcome:
        try:
            resolved = Outcome(outcome)
        except ValueError:
            raise ValueError(f"Unknown outcome {outcome!r}") from None
        if resolved not in self.outcomes:
            raise ValueError(f"Outcome {resolved.value} not offered in {self.variant.name}")
        return resolved

    def _check_amount(self, amount: float) -> None:
        if isinstance(amount, float) and not math.isfinite(amount):
            raise ValueError("Bet amount must be a finite number")
        if amount <= 0:
            raise ValueError("Bet amount must be positive")
        if amount > self.config.max_bet_amount:
            raise ValueError(f"Bet amount above maximum {self.config.max_bet_amount}")

    def select_bet_amount(self, amount: float) -> float:
        ctx = self._require_round()
        self._check_amount(amount)
        ctx.selected_bet_amount = amount
        return amount

    def place_bet(self, outcome: Union[Outcome, str], amount: Optional[float] = None) -> Position:
        ctx = self._require_round()
        resolved = self._outcome(outcome)
        amount = ctx.selected_bet_amount if amount is None else amount
        self._check_amount(amount)
        if self.is_market_locked() or self.bets_locked():
            raise ValueError("MARKET_LOCKED")
        if self.balance < amount:
            raise ValueError("Insufficient balance")
        price = ctx.market.price(resolved, ctx.true_odds)
        if price <= 0:
            raise ValueError(f"No price available for {resolved.value}")

        position = ctx.market.buy(resolved, amount, price / 100)
        self.balance -= amount
        self.lifetime_volume += amount
        LOGGER.debug("Bet %.2f on %s at %.3f -> %.4f shares", amount, resolved.value, price / 100, position.shares)
        return position

    def sell_position(self, outcome: Union[Outcome, str]) -> float:
        ctx = self._require_round()
        resolved = self._outcome(outcome)
        if ctx.phase == Phase.RESOLUTION:
            raise ValueError("MARKET_LOCKED")
        cash_out = ctx.market.sell(resolved, ctx.market.price(resolved, ctx.true_odds) / 100)
        self.balance += cash_out
        LOGGER.debug("Sold %s for %.2f", resolved.value, cash_out)
        return cash_out

    def simulate_crowd_bet(self) -> bool:
        ctx = self.round
        if ctx is None or ctx.phase == Phase.RESOLUTION:
            return False
        ctx.market.simulate_crowd_bet(ctx.true_odds)
        return True

    def rebalance(self, previous: TrueOdds) -> bool:
        ctx = self._require_round()
        return ctx.market.rebalance(ctx.true_odds, previous)

    def record_price_point(self) -> None:
        ctx = self._require_round()
        ctx.market.record_price_point(ctx.true_odds)

    # Views --------------------------------------------------

    def snapshot(self) -> Dict[str, object]:
        ctx = self._require_round()
        table = ctx.table
        hands = self.variant.visible_hands(table)
        snapshot: Dict[str, object] = {
            "variant": self.variant.name,
            "round": self.round_number,
            "phase": ctx.phase.value,
            "timer": ctx.timer,
            "countdown_running": ctx.countdown_started,
            "hands": {outcome.value: cards_to_labels(cards) for outcome, cards in hands.items()},
            "hidden_cards": len(table.hidden),
            "community": cards_to_labels(table.community),
            "cards_remaining": len(table.deck),
            "decisions": {
                "raised_preflop": table.raised_preflop,
                "raised_postflop": table.raised_postflop,
                "raised_river": table.raised_river,
                "folded": table.folded,
            },
            "table_stats": self.variant.table_stats(table),
            "true_odds": ctx.true_odds.as_dict(),
            "odds_pending": ctx.pending_key is not None,
            "auto_advance": ctx.auto_advance,
            "round_result": ctx.result.value if ctx.result else None,
            "round_profit": ctx.profit,
            "balance": self.balance,
            "lifetime_volume": self.lifetime_volume,
            "selected_bet_amount": ctx.selected_bet_amount,
            "market_locked": self.is_market_locked(),
            "bets_locked": self.bets_locked(),
            "round_history": [
                {"round": item.round_number, "winner": item.winner.value, "hand_description": item.hand_description}
                for item in self.round_history
            ],
        }
        snapshot.update(ctx.market.snapshot(ctx.true_odds))
        return snapshot

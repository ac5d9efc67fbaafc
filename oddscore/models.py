from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

ODDS_TOLERANCE = 1e-6


class Phase(str, Enum):
    PRE_DEAL = "PRE_DEAL"
    # blackjack
    PLAYER_CARD_1 = "PLAYER_CARD_1"
    DEALER_CARD_1 = "DEALER_CARD_1"
    PLAYER_CARD_2 = "PLAYER_CARD_2"
    PLAYER_HITTING = "PLAYER_HITTING"
    DEALER_REVEAL = "DEALER_REVEAL"
    DEALER_HITTING = "DEALER_HITTING"
    # hold'em
    PLAYER_CARDS = "PLAYER_CARDS"
    FLOP = "FLOP"
    TURN = "TURN"
    RIVER = "RIVER"
    OPPONENT_CARDS = "OPPONENT_CARDS"
    DEALER_CARDS = "DEALER_CARDS"
    RESOLUTION = "RESOLUTION"


class Outcome(str, Enum):
    PLAYER = "player"
    DEALER = "dealer"
    PLAYER1 = "player1"
    PLAYER2 = "player2"
    PLAYER3 = "player3"
    PUSH = "push"

    @property
    def label(self) -> str:
        return {
            Outcome.PLAYER: "Player",
            Outcome.DEALER: "Dealer",
            Outcome.PLAYER1: "Player 1",
            Outcome.PLAYER2: "Player 2",
            Outcome.PLAYER3: "Player 3",
            Outcome.PUSH: "Push",
        }[self]


class PricingModel(str, Enum):
    TRUE_ODDS = "TRUE_ODDS"
    POOL_IMPLIED = "POOL_IMPLIED"


@dataclass
class GameConfig:
    variant: str = "holdem"
    prediction_window: int = 15  # seconds
    bet_lock_seconds: int = 2
    countdown_requires_bet: bool = True
    platform_fee: float = 0.035
    initial_balance: float = 100.0
    initial_pool_base: float = 1_000.0
    default_bet_amount: float = 10.0
    max_bet_amount: float = 100.0
    quick_bet_amounts: Tuple[float, ...] = (5, 10, 25, 50)
    monte_carlo_simulations: int = 500
    pre_deal_simulations: int = 4_000
    exact_enumeration_limit: int = 1_100_000
    shoe_decks: int = 1
    card_deal_delay_ms: int = 1_500
    certainty_advance_ms: int = 100
    resolution_delay_ms: int = 5_000
    rebalance_threshold: float = 3.0
    rebalance_factor: float = 0.9
    rebalance_floor: float = 10.0
    crowd_bet_noise: float = 6.0
    crowd_bet_min: int = 5
    crowd_bet_max: int = 80
    crowd_bet_delay_min_ms: int = 500
    crowd_bet_delay_max_ms: int = 2_000
    max_price_history: int = 100
    max_activity_feed: int = 10
    pricing_model: PricingModel = PricingModel.TRUE_ODDS


@dataclass(frozen=True)
class TrueOdds:
    """Percent per outcome, in the variant's outcome order. Sums to ~100."""

    items: Tuple[Tuple[Outcome, float], ...]

    def __getitem__(self, outcome: Union[Outcome, str]) -> float:
        outcome = Outcome(outcome)
        for key, value in self.items:
            if key == outcome:
                return value
        raise KeyError(outcome)

    @property
    def outcomes(self) -> Tuple[Outcome, ...]:
        return tuple(outcome for outcome, _ in self.items)

    def total(self) -> float:
        return sum(value for _, value in self.items)

    def certain_outcome(self) -> Optional[Outcome]:
        for outcome, value in self.items:
            if value >= 100 - ODDS_TOLERANCE:
                return outcome
        return None

    @property
    def is_certain(self) -> bool:
        return self.certain_outcome() is not None

    def max_shift(self, previous: "TrueOdds") -> float:
        return max(abs(value - previous[outcome]) for outcome, value in self.items)

    def as_dict(self) -> Dict[str, float]:
        return {outcome.value: value for outcome, value in self.items}

    @classmethod
    def from_mapping(cls, values: Mapping[Outcome, float], outcomes: Sequence[Outcome]) -> "TrueOdds":
        return cls(tuple((outcome, float(values.get(outcome, 0.0))) for outcome in outcomes))

    @classmethod
    def from_tally(cls, tally: Mapping[Outcome, int], total: int, outcomes: Sequence[Outcome]) -> "TrueOdds":
        if total <= 0:
            raise RuntimeError("Cannot build odds from an empty tally")
        return cls(tuple((outcome, tally.get(outcome, 0) / total * 100) for outcome in outcomes))

    @classmethod
    def certain(cls, winner: Outcome, outcomes: Sequence[Outcome]) -> "TrueOdds":
        return cls(tuple((outcome, 100.0 if outcome == winner else 0.0) for outcome in outcomes))

    @classmethod
    def uniform(cls, outcomes: Sequence[Outcome]) -> "TrueOdds":
        share = 100 / len(outcomes)
        return cls(tuple((outcome, share) for outcome in outcomes))


@dataclass
class Position:
    amount_paid: float
    shares: float
    entry_odds: float  # decimal 0-1

    def as_dict(self) -> Dict[str, float]:
        return {"amount_paid": self.amount_paid, "shares": self.shares, "entry_odds": self.entry_odds}


@dataclass(frozen=True)
class RoundHistoryItem:
    round_number: int
    winner: Outcome
    hand_description: str


@dataclass
class ActivityFeedItem:
    id: int
    username: str
    kind: str  # an outcome value or "rebalance"
    label: str
    amount: float
    is_you: bool = False
    is_system: bool = False
    is_sell: bool = False


@dataclass
class PriceHistoryPoint:
    time: float
    odds: Dict[str, float] = field(default_factory=dict)


def empty_book(outcomes: Iterable[Outcome]) -> Dict[Outcome, List[Position]]:
    return {outcome: [] for outcome in outcomes}

"""Card odds market primitives: cards, hand evaluation, odds engine and round state."""

from .cards import Card, RANKS, SUITS, build_deck, build_shoe, deal, parse_cards
from .evaluator import EvaluatedHand, HandRank, determine_winner, evaluate_hand, hand_score
from .game import GameEngine, RoundContext
from .models import GameConfig, Outcome, Phase, Position, PricingModel, TrueOdds
from .odds import OddsRequest, compute_odds
from .variants import get_variant

__all__ = [
    "Card",
    "RANKS",
    "SUITS",
    "build_deck",
    "build_shoe",
    "deal",
    "parse_cards",
    "EvaluatedHand",
    "HandRank",
    "determine_winner",
    "evaluate_hand",
    "hand_score",
    "GameEngine",
    "RoundContext",
    "GameConfig",
    "Outcome",
    "Phase",
    "Position",
    "PricingModel",
    "TrueOdds",
    "OddsRequest",
    "compute_odds",
    "get_variant",
]

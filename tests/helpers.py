from __future__ import annotations

import random
from typing import List, Optional, Sequence

from oddscore.cards import Card, full_deck, parse_cards, remove_cards
from oddscore.game import GameEngine
from oddscore.models import GameConfig, Outcome, Phase, TrueOdds


def cards(*labels: str) -> List[Card]:
    return parse_cards(labels)


def unseen_without(known: Sequence[Card]) -> tuple:
    """The rest of a 52-card deck once ``known`` is on the table."""
    return tuple(remove_cards(full_deck(), known))


def create_engine(variant: str = "holdem", seed: int = 7, **overrides) -> GameEngine:
    """Instantiate an engine with a started round and a seeded RNG."""
    config = GameConfig(variant=variant, **overrides)
    engine = GameEngine(config, random.Random(seed))
    engine.start_round()
    return engine


def stack_deck(engine: GameEngine, deal_order: Sequence[object]) -> None:
    """Move ``deal_order`` to the tail of the deck so it is dealt first, in order."""
    deck = engine.round.table.deck
    for card in deal_order:
        deck.remove(card)
    deck.extend(reversed(list(deal_order)))


def force_odds(engine: GameEngine, values: dict) -> TrueOdds:
    odds = TrueOdds.from_mapping(values, engine.outcomes)
    engine.round.true_odds = odds
    return odds


def play_round(engine: GameEngine, limit: int = 20) -> Optional[Outcome]:
    """Step the current round to resolution and return the winner."""
    for _ in range(limit):
        if engine.round.phase == Phase.RESOLUTION:
            break
        engine.step()
    return engine.round.result

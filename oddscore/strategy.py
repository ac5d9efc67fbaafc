"""Fixed heuristic play tables for the simulated side of each game.

These are not optimality proofs. The thresholds drive both the auto-played
hands and every simulation, so changing one changes every derived price.
"""

from __future__ import annotations

from typing import Dict, Sequence

from .blackjack import ACE, hand_total, is_soft
from .cards import Card
from .evaluator import HandRank, hand_score


def _upcard_value(rank: int) -> int:
    if rank == ACE:
        return 11
    if 11 <= rank <= 13:
        return 10
    return rank


def should_player_hit(player_ranks: Sequence[int], dealer_upcard: int) -> bool:
    total = hand_total(player_ranks)
    dealer = _upcard_value(dealer_upcard)

    if is_soft(player_ranks):
        if total >= 19:
            return False
        if total == 18:
            # Stand vs 2-8, hit vs 9, 10, A.
            return dealer >= 9
        return True

    if total >= 17:
        return False
    if total <= 11:
        return True
    if total == 12:
        # Stand vs 4-6 only.
        return dealer <= 3 or dealer >= 7
    # Hard 13-16: stand vs 2-6.
    return dealer >= 7


def should_raise_4x(hole: Sequence[Card]) -> bool:
    if len(hole) != 2:
        return False
    first, second = hole
    high, low = max(first.rank, second.rank), min(first.rank, second.rank)
    suited = first.suit == second.suit

    if high == low:
        return high >= 3  # 33+
    if high == 14:
        return True  # any ace
    if high == 13:
        # K5+ suited, KQ offsuit
        return low >= 5 if suited else low == 12
    if high == 12:
        return low >= 8  # Q8+
    if high in (11, 10) and suited:
        # Documented table is J8s+ and T8s+, not every suited jack or ten.
        # Simulated odds depend on this threshold.
        return low >= 8
    return False


def _hidden_pair(hole: Sequence[Card], community: Sequence[Card]) -> bool:
    board = {card.rank for card in community}
    return any(card.rank in board for card in hole)


def _four_flush_with_ten(cards: Sequence[Card]) -> bool:
    by_suit: Dict[str, list] = {}
    for card in cards:
        by_suit.setdefault(card.suit, []).append(card.rank)
    return any(len(ranks) >= 4 and max(ranks) >= 10 for ranks in by_suit.values())


def should_raise_2x(hole: Sequence[Card], community: Sequence[Card]) -> bool:
    if len(hole) != 2 or len(community) < 3:
        return False
    cards = list(hole) + list(community)
    rank, _ = hand_score(cards)
    if rank >= HandRank.TWO_PAIR:
        return True
    if _hidden_pair(hole, community):
        return True
    return _four_flush_with_ten(cards)


def should_raise_1x(hole: Sequence[Card], community: Sequence[Card]) -> bool:
    if len(hole) != 2 or len(community) < 5:
        return False
    rank, _ = hand_score(list(hole) + list(community))
    return rank >= HandRank.PAIR or _hidden_pair(hole, community)


def plays_to_showdown(
    hole: Sequence[Card],
    community: Sequence[Card],
    raised_preflop: bool = False,
    raised_postflop: bool = False,
) -> bool:
    """Walk the 4x / 2x / 1x ladder; False means the player folds at the river."""
    if raised_preflop or should_raise_4x(hole):
        return True
    if raised_postflop or should_raise_2x(hole, community[:3]):
        return True
    return should_raise_1x(hole, community)

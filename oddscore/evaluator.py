from __future__ import annotations

import itertools
from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .cards import Card

HandKey = Tuple[int, Tuple[int, ...]]


class HandRank(IntEnum):
    HIGH_CARD = 1
    PAIR = 2
    TWO_PAIR = 3
    THREE_OF_KIND = 4
    STRAIGHT = 5
    FLUSH = 6
    FULL_HOUSE = 7
    FOUR_OF_KIND = 8
    STRAIGHT_FLUSH = 9
    ROYAL_FLUSH = 10


@dataclass(frozen=True)
class EvaluatedHand:
    rank: HandRank
    cards: Tuple[Card, ...]
    kickers: Tuple[int, ...]

    @property
    def key(self) -> HandKey:
        return (int(self.rank), self.kickers)


def evaluate_hand(cards: Sequence[Card]) -> EvaluatedHand:
    """Return the best five-card hand out of 5-7 cards."""
    if len(cards) < 5:
        raise ValueError("Need at least 5 cards to evaluate a hand")
    best: Optional[Tuple[HandKey, Tuple[Card, ...]]] = None
    for combo in itertools.combinations(cards, 5):
        key = _score_five(combo)
        if best is None or key > best[0]:
            best = (key, combo)
    assert best is not None
    (rank, kickers), combo = best
    ordered = tuple(sorted(combo, key=lambda card: card.rank, reverse=True))
    return EvaluatedHand(HandRank(rank), ordered, kickers)


def compare_hands(first: EvaluatedHand, second: EvaluatedHand) -> int:
    if first.key > second.key:
        return 1
    if first.key < second.key:
        return -1
    return 0


def determine_winner(hands: Sequence[EvaluatedHand]) -> Optional[int]:
    """Index of the unique best hand, or None when the top is shared (push).

    Multi-way ties are not split; any shared maximum is reported as a push.
    """
    return winner_index([hand.key for hand in hands])


def winner_index(keys: Sequence[HandKey]) -> Optional[int]:
    best = max(keys)
    leaders = [idx for idx, key in enumerate(keys) if key == best]
    return leaders[0] if len(leaders) == 1 else None


def _score_five(cards: Iterable[Card]) -> HandKey:
    cards = list(cards)
    ranks = sorted((card.rank for card in cards), reverse=True)
    is_flush = len({card.suit for card in cards}) == 1
    straight_high = _straight_high(set(ranks))

    counts: Dict[int, int] = {}
    for rank in ranks:
        counts[rank] = counts.get(rank, 0) + 1
    ordered_counts = sorted(counts.items(), key=lambda item: (item[1], item[0]), reverse=True)
    count_values = [count for _, count in ordered_counts]

    if straight_high and is_flush:
        if straight_high == 14:
            return (HandRank.ROYAL_FLUSH, (14,))
        return (HandRank.STRAIGHT_FLUSH, (straight_high,))
    if count_values[0] == 4:
        return (HandRank.FOUR_OF_KIND, (ordered_counts[0][0], ordered_counts[1][0]))
    if count_values[0] == 3 and count_values[1] == 2:
        return (HandRank.FULL_HOUSE, (ordered_counts[0][0], ordered_counts[1][0]))
    if is_flush:
        return (HandRank.FLUSH, tuple(ranks))
    if straight_high:
        return (HandRank.STRAIGHT, (straight_high,))
    if count_values[0] == 3:
        return (HandRank.THREE_OF_KIND, tuple(rank for rank, _ in ordered_counts))
    if count_values[0] == 2 and count_values[1] == 2:
        return (HandRank.TWO_PAIR, tuple(rank for rank, _ in ordered_counts))
    if count_values[0] == 2:
        return (HandRank.PAIR, tuple(rank for rank, _ in ordered_counts))
    return (HandRank.HIGH_CARD, tuple(ranks))


def _straight_high(ranks: set) -> Optional[int]:
    for high in range(14, 5, -1):
        if all(rank in ranks for rank in range(high - 4, high + 1)):
            return high
    if {14, 2, 3, 4, 5} <= ranks:  # wheel
        return 5
    return None


def hand_score(cards: Sequence[Card]) -> HandKey:
    """Score 5-7 cards without enumerating combinations.

    Returns the same key as ``evaluate_hand(cards).key``; this is the path used
    inside enumeration and simulation loops.
    """
    if len(cards) < 5:
        raise ValueError("Need at least 5 cards to evaluate a hand")
    counts: Dict[int, int] = {}
    by_suit: Dict[str, List[int]] = {}
    for card in cards:
        counts[card.rank] = counts.get(card.rank, 0) + 1
        by_suit.setdefault(card.suit, []).append(card.rank)

    flush_ranks: Optional[List[int]] = None
    for suited in by_suit.values():
        if len(suited) >= 5:
            flush_ranks = sorted(suited, reverse=True)
            break

    if flush_ranks is not None:
        straight_flush = _straight_high(set(flush_ranks))
        if straight_flush == 14:
            return (HandRank.ROYAL_FLUSH, (14,))
        if straight_flush:
            return (HandRank.STRAIGHT_FLUSH, (straight_flush,))

    # Ranks grouped by multiplicity, highest rank first within each group.
    quads = sorted((rank for rank, count in counts.items() if count == 4), reverse=True)
    trips = sorted((rank for rank, count in counts.items() if count == 3), reverse=True)
    pairs = sorted((rank for rank, count in counts.items() if count == 2), reverse=True)
    distinct = sorted(counts, reverse=True)

    if quads:
        quad = quads[0]
        kicker = max(rank for rank in distinct if rank != quad)
        return (HandRank.FOUR_OF_KIND, (quad, kicker))
    if trips and (len(trips) > 1 or pairs):
        top = trips[0]
        filler = max([rank for rank in trips[1:]] + pairs)
        return (HandRank.FULL_HOUSE, (top, filler))
    if flush_ranks is not None:
        return (HandRank.FLUSH, tuple(flush_ranks[:5]))
    straight = _straight_high(set(distinct))
    if straight:
        return (HandRank.STRAIGHT, (straight,))
    if trips:
        kickers = [rank for rank in distinct if rank != trips[0]][:2]
        return (HandRank.THREE_OF_KIND, (trips[0], *kickers))
    if len(pairs) >= 2:
        high, low = pairs[0], pairs[1]
        kicker = max(rank for rank in distinct if rank not in (high, low))
        return (HandRank.TWO_PAIR, (high, low, kicker))
    if pairs:
        kickers = [rank for rank in distinct if rank != pairs[0]][:3]
        return (HandRank.PAIR, (pairs[0], *kickers))
    return (HandRank.HIGH_CARD, tuple(distinct[:5]))

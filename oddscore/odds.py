"""Win-probability engine.

``compute_odds`` is a pure function of an ``OddsRequest`` plus a random source,
so hosts can run it in a worker process. Hold'em states with at least a flop
on the board and at most one seat face down are enumerated exactly; everything
else is sampled.
"""

from __future__ import annotations

import functools
import itertools
import logging
import math
import random
from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .blackjack import DEALER_STAND_VALUE, compare_totals, hand_total
from .cards import Card, deal, full_deck, shuffle
from .evaluator import HandKey, HandRank, hand_score, winner_index
from .models import Outcome, Phase, TrueOdds
from .strategy import plays_to_showdown, should_player_hit

LOGGER = logging.getLogger("odds_engine")

PRE_DEAL_SEED = 20_240_601
BOARD_SIZE = 5
HOLE_SIZE = 2


@dataclass(frozen=True)
class HoldemRules:
    participants: Tuple[Outcome, ...]
    dealer_qualifies: bool = False
    player_may_fold: bool = False
    symmetric: Tuple[Outcome, ...] = ()
    pre_deal_odds: Optional[Dict[Outcome, float]] = None

    @property
    def outcomes(self) -> Tuple[Outcome, ...]:
        return self.participants + (Outcome.PUSH,)


@dataclass(frozen=True)
class BlackjackRules:
    participants: Tuple[Outcome, ...] = (Outcome.PLAYER, Outcome.DEALER)
    pre_deal_odds: Optional[Dict[Outcome, float]] = None

    @property
    def outcomes(self) -> Tuple[Outcome, ...]:
        return self.participants + (Outcome.PUSH,)


RULES = {
    "blackjack": BlackjackRules(
        pre_deal_odds={Outcome.PLAYER: 42.0, Outcome.DEALER: 50.0, Outcome.PUSH: 8.0},
    ),
    "holdem": HoldemRules(
        participants=(Outcome.PLAYER, Outcome.DEALER),
        dealer_qualifies=True,
        player_may_fold=True,
        pre_deal_odds={Outcome.PLAYER: 45.0, Outcome.DEALER: 48.0, Outcome.PUSH: 7.0},
    ),
    "holdem3": HoldemRules(
        participants=(Outcome.PLAYER1, Outcome.PLAYER2, Outcome.PLAYER3),
        symmetric=(Outcome.PLAYER1, Outcome.PLAYER2, Outcome.PLAYER3),
    ),
}


@dataclass(frozen=True)
class OddsRequest:
    variant: str
    phase: Phase
    hands: Tuple[Tuple[object, ...], ...]
    community: Tuple[Card, ...] = ()
    unseen: Tuple[object, ...] = ()
    key: int = 0
    dealer_hidden: bool = True
    player_standing: bool = False
    raised_preflop: bool = False
    raised_postflop: bool = False
    simulations: int = 500
    pre_deal_simulations: int = 4_000
    exact_limit: int = 1_100_000


def rules_for(variant: str):
    try:
        return RULES[variant]
    except KeyError:
        raise ValueError(f"Unknown variant: {variant}") from None


def compute_odds(request: OddsRequest, seed: Optional[int] = None, rng: Optional[random.Random] = None) -> TrueOdds:
    """Return the outcome distribution for ``request``.

    ``seed`` exists so process-pool workers can be handed a reproducible source.
    """
    rng = rng or random.Random(seed)
    rules = rules_for(request.variant)
    if isinstance(rules, BlackjackRules):
        return _blackjack_odds(request, rules, rng)
    return _holdem_odds(request, rules, rng)


# Hold'em ---------------------------------------------------------------------


def _holdem_odds(request: OddsRequest, rules: HoldemRules, rng: random.Random) -> TrueOdds:
    hands = [list(hand) for hand in request.hands]
    community = list(request.community)
    unseen = list(request.unseen)

    if not community and not any(hands):
        return pre_deal_odds(request.variant, request.pre_deal_simulations)

    face_down = sum(1 for hand in hands if not hand)
    if len(community) >= 3 and hands[0] and face_down <= 1:
        completions = count_completions(len(unseen), BOARD_SIZE - len(community), [HOLE_SIZE - len(h) for h in hands])
        if completions <= request.exact_limit:
            LOGGER.debug("Exact enumeration over %s completions (%s)", completions, request.phase.value)
            return _enumerate_holdem(request, rules, hands, community, unseen)

    odds = _simulate_holdem(request, rules, hands, community, unseen, request.simulations, rng)
    return symmetrize(odds, rules, hands)


def count_completions(unseen: int, board_missing: int, holes_missing: Sequence[int]) -> int:
    total = math.comb(unseen, board_missing)
    remaining = unseen - board_missing
    for missing in holes_missing:
        total *= math.comb(remaining, missing)
        remaining -= missing
    return total


def _makes_flush(first: Card, second: Card, suit_counts: Counter) -> bool:
    if first.suit == second.suit:
        return suit_counts[first.suit] + 2 >= BOARD_SIZE
    return suit_counts[first.suit] + 1 >= BOARD_SIZE or suit_counts[second.suit] + 1 >= BOARD_SIZE


def hole_classes(pool: Sequence[Card], board: Sequence[Card]) -> List[Tuple[Tuple[Card, Card], int]]:
    """Two-card holdings from ``pool`` that can score differently on ``board``, with their weights.

    A holding that cannot complete a flush scores by rank alone, so every such
    holding is bucketed under its rank pair. The weights always add up to
    C(len(pool), 2).
    """
    suit_counts = Counter(card.suit for card in board)
    buckets: Dict[Tuple[int, int], List] = {}
    classes: List[Tuple[Tuple[Card, Card], int]] = []
    for first, second in itertools.combinations(pool, 2):
        if _makes_flush(first, second, suit_counts):
            classes.append(((first, second), 1))
            continue
        key = (first.rank, second.rank) if first.rank >= second.rank else (second.rank, first.rank)
        bucket = buckets.get(key)
        if bucket is None:
            buckets[key] = [(first, second), 1]
        else:
            bucket[1] += 1
    classes.extend((hole, weight) for hole, weight in buckets.values())
    return classes


def _settle_holdem(
    rules: HoldemRules,
    scores: Sequence[HandKey],
    player_plays: bool,
) -> Outcome:
    if not player_plays:
        return rules.participants[-1]
    if rules.dealer_qualifies and scores[-1][0] < HandRank.PAIR:
        return rules.participants[0]
    idx = winner_index(scores)
    return Outcome.PUSH if idx is None else rules.participants[idx]


def _player_plays(rules: HoldemRules, request: OddsRequest, hole: Sequence[Card], board: Sequence[Card]) -> bool:
    if not rules.player_may_fold:
        return True
    return plays_to_showdown(hole, board, request.raised_preflop, request.raised_postflop)


def _enumerate_holdem(
    request: OddsRequest,
    rules: HoldemRules,
    hands: List[List[Card]],
    community: List[Card],
    unseen: List[Card],
) -> TrueOdds:
    # Seat one is always known here; at most one other seat is still face down.
    tally: Counter = Counter()
    total = 0
    missing = [idx for idx, hand in enumerate(hands) if not hand]

    for tail in itertools.combinations(unseen, BOARD_SIZE - len(community)):
        board = community + list(tail)
        known = {idx: hand_score(hand + board) for idx, hand in enumerate(hands) if hand}
        plays = _player_plays(rules, request, hands[0], board)

        if not missing:
            scores = [known[idx] for idx in range(len(hands))]
            tally[_settle_holdem(rules, scores, plays)] += 1
            total += 1
            continue

        seat = missing[0]
        taken = set(tail)
        rest = [card for card in unseen if card not in taken]
        if not plays:
            # A fold settles the board whatever the face-down seat holds.
            weight = math.comb(len(rest), HOLE_SIZE)
            tally[rules.participants[-1]] += weight
            total += weight
            continue
        for hole, weight in hole_classes(rest, board):
            scores = [known[idx] if idx != seat else hand_score(list(hole) + board) for idx in range(len(hands))]
            tally[_settle_holdem(rules, scores, plays)] += weight
            total += weight

    return TrueOdds.from_tally(tally, total, rules.outcomes)


def _simulate_holdem(
    request: OddsRequest,
    rules: HoldemRules,
    hands: List[List[Card]],
    community: List[Card],
    unseen: List[Card],
    simulations: int,
    rng: random.Random,
) -> TrueOdds:
    tally: Counter = Counter()
    for _ in range(simulations):
        deck = shuffle(unseen, rng)
        holes = [hand + deal(deck, HOLE_SIZE - len(hand)) for hand in hands]
        board = community + deal(deck, BOARD_SIZE - len(community))
        scores = [hand_score(hole + board) for hole in holes]
        plays = _player_plays(rules, request, holes[0], board)
        tally[_settle_holdem(rules, scores, plays)] += 1
    return TrueOdds.from_tally(tally, simulations, rules.outcomes)


def symmetrize(odds: TrueOdds, rules: HoldemRules, hands: Sequence[Sequence[Card]]) -> TrueOdds:
    """Average the odds of interchangeable participants that have shown nothing."""
    group = [
        outcome
        for outcome in rules.symmetric
        if not hands[rules.participants.index(outcome)]
    ]
    if len(group) < 2:
        return odds
    mean = sum(odds[outcome] for outcome in group) / len(group)
    values = {outcome: (mean if outcome in group else value) for outcome, value in odds.items}
    return TrueOdds.from_mapping(values, odds.outcomes)


@functools.lru_cache(maxsize=None)
def pre_deal_odds(variant: str, simulations: int = 4_000) -> TrueOdds:
    """Odds before any card is known. Fixed tables win; otherwise simulate once."""
    rules = rules_for(variant)
    if rules.pre_deal_odds is not None:
        return TrueOdds.from_mapping(rules.pre_deal_odds, rules.outcomes)

    rng = random.Random(PRE_DEAL_SEED)
    hands: List[List[Card]] = [[] for _ in rules.participants]
    request = OddsRequest(variant, Phase.PRE_DEAL, tuple(() for _ in hands), unseen=tuple(full_deck()))
    odds = _simulate_holdem(request, rules, hands, [], list(request.unseen), simulations, rng)
    return symmetrize(odds, rules, hands)


# Blackjack -------------------------------------------------------------------


def _blackjack_odds(request: OddsRequest, rules: BlackjackRules, rng: random.Random) -> TrueOdds:
    player, dealer = (list(hand) for hand in request.hands)
    if hand_total(player) > 21:
        return TrueOdds.certain(Outcome.DEALER, rules.outcomes)
    if not player and not dealer:
        return pre_deal_odds(request.variant, request.pre_deal_simulations)
    return _simulate_blackjack(request, rules, rng)


def _simulate_blackjack(request: OddsRequest, rules: BlackjackRules, rng: random.Random) -> TrueOdds:
    player_known, dealer_known = (list(hand) for hand in request.hands)
    tally: Counter = Counter()
    for _ in range(request.simulations):
        deck = shuffle(request.unseen, rng)
        player = player_known + deal(deck, max(0, 2 - len(player_known)))
        dealer = list(dealer_known)
        if not dealer:
            dealer += deal(deck, 1)
        if request.dealer_hidden:
            dealer += deal(deck, 1)

        upcard = dealer[0]
        if not request.player_standing:
            while deck and should_player_hit(player, upcard):
                player += deal(deck, 1)
                if hand_total(player) > 21:
                    break

        player_total = hand_total(player)
        if player_total > 21:
            tally[Outcome.DEALER] += 1
            continue

        dealer_total = hand_total(dealer)
        while dealer_total < DEALER_STAND_VALUE and deck:
            dealer += deal(deck, 1)
            dealer_total = hand_total(dealer)

        result = compare_totals(player_total, dealer_total)
        if result > 0:
            tally[Outcome.PLAYER] += 1
        elif result < 0:
            tally[Outcome.DEALER] += 1
        else:
            tally[Outcome.PUSH] += 1
    return TrueOdds.from_tally(tally, request.simulations, rules.outcomes)

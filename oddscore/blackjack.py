from __future__ import annotations

from typing import Sequence

ACE = 1
BLACKJACK = 21
DEALER_STAND_VALUE = 17


def card_value(rank: int) -> int:
    """Blackjack value of a collapsed-suit rank. Aces are 1 here; totals flex them."""
    if rank == ACE:
        return 1
    if 11 <= rank <= 13:
        return 10
    return rank


def hand_total(ranks: Sequence[int]) -> int:
    total = sum(card_value(rank) for rank in ranks)
    aces = sum(1 for rank in ranks if rank == ACE)
    # Promote aces to 11 one at a time while that does not bust.
    while aces > 0 and total + 10 <= BLACKJACK:
        total += 10
        aces -= 1
    return total


def is_soft(ranks: Sequence[int]) -> bool:
    """True when an ace is currently being counted as 11."""
    hard = sum(card_value(rank) for rank in ranks)
    return ACE in ranks and hand_total(ranks) != hard


def is_bust(ranks: Sequence[int]) -> bool:
    return hand_total(ranks) > BLACKJACK


def is_natural(ranks: Sequence[int]) -> bool:
    return len(ranks) == 2 and hand_total(ranks) == BLACKJACK


def bust_probability(current_total: int, deck: Sequence[int]) -> float:
    """Percent chance that the next card from ``deck`` busts ``current_total``."""
    if current_total >= DEALER_STAND_VALUE or not deck:
        return 0.0
    threshold = BLACKJACK - current_total
    # Aces count as 1 here, so they never bust a live hand.
    busting = sum(1 for rank in deck if card_value(rank) > threshold)
    return busting / len(deck) * 100


def compare_totals(player_total: int, dealer_total: int) -> int:
    """1 if the player wins, -1 if the dealer wins, 0 for a push."""
    if player_total > BLACKJACK:
        return -1
    if dealer_total > BLACKJACK:
        return 1
    if player_total > dealer_total:
        return 1
    if dealer_total > player_total:
        return -1
    return 0

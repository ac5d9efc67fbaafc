from __future__ import annotations

from typing import Sequence

from .blackjack import BLACKJACK, hand_total, is_natural
from .cards import Card
from .evaluator import EvaluatedHand, HandRank, compare_hands, evaluate_hand

RANK_NAMES = {rank: str(rank) for rank in range(2, 11)}
RANK_NAMES.update({11: "J", 12: "Q", 13: "K", 14: "A"})


def rank_name(rank: int) -> str:
    return RANK_NAMES.get(rank, "?")


def _join(ranks: Sequence[int]) -> str:
    return " ".join(rank_name(rank) for rank in ranks)


def format_hand(hand: EvaluatedHand) -> str:
    kickers = hand.kickers
    top = kickers[0] if kickers else hand.cards[0].rank
    if hand.rank == HandRank.ROYAL_FLUSH:
        return "Royal Flush"
    if hand.rank == HandRank.STRAIGHT_FLUSH:
        return f"Straight Flush {rank_name(top)}"
    if hand.rank == HandRank.FOUR_OF_KIND:
        text = f"4 of a kind {rank_name(top)}"
        return f"{text}, {rank_name(kickers[1])} kicker" if len(kickers) > 1 else text
    if hand.rank == HandRank.FULL_HOUSE:
        return f"Full House {rank_name(top)}"
    if hand.rank == HandRank.FLUSH:
        return f"Flush {rank_name(top)} High"
    if hand.rank == HandRank.STRAIGHT:
        return f"Straight {rank_name(top)}"
    if hand.rank == HandRank.THREE_OF_KIND:
        text = f"3 of a kind {rank_name(top)}"
        return f"{text}, {_join(kickers[1:])} kickers" if len(kickers) > 1 else text
    if hand.rank == HandRank.TWO_PAIR:
        if len(kickers) >= 3:
            return f"Two Pair {rank_name(kickers[0])} & {rank_name(kickers[1])}, {rank_name(kickers[2])} kicker"
        return "Two Pair"
    if hand.rank == HandRank.PAIR:
        text = f"Pair of {rank_name(top)}"
        return f"{text}, {_join(kickers[1:])} kickers" if len(kickers) > 1 else text
    return f"High Card {_join(kickers) or rank_name(top)}"


def short_hand_description(cards: Sequence[Card], community: Sequence[Card]) -> str:
    """Round-history line such as "Pair of K, A 9 4 kickers" or "Flush K High".

    When the player's best hand is the board itself the line says so.
    """
    everything = list(cards) + list(community)
    if not everything:
        return "No cards"
    if len(everything) < 5:
        return f"High Card {rank_name(max(card.rank for card in everything))}"

    hand = evaluate_hand(everything)
    if len(community) >= 5:
        board = evaluate_hand(community)
        if compare_hands(hand, board) == 0:
            return f"Board: {format_hand(board)}"
    return format_hand(hand)


def describe_blackjack(player: Sequence[int], dealer: Sequence[int]) -> str:
    player_total = hand_total(player)
    dealer_total = hand_total(dealer)
    if player_total > BLACKJACK:
        return f"Player bust {player_total}"
    if dealer_total > BLACKJACK:
        return f"Dealer bust {dealer_total}, Player {player_total}"
    player_text = "Blackjack" if is_natural(player) else str(player_total)
    dealer_text = "Blackjack" if is_natural(dealer) else str(dealer_total)
    return f"Player {player_text} vs Dealer {dealer_text}"

import random

import pytest

from oddscore.cards import full_shoe, remove_cards
from oddscore.models import Outcome, Phase
from oddscore.odds import OddsRequest, compute_odds, count_completions, hole_classes, pre_deal_odds

from .helpers import cards, unseen_without


def assert_sums_to_100(odds):
    assert odds.total() == pytest.approx(100.0, abs=1e-6)


def test_pre_deal_tables_for_fixed_variants():
    assert pre_deal_odds("holdem").as_dict() == {"player": 45.0, "dealer": 48.0, "push": 7.0}
    assert pre_deal_odds("blackjack").as_dict() == {"player": 42.0, "dealer": 50.0, "push": 8.0}


def test_three_way_pre_deal_is_symmetric_and_cached():
    odds = pre_deal_odds("holdem3", 600)
    assert odds[Outcome.PLAYER1] == pytest.approx(odds[Outcome.PLAYER2])
    assert odds[Outcome.PLAYER2] == pytest.approx(odds[Outcome.PLAYER3])
    assert_sums_to_100(odds)
    assert pre_deal_odds("holdem3", 600) is odds


def test_count_completions():
    assert count_completions(45, 0, [0, 2]) == 990
    assert count_completions(46, 1, [0, 2]) == 46 * 990
    assert count_completions(43, 0, [0, 0, 2]) == 903
    assert count_completions(47, 2, [0, 2]) == 1081 * 990


def test_river_quads_are_certain_for_the_player():
    hole = cards("Ah", "Ad")
    board = cards("As", "Ac", "Kd", "7h", "2c")
    request = OddsRequest(
        variant="holdem",
        phase=Phase.RIVER,
        hands=(tuple(hole), ()),
        community=tuple(board),
        unseen=unseen_without(hole + board),
        raised_preflop=True,
    )
    odds = compute_odds(request, seed=1)
    assert odds.certain_outcome() == Outcome.PLAYER
    assert odds.is_certain


def test_river_fold_hands_the_round_to_the_dealer():
    hole = cards("7c", "2d")
    board = cards("Ah", "Kh", "Qd", "9s", "4c")
    request = OddsRequest(
        variant="holdem",
        phase=Phase.RIVER,
        hands=(tuple(hole), ()),
        community=tuple(board),
        unseen=unseen_without(hole + board),
    )
    odds = compute_odds(request, seed=1)
    assert odds.certain_outcome() == Outcome.DEALER


def test_turn_is_enumerated_exactly():
    hole = cards("Kh", "Qh")
    board = cards("Jh", "4c", "9d", "2s")
    request = OddsRequest(
        variant="holdem",
        phase=Phase.TURN,
        hands=(tuple(hole), ()),
        community=tuple(board),
        unseen=unseen_without(hole + board),
        raised_preflop=True,
    )
    first = compute_odds(request, seed=1)
    second = compute_odds(request, seed=999)
    assert first == second
    assert_sums_to_100(first)
    assert 0 < first[Outcome.PLAYER] < 100


def test_flop_is_enumerated_exactly():
    hole = cards("Kh", "Qh")
    board = cards("Jh", "4c", "9d")
    request = OddsRequest(
        variant="holdem",
        phase=Phase.FLOP,
        hands=(tuple(hole), ()),
        community=tuple(board),
        unseen=unseen_without(hole + board),
        raised_preflop=True,
        simulations=50,
    )
    first = compute_odds(request, seed=1)
    second = compute_odds(request, seed=2)
    assert first == second
    assert_sums_to_100(first)
    assert 0 < first[Outcome.PLAYER] < 100


def test_hole_classes_cover_every_holding():
    board = cards("Jh", "4h", "9h", "2c", "Ks")
    pool = unseen_without(board)
    classes = hole_classes(pool, board)
    assert sum(weight for _, weight in classes) == 47 * 46 // 2
    # Two hearts complete the flush, so those holdings stay individual.
    for hole, weight in classes:
        if all(card.suit == board[0].suit for card in hole):
            assert weight == 1
    assert len(classes) < 47 * 46 // 2


def test_three_way_opponent_cards_enumerates_the_last_seat():
    first = cards("Ah", "Kh")
    second = cards("9c", "9d")
    board = cards("2s", "7h", "Jc", "Qd", "4h")
    request = OddsRequest(
        variant="holdem3",
        phase=Phase.OPPONENT_CARDS,
        hands=(tuple(first), tuple(second), ()),
        community=tuple(board),
        unseen=unseen_without(first + second + board),
    )
    odds = compute_odds(request, seed=3)
    assert_sums_to_100(odds)
    assert odds[Outcome.PLAYER2] > odds[Outcome.PLAYER1]
    # 903 equally likely holdings, so each share is a multiple of 100 / 903.
    assert (odds[Outcome.PLAYER3] * 903 / 100) == pytest.approx(round(odds[Outcome.PLAYER3] * 903 / 100))


def test_three_way_hidden_seats_share_the_same_price():
    first = cards("Ah", "Kh")
    request = OddsRequest(
        variant="holdem3",
        phase=Phase.PLAYER_CARDS,
        hands=(tuple(first), (), ()),
        unseen=unseen_without(first),
        simulations=300,
    )
    odds = compute_odds(request, rng=random.Random(8))
    assert odds[Outcome.PLAYER2] == pytest.approx(odds[Outcome.PLAYER3])
    assert_sums_to_100(odds)


def test_blackjack_player_bust_is_certain_for_dealer():
    request = OddsRequest(
        variant="blackjack",
        phase=Phase.PLAYER_HITTING,
        hands=((10, 10, 5), (6,)),
        unseen=tuple(remove_cards(full_shoe(), [10, 10, 5, 6])),
    )
    assert compute_odds(request, seed=1).certain_outcome() == Outcome.DEALER


def test_blackjack_twenty_against_a_six_favours_the_player():
    request = OddsRequest(
        variant="blackjack",
        phase=Phase.PLAYER_CARD_2,
        hands=((10, 13), (6,)),
        unseen=tuple(remove_cards(full_shoe(), [10, 13, 6])),
    )
    odds = compute_odds(request, seed=4)
    assert_sums_to_100(odds)
    assert odds[Outcome.PLAYER] > odds[Outcome.DEALER]


def test_unknown_variant_is_rejected():
    request = OddsRequest(variant="baccarat", phase=Phase.PRE_DEAL, hands=((), ()))
    with pytest.raises(ValueError, match="Unknown variant"):
        compute_odds(request, seed=1)

import pytest

from oddscore.blackjack import (
    bust_probability,
    card_value,
    compare_totals,
    hand_total,
    is_bust,
    is_natural,
    is_soft,
)
from oddscore.describe import describe_blackjack


@pytest.mark.parametrize(
    "ranks,expected",
    [
        ([1, 10, 10], 21),
        ([1, 1, 9], 21),
        ([10, 10, 10], 30),
        ([], 0),
        ([1, 1], 12),
        ([1, 1, 1, 1], 14),
        ([13, 1], 21),
        ([5, 6], 11),
    ],
)
def test_hand_total_flexes_aces(ranks, expected):
    assert hand_total(ranks) == expected


def test_card_values_collapse_face_cards():
    assert [card_value(rank) for rank in (1, 2, 10, 11, 12, 13)] == [1, 2, 10, 10, 10, 10]


def test_soft_and_bust_flags():
    assert is_soft([1, 6])
    assert not is_soft([1, 6, 10])
    assert not is_soft([10, 7])
    assert is_bust([10, 10, 2])
    assert not is_bust([1, 1, 9])
    assert is_natural([1, 12])
    assert not is_natural([7, 7, 7])


def test_bust_probability_counts_cards_over_the_threshold():
    # 20 busts on anything worth 2 or more; aces count as one.
    assert bust_probability(20, [1, 2, 10]) == pytest.approx(200 / 3)
    assert bust_probability(12, [10, 10, 9, 1]) == pytest.approx(50.0)
    assert bust_probability(17, [10, 10]) == 0.0
    assert bust_probability(12, []) == 0.0


def test_compare_totals_handles_busts_and_pushes():
    assert compare_totals(20, 18) == 1
    assert compare_totals(17, 19) == -1
    assert compare_totals(18, 18) == 0
    assert compare_totals(22, 23) == -1
    assert compare_totals(15, 22) == 1


def test_describe_blackjack_outcomes():
    assert describe_blackjack([10, 7], [6, 10, 10]) == "Dealer bust 26, Player 17"
    assert describe_blackjack([10, 5, 9], [6]) == "Player bust 24"
    assert describe_blackjack([1, 13], [10, 9]) == "Player Blackjack vs Dealer 19"

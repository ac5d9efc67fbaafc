import random
from collections import Counter

import pytest

from oddscore.cards import (
    Card,
    build_deck,
    build_shoe,
    card_label,
    cards_to_labels,
    deal,
    full_deck,
    parse_label,
    remove_cards,
    shuffle,
)


def test_full_deck_has_52_unique_cards():
    deck = full_deck()
    assert len(deck) == 52
    assert len(set(deck)) == 52


def test_build_deck_is_reproducible_with_seeded_rng():
    first = build_deck(random.Random(11))
    second = build_deck(random.Random(11))
    assert first == second
    assert sorted(first, key=lambda c: (c.suit, c.rank)) == sorted(full_deck(), key=lambda c: (c.suit, c.rank))


def test_shuffle_returns_new_list_with_same_multiset():
    items = [1, 1, 2, 3, 5, 8]
    shuffled = shuffle(items, random.Random(3))
    assert items == [1, 1, 2, 3, 5, 8]
    assert Counter(shuffled) == Counter(items)


def test_shuffle_positions_are_near_uniform():
    rng = random.Random(2024)
    trials = 4_000
    first_slot = Counter(shuffle(range(4), rng)[0] for _ in range(trials))
    for value in range(4):
        assert abs(first_slot[value] - trials / 4) < 150


def test_deal_pops_from_the_tail():
    deck = [Card(2, "h"), Card(3, "h"), Card(4, "h")]
    dealt = deal(deck, 2)
    assert dealt == [Card(4, "h"), Card(3, "h")]
    assert deck == [Card(2, "h")]


def test_build_shoe_contains_four_of_each_rank_per_deck():
    shoe = build_shoe(random.Random(5))
    assert len(shoe) == 52
    assert Counter(shoe) == {rank: 4 for rank in range(1, 14)}
    assert len(build_shoe(random.Random(5), decks=2)) == 104


def test_remove_cards_leaves_source_untouched():
    deck = full_deck()
    remaining = remove_cards(deck, [Card(14, "s"), Card(2, "c")])
    assert len(remaining) == 50
    assert Card(14, "s") not in remaining
    assert len(deck) == 52


def test_labels_round_trip_for_poker_and_blackjack_cards():
    assert parse_label("Th") == Card(10, "h")
    assert parse_label("As").label == "As"
    assert card_label(1) == "A"
    assert card_label(12) == "Q"
    assert cards_to_labels([7, Card(13, "d")]) == ["7", "Kd"]


def test_card_validation_rejects_invalid_values():
    with pytest.raises(ValueError, match="Invalid rank"):
        Card(15, "h")
    with pytest.raises(ValueError, match="Invalid suit"):
        Card(10, "x")
    with pytest.raises(ValueError, match="Invalid rank"):
        parse_label("1h")

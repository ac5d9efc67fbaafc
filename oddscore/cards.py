from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, TypeVar

RANKS = tuple(range(2, 15))  # 14 = Ace
SUITS = "hdcs"
RANK_LABELS = {10: "T", 11: "J", 12: "Q", 13: "K", 14: "A"}
LABEL_RANKS = {label: rank for rank, label in RANK_LABELS.items()}

# Blackjack shoes collapse suits: a card is its rank, 1 = Ace, 11-13 = faces.
BLACKJACK_RANKS = tuple(range(1, 14))
SUITS_PER_DECK = 4

T = TypeVar("T")


@dataclass(frozen=True)
class Card:
    rank: int
    suit: str

    def __post_init__(self) -> None:
        if self.rank not in RANKS:
            raise ValueError(f"Invalid rank: {self.rank}")
        if self.suit not in SUITS:
            raise ValueError(f"Invalid suit: {self.suit}")

    @property
    def label(self) -> str:
        return f"{RANK_LABELS.get(self.rank, str(self.rank))}{self.suit}"


def shuffle(items: Iterable[T], rng: Optional[random.Random] = None) -> List[T]:
    """Return a Fisher-Yates shuffled copy; the input is never mutated."""
    rng = rng or random.Random()
    shuffled = list(items)
    for idx in range(len(shuffled) - 1, 0, -1):
        swap = rng.randrange(idx + 1)
        shuffled[idx], shuffled[swap] = shuffled[swap], shuffled[idx]
    return shuffled


def full_deck() -> List[Card]:
    return [Card(rank, suit) for suit in SUITS for rank in RANKS]


def build_deck(rng: Optional[random.Random] = None) -> List[Card]:
    return shuffle(full_deck(), rng)


def full_shoe(decks: int = 1) -> List[int]:
    return [rank for _ in range(decks * SUITS_PER_DECK) for rank in BLACKJACK_RANKS]


def build_shoe(rng: Optional[random.Random] = None, decks: int = 1) -> List[int]:
    if decks < 1:
        raise ValueError("A shoe needs at least one deck")
    return shuffle(full_shoe(decks), rng)


def deal(deck: List[T], count: int) -> List[T]:
    """Pop ``count`` cards off the tail of ``deck``."""
    if len(deck) < count:
        raise RuntimeError("Not enough cards left in deck")
    return [deck.pop() for _ in range(count)]


def remove_cards(deck: Sequence[T], cards: Iterable[T]) -> List[T]:
    remaining = list(deck)
    for card in cards:
        if card in remaining:
            remaining.remove(card)
    return remaining


def card_label(card: object) -> str:
    if isinstance(card, Card):
        return card.label
    return {1: "A", 11: "J", 12: "Q", 13: "K"}.get(card, str(card))  # type: ignore[arg-type]


def cards_to_labels(cards: Iterable[object]) -> List[str]:
    return [card_label(card) for card in cards]


def parse_label(label: str) -> Card:
    if len(label) != 2:
        raise ValueError(f"Invalid card label: {label}")
    rank_label, suit = label[0], label[1]
    if rank_label in LABEL_RANKS:
        rank = LABEL_RANKS[rank_label]
    elif rank_label.isdigit() and rank_label not in ("0", "1"):
        rank = int(rank_label)
    else:
        raise ValueError(f"Invalid rank: {rank_label}")
    return Card(rank, suit)


def parse_cards(labels: Sequence[str]) -> List[Card]:
    return [parse_label(label) for label in labels]

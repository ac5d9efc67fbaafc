from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .blackjack import DEALER_STAND_VALUE, bust_probability, compare_totals, hand_total, is_bust
from .cards import build_deck, build_shoe, deal
from .describe import describe_blackjack, short_hand_description
from .evaluator import HandRank, determine_winner, evaluate_hand
from .models import GameConfig, Outcome, Phase
from .odds import OddsRequest, rules_for
from .strategy import should_player_hit, should_raise_1x, should_raise_2x, should_raise_4x

# Variants own the cards of a round: what each phase deals, who may see it,
# and how a finished table settles. Timers and money live in GameEngine.


@dataclass
class Table:
    # Every card of the current round. deck + hands + hidden + community is
    # always the full card universe.
    deck: List[object]
    hands: List[List[object]]
    hidden: List[object] = field(default_factory=list)
    community: List[object] = field(default_factory=list)
    raised_preflop: bool = False
    raised_postflop: bool = False
    raised_river: bool = False
    folded: bool = False
    player_standing: bool = False

    def dealt(self) -> List[object]:
        cards: List[object] = list(self.community) + list(self.hidden)
        for hand in self.hands:
            cards.extend(hand)
        return cards


@dataclass(frozen=True)
class Transition:
    phase: Phase
    winner: Optional[Outcome] = None

    @property
    def resolved(self) -> bool:
        return self.winner is not None


class Variant:
    name = ""
    phases: Tuple[Phase, ...] = ()
    # Phases that only turn cards over; hosts pace them with the card deal delay.
    reveal_phases: Tuple[Phase, ...] = ()

    def __init__(self) -> None:
        self.rules = rules_for(self.name)

    @property
    def participants(self) -> Tuple[Outcome, ...]:
        return self.rules.participants

    @property
    def outcomes(self) -> Tuple[Outcome, ...]:
        return self.rules.outcomes

    def new_table(self, rng: random.Random, config: GameConfig) -> Table:
        return Table(deck=build_deck(rng), hands=[[] for _ in self.participants])

    def advance(self, table: Table, phase: Phase) -> Transition:
        raise NotImplementedError

    def describe(self, table: Table, winner: Outcome) -> str:
        raise NotImplementedError

    def hand(self, table: Table, outcome: Outcome) -> List[object]:
        return table.hands[self.participants.index(outcome)]

    def visible_hands(self, table: Table) -> Dict[Outcome, List[object]]:
        return {outcome: list(hand) for outcome, hand in zip(self.participants, table.hands)}

    def odds_request(self, table: Table, phase: Phase, config: GameConfig, key: int) -> OddsRequest:
        return OddsRequest(
            variant=self.name,
            phase=phase,
            hands=tuple(tuple(hand) for hand in table.hands),
            community=tuple(table.community),
            unseen=tuple(table.deck) + tuple(table.hidden),
            key=key,
            dealer_hidden=not table.player_standing,
            player_standing=table.player_standing,
            raised_preflop=table.raised_preflop,
            raised_postflop=table.raised_postflop,
            simulations=config.monte_carlo_simulations,
            pre_deal_simulations=config.pre_deal_simulations,
            exact_limit=config.exact_enumeration_limit,
        )

    def market_blocked(self, table: Table) -> bool:
        """True when the visible table already decides the round."""
        return table.folded

    def table_stats(self, table: Table) -> Dict[str, object]:
        return {}


class BlackjackVariant(Variant):
    name = "blackjack"
    phases = (
        Phase.PRE_DEAL,
        Phase.PLAYER_CARD_1,
        Phase.DEALER_CARD_1,
        Phase.PLAYER_CARD_2,
        Phase.PLAYER_HITTING,
        Phase.DEALER_REVEAL,
        Phase.DEALER_HITTING,
        Phase.RESOLUTION,
    )

    def new_table(self, rng: random.Random, config: GameConfig) -> Table:
        return Table(deck=build_shoe(rng, config.shoe_decks), hands=[[], []])

    def advance(self, table: Table, phase: Phase) -> Transition:
        player, dealer = table.hands
        if phase == Phase.PRE_DEAL:
            player.extend(deal(table.deck, 1))
            return Transition(Phase.PLAYER_CARD_1)
        if phase == Phase.PLAYER_CARD_1:
            dealer.extend(deal(table.deck, 1))
            return Transition(Phase.DEALER_CARD_1)
        if phase == Phase.DEALER_CARD_1:
            player.extend(deal(table.deck, 1))
            table.hidden.extend(deal(table.deck, 1))
            return Transition(Phase.PLAYER_CARD_2)
        if phase in (Phase.PLAYER_CARD_2, Phase.PLAYER_HITTING):
            if should_player_hit(player, dealer[0]):
                player.extend(deal(table.deck, 1))
                if is_bust(player):
                    return Transition(Phase.RESOLUTION, Outcome.DEALER)
                return Transition(Phase.PLAYER_HITTING)
            table.player_standing = True
            dealer.extend(table.hidden)
            table.hidden.clear()
            if hand_total(dealer) >= DEALER_STAND_VALUE:
                return Transition(Phase.RESOLUTION, self._settle(player, dealer))
            return Transition(Phase.DEALER_REVEAL)
        if phase in (Phase.DEALER_REVEAL, Phase.DEALER_HITTING):
            if hand_total(dealer) < DEALER_STAND_VALUE:
                dealer.extend(deal(table.deck, 1))
                if hand_total(dealer) >= DEALER_STAND_VALUE:
                    return Transition(Phase.RESOLUTION, self._settle(player, dealer))
                return Transition(Phase.DEALER_HITTING)
            return Transition(Phase.RESOLUTION, self._settle(player, dealer))
        raise RuntimeError(f"Cannot advance blackjack from {phase.value}")

    @staticmethod
    def _settle(player: List[int], dealer: List[int]) -> Outcome:
        result = compare_totals(hand_total(player), hand_total(dealer))
        if result > 0:
            return Outcome.PLAYER
        if result < 0:
            return Outcome.DEALER
        return Outcome.PUSH

    def describe(self, table: Table, winner: Outcome) -> str:
        player, dealer = table.hands
        return describe_blackjack(player, dealer)

    def market_blocked(self, table: Table) -> bool:
        player, dealer = table.hands
        if is_bust(player):
            return True
        return not table.hidden and is_bust(dealer)

    def table_stats(self, table: Table) -> Dict[str, object]:
        player, dealer = table.hands
        dealer_total = hand_total(dealer)
        # Only meaningful once the hole card is face up and the dealer draws.
        revealed = table.player_standing and not table.hidden
        return {
            "player_total": hand_total(player),
            "dealer_total": dealer_total,
            "dealer_bust_probability": bust_probability(dealer_total, table.deck) if revealed else None,
        }


class HoldemVariant(Variant):
    """Ultimate hold'em: the player walks the raise ladder against a dealer who must qualify."""

    name = "holdem"
    phases = (
        Phase.PRE_DEAL,
        Phase.PLAYER_CARDS,
        Phase.FLOP,
        Phase.TURN,
        Phase.RIVER,
        Phase.DEALER_CARDS,
        Phase.RESOLUTION,
    )
    reveal_phases = (Phase.DEALER_CARDS,)

    def advance(self, table: Table, phase: Phase) -> Transition:
        player, dealer = table.hands
        if phase == Phase.PRE_DEAL:
            player.extend(deal(table.deck, 2))
            table.raised_preflop = should_raise_4x(player)
            return Transition(Phase.PLAYER_CARDS)
        if phase == Phase.PLAYER_CARDS:
            table.community.extend(deal(table.deck, 3))
            if not table.raised_preflop:
                table.raised_postflop = should_raise_2x(player, table.community)
            return Transition(Phase.FLOP)
        if phase == Phase.FLOP:
            table.community.extend(deal(table.deck, 1))
            return Transition(Phase.TURN)
        if phase == Phase.TURN:
            table.community.extend(deal(table.deck, 1))
            if not (table.raised_preflop or table.raised_postflop):
                table.raised_river = should_raise_1x(player, table.community)
                table.folded = not table.raised_river
            return Transition(Phase.RIVER)
        if phase == Phase.RIVER:
            dealer.extend(deal(table.deck, 2))
            return Transition(Phase.DEALER_CARDS)
        if phase == Phase.DEALER_CARDS:
            return Transition(Phase.RESOLUTION, self.settle(table))
        raise RuntimeError(f"Cannot advance hold'em from {phase.value}")

    def settle(self, table: Table) -> Outcome:
        player, dealer = table.hands
        if table.folded:
            return Outcome.DEALER
        dealer_hand = evaluate_hand(dealer + table.community)
        if dealer_hand.rank < HandRank.PAIR:
            return Outcome.PLAYER
        idx = determine_winner([evaluate_hand(player + table.community), dealer_hand])
        return Outcome.PUSH if idx is None else self.participants[idx]

    def describe(self, table: Table, winner: Outcome) -> str:
        player, dealer = table.hands
        if table.folded:
            return "Player folded"
        cards = dealer if winner == Outcome.DEALER else player
        return short_hand_description(cards, table.community)


class ThreeWayHoldemVariant(Variant):
    """Three seats, no folding. Seat one is shown first, seat three only at the end."""

    name = "holdem3"
    phases = (
        Phase.PRE_DEAL,
        Phase.PLAYER_CARDS,
        Phase.FLOP,
        Phase.TURN,
        Phase.RIVER,
        Phase.OPPONENT_CARDS,
        Phase.RESOLUTION,
    )

    def advance(self, table: Table, phase: Phase) -> Transition:
        first, second, third = table.hands
        if phase == Phase.PRE_DEAL:
            first.extend(deal(table.deck, 2))
            return Transition(Phase.PLAYER_CARDS)
        if phase == Phase.PLAYER_CARDS:
            table.community.extend(deal(table.deck, 3))
            return Transition(Phase.FLOP)
        if phase == Phase.FLOP:
            table.community.extend(deal(table.deck, 1))
            return Transition(Phase.TURN)
        if phase == Phase.TURN:
            table.community.extend(deal(table.deck, 1))
            return Transition(Phase.RIVER)
        if phase == Phase.RIVER:
            second.extend(deal(table.deck, 2))
            return Transition(Phase.OPPONENT_CARDS)
        if phase == Phase.OPPONENT_CARDS:
            third.extend(deal(table.deck, 2))
            return Transition(Phase.RESOLUTION, self.settle(table))
        raise RuntimeError(f"Cannot advance three-way hold'em from {phase.value}")

    def settle(self, table: Table) -> Outcome:
        hands = [evaluate_hand(hand + table.community) for hand in table.hands]
        idx = determine_winner(hands)
        return Outcome.PUSH if idx is None else self.participants[idx]

    def describe(self, table: Table, winner: Outcome) -> str:
        if winner == Outcome.PUSH:
            keys = [evaluate_hand(hand + table.community).key for hand in table.hands]
            best = keys.index(max(keys))
            return "Split: " + short_hand_description(table.hands[best], table.community)
        return short_hand_description(self.hand(table, winner), table.community)


VARIANTS = {
    BlackjackVariant.name: BlackjackVariant,
    HoldemVariant.name: HoldemVariant,
    ThreeWayHoldemVariant.name: ThreeWayHoldemVariant,
}


def get_variant(name: str) -> Variant:
    try:
        return VARIANTS[name]()
    except KeyError:
        raise ValueError(f"Unknown variant: {name}") from None

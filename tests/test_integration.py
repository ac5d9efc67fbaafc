import asyncio
import json
import random

from oddscore.models import GameConfig, Outcome, Phase
from oddshost.server import ClientSession, MarketServer
from oddshost.worker import OddsWorker

from .helpers import force_odds


# Fake sockets so we can exercise async paths without opening real connections.
class DummyWebSocket:
    def __init__(self, incoming=None) -> None:
        self.sent: list[str] = []
        self.closed = False
        self.incoming = [json.dumps(item) if isinstance(item, dict) else item for item in (incoming or [])]

    async def send(self, message: str) -> None:
        self.sent.append(message)

    async def close(self, *args, **kwargs) -> None:
        self.closed = True

    async def recv(self) -> str:
        return self.incoming.pop(0)

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        if not self.incoming:
            raise StopAsyncIteration
        return self.incoming.pop(0)

    def messages(self, msg_type: str = None) -> list[dict]:
        decoded = [json.loads(raw) for raw in self.sent]
        if msg_type is None:
            return decoded
        return [item for item in decoded if item["type"] == msg_type]


def setup_server(variant: str = "holdem", seed: int = 11, **overrides):
    config = GameConfig(
        variant=variant,
        monte_carlo_simulations=150,
        pre_deal_simulations=300,
        resolution_delay_ms=10,
        certainty_advance_ms=10,
        card_deal_delay_ms=10,
        **overrides,
    )
    server = MarketServer(config, OddsWorker("inline", rng=random.Random(seed)), random.Random(seed))
    server.engine.start_round()
    return server


def attach(server: MarketServer, role: str = "trader") -> tuple[ClientSession, DummyWebSocket]:
    websocket = DummyWebSocket()
    session = ClientSession(websocket=websocket, role=role)
    server.sessions.add(session)
    return session, websocket


def test_place_bet_sends_event_and_broadcasts_state():
    async def scenario():
        server = setup_server()
        trader, trader_socket = attach(server)
        _, spectator_socket = attach(server, "spectator")

        await server._handle_action(trader, {"type": "action", "action": "PLACE_BET", "outcome": "player", "amount": 10})

        events = trader_socket.messages("event")
        assert events[-1]["event"] == "BET_PLACED"
        assert events[-1]["amount_paid"] == 10
        state = spectator_socket.messages("state")[-1]
        assert state["balance"] == 90
        assert state["positions"]["player"]["amount_paid"] == 10
        assert state["v"] == 1
        await server.stop()

    asyncio.run(scenario())


def test_spectators_are_read_only():
    async def scenario():
        server = setup_server()
        spectator, websocket = attach(server, "spectator")
        await server._handle_action(spectator, {"type": "action", "action": "PLACE_BET", "outcome": "player"})
        assert websocket.messages("error")[-1]["code"] == "READ_ONLY"
        assert server.engine.balance == 100
        await server.stop()

    asyncio.run(scenario())


def test_unknown_action_and_bad_amount_are_invalid():
    async def scenario():
        server = setup_server()
        trader, websocket = attach(server)
        await server._handle_action(trader, {"type": "action", "action": "DOUBLE_DOWN"})
        await server._handle_action(trader, {"type": "action", "action": "PLACE_BET", "outcome": "player", "amount": "ten"})
        await server._handle_action(trader, {"type": "action", "action": "PLACE_BET", "outcome": "martian", "amount": 5})
        errors = websocket.messages("error")
        assert [error["code"] for error in errors] == ["INVALID_ACTION"] * 3
        await server.stop()

    asyncio.run(scenario())


def test_locked_market_rejects_bets_with_market_locked():
    async def scenario():
        server = setup_server()
        trader, websocket = attach(server)
        force_odds(server.engine, {Outcome.PLAYER: 0, Outcome.DEALER: 100, Outcome.PUSH: 0})
        await server._handle_action(trader, {"type": "action", "action": "PLACE_BET", "outcome": "dealer", "amount": 5})
        assert websocket.messages("error")[-1]["code"] == "MARKET_LOCKED"
        await server.stop()

    asyncio.run(scenario())


def test_advance_deals_and_installs_odds():
    async def scenario():
        server = setup_server()
        _, websocket = attach(server)
        assert await server.advance() is True
        ctx = server.engine.round
        assert ctx.phase == Phase.PLAYER_CARDS
        assert ctx.pending_key is None
        assert ctx.timer == server.config.prediction_window
        state = websocket.messages("state")[-1]
        assert state["phase"] == "PLAYER_CARDS"
        assert len(state["hands"]["player"]) == 2
        assert state["odds_pending"] is False
        await server.stop()

    asyncio.run(scenario())


def test_new_round_only_after_resolution():
    async def scenario():
        server = setup_server("blackjack")
        trader, websocket = attach(server)
        await server._handle_action(trader, {"type": "action", "action": "NEW_ROUND"})
        assert websocket.messages("error")[-1]["msg"] == "Round still in progress"

        while server.engine.round.phase != Phase.RESOLUTION:
            await server.advance()
        resolved = [item for item in websocket.messages("event") if item["event"] == "ROUND_RESOLVED"]
        assert resolved and resolved[-1]["winner"] in ("player", "dealer", "push")

        await server._handle_action(trader, {"type": "action", "action": "NEW_ROUND"})
        assert server.engine.round_number == 2
        assert server.engine.round.phase == Phase.PRE_DEAL
        started = [item for item in websocket.messages("event") if item["event"] == "ROUND_STARTED"]
        assert started[-1]["round"] == 2
        await server.stop()

    asyncio.run(scenario())


def test_connection_rejects_bad_hello():
    async def scenario():
        server = setup_server()
        websocket = DummyWebSocket([{"type": "join", "role": "trader"}])
        await server._handle_connection(websocket)
        assert websocket.messages("error")[-1]["code"] == "BAD_HELLO"
        assert websocket.closed
        assert not server.sessions
        await server.stop()

    asyncio.run(scenario())


def test_connection_flow_welcome_state_and_actions():
    async def scenario():
        server = setup_server()
        websocket = DummyWebSocket(
            [
                {"type": "hello", "role": "Trader"},
                {"type": "action", "action": "SELECT_AMOUNT", "amount": 25},
                {"type": "action", "action": "PLACE_BET", "outcome": "dealer"},
                "not json",
            ]
        )
        await server._handle_connection(websocket)

        messages = websocket.messages()
        assert messages[0]["type"] == "welcome"
        assert messages[0]["role"] == "trader"
        assert messages[0]["outcomes"] == ["player", "dealer", "push"]
        assert messages[1]["type"] == "state"
        events = [item["event"] for item in websocket.messages("event")]
        assert events == ["AMOUNT_SELECTED", "BET_PLACED"]
        assert websocket.messages("error")[-1]["code"] == "UNKNOWN_TYPE"
        assert server.engine.balance == 75
        assert not server.sessions
        await server.stop()

    asyncio.run(scenario())


class FailingWorker:
    async def compute(self, request):
        raise RuntimeError("worker died")

    def shutdown(self) -> None:
        pass


def test_failed_odds_computation_does_not_wedge_the_round():
    async def scenario():
        config = GameConfig(variant="holdem", pre_deal_simulations=300)
        server = MarketServer(config, FailingWorker(), random.Random(3))
        server.engine.start_round()
        _, websocket = attach(server)

        assert await server.advance() is True
        ctx = server.engine.round
        assert ctx.phase == Phase.PLAYER_CARDS
        assert ctx.pending_key is None
        assert ctx.timer == config.prediction_window
        assert websocket.messages("state")[-1]["odds_pending"] is False

        assert await server.advance() is True
        assert ctx.phase == Phase.FLOP
        await server.stop()

    asyncio.run(scenario())


def test_ticker_survives_a_failing_advance(caplog):
    async def scenario():
        server = setup_server(countdown_requires_bet=False, prediction_window=1)

        async def broken_advance():
            raise RuntimeError("Not enough cards left in deck")

        server.advance = broken_advance
        await server._tick_once()
        assert server.engine.round.timer == 0
        await server._tick_once()
        await server.stop()

    asyncio.run(scenario())
    assert "Timed advance failed" in caplog.text


def test_non_finite_amount_is_invalid():
    async def scenario():
        server = setup_server()
        trader, websocket = attach(server)
        await server._handle_action(
            trader, {"type": "action", "action": "PLACE_BET", "outcome": "player", "amount": float("nan")}
        )
        await server._handle_action(trader, {"type": "action", "action": "SELECT_AMOUNT", "amount": float("inf")})
        errors = websocket.messages("error")
        assert [error["code"] for error in errors] == ["INVALID_ACTION"] * 2
        assert errors[0]["msg"] == "amount must be a finite number"
        assert server.engine.balance == 100
        assert not server.engine.round.market.has_positions()
        await server.stop()

    asyncio.run(scenario())


def test_dealer_cards_auto_advance_to_resolution():
    async def scenario():
        server = setup_server(seed=4)
        _, websocket = attach(server)
        while server.engine.round.phase != Phase.DEALER_CARDS:
            await server.advance()
        assert server.engine.round.auto_advance
        assert len(websocket.messages("state")[-1]["hands"]["dealer"]) == 2

        await asyncio.sleep(0.05)
        resolved = [item for item in websocket.messages("event") if item["event"] == "ROUND_RESOLVED"]
        assert len(resolved) == 1
        await server.stop()

    asyncio.run(scenario())

from __future__ import annotations

import asyncio
import json
import logging
import math
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Dict, Optional, Set

import websockets
from websockets.asyncio.server import ServerConnection, serve

from oddscore.game import GameEngine
from oddscore.models import GameConfig, Phase
from oddscore.odds import OddsRequest

from .worker import OddsWorker

LOGGER = logging.getLogger("odds_host")

ROLES = ("trader", "spectator")
ACTIONS = ("PLACE_BET", "SELL", "SELECT_AMOUNT", "ADVANCE", "NEW_ROUND")

# MarketServer owns the clocks (countdown, crowd bets, auto-advance, next
# round) and the sockets. Every engine mutation happens under self.lock.


@dataclass(eq=False)
class ClientSession:
    websocket: Any
    role: str

    @property
    def can_trade(self) -> bool:
        return self.role == "trader"


class MarketServer:
    def __init__(
        self,
        config: Optional[GameConfig] = None,
        worker: Optional[OddsWorker] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.config = config or GameConfig()
        self.rng = rng or random.Random()
        self.engine = GameEngine(self.config, self.rng)
        self.worker = worker or OddsWorker()
        self.lock = asyncio.Lock()
        self.sessions: Set[ClientSession] = set()
        self._loops: Set[asyncio.Task] = set()
        self._round_tasks: Set[asyncio.Task] = set()

    # Lifecycle --------------------------------------------------

    async def start(self, host: str = "0.0.0.0", port: int = 8765) -> None:
        await self.open()
        try:
            async with serve(self._handle_connection, host, port):
                LOGGER.info("Market host listening on %s:%s (%s)", host, port, self.config.variant)
                await asyncio.Future()
        finally:
            await self.stop()

    async def open(self) -> None:
        async with self.lock:
            if self.engine.round is None:
                self.engine.start_round()
        self._loops.add(asyncio.create_task(self._ticker_loop()))
        self._loops.add(asyncio.create_task(self._crowd_loop()))

    async def stop(self) -> None:
        tasks = list(self._loops) + list(self._round_tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._loops.clear()
        self._round_tasks.clear()
        self.worker.shutdown()
        LOGGER.info("Market host stopped")

    def _spawn(self, coro: Awaitable[None]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._round_tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._round_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error("Round task failed", exc_info=exc)

    def _cancel_round_tasks(self) -> None:
        current = asyncio.current_task()
        for task in list(self._round_tasks):
            if task is not current:
                task.cancel()

    # Clocks --------------------------------------------------

    async def _ticker_loop(self) -> None:
        while True:
            await asyncio.sleep(1)
            await self._tick_once()

    async def _tick_once(self) -> None:
        async with self.lock:
            ctx = self.engine.round
            before = ctx.timer if ctx else None
            expired = self.engine.tick()
            changed = ctx is not None and ctx.timer != before
        if changed:
            await self._broadcast_state()
        if not expired:
            return
        try:
            await self.advance()
        except Exception:
            LOGGER.exception("Timed advance failed")

    async def _crowd_loop(self) -> None:
        config = self.config
        while True:
            delay_ms = self.rng.uniform(config.crowd_bet_delay_min_ms, config.crowd_bet_delay_max_ms)
            await asyncio.sleep(delay_ms / 1000)
            async with self.lock:
                placed = self.engine.simulate_crowd_bet()
            if placed:
                await self._broadcast_state()

    async def _auto_advance(self, key: int, delay_ms: int) -> None:
        await asyncio.sleep(delay_ms / 1000)
        if self.engine.odds_key == key:
            await self.advance()

    async def _next_round_later(self) -> None:
        await asyncio.sleep(self.config.resolution_delay_ms / 1000)
        await self.new_round()

    # Round flow --------------------------------------------------

    async def advance(self) -> bool:
        """Deal the next phase and install its odds. False if nothing could be dealt."""
        async with self.lock:
            ctx = self.engine.round
            if ctx is None or ctx.phase == Phase.RESOLUTION or ctx.pending_key is not None:
                return False
            request = self.engine.advance_phase()
            resolved = request is None
            result_payload = self._resolution_payload_locked() if resolved else None
        await self._broadcast_state()

        if request is None:
            if result_payload is not None:
                await self._broadcast("event", result_payload)
            self._spawn(self._next_round_later())
            return True

        await self._run_odds(request)
        return True

    async def _run_odds(self, request: OddsRequest) -> None:
        try:
            odds = await self.worker.compute(request)
        except Exception:
            LOGGER.exception("Odds computation failed for %s (key %s)", request.phase.value, request.key)
            async with self.lock:
                abandoned = self.engine.abandon_odds(request.key)
            if abandoned:
                await self._broadcast_state()
            return
        async with self.lock:
            applied = self.engine.apply_odds(request.key, odds)
            auto = applied and self.engine.round is not None and self.engine.round.auto_advance
            delay_ms = self.engine.auto_advance_delay_ms() if auto else 0
        if not applied:
            return
        await self._broadcast_state()
        if auto:
            self._spawn(self._auto_advance(request.key, delay_ms))

    async def new_round(self) -> None:
        self._cancel_round_tasks()
        async with self.lock:
            self.engine.next_round()
            round_number = self.engine.round_number
        LOGGER.info("Round %s open", round_number)
        await self._broadcast("event", {"event": "ROUND_STARTED", "round": round_number})
        await self._broadcast_state()

    def _resolution_payload_locked(self) -> Dict[str, object]:
        ctx = self.engine.round
        last = self.engine.round_history[-1] if self.engine.round_history else None
        return {
            "event": "ROUND_RESOLVED",
            "round": self.engine.round_number,
            "winner": ctx.result.value if ctx and ctx.result else None,
            "hand_description": last.hand_description if last else None,
            "round_profit": ctx.profit if ctx else None,
            "balance": self.engine.balance,
        }

    # Connections --------------------------------------------------

    async def _handle_connection(self, websocket: ServerConnection) -> None:
        hello = await self._read_message(websocket)
        if hello is None or hello.get("type") != "hello":
            await self._send_error(websocket, code="BAD_HELLO", msg="Expected hello")
            await websocket.close()
            return
        role_raw = hello.get("role") or "trader"
        role = role_raw.strip().casefold() if isinstance(role_raw, str) else ""
        if role not in ROLES:
            await self._send_error(websocket, code="BAD_HELLO", msg="role must be trader or spectator")
            await websocket.close()
            return

        session = ClientSession(websocket=websocket, role=role)
        self.sessions.add(session)
        LOGGER.info("%s connected", role.capitalize())
        await self._send_json(websocket, "welcome", self._welcome_payload(role))
        async with self.lock:
            snapshot = self.engine.snapshot() if self.engine.round else None
        if snapshot is not None:
            await self._send_json(websocket, "state", snapshot)

        try:
            async for raw in websocket:
                message = self._decode(raw)
                if message.get("type") == "action":
                    await self._handle_action(session, message)
                else:
                    await self._send_error(websocket, code="UNKNOWN_TYPE", msg="Unsupported message type")
        except websockets.ConnectionClosed:
            pass
        finally:
            self.sessions.discard(session)
            LOGGER.info("%s disconnected", role.capitalize())

    def _welcome_payload(self, role: str) -> Dict[str, object]:
        config = self.config
        return {
            "role": role,
            "variant": config.variant,
            "outcomes": [outcome.value for outcome in self.engine.outcomes],
            "config": {
                "prediction_window": config.prediction_window,
                "bet_lock_seconds": config.bet_lock_seconds,
                "platform_fee": config.platform_fee,
                "quick_bet_amounts": list(config.quick_bet_amounts),
                "max_bet_amount": config.max_bet_amount,
            },
        }

    async def _handle_action(self, session: ClientSession, message: Dict[str, object]) -> None:
        websocket = session.websocket
        if not session.can_trade:
            await self._send_error(websocket, code="READ_ONLY", msg="Spectators are read-only")
            return

        action = message.get("action")
        outcome = message.get("outcome")
        amount = message.get("amount")
        if action not in ACTIONS:
            await self._send_error(websocket, code="INVALID_ACTION", msg="Unknown action")
            return
        if amount is not None and (isinstance(amount, bool) or not isinstance(amount, (int, float))):
            await self._send_error(websocket, code="INVALID_ACTION", msg="amount must be a number")
            return
        if isinstance(amount, float) and not math.isfinite(amount):
            await self._send_error(websocket, code="INVALID_ACTION", msg="amount must be a finite number")
            return

        if action == "ADVANCE":
            try:
                advanced = await self.advance()
            except RuntimeError as exc:
                await self._send_error(websocket, code="INVALID_ACTION", msg=str(exc))
                return
            if not advanced:
                await self._send_error(websocket, code="INVALID_ACTION", msg="Nothing to advance")
            return
        if action == "NEW_ROUND":
            ctx = self.engine.round
            if ctx is not None and ctx.phase != Phase.RESOLUTION:
                await self._send_error(websocket, code="INVALID_ACTION", msg="Round still in progress")
                return
            await self.new_round()
            return

        try:
            async with self.lock:
                if action == "PLACE_BET":
                    position = self.engine.place_bet(outcome, amount)
                    result: Dict[str, object] = {"event": "BET_PLACED", "outcome": outcome, **position.as_dict()}
                elif action == "SELL":
                    cash_out = self.engine.sell_position(outcome)
                    result = {"event": "POSITION_SOLD", "outcome": outcome, "cash_out": cash_out}
                else:
                    if amount is None:
                        raise ValueError("amount required")
                    selected = self.engine.select_bet_amount(amount)
                    result = {"event": "AMOUNT_SELECTED", "amount": selected}
        except ValueError as exc:
            code = "MARKET_LOCKED" if str(exc) == "MARKET_LOCKED" else "INVALID_ACTION"
            LOGGER.warning("Rejected action=%s outcome=%s amount=%s reason=%s", action, outcome, amount, exc)
            await self._send_error(websocket, code=code, msg=str(exc))
            return
        except RuntimeError as exc:
            await self._send_error(websocket, code="INVALID_ACTION", msg=str(exc))
            return

        LOGGER.debug("Applied action=%s outcome=%s amount=%s", action, outcome, amount)
        await self._send_json(websocket, "event", result)
        await self._broadcast_state()

    # Messaging --------------------------------------------------

    async def _broadcast_state(self) -> None:
        async with self.lock:
            if self.engine.round is None:
                return
            snapshot = self.engine.snapshot()
        await self._broadcast("state", snapshot)

    async def _broadcast(self, msg_type: str, payload: Dict[str, object]) -> None:
        for session in list(self.sessions):
            await self._send_json(session.websocket, msg_type, payload)

    async def _send_json(self, websocket: Any, msg_type: str, payload: Dict[str, object]) -> None:
        try:
            await websocket.send(self._envelope(msg_type, payload))
        except websockets.ConnectionClosed:
            pass

    async def _send_error(self, websocket: Any, code: str, msg: str) -> None:
        await self._send_json(websocket, "error", {"code": code, "msg": msg})

    def _envelope(self, msg_type: str, payload: Dict[str, object]) -> str:
        body = {"type": msg_type, "v": 1, "ts": datetime.now(timezone.utc).isoformat()}
        body.update(payload)
        return json.dumps(body)

    async def _read_message(self, websocket: Any) -> Optional[Dict[str, object]]:
        try:
            raw = await asyncio.wait_for(websocket.recv(), timeout=5)
        except (asyncio.TimeoutError, websockets.ConnectionClosed):
            return None
        return self._decode(raw)

    def _decode(self, raw: Any) -> Dict[str, object]:
        try:
            message = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            return {}
        return message if isinstance(message, dict) else {}

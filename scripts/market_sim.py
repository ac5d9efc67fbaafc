#!/usr/bin/env python3
"""Simulate a short market session with a scripted trader.

This script spins up the market host in-process and connects one trader bot
plus a spectator. The trader buys whichever outcome it likes each phase,
sometimes sells, and advances phases itself so rounds finish quickly.

Example:
    python scripts/market_sim.py --variant blackjack --rounds 5
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import random
from typing import Any, Dict, Optional

import websockets

from oddscore.models import GameConfig
from oddshost.server import MarketServer
from oddshost.worker import OddsWorker

LOGGER = logging.getLogger("market_sim")


def choose_trade(state: Dict[str, Any], rng: random.Random) -> Optional[Dict[str, Any]]:
    """Pick a bet, a sale, or nothing, from a state snapshot."""
    if state.get("market_locked") or state.get("bets_locked") or state.get("odds_pending"):
        return None
    odds = state.get("true_odds", {})
    positions = state.get("positions", {})

    held = [outcome for outcome, summary in positions.items() if summary.get("shares")]
    for outcome in held:
        summary = positions[outcome]
        # Take profit once the mark is well above cost.
        if summary.get("unrealized_pnl", 0) > summary.get("amount_paid", 0) * 0.5 and rng.random() < 0.5:
            return {"action": "SELL", "outcome": outcome}

    live = {outcome: price for outcome, price in odds.items() if 0 < price < 100}
    if not live or state.get("balance", 0) < 5:
        return None
    if rng.random() < 0.4:
        return None
    # Mostly back the favourite, occasionally take a long shot.
    if rng.random() < 0.7:
        outcome = max(live, key=live.get)
    else:
        outcome = rng.choice(sorted(live))
    amount = min(state.get("balance", 0), rng.choice([5, 10, 25]))
    return {"action": "PLACE_BET", "outcome": outcome, "amount": amount}


async def run_trader(url: str, rng: random.Random, rounds: int, stop_event: asyncio.Event) -> None:
    """Trade until ``rounds`` rounds have resolved."""
    resolved = 0
    last_phase: Optional[str] = None
    try:
        async with websockets.connect(url) as ws:
            await ws.send(json.dumps({"type": "hello", "v": 1, "role": "trader"}))
            while not stop_event.is_set():
                try:
                    raw = await asyncio.wait_for(ws.recv(), timeout=1.0)
                except asyncio.TimeoutError:
                    continue
                except websockets.ConnectionClosed:
                    break

                message = json.loads(raw)
                msg_type = message.get("type")

                if msg_type == "state":
                    phase = message.get("phase")
                    if phase == last_phase or phase == "RESOLUTION":
                        continue
                    last_phase = phase
                    trade = choose_trade(message, rng)
                    if trade is not None:
                        await ws.send(json.dumps({"type": "action", "v": 1, **trade}))
                    if rng.random() < 0.5 and not message.get("odds_pending"):
                        await ws.send(json.dumps({"type": "action", "v": 1, "action": "ADVANCE"}))

                elif msg_type == "event" and message.get("event") == "ROUND_RESOLVED":
                    resolved += 1
                    last_phase = None
                    LOGGER.info(
                        "Round %s: %s (%s) profit=%.2f balance=%.2f",
                        message.get("round"),
                        message.get("winner"),
                        message.get("hand_description"),
                        message.get("round_profit") or 0.0,
                        message.get("balance") or 0.0,
                    )
                    if resolved >= rounds:
                        stop_event.set()
                        break

                elif msg_type == "error":
                    LOGGER.debug("Trader error %s: %s", message.get("code"), message.get("msg"))

    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Trader crashed: %s", exc)
        stop_event.set()


async def run_spectator(url: str, stop_event: asyncio.Event) -> None:
    with contextlib.suppress(websockets.ConnectionClosed, OSError):
        async with websockets.connect(url) as ws:
            await ws.send(json.dumps({"type": "hello", "v": 1, "role": "spectator"}))
            states = 0
            while not stop_event.is_set():
                try:
                    raw = await asyncio.wait_for(ws.recv(), timeout=1.0)
                except asyncio.TimeoutError:
                    continue
                if json.loads(raw).get("type") == "state":
                    states += 1
            LOGGER.info("Spectator saw %s state updates", states)


async def run_simulation(args: argparse.Namespace) -> None:
    config = GameConfig(
        variant=args.variant,
        prediction_window=args.window,
        resolution_delay_ms=args.resolution_delay,
        monte_carlo_simulations=args.simulations,
    )
    rng = random.Random(args.seed)
    host = MarketServer(config, worker=OddsWorker(args.worker, rng=random.Random(args.seed + 1)), rng=rng)

    server_task = asyncio.create_task(host.start(args.host, args.port))
    await asyncio.sleep(0.5)  # give the socket time to bind

    stop_event = asyncio.Event()
    url = f"ws://{args.host}:{args.port}"
    tasks = [
        asyncio.create_task(run_trader(url, random.Random(args.seed + 2), args.rounds, stop_event)),
        asyncio.create_task(run_spectator(url, stop_event)),
    ]

    try:
        await asyncio.wait_for(stop_event.wait(), timeout=args.timeout)
    except asyncio.TimeoutError:
        LOGGER.warning("Simulation timed out; stopping")
    finally:
        stop_event.set()
        with contextlib.suppress(asyncio.CancelledError):
            await asyncio.gather(*tasks, return_exceptions=True)
        server_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await server_task
    LOGGER.info("Final balance %.2f after %s rounds", host.engine.balance, len(host.engine.round_history))


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a local market session with a scripted trader")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=9002)
    parser.add_argument("--variant", choices=["blackjack", "holdem", "holdem3"], default="holdem")
    parser.add_argument("--rounds", type=int, default=3)
    parser.add_argument("--window", type=int, default=3, help="prediction window in seconds")
    parser.add_argument("--resolution-delay", type=int, default=1_000, help="milliseconds before the next round")
    parser.add_argument("--simulations", type=int, default=500)
    parser.add_argument("--worker", choices=["process", "thread", "inline"], default="thread")
    parser.add_argument("--timeout", type=float, default=120.0, help="max seconds to run before stopping")
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--log-level", default="INFO")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))
    try:
        asyncio.run(run_simulation(args))
    except KeyboardInterrupt:
        LOGGER.info("Simulation interrupted; shutting down")


if __name__ == "__main__":
    main()

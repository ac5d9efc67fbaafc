import argparse
import asyncio
import logging
import random

from oddscore.models import GameConfig, PricingModel
from oddscore.variants import VARIANTS

from .server import MarketServer
from .worker import MODES, OddsWorker


def main() -> None:
    # CLI doubles as documentation for the common market toggles.
    parser = argparse.ArgumentParser(description="Card odds market host server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8765)
    parser.add_argument("--variant", choices=sorted(VARIANTS), default="holdem")
    parser.add_argument("--prediction-window", type=int, default=15, help="Seconds of trading per phase")
    parser.add_argument("--initial-balance", type=float, default=100.0)
    parser.add_argument("--simulations", type=int, default=500, help="Monte-Carlo trials per odds update")
    parser.add_argument(
        "--exact-limit",
        type=int,
        default=1_100_000,
        help="Largest completion count that is enumerated exactly instead of sampled",
    )
    parser.add_argument(
        "--always-count-down",
        action="store_true",
        help="Run the phase countdown even when nobody holds a position",
    )
    parser.add_argument(
        "--pricing-model",
        choices=[model.value for model in PricingModel],
        default=PricingModel.TRUE_ODDS.value,
    )
    parser.add_argument("--worker", choices=MODES, default="process", help="Where odds are computed")
    parser.add_argument("--seed", type=int, default=None, help="Seed for a reproducible session")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args()

    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))

    config = GameConfig(
        variant=args.variant,
        prediction_window=args.prediction_window,
        initial_balance=args.initial_balance,
        monte_carlo_simulations=args.simulations,
        exact_enumeration_limit=args.exact_limit,
        countdown_requires_bet=not args.always_count_down,
        pricing_model=PricingModel(args.pricing_model),
    )
    rng = random.Random(args.seed)
    worker = OddsWorker(args.worker, rng=random.Random(rng.getrandbits(32)))
    server = MarketServer(config, worker=worker, rng=rng)
    try:
        asyncio.run(server.start(host=args.host, port=args.port))
    except KeyboardInterrupt:
        logging.getLogger("odds_host").info("Interrupted")


if __name__ == "__main__":
    main()

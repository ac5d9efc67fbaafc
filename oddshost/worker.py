from __future__ import annotations

import asyncio
import logging
import random
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor
from typing import Optional

from oddscore.models import TrueOdds
from oddscore.odds import OddsRequest, compute_odds

LOGGER = logging.getLogger("odds_host")

MODES = ("process", "thread", "inline")


class OddsWorker:
    """Runs compute_odds off the event loop.

    Each request gets its own integer seed so results are reproducible for a
    seeded host no matter which process picks the job up.
    """

    def __init__(self, mode: str = "process", max_workers: Optional[int] = None, rng: Optional[random.Random] = None) -> None:
        if mode not in MODES:
            raise ValueError(f"Unknown worker mode {mode!r}")
        self.mode = mode
        self.rng = rng or random.Random()
        self._executor: Optional[Executor] = None
        if mode == "process":
            self._executor = ProcessPoolExecutor(max_workers=max_workers)
        elif mode == "thread":
            self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="odds")

    async def compute(self, request: OddsRequest) -> TrueOdds:
        seed = self.rng.getrandbits(32)
        if self._executor is None:
            return compute_odds(request, seed)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, compute_odds, request, seed)

    def shutdown(self) -> None:
        if self._executor is not None:
            LOGGER.debug("Shutting down %s odds worker", self.mode)
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

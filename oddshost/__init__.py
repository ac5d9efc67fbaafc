"""Market host package: wraps the odds game engine with timers and networking."""

from .server import MarketServer
from .worker import OddsWorker

__all__ = ["MarketServer", "OddsWorker"]

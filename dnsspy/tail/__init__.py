"""
Tailing engine: pacing, deduplication, filtering and the polling state machine
"""

from .cursor import Cursor
from .dedup import Deduplicator
from .engine import TailEngine, TailState, TailStats
from .filters import MatchFilter, matches
from .rate_limiter import TickerRateLimiter

__all__ = [
    'Cursor',
    'Deduplicator',
    'MatchFilter',
    'TailEngine',
    'TailState',
    'TailStats',
    'TickerRateLimiter',
    'matches',
]

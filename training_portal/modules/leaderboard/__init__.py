"""
Leaderboard module package exports.
"""

from .aggregator import LeaderboardAggregator
from .model import EarningsEntry, LeaderboardEntry

__all__ = [
    "LeaderboardAggregator",
    "EarningsEntry",
    "LeaderboardEntry",
]

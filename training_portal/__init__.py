"""Training portal client core: sessions and roles, quiz scoring, earnings leaderboard."""

__version__ = "0.1.0"

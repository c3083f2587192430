# database/repositories/__init__.py
"""
Repository layer public API.

Usage:
    from training_portal.database.repositories import (
        # Profiles
        ProfilesRepo, UserProfile,
        # Quiz attempts (append-only)
        QuizAttemptsRepo, QuizAttempt,
        # Leaderboard earnings
        EarningsRepo, EarningsEntry,
    )
"""

# ---------------- Profiles -----------------
from .profiles_repo import ProfilesRepo, UserProfile

# -------------- Quiz attempts --------------
from .quiz_attempts_repo import QuizAttemptsRepo, QuizAttempt

# ---------------- Earnings -----------------
from .earnings_repo import EarningsRepo, EarningsEntry

__all__ = [
    # profiles_repo
    "ProfilesRepo",
    "UserProfile",
    # quiz_attempts_repo
    "QuizAttemptsRepo",
    "QuizAttempt",
    # earnings_repo
    "EarningsRepo",
    "EarningsEntry",
]

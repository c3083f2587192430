"""
Quiz module package exports.
"""

from .engine import QuizEngine
from .model import QuizQuestion, QuizStatus, ScoreResult

__all__ = [
    "QuizEngine",
    "QuizQuestion",
    "QuizStatus",
    "ScoreResult",
]

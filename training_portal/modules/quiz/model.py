# training_portal/modules/quiz/model.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from ...database.repositories.quiz_attempts_repo import QuizAttempt


@dataclass(frozen=True)
class QuizQuestion:
    id: str
    question: str
    options: Sequence[str] = field(default_factory=tuple)
    correct_answer: str = ""

    @classmethod
    def from_mapping(cls, m: Mapping[str, Any]) -> "QuizQuestion":
        """
        Build from a dict as found in a question-bank file. Accepts either
        `correct_answer` or `correctAnswer`.
        """
        correct = m.get("correct_answer", m.get("correctAnswer", ""))
        return cls(
            id=str(m["id"]),
            question=str(m.get("question", "")),
            options=tuple(m.get("options") or ()),
            correct_answer=str(correct),
        )


@dataclass(frozen=True)
class ScoreResult:
    score: int
    correct_count: int
    total_questions: int


@dataclass(frozen=True)
class QuizStatus:
    """What the trainee view needs: derived from the attempt log on every read."""
    last_attempt: QuizAttempt | None
    highest_score: int | None
    passed: bool
    threshold: int


__all__ = ["QuizQuestion", "ScoreResult", "QuizStatus", "QuizAttempt"]

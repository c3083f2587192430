# training_portal/modules/quiz/engine.py
from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional, Union

from ...constants import QUIZ_PASS_THRESHOLD
from ...database.record_store import RecordStore
from ...database.repositories.quiz_attempts_repo import QuizAttempt, QuizAttemptsRepo
from ...errors import InvariantViolation
from ...utils.helpers import utc_now_str
from .model import QuizQuestion, QuizStatus, ScoreResult

_log = logging.getLogger(__name__)

QuestionLike = Union[QuizQuestion, Mapping[str, Any]]


def _as_question(q: QuestionLike) -> QuizQuestion:
    return q if isinstance(q, QuizQuestion) else QuizQuestion.from_mapping(q)


def _normalize_answers(answers: Optional[Mapping[Any, str]]) -> dict[str, str]:
    # question ids are text once parsed (QuizQuestion.id), banks may use ints
    return {str(k): v for k, v in (answers or {}).items()}


def round_half_up_percent(correct: int, total: int) -> int:
    """round(100 * correct / total) with halves rounded up, in integer arithmetic."""
    return (200 * correct + total) // (2 * total)


def highest_score_of(attempts: Iterable[QuizAttempt]) -> Optional[int]:
    """Max score over an attempt log; None for an empty log."""
    scores = [a.score for a in attempts]
    return max(scores) if scores else None


def last_attempt_of(attempts: Iterable[QuizAttempt]) -> Optional[QuizAttempt]:
    """Latest attempt by created_at; later log position wins ties."""
    last = None
    for a in attempts:
        if last is None or (a.created_at or "") >= (last.created_at or ""):
            last = a
    return last


class QuizEngine:
    """
    Scores quiz submissions and keeps the append-only attempt log.

    Nothing derived is stored: highest score and last attempt are
    recomputed from the log on each read, so they cannot drift from it.
    Passing compares the *highest* score to `pass_threshold`, so a weak
    retake never revokes an earlier pass.
    """

    def __init__(self, store: RecordStore, *, pass_threshold: int = QUIZ_PASS_THRESHOLD) -> None:
        self.repo = QuizAttemptsRepo(store)
        self.pass_threshold = int(pass_threshold)

    # ------------------------------ scoring ------------------------------

    @staticmethod
    def score(answers: Mapping[str, str], question_bank: Iterable[QuestionLike]) -> ScoreResult:
        questions = [_as_question(q) for q in question_bank]
        if not questions:
            raise InvariantViolation("Cannot score a quiz with no questions.")
        answers = _normalize_answers(answers)
        correct = sum(1 for q in questions if answers.get(q.id) == q.correct_answer)
        total = len(questions)
        return ScoreResult(
            score=round_half_up_percent(correct, total),
            correct_count=correct,
            total_questions=total,
        )

    async def submit(self, user_id: str, answers: Mapping[str, str], question_bank: Iterable[QuestionLike]) -> QuizAttempt:
        """
        Score and append a new attempt. If the write fails the error is
        logged and the unsaved attempt (attempt_id=None, persisted=False)
        is returned so the user still sees a result.
        """
        result = self.score(answers, question_bank)
        created_at = utc_now_str()
        try:
            return await self.repo.append(
                user_id,
                result.score,
                result.correct_count,
                result.total_questions,
                _normalize_answers(answers),
                created_at,
            )
        except Exception:
            _log.exception("Error saving quiz attempt for %s (score %s)", user_id, result.score)
            return QuizAttempt(
                attempt_id=None,
                user_id=user_id,
                score=result.score,
                correct_count=result.correct_count,
                total_questions=result.total_questions,
                answers=_normalize_answers(answers),
                created_at=created_at,
                persisted=False,
            )

    # --------------------------- derived reads ---------------------------

    async def attempts(self, user_id: str) -> list[QuizAttempt]:
        return await self.repo.list_for_user(user_id)

    async def highest_score(self, user_id: str) -> Optional[int]:
        try:
            return highest_score_of(await self.repo.list_for_user(user_id))
        except Exception:
            _log.exception("Error fetching quiz attempts for %s", user_id)
            return None

    async def last_attempt(self, user_id: str) -> Optional[QuizAttempt]:
        try:
            return await self.repo.latest_for_user(user_id)
        except Exception:
            _log.exception("Error fetching last quiz attempt for %s", user_id)
            return None

    async def has_passed(self, user_id: str) -> bool:
        best = await self.highest_score(user_id)
        return best is not None and best >= self.pass_threshold

    async def highest_scores(self) -> dict[str, int]:
        """user_id -> best score, over every attempt in the log (admin overview)."""
        try:
            attempts = await self.repo.list_all()
        except Exception:
            _log.exception("Error fetching quiz attempts")
            return {}
        best: dict[str, int] = {}
        for a in attempts:
            if a.user_id not in best or a.score > best[a.user_id]:
                best[a.user_id] = a.score
        return best

    async def status(self, user_id: str) -> QuizStatus:
        """Last attempt, highest score and pass flag from a single read of the log."""
        try:
            log = await self.repo.list_for_user(user_id)
        except Exception:
            _log.exception("Error fetching quiz attempts for %s", user_id)
            log = []
        best = highest_score_of(log)
        return QuizStatus(
            last_attempt=last_attempt_of(log),
            highest_score=best,
            passed=best is not None and best >= self.pass_threshold,
            threshold=self.pass_threshold,
        )

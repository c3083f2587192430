# training_portal/database/repositories/quiz_attempts_repo.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from ...constants import REL_QUIZ_ATTEMPTS
from ..record_store import RecordStore


@dataclass(frozen=True)
class QuizAttempt:
    attempt_id: Optional[int]
    user_id: str
    score: int
    correct_count: int
    total_questions: int
    answers: Mapping[str, str] = field(default_factory=dict)
    created_at: Optional[str] = None
    # False when the row could not be written; the score is still valid
    persisted: bool = True

    @classmethod
    def from_row(cls, r: Mapping[str, Any]) -> "QuizAttempt":
        answers = r.get("answers") or {}
        return cls(
            attempt_id=r.get("id"),
            user_id=str(r["user_id"]),
            score=int(r["score"]),
            correct_count=int(r["correct_answers"]),
            total_questions=int(r["total_questions"]),
            answers=dict(answers) if isinstance(answers, Mapping) else {},
            created_at=r.get("created_at"),
        )


class QuizAttemptsRepo:
    """
    Append-only log of quiz submissions:
      quiz_attempts(id, user_id, score, correct_answers, total_questions, answers, created_at)

    There is no update or delete here on purpose; aggregates are computed
    by the callers from list_for_user()/list_all().
    """

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    async def append(
        self,
        user_id: str,
        score: int,
        correct_count: int,
        total_questions: int,
        answers: Mapping[str, str],
        created_at: str,
    ) -> QuizAttempt:
        r = await self.store.insert(
            REL_QUIZ_ATTEMPTS,
            {
                "user_id": user_id,
                "score": int(score),
                "correct_answers": int(correct_count),
                "total_questions": int(total_questions),
                "answers": dict(answers),
                "created_at": created_at,
            },
        )
        return QuizAttempt.from_row(r)

    async def list_for_user(self, user_id: str) -> list[QuizAttempt]:
        rows = await self.store.query_many(REL_QUIZ_ATTEMPTS, {"user_id": user_id}, order_by=["created_at"])
        return [QuizAttempt.from_row(r) for r in rows]

    async def latest_for_user(self, user_id: str) -> QuizAttempt | None:
        r = await self.store.query_one(
            REL_QUIZ_ATTEMPTS, {"user_id": user_id}, order_by=["-created_at", "-id"], limit=1
        )
        return QuizAttempt.from_row(r) if r else None

    async def list_all(self) -> list[QuizAttempt]:
        rows = await self.store.query_many(REL_QUIZ_ATTEMPTS)
        return [QuizAttempt.from_row(r) for r in rows]

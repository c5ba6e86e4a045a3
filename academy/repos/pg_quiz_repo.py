"""PostgreSQL implementation of QuizRepo."""

from __future__ import annotations

from collections.abc import Collection
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from academy.db.tables import QuizAttemptRow, QuizRow
from academy.models.assessment import Quiz, QuizAttempt


class PgQuizRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_quizzes(self, course_ids: Collection[UUID]) -> list[Quiz]:
        if not course_ids:
            return []
        stmt = select(QuizRow).where(QuizRow.course_id.in_(list(course_ids)))
        rows = (await self._session.execute(stmt)).scalars().all()
        return [
            Quiz(
                id=r.id,
                course_id=r.course_id,
                title=r.title,
                passing_score=r.passing_score,
                lesson_id=r.lesson_id,
            )
            for r in rows
        ]

    async def list_attempts(self, quiz_ids: Collection[UUID]) -> list[QuizAttempt]:
        if not quiz_ids:
            return []
        stmt = select(QuizAttemptRow).where(QuizAttemptRow.quiz_id.in_(list(quiz_ids)))
        rows = (await self._session.execute(stmt)).scalars().all()
        return [
            QuizAttempt(
                id=r.id,
                quiz_id=r.quiz_id,
                student_id=r.student_id,
                score=r.score,
                passed=r.passed,
                created_at=r.created_at,
            )
            for r in rows
        ]

    async def add_quiz(self, quiz: Quiz) -> None:
        self._session.add(
            QuizRow(
                id=quiz.id,
                course_id=quiz.course_id,
                lesson_id=quiz.lesson_id,
                title=quiz.title,
                passing_score=quiz.passing_score,
            )
        )
        await self._session.flush()

    async def add_attempt(self, attempt: QuizAttempt) -> None:
        self._session.add(
            QuizAttemptRow(
                id=attempt.id,
                quiz_id=attempt.quiz_id,
                student_id=attempt.student_id,
                score=attempt.score,
                passed=attempt.passed,
                created_at=attempt.created_at,
            )
        )
        await self._session.flush()

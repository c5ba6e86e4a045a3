from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Quiz:
    id: UUID
    course_id: UUID
    title: str
    passing_score: int = 70
    lesson_id: UUID | None = None

    @staticmethod
    def new(
        *,
        course_id: UUID,
        title: str,
        passing_score: int = 70,
        lesson_id: UUID | None = None,
    ) -> Quiz:
        return Quiz(
            id=uuid4(),
            course_id=course_id,
            title=title,
            passing_score=passing_score,
            lesson_id=lesson_id,
        )


@dataclass(frozen=True, slots=True)
class QuizAttempt:
    id: UUID
    quiz_id: UUID
    student_id: UUID
    score: float
    passed: bool
    created_at: datetime

    @staticmethod
    def new(
        *,
        quiz_id: UUID,
        student_id: UUID,
        score: float,
        passed: bool,
        created_at: datetime | None = None,
    ) -> QuizAttempt:
        return QuizAttempt(
            id=uuid4(),
            quiz_id=quiz_id,
            student_id=student_id,
            score=score,
            passed=passed,
            created_at=created_at or datetime.now(UTC),
        )

from __future__ import annotations

from collections.abc import Collection
from typing import Protocol
from uuid import UUID

from academy.models.assessment import Quiz, QuizAttempt


class QuizRepo(Protocol):
    async def list_quizzes(self, course_ids: Collection[UUID]) -> list[Quiz]: ...
    async def list_attempts(self, quiz_ids: Collection[UUID]) -> list[QuizAttempt]: ...
    async def add_quiz(self, quiz: Quiz) -> None: ...
    async def add_attempt(self, attempt: QuizAttempt) -> None: ...


class InMemoryQuizRepo:
    def __init__(self) -> None:
        self._quizzes: dict[UUID, Quiz] = {}
        self._attempts: dict[UUID, QuizAttempt] = {}

    async def list_quizzes(self, course_ids: Collection[UUID]) -> list[Quiz]:
        return [q for q in self._quizzes.values() if q.course_id in course_ids]

    async def list_attempts(self, quiz_ids: Collection[UUID]) -> list[QuizAttempt]:
        return [a for a in self._attempts.values() if a.quiz_id in quiz_ids]

    async def add_quiz(self, quiz: Quiz) -> None:
        self._quizzes[quiz.id] = quiz

    async def add_attempt(self, attempt: QuizAttempt) -> None:
        if attempt.quiz_id not in self._quizzes:
            raise KeyError("quiz not found")
        self._attempts[attempt.id] = attempt

"""Progress storage port.

Two row types live behind this port:

  CourseProgress: one per (student, course); doubles as the enrollment.
  LessonProgress: one per (student, lesson); carries completion and
                  watch-time facts.

Uniqueness of both keys is the store's job.  ``add`` and
``add_lesson_progress`` raise ConflictError when the key already exists,
so a caller that lost a create race can re-read instead of duplicating.
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import replace
from datetime import datetime
from typing import Protocol
from uuid import UUID

from academy.core.errors import ConflictError
from academy.models.progress import CourseProgress, LessonProgress


def zeroed(progress: CourseProgress, now: datetime) -> CourseProgress:
    """The CourseProgress row as it looks right after a reset."""
    return replace(
        progress,
        status="not_started",
        completion_percentage=0,
        completed_lessons=0,
        completed_at=None,
        certificate_earned=False,
        last_accessed_at=now,
    )


class ProgressRepo(Protocol):
    # --- course progress / enrollment rows ---
    async def get_by_id(self, progress_id: UUID) -> CourseProgress | None: ...
    async def get_course_progress(
        self, course_id: UUID, user_id: UUID
    ) -> CourseProgress | None: ...
    async def list_by_user(self, user_id: UUID) -> list[CourseProgress]: ...
    async def list_by_courses(
        self, course_ids: Collection[UUID]
    ) -> list[CourseProgress]: ...
    async def add(self, progress: CourseProgress) -> CourseProgress: ...
    async def update(self, progress: CourseProgress) -> CourseProgress: ...
    async def delete(self, progress_id: UUID) -> bool: ...

    # --- lesson progress rows ---
    async def get_lesson_progress(
        self, lesson_id: UUID, user_id: UUID
    ) -> LessonProgress | None: ...
    async def add_lesson_progress(self, progress: LessonProgress) -> LessonProgress: ...
    async def update_lesson_progress(
        self, progress: LessonProgress
    ) -> LessonProgress: ...
    async def list_lesson_progress(
        self, course_id: UUID, user_id: UUID
    ) -> list[LessonProgress]: ...
    async def list_lesson_progress_by_user(
        self, user_id: UUID
    ) -> list[LessonProgress]: ...
    async def list_lesson_progress_for_courses(
        self, course_ids: Collection[UUID], since: datetime | None = None
    ) -> list[LessonProgress]: ...

    # --- multi-row ---
    async def reset_course_progress(
        self, course_id: UUID, user_id: UUID, now: datetime
    ) -> CourseProgress | None: ...


class InMemoryProgressRepo:
    def __init__(self) -> None:
        self._courses: dict[tuple[UUID, UUID], CourseProgress] = {}
        self._lessons: dict[tuple[UUID, UUID], LessonProgress] = {}

    # --- course progress ---

    async def get_by_id(self, progress_id: UUID) -> CourseProgress | None:
        for p in self._courses.values():
            if p.id == progress_id:
                return p
        return None

    async def get_course_progress(
        self, course_id: UUID, user_id: UUID
    ) -> CourseProgress | None:
        return self._courses.get((user_id, course_id))

    async def list_by_user(self, user_id: UUID) -> list[CourseProgress]:
        rows = [p for p in self._courses.values() if p.student_id == user_id]
        return sorted(rows, key=lambda p: p.started_at, reverse=True)

    async def list_by_courses(
        self, course_ids: Collection[UUID]
    ) -> list[CourseProgress]:
        return [p for p in self._courses.values() if p.course_id in course_ids]

    async def add(self, progress: CourseProgress) -> CourseProgress:
        key = (progress.student_id, progress.course_id)
        if key in self._courses:
            raise ConflictError("course progress already exists")
        self._courses[key] = progress
        return progress

    async def update(self, progress: CourseProgress) -> CourseProgress:
        key = (progress.student_id, progress.course_id)
        if key not in self._courses:
            raise KeyError("course progress not found")
        self._courses[key] = progress
        return progress

    async def delete(self, progress_id: UUID) -> bool:
        for key, p in list(self._courses.items()):
            if p.id == progress_id:
                del self._courses[key]
                return True
        return False

    # --- lesson progress ---

    async def get_lesson_progress(
        self, lesson_id: UUID, user_id: UUID
    ) -> LessonProgress | None:
        return self._lessons.get((user_id, lesson_id))

    async def add_lesson_progress(self, progress: LessonProgress) -> LessonProgress:
        key = (progress.student_id, progress.lesson_id)
        if key in self._lessons:
            raise ConflictError("lesson progress already exists")
        self._lessons[key] = progress
        return progress

    async def update_lesson_progress(self, progress: LessonProgress) -> LessonProgress:
        key = (progress.student_id, progress.lesson_id)
        if key not in self._lessons:
            raise KeyError("lesson progress not found")
        self._lessons[key] = progress
        return progress

    async def list_lesson_progress(
        self, course_id: UUID, user_id: UUID
    ) -> list[LessonProgress]:
        return [
            lp
            for lp in self._lessons.values()
            if lp.student_id == user_id and lp.course_id == course_id
        ]

    async def list_lesson_progress_by_user(self, user_id: UUID) -> list[LessonProgress]:
        return [lp for lp in self._lessons.values() if lp.student_id == user_id]

    async def list_lesson_progress_for_courses(
        self, course_ids: Collection[UUID], since: datetime | None = None
    ) -> list[LessonProgress]:
        return [
            lp
            for lp in self._lessons.values()
            if lp.course_id in course_ids
            and (since is None or lp.updated_at >= since)
        ]

    # --- reset ---

    async def reset_course_progress(
        self, course_id: UUID, user_id: UUID, now: datetime
    ) -> CourseProgress | None:
        key = (user_id, course_id)
        progress = self._courses.get(key)
        if progress is None:
            return None
        for lesson_key, lp in list(self._lessons.items()):
            if lp.student_id == user_id and lp.course_id == course_id:
                del self._lessons[lesson_key]
        reset = zeroed(progress, now)
        self._courses[key] = reset
        return reset

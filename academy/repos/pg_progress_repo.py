"""PostgreSQL implementation of ProgressRepo.

Uniqueness of (student, course) and (student, lesson) is enforced by
the table constraints; a duplicate insert surfaces as ConflictError
after its SAVEPOINT is rolled back, leaving the request session usable.
"""

from __future__ import annotations

from collections.abc import Collection
from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from academy.core.errors import ConflictError
from academy.db.tables import CourseProgressRow, LessonProgressRow
from academy.models.progress import CourseProgress, LessonProgress
from academy.repos.progress_repo import zeroed


class PgProgressRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # --- course progress ---

    async def get_by_id(self, progress_id: UUID) -> CourseProgress | None:
        row = await self._session.get(CourseProgressRow, progress_id)
        return _row_to_course_progress(row) if row is not None else None

    async def get_course_progress(
        self, course_id: UUID, user_id: UUID
    ) -> CourseProgress | None:
        row = await self._course_row(course_id, user_id)
        return _row_to_course_progress(row) if row is not None else None

    async def list_by_user(self, user_id: UUID) -> list[CourseProgress]:
        stmt = (
            select(CourseProgressRow)
            .where(CourseProgressRow.student_id == user_id)
            .order_by(CourseProgressRow.started_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_course_progress(r) for r in rows]

    async def list_by_courses(
        self, course_ids: Collection[UUID]
    ) -> list[CourseProgress]:
        if not course_ids:
            return []
        stmt = select(CourseProgressRow).where(
            CourseProgressRow.course_id.in_(list(course_ids))
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_course_progress(r) for r in rows]

    async def add(self, progress: CourseProgress) -> CourseProgress:
        try:
            async with self._session.begin_nested():
                self._session.add(CourseProgressRow(**_course_values(progress)))
        except IntegrityError as exc:
            raise ConflictError("course progress already exists") from exc
        return progress

    async def update(self, progress: CourseProgress) -> CourseProgress:
        row = await self._session.get(CourseProgressRow, progress.id)
        if row is None:
            raise KeyError("course progress not found")
        for name, value in _course_values(progress).items():
            setattr(row, name, value)
        await self._session.flush()
        return progress

    async def delete(self, progress_id: UUID) -> bool:
        result = await self._session.execute(
            delete(CourseProgressRow).where(CourseProgressRow.id == progress_id)
        )
        return result.rowcount > 0

    # --- lesson progress ---

    async def get_lesson_progress(
        self, lesson_id: UUID, user_id: UUID
    ) -> LessonProgress | None:
        stmt = select(LessonProgressRow).where(
            LessonProgressRow.lesson_id == lesson_id,
            LessonProgressRow.student_id == user_id,
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_lesson_progress(row) if row is not None else None

    async def add_lesson_progress(self, progress: LessonProgress) -> LessonProgress:
        try:
            async with self._session.begin_nested():
                self._session.add(LessonProgressRow(**_lesson_values(progress)))
        except IntegrityError as exc:
            raise ConflictError("lesson progress already exists") from exc
        return progress

    async def update_lesson_progress(self, progress: LessonProgress) -> LessonProgress:
        row = await self._session.get(LessonProgressRow, progress.id)
        if row is None:
            raise KeyError("lesson progress not found")
        for name, value in _lesson_values(progress).items():
            setattr(row, name, value)
        await self._session.flush()
        return progress

    async def list_lesson_progress(
        self, course_id: UUID, user_id: UUID
    ) -> list[LessonProgress]:
        stmt = select(LessonProgressRow).where(
            LessonProgressRow.course_id == course_id,
            LessonProgressRow.student_id == user_id,
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_lesson_progress(r) for r in rows]

    async def list_lesson_progress_by_user(self, user_id: UUID) -> list[LessonProgress]:
        stmt = select(LessonProgressRow).where(LessonProgressRow.student_id == user_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_lesson_progress(r) for r in rows]

    async def list_lesson_progress_for_courses(
        self, course_ids: Collection[UUID], since: datetime | None = None
    ) -> list[LessonProgress]:
        if not course_ids:
            return []
        stmt = select(LessonProgressRow).where(
            LessonProgressRow.course_id.in_(list(course_ids))
        )
        if since is not None:
            stmt = stmt.where(LessonProgressRow.updated_at >= since)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_lesson_progress(r) for r in rows]

    # --- reset ---

    async def reset_course_progress(
        self, course_id: UUID, user_id: UUID, now: datetime
    ) -> CourseProgress | None:
        row = await self._course_row(course_id, user_id)
        if row is None:
            return None
        reset = zeroed(_row_to_course_progress(row), now)
        async with self._session.begin_nested():
            await self._session.execute(
                delete(LessonProgressRow).where(
                    LessonProgressRow.course_id == course_id,
                    LessonProgressRow.student_id == user_id,
                )
            )
            for name, value in _course_values(reset).items():
                setattr(row, name, value)
        return reset

    async def _course_row(
        self, course_id: UUID, user_id: UUID
    ) -> CourseProgressRow | None:
        stmt = select(CourseProgressRow).where(
            CourseProgressRow.course_id == course_id,
            CourseProgressRow.student_id == user_id,
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()


def _course_values(p: CourseProgress) -> dict[str, object]:
    return {
        "id": p.id,
        "student_id": p.student_id,
        "course_id": p.course_id,
        "status": p.status,
        "completion_percentage": p.completion_percentage,
        "completed_lessons": p.completed_lessons,
        "total_lessons": p.total_lessons,
        "started_at": p.started_at,
        "last_accessed_at": p.last_accessed_at,
        "completed_at": p.completed_at,
        "certificate_earned": p.certificate_earned,
    }


def _lesson_values(p: LessonProgress) -> dict[str, object]:
    return {
        "id": p.id,
        "student_id": p.student_id,
        "lesson_id": p.lesson_id,
        "course_id": p.course_id,
        "is_completed": p.is_completed,
        "completed_at": p.completed_at,
        "watch_time": p.watch_time,
        "last_position": p.last_position,
        "created_at": p.created_at,
        "updated_at": p.updated_at,
    }


def _row_to_course_progress(row: CourseProgressRow) -> CourseProgress:
    return CourseProgress(
        id=row.id,
        student_id=row.student_id,
        course_id=row.course_id,
        started_at=row.started_at,
        last_accessed_at=row.last_accessed_at,
        status=row.status,  # type: ignore[arg-type]
        completion_percentage=row.completion_percentage,
        completed_lessons=row.completed_lessons,
        total_lessons=row.total_lessons,
        completed_at=row.completed_at,
        certificate_earned=row.certificate_earned,
    )


def _row_to_lesson_progress(row: LessonProgressRow) -> LessonProgress:
    return LessonProgress(
        id=row.id,
        student_id=row.student_id,
        lesson_id=row.lesson_id,
        course_id=row.course_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
        is_completed=row.is_completed,
        completed_at=row.completed_at,
        watch_time=row.watch_time,
        last_position=row.last_position,
    )

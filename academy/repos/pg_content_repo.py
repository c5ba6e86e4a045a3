"""PostgreSQL implementation of ContentRepo.

Module and lesson ``order`` live in the ``position`` columns.  Reorders
run inside a SAVEPOINT: either every position is rewritten or, on any
failure, none is.
"""

from __future__ import annotations

from collections.abc import Collection, Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from academy.db.tables import CourseModuleRow, CourseRow, LessonRow
from academy.models.course import Course, CourseModule, Lesson
from academy.repos.content_repo import check_reorder_ids


class PgContentRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # --- courses ---

    async def get_course(self, course_id: UUID) -> Course | None:
        row = await self._session.get(CourseRow, course_id)
        return _row_to_course(row) if row is not None else None

    async def list_courses(self, instructor_id: UUID | None = None) -> list[Course]:
        stmt = select(CourseRow).order_by(CourseRow.created_at)
        if instructor_id is not None:
            stmt = stmt.where(CourseRow.instructor_id == instructor_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_course(r) for r in rows]

    async def list_courses_by_ids(self, course_ids: Collection[UUID]) -> list[Course]:
        if not course_ids:
            return []
        stmt = select(CourseRow).where(CourseRow.id.in_(list(course_ids)))
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_course(r) for r in rows]

    # --- modules ---

    async def get_module(self, module_id: UUID) -> CourseModule | None:
        row = await self._session.get(CourseModuleRow, module_id)
        return _row_to_module(row) if row is not None else None

    async def list_modules(self, course_id: UUID) -> list[CourseModule]:
        stmt = (
            select(CourseModuleRow)
            .where(CourseModuleRow.course_id == course_id)
            .order_by(CourseModuleRow.position)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_module(r) for r in rows]

    # --- lessons ---

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        row = await self._session.get(LessonRow, lesson_id)
        return _row_to_lesson(row) if row is not None else None

    async def list_lessons(self, course_id: UUID) -> list[Lesson]:
        return await self.list_lessons_for_courses({course_id})

    async def list_module_lessons(self, module_id: UUID) -> list[Lesson]:
        stmt = (
            select(LessonRow)
            .where(LessonRow.module_id == module_id)
            .order_by(LessonRow.position)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_lesson(r) for r in rows]

    async def list_lessons_for_courses(
        self, course_ids: Collection[UUID]
    ) -> list[Lesson]:
        if not course_ids:
            return []
        stmt = (
            select(LessonRow)
            .join(CourseModuleRow, LessonRow.module_id == CourseModuleRow.id)
            .where(LessonRow.course_id.in_(list(course_ids)))
            .order_by(CourseModuleRow.position, LessonRow.position)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_lesson(r) for r in rows]

    # --- writes ---

    async def add_course(self, course: Course) -> None:
        self._session.add(
            CourseRow(
                id=course.id,
                title=course.title,
                instructor_id=course.instructor_id,
                created_at=course.created_at,
            )
        )
        await self._session.flush()

    async def add_module(self, module: CourseModule) -> None:
        self._session.add(
            CourseModuleRow(
                id=module.id,
                course_id=module.course_id,
                title=module.title,
                position=module.order,
            )
        )
        await self._session.flush()

    async def add_lesson(self, lesson: Lesson) -> None:
        self._session.add(
            LessonRow(
                id=lesson.id,
                module_id=lesson.module_id,
                course_id=lesson.course_id,
                title=lesson.title,
                position=lesson.order,
                duration=lesson.duration,
            )
        )
        await self._session.flush()

    async def reorder_modules(
        self, course_id: UUID, ordered_module_ids: Sequence[UUID]
    ) -> None:
        stmt = select(CourseModuleRow.id).where(CourseModuleRow.course_id == course_id)
        current = (await self._session.execute(stmt)).scalars().all()
        check_reorder_ids(current, ordered_module_ids, "course")
        async with self._session.begin_nested():
            for index, module_id in enumerate(ordered_module_ids):
                await self._session.execute(
                    update(CourseModuleRow)
                    .where(CourseModuleRow.id == module_id)
                    .values(position=index + 1)
                )

    async def reorder_lessons(
        self, module_id: UUID, ordered_lesson_ids: Sequence[UUID]
    ) -> None:
        stmt = select(LessonRow.id).where(LessonRow.module_id == module_id)
        current = (await self._session.execute(stmt)).scalars().all()
        check_reorder_ids(current, ordered_lesson_ids, "module")
        async with self._session.begin_nested():
            for index, lesson_id in enumerate(ordered_lesson_ids):
                await self._session.execute(
                    update(LessonRow)
                    .where(LessonRow.id == lesson_id)
                    .values(position=index + 1)
                )


def _row_to_course(row: CourseRow) -> Course:
    return Course(
        id=row.id,
        title=row.title,
        instructor_id=row.instructor_id,
        created_at=row.created_at,
    )


def _row_to_module(row: CourseModuleRow) -> CourseModule:
    return CourseModule(
        id=row.id, course_id=row.course_id, title=row.title, order=row.position
    )


def _row_to_lesson(row: LessonRow) -> Lesson:
    return Lesson(
        id=row.id,
        module_id=row.module_id,
        course_id=row.course_id,
        title=row.title,
        order=row.position,
        duration=row.duration,
    )

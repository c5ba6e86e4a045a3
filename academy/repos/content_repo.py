"""Course structure port: courses, modules, lessons.

Read-only from the progress core's point of view, except for the two
reorder operations, which must apply every position or none.
"""

from __future__ import annotations

from collections.abc import Collection, Sequence
from dataclasses import replace
from typing import Protocol
from uuid import UUID

from academy.core.errors import ValidationError
from academy.models.course import Course, CourseModule, Lesson


class ContentRepo(Protocol):
    async def get_course(self, course_id: UUID) -> Course | None: ...
    async def list_courses(self, instructor_id: UUID | None = None) -> list[Course]: ...
    async def list_courses_by_ids(self, course_ids: Collection[UUID]) -> list[Course]: ...
    async def get_module(self, module_id: UUID) -> CourseModule | None: ...
    async def list_modules(self, course_id: UUID) -> list[CourseModule]: ...
    async def get_lesson(self, lesson_id: UUID) -> Lesson | None: ...
    async def list_lessons(self, course_id: UUID) -> list[Lesson]: ...
    async def list_module_lessons(self, module_id: UUID) -> list[Lesson]: ...
    async def list_lessons_for_courses(
        self, course_ids: Collection[UUID]
    ) -> list[Lesson]: ...
    async def add_course(self, course: Course) -> None: ...
    async def add_module(self, module: CourseModule) -> None: ...
    async def add_lesson(self, lesson: Lesson) -> None: ...
    async def reorder_modules(
        self, course_id: UUID, ordered_module_ids: Sequence[UUID]
    ) -> None: ...
    async def reorder_lessons(
        self, module_id: UUID, ordered_lesson_ids: Sequence[UUID]
    ) -> None: ...


def check_reorder_ids(
    current_ids: Collection[UUID], ordered_ids: Sequence[UUID], parent: str
) -> None:
    """Reject an ordering that is not exactly a permutation of current_ids."""
    if len(set(ordered_ids)) != len(ordered_ids):
        raise ValidationError(f"duplicate ids in {parent} ordering")
    unknown = set(ordered_ids) - set(current_ids)
    if unknown:
        raise ValidationError(
            f"ids do not belong to this {parent}",
            details={"unknown_ids": sorted(str(i) for i in unknown)},
        )
    missing = set(current_ids) - set(ordered_ids)
    if missing:
        raise ValidationError(
            f"ordering must list every child of this {parent}",
            details={"missing_ids": sorted(str(i) for i in missing)},
        )


class InMemoryContentRepo:
    def __init__(self) -> None:
        self._courses: dict[UUID, Course] = {}
        self._modules: dict[UUID, CourseModule] = {}
        self._lessons: dict[UUID, Lesson] = {}

    async def get_course(self, course_id: UUID) -> Course | None:
        return self._courses.get(course_id)

    async def list_courses(self, instructor_id: UUID | None = None) -> list[Course]:
        courses = [
            c
            for c in self._courses.values()
            if instructor_id is None or c.instructor_id == instructor_id
        ]
        return sorted(courses, key=lambda c: c.created_at)

    async def list_courses_by_ids(self, course_ids: Collection[UUID]) -> list[Course]:
        return [c for c in self._courses.values() if c.id in course_ids]

    async def get_module(self, module_id: UUID) -> CourseModule | None:
        return self._modules.get(module_id)

    async def list_modules(self, course_id: UUID) -> list[CourseModule]:
        modules = [m for m in self._modules.values() if m.course_id == course_id]
        return sorted(modules, key=lambda m: m.order)

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        return self._lessons.get(lesson_id)

    async def list_lessons(self, course_id: UUID) -> list[Lesson]:
        return await self.list_lessons_for_courses({course_id})

    async def list_module_lessons(self, module_id: UUID) -> list[Lesson]:
        lessons = [les for les in self._lessons.values() if les.module_id == module_id]
        return sorted(lessons, key=lambda les: les.order)

    async def list_lessons_for_courses(
        self, course_ids: Collection[UUID]
    ) -> list[Lesson]:
        lessons = [les for les in self._lessons.values() if les.course_id in course_ids]
        return sorted(lessons, key=self._course_order)

    async def add_course(self, course: Course) -> None:
        self._courses[course.id] = course

    async def add_module(self, module: CourseModule) -> None:
        if module.course_id not in self._courses:
            raise KeyError("course not found")
        self._modules[module.id] = module

    async def add_lesson(self, lesson: Lesson) -> None:
        module = self._modules.get(lesson.module_id)
        if module is None:
            raise KeyError("module not found")
        if module.course_id != lesson.course_id:
            raise ValueError("lesson course_id does not match its module")
        self._lessons[lesson.id] = lesson

    async def reorder_modules(
        self, course_id: UUID, ordered_module_ids: Sequence[UUID]
    ) -> None:
        current = [m.id for m in self._modules.values() if m.course_id == course_id]
        # Validate the whole list before touching any row
        check_reorder_ids(current, ordered_module_ids, "course")
        for index, module_id in enumerate(ordered_module_ids):
            self._modules[module_id] = replace(self._modules[module_id], order=index + 1)

    async def reorder_lessons(
        self, module_id: UUID, ordered_lesson_ids: Sequence[UUID]
    ) -> None:
        current = [les.id for les in self._lessons.values() if les.module_id == module_id]
        check_reorder_ids(current, ordered_lesson_ids, "module")
        for index, lesson_id in enumerate(ordered_lesson_ids):
            self._lessons[lesson_id] = replace(self._lessons[lesson_id], order=index + 1)

    def _course_order(self, lesson: Lesson) -> tuple[int, int]:
        module = self._modules.get(lesson.module_id)
        return (module.order if module else 0, lesson.order)

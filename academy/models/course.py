from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Course:
    id: UUID
    title: str
    instructor_id: UUID
    created_at: datetime

    @staticmethod
    def new(*, title: str, instructor_id: UUID) -> Course:
        return Course(
            id=uuid4(),
            title=title,
            instructor_id=instructor_id,
            created_at=datetime.now(UTC),
        )


@dataclass(frozen=True, slots=True)
class CourseModule:
    id: UUID
    course_id: UUID
    title: str
    order: int

    @staticmethod
    def new(*, course_id: UUID, title: str, order: int) -> CourseModule:
        return CourseModule(id=uuid4(), course_id=course_id, title=title, order=order)


@dataclass(frozen=True, slots=True)
class Lesson:
    id: UUID
    module_id: UUID
    course_id: UUID  # denormalized from the module
    title: str
    order: int
    duration: int = 0  # nominal length in seconds

    @staticmethod
    def new(
        *,
        module_id: UUID,
        course_id: UUID,
        title: str,
        order: int,
        duration: int = 0,
    ) -> Lesson:
        return Lesson(
            id=uuid4(),
            module_id=module_id,
            course_id=course_id,
            title=title,
            order=order,
            duration=duration,
        )

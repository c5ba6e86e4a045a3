from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal
from uuid import UUID, uuid4

ProgressStatus = Literal["not_started", "in_progress", "completed"]


def completion_percentage(completed_lessons: int, total_lessons: int) -> int:
    """round(completed / total * 100) with halves rounded up; 0 for no lessons."""
    if total_lessons <= 0:
        return 0
    completed_lessons = min(max(completed_lessons, 0), total_lessons)
    # Integer form of floor(x + 0.5) so 12.5 -> 13 without float error
    return (200 * completed_lessons + total_lessons) // (2 * total_lessons)


def status_for(percentage: int) -> ProgressStatus:
    if percentage >= 100:
        return "completed"
    if percentage > 0:
        return "in_progress"
    return "not_started"


@dataclass(frozen=True, slots=True)
class LessonProgress:
    """Per-student, per-lesson completion and watch-time record."""

    id: UUID
    student_id: UUID
    lesson_id: UUID
    course_id: UUID
    created_at: datetime
    updated_at: datetime
    is_completed: bool = False
    completed_at: datetime | None = None
    watch_time: int = 0  # seconds, never decreases
    last_position: int = 0  # seconds into the lesson media

    @staticmethod
    def new(
        *,
        student_id: UUID,
        lesson_id: UUID,
        course_id: UUID,
        now: datetime,
        is_completed: bool = False,
        watch_time: int = 0,
        last_position: int = 0,
    ) -> LessonProgress:
        return LessonProgress(
            id=uuid4(),
            student_id=student_id,
            lesson_id=lesson_id,
            course_id=course_id,
            created_at=now,
            updated_at=now,
            is_completed=is_completed,
            completed_at=now if is_completed else None,
            watch_time=watch_time,
            last_position=last_position,
        )


@dataclass(frozen=True, slots=True)
class CourseProgress:
    """Per-student, per-course aggregate; also the enrollment record.

    ``completion_percentage`` and ``status`` are re-derived from
    (completed_lessons, total_lessons) on every recomputation and are
    never incremented in place.
    """

    id: UUID
    student_id: UUID
    course_id: UUID
    started_at: datetime
    last_accessed_at: datetime
    status: ProgressStatus = "not_started"
    completion_percentage: int = 0
    completed_lessons: int = 0
    total_lessons: int = 0
    completed_at: datetime | None = None
    certificate_earned: bool = False

    @staticmethod
    def new(
        *,
        student_id: UUID,
        course_id: UUID,
        now: datetime,
        total_lessons: int = 0,
    ) -> CourseProgress:
        return CourseProgress(
            id=uuid4(),
            student_id=student_id,
            course_id=course_id,
            started_at=now,
            last_accessed_at=now,
            total_lessons=total_lessons,
        )


@dataclass(frozen=True, slots=True)
class CourseProgressStats:
    total_lessons: int = 0
    completed_lessons: int = 0
    total_watch_time: int = 0
    total_duration: int = 0


@dataclass(frozen=True, slots=True)
class UserProgressSummary:
    user_id: UUID
    courses_enrolled: int = 0
    courses_completed: int = 0
    courses_in_progress: int = 0
    total_watch_time: int = 0
    courses: tuple[CourseProgress, ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class CertificateData:
    certificate_id: str
    course_id: UUID
    course_title: str
    student_id: UUID
    student_name: str
    instructor_name: str
    completed_at: datetime
    completion_percentage: int


@dataclass(frozen=True, slots=True)
class InstructorStats:
    instructor_id: UUID
    total_students: int = 0
    active_courses: int = 0
    completion_rate: float = 0.0
    average_progress: float = 0.0

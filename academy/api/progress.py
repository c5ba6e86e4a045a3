"""Student progress endpoints.

Every route acts on one student.  ``student_id`` defaults to the caller;
an admin may pass another student's id.  Mutations invalidate the
cached analytics reports once committed (see ``get_repos``).
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, ConfigDict

from academy.api.dependencies import get_tracker, require_user
from academy.models.principal import Principal
from academy.services.progress_tracker import ProgressTracker

router = APIRouter(prefix="/v1/progress", tags=["progress"])


class CourseProgressOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    student_id: UUID
    course_id: UUID
    status: str
    completion_percentage: int
    completed_lessons: int
    total_lessons: int
    started_at: datetime
    last_accessed_at: datetime
    completed_at: datetime | None
    certificate_earned: bool


class LessonProgressOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    student_id: UUID
    lesson_id: UUID
    course_id: UUID
    is_completed: bool
    completed_at: datetime | None
    watch_time: int
    last_position: int
    updated_at: datetime


class UserProgressOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    courses_enrolled: int
    courses_completed: int
    courses_in_progress: int
    total_watch_time: int
    courses: list[CourseProgressOut]


class CertificateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    certificate_id: str
    course_id: UUID
    course_title: str
    student_id: UUID
    student_name: str
    instructor_name: str
    completed_at: datetime
    completion_percentage: int


class InstructorStatsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    instructor_id: UUID
    total_students: int
    active_courses: int
    completion_rate: float
    average_progress: float


class CompleteLessonIn(BaseModel):
    watch_time: int | None = None


class WatchTimeIn(BaseModel):
    watch_time: int
    last_position: int | None = None


Tracker = Annotated[ProgressTracker, Depends(get_tracker)]
Caller = Annotated[Principal, Depends(require_user)]


# ---------------------------------------------------------------------------
# Course progress
# ---------------------------------------------------------------------------


@router.post(
    "/courses/{course_id}/start",
    response_model=CourseProgressOut,
    status_code=status.HTTP_201_CREATED,
)
async def start_course(
    course_id: UUID,
    principal: Caller,
    tracker: Tracker,
    student_id: UUID | None = None,
) -> CourseProgressOut:
    progress = await tracker.start_course(
        course_id, student_id or principal.user_id, requester=principal
    )
    return CourseProgressOut.model_validate(progress)


@router.get("/courses/{course_id}", response_model=CourseProgressOut)
async def get_course_progress(
    course_id: UUID,
    principal: Caller,
    tracker: Tracker,
    student_id: UUID | None = None,
) -> CourseProgressOut:
    progress = await tracker.get_course_progress(
        course_id, student_id or principal.user_id, requester=principal
    )
    return CourseProgressOut.model_validate(progress)


@router.delete("/courses/{course_id}", status_code=status.HTTP_204_NO_CONTENT)
async def reset_course_progress(
    course_id: UUID,
    principal: Caller,
    tracker: Tracker,
    student_id: UUID | None = None,
) -> Response:
    await tracker.reset_course_progress(
        course_id, student_id or principal.user_id, requester=principal
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/courses/{course_id}/certificate", response_model=CertificateOut)
async def get_certificate(
    course_id: UUID,
    principal: Caller,
    tracker: Tracker,
    student_id: UUID | None = None,
) -> CertificateOut:
    data = await tracker.get_certificate_data(
        course_id, student_id or principal.user_id, requester=principal
    )
    return CertificateOut.model_validate(data)


# ---------------------------------------------------------------------------
# Lesson progress
# ---------------------------------------------------------------------------


@router.post("/lessons/{lesson_id}/complete", response_model=LessonProgressOut)
async def complete_lesson(
    lesson_id: UUID,
    principal: Caller,
    tracker: Tracker,
    payload: CompleteLessonIn | None = None,
    student_id: UUID | None = None,
) -> LessonProgressOut:
    progress = await tracker.complete_lesson(
        lesson_id,
        student_id or principal.user_id,
        payload.watch_time if payload else None,
        requester=principal,
    )
    return LessonProgressOut.model_validate(progress)


@router.put("/lessons/{lesson_id}/watch-time", response_model=LessonProgressOut)
async def update_watch_time(
    lesson_id: UUID,
    payload: WatchTimeIn,
    principal: Caller,
    tracker: Tracker,
    student_id: UUID | None = None,
) -> LessonProgressOut:
    progress = await tracker.update_watch_time(
        lesson_id,
        student_id or principal.user_id,
        payload.watch_time,
        payload.last_position,
        requester=principal,
    )
    return LessonProgressOut.model_validate(progress)


@router.get("/lessons/{lesson_id}", response_model=LessonProgressOut)
async def get_lesson_progress(
    lesson_id: UUID,
    principal: Caller,
    tracker: Tracker,
    student_id: UUID | None = None,
) -> LessonProgressOut:
    progress = await tracker.get_lesson_progress(
        lesson_id, student_id or principal.user_id, requester=principal
    )
    return LessonProgressOut.model_validate(progress)


# ---------------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------------


@router.get("/users/{user_id}/summary", response_model=UserProgressOut)
async def get_user_progress(
    user_id: UUID, principal: Caller, tracker: Tracker
) -> UserProgressOut:
    summary = await tracker.get_user_progress(user_id, requester=principal)
    return UserProgressOut.model_validate(summary)


@router.get("/instructors/{instructor_id}/stats", response_model=InstructorStatsOut)
async def get_instructor_stats(
    instructor_id: UUID, principal: Caller, tracker: Tracker
) -> InstructorStatsOut:
    stats = await tracker.get_instructor_stats(instructor_id, requester=principal)
    return InstructorStatsOut.model_validate(stats)

"""Per-student lesson and course progress.

A student's CourseProgress row is derived, never incremented: after every
lesson completion the tracker re-reads the lessons of the course and the
student's completed LessonProgress rows and recomputes percentage, status
and certificate state from scratch.  Running the recomputation twice, or
concurrently, therefore lands on the same row.

Mutations are owned by the student (or an admin); every public mutation
takes the authenticated ``requester`` and checks it before touching
storage.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime
from uuid import NAMESPACE_URL, UUID, uuid5

from academy.core.errors import ConflictError, NotFoundError, ValidationError
from academy.core.metrics import (
    COURSE_COMPLETIONS,
    LESSON_COMPLETIONS,
    PROGRESS_RECOMPUTATIONS,
    PROGRESS_RESETS,
)
from academy.models.course import Course, Lesson
from academy.models.principal import Principal
from academy.models.progress import (
    CertificateData,
    CourseProgress,
    CourseProgressStats,
    InstructorStats,
    LessonProgress,
    UserProgressSummary,
    completion_percentage,
    status_for,
)
from academy.models.user import User
from academy.repos.content_repo import ContentRepo
from academy.repos.progress_repo import ProgressRepo
from academy.repos.user_repo import UserRepo
from academy.services import access_policy
from academy.services.access_policy import require
from academy.services.stats import mean, percent

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(UTC)


def derive_course_progress(
    current: CourseProgress,
    *,
    completed_lessons: int,
    total_lessons: int,
    now: datetime,
) -> CourseProgress:
    """Re-derive the aggregate fields of ``current`` from lesson counts.

    ``completed_at`` is stamped the first time the course reaches 100% and
    kept on every later pass, including after new lessons pull the
    percentage back down.  ``status`` and ``certificate_earned`` always
    follow the current percentage.
    """
    pct = completion_percentage(completed_lessons, total_lessons)
    status = status_for(pct)
    completed_at = current.completed_at
    if status == "completed" and completed_at is None:
        completed_at = now
    return replace(
        current,
        completed_lessons=min(completed_lessons, total_lessons),
        total_lessons=total_lessons,
        completion_percentage=pct,
        status=status,
        completed_at=completed_at,
        certificate_earned=status == "completed",
        last_accessed_at=now,
    )


class ProgressTracker:
    def __init__(
        self,
        *,
        users: UserRepo,
        content: ContentRepo,
        progress: ProgressRepo,
        clock: Clock = utcnow,
    ) -> None:
        self._users = users
        self._content = content
        self._progress = progress
        self._clock = clock

    # ------------------------------------------------------------------
    # lookups
    # ------------------------------------------------------------------

    async def _get_user(self, user_id: UUID, resource: str = "User") -> User:
        user = await self._users.get_by_id(user_id)
        if user is None:
            raise NotFoundError(resource, user_id)
        return user

    async def _get_course(self, course_id: UUID) -> Course:
        course = await self._content.get_course(course_id)
        if course is None:
            raise NotFoundError("Course", course_id)
        return course

    async def _get_lesson(self, lesson_id: UUID) -> Lesson:
        lesson = await self._content.get_lesson(lesson_id)
        if lesson is None:
            raise NotFoundError("Lesson", lesson_id)
        return lesson

    async def _require_enrollment(self, course_id: UUID, student_id: UUID) -> None:
        enrollment = await self._progress.get_course_progress(course_id, student_id)
        require(
            enrollment is not None,
            "Student is not enrolled in this course",
            student_id=str(student_id),
            course_id=str(course_id),
        )

    @staticmethod
    def _require_mutate(requester: Principal, student_id: UUID) -> None:
        require(
            access_policy.can_mutate(requester.user_id, student_id, requester.role),
            "Not authorized to change this student's progress",
            requester_id=str(requester.user_id),
            student_id=str(student_id),
        )

    @staticmethod
    def _require_view(requester: Principal, student_id: UUID) -> None:
        require(
            access_policy.can_view(requester.user_id, student_id, requester.role),
            "Not authorized to view this student's progress",
            requester_id=str(requester.user_id),
            student_id=str(student_id),
        )

    # ------------------------------------------------------------------
    # mutations
    # ------------------------------------------------------------------

    async def start_course(
        self, course_id: UUID, student_id: UUID, *, requester: Principal
    ) -> CourseProgress:
        self._require_mutate(requester, student_id)
        await self._get_user(student_id, "Student")
        await self._get_course(course_id)

        existing = await self._progress.get_course_progress(course_id, student_id)
        if existing is not None:
            return existing

        lessons = await self._content.list_lessons(course_id)
        row = CourseProgress.new(
            student_id=student_id,
            course_id=course_id,
            now=self._clock(),
            total_lessons=len(lessons),
        )
        try:
            created = await self._progress.add(row)
        except ConflictError:
            # Lost a concurrent start; the winner's row is the enrollment.
            winner = await self._progress.get_course_progress(course_id, student_id)
            if winner is None:
                raise
            return winner

        logger.info(
            "Course started student_id=%s course_id=%s total_lessons=%d",
            student_id,
            course_id,
            created.total_lessons,
            extra={"user_id": str(student_id), "course_id": str(course_id)},
        )
        return created

    async def complete_lesson(
        self,
        lesson_id: UUID,
        student_id: UUID,
        watch_time: int | None = None,
        *,
        requester: Principal,
    ) -> LessonProgress:
        self._require_mutate(requester, student_id)
        if watch_time is not None and watch_time < 0:
            raise ValidationError("watch_time must be >= 0")
        await self._get_user(student_id, "Student")
        lesson = await self._get_lesson(lesson_id)
        await self._require_enrollment(lesson.course_id, student_id)

        now = self._clock()
        existing = await self._progress.get_lesson_progress(lesson_id, student_id)
        if existing is None:
            row = LessonProgress.new(
                student_id=student_id,
                lesson_id=lesson_id,
                course_id=lesson.course_id,
                now=now,
                is_completed=True,
                watch_time=watch_time or 0,
            )
            try:
                settled = await self._progress.add_lesson_progress(row)
                outcome = "created"
            except ConflictError:
                existing = await self._progress.get_lesson_progress(
                    lesson_id, student_id
                )
                if existing is None:
                    raise
        if existing is not None:
            settled, outcome = await self._mark_completed(existing, watch_time, now)

        LESSON_COMPLETIONS.labels(outcome=outcome).inc()
        logger.info(
            "Lesson completed student_id=%s lesson_id=%s outcome=%s",
            student_id,
            lesson_id,
            outcome,
            extra={
                "user_id": str(student_id),
                "course_id": str(lesson.course_id),
                "lesson_id": str(lesson_id),
            },
        )
        await self.recompute_course_progress(lesson.course_id, student_id)
        return settled

    async def _mark_completed(
        self, existing: LessonProgress, watch_time: int | None, now: datetime
    ) -> tuple[LessonProgress, str]:
        merged_watch = max(existing.watch_time, watch_time or 0)
        if existing.is_completed:
            updated = replace(existing, watch_time=merged_watch, updated_at=now)
            outcome = "already_completed"
        else:
            updated = replace(
                existing,
                is_completed=True,
                completed_at=now,
                watch_time=merged_watch,
                updated_at=now,
            )
            outcome = "completed"
        return await self._progress.update_lesson_progress(updated), outcome

    async def update_watch_time(
        self,
        lesson_id: UUID,
        student_id: UUID,
        watch_time: int,
        last_position: int | None = None,
        *,
        requester: Principal,
    ) -> LessonProgress:
        self._require_mutate(requester, student_id)
        if watch_time < 0:
            raise ValidationError("watch_time must be >= 0")
        if last_position is not None and last_position < 0:
            raise ValidationError("last_position must be >= 0")
        await self._get_user(student_id, "Student")
        lesson = await self._get_lesson(lesson_id)
        await self._require_enrollment(lesson.course_id, student_id)

        now = self._clock()
        existing = await self._progress.get_lesson_progress(lesson_id, student_id)
        if existing is None:
            row = LessonProgress.new(
                student_id=student_id,
                lesson_id=lesson_id,
                course_id=lesson.course_id,
                now=now,
                watch_time=watch_time,
                last_position=last_position or 0,
            )
            try:
                return await self._progress.add_lesson_progress(row)
            except ConflictError:
                existing = await self._progress.get_lesson_progress(
                    lesson_id, student_id
                )
                if existing is None:
                    raise

        updated = replace(
            existing,
            watch_time=max(existing.watch_time, watch_time),
            last_position=(
                existing.last_position if last_position is None else last_position
            ),
            updated_at=now,
        )
        return await self._progress.update_lesson_progress(updated)

    async def reset_course_progress(
        self, course_id: UUID, student_id: UUID, *, requester: Principal
    ) -> None:
        self._require_mutate(requester, student_id)
        reset = await self._progress.reset_course_progress(
            course_id, student_id, self._clock()
        )
        if reset is None:
            raise NotFoundError("Course progress")
        PROGRESS_RESETS.inc()
        logger.info(
            "Course progress reset student_id=%s course_id=%s", student_id, course_id
        )

    async def recompute_course_progress(
        self, course_id: UUID, student_id: UUID
    ) -> CourseProgress | None:
        """Re-derive the student's course row from stored lesson facts.

        Returns None, without writing, when the student is not enrolled.
        """
        current = await self._progress.get_course_progress(course_id, student_id)
        if current is None:
            logger.debug(
                "Recompute skipped, no enrollment student_id=%s course_id=%s",
                student_id,
                course_id,
            )
            return None

        stats = await self.get_course_progress_stats(course_id, student_id)
        updated = derive_course_progress(
            current,
            completed_lessons=stats.completed_lessons,
            total_lessons=stats.total_lessons,
            now=self._clock(),
        )
        PROGRESS_RECOMPUTATIONS.inc()
        saved = await self._progress.update(updated)

        if current.completed_at is None and saved.completed_at is not None:
            COURSE_COMPLETIONS.inc()
            logger.info(
                "Course completed student_id=%s course_id=%s",
                student_id,
                course_id,
                extra={"user_id": str(student_id), "course_id": str(course_id)},
            )
        return saved

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    async def get_course_progress(
        self, course_id: UUID, student_id: UUID, *, requester: Principal
    ) -> CourseProgress:
        self._require_view(requester, student_id)
        progress = await self._progress.get_course_progress(course_id, student_id)
        if progress is None:
            raise NotFoundError("Course progress")
        return progress

    async def get_lesson_progress(
        self, lesson_id: UUID, student_id: UUID, *, requester: Principal
    ) -> LessonProgress:
        self._require_view(requester, student_id)
        progress = await self._progress.get_lesson_progress(lesson_id, student_id)
        if progress is None:
            raise NotFoundError("Lesson progress")
        return progress

    async def get_user_progress(
        self, student_id: UUID, *, requester: Principal
    ) -> UserProgressSummary:
        self._require_view(requester, student_id)
        await self._get_user(student_id, "Student")
        courses = await self._progress.list_by_user(student_id)
        lessons = await self._progress.list_lesson_progress_by_user(student_id)
        return UserProgressSummary(
            user_id=student_id,
            courses_enrolled=len(courses),
            courses_completed=sum(1 for c in courses if c.status == "completed"),
            courses_in_progress=sum(1 for c in courses if c.status == "in_progress"),
            total_watch_time=sum(lp.watch_time for lp in lessons),
            courses=tuple(courses),
        )

    async def get_course_progress_stats(
        self, course_id: UUID, student_id: UUID
    ) -> CourseProgressStats:
        lessons = await self._content.list_lessons(course_id)
        lesson_ids = {lesson.id for lesson in lessons}
        rows = await self._progress.list_lesson_progress(course_id, student_id)
        # Rows for lessons no longer in the course do not count
        return CourseProgressStats(
            total_lessons=len(lessons),
            completed_lessons=sum(
                1 for lp in rows if lp.is_completed and lp.lesson_id in lesson_ids
            ),
            total_watch_time=sum(lp.watch_time for lp in rows),
            total_duration=sum(lesson.duration for lesson in lessons),
        )

    async def get_certificate_data(
        self, course_id: UUID, student_id: UUID, *, requester: Principal
    ) -> CertificateData:
        self._require_view(requester, student_id)
        progress = await self._progress.get_course_progress(course_id, student_id)
        if progress is None:
            raise NotFoundError("Course progress")
        if progress.status != "completed" or progress.completed_at is None:
            raise ValidationError("Course is not completed yet")

        student = await self._get_user(student_id, "Student")
        course = await self._get_course(course_id)
        instructor = await self._users.get_by_id(course.instructor_id)
        return CertificateData(
            certificate_id=certificate_id(course_id, student_id),
            course_id=course_id,
            course_title=course.title,
            student_id=student_id,
            student_name=student.name or student.email,
            instructor_name=(instructor.name or instructor.email) if instructor else "",
            completed_at=progress.completed_at,
            completion_percentage=progress.completion_percentage,
        )

    async def get_instructor_stats(
        self, instructor_id: UUID, *, requester: Principal
    ) -> InstructorStats:
        require(
            access_policy.can_view_course_analytics(
                requester.user_id, instructor_id, requester.role
            ),
            "Not authorized to view this instructor's statistics",
            requester_id=str(requester.user_id),
            instructor_id=str(instructor_id),
        )
        await self._get_user(instructor_id, "Instructor")
        courses = await self._content.list_courses(instructor_id)
        rows = await self._progress.list_by_courses({c.id for c in courses})
        return InstructorStats(
            instructor_id=instructor_id,
            total_students=len({r.student_id for r in rows}),
            active_courses=len({r.course_id for r in rows}),
            completion_rate=percent(
                sum(1 for r in rows if r.status == "completed"), len(rows)
            ),
            average_progress=mean(r.completion_percentage for r in rows),
        )


def certificate_id(course_id: UUID, student_id: UUID) -> str:
    """Stable, printable certificate number for one (course, student) pair."""
    digest = uuid5(NAMESPACE_URL, f"academy:certificate:{course_id}:{student_id}")
    return "CERT-" + digest.hex[:12].upper()

"""Dashboard analytics over progress, payment and quiz records.

Every report is computed for an AnalyticsScope, which ``resolve_scope``
builds and authorizes from the caller:

    course_id given      -> that course (its instructor or an admin)
    instructor_id given  -> the instructor's courses (same rule)
    neither              -> every course (admins only)

Reports are read-only and recomputed from stored rows on each call.
Rates, percentages and averages are rounded half-up to two decimals; an
empty scope produces the zero-valued report records.
"""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from datetime import UTC, datetime, timedelta
from uuid import UUID

from academy.core.errors import NotFoundError, ValidationError
from academy.core.metrics import ANALYTICS_DURATION
from academy.models.analytics import (
    WATCH_BUCKET_LABELS,
    AnalyticsScope,
    AnalyticsSnapshot,
    CoursePerformance,
    DailyActiveUsers,
    DropoffPoint,
    EngagementReport,
    EnrollmentTrendReport,
    LessonEngagement,
    MonthlyTrend,
    OverviewReport,
    PerformanceReport,
    PopularCourse,
    ProgressAnalytics,
    QuizPerformance,
    TopCourse,
    WatchBucket,
)
from academy.models.course import Lesson
from academy.models.principal import Principal
from academy.models.progress import LessonProgress
from academy.repos.content_repo import ContentRepo
from academy.repos.payment_repo import PaymentRepo
from academy.repos.progress_repo import ProgressRepo
from academy.repos.quiz_repo import QuizRepo
from academy.repos.user_repo import UserRepo
from academy.services import access_policy
from academy.services.access_policy import require
from academy.services.progress_tracker import Clock, utcnow
from academy.services.stats import mean, percent, percent_remaining, round2

logger = logging.getLogger(__name__)


def month_window_start(now: datetime, window_months: int) -> datetime:
    """First instant of the month ``window_months - 1`` months before ``now``."""
    index = now.year * 12 + (now.month - 1) - (window_months - 1)
    return datetime(index // 12, index % 12 + 1, 1, tzinfo=UTC)


def watch_bucket(watch_time: int, duration: int) -> int:
    """Index into WATCH_BUCKET_LABELS for the watched fraction of a lesson."""
    if duration <= 0:
        return 0
    fraction = min(watch_time / duration, 1.0)
    return min(int(fraction * len(WATCH_BUCKET_LABELS)), len(WATCH_BUCKET_LABELS) - 1)


def _activity_days(row: LessonProgress, since: datetime) -> set[str]:
    days = {row.updated_at.astimezone(UTC).date().isoformat()}
    if row.created_at >= since:
        days.add(row.created_at.astimezone(UTC).date().isoformat())
    return days


class AnalyticsAggregator:
    def __init__(
        self,
        *,
        users: UserRepo,
        content: ContentRepo,
        progress: ProgressRepo,
        payments: PaymentRepo,
        quizzes: QuizRepo,
        clock: Clock = utcnow,
    ) -> None:
        self._users = users
        self._content = content
        self._progress = progress
        self._payments = payments
        self._quizzes = quizzes
        self._clock = clock

    # ------------------------------------------------------------------
    # scope
    # ------------------------------------------------------------------

    async def resolve_scope(
        self,
        requester: Principal,
        instructor_id: UUID | None = None,
        course_id: UUID | None = None,
    ) -> AnalyticsScope:
        if course_id is not None:
            course = await self._content.get_course(course_id)
            if course is None:
                raise NotFoundError("Course", course_id)
            if instructor_id is not None and course.instructor_id != instructor_id:
                raise ValidationError("Course does not belong to this instructor")
            require(
                access_policy.can_view_course_analytics(
                    requester.user_id, course.instructor_id, requester.role
                ),
                "Not authorized to view analytics for this course",
                requester_id=str(requester.user_id),
                course_id=str(course_id),
            )
            return AnalyticsScope(
                course_ids=frozenset({course.id}),
                instructor_id=course.instructor_id,
                course_id=course.id,
            )

        if instructor_id is not None:
            instructor = await self._users.get_by_id(instructor_id)
            if instructor is None:
                raise NotFoundError("Instructor", instructor_id)
            require(
                access_policy.can_view_course_analytics(
                    requester.user_id, instructor_id, requester.role
                ),
                "Not authorized to view analytics for this instructor",
                requester_id=str(requester.user_id),
                instructor_id=str(instructor_id),
            )
            courses = await self._content.list_courses(instructor_id)
            return AnalyticsScope(
                course_ids=frozenset(c.id for c in courses),
                instructor_id=instructor_id,
            )

        require(
            requester.is_admin(),
            "Platform-wide analytics require an admin",
            requester_id=str(requester.user_id),
        )
        courses = await self._content.list_courses()
        return AnalyticsScope(course_ids=frozenset(c.id for c in courses))

    # ------------------------------------------------------------------
    # reports
    # ------------------------------------------------------------------

    async def compute_overview(self, scope: AnalyticsScope) -> OverviewReport:
        with ANALYTICS_DURATION.labels(report="overview").time():
            if not scope.course_ids:
                return OverviewReport()
            enrollments = await self._progress.list_by_courses(scope.course_ids)
            payments = await self._payments.list_completed(scope.course_ids)
            completed = sum(1 for e in enrollments if e.completion_percentage >= 100)
            return OverviewReport(
                total_students=len({e.student_id for e in enrollments}),
                total_courses=len(scope.course_ids),
                total_revenue=round2(sum(p.amount for p in payments)),
                completion_rate=percent(completed, len(enrollments)),
            )

    async def compute_enrollment_trend(
        self, scope: AnalyticsScope, window_months: int = 12, top_n: int = 10
    ) -> EnrollmentTrendReport:
        if window_months < 1:
            raise ValidationError("window_months must be >= 1")
        with ANALYTICS_DURATION.labels(report="enrollment").time():
            if not scope.course_ids:
                return EnrollmentTrendReport()
            start = month_window_start(self._clock(), window_months)
            enrollments = await self._progress.list_by_courses(scope.course_ids)
            payments = await self._payments.list_completed(scope.course_ids)

            monthly_enrollments: Counter[str] = Counter()
            monthly_revenue: defaultdict[str, float] = defaultdict(float)
            for e in enrollments:
                if e.started_at >= start:
                    monthly_enrollments[e.started_at.strftime("%Y-%m")] += 1
            for p in payments:
                if p.created_at >= start:
                    monthly_revenue[p.created_at.strftime("%Y-%m")] += p.amount

            months = sorted(set(monthly_enrollments) | set(monthly_revenue))
            monthly = tuple(
                MonthlyTrend(
                    month=m,
                    enrollments=monthly_enrollments[m],
                    revenue=round2(monthly_revenue.get(m, 0.0)),
                )
                for m in months
            )

            course_enrollments = Counter(e.course_id for e in enrollments)
            course_revenue: defaultdict[UUID, float] = defaultdict(float)
            for p in payments:
                course_revenue[p.course_id] += p.amount
            courses = await self._content.list_courses_by_ids(scope.course_ids)
            ranked = sorted(
                courses,
                key=lambda c: (
                    -course_enrollments[c.id],
                    -course_revenue.get(c.id, 0.0),
                    c.title,
                ),
            )
            top = tuple(
                TopCourse(
                    course_id=c.id,
                    title=c.title,
                    enrollments=course_enrollments[c.id],
                    revenue=round2(course_revenue.get(c.id, 0.0)),
                )
                for c in ranked[: max(top_n, 0)]
            )
            return EnrollmentTrendReport(monthly=monthly, top_courses=top)

    async def compute_performance(self, scope: AnalyticsScope) -> PerformanceReport:
        with ANALYTICS_DURATION.labels(report="performance").time():
            if not scope.course_ids:
                return PerformanceReport()
            courses = await self._content.list_courses_by_ids(scope.course_ids)
            enrollments = await self._progress.list_by_courses(scope.course_ids)
            by_course: defaultdict[UUID, list[int]] = defaultdict(list)
            for e in enrollments:
                by_course[e.course_id].append(e.completion_percentage)

            course_rows = []
            for course in sorted(courses, key=lambda c: c.title):
                percentages = by_course.get(course.id, [])
                completions = sum(1 for pct in percentages if pct >= 100)
                course_rows.append(
                    CoursePerformance(
                        course_id=course.id,
                        title=course.title,
                        enrollments=len(percentages),
                        average_progress=mean(percentages),
                        completions=completions,
                        dropoff_rate=percent_remaining(completions, len(percentages)),
                    )
                )

            quizzes = await self._quizzes.list_quizzes(scope.course_ids)
            attempts = await self._quizzes.list_attempts({q.id for q in quizzes})
            by_quiz: defaultdict[UUID, list] = defaultdict(list)
            for a in attempts:
                by_quiz[a.quiz_id].append(a)
            quiz_rows = []
            for quiz in sorted(quizzes, key=lambda q: q.title):
                quiz_attempts = by_quiz.get(quiz.id, [])
                quiz_rows.append(
                    QuizPerformance(
                        quiz_id=quiz.id,
                        title=quiz.title,
                        average_score=mean(a.score for a in quiz_attempts),
                        attempts=len(quiz_attempts),
                        pass_rate=percent(
                            sum(1 for a in quiz_attempts if a.passed),
                            len(quiz_attempts),
                        ),
                    )
                )
            return PerformanceReport(
                course_progress=tuple(course_rows), quiz_performance=tuple(quiz_rows)
            )

    async def compute_engagement(
        self, scope: AnalyticsScope, window_days: int = 30
    ) -> EngagementReport:
        if window_days < 1:
            raise ValidationError("window_days must be >= 1")
        with ANALYTICS_DURATION.labels(report="engagement").time():
            if not scope.course_ids:
                return EngagementReport()
            since = self._clock() - timedelta(days=window_days)
            rows = await self._progress.list_lesson_progress_for_courses(
                scope.course_ids, since=since
            )
            lessons = {
                lesson.id: lesson
                for lesson in await self._content.list_lessons_for_courses(
                    scope.course_ids
                )
            }

            active: defaultdict[str, set[UUID]] = defaultdict(set)
            for row in rows:
                for day in _activity_days(row, since):
                    active[day].add(row.student_id)
            daily = tuple(
                DailyActiveUsers(date=day, active_users=len(active[day]))
                for day in sorted(active)
            )

            views: defaultdict[UUID, list[LessonProgress]] = defaultdict(list)
            buckets = [0] * len(WATCH_BUCKET_LABELS)
            for row in rows:
                lesson = lessons.get(row.lesson_id)
                if lesson is None:
                    continue
                views[lesson.id].append(row)
                buckets[watch_bucket(row.watch_time, lesson.duration)] += 1

            engagement = sorted(
                (self._lesson_engagement(lessons[lid], lrows) for lid, lrows in views.items()),
                key=lambda e: (-e.views, e.title),
            )
            return EngagementReport(
                daily_active_users=daily,
                lesson_engagement=tuple(engagement),
                watch_buckets=tuple(
                    WatchBucket(label=label, views=count)
                    for label, count in zip(WATCH_BUCKET_LABELS, buckets)
                ),
            )

    @staticmethod
    def _lesson_engagement(
        lesson: Lesson, rows: list[LessonProgress]
    ) -> LessonEngagement:
        # Views without telemetry count as a full watch of the lesson
        watched = [row.watch_time or lesson.duration for row in rows]
        return LessonEngagement(
            lesson_id=lesson.id,
            title=lesson.title,
            views=len(rows),
            average_watch_time=int(mean(watched) + 0.5),
            completion_rate=percent(sum(1 for r in rows if r.is_completed), len(rows)),
        )

    async def compute_snapshot(
        self,
        scope: AnalyticsScope,
        *,
        window_months: int = 12,
        top_n: int = 10,
        window_days: int = 30,
    ) -> AnalyticsSnapshot:
        snapshot = AnalyticsSnapshot(
            overview=await self.compute_overview(scope),
            enrollment=await self.compute_enrollment_trend(
                scope, window_months=window_months, top_n=top_n
            ),
            performance=await self.compute_performance(scope),
            engagement=await self.compute_engagement(scope, window_days=window_days),
        )
        logger.info(
            "Analytics snapshot built scope=%s courses=%d",
            scope.cache_key(),
            len(scope.course_ids),
        )
        return snapshot

    # ------------------------------------------------------------------
    # course-level reports
    # ------------------------------------------------------------------

    async def compute_dropoff(self, scope: AnalyticsScope) -> list[DropoffPoint]:
        """Per-lesson reach and completion, lessons in course order."""
        with ANALYTICS_DURATION.labels(report="dropoff").time():
            if not scope.course_ids:
                return []
            rows = await self._progress.list_lesson_progress_for_courses(
                scope.course_ids
            )
            reached: defaultdict[UUID, set[UUID]] = defaultdict(set)
            completed: defaultdict[UUID, set[UUID]] = defaultdict(set)
            for row in rows:
                reached[row.lesson_id].add(row.student_id)
                if row.is_completed:
                    completed[row.lesson_id].add(row.student_id)

            courses = await self._content.list_courses_by_ids(scope.course_ids)
            points: list[DropoffPoint] = []
            for course in sorted(courses, key=lambda c: c.title):
                lessons = await self._content.list_lessons(course.id)
                for position, lesson in enumerate(lessons, start=1):
                    n_reached = len(reached.get(lesson.id, ()))
                    n_completed = len(completed.get(lesson.id, ()))
                    points.append(
                        DropoffPoint(
                            lesson_id=lesson.id,
                            title=lesson.title,
                            position=position,
                            students_reached=n_reached,
                            students_completed=n_completed,
                            dropoff_rate=percent_remaining(n_completed, n_reached),
                        )
                    )
            return points

    async def compute_progress_analytics(
        self, scope: AnalyticsScope, window_days: int = 30
    ) -> ProgressAnalytics:
        """Enrollment and completion flow over the last ``window_days``."""
        if window_days < 1:
            raise ValidationError("window_days must be >= 1")
        with ANALYTICS_DURATION.labels(report="progress").time():
            if not scope.course_ids:
                return ProgressAnalytics()
            since = self._clock() - timedelta(days=window_days)
            enrollments = await self._progress.list_by_courses(scope.course_ids)
            new = [e for e in enrollments if e.started_at >= since]
            finished = [
                e
                for e in enrollments
                if e.completed_at is not None and e.completed_at >= since
            ]
            days_to_complete = [
                (e.completed_at - e.started_at).total_seconds() / 86400
                for e in finished
                if e.completed_at is not None
            ]
            return ProgressAnalytics(
                new_enrollments=len(new),
                completions=len(finished),
                average_completion_days=mean(days_to_complete),
                dropoff_rate=percent_remaining(
                    sum(1 for e in new if e.status == "completed"), len(new)
                ),
            )

    async def popular_courses_by_completion(
        self, scope: AnalyticsScope, limit: int = 10
    ) -> list[PopularCourse]:
        with ANALYTICS_DURATION.labels(report="popular").time():
            if not scope.course_ids or limit <= 0:
                return []
            courses = await self._content.list_courses_by_ids(scope.course_ids)
            enrollments = await self._progress.list_by_courses(scope.course_ids)
            counts = Counter(e.course_id for e in enrollments)
            completions = Counter(
                e.course_id for e in enrollments if e.status == "completed"
            )
            popular = [
                PopularCourse(
                    course_id=c.id,
                    title=c.title,
                    enrollments=counts[c.id],
                    completions=completions[c.id],
                    completion_rate=percent(completions[c.id], counts[c.id]),
                )
                for c in courses
            ]
            popular.sort(key=lambda p: (-p.completions, -p.completion_rate, p.title))
            return popular[:limit]

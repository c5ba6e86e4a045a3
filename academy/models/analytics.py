"""Read-only analytics report records.

Every field has a zero default, so ``OverviewReport()`` (etc.) is the
"no data" value: aggregation over an empty scope returns these defaults
rather than None, partial dicts, or NaN.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID


@dataclass(frozen=True, slots=True)
class AnalyticsScope:
    """The set of courses an analytics query spans.

    ``instructor_id``/``course_id`` record how the scope was requested;
    ``course_ids`` is the resolved, authorized set every query filters on.
    """

    course_ids: frozenset[UUID]
    instructor_id: UUID | None = None
    course_id: UUID | None = None

    def cache_key(self) -> str:
        if self.course_id is not None:
            return f"course:{self.course_id}"
        if self.instructor_id is not None:
            return f"instructor:{self.instructor_id}"
        return "platform"


# --- Overview ---


@dataclass(frozen=True, slots=True)
class OverviewReport:
    total_students: int = 0
    total_courses: int = 0
    total_revenue: float = 0.0
    completion_rate: float = 0.0


# --- Enrollment trend ---


@dataclass(frozen=True, slots=True)
class MonthlyTrend:
    month: str  # YYYY-MM
    enrollments: int = 0
    revenue: float = 0.0


@dataclass(frozen=True, slots=True)
class TopCourse:
    course_id: UUID
    title: str
    enrollments: int = 0
    revenue: float = 0.0


@dataclass(frozen=True, slots=True)
class EnrollmentTrendReport:
    monthly: tuple[MonthlyTrend, ...] = field(default_factory=tuple)
    top_courses: tuple[TopCourse, ...] = field(default_factory=tuple)


# --- Performance ---


@dataclass(frozen=True, slots=True)
class CoursePerformance:
    course_id: UUID
    title: str
    enrollments: int = 0
    average_progress: float = 0.0
    completions: int = 0
    dropoff_rate: float = 0.0


@dataclass(frozen=True, slots=True)
class QuizPerformance:
    quiz_id: UUID
    title: str
    average_score: float = 0.0
    attempts: int = 0
    pass_rate: float = 0.0


@dataclass(frozen=True, slots=True)
class PerformanceReport:
    course_progress: tuple[CoursePerformance, ...] = field(default_factory=tuple)
    quiz_performance: tuple[QuizPerformance, ...] = field(default_factory=tuple)


# --- Engagement ---


@dataclass(frozen=True, slots=True)
class DailyActiveUsers:
    date: str  # YYYY-MM-DD (UTC)
    active_users: int = 0


@dataclass(frozen=True, slots=True)
class LessonEngagement:
    lesson_id: UUID
    title: str
    views: int = 0
    average_watch_time: int = 0  # seconds
    completion_rate: float = 0.0


@dataclass(frozen=True, slots=True)
class WatchBucket:
    label: str  # "0-25", "25-50", "50-75", "75-100" (% of lesson watched)
    views: int = 0


WATCH_BUCKET_LABELS: tuple[str, ...] = ("0-25", "25-50", "50-75", "75-100")


@dataclass(frozen=True, slots=True)
class EngagementReport:
    daily_active_users: tuple[DailyActiveUsers, ...] = field(default_factory=tuple)
    lesson_engagement: tuple[LessonEngagement, ...] = field(default_factory=tuple)
    watch_buckets: tuple[WatchBucket, ...] = field(
        default_factory=lambda: tuple(WatchBucket(label=b) for b in WATCH_BUCKET_LABELS)
    )


# --- Snapshot ---


@dataclass(frozen=True, slots=True)
class AnalyticsSnapshot:
    overview: OverviewReport = field(default_factory=OverviewReport)
    enrollment: EnrollmentTrendReport = field(default_factory=EnrollmentTrendReport)
    performance: PerformanceReport = field(default_factory=PerformanceReport)
    engagement: EngagementReport = field(default_factory=EngagementReport)


# --- Supplementary reports ---


@dataclass(frozen=True, slots=True)
class DropoffPoint:
    lesson_id: UUID
    title: str
    position: int  # 1-based position in course order
    students_reached: int = 0
    students_completed: int = 0
    dropoff_rate: float = 0.0


@dataclass(frozen=True, slots=True)
class ProgressAnalytics:
    new_enrollments: int = 0
    completions: int = 0
    average_completion_days: float = 0.0
    dropoff_rate: float = 0.0


@dataclass(frozen=True, slots=True)
class PopularCourse:
    course_id: UUID
    title: str
    enrollments: int = 0
    completions: int = 0
    completion_rate: float = 0.0

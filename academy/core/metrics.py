"""Application metrics using the Prometheus client library.

Every metric the service exports is defined here so there is a single
inventory.  Modules import the metric they own and increment or observe
it at the point of action.

  Counters  : lesson completions, course completions, recomputations,
              resets, cache hits/misses.  Only go up; dashboards use
              rate() over them.
  Gauge     : in-flight HTTP requests.
  Histograms: HTTP latency and analytics report build time.  Analytics
              scans grow with enrollments, so the report histogram is
              the first place a slow dashboard shows up.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Progress tracking
# ---------------------------------------------------------------------------

LESSON_COMPLETIONS = Counter(
    "lesson_completions_total",
    "complete_lesson calls by outcome",
    ["outcome"],  # "created", "completed", "already_completed"
)

COURSE_COMPLETIONS = Counter(
    "course_completions_total",
    "Enrollments that transitioned to completed",
)

PROGRESS_RECOMPUTATIONS = Counter(
    "progress_recomputations_total",
    "Course progress recomputation passes",
)

PROGRESS_RESETS = Counter(
    "progress_resets_total",
    "Course progress resets",
)

# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------

ANALYTICS_DURATION = Histogram(
    "analytics_report_duration_seconds",
    "Time spent building an analytics report",
    ["report"],  # overview|enrollment|performance|engagement|dropoff|...
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)

CACHE_OPERATIONS = Counter(
    "cache_operations_total",
    "Analytics cache get operations by result",
    ["operation"],  # "hit" or "miss"
)

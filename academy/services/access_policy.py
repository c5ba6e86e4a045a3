"""Authorization predicates shared by the progress and analytics services.

Each predicate is a pure function over ids and a role that the caller has
already resolved.  Services call ``require(predicate(...), message)`` so
that every denial surfaces as an AuthorizationError; nothing is filtered
out silently.
"""

from __future__ import annotations

import logging
from uuid import UUID

from academy.core.errors import AuthorizationError
from academy.models.user import Role

logger = logging.getLogger(__name__)


def can_view(requester_id: UUID, subject_id: UUID, requester_role: Role) -> bool:
    """Read a student's progress: the student themself, or an admin."""
    return requester_id == subject_id or requester_role == "admin"


def can_mutate(requester_id: UUID, subject_id: UUID, requester_role: Role) -> bool:
    """Change a student's progress rows: the owning student, or an admin."""
    return requester_id == subject_id or requester_role == "admin"


def can_view_course_analytics(
    requester_id: UUID, instructor_id: UUID, requester_role: Role
) -> bool:
    """Read aggregates for a course: its instructor, or an admin."""
    return requester_id == instructor_id or requester_role == "admin"


def can_manage_course(
    requester_id: UUID, instructor_id: UUID, requester_role: Role
) -> bool:
    """Restructure a course (e.g. reorder): its instructor, or an admin."""
    return requester_id == instructor_id or requester_role == "admin"


def require(allowed: bool, message: str, **context: object) -> None:
    if allowed:
        return
    logger.warning("Access denied: %s %s", message, context)
    raise AuthorizationError(message)

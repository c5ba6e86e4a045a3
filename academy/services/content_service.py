"""Course structure changes made by instructors.

Only reordering lives here: modules within a course and lessons within
a module.  The repository applies the new positions all-or-nothing.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from uuid import UUID

from academy.core.errors import NotFoundError
from academy.models.course import Course, CourseModule, Lesson
from academy.models.principal import Principal
from academy.repos.content_repo import ContentRepo
from academy.services import access_policy
from academy.services.access_policy import require

logger = logging.getLogger(__name__)


class ContentService:
    def __init__(self, *, content: ContentRepo) -> None:
        self._content = content

    async def _require_manager(self, course: Course, requester: Principal) -> None:
        require(
            access_policy.can_manage_course(
                requester.user_id, course.instructor_id, requester.role
            ),
            "Not authorized to modify this course",
            requester_id=str(requester.user_id),
            course_id=str(course.id),
        )

    async def reorder_modules(
        self,
        course_id: UUID,
        ordered_module_ids: Sequence[UUID],
        *,
        requester: Principal,
    ) -> list[CourseModule]:
        course = await self._content.get_course(course_id)
        if course is None:
            raise NotFoundError("Course", course_id)
        await self._require_manager(course, requester)

        await self._content.reorder_modules(course_id, list(ordered_module_ids))
        logger.info(
            "Modules reordered course_id=%s count=%d", course_id, len(ordered_module_ids)
        )
        return await self._content.list_modules(course_id)

    async def reorder_lessons(
        self,
        module_id: UUID,
        ordered_lesson_ids: Sequence[UUID],
        *,
        requester: Principal,
    ) -> list[Lesson]:
        module = await self._content.get_module(module_id)
        if module is None:
            raise NotFoundError("Module", module_id)
        course = await self._content.get_course(module.course_id)
        if course is None:
            raise NotFoundError("Course", module.course_id)
        await self._require_manager(course, requester)

        await self._content.reorder_lessons(module_id, list(ordered_lesson_ids))
        logger.info(
            "Lessons reordered module_id=%s count=%d", module_id, len(ordered_lesson_ids)
        )
        return await self._content.list_module_lessons(module_id)

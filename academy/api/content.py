"""Instructor endpoints for restructuring a course."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict

from academy.api.dependencies import get_content_service, require_user
from academy.models.principal import Principal
from academy.services.content_service import ContentService

router = APIRouter(prefix="/v1/courses", tags=["content"])


class ReorderIn(BaseModel):
    ordered_ids: list[UUID]


class ModuleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    course_id: UUID
    title: str
    order: int


class LessonOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    module_id: UUID
    course_id: UUID
    title: str
    order: int
    duration: int


Service = Annotated[ContentService, Depends(get_content_service)]
Caller = Annotated[Principal, Depends(require_user)]


@router.put("/{course_id}/modules/order", response_model=list[ModuleOut])
async def reorder_modules(
    course_id: UUID, payload: ReorderIn, principal: Caller, service: Service
) -> list[ModuleOut]:
    modules = await service.reorder_modules(
        course_id, payload.ordered_ids, requester=principal
    )
    return [ModuleOut.model_validate(m) for m in modules]


@router.put("/modules/{module_id}/lessons/order", response_model=list[LessonOut])
async def reorder_lessons(
    module_id: UUID, payload: ReorderIn, principal: Caller, service: Service
) -> list[LessonOut]:
    lessons = await service.reorder_lessons(
        module_id, payload.ordered_ids, requester=principal
    )
    return [LessonOut.model_validate(les) for les in lessons]

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from learnify.auth.dependencies import get_current_school_id, get_current_user
from learnify.auth.rbac import require_admin
from learnify.auth.schemas import CurrentUser
from learnify.core.exceptions import ServiceError
from learnify.core.schemas import ActionResponse
from learnify.db.session import get_db

from .schemas import (
    ClassCreate,
    ClassInviteCodeResponse,
    ClassPreview,
    ClassResponse,
    ClassStudentRequest,
    ClassUpdate,
)
from . import service

router = APIRouter(prefix="/api/v1/classes", tags=["classes"])


@router.post(
    "",
    response_model=ClassResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def create_class(
    payload: ClassCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    school_id: UUID = Depends(get_current_school_id),
):
    try:
        return await service.create_class(db, school_id, payload, current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[ClassResponse])
async def list_classes(
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_current_school_id),
):
    return await service.list_classes(db, school_id)


@router.get("/invite/{code}", response_model=ClassPreview)
async def preview_class_code(
    code: str,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """Resolve a class code without joining."""
    try:
        return await service.preview_class_code(db, code)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/{class_id}", response_model=ClassResponse)
async def get_class(
    class_id: UUID,
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_current_school_id),
):
    try:
        return await service.get_class(db, school_id, class_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch(
    "/{class_id}",
    response_model=ClassResponse,
    dependencies=[Depends(require_admin)],
)
async def update_class(
    class_id: UUID,
    payload: ClassUpdate,
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_current_school_id),
):
    try:
        return await service.update_class(db, school_id, class_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{class_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
async def delete_class(
    class_id: UUID,
    force: bool = Query(False, description="Delete even when students are enrolled"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    school_id: UUID = Depends(get_current_school_id),
):
    try:
        await service.delete_class(db, school_id, class_id, current_user.id, force=force)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{class_id}/invite-code",
    response_model=ClassInviteCodeResponse,
    dependencies=[Depends(require_admin)],
)
async def regenerate_class_code(
    class_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    school_id: UUID = Depends(get_current_school_id),
):
    try:
        return await service.regenerate_class_code(db, school_id, class_id, current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{class_id}/students",
    response_model=ActionResponse,
    dependencies=[Depends(require_admin)],
)
async def add_student(
    class_id: UUID,
    payload: ClassStudentRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    school_id: UUID = Depends(get_current_school_id),
):
    try:
        added = await service.add_student(db, school_id, class_id, payload.student_id, current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if not added:
        return ActionResponse(message="Student is already in this class", already_in_state=True)
    return ActionResponse(message="Student added to class")


@router.delete(
    "/{class_id}/students/{student_id}",
    response_model=ActionResponse,
    dependencies=[Depends(require_admin)],
)
async def remove_student(
    class_id: UUID,
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    school_id: UUID = Depends(get_current_school_id),
):
    try:
        removed = await service.remove_student(db, school_id, class_id, student_id, current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if not removed:
        return ActionResponse(message="Student is not in this class", already_in_state=True)
    return ActionResponse(message="Student removed from class")

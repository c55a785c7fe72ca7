from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from learnify.auth.dependencies import get_current_school_id, get_current_user
from learnify.auth.rbac import require_admin
from learnify.auth.schemas import CurrentUser
from learnify.core.exceptions import ServiceError
from learnify.db.session import get_db

from .schemas import SubjectCreate, SubjectResponse, SubjectUpdate
from . import service

router = APIRouter(prefix="/api/v1/subjects", tags=["subjects"])


@router.post(
    "",
    response_model=SubjectResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def create_subject(
    payload: SubjectCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    school_id: UUID = Depends(get_current_school_id),
):
    try:
        return await service.create_subject(db, school_id, payload, current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("", response_model=List[SubjectResponse])
async def list_subjects(
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_current_school_id),
):
    return await service.list_subjects(db, school_id)


@router.get("/{subject_id}", response_model=SubjectResponse)
async def get_subject(
    subject_id: UUID,
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_current_school_id),
):
    obj = await service.get_subject(db, school_id, subject_id)
    if not obj:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subject not found")
    return obj


@router.patch(
    "/{subject_id}",
    response_model=SubjectResponse,
    dependencies=[Depends(require_admin)],
)
async def update_subject(
    subject_id: UUID,
    payload: SubjectUpdate,
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_current_school_id),
):
    try:
        return await service.update_subject(db, school_id, subject_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{subject_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_admin)],
)
async def delete_subject(
    subject_id: UUID,
    force: bool = Query(False, description="Remove class and student references too"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
    school_id: UUID = Depends(get_current_school_id),
):
    try:
        await service.delete_subject(db, school_id, subject_id, current_user.id, force=force)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from learnify.auth.dependencies import get_current_school_id, get_current_user
from learnify.auth.rbac import require_admin
from learnify.auth.schemas import CurrentUser
from learnify.core.exceptions import ServiceError
from learnify.db.session import get_db

from .schemas import (
    ActivityItem,
    JoinSchoolRequest,
    JoinSchoolResponse,
    SchoolInviteCodeResponse,
    SchoolPreview,
    SchoolResponse,
    SchoolUpdate,
)
from . import service

router = APIRouter(prefix="/api/v1/schools", tags=["schools"])


@router.get("/me", response_model=SchoolResponse)
async def get_my_school(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        return await service.get_my_school(db, current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch(
    "/me",
    response_model=SchoolResponse,
    dependencies=[Depends(require_admin)],
)
async def update_my_school(
    payload: SchoolUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        return await service.update_school(db, current_user.id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/me/invite-code",
    response_model=SchoolInviteCodeResponse,
    dependencies=[Depends(require_admin)],
)
async def regenerate_invite_code(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        return await service.regenerate_school_code(db, current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/me/activity",
    response_model=List[ActivityItem],
    dependencies=[Depends(require_admin)],
)
async def school_activity(
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    school_id: UUID = Depends(get_current_school_id),
):
    return await service.get_school_activity(db, school_id, limit=limit)


@router.get("/invite/{code}", response_model=SchoolPreview)
async def preview_invite_code(
    code: str,
    db: AsyncSession = Depends(get_db),
):
    """Resolve a school code without joining (used on the signup and join screens)."""
    try:
        return await service.preview_school_code(db, code)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/join", response_model=JoinSchoolResponse)
async def join_school(
    payload: JoinSchoolRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    try:
        return await service.join_school_with_code(db, current_user.id, payload.code)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

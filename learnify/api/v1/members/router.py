from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from learnify.auth.rbac import require_capability
from learnify.auth.schemas import CurrentUser
from learnify.core.enums import UserRole, UserStatus
from learnify.core.exceptions import ServiceError
from learnify.db.session import get_db

from .schemas import MemberActionResponse, MemberCreate, MemberResponse, MemberUpdate
from . import service

router = APIRouter(prefix="/api/v1/members", tags=["members"])

require_approver = require_capability("can_approve")


@router.get("", response_model=List[MemberResponse])
async def list_members(
    status_filter: Optional[UserStatus] = Query(None, alias="status"),
    role: Optional[UserRole] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_approver),
):
    try:
        return await service.list_members(
            db,
            current_user.id,
            status=status_filter.value if status_filter else None,
            role=role.value if role else None,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
async def create_member(
    payload: MemberCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_approver),
):
    try:
        return await service.create_member(db, current_user.id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/{user_id}", response_model=MemberResponse)
async def get_member(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_approver),
):
    try:
        return await service.get_member(db, current_user.id, user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch("/{user_id}", response_model=MemberResponse)
async def update_member(
    user_id: UUID,
    payload: MemberUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_approver),
):
    try:
        return await service.update_member(db, current_user.id, user_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{user_id}/approve", response_model=MemberActionResponse)
async def approve_member(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_approver),
):
    try:
        return await service.approve_member(db, current_user.id, user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{user_id}/reject", response_model=MemberActionResponse)
async def reject_member(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_approver),
):
    try:
        return await service.reject_member(db, current_user.id, user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{user_id}/disable", response_model=MemberActionResponse)
async def disable_member(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_approver),
):
    try:
        return await service.disable_member(db, current_user.id, user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/{user_id}/reenable", response_model=MemberActionResponse)
async def reenable_member(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_approver),
):
    try:
        return await service.reenable_member(db, current_user.id, user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from learnify.auth.rbac import require_admin
from learnify.auth.schemas import CurrentUser
from learnify.core.exceptions import ServiceError
from learnify.db.session import get_db
from learnify.api.v1.schools.schemas import SchoolCreate

from .schemas import (
    AddSubjectsRequest,
    AddSubjectsResponse,
    CompleteSetupRequest,
    CreateClassesRequest,
    CreateClassesResponse,
    CreateSchoolResponse,
    InviteUsersRequest,
    InviteUsersResponse,
    StepResponse,
)
from . import service

router = APIRouter(prefix="/api/v1/onboarding", tags=["onboarding"])


@router.post(
    "/school",
    response_model=CreateSchoolResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_school(
    payload: SchoolCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
):
    """Step 0: create the admin's school and issue its SCH- invite code."""
    try:
        return await service.create_school(db, current_user.id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/subjects", response_model=AddSubjectsResponse)
async def add_subjects(
    payload: AddSubjectsRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
):
    try:
        return await service.add_subjects(db, current_user.id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/classes", response_model=CreateClassesResponse)
async def create_classes(
    payload: CreateClassesRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
):
    try:
        return await service.create_classes(db, current_user.id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/invitations", response_model=InviteUsersResponse)
async def invite_users(
    payload: InviteUsersRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
):
    try:
        return await service.invite_users(db, current_user.id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/invitations/skip", response_model=StepResponse)
async def skip_invitations(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
):
    try:
        return await service.skip_invite_step(db, current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/complete", response_model=StepResponse)
async def complete_setup(
    payload: CompleteSetupRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin),
):
    try:
        return await service.complete_school_setup(db, current_user.id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

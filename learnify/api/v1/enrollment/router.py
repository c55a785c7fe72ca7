from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from learnify.auth.rbac import require_capability
from learnify.auth.schemas import CurrentUser
from learnify.core.exceptions import ServiceError
from learnify.db.session import get_db

from .schemas import (
    ClassSelectionResponse,
    CompleteEnrollmentRequest,
    EnrollmentResponse,
    JoinClassRequest,
    SelectClassRequest,
    ToggleSubjectRequest,
    ToggleSubjectResponse,
)
from . import service

router = APIRouter(prefix="/api/v1/enrollment", tags=["enrollment"])

require_student = require_capability("can_enroll")


@router.post("/select-class", response_model=ClassSelectionResponse)
async def select_class(
    payload: SelectClassRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_student),
):
    try:
        return await service.select_class(db, current_user.id, payload.class_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/toggle-subject", response_model=ToggleSubjectResponse)
async def toggle_subject(
    payload: ToggleSubjectRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_student),
):
    try:
        return await service.toggle_subject_selection(db, current_user.id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/complete", response_model=EnrollmentResponse)
async def complete_enrollment(
    payload: CompleteEnrollmentRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_student),
):
    try:
        return await service.complete_student_onboarding(db, current_user.id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/join-class", response_model=EnrollmentResponse)
async def join_class(
    payload: JoinClassRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_student),
):
    try:
        return await service.join_class_with_code(db, current_user.id, payload.code)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

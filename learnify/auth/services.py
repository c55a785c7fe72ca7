from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from learnify.auth.models import RefreshToken, StudentSubject, User
from learnify.auth.schemas import (
    LoginRequest,
    LoginResponse,
    RouteResponse,
    SignupRequest,
    SignupResponse,
    UserInfo,
)
from learnify.auth.security import (
    create_access_token,
    create_refresh_token,
    hash_password,
    verify_password,
)
from learnify.core.activity import log_activity
from learnify.core.enums import OnboardingStep, UserRole, UserStatus
from learnify.core.exceptions import Conflict, Forbidden, NotFound, ServiceError, ValidationError
from learnify.core.invite_codes import redeem_school_code
from learnify.core.logging import get_logger
from learnify.core.models import ClassStudent
from learnify.core.route_guard import RouteSubject, next_allowed_view

logger = get_logger(__name__)

_BLOCKED_STATUSES = (UserStatus.REJECTED.value, UserStatus.DISABLED.value)


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(func.lower(User.email) == normalize_email(email)))
    return result.scalar_one_or_none()


async def get_user_or_404(db: AsyncSession, user_id: UUID) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


async def get_class_ids(db: AsyncSession, student_id: UUID) -> List[UUID]:
    result = await db.execute(
        select(ClassStudent.class_id)
        .where(ClassStudent.student_id == student_id)
        .order_by(ClassStudent.created_at)
    )
    return [row[0] for row in result.all()]


async def get_subject_ids(db: AsyncSession, student_id: UUID) -> List[UUID]:
    result = await db.execute(select(StudentSubject.subject_id).where(StudentSubject.student_id == student_id))
    return [row[0] for row in result.all()]


async def build_user_info(db: AsyncSession, user: User) -> UserInfo:
    class_ids: List[UUID] = []
    subject_ids: List[UUID] = []
    if user.role == UserRole.STUDENT.value:
        class_ids = await get_class_ids(db, user.id)
        subject_ids = await get_subject_ids(db, user.id)
    return UserInfo(
        id=user.id,
        email=user.email,
        display_name=user.display_name,
        role=user.role,
        status=user.status,
        school_id=user.school_id,
        school_name=user.school_name,
        onboarding_step=user.onboarding_step,
        class_ids=class_ids,
        subject_ids=subject_ids,
        child_student_id=user.child_student_id,
    )


def route_subject_from_info(info: UserInfo) -> RouteSubject:
    return RouteSubject(
        role=info.role,
        status=info.status,
        school_id=info.school_id,
        onboarding_step=info.onboarding_step,
        class_ids=frozenset(info.class_ids),
    )


async def build_route_subject(db: AsyncSession, user: User) -> RouteSubject:
    return route_subject_from_info(await build_user_info(db, user))


async def _claim_invited_profile(db: AsyncSession, user: User, payload: SignupRequest) -> User:
    """Invited placeholder profiles keep the school, role and pending status chosen by the inviting admin."""
    user.password_hash = hash_password(payload.password)
    user.display_name = payload.display_name
    logger.info("invited_profile_claimed", user_id=str(user.id), school_id=str(user.school_id))
    if user.school_id is not None:
        await log_activity(
            db,
            user.school_id,
            "user",
            user.id,
            "invitation_accepted",
            to_status=user.status,
            performed_by=user.id,
            performed_by_role=user.role,
            message=f"{user.display_name} accepted the invitation",
        )
    return user


async def _create_profile(db: AsyncSession, payload: SignupRequest) -> User:
    role = payload.role.value
    user = User(
        email=normalize_email(payload.email),
        display_name=payload.display_name,
        password_hash=hash_password(payload.password),
        role=role,
    )

    if role == UserRole.ADMIN.value:
        user.status = UserStatus.ACTIVE.value
        user.onboarding_step = int(OnboardingStep.CREATE_SCHOOL)
        db.add(user)
        await db.flush()
        return user

    if role == UserRole.PARENT.value:
        child = await db.get(User, payload.child_student_id)
        if child is None or child.role != UserRole.STUDENT.value:
            raise NotFound("Student not found")
        if child.school_id is None:
            raise ValidationError("Student is not a member of any school yet")
        user.child_student_id = child.id
        user.school_id = child.school_id
        user.school_name = child.school_name
        user.status = UserStatus.ACTIVE.value
        db.add(user)
        await db.flush()
        await log_activity(
            db,
            user.school_id,
            "user",
            user.id,
            "parent_registered",
            to_status=user.status,
            performed_by=user.id,
            performed_by_role=role,
            message=f"{user.display_name} registered as parent of {child.display_name}",
        )
        return user

    # teacher / student: active without a school until they join one, then pending approval
    user.status = UserStatus.ACTIVE.value
    if payload.invite_code:
        school = await redeem_school_code(db, payload.invite_code)
        user.school_id = school.id
        user.school_name = school.name
        user.status = UserStatus.PENDING_VERIFICATION.value
    db.add(user)
    await db.flush()
    if user.school_id is not None:
        await log_activity(
            db,
            user.school_id,
            "user",
            user.id,
            "member_joined",
            to_status=user.status,
            performed_by=user.id,
            performed_by_role=role,
            message=f"{user.display_name} joined as {role}",
        )
    return user


async def signup_user(db: AsyncSession, payload: SignupRequest) -> SignupResponse:
    existing = await get_user_by_email(db, payload.email)
    if existing is not None and existing.password_hash:
        raise Conflict("Email is already in use")

    try:
        if existing is not None:
            user = await _claim_invited_profile(db, existing, payload)
        else:
            user = await _create_profile(db, payload)
        await db.commit()
        await db.refresh(user)
    except IntegrityError as e:
        await db.rollback()
        raise Conflict("Email is already in use") from e

    logger.info("user_signed_up", user_id=str(user.id), role=user.role, status=user.status)
    info = await build_user_info(db, user)
    return SignupResponse(
        success=True,
        message="Account created successfully",
        user=info,
        next_view=next_allowed_view(route_subject_from_info(info)),
    )


async def login_user(db: AsyncSession, payload: LoginRequest) -> LoginResponse:
    # 1. Find user by email (case-insensitive)
    user = await get_user_by_email(db, payload.email)
    if user is None:
        raise ServiceError("Invalid credentials", status.HTTP_401_UNAUTHORIZED)

    # 2. Verify password hash (placeholder profiles have none)
    if not verify_password(payload.password, user.password_hash):
        raise ServiceError("Invalid credentials", status.HTTP_401_UNAUTHORIZED)

    # 3. Rejected and disabled users cannot obtain a session
    if user.status in _BLOCKED_STATUSES:
        raise Forbidden(f"Account is {user.status}")

    issued_at = datetime.now(timezone.utc)
    access_token = create_access_token(user.id, user.role, user.school_id, issued_at=issued_at)

    refresh_token_str, refresh_expires_at = create_refresh_token()
    db.add(RefreshToken(user_id=user.id, token=refresh_token_str, expires_at=refresh_expires_at))
    try:
        await db.commit()
    except Exception as e:
        await db.rollback()
        raise ServiceError("Failed to persist authentication state") from e

    logger.info("user_logged_in", user_id=str(user.id), role=user.role)
    info = await build_user_info(db, user)
    return LoginResponse(
        access_token=access_token,
        refresh_token=refresh_token_str,
        user=info,
        next_view=next_allowed_view(route_subject_from_info(info)),
        issued_at=issued_at,
    )


async def get_profile(db: AsyncSession, user_id: UUID) -> UserInfo:
    user = await get_user_or_404(db, user_id)
    return await build_user_info(db, user)


async def get_route(db: AsyncSession, user_id: Optional[UUID]) -> RouteResponse:
    if user_id is None:
        return RouteResponse(view=next_allowed_view(None))
    user = await db.get(User, user_id)
    if user is None:
        return RouteResponse(view=next_allowed_view(None))
    subject = await build_route_subject(db, user)
    return RouteResponse(view=next_allowed_view(subject), onboarding_step=user.onboarding_step)

from typing import List
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from learnify.auth.models import User
from learnify.auth.rbac import has_capability
from learnify.auth.services import get_user_or_404
from learnify.core.activity import list_activity, log_activity
from learnify.core.enums import UserRole, UserStatus
from learnify.core.exceptions import Conflict, Forbidden, NotFound
from learnify.core.invite_codes import generate_school_code, redeem_school_code
from learnify.core.logging import get_logger
from learnify.core.models import School

from .schemas import (
    ActivityItem,
    JoinSchoolResponse,
    SchoolInviteCodeResponse,
    SchoolPreview,
    SchoolResponse,
    SchoolUpdate,
)

logger = get_logger(__name__)

# Fields only the creator admin may change
_CREATOR_FIELDS = ("name", "is_exam_mode_active")


def _to_response(s: School) -> SchoolResponse:
    return SchoolResponse(
        id=s.id,
        name=s.name,
        admin_id=s.admin_id,
        invite_code=s.invite_code,
        school_type=s.school_type,
        country=s.country,
        phone_number=s.phone_number,
        logo_url=s.logo_url,
        setup_complete=s.setup_complete,
        is_exam_mode_active=s.is_exam_mode_active,
        created_at=s.created_at,
    )


def is_creator(school: School, user: User) -> bool:
    return school.admin_id == user.id


async def get_school_model(db: AsyncSession, school_id: UUID) -> School:
    school = await db.get(School, school_id)
    if school is None:
        raise NotFound("School not found")
    return school


async def _load_admin_school(db: AsyncSession, user_id: UUID):
    user = await get_user_or_404(db, user_id)
    if not has_capability(user.role, "can_manage_school"):
        raise Forbidden("Only school admins can change school settings")
    if user.school_id is None:
        raise NotFound("School not found")
    school = await get_school_model(db, user.school_id)
    return user, school


async def get_my_school(db: AsyncSession, user_id: UUID) -> SchoolResponse:
    user = await get_user_or_404(db, user_id)
    if user.school_id is None:
        raise NotFound("School not found")
    return _to_response(await get_school_model(db, user.school_id))


async def update_school(db: AsyncSession, user_id: UUID, payload: SchoolUpdate) -> SchoolResponse:
    user, school = await _load_admin_school(db, user_id)
    data = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not data:
        return _to_response(school)

    if any(field in data for field in _CREATOR_FIELDS) and not is_creator(school, user):
        raise Forbidden("Only the school creator can rename the school or toggle exam mode")

    changed: List[str] = []
    for field, value in data.items():
        if field == "school_type":
            value = value.value
        if getattr(school, field) != value:
            setattr(school, field, value)
            changed.append(field)
    if not changed:
        return _to_response(school)

    if "name" in changed:
        # Denormalized on member profiles
        members = await db.execute(
            update(User).where(User.school_id == school.id).values(school_name=school.name)
        )
        logger.info("school_renamed", school_id=str(school.id), members_updated=members.rowcount)

    await log_activity(
        db,
        school.id,
        "school",
        school.id,
        "school_settings_updated",
        performed_by=user.id,
        performed_by_role=user.role,
        message=f"Updated {', '.join(changed)}",
    )
    await db.commit()
    await db.refresh(school)
    logger.info("school_updated", school_id=str(school.id), fields=changed)
    return _to_response(school)


async def regenerate_school_code(db: AsyncSession, user_id: UUID) -> SchoolInviteCodeResponse:
    """Creator-only. The previous code stops resolving as soon as this commits."""
    user, school = await _load_admin_school(db, user_id)
    if not is_creator(school, user):
        raise Forbidden("Only the school creator can regenerate the invite code")
    school.invite_code = await generate_school_code(db)
    await log_activity(
        db,
        school.id,
        "school",
        school.id,
        "invite_code_regenerated",
        performed_by=user.id,
        performed_by_role=user.role,
    )
    await db.commit()
    logger.info("school_code_regenerated", school_id=str(school.id))
    return SchoolInviteCodeResponse(school_id=school.id, invite_code=school.invite_code)


async def preview_school_code(db: AsyncSession, code: str) -> SchoolPreview:
    school = await redeem_school_code(db, code)
    return SchoolPreview(id=school.id, name=school.name, school_type=school.school_type, country=school.country)


async def join_school_with_code(db: AsyncSession, user_id: UUID, code: str) -> JoinSchoolResponse:
    """
    Resolve a school code and attach the caller in one transaction.

    Non-admins land in pending_verification until an admin approves them. Admins join as
    non-creator admins with no setup wizard.
    """
    user = await get_user_or_404(db, user_id)
    school = await redeem_school_code(db, code)

    if user.school_id == school.id:
        return JoinSchoolResponse(
            message="Already a member of this school",
            already_in_state=True,
            school_id=school.id,
            school_name=school.name,
            status=user.status,
        )
    if user.school_id is not None:
        raise Conflict("User already belongs to another school")

    from_status = user.status
    user.school_id = school.id
    user.school_name = school.name
    if user.role == UserRole.ADMIN.value:
        user.onboarding_step = None
    else:
        user.status = UserStatus.PENDING_VERIFICATION.value

    await log_activity(
        db,
        school.id,
        "user",
        user.id,
        "member_joined",
        from_status=from_status,
        to_status=user.status,
        performed_by=user.id,
        performed_by_role=user.role,
        message=f"{user.display_name} joined as {user.role}",
    )
    await db.commit()
    logger.info("school_joined", school_id=str(school.id), user_id=str(user.id), role=user.role)
    return JoinSchoolResponse(
        message="Joined school",
        school_id=school.id,
        school_name=school.name,
        status=user.status,
    )


async def get_school_activity(db: AsyncSession, school_id: UUID, limit: int = 50) -> List[ActivityItem]:
    entries = await list_activity(db, school_id, limit=limit)
    return [ActivityItem.model_validate(e) for e in entries]

"""
Admin setup wizard.

Steps run strictly forward: create-school (0) -> add-subjects (1) -> create-classes (2)
-> invite-users (3) -> configure-settings (4) -> done (null). Each step checks the stored
step before touching anything and advances it in the same commit as its data, so a failed
step leaves both the data and the counter unchanged.
"""

from typing import Iterable, Set
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from learnify.auth.models import User
from learnify.auth.rbac import has_capability
from learnify.auth.services import get_user_by_email, get_user_or_404, normalize_email
from learnify.core.activity import log_activity
from learnify.core.enums import OnboardingStep, UserRole, UserStatus
from learnify.core.exceptions import (
    AlreadyOnboarded,
    Conflict,
    Forbidden,
    ServiceError,
    StateError,
    ValidationError,
)
from learnify.core.invite_codes import generate_school_code
from learnify.core.logging import get_logger
from learnify.core.models import School, SchoolClass, Subject
from learnify.api.v1.classes import service as class_service
from learnify.api.v1.schools.schemas import SchoolCreate
from learnify.api.v1.subjects import service as subject_service

from .schemas import (
    AddSubjectsRequest,
    AddSubjectsResponse,
    CompleteSetupRequest,
    CreateClassesRequest,
    CreateClassesResponse,
    CreatedClass,
    CreatedSubject,
    CreateSchoolResponse,
    InviteUsersRequest,
    InviteUsersResponse,
    StepResponse,
)

logger = get_logger(__name__)

_INVITABLE_ROLES = (UserRole.TEACHER, UserRole.STUDENT)


async def _load_admin(db: AsyncSession, user_id: UUID) -> User:
    user = await get_user_or_404(db, user_id)
    if not has_capability(user.role, "can_manage_school"):
        raise Forbidden("Only admins can run school setup")
    return user


def _require_school(admin: User) -> None:
    if admin.school_id is None:
        raise StateError("Create a school first")


def _step_applied(admin: User, step: OnboardingStep) -> bool:
    """True once the wizard has moved past `step` (or finished)."""
    return admin.onboarding_step is None or admin.onboarding_step > step


def _ensure_step(admin: User, step: OnboardingStep) -> None:
    if admin.onboarding_step != step:
        raise StateError(
            f"Onboarding is at step {admin.onboarding_step}, "
            f"expected step {int(step)} ({step.name.lower()})"
        )


async def _advance(db: AsyncSession, admin: User, step: OnboardingStep, message: str) -> None:
    """Move the admin one step forward (past the last step means done). Caller must commit."""
    next_step = int(step) + 1
    admin.onboarding_step = next_step if next_step <= max(OnboardingStep) else None
    await log_activity(
        db,
        admin.school_id,
        "onboarding",
        admin.id,
        f"onboarding_{step.name.lower()}",
        from_status=str(int(step)),
        to_status=str(admin.onboarding_step) if admin.onboarding_step is not None else "complete",
        performed_by=admin.id,
        performed_by_role=admin.role,
        message=message,
    )


async def _existing_names(db: AsyncSession, model, school_id: UUID) -> Set[str]:
    result = await db.execute(select(model.name).where(model.school_id == school_id))
    return {row[0].strip().lower() for row in result.all()}


def _all_present(names: Iterable[str], existing: Set[str]) -> bool:
    wanted = {n.strip().lower() for n in names}
    return bool(wanted) and wanted <= existing


async def create_school(db: AsyncSession, user_id: UUID, payload: SchoolCreate) -> CreateSchoolResponse:
    admin = await _load_admin(db, user_id)
    if admin.school_id is not None:
        raise AlreadyOnboarded()

    try:
        school = School(
            name=payload.name.strip(),
            admin_id=admin.id,
            invite_code=await generate_school_code(db),
            school_type=payload.school_type.value,
            country=payload.country.strip(),
            phone_number=payload.phone_number,
            logo_url=payload.logo_url,
            setup_complete=False,
            is_exam_mode_active=False,
        )
        db.add(school)
        await db.flush()  # to populate school.id

        admin.school_id = school.id
        admin.school_name = school.name
        admin.onboarding_step = int(OnboardingStep.CREATE_SCHOOL)
        await log_activity(
            db,
            school.id,
            "school",
            school.id,
            "school_created",
            performed_by=admin.id,
            performed_by_role=admin.role,
            message=f"School {school.name} created",
        )
        await _advance(db, admin, OnboardingStep.CREATE_SCHOOL, "School created")
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise Conflict("Conflict while creating school") from e

    logger.info("school_created", school_id=str(school.id), admin_id=str(admin.id), invite_code=school.invite_code)
    return CreateSchoolResponse(
        school_id=school.id,
        invite_code=school.invite_code,
        onboarding_step=admin.onboarding_step,
    )


async def add_subjects(db: AsyncSession, user_id: UUID, payload: AddSubjectsRequest) -> AddSubjectsResponse:
    admin = await _load_admin(db, user_id)
    _require_school(admin)
    step = OnboardingStep.ADD_SUBJECTS

    if _step_applied(admin, step):
        existing = await _existing_names(db, Subject, admin.school_id)
        if _all_present((s.name for s in payload.subjects), existing):
            return AddSubjectsResponse(
                message="Subjects already added",
                already_in_state=True,
                onboarding_step=admin.onboarding_step,
            )
    _ensure_step(admin, step)
    if not payload.subjects:
        raise ValidationError("Add at least one subject")

    created = await subject_service.add_subjects(db, admin.school_id, payload.subjects)
    await _advance(db, admin, step, f"{len(created)} subject(s) added")
    await db.commit()

    logger.info("onboarding_subjects_added", school_id=str(admin.school_id), count=len(created))
    return AddSubjectsResponse(
        message="Subjects added",
        onboarding_step=admin.onboarding_step,
        subjects=[CreatedSubject(id=s.id, name=s.name, is_compulsory=s.is_compulsory) for s in created],
    )


async def create_classes(db: AsyncSession, user_id: UUID, payload: CreateClassesRequest) -> CreateClassesResponse:
    admin = await _load_admin(db, user_id)
    _require_school(admin)
    step = OnboardingStep.CREATE_CLASSES

    if _step_applied(admin, step):
        existing = await _existing_names(db, SchoolClass, admin.school_id)
        if _all_present((c.name for c in payload.classes), existing):
            return CreateClassesResponse(
                message="Classes already created",
                already_in_state=True,
                onboarding_step=admin.onboarding_step,
            )
    _ensure_step(admin, step)
    if not payload.classes:
        raise ValidationError("Create at least one class")

    try:
        created = await class_service.create_class_records(db, admin.school_id, payload.classes)
        await _advance(db, admin, step, f"{len(created)} class(es) created")
        await db.commit()
    except ServiceError:
        await db.rollback()
        raise

    logger.info("onboarding_classes_created", school_id=str(admin.school_id), count=len(created))
    return CreateClassesResponse(
        message="Classes created",
        onboarding_step=admin.onboarding_step,
        classes=[
            CreatedClass(id=c.id, name=c.name, class_type=c.class_type, invite_code=c.invite_code)
            for c in created
        ],
    )


async def _invitees_present(db: AsyncSession, school_id: UUID, emails: Iterable[str]) -> bool:
    wanted = {normalize_email(e) for e in emails}
    if not wanted:
        return False
    result = await db.execute(select(User.email).where(User.school_id == school_id))
    present = {normalize_email(row[0]) for row in result.all()}
    return wanted <= present


async def invite_users(db: AsyncSession, user_id: UUID, payload: InviteUsersRequest) -> InviteUsersResponse:
    """
    Attach invitees to the admin's school as pending members.

    Unknown emails get a placeholder profile (no password) that signup later claims.
    Any invitee that cannot be attached aborts the whole step.
    """
    admin = await _load_admin(db, user_id)
    _require_school(admin)
    step = OnboardingStep.INVITE_USERS

    if _step_applied(admin, step):
        if await _invitees_present(db, admin.school_id, (u.email for u in payload.users)):
            return InviteUsersResponse(
                message="Users already invited",
                already_in_state=True,
                onboarding_step=admin.onboarding_step,
            )
    _ensure_step(admin, step)
    if not payload.users:
        raise ValidationError("Invite at least one user, or skip this step")
    bad_roles = [u.email for u in payload.users if u.role not in _INVITABLE_ROLES]
    if bad_roles:
        raise ValidationError(f"Only teachers and students can be invited: {', '.join(bad_roles)}")

    invited = linked = unchanged = 0
    seen: Set[str] = set()
    try:
        for item in payload.users:
            email = normalize_email(item.email)
            if email in seen:
                continue
            seen.add(email)
            role = item.role.value

            existing = await get_user_by_email(db, email)
            if existing is None:
                db.add(
                    User(
                        email=email,
                        display_name=item.display_name,
                        password_hash=None,
                        role=role,
                        school_id=admin.school_id,
                        school_name=admin.school_name,
                        status=UserStatus.PENDING_VERIFICATION.value,
                    )
                )
                invited += 1
            elif existing.school_id == admin.school_id:
                unchanged += 1
            elif existing.role == UserRole.ADMIN.value:
                raise Conflict(f"{email} is an admin account and cannot be invited")
            elif existing.school_id is not None:
                raise Conflict(f"{email} already belongs to another school")
            elif existing.role != role:
                raise Conflict(f"{email} is registered as {existing.role}, not {role}")
            else:
                existing.school_id = admin.school_id
                existing.school_name = admin.school_name
                existing.status = UserStatus.PENDING_VERIFICATION.value
                linked += 1

        await db.flush()
        await _advance(
            db, admin, step, f"{invited} invited, {linked} linked, {unchanged} already members"
        )
        await db.commit()
    except ServiceError:
        await db.rollback()
        raise
    except IntegrityError as e:
        await db.rollback()
        raise Conflict("Conflict while inviting users") from e

    logger.info(
        "onboarding_users_invited",
        school_id=str(admin.school_id),
        invited=invited,
        linked=linked,
        unchanged=unchanged,
    )
    return InviteUsersResponse(
        message="Users invited",
        onboarding_step=admin.onboarding_step,
        invited=invited,
        linked=linked,
        unchanged=unchanged,
    )


async def skip_invite_step(db: AsyncSession, user_id: UUID) -> StepResponse:
    admin = await _load_admin(db, user_id)
    _require_school(admin)
    step = OnboardingStep.INVITE_USERS
    if _step_applied(admin, step):
        return StepResponse(
            message="Invite step already passed",
            already_in_state=True,
            onboarding_step=admin.onboarding_step,
        )
    _ensure_step(admin, step)
    await _advance(db, admin, step, "Invite step skipped")
    await db.commit()
    logger.info("onboarding_invites_skipped", school_id=str(admin.school_id))
    return StepResponse(message="Invite step skipped", onboarding_step=admin.onboarding_step)


async def complete_school_setup(db: AsyncSession, user_id: UUID, payload: CompleteSetupRequest) -> StepResponse:
    admin = await _load_admin(db, user_id)
    _require_school(admin)
    school = await db.get(School, admin.school_id)
    step = OnboardingStep.CONFIGURE_SETTINGS

    if admin.onboarding_step is None and school is not None and school.setup_complete:
        return StepResponse(message="School setup already complete", already_in_state=True)
    _ensure_step(admin, step)
    if school is None:
        raise StateError("Create a school first")

    school.is_exam_mode_active = payload.is_exam_mode_active
    school.setup_complete = True
    await _advance(db, admin, step, "School setup complete")
    await db.commit()
    logger.info(
        "school_setup_completed",
        school_id=str(school.id),
        is_exam_mode_active=school.is_exam_mode_active,
    )
    return StepResponse(message="School setup complete", onboarding_step=None)

from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from learnify.auth.models import User
from learnify.auth.rbac import has_capability
from learnify.auth.security import hash_password
from learnify.auth.services import get_class_ids, get_user_by_email, get_user_or_404, normalize_email
from learnify.core.activity import log_activity
from learnify.core.enums import UserRole, UserStatus
from learnify.core.exceptions import Conflict, Forbidden, NotFound, ValidationError
from learnify.core.logging import get_logger

from .lifecycle import APPROVE, DISABLE, REENABLE, REJECT, plan_transition
from .schemas import MemberActionResponse, MemberCreate, MemberResponse, MemberUpdate

logger = get_logger(__name__)

_CREATABLE_ROLES = (UserRole.TEACHER, UserRole.STUDENT)

_SUCCESS_MESSAGES = {
    APPROVE: "Member approved",
    REJECT: "Member rejected",
    DISABLE: "Member disabled",
    REENABLE: "Member re-enabled",
}


def _to_response(u: User) -> MemberResponse:
    return MemberResponse(
        id=u.id,
        email=u.email,
        display_name=u.display_name,
        role=u.role,
        status=u.status,
        school_id=u.school_id,
        registered=bool(u.password_hash),
        created_at=u.created_at,
    )


async def _load_approver(db: AsyncSession, actor_id: UUID) -> User:
    actor = await get_user_or_404(db, actor_id)
    if not has_capability(actor.role, "can_approve") or actor.school_id is None:
        raise Forbidden("Only school admins can manage members")
    return actor


async def _load_target(db: AsyncSession, actor: User, user_id: UUID) -> User:
    target = await db.get(User, user_id)
    if target is None or target.school_id != actor.school_id:
        raise NotFound("Member not found")
    return target


async def _load_pair(db: AsyncSession, actor_id: UUID, user_id: UUID) -> Tuple[User, User]:
    actor = await _load_approver(db, actor_id)
    target = await _load_target(db, actor, user_id)
    return actor, target


async def change_member_status(
    db: AsyncSession,
    actor_id: UUID,
    user_id: UUID,
    action: str,
) -> MemberActionResponse:
    actor, target = await _load_pair(db, actor_id, user_id)
    if target.role == UserRole.ADMIN.value:
        raise Forbidden("Admin accounts are not subject to approval")

    from_status = target.status
    to_status = plan_transition(from_status, action)
    if to_status is None:
        return MemberActionResponse(
            message=f"Member is already {from_status}",
            already_in_state=True,
            member=_to_response(target),
        )

    target.status = to_status
    await log_activity(
        db,
        actor.school_id,
        "user",
        target.id,
        f"member_{action}",
        from_status=from_status,
        to_status=to_status,
        performed_by=actor.id,
        performed_by_role=actor.role,
        message=f"{target.display_name}: {from_status} -> {to_status}",
    )
    await db.commit()
    await db.refresh(target)

    logger.info(
        "member_status_changed",
        school_id=str(actor.school_id),
        member_id=str(target.id),
        action=action,
        from_status=from_status,
        to_status=to_status,
    )
    return MemberActionResponse(message=_SUCCESS_MESSAGES[action], member=_to_response(target))


async def approve_member(db: AsyncSession, actor_id: UUID, user_id: UUID) -> MemberActionResponse:
    return await change_member_status(db, actor_id, user_id, APPROVE)


async def reject_member(db: AsyncSession, actor_id: UUID, user_id: UUID) -> MemberActionResponse:
    return await change_member_status(db, actor_id, user_id, REJECT)


async def disable_member(db: AsyncSession, actor_id: UUID, user_id: UUID) -> MemberActionResponse:
    return await change_member_status(db, actor_id, user_id, DISABLE)


async def reenable_member(db: AsyncSession, actor_id: UUID, user_id: UUID) -> MemberActionResponse:
    return await change_member_status(db, actor_id, user_id, REENABLE)


async def list_members(
    db: AsyncSession,
    actor_id: UUID,
    status: Optional[str] = None,
    role: Optional[str] = None,
) -> List[MemberResponse]:
    actor = await _load_approver(db, actor_id)
    stmt = select(User).where(User.school_id == actor.school_id)
    if status:
        stmt = stmt.where(User.status == status)
    if role:
        stmt = stmt.where(User.role == role)
    result = await db.execute(stmt.order_by(User.created_at, User.email))
    return [_to_response(u) for u in result.scalars().all()]


async def get_member(db: AsyncSession, actor_id: UUID, user_id: UUID) -> MemberResponse:
    _, target = await _load_pair(db, actor_id, user_id)
    return _to_response(target)


async def create_member(db: AsyncSession, actor_id: UUID, payload: MemberCreate) -> MemberResponse:
    """Admin-created accounts skip approval and are active immediately."""
    actor = await _load_approver(db, actor_id)
    if payload.role not in _CREATABLE_ROLES:
        raise ValidationError("Only teacher and student accounts can be created here")
    if await get_user_by_email(db, payload.email) is not None:
        raise Conflict("Email is already in use")

    user = User(
        email=normalize_email(payload.email),
        display_name=payload.display_name,
        password_hash=hash_password(payload.password),
        role=payload.role.value,
        school_id=actor.school_id,
        school_name=actor.school_name,
        status=UserStatus.ACTIVE.value,
    )
    try:
        db.add(user)
        await db.flush()
        await log_activity(
            db,
            actor.school_id,
            "user",
            user.id,
            "member_created",
            to_status=user.status,
            performed_by=actor.id,
            performed_by_role=actor.role,
            message=f"{user.display_name} added as {user.role}",
        )
        await db.commit()
        await db.refresh(user)
    except IntegrityError as e:
        await db.rollback()
        raise Conflict("Email is already in use") from e

    logger.info("member_created", school_id=str(actor.school_id), member_id=str(user.id), role=user.role)
    return _to_response(user)


async def update_member(db: AsyncSession, actor_id: UUID, user_id: UUID, payload: MemberUpdate) -> MemberResponse:
    """Change a member's display name or switch them between teacher and student. Status is left to the gate."""
    actor, target = await _load_pair(db, actor_id, user_id)
    if target.role == UserRole.ADMIN.value:
        raise Forbidden("Admin accounts cannot be edited here")

    changes = []
    if payload.display_name is not None and payload.display_name != target.display_name:
        changes.append(f"name {target.display_name} -> {payload.display_name}")
        target.display_name = payload.display_name

    if payload.role is not None and payload.role.value != target.role:
        if payload.role not in _CREATABLE_ROLES:
            raise ValidationError("Members can only be switched between teacher and student")
        if target.role == UserRole.STUDENT.value and await get_class_ids(db, target.id):
            raise Conflict("Remove the student from their classes before changing the role")
        changes.append(f"role {target.role} -> {payload.role.value}")
        target.role = payload.role.value

    if not changes:
        return _to_response(target)

    await log_activity(
        db,
        actor.school_id,
        "user",
        target.id,
        "member_updated",
        performed_by=actor.id,
        performed_by_role=actor.role,
        message=f"{target.display_name}: {', '.join(changes)}",
    )
    await db.commit()
    await db.refresh(target)

    logger.info("member_updated", school_id=str(actor.school_id), member_id=str(target.id), role=target.role)
    return _to_response(target)

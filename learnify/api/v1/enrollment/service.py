from typing import Iterable, List, Set
from uuid import UUID

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from learnify.auth.models import StudentSubject, User
from learnify.auth.rbac import has_capability
from learnify.auth.services import get_class_ids, get_subject_ids, get_user_or_404
from learnify.core.activity import log_activity
from learnify.core.enums import ClassType, UserStatus
from learnify.core.exceptions import Conflict, Forbidden, NotFound, StateError, ValidationError
from learnify.core.invite_codes import redeem_class_code
from learnify.core.logging import get_logger
from learnify.core.models import ClassStudent, SchoolClass
from learnify.api.v1.classes import service as class_service
from learnify.api.v1.subjects import service as subject_service

from .schemas import (
    ClassSelectionResponse,
    CompleteEnrollmentRequest,
    EnrollmentResponse,
    ToggleSubjectRequest,
    ToggleSubjectResponse,
)
from .selection import start_selection, toggle_subject

logger = get_logger(__name__)


def _sorted_ids(ids: Iterable[UUID]) -> List[UUID]:
    return sorted(ids, key=str)


async def _load_student(db: AsyncSession, user_id: UUID) -> User:
    user = await get_user_or_404(db, user_id)
    if not has_capability(user.role, "can_enroll"):
        raise Forbidden("Only students can enroll in classes")
    return user


async def _class_in_school(db: AsyncSession, student: User, class_id: UUID) -> SchoolClass:
    if student.school_id is None:
        raise NotFound("Class not found")
    school_class = await class_service.get_class_model(db, student.school_id, class_id)
    if school_class is None:
        raise NotFound("Class not found")
    return school_class


async def _compulsory_for(db: AsyncSession, school_class: SchoolClass) -> Set[UUID]:
    # Only main classes carry compulsory subjects
    if school_class.class_type != ClassType.MAIN.value:
        return set()
    return await class_service.get_compulsory_ids(db, school_class.id)


async def select_class(db: AsyncSession, user_id: UUID, class_id: UUID) -> ClassSelectionResponse:
    """Read-only: what the student must and may pick for this class."""
    student = await _load_student(db, user_id)
    school_class = await _class_in_school(db, student, class_id)
    compulsory = await _compulsory_for(db, school_class)
    subjects = await subject_service.list_subject_models(db, student.school_id)
    return ClassSelectionResponse(
        class_id=school_class.id,
        class_type=school_class.class_type,
        compulsory_subject_ids=_sorted_ids(compulsory),
        available_subject_ids=[s.id for s in subjects],
    )


async def toggle_subject_selection(
    db: AsyncSession,
    user_id: UUID,
    payload: ToggleSubjectRequest,
) -> ToggleSubjectResponse:
    """Stateless toggle; the compulsory set is resolved here, never trusted from the client."""
    student = await _load_student(db, user_id)
    school_class = await _class_in_school(db, student, payload.class_id)
    compulsory = await _compulsory_for(db, school_class)

    selection = start_selection(school_class.id, compulsory, payload.selected_subject_ids)
    toggled = toggle_subject(selection, payload.subject_id)
    return ToggleSubjectResponse(
        selected_subject_ids=_sorted_ids(toggled.selected),
        compulsory_subject_ids=_sorted_ids(toggled.compulsory),
        changed=toggled != selection,
    )


async def complete_student_onboarding(
    db: AsyncSession,
    user_id: UUID,
    payload: CompleteEnrollmentRequest,
) -> EnrollmentResponse:
    """
    Enroll an approved student in their first class.

    The stored subject set is the requested subjects plus the class's compulsory subjects.
    """
    student = await _load_student(db, user_id)
    if student.status != UserStatus.ACTIVE.value:
        raise StateError("Student must be approved before enrolling")
    if await get_class_ids(db, student.id):
        raise StateError("Student is already enrolled in a class")

    school_class = await _class_in_school(db, student, payload.class_id)
    requested = await subject_service.ensure_subjects_in_school(db, student.school_id, payload.subject_ids)
    compulsory = await _compulsory_for(db, school_class)
    final = start_selection(school_class.id, compulsory, requested).final_subject_ids

    if not final and await subject_service.count_subjects(db, student.school_id) > 0:
        raise ValidationError("Select at least one subject")

    # Last write wins: replace any membership written by a concurrent completion
    await db.execute(delete(ClassStudent).where(ClassStudent.student_id == student.id))
    await db.execute(delete(StudentSubject).where(StudentSubject.student_id == student.id))
    db.add(ClassStudent(class_id=school_class.id, student_id=student.id))
    for subject_id in final:
        db.add(StudentSubject(student_id=student.id, subject_id=subject_id))
    try:
        await log_activity(
            db,
            student.school_id,
            "user",
            student.id,
            "student_enrolled",
            performed_by=student.id,
            performed_by_role=student.role,
            message=f"{student.display_name} enrolled in {school_class.name} with {len(final)} subject(s)",
        )
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise Conflict("Enrollment changed while saving, please retry") from e

    logger.info(
        "student_enrolled",
        student_id=str(student.id),
        class_id=str(school_class.id),
        subjects=len(final),
    )
    return EnrollmentResponse(
        message="Enrollment complete",
        class_ids=[school_class.id],
        subject_ids=_sorted_ids(final),
    )


async def join_class_with_code(db: AsyncSession, user_id: UUID, code: str) -> EnrollmentResponse:
    """Redeem a class code and enroll in one transaction. Rejoining is a successful no-op."""
    student = await _load_student(db, user_id)
    school_class = await redeem_class_code(db, code)
    if student.school_id is None or school_class.school_id != student.school_id:
        raise Forbidden("This class belongs to a different school")

    added = await class_service.enroll_student(db, student, school_class)
    if added:
        await log_activity(
            db,
            student.school_id,
            "class",
            school_class.id,
            "student_joined_class",
            performed_by=student.id,
            performed_by_role=student.role,
            message=f"{student.display_name} joined {school_class.name}",
        )
        await db.commit()
        logger.info("class_joined", student_id=str(student.id), class_id=str(school_class.id))

    return EnrollmentResponse(
        message="Joined class" if added else "Already enrolled in this class",
        already_in_state=not added,
        class_ids=await get_class_ids(db, student.id),
        subject_ids=_sorted_ids(await get_subject_ids(db, student.id)),
    )

from typing import Iterable, List, Optional, Set
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from learnify.auth.models import StudentSubject, User
from learnify.core.activity import log_activity
from learnify.core.enums import ClassType, UserRole
from learnify.core.exceptions import Conflict, NotFound, ValidationError
from learnify.core.invite_codes import generate_class_code, redeem_class_code
from learnify.core.logging import get_logger
from learnify.core.models import ClassCompulsorySubject, ClassStudent, SchoolClass
from learnify.api.v1.subjects import service as subject_service

from .schemas import (
    ClassCreate,
    ClassInviteCodeResponse,
    ClassPreview,
    ClassResponse,
    ClassUpdate,
)

logger = get_logger(__name__)


async def get_compulsory_ids(db: AsyncSession, class_id: UUID) -> Set[UUID]:
    result = await db.execute(
        select(ClassCompulsorySubject.subject_id).where(ClassCompulsorySubject.class_id == class_id)
    )
    return {row[0] for row in result.all()}


async def get_student_ids(db: AsyncSession, class_id: UUID) -> List[UUID]:
    result = await db.execute(
        select(ClassStudent.student_id)
        .where(ClassStudent.class_id == class_id)
        .order_by(ClassStudent.created_at)
    )
    return [row[0] for row in result.all()]


async def _to_response(db: AsyncSession, c: SchoolClass) -> ClassResponse:
    return ClassResponse(
        id=c.id,
        school_id=c.school_id,
        name=c.name,
        class_type=c.class_type,
        subject_id=c.subject_id,
        teacher_id=c.teacher_id,
        invite_code=c.invite_code,
        compulsory_subject_ids=sorted(await get_compulsory_ids(db, c.id), key=str),
        student_ids=await get_student_ids(db, c.id),
        created_at=c.created_at,
    )


async def get_class_model(db: AsyncSession, school_id: UUID, class_id: UUID) -> Optional[SchoolClass]:
    result = await db.execute(
        select(SchoolClass).where(SchoolClass.id == class_id, SchoolClass.school_id == school_id)
    )
    return result.scalar_one_or_none()


async def _ensure_teacher_in_school(db: AsyncSession, school_id: UUID, teacher_id: UUID) -> None:
    teacher = await db.get(User, teacher_id)
    if teacher is None or teacher.role != UserRole.TEACHER.value or teacher.school_id != school_id:
        raise ValidationError("teacher_id must be a teacher of this school")


async def _set_compulsory(db: AsyncSession, class_id: UUID, subject_ids: Iterable[UUID]) -> None:
    await db.execute(delete(ClassCompulsorySubject).where(ClassCompulsorySubject.class_id == class_id))
    for subject_id in subject_ids:
        db.add(ClassCompulsorySubject(class_id=class_id, subject_id=subject_id))


async def create_class_records(
    db: AsyncSession,
    school_id: UUID,
    items: Iterable[ClassCreate],
) -> List[SchoolClass]:
    """
    Validate and insert classes, each with a fresh CLS- invite code. Caller must commit.

    A main class without an explicit compulsory list takes the school's is_compulsory subjects.
    """
    default_compulsory: Optional[Set[UUID]] = None
    created: List[SchoolClass] = []
    for item in items:
        if item.class_type == ClassType.SUBJECT_BASED:
            await subject_service.ensure_subjects_in_school(db, school_id, [item.subject_id])
        if item.teacher_id is not None:
            await _ensure_teacher_in_school(db, school_id, item.teacher_id)

        compulsory: Set[UUID] = set()
        if item.class_type == ClassType.MAIN:
            if item.compulsory_subject_ids is None:
                if default_compulsory is None:
                    default_compulsory = await subject_service.default_compulsory_ids(db, school_id)
                compulsory = set(default_compulsory)
            else:
                compulsory = await subject_service.ensure_subjects_in_school(
                    db, school_id, item.compulsory_subject_ids
                )

        school_class = SchoolClass(
            school_id=school_id,
            name=item.name.strip(),
            class_type=item.class_type.value,
            subject_id=item.subject_id if item.class_type == ClassType.SUBJECT_BASED else None,
            teacher_id=item.teacher_id,
            invite_code=await generate_class_code(db),
        )
        db.add(school_class)
        await db.flush()
        for subject_id in compulsory:
            db.add(ClassCompulsorySubject(class_id=school_class.id, subject_id=subject_id))
        created.append(school_class)
    await db.flush()
    return created


async def enroll_student(db: AsyncSession, student: User, school_class: SchoolClass) -> bool:
    """
    Add a student to a class and merge the class's compulsory subjects into the student's subjects.
    Returns False when the student was already enrolled (nothing written). Caller must commit.
    """
    existing = await db.execute(
        select(ClassStudent.id).where(
            ClassStudent.class_id == school_class.id,
            ClassStudent.student_id == student.id,
        )
    )
    if existing.scalar_one_or_none() is not None:
        return False

    db.add(ClassStudent(class_id=school_class.id, student_id=student.id))
    compulsory = await get_compulsory_ids(db, school_class.id)
    await merge_student_subjects(db, student.id, compulsory)
    await db.flush()
    return True


async def merge_student_subjects(db: AsyncSession, student_id: UUID, subject_ids: Iterable[UUID]) -> None:
    result = await db.execute(select(StudentSubject.subject_id).where(StudentSubject.student_id == student_id))
    current = {row[0] for row in result.all()}
    for subject_id in set(subject_ids) - current:
        db.add(StudentSubject(student_id=student_id, subject_id=subject_id))


async def create_class(
    db: AsyncSession,
    school_id: UUID,
    payload: ClassCreate,
    performed_by: UUID,
) -> ClassResponse:
    created = await create_class_records(db, school_id, [payload])
    school_class = created[0]
    await log_activity(
        db,
        school_id,
        "class",
        school_class.id,
        "class_created",
        performed_by=performed_by,
        performed_by_role="admin",
        message=f"Class {school_class.name} created",
    )
    await db.commit()
    await db.refresh(school_class)
    logger.info("class_created", school_id=str(school_id), class_id=str(school_class.id))
    return await _to_response(db, school_class)


async def list_classes(db: AsyncSession, school_id: UUID) -> List[ClassResponse]:
    result = await db.execute(
        select(SchoolClass).where(SchoolClass.school_id == school_id).order_by(SchoolClass.name)
    )
    return [await _to_response(db, c) for c in result.scalars().all()]


async def get_class(db: AsyncSession, school_id: UUID, class_id: UUID) -> ClassResponse:
    school_class = await get_class_model(db, school_id, class_id)
    if school_class is None:
        raise NotFound("Class not found")
    return await _to_response(db, school_class)


async def update_class(
    db: AsyncSession,
    school_id: UUID,
    class_id: UUID,
    payload: ClassUpdate,
) -> ClassResponse:
    school_class = await get_class_model(db, school_id, class_id)
    if school_class is None:
        raise NotFound("Class not found")
    data = payload.model_dump(exclude_unset=True)

    if data.get("name") is not None:
        school_class.name = data["name"].strip()
    if "teacher_id" in data:
        if data["teacher_id"] is not None:
            await _ensure_teacher_in_school(db, school_id, data["teacher_id"])
        school_class.teacher_id = data["teacher_id"]

    if school_class.class_type == ClassType.SUBJECT_BASED.value:
        if data.get("compulsory_subject_ids"):
            raise ValidationError("compulsory_subject_ids apply only to main classes")
        if "subject_id" in data:
            if data["subject_id"] is None:
                raise ValidationError("subject_id is required for subject_based classes")
            await subject_service.ensure_subjects_in_school(db, school_id, [data["subject_id"]])
            school_class.subject_id = data["subject_id"]
    else:
        if data.get("subject_id") is not None:
            raise ValidationError("subject_id applies only to subject_based classes")
        if data.get("compulsory_subject_ids") is not None:
            compulsory = await subject_service.ensure_subjects_in_school(
                db, school_id, data["compulsory_subject_ids"]
            )
            await _set_compulsory(db, school_class.id, compulsory)

    await db.commit()
    await db.refresh(school_class)
    return await _to_response(db, school_class)


async def delete_class(
    db: AsyncSession,
    school_id: UUID,
    class_id: UUID,
    performed_by: UUID,
    force: bool = False,
) -> None:
    """Delete a class. With enrolled students this needs force=True, which removes the enrollments too."""
    school_class = await get_class_model(db, school_id, class_id)
    if school_class is None:
        raise NotFound("Class not found")
    student_ids = await get_student_ids(db, class_id)
    if student_ids and not force:
        raise Conflict(
            f"Class has {len(student_ids)} enrolled student(s); pass force=true to delete it anyway"
        )

    await db.execute(delete(ClassStudent).where(ClassStudent.class_id == class_id))
    await db.execute(delete(ClassCompulsorySubject).where(ClassCompulsorySubject.class_id == class_id))
    await db.delete(school_class)
    await log_activity(
        db,
        school_id,
        "class",
        class_id,
        "class_deleted",
        performed_by=performed_by,
        performed_by_role="admin",
        message=f"Class {school_class.name} deleted" + (f" with {len(student_ids)} student(s)" if student_ids else ""),
    )
    await db.commit()
    logger.info("class_deleted", school_id=str(school_id), class_id=str(class_id), students=len(student_ids))


async def regenerate_class_code(
    db: AsyncSession,
    school_id: UUID,
    class_id: UUID,
    performed_by: UUID,
) -> ClassInviteCodeResponse:
    """Any admin of the class's school may rotate its code; the previous code stops resolving."""
    school_class = await get_class_model(db, school_id, class_id)
    if school_class is None:
        raise NotFound("Class not found")
    old_code = school_class.invite_code
    school_class.invite_code = await generate_class_code(db)
    await log_activity(
        db,
        school_id,
        "class",
        class_id,
        "class_code_regenerated",
        performed_by=performed_by,
        performed_by_role="admin",
    )
    await db.commit()
    logger.info("class_code_regenerated", class_id=str(class_id), old_code=old_code)
    return ClassInviteCodeResponse(class_id=school_class.id, invite_code=school_class.invite_code)


async def _get_student_in_school(db: AsyncSession, school_id: UUID, student_id: UUID) -> User:
    student = await db.get(User, student_id)
    if student is None or student.school_id != school_id:
        raise NotFound("Student not found")
    if student.role != UserRole.STUDENT.value:
        raise ValidationError("Only students can be enrolled in classes")
    return student


async def add_student(
    db: AsyncSession,
    school_id: UUID,
    class_id: UUID,
    student_id: UUID,
    performed_by: UUID,
) -> bool:
    """Admin enrollment. Returns False if the student was already in the class."""
    school_class = await get_class_model(db, school_id, class_id)
    if school_class is None:
        raise NotFound("Class not found")
    student = await _get_student_in_school(db, school_id, student_id)
    added = await enroll_student(db, student, school_class)
    if not added:
        return False
    await log_activity(
        db,
        school_id,
        "class",
        class_id,
        "student_added",
        performed_by=performed_by,
        performed_by_role="admin",
        message=f"{student.display_name} added to {school_class.name}",
    )
    await db.commit()
    return True


async def remove_student(
    db: AsyncSession,
    school_id: UUID,
    class_id: UUID,
    student_id: UUID,
    performed_by: UUID,
) -> bool:
    """Remove a class membership. Subjects the student already holds are kept."""
    school_class = await get_class_model(db, school_id, class_id)
    if school_class is None:
        raise NotFound("Class not found")
    result = await db.execute(
        select(ClassStudent).where(ClassStudent.class_id == class_id, ClassStudent.student_id == student_id)
    )
    membership = result.scalar_one_or_none()
    if membership is None:
        return False
    await db.delete(membership)
    await log_activity(
        db,
        school_id,
        "class",
        class_id,
        "student_removed",
        performed_by=performed_by,
        performed_by_role="admin",
    )
    await db.commit()
    return True


async def preview_class_code(db: AsyncSession, code: str) -> ClassPreview:
    school_class = await redeem_class_code(db, code)
    return ClassPreview(
        id=school_class.id,
        school_id=school_class.school_id,
        name=school_class.name,
        class_type=school_class.class_type,
    )

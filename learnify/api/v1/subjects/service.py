from typing import Iterable, List, Optional, Set
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from learnify.auth.models import StudentSubject
from learnify.core.activity import log_activity
from learnify.core.exceptions import Conflict, NotFound, ValidationError
from learnify.core.logging import get_logger
from learnify.core.models import ClassCompulsorySubject, SchoolClass, Subject

from .schemas import SubjectCreate, SubjectResponse, SubjectUpdate, SubjectUsage

logger = get_logger(__name__)


def _to_response(s: Subject) -> SubjectResponse:
    return SubjectResponse(
        id=s.id,
        school_id=s.school_id,
        name=s.name,
        is_compulsory=s.is_compulsory,
        created_at=s.created_at,
    )


async def _names_in_school(db: AsyncSession, school_id: UUID) -> Set[str]:
    result = await db.execute(select(Subject.name).where(Subject.school_id == school_id))
    return {row[0].strip().lower() for row in result.all()}


async def add_subjects(
    db: AsyncSession,
    school_id: UUID,
    items: Iterable[SubjectCreate],
) -> List[Subject]:
    """Insert subjects for a school. Duplicate names are allowed but logged. Caller must commit."""
    existing_names = await _names_in_school(db, school_id)
    created: List[Subject] = []
    for item in items:
        name = item.name.strip()
        key = name.lower()
        if key in existing_names:
            logger.warning("duplicate_subject_name", school_id=str(school_id), name=name)
        existing_names.add(key)
        subject = Subject(school_id=school_id, name=name, is_compulsory=item.is_compulsory)
        db.add(subject)
        created.append(subject)
    await db.flush()
    return created


async def list_subject_models(db: AsyncSession, school_id: UUID) -> List[Subject]:
    result = await db.execute(
        select(Subject).where(Subject.school_id == school_id).order_by(Subject.created_at, Subject.name)
    )
    return list(result.scalars().all())


async def get_subject_model(db: AsyncSession, school_id: UUID, subject_id: UUID) -> Optional[Subject]:
    result = await db.execute(
        select(Subject).where(Subject.id == subject_id, Subject.school_id == school_id)
    )
    return result.scalar_one_or_none()


async def ensure_subjects_in_school(db: AsyncSession, school_id: UUID, subject_ids: Iterable[UUID]) -> Set[UUID]:
    """Return the requested ids as a set; ValidationError if any is not a subject of the school."""
    wanted = set(subject_ids)
    if not wanted:
        return wanted
    result = await db.execute(
        select(Subject.id).where(Subject.school_id == school_id, Subject.id.in_(wanted))
    )
    found = {row[0] for row in result.all()}
    missing = wanted - found
    if missing:
        raise ValidationError(
            f"Subject(s) not found in this school: {', '.join(sorted(str(m) for m in missing))}"
        )
    return wanted


async def default_compulsory_ids(db: AsyncSession, school_id: UUID) -> Set[UUID]:
    result = await db.execute(
        select(Subject.id).where(Subject.school_id == school_id, Subject.is_compulsory.is_(True))
    )
    return {row[0] for row in result.all()}


async def count_subjects(db: AsyncSession, school_id: UUID) -> int:
    result = await db.execute(select(func.count(Subject.id)).where(Subject.school_id == school_id))
    return int(result.scalar_one())


async def subject_usage(db: AsyncSession, subject_id: UUID) -> SubjectUsage:
    compulsory = await db.execute(
        select(func.count(ClassCompulsorySubject.id)).where(ClassCompulsorySubject.subject_id == subject_id)
    )
    anchors = await db.execute(select(func.count(SchoolClass.id)).where(SchoolClass.subject_id == subject_id))
    students = await db.execute(
        select(func.count(StudentSubject.id)).where(StudentSubject.subject_id == subject_id)
    )
    return SubjectUsage(
        compulsory_in_classes=int(compulsory.scalar_one()),
        anchor_of_classes=int(anchors.scalar_one()),
        enrolled_students=int(students.scalar_one()),
    )


async def create_subject(
    db: AsyncSession,
    school_id: UUID,
    payload: SubjectCreate,
    performed_by: UUID,
) -> SubjectResponse:
    created = await add_subjects(db, school_id, [payload])
    subject = created[0]
    await log_activity(
        db,
        school_id,
        "subject",
        subject.id,
        "subject_created",
        performed_by=performed_by,
        performed_by_role="admin",
        message=f"Subject {subject.name} created",
    )
    await db.commit()
    await db.refresh(subject)
    logger.info("subject_created", school_id=str(school_id), subject_id=str(subject.id))
    return _to_response(subject)


async def list_subjects(db: AsyncSession, school_id: UUID) -> List[SubjectResponse]:
    return [_to_response(s) for s in await list_subject_models(db, school_id)]


async def get_subject(db: AsyncSession, school_id: UUID, subject_id: UUID) -> Optional[SubjectResponse]:
    subject = await get_subject_model(db, school_id, subject_id)
    return _to_response(subject) if subject else None


async def update_subject(
    db: AsyncSession,
    school_id: UUID,
    subject_id: UUID,
    payload: SubjectUpdate,
) -> SubjectResponse:
    subject = await get_subject_model(db, school_id, subject_id)
    if subject is None:
        raise NotFound("Subject not found")
    data = payload.model_dump(exclude_unset=True)
    if "name" in data and data["name"] is not None:
        subject.name = data["name"].strip()
    if "is_compulsory" in data and data["is_compulsory"] is not None:
        subject.is_compulsory = data["is_compulsory"]
    await db.commit()
    await db.refresh(subject)
    return _to_response(subject)


async def delete_subject(
    db: AsyncSession,
    school_id: UUID,
    subject_id: UUID,
    performed_by: UUID,
    force: bool = False,
) -> None:
    """
    Delete a subject. Referenced subjects need force=True, which removes compulsory links and
    student enrollments in the same transaction. A subject that anchors a subject_based class
    always blocks; delete or re-point that class first.
    """
    subject = await get_subject_model(db, school_id, subject_id)
    if subject is None:
        raise NotFound("Subject not found")

    usage = await subject_usage(db, subject_id)
    if usage.anchor_of_classes:
        raise Conflict(
            f"Subject is the subject of {usage.anchor_of_classes} subject-based class(es); "
            "delete or update those classes first"
        )
    if usage.in_use and not force:
        raise Conflict(
            f"Subject is in use (compulsory in {usage.compulsory_in_classes} class(es), "
            f"taken by {usage.enrolled_students} student(s)); pass force=true to remove it anyway"
        )

    if usage.in_use:
        await db.execute(delete(ClassCompulsorySubject).where(ClassCompulsorySubject.subject_id == subject_id))
        await db.execute(delete(StudentSubject).where(StudentSubject.subject_id == subject_id))
    await db.delete(subject)
    await log_activity(
        db,
        school_id,
        "subject",
        subject_id,
        "subject_deleted",
        performed_by=performed_by,
        performed_by_role="admin",
        message=f"Subject {subject.name} deleted" + (" (forced)" if usage.in_use else ""),
    )
    await db.commit()
    logger.info("subject_deleted", school_id=str(school_id), subject_id=str(subject_id), forced=usage.in_use)

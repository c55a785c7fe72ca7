"""
Invite codes: short, human-typable join tokens for schools (SCH-XXXXX) and classes (CLS-XXXXX).

- The suffix is base-36 (A-Z, 0-9), upper-cased, drawn with `secrets`.
- Codes are matched exactly after trimming and upper-casing the input.
- Regenerating replaces the stored code; the old one stops resolving immediately.
- The id (UUID) remains the only key used for joins; codes are never FKs.
"""

import secrets
import string
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from learnify.core.config import settings
from learnify.core.enums import CLASS_CODE_PREFIX, SCHOOL_CODE_PREFIX
from learnify.core.exceptions import NotFound, ServiceError
from learnify.core.logging import get_logger
from learnify.core.models import School, SchoolClass

logger = get_logger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_code_candidate(prefix: str, length: Optional[int] = None) -> str:
    """Single candidate code, no uniqueness check. e.g. SCH-7K2QX"""
    if length is None:
        length = settings.invite_code_length
    suffix = "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))
    return f"{prefix}-{suffix}"


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


async def _code_taken(db: AsyncSession, model, code: str) -> bool:
    result = await db.execute(select(model.id).where(model.invite_code == code))
    return result.scalar_one_or_none() is not None


async def _generate_unique(db: AsyncSession, model, prefix: str) -> str:
    for _ in range(settings.invite_code_max_attempts):
        code = generate_code_candidate(prefix)
        if not await _code_taken(db, model, code):
            return code
        logger.warning("invite_code_collision", prefix=prefix)
    raise ServiceError("Could not generate unique invite code")


async def generate_school_code(db: AsyncSession) -> str:
    return await _generate_unique(db, School, SCHOOL_CODE_PREFIX)


async def generate_class_code(db: AsyncSession) -> str:
    return await _generate_unique(db, SchoolClass, CLASS_CODE_PREFIX)


async def get_school_by_code(db: AsyncSession, code: str) -> Optional[School]:
    result = await db.execute(select(School).where(School.invite_code == normalize_code(code)))
    return result.scalar_one_or_none()


async def get_class_by_code(db: AsyncSession, code: str) -> Optional[SchoolClass]:
    result = await db.execute(select(SchoolClass).where(SchoolClass.invite_code == normalize_code(code)))
    return result.scalar_one_or_none()


async def redeem_school_code(db: AsyncSession, code: str) -> School:
    """Resolve a school invite code. Does not attach the caller to the school."""
    school = await get_school_by_code(db, code)
    if school is None:
        raise NotFound("Invalid invite code")
    return school


async def redeem_class_code(db: AsyncSession, code: str) -> SchoolClass:
    school_class = await get_class_by_code(db, code)
    if school_class is None:
        raise NotFound("Invalid class invite code")
    return school_class

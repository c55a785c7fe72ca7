"""
Activity logging for school setup, membership and enrollment state changes. Call on every state change.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from learnify.core.models import ActivityLog


async def log_activity(
    db: AsyncSession,
    school_id: UUID,
    entity_type: str,
    entity_id: UUID,
    action: str,
    *,
    from_status: Optional[str] = None,
    to_status: Optional[str] = None,
    performed_by: Optional[UUID] = None,
    performed_by_role: Optional[str] = None,
    message: Optional[str] = None,
) -> None:
    """Append one activity entry. Caller must commit."""
    entry = ActivityLog(
        school_id=school_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        from_status=from_status,
        to_status=to_status,
        performed_by=performed_by,
        performed_by_role=performed_by_role,
        message=message,
        timestamp=datetime.utcnow(),
    )
    db.add(entry)


async def list_activity(
    db: AsyncSession,
    school_id: UUID,
    limit: int = 50,
) -> List[ActivityLog]:
    result = await db.execute(
        select(ActivityLog)
        .where(ActivityLog.school_id == school_id)
        .order_by(ActivityLog.timestamp.desc())
        .limit(limit)
    )
    return list(result.scalars().all())

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class SubjectCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    is_compulsory: bool = False


class SubjectUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    is_compulsory: Optional[bool] = None


class SubjectResponse(BaseModel):
    id: UUID
    school_id: UUID
    name: str
    is_compulsory: bool
    created_at: datetime

    class Config:
        from_attributes = True


class SubjectUsage(BaseModel):
    """References that block a non-forced delete."""

    compulsory_in_classes: int = 0
    anchor_of_classes: int = 0
    enrolled_students: int = 0

    @property
    def in_use(self) -> bool:
        return bool(self.compulsory_in_classes or self.anchor_of_classes or self.enrolled_students)
